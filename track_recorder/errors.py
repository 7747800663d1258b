"""Central error types used across the application."""

from __future__ import annotations


class TrackRecorderError(RuntimeError):
    """Base error for track recording failures."""


class InvalidTransitionError(TrackRecorderError):
    """Raised when a recording control is used from an incompatible state.

    The recorder state is left unchanged.
    """

    def __init__(self, action: str, state: object) -> None:
        self.action = action
        self.state = state
        label = getattr(state, "value", state)
        super().__init__(f"Cannot {action} while {label}")


class EmptyTrackError(TrackRecorderError):
    """Raised when a track with no samples is exported."""


class StoreUnavailableError(TrackRecorderError):
    """Raised when the persisted track collection cannot be read or written."""


class DuplicateTrackError(TrackRecorderError):
    """Raised when a track id is already present in the store."""


class TrackNotFoundError(TrackRecorderError, KeyError):
    """Raised when no stored track matches the requested id."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


class MalformedSampleError(TrackRecorderError, ValueError):
    """Raised when a raw fix lacks usable latitude/longitude values."""


__all__ = [
    "TrackRecorderError",
    "InvalidTransitionError",
    "EmptyTrackError",
    "StoreUnavailableError",
    "DuplicateTrackError",
    "TrackNotFoundError",
    "MalformedSampleError",
]
