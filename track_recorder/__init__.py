"""GPS track recording engine."""

from .errors import (
    DuplicateTrackError,
    EmptyTrackError,
    InvalidTransitionError,
    MalformedSampleError,
    StoreUnavailableError,
    TrackNotFoundError,
    TrackRecorderError,
)
from .models import MetricsSnapshot, RecordingState, Sample, Track
from .recorder import LocationFeed, RecorderConfig, TrackRecorder
from .store import JsonFileArea, MemoryArea, TrackStore

__all__ = [
    "Sample",
    "Track",
    "MetricsSnapshot",
    "RecordingState",
    "TrackRecorder",
    "RecorderConfig",
    "LocationFeed",
    "TrackStore",
    "JsonFileArea",
    "MemoryArea",
    "TrackRecorderError",
    "InvalidTransitionError",
    "EmptyTrackError",
    "StoreUnavailableError",
    "DuplicateTrackError",
    "TrackNotFoundError",
    "MalformedSampleError",
]
