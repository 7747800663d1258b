"""Dataclasses describing samples, tracks and recording state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class Sample:
    """A single geolocation fix."""

    latitude: float
    longitude: float
    captured_at_ms: int
    accuracy_m: Optional[float] = None
    # Instantaneous speed reported by the platform alongside the fix.
    speed_mps: Optional[float] = None

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "capturedAtMs": self.captured_at_ms,
        }
        if self.accuracy_m is not None:
            record["accuracyMeters"] = self.accuracy_m
        if self.speed_mps is not None:
            record["speedMps"] = self.speed_mps
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Sample":
        return cls(
            latitude=float(record["latitude"]),
            longitude=float(record["longitude"]),
            captured_at_ms=int(record["capturedAtMs"]),
            accuracy_m=_optional_float(record.get("accuracyMeters")),
            speed_mps=_optional_float(record.get("speedMps")),
        )


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Derived values for a track at a given instant."""

    current_speed_kmh: float = 0.0
    total_distance_km: float = 0.0
    average_speed_kmh: float = 0.0


@dataclass(frozen=True, slots=True)
class Track:
    """A recording session's admitted samples and summary metrics.

    Fields are never reassigned; updates go through :func:`dataclasses.replace`.
    An active track shares the recorder's sample list, while committed tracks
    hold their samples in a tuple.
    """

    id: str
    name: str
    started_at_ms: int
    samples: Sequence[Sample] = field(default_factory=list)
    ended_at_ms: Optional[int] = None
    total_distance_km: float = 0.0
    average_speed_kmh: float = 0.0

    @property
    def is_frozen(self) -> bool:
        return isinstance(self.samples, tuple)

    def freeze(self) -> "Track":
        """Return an immutable snapshot of this track."""

        return replace(self, samples=tuple(self.samples))

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "samples": [sample.to_record() for sample in self.samples],
            "startedAtMs": self.started_at_ms,
            "endedAtMs": self.ended_at_ms,
            "totalDistanceKm": self.total_distance_km,
            "averageSpeedKmh": self.average_speed_kmh,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Track":
        samples: Tuple[Sample, ...] = tuple(
            Sample.from_record(item) for item in record.get("samples") or []
        )
        ended = record.get("endedAtMs")
        return cls(
            id=str(record["id"]),
            name=str(record.get("name") or ""),
            started_at_ms=int(record["startedAtMs"]),
            samples=samples,
            ended_at_ms=int(ended) if ended is not None else None,
            total_distance_km=float(record.get("totalDistanceKm") or 0.0),
            average_speed_kmh=float(record.get("averageSpeedKmh") or 0.0),
        )


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)

