"""Derived speed and distance metrics for a track."""

from __future__ import annotations

from typing import Sequence

from .geometry import speed_kmh, total_distance_km
from .models import MetricsSnapshot, Sample
from .utils import hours_between

MPS_TO_KMH = 3.6


def current_speed_kmh(samples: Sequence[Sample]) -> float:
    """Speed at the latest sample.

    Prefers the platform-reported speed of the last fix and falls back to the
    speed between the two most recent samples.
    """

    if not samples:
        return 0.0
    last = samples[-1]
    if last.speed_mps is not None:
        return max(0.0, last.speed_mps * MPS_TO_KMH)
    if len(samples) < 2:
        return 0.0
    return speed_kmh(samples[-2], last)


def average_speed_kmh(total_km: float, recording_start_ms: int, now_ms: int) -> float:
    hours = hours_between(recording_start_ms, now_ms)
    if hours <= 0:
        return 0.0
    return total_km / hours


def compute_metrics(
    samples: Sequence[Sample], recording_start_ms: int, now_ms: int
) -> MetricsSnapshot:
    """Recompute every metric from the samples and the session clock.

    The average uses the total that already includes the latest sample.
    """

    total = total_distance_km(samples)
    return MetricsSnapshot(
        current_speed_kmh=current_speed_kmh(samples),
        total_distance_km=total,
        average_speed_kmh=average_speed_kmh(total, recording_start_ms, now_ms),
    )


__all__ = ["MPS_TO_KMH", "current_speed_kmh", "average_speed_kmh", "compute_metrics"]
