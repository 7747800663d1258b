"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable sample factories, a manual
clock and in-memory stores shared by the recorder tests.
"""
from __future__ import annotations

import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from track_recorder.models import Sample, Track
from track_recorder.recorder import LocationFeed, RecorderConfig, TrackRecorder
from track_recorder.store import MemoryArea, TrackStore


# --- Factory helpers -------------------------------------------------
def make_sample(lat, lon, t_ms, accuracy=None, speed=None):
    return Sample(
        latitude=lat,
        longitude=lon,
        captured_at_ms=t_ms,
        accuracy_m=accuracy,
        speed_mps=speed,
    )


def make_track(samples, track_id="track-1", name="Test Route"):
    return Track(
        id=track_id,
        name=name,
        started_at_ms=samples[0].captured_at_ms if samples else 0,
        samples=tuple(samples),
        ended_at_ms=samples[-1].captured_at_ms if samples else 0,
    )


class ManualClock:
    def __init__(self, start_ms: int = 0) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def equator_samples():
    return [
        make_sample(0.0, 0.0, 0),
        make_sample(0.0, 0.001, 60_000),
        make_sample(0.0, 0.002, 120_000),
    ]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return TrackStore(MemoryArea())


@pytest.fixture
def feed():
    return LocationFeed()


@pytest.fixture
def recorder(store, feed, clock):
    ids = iter(f"track-{i}" for i in range(1, 1000))
    rec = TrackRecorder(
        store,
        source=feed,
        config=RecorderConfig(clock=clock, id_factory=lambda: next(ids)),
    )
    yield rec
    rec.close()
