"""Tests for the recording state machine."""

from __future__ import annotations

import dataclasses

import pytest

from track_recorder.errors import InvalidTransitionError, StoreUnavailableError
from track_recorder.geometry import total_distance_km
from track_recorder.models import RecordingState
from track_recorder.recorder import LocationFeed, RecorderConfig, TrackRecorder
from track_recorder.store import MemoryArea, TrackStore
from conftest import ManualClock, make_sample


def _push(feed: LocationFeed, clock: ManualClock, sample) -> None:
    clock.now = sample.captured_at_ms
    feed.push(sample)


def test_initial_state_is_idle(recorder) -> None:
    assert recorder.state is RecordingState.IDLE
    assert recorder.active_track is None


def test_pause_while_idle_is_rejected(recorder) -> None:
    with pytest.raises(InvalidTransitionError) as excinfo:
        recorder.pause()
    assert excinfo.value.action == "pause"
    assert recorder.state is RecordingState.IDLE


@pytest.mark.parametrize("action", ["resume", "stop"])
def test_other_invalid_transitions_from_idle(recorder, action) -> None:
    with pytest.raises(InvalidTransitionError):
        getattr(recorder, action)()
    assert recorder.state is RecordingState.IDLE


def test_double_start_is_rejected(recorder) -> None:
    track = recorder.start()
    with pytest.raises(InvalidTransitionError):
        recorder.start()
    assert recorder.state is RecordingState.RECORDING
    assert recorder.active_track is track


def test_scenario_metrics(recorder, feed, clock, equator_samples) -> None:
    recorder.start("Scenario")
    for sample in equator_samples:
        _push(feed, clock, sample)
    track = recorder.active_track
    assert len(track.samples) == 3
    assert recorder.metrics.total_distance_km == pytest.approx(0.2224, abs=1e-4)
    assert recorder.metrics.average_speed_kmh == pytest.approx(6.67, abs=0.01)
    assert track.total_distance_km == recorder.metrics.total_distance_km


def test_stop_commits_track_with_haversine_total(recorder, feed, clock, store) -> None:
    clock.now = 1_000
    recorder.start()
    samples = [make_sample(51.0 + i * 0.001, -1.0, 1_000 + i * 5_000) for i in range(6)]
    for sample in samples:
        _push(feed, clock, sample)
    clock.now = 60_000
    committed = recorder.stop()

    assert recorder.state is RecordingState.STOPPED
    assert recorder.active_track is None
    assert committed is not None and committed.is_frozen
    assert committed.ended_at_ms == 60_000
    assert committed.total_distance_km == pytest.approx(total_distance_km(samples))
    assert [t.id for t in store.list()] == [committed.id]
    assert store.load(committed.id).samples == tuple(samples)


def test_stop_without_samples_creates_no_entry(recorder, store) -> None:
    recorder.start()
    assert recorder.stop() is None
    assert recorder.state is RecordingState.STOPPED
    assert store.list() == []


def test_pause_does_not_grow_track_but_tracks_position(recorder, feed, clock) -> None:
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    recorder.pause()
    for i in range(1, 6):
        _push(feed, clock, make_sample(0.0, i * 0.01, i * 1_000))
    assert len(recorder.active_track.samples) == 1
    assert recorder.last_position == make_sample(0.0, 0.05, 5_000)

    recorder.resume()
    _push(feed, clock, make_sample(0.0, 0.06, 6_000))
    assert len(recorder.active_track.samples) == 2


def test_samples_update_position_and_speed_while_idle(recorder) -> None:
    assert recorder.on_sample({"lat": 1.0, "lng": 2.0, "speed": 10.0}) is False
    assert recorder.last_position.latitude == 1.0
    assert recorder.current_speed_kmh == pytest.approx(36.0)


def test_malformed_sample_dropped_silently(recorder) -> None:
    recorder.start()
    assert recorder.on_sample({"latitude": 1.0}) is False
    assert recorder.last_position is None
    assert len(recorder.active_track.samples) == 0


def test_out_of_order_sample_rejected(recorder, feed, clock) -> None:
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 10_000))
    assert recorder.on_sample(make_sample(0.0, 0.01, 5_000)) is False
    assert len(recorder.active_track.samples) == 1


def test_filtered_samples_are_not_appended(recorder, feed, clock) -> None:
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    _push(feed, clock, make_sample(0.0, 0.0, 1_000))
    _push(feed, clock, make_sample(0.0, 0.01, 2_000, accuracy=120.0))
    assert len(recorder.active_track.samples) == 1


def test_stop_unsubscribes_from_feed(recorder, feed, clock) -> None:
    recorder.start()
    assert feed.subscriber_count == 1
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    recorder.stop()
    assert feed.subscriber_count == 0
    _push(feed, clock, make_sample(5.0, 5.0, 1_000))
    assert recorder.last_position == make_sample(0.0, 0.0, 0)


def test_restart_after_stop_begins_fresh_session(recorder, feed, clock, store) -> None:
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    first = recorder.stop()
    clock.now = 100_000
    second = recorder.start()
    assert second.id != first.id
    assert second.started_at_ms == 100_000
    assert len(second.samples) == 0
    assert recorder.metrics.total_distance_km == 0.0
    assert feed.subscriber_count == 1


def test_clear_resets_active_track(recorder, feed, clock) -> None:
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    _push(feed, clock, make_sample(0.0, 0.01, 10_000))
    clock.now = 20_000
    recorder.clear()
    assert len(recorder.active_track.samples) == 0
    assert recorder.active_track.started_at_ms == 20_000
    assert recorder.metrics.total_distance_km == 0.0
    assert recorder.state is RecordingState.RECORDING


class _FlakyArea(MemoryArea):
    def __init__(self) -> None:
        super().__init__()
        self.fail = True

    def set(self, key, value) -> None:
        if self.fail:
            raise OSError("disk full")
        super().set(key, value)


def test_store_failure_keeps_track_for_retry(feed) -> None:
    area = _FlakyArea()
    store = TrackStore(area)
    clock = ManualClock()
    recorder = TrackRecorder(store, source=feed, config=RecorderConfig(clock=clock))
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    _push(feed, clock, make_sample(0.0, 0.01, 1_000))

    with pytest.raises(StoreUnavailableError):
        recorder.stop()
    assert recorder.state is RecordingState.STOPPED
    pending = recorder.pending_track
    assert pending is not None and len(pending.samples) == 2

    area.fail = False
    saved = recorder.retry_save()
    assert saved.id == pending.id
    assert recorder.pending_track is None
    assert store.load(pending.id).samples == pending.samples


def test_second_failed_stop_keeps_earlier_pending_track(feed) -> None:
    area = _FlakyArea()
    store = TrackStore(area)
    clock = ManualClock()
    ids = iter(["first", "second"])
    recorder = TrackRecorder(
        store,
        source=feed,
        config=RecorderConfig(clock=clock, id_factory=lambda: next(ids)),
    )
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    with pytest.raises(StoreUnavailableError):
        recorder.stop()

    recorder.start()
    _push(feed, clock, make_sample(1.0, 1.0, 5_000))
    with pytest.raises(StoreUnavailableError):
        recorder.stop()
    assert [t.id for t in recorder.pending_tracks] == ["first", "second"]
    assert recorder.pending_track.id == "first"

    area.fail = False
    saved = recorder.retry_save()
    assert saved.id == "second"
    assert recorder.pending_tracks == ()
    assert [t.id for t in store.list()] == ["first", "second"]


def test_stop_after_recovery_commits_earlier_pending_track_first(feed) -> None:
    area = _FlakyArea()
    store = TrackStore(area)
    clock = ManualClock()
    ids = iter(["first", "second"])
    recorder = TrackRecorder(
        store,
        source=feed,
        config=RecorderConfig(clock=clock, id_factory=lambda: next(ids)),
    )
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    with pytest.raises(StoreUnavailableError):
        recorder.stop()

    area.fail = False
    recorder.start()
    _push(feed, clock, make_sample(1.0, 1.0, 5_000))
    committed = recorder.stop()
    assert committed.id == "second"
    assert recorder.pending_track is None
    assert [t.id for t in store.list()] == ["first", "second"]


def test_retry_without_pending_is_noop(recorder) -> None:
    assert recorder.retry_save() is None


def test_default_track_name(recorder) -> None:
    track = recorder.start()
    assert track.name.startswith("Route ")


def test_subscription_cancel_is_idempotent() -> None:
    feed = LocationFeed()
    received = []
    subscription = feed.subscribe(received.append)
    feed.push("a")
    subscription.cancel()
    subscription.cancel()
    feed.push("b")
    assert received == ["a"]
    assert not subscription.active


def test_stop_while_paused_commits_track(recorder, feed, clock, store) -> None:
    recorder.start()
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    _push(feed, clock, make_sample(0.0, 0.01, 10_000))
    recorder.pause()
    _push(feed, clock, make_sample(0.0, 0.02, 20_000))
    clock.now = 30_000
    committed = recorder.stop()

    assert recorder.state is RecordingState.STOPPED
    assert committed is not None and len(committed.samples) == 2
    assert committed.ended_at_ms == 30_000
    assert feed.subscriber_count == 0
    assert store.load(committed.id).samples == committed.samples


def test_committed_track_cannot_be_altered(recorder, feed, clock, store) -> None:
    recorder.start("Morning")
    _push(feed, clock, make_sample(0.0, 0.0, 0))
    committed = recorder.stop()

    with pytest.raises(dataclasses.FrozenInstanceError):
        committed.name = "changed"
    with pytest.raises(AttributeError):
        committed.samples.append(make_sample(1.0, 1.0, 1_000))
    assert store.load(committed.id).name == "Morning"
    assert len(store.load(committed.id).samples) == 1
