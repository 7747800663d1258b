"""Recording state machine for live tracks.

`TrackRecorder` is the single owner and mutator of the active track. Samples
arrive one at a time through :meth:`TrackRecorder.on_sample`, either called
directly or delivered by a :class:`LocationFeed` subscription.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Tuple

from .config import FILTER_MAX_ACCURACY_M, FILTER_MIN_DISTANCE_KM
from .errors import InvalidTransitionError, MalformedSampleError
from .filtering import admit, parse_sample
from .metrics import MPS_TO_KMH, compute_metrics
from .models import MetricsSnapshot, RecordingState, Sample, Track
from .store import TrackStore
from .utils import now_ms

SampleHandler = Callable[[Any], None]
Clock = Callable[[], int]

_LOGGER = logging.getLogger(__name__)


class Subscription:
    """Handle returned by :meth:`LocationFeed.subscribe`."""

    def __init__(self, feed: "LocationFeed", token: int) -> None:
        self._feed = feed
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._unsubscribe(self._token)


class LocationFeed:
    """In-process push source of raw location fixes."""

    def __init__(self) -> None:
        self._handlers: Dict[int, SampleHandler] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    def subscribe(self, handler: SampleHandler) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._handlers[token] = handler
        return Subscription(self, token)

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._handlers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def push(self, raw: Any) -> None:
        """Deliver ``raw`` to every live handler, completing each in turn."""

        with self._lock:
            handlers = list(self._handlers.values())
        for handler in handlers:
            handler(raw)


@dataclass(slots=True)
class RecorderConfig:
    min_distance_km: float = FILTER_MIN_DISTANCE_KM
    max_accuracy_m: float = FILTER_MAX_ACCURACY_M
    clock: Clock = now_ms
    id_factory: Callable[[], str] = field(default=lambda: uuid.uuid4().hex)
    logger: logging.Logger | None = None


def default_track_name(started_at_ms: int) -> str:
    started = datetime.fromtimestamp(started_at_ms / 1000.0)
    return f"Route {started:%Y-%m-%d %H:%M:%S}"


class TrackRecorder:
    def __init__(
        self,
        store: TrackStore,
        source: LocationFeed | None = None,
        config: RecorderConfig | None = None,
    ) -> None:
        self.config = config or RecorderConfig()
        self._log = self.config.logger or _LOGGER
        self._store = store
        self._source = source
        self._subscription: Subscription | None = None
        self._state = RecordingState.IDLE
        self._track: Track | None = None
        self._samples: List[Sample] = []
        self._session_start_ms: int = self.config.clock()
        self._last_position: Sample | None = None
        self._current_speed_kmh = 0.0
        self._metrics = MetricsSnapshot()
        self._pending: Deque[Track] = deque()

    # -- read-only views --------------------------------------------------
    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def active_track(self) -> Track | None:
        return self._track

    @property
    def last_position(self) -> Sample | None:
        return self._last_position

    @property
    def last_admitted(self) -> Sample | None:
        return self._samples[-1] if self._samples else None

    @property
    def current_speed_kmh(self) -> float:
        return self._current_speed_kmh

    @property
    def metrics(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            current_speed_kmh=self._current_speed_kmh,
            total_distance_km=self._metrics.total_distance_km,
            average_speed_kmh=self._metrics.average_speed_kmh,
        )

    @property
    def pending_track(self) -> Track | None:
        """The oldest stopped track whose commit failed, if any."""

        return self._pending[0] if self._pending else None

    @property
    def pending_tracks(self) -> Tuple[Track, ...]:
        """Every stopped track awaiting :meth:`retry_save`, oldest first."""

        return tuple(self._pending)

    # -- transitions ------------------------------------------------------
    def _require(self, action: str, *allowed: RecordingState) -> None:
        if self._state not in allowed:
            self._log.warning("Rejected %s while %s", action, self._state.value)
            raise InvalidTransitionError(action, self._state)

    def start(self, name: str | None = None) -> Track:
        self._require("start", RecordingState.IDLE, RecordingState.STOPPED)
        started = self.config.clock()
        self._samples = []
        self._track = Track(
            id=self.config.id_factory(),
            name=name or default_track_name(started),
            started_at_ms=started,
            samples=self._samples,
        )
        self._session_start_ms = started
        self._metrics = MetricsSnapshot()
        self._current_speed_kmh = 0.0
        if self._source is not None and self._subscription is None:
            self._subscription = self._source.subscribe(self.on_sample)
        self._state = RecordingState.RECORDING
        self._log.info("Recording started track=%s", self._track.id)
        return self._track

    def pause(self) -> None:
        self._require("pause", RecordingState.RECORDING)
        self._state = RecordingState.PAUSED
        self._log.info("Recording paused")

    def resume(self) -> None:
        self._require("resume", RecordingState.PAUSED)
        self._state = RecordingState.RECORDING
        self._log.info("Recording resumed")

    def stop(self) -> Track | None:
        """End the session and commit the track when it holds samples.

        Returns the committed track, or None for an empty session.

        Raises:
            StoreUnavailableError: If the commit fails. The frozen track is
                queued behind any earlier failed commits for :meth:`retry_save`.
        """

        self._require("stop", RecordingState.RECORDING, RecordingState.PAUSED)
        if self._track is None:
            raise InvalidTransitionError("stop", self._state)
        ended = self.config.clock()
        self._refresh_metrics(ended)
        frozen = replace(self._track, ended_at_ms=ended).freeze()

        self._cancel_subscription()
        self._state = RecordingState.STOPPED
        self._track = None
        self._samples = []
        self._log.info(
            "Recording stopped track=%s points=%d distance_km=%.3f",
            frozen.id,
            len(frozen.samples),
            frozen.total_distance_km,
        )
        if not frozen.samples:
            self._log.info("Track %s has no samples; nothing to save", frozen.id)
            return None
        self._pending.append(frozen)
        return self.retry_save()

    def retry_save(self) -> Track | None:
        """Commit pending tracks oldest first.

        Returns the last track committed, or None when nothing was pending.
        A failure leaves that track and every later one queued.
        """

        saved = None
        while self._pending:
            pending = self._pending[0]
            try:
                saved = self._store.save(pending)
            except Exception:
                self._log.error(
                    "Failed to save track %s; %d track(s) awaiting retry",
                    pending.id,
                    len(self._pending),
                )
                raise
            self._pending.popleft()
        return saved

    def clear(self) -> None:
        """Drop the active track's samples and reset metrics and session start."""

        self._samples.clear()
        self._session_start_ms = self.config.clock()
        if self._track is not None:
            self._track = replace(
                self._track,
                started_at_ms=self._session_start_ms,
                total_distance_km=0.0,
                average_speed_kmh=0.0,
            )
        self._metrics = MetricsSnapshot()
        self._current_speed_kmh = 0.0
        self._log.info("Route cleared")

    def close(self) -> None:
        self._cancel_subscription()

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    # -- samples ----------------------------------------------------------
    def on_sample(self, raw: Any) -> bool:
        """Handle one raw fix. Returns True when it was appended to the track."""

        try:
            sample = parse_sample(raw, now=self.config.clock())
        except MalformedSampleError as exc:
            self._log.debug("Dropped malformed sample: %s", exc)
            return False

        self._last_position = sample
        if sample.speed_mps is not None:
            self._current_speed_kmh = max(0.0, sample.speed_mps * MPS_TO_KMH)

        if self._state is not RecordingState.RECORDING:
            return False
        last = self.last_admitted
        if last is not None and sample.captured_at_ms < last.captured_at_ms:
            self._log.debug("Rejected out-of-order sample at %s", sample.captured_at_ms)
            return False
        if not admit(
            last,
            sample,
            min_distance_km=self.config.min_distance_km,
            max_accuracy_m=self.config.max_accuracy_m,
        ):
            self._log.debug("Filtered sample at %s", sample.captured_at_ms)
            return False
        self._samples.append(sample)
        self._refresh_metrics(self.config.clock())
        return True

    def _refresh_metrics(self, now: int) -> None:
        self._metrics = compute_metrics(self._samples, self._session_start_ms, now)
        if self._samples:
            self._current_speed_kmh = self._metrics.current_speed_kmh
        if self._track is not None:
            self._track = replace(
                self._track,
                total_distance_km=self._metrics.total_distance_km,
                average_speed_kmh=self._metrics.average_speed_kmh,
            )


__all__ = [
    "LocationFeed",
    "Subscription",
    "RecorderConfig",
    "TrackRecorder",
    "default_track_name",
]
