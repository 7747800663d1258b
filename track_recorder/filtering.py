"""Admission filter and post-processing for raw geolocation samples."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from .config import FILTER_MAX_ACCURACY_M, FILTER_MIN_DISTANCE_KM, SMOOTHING_WINDOW
from .errors import MalformedSampleError
from .geometry import distance_km
from .models import Sample
from .utils import now_ms

_LAT_KEYS = ("latitude", "lat")
_LON_KEYS = ("longitude", "lng", "lon")
_TIME_KEYS = ("captured_at_ms", "capturedAtMs", "timestamp")
_ACCURACY_KEYS = ("accuracy_m", "accuracyMeters", "accuracy")
_SPEED_KEYS = ("speed_mps", "speedMps", "speed")


def admit(
    last_admitted: Optional[Sample],
    candidate: Sample,
    min_distance_km: float = FILTER_MIN_DISTANCE_KM,
    max_accuracy_m: float = FILTER_MAX_ACCURACY_M,
) -> bool:
    """Return True when ``candidate`` should join the track after ``last_admitted``."""

    if last_admitted is None:
        return True
    if candidate.accuracy_m is not None and candidate.accuracy_m > max_accuracy_m:
        return False
    if distance_km(last_admitted, candidate) < min_distance_km:
        return False
    return True


def filter_samples(
    samples: Sequence[Sample],
    min_distance_km: float = FILTER_MIN_DISTANCE_KM,
    max_accuracy_m: float = FILTER_MAX_ACCURACY_M,
) -> List[Sample]:
    """Apply :func:`admit` across a captured sequence."""

    kept: List[Sample] = []
    for sample in samples:
        last = kept[-1] if kept else None
        if admit(last, sample, min_distance_km, max_accuracy_m):
            kept.append(sample)
    return kept


def smooth(samples: Sequence[Sample], window_size: int = SMOOTHING_WINDOW) -> List[Sample]:
    """Return a new sequence with coordinates averaged over a centred window.

    The window shrinks at both ends of the sequence. Capture times and the
    remaining sample fields are carried over unchanged.
    """

    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    count = len(samples)
    if count <= window_size:
        return list(samples)
    coords = np.asarray(
        [(s.latitude, s.longitude) for s in samples], dtype=float
    )
    before = window_size // 2
    after = math.ceil(window_size / 2)
    smoothed: List[Sample] = []
    for index, sample in enumerate(samples):
        start = max(0, index - before)
        end = min(count, index + after)
        lat, lon = coords[start:end].mean(axis=0)
        smoothed.append(replace(sample, latitude=float(lat), longitude=float(lon)))
    return smoothed


def parse_sample(raw: Any, now: Optional[int] = None) -> Sample:
    """Coerce a raw platform fix into a :class:`Sample`.

    Accepts an existing ``Sample`` or a mapping using either snake_case,
    camelCase or the short ``lat``/``lng`` keys. Fixes without a capture time
    are stamped with ``now``.

    Raises:
        MalformedSampleError: If latitude/longitude are missing, not numeric
            or out of range.
    """

    if isinstance(raw, Sample):
        _check_range(raw.latitude, raw.longitude)
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedSampleError(f"Unsupported sample payload: {type(raw)!r}")
    latitude = _coerce_float(_first(raw, _LAT_KEYS), "latitude")
    longitude = _coerce_float(_first(raw, _LON_KEYS), "longitude")
    if latitude is None or longitude is None:
        raise MalformedSampleError("Sample is missing latitude/longitude")
    _check_range(latitude, longitude)

    captured = _first(raw, _TIME_KEYS)
    try:
        captured_at_ms = int(captured) if captured is not None else None
    except (TypeError, ValueError) as exc:
        raise MalformedSampleError(f"Invalid capture time: {captured!r}") from exc
    if captured_at_ms is None:
        captured_at_ms = now if now is not None else now_ms()

    accuracy = _optional_float(_first(raw, _ACCURACY_KEYS))
    if accuracy is not None and accuracy < 0:
        accuracy = None
    speed = _optional_float(_first(raw, _SPEED_KEYS))
    return Sample(
        latitude=latitude,
        longitude=longitude,
        captured_at_ms=captured_at_ms,
        accuracy_m=accuracy,
        speed_mps=speed,
    )


def _first(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _coerce_float(value: Any, label: str) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedSampleError(f"Invalid {label}: {value!r}") from exc
    if not math.isfinite(result):
        raise MalformedSampleError(f"Non-finite {label}: {value!r}")
    return result


def _optional_float(value: Any) -> Optional[float]:
    # A garbled accuracy or speed is dropped; the position is still usable.
    try:
        return _coerce_float(value, "field")
    except MalformedSampleError:
        return None


def _check_range(latitude: float, longitude: float) -> None:
    if not -90.0 <= latitude <= 90.0:
        raise MalformedSampleError(f"Latitude out of range: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise MalformedSampleError(f"Longitude out of range: {longitude}")


__all__ = ["admit", "filter_samples", "smooth", "parse_sample"]
