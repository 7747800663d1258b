"""Durable collection of committed tracks.

Tracks live as a JSON array under a single key of a persisted key/value area.
Every save reads the whole array, appends one record and writes the array
back, so readers only ever see complete, committed tracks.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from cachetools import LRUCache

from .config import TRACK_CACHE_SIZE, TRACK_STORE_KEY, TRACK_STORE_PATH
from .errors import DuplicateTrackError, StoreUnavailableError, TrackNotFoundError
from .models import Track

_LOGGER = logging.getLogger(__name__)


class KeyValueArea(Protocol):
    """Minimal persisted key/value contract used by :class:`TrackStore`."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryArea:
    """Process-local area; values are copied through JSON on every access."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class JsonFileArea:
    """Area persisted as a single JSON object on disk."""

    def __init__(self, path: str | Path = TRACK_STORE_PATH) -> None:
        base = Path(path)
        self._path = base if base.is_absolute() else Path.cwd() / base

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, Any]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            raise StoreUnavailableError(
                f"Failed reading track store {self._path}: {exc}"
            ) from exc
        if not isinstance(payload, dict):
            raise StoreUnavailableError(
                f"Track store {self._path} does not hold a JSON object"
            )
        return payload

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        payload = self._read_all()
        payload[key] = value
        temp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=True, indent=2)
            temp_path.replace(self._path)
        except OSError as exc:
            raise StoreUnavailableError(
                f"Failed writing track store {self._path}: {exc}"
            ) from exc


class TrackStore:
    """Append-only history of committed tracks."""

    def __init__(
        self,
        area: KeyValueArea | None = None,
        *,
        key: str = TRACK_STORE_KEY,
        cache_size: int = TRACK_CACHE_SIZE,
    ) -> None:
        self._area = area if area is not None else JsonFileArea()
        self._key = key
        self._lock = threading.Lock()
        self._cache: LRUCache[str, Track] = LRUCache(maxsize=max(1, cache_size))

    def _read_records(self) -> List[Dict[str, Any]]:
        try:
            records = self._area.get(self._key)
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise StoreUnavailableError(f"Failed reading tracks: {exc}") from exc
        if records is None:
            return []
        if not isinstance(records, list):
            raise StoreUnavailableError(
                f"Entry {self._key!r} does not hold a list of tracks"
            )
        return records

    def _decode(self, record: Dict[str, Any]) -> Track:
        track_id = str(record.get("id"))
        cached = self._cache.get(track_id)
        if cached is not None:
            return cached
        try:
            track = Track.from_record(record)
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreUnavailableError(
                f"Stored track {track_id!r} is malformed: {exc}"
            ) from exc
        self._cache[track.id] = track
        return track

    def save(self, track: Track) -> Track:
        """Append a frozen snapshot of ``track`` and return it."""

        snapshot = track.freeze()
        with self._lock:
            records = self._read_records()
            if any(str(item.get("id")) == snapshot.id for item in records):
                raise DuplicateTrackError(f"Track {snapshot.id} already stored")
            records.append(snapshot.to_record())
            try:
                self._area.set(self._key, records)
            except StoreUnavailableError:
                raise
            except Exception as exc:
                raise StoreUnavailableError(f"Failed writing tracks: {exc}") from exc
            self._cache[snapshot.id] = snapshot
        _LOGGER.info(
            "Saved track id=%s points=%d distance_km=%.3f",
            snapshot.id,
            len(snapshot.samples),
            snapshot.total_distance_km,
        )
        return snapshot

    def list(self) -> List[Track]:
        """Return every stored track in insertion order."""

        with self._lock:
            records = self._read_records()
        return [self._decode(record) for record in records]

    def load(self, track_id: str) -> Track:
        cached = self._cache.get(track_id)
        if cached is not None:
            return cached
        with self._lock:
            records = self._read_records()
        for record in records:
            if str(record.get("id")) == track_id:
                return self._decode(record)
        raise TrackNotFoundError(f"No stored track with id {track_id}")

    def __contains__(self, track_id: object) -> bool:
        try:
            self.load(str(track_id))
        except TrackNotFoundError:
            return False
        return True


__all__ = ["KeyValueArea", "MemoryArea", "JsonFileArea", "TrackStore"]
