"""Command line entry point for browsing, exporting and replaying tracks.

Usage examples:

    # List saved routes
    python -m track_recorder list

    # Export a saved route as GeoJSON into ./exports
    python -m track_recorder export 3f2c... --format geojson

    # Record a GPX file through the live filter and save it as a new route
    python -m track_recorder replay ride.gpx --name "Morning ride"
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Sequence

from .config import (
    EXPORT_FILE_PREFIX,
    EXPORT_OUTPUT_DIR,
    EXPORT_SMOOTH_BY_DEFAULT,
    SMOOTHING_WINDOW,
    TRACK_STORE_PATH,
)
from .errors import EmptyTrackError, StoreUnavailableError, TrackNotFoundError
from .export import export_track, read_geojson, read_gpx
from .filtering import smooth
from .geometry import bearing_degrees, cardinal
from .history import build_history_frame, write_history
from .models import Sample, Track
from .recorder import LocationFeed, RecorderConfig, TrackRecorder
from .store import JsonFileArea, TrackStore
from .utils import format_duration, iso_utc

LOGGER = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )
    else:
        logging.getLogger().setLevel(getattr(logging, level))


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _open_store(path: str) -> TrackStore:
    return TrackStore(JsonFileArea(path))


def _cmd_list(store: TrackStore, _: argparse.Namespace) -> int:
    tracks = store.list()
    if not tracks:
        print("No saved routes yet")
        return 0
    print(build_history_frame(tracks).to_string(index=False))
    return 0


def _describe(track: Track) -> List[str]:
    lines = [
        f"ID:        {track.id}",
        f"Name:      {track.name}",
        f"Started:   {iso_utc(track.started_at_ms)}",
        f"Duration:  {format_duration(track.started_at_ms, track.ended_at_ms)}",
        f"Points:    {len(track.samples)}",
        f"Distance:  {track.total_distance_km:.2f} km",
        f"Avg speed: {track.average_speed_kmh:.1f} km/h",
    ]
    if len(track.samples) >= 2:
        heading = bearing_degrees(track.samples[-2], track.samples[-1])
        lines.append(f"Heading:   {heading:.0f}° {cardinal(heading)}")
    return lines


def _cmd_show(store: TrackStore, args: argparse.Namespace) -> int:
    track = store.load(args.track_id)
    print("\n".join(_describe(track)))
    return 0


def _cmd_export(store: TrackStore, args: argparse.Namespace) -> int:
    track = store.load(args.track_id)
    if args.smooth:
        # Smoothed copy for export only; the stored track is untouched.
        track = Track(
            id=track.id,
            name=track.name,
            started_at_ms=track.started_at_ms,
            samples=tuple(smooth(track.samples, args.window)),
            ended_at_ms=track.ended_at_ms,
            total_distance_km=track.total_distance_km,
            average_speed_kmh=track.average_speed_kmh,
        )
    payload = export_track(track, args.format, prefix=args.prefix)
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / payload.filename
    output_path.write_bytes(payload.content)
    LOGGER.info(
        "Exported route %s (%d points, %s) to %s",
        track.id,
        len(track.samples),
        payload.mime_type,
        output_path,
    )
    return 0


def _load_samples(path: Path) -> List[Sample]:
    data = path.read_bytes()
    if path.suffix.lower() in {".geojson", ".json"}:
        return read_geojson(data)
    return read_gpx(data)


def replay_samples(
    store: TrackStore, samples: Sequence[Sample], name: str | None = None
) -> Track | None:
    """Push captured samples through a fresh recorder and commit the result.

    The recorder clock follows the capture times so metrics match a live run.
    """

    if not samples:
        return None
    clock_ms = [samples[0].captured_at_ms]
    feed = LocationFeed()
    recorder = TrackRecorder(
        store, source=feed, config=RecorderConfig(clock=lambda: clock_ms[0])
    )
    recorder.start(name)
    try:
        for sample in samples:
            clock_ms[0] = sample.captured_at_ms
            feed.push(sample)
        return recorder.stop()
    finally:
        recorder.close()


def _cmd_replay(store: TrackStore, args: argparse.Namespace) -> int:
    samples = _load_samples(Path(args.path))
    LOGGER.info("Replaying %d samples from %s", len(samples), args.path)
    track = replay_samples(store, samples, args.name)
    if track is None:
        LOGGER.warning("No samples admitted from %s; nothing saved", args.path)
        return 1
    print(track.id)
    return 0


def _cmd_history(store: TrackStore, args: argparse.Namespace) -> int:
    write_history(args.xlsx, store.list())
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse, export and replay recorded GPS routes"
    )
    parser.add_argument(
        "--store",
        default=TRACK_STORE_PATH,
        help="Path of the JSON track store (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Python logging level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List saved routes").set_defaults(handler=_cmd_list)

    show = sub.add_parser("show", help="Show a saved route")
    show.add_argument("track_id")
    show.set_defaults(handler=_cmd_show)

    export = sub.add_parser("export", help="Export a saved route")
    export.add_argument("track_id")
    export.add_argument("--format", choices=["gpx", "geojson"], default="gpx")
    export.add_argument("--output-dir", default=EXPORT_OUTPUT_DIR)
    export.add_argument("--prefix", default=EXPORT_FILE_PREFIX)
    export.add_argument(
        "--smooth",
        action=argparse.BooleanOptionalAction,
        default=EXPORT_SMOOTH_BY_DEFAULT,
        help="Apply a moving-average smoother before encoding",
    )
    export.add_argument("--window", type=_positive_int, default=SMOOTHING_WINDOW)
    export.set_defaults(handler=_cmd_export)

    replay = sub.add_parser(
        "replay", help="Record a GPX/GeoJSON file as a new saved route"
    )
    replay.add_argument("path")
    replay.add_argument("--name")
    replay.set_defaults(handler=_cmd_replay)

    history = sub.add_parser("history", help="Write the route history workbook")
    history.add_argument("--xlsx", default="route_history.xlsx")
    history.set_defaults(handler=_cmd_history)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.log_level)
    store = _open_store(args.store)
    try:
        return args.handler(store, args)
    except TrackNotFoundError as exc:
        LOGGER.error("%s", exc)
    except EmptyTrackError as exc:
        LOGGER.error("No route data: %s", exc)
    except StoreUnavailableError as exc:
        LOGGER.error("Track store unavailable: %s", exc)
    return 1
