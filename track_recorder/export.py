"""GPX and GeoJSON encoders for recorded tracks.

The encoders are pure: they turn a track into bytes and leave writing the
payload somewhere to the caller. Readers for both formats are provided so
exported files can be replayed through the recorder.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from defusedxml.ElementTree import fromstring as safe_fromstring

from .config import EXPORT_FILE_PREFIX, EXPORT_GEOJSON_INDENT
from .errors import EmptyTrackError
from .models import Sample, Track
from .utils import datetime_to_ms, iso_utc, parse_iso8601

GPX_NS = {"g": "http://www.topografix.com/GPX/1/1"}
GPX_CREATOR = "track_recorder"

GPX_MIME_TYPE = "application/gpx+xml"
GEOJSON_MIME_TYPE = "application/geo+json"

FORMATS: Dict[str, tuple[str, str]] = {
    "gpx": ("gpx", GPX_MIME_TYPE),
    "geojson": ("geojson", GEOJSON_MIME_TYPE),
}


@dataclass(frozen=True, slots=True)
class ExportPayload:
    filename: str
    mime_type: str
    content: bytes


def _export_time(exported_at: Optional[datetime]) -> datetime:
    if exported_at is None:
        return datetime.now(timezone.utc)
    if exported_at.tzinfo is None:
        return exported_at.replace(tzinfo=timezone.utc)
    return exported_at.astimezone(timezone.utc)


def encode_gpx(track: Track, exported_at: Optional[datetime] = None) -> bytes:
    """Serialise a track as a GPX 1.1 document with one track segment."""

    stamp = _export_time(exported_at)
    gpx = ET.Element(
        "gpx",
        {
            "version": "1.1",
            "creator": GPX_CREATOR,
            "xmlns": GPX_NS["g"],
        },
    )
    metadata = ET.SubElement(gpx, "metadata")
    ET.SubElement(metadata, "name").text = track.name
    ET.SubElement(metadata, "time").text = iso_utc(stamp)

    trk = ET.SubElement(gpx, "trk")
    ET.SubElement(trk, "name").text = track.name
    trkseg = ET.SubElement(trk, "trkseg")
    for sample in track.samples:
        # repr() keeps the shortest string that round-trips the float.
        trkpt = ET.SubElement(
            trkseg,
            "trkpt",
            {"lat": repr(float(sample.latitude)), "lon": repr(float(sample.longitude))},
        )
        ET.SubElement(trkpt, "time").text = iso_utc(sample.captured_at_ms)

    ET.indent(gpx, space="  ")
    body = ET.tostring(gpx, encoding="unicode")
    return ('<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n").encode("utf-8")


def encode_geojson(track: Track, exported_at: Optional[datetime] = None) -> bytes:
    """Serialise a track as a FeatureCollection holding one LineString."""

    stamp = iso_utc(_export_time(exported_at))
    document = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {
                    "type": "LineString",
                    "coordinates": [
                        [sample.longitude, sample.latitude] for sample in track.samples
                    ],
                },
                "properties": {
                    "name": track.name,
                    "time": stamp,
                    "points": len(track.samples),
                    "timestamps": [
                        iso_utc(sample.captured_at_ms) for sample in track.samples
                    ],
                },
            }
        ],
    }
    return json.dumps(document, indent=EXPORT_GEOJSON_INDENT).encode("utf-8")


_ENCODERS = {"gpx": encode_gpx, "geojson": encode_geojson}


def export_filename(
    prefix: str, fmt: str, exported_at: Optional[datetime] = None
) -> str:
    extension, _ = _lookup_format(fmt)
    stamp = _export_time(exported_at)
    return f"{prefix}-{stamp:%Y-%m-%d}.{extension}"


def export_track(
    track: Track,
    fmt: str,
    *,
    prefix: str = EXPORT_FILE_PREFIX,
    exported_at: Optional[datetime] = None,
) -> ExportPayload:
    """Encode ``track`` as ``fmt`` ("gpx" or "geojson").

    Raises:
        EmptyTrackError: If the track has no samples.
        ValueError: If the format is unknown.
    """

    _, mime_type = _lookup_format(fmt)
    if not track.samples:
        raise EmptyTrackError(f"Track {track.id} has no route data to export")
    stamp = _export_time(exported_at)
    content = _ENCODERS[fmt.lower()](track, stamp)
    return ExportPayload(
        filename=export_filename(prefix, fmt, stamp),
        mime_type=mime_type,
        content=content,
    )


def _lookup_format(fmt: str) -> tuple[str, str]:
    try:
        return FORMATS[fmt.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported export format: {fmt}") from exc


def read_gpx(data: bytes | str) -> List[Sample]:
    """Return the track points of a GPX document as samples.

    Points without a ``<time>`` are skipped.
    """

    root = safe_fromstring(data)
    points = root.findall(".//g:trkseg/g:trkpt", GPX_NS)
    if not points:
        # Tolerate documents written without the GPX namespace.
        points = root.findall(".//trkseg/trkpt")
    samples: List[Sample] = []
    for point in points:
        time_el = point.find("g:time", GPX_NS)
        if time_el is None:
            time_el = point.find("time")
        if time_el is None or not (time_el.text or "").strip():
            continue
        samples.append(
            Sample(
                latitude=float(point.attrib["lat"]),
                longitude=float(point.attrib["lon"]),
                captured_at_ms=datetime_to_ms(parse_iso8601(time_el.text.strip())),
            )
        )
    return samples


def read_geojson(data: bytes | str) -> List[Sample]:
    """Return the LineString coordinates of the first feature as samples."""

    document: Dict[str, Any] = json.loads(data)
    features = document.get("features") or []
    if not features:
        return []
    feature = features[0]
    coordinates = (feature.get("geometry") or {}).get("coordinates") or []
    timestamps = (feature.get("properties") or {}).get("timestamps") or []
    if len(timestamps) != len(coordinates):
        raise ValueError("GeoJSON timestamps do not match coordinate count")
    return [
        Sample(
            latitude=float(lat),
            longitude=float(lon),
            captured_at_ms=datetime_to_ms(parse_iso8601(stamp)),
        )
        for (lon, lat, *_), stamp in zip(coordinates, timestamps)
    ]


__all__ = [
    "GPX_MIME_TYPE",
    "GEOJSON_MIME_TYPE",
    "ExportPayload",
    "encode_gpx",
    "encode_geojson",
    "export_filename",
    "export_track",
    "read_gpx",
    "read_geojson",
]
