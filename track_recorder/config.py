"""Central configuration for the track recorder.

All values are constants imported by the rest of the package. Every value can
be overridden through environment variables (optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Sample filter
# ---------------------------------------------------------------------------
# Minimum movement (km) between admitted samples. Smaller moves are jitter.
FILTER_MIN_DISTANCE_KM = _env_float("FILTER_MIN_DISTANCE_KM", 0.005)

# Fixes whose reported accuracy radius (metres) exceeds this are rejected.
FILTER_MAX_ACCURACY_M = _env_float("FILTER_MAX_ACCURACY_M", 50.0)

# Window used by the post-processing smoother.
SMOOTHING_WINDOW = _env_int("SMOOTHING_WINDOW", 3)


# ---------------------------------------------------------------------------
# Track store
# ---------------------------------------------------------------------------
# JSON file backing the persisted key/value area. Relative paths resolve
# against the working directory.
TRACK_STORE_PATH = os.getenv("TRACK_STORE_PATH", "track_store.json")

# Entry inside the area holding the array of committed tracks.
TRACK_STORE_KEY = os.getenv("TRACK_STORE_KEY", "gps-routes")

# Number of decoded tracks kept in memory by the store.
TRACK_CACHE_SIZE = _env_int("TRACK_CACHE_SIZE", 64)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------
EXPORT_FILE_PREFIX = os.getenv("EXPORT_FILE_PREFIX", "gps-route")
EXPORT_OUTPUT_DIR = os.getenv("EXPORT_OUTPUT_DIR", "exports")

# Pretty-print GeoJSON output so exports stay diff-friendly.
EXPORT_GEOJSON_INDENT = _env_int("EXPORT_GEOJSON_INDENT", 2)

# Apply the moving-average smoother before exporting by default.
EXPORT_SMOOTH_BY_DEFAULT = _env_bool("EXPORT_SMOOTH_BY_DEFAULT", False)


# ---------------------------------------------------------------------------
# History report
# ---------------------------------------------------------------------------
HISTORY_COLUMN_ORDER = [
    "ID",
    "Name",
    "Started",
    "Duration",
    "Points",
    "Distance (km)",
    "Avg Speed (km/h)",
]

# Automatically size columns when writing the xlsx report.
EXCEL_AUTOSIZE_COLUMNS = True
EXCEL_AUTOSIZE_MAX_WIDTH = 50  # characters
EXCEL_AUTOSIZE_MIN_WIDTH = 6  # characters
EXCEL_AUTOSIZE_PADDING = 2  # extra characters added to the detected max
