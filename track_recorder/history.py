"""Tabular summaries of stored tracks (console table and xlsx report)."""

from __future__ import annotations

import logging
from os import PathLike
from pathlib import Path
from typing import Sequence

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from .config import (
    EXCEL_AUTOSIZE_COLUMNS,
    EXCEL_AUTOSIZE_MAX_WIDTH,
    EXCEL_AUTOSIZE_MIN_WIDTH,
    EXCEL_AUTOSIZE_PADDING,
    HISTORY_COLUMN_ORDER,
)
from .models import Track
from .utils import format_duration, ms_to_datetime

HISTORY_SHEET = "Route History"
EXCEL_DATETIME_FORMAT = "yyyy-mm-dd hh:mm:ss"

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(patternType="solid", fgColor="FFDDEBF7")
HEADER_BORDER = Border(
    left=Side(style="thin", color="000000"),
    right=Side(style="thin", color="000000"),
    top=Side(style="thin", color="000000"),
    bottom=Side(style="thin", color="000000"),
)

PathInput = str | Path | PathLike[str]

LOGGER = logging.getLogger(__name__)


def build_history_frame(tracks: Sequence[Track]) -> pd.DataFrame:
    """One row per stored track, in store order."""

    rows = [
        {
            "ID": track.id,
            "Name": track.name,
            # Naive UTC so the xlsx writer accepts the values.
            "Started": ms_to_datetime(track.started_at_ms).replace(tzinfo=None),
            "Duration": format_duration(track.started_at_ms, track.ended_at_ms),
            "Points": len(track.samples),
            "Distance (km)": round(track.total_distance_km, 2),
            "Avg Speed (km/h)": round(track.average_speed_kmh, 1),
        }
        for track in tracks
    ]
    return pd.DataFrame(rows, columns=HISTORY_COLUMN_ORDER)


def _autosize(ws: Worksheet) -> None:
    if not EXCEL_AUTOSIZE_COLUMNS:
        return
    for col_cells in ws.columns:
        col_letter = getattr(col_cells[0], "column_letter", None)
        if not col_letter:
            continue
        max_len = max(
            (len(str(cell.value)) for cell in col_cells if cell.value is not None),
            default=0,
        )
        ws.column_dimensions[col_letter].width = min(
            EXCEL_AUTOSIZE_MAX_WIDTH,
            max(EXCEL_AUTOSIZE_MIN_WIDTH, max_len + EXCEL_AUTOSIZE_PADDING),
        )


def _style_header_row(ws: Worksheet, max_col: int) -> None:
    for col_idx in range(1, max_col + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER


def write_history(filepath: PathInput, tracks: Sequence[Track]) -> Path:
    """Write the history table to an xlsx workbook and return its path."""

    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = build_history_frame(tracks)
    with pd.ExcelWriter(
        path, engine="openpyxl", datetime_format=EXCEL_DATETIME_FORMAT
    ) as writer:
        if df.empty:
            df = pd.DataFrame({"Message": ["No saved routes yet."]})
        df.to_excel(writer, sheet_name=HISTORY_SHEET, index=False)
        ws = writer.sheets[HISTORY_SHEET]
        _style_header_row(ws, len(df.columns))
        _autosize(ws)
    LOGGER.info("Wrote route history rows=%d to %s", len(tracks), path)
    return path


__all__ = ["build_history_frame", "write_history"]
