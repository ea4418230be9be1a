# table.py
# Purpose: Shared front half of both schedule parsers: read the upload, find the header
# row, map columns and iterate the data rows with their spreadsheet row numbers.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from core.config import HEADER_SCAN_LIMIT
from core.data_utils import detect_header_row, is_blank_cell, map_columns, read_table_robustly
from core.settings_loader import get_column_aliases

from ..errors import ScheduleStructureError

logger = logging.getLogger(__name__)


@dataclass
class ScheduleGrid:
    frame: pd.DataFrame
    header_row_index: int
    headers: List[str]


def load_grid(
    content: bytes,
    filename: Optional[str],
    keywords: List[str],
    label: str,
    fields: Optional[List[str]] = None,
) -> ScheduleGrid:
    """
    Reads an upload and locates its header row.

    The header is the first leading row naming two of `fields` through the column
    aliases, falling back to the keyword scan when none does.

    Raises:
        ScheduleStructureError: unreadable input, fewer than two rows or no header row.
    """
    frame = read_table_robustly(content, filename)
    if frame is None:
        raise ScheduleStructureError(
            f"Could not read the {label} file",
            details={"filename": filename},
        )
    frame = frame.dropna(axis=1, how="all") if len(frame.columns) else frame
    frame = frame.reset_index(drop=True)
    if len(frame) < 2:
        raise ScheduleStructureError(
            f"The {label} file has no data rows (need a header row and at least one data row)",
            details={"filename": filename, "rows": int(len(frame))},
        )

    header_idx = detect_header_row(
        frame, keywords, scan_limit=HEADER_SCAN_LIMIT, aliases=get_column_aliases(), fields=fields
    )
    if header_idx is None:
        sample = [
            str(frame.iloc[i, 0])[:50] if not is_blank_cell(frame.iloc[i, 0]) else "(empty)"
            for i in range(min(HEADER_SCAN_LIMIT, len(frame)))
        ]
        raise ScheduleStructureError(
            f"Could not find the header row in the {label} file",
            details={"filename": filename, "keywords": keywords, "sample_rows": sample},
        )
    headers = ["" if is_blank_cell(c) else str(c).strip() for c in frame.iloc[header_idx].tolist()]
    return ScheduleGrid(frame=frame, header_row_index=header_idx, headers=headers)


def resolve_columns(
    grid: ScheduleGrid, required: List[str], optional: List[str]
) -> Tuple[Dict[str, int], List[str]]:
    return map_columns(grid.headers, get_column_aliases(), required, optional)


def missing_columns_error(label: str, grid: ScheduleGrid, details: Dict[str, Any]) -> ScheduleStructureError:
    payload = {"available_columns": [h for h in grid.headers if h]}
    payload.update(details)
    return ScheduleStructureError(f"Missing required columns in the {label} file", details=payload)


def iter_data_rows(grid: ScheduleGrid) -> Iterator[Tuple[int, List[Any]]]:
    """Yields (1-based spreadsheet row number, cells) for every row below the header."""
    for idx in range(grid.header_row_index + 1, len(grid.frame)):
        yield idx + 1, grid.frame.iloc[idx].tolist()


def is_blank_row(cells: List[Any]) -> bool:
    return all(is_blank_cell(c) for c in cells)


def is_section_heading(cells: List[Any]) -> bool:
    """A lone text cell ending in ':' (e.g. "Serial Bonds:") labels a block of rows."""
    filled = [c for c in cells if not is_blank_cell(c)]
    return len(filled) == 1 and isinstance(filled[0], str) and filled[0].strip().endswith(":")


def raw_cells(grid: ScheduleGrid, cells: List[Any]) -> Dict[str, Any]:
    raw: Dict[str, Any] = {}
    for pos, cell in enumerate(cells):
        header = grid.headers[pos] if pos < len(grid.headers) and grid.headers[pos] else f"column_{pos + 1}"
        raw[header] = None if is_blank_cell(cell) else cell
    return raw


def cell(cells: List[Any], mapping: Dict[str, int], field: str) -> Any:
    pos = mapping.get(field)
    if pos is None or pos >= len(cells):
        return None
    return cells[pos]


def mapping_headers(grid: ScheduleGrid, mapping: Dict[str, int]) -> Dict[str, str]:
    return {f: grid.headers[pos] for f, pos in mapping.items()}
