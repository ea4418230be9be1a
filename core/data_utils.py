# Purpose: Utility functions for robust tabular loading and column identification in the Bond Generator.
# This module normalizes uploaded spreadsheets and delimited text into a raw cell DataFrame,
# locates header rows, and maps loosely named columns, with strong error handling and logging.

import io
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Delimiters considered when sniffing delimited text uploads
CANDIDATE_DELIMITERS: List[str] = [",", ";", "\t"]

_XLSX_SUFFIXES = (".xlsx", ".xlsm")
_ZIP_MAGIC = b"PK\x03\x04"


def is_blank_cell(value: Any) -> bool:
    """Return True for None, NaN/NaT and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def detect_delimiter(text: str, sample_lines: int = 5) -> str:
    """
    Picks the delimiter that occurs most often across the first few lines.
    Falls back to a comma when none of the candidates appear.
    """
    lines = text.splitlines()[:sample_lines]
    counts = {
        delim: sum(line.count(delim) for line in lines) for delim in CANDIDATE_DELIMITERS
    }
    best = max(CANDIDATE_DELIMITERS, key=lambda d: counts[d])
    if counts[best] == 0:
        return ","
    return best


def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("Upload is not valid UTF-8, decoding as latin-1")
        return content.decode("latin-1")


def _looks_like_xlsx(content: bytes, filename: Optional[str]) -> bool:
    if filename and filename.lower().endswith(_XLSX_SUFFIXES):
        return True
    return content[:4] == _ZIP_MAGIC


def read_table_robustly(content: bytes, filename: Optional[str] = None) -> Optional[pd.DataFrame]:
    """
    Reads uploaded tabular bytes (xlsx workbook or delimited text) into a raw cell grid.

    The returned DataFrame has no header applied (header=None) so header detection can
    run over the leading rows. Spreadsheet cells keep their native types (datetime, int,
    float, str); delimited text cells are strings. Returns None if the content cannot be
    read as a table, logging the reason for diagnostics.

    Args:
        content (bytes): Raw upload bytes.
        filename (str, optional): Original filename, used only as a format hint.

    Returns:
        Optional[pd.DataFrame]: Raw cell grid, or None on error.
    """
    if not content:
        logger.error(f"read_table_robustly: Empty upload ({filename or 'unnamed'})")
        return None

    label = filename or "unnamed upload"
    if _looks_like_xlsx(content, filename):
        try:
            df = pd.read_excel(
                io.BytesIO(content),
                sheet_name=0,
                header=None,
                dtype=object,
                engine="openpyxl",
            )
            logger.info(f"read_table_robustly: Read workbook {label} with shape {df.shape}")
            return df
        except Exception as e:  # openpyxl raises a wide range of errors on corrupt workbooks
            logger.error(f"Unreadable workbook {label}: {e}", exc_info=True)
            return None

    text = _decode_text(content)
    if not text.strip():
        logger.error(f"read_table_robustly: Upload {label} contains no text")
        return None
    delimiter = detect_delimiter(text)
    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            engine="python",
        )
        logger.info(
            f"read_table_robustly: Read delimited text {label} (delimiter {delimiter!r}) with shape {df.shape}"
        )
        return df
    except pd.errors.EmptyDataError:
        logger.error(f"Empty data: {label}", exc_info=True)
    except pd.errors.ParserError as e:
        logger.error(f"Parser error in {label}: {e}", exc_info=True)
    return None


def normalize_column_name(name: Any) -> str:
    """Lower-cases a header and collapses underscores, line breaks and repeated whitespace."""
    if is_blank_cell(name):
        return ""
    text = str(name).lower()
    text = re.sub(r"[_\r\n]+", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _alias_matches(cells: List[Any], aliases: Dict[str, List[str]], fields: List[str]) -> List[str]:
    """Fields whose normalized alias (or own name) equals one of the row's cells."""
    normalized = {normalize_column_name(c) for c in cells}
    matched = []
    for field in fields:
        candidates = [normalize_column_name(a) for a in aliases.get(field, [])]
        candidates.append(normalize_column_name(field))
        if any(c in normalized for c in candidates):
            matched.append(field)
    return matched


def detect_header_row(
    frame: pd.DataFrame,
    keywords: List[str],
    scan_limit: int = 10,
    aliases: Optional[Dict[str, List[str]]] = None,
    fields: Optional[List[str]] = None,
) -> Optional[int]:
    """
    Finds the header row among the leading rows of a raw cell grid.

    When aliases and fields are given, the first row whose cells name at least two of
    the fields through their alias lists wins. Otherwise a row qualifies when its joined,
    lower-cased text contains at least two of the keywords. Returns the positional row
    index, or None if no row qualifies.
    """
    limit = min(scan_limit, len(frame))
    rows = []
    for idx in range(limit):
        cells = [c for c in frame.iloc[idx].tolist() if not is_blank_cell(c)]
        if cells:
            rows.append((idx, cells))

    if aliases and fields:
        needed = min(2, len(fields))
        for idx, cells in rows:
            matched = _alias_matches(cells, aliases, fields)
            if len(matched) >= needed:
                logger.info(f"detect_header_row: Header found at row {idx} (columns {matched})")
                return idx

    for idx, cells in rows:
        row_text = " ".join(normalize_column_name(c) for c in cells)
        matched = [k for k in keywords if k.lower() in row_text]
        if len(matched) >= 2:
            logger.info(f"detect_header_row: Header found at row {idx} (matched {matched})")
            return idx
    logger.warning(
        f"detect_header_row: No header row with keywords {keywords} in the first {limit} rows"
    )
    return None


def map_columns(
    headers: List[Any],
    aliases: Dict[str, List[str]],
    required: List[str],
    optional: Optional[List[str]] = None,
) -> Tuple[Dict[str, int], List[str]]:
    """
    Maps canonical field names to header positions using alias lists.

    Matching is exact after normalize_column_name on both sides, trying aliases in
    priority order; a header already claimed by an earlier field is not reused.

    Args:
        headers (List[Any]): Raw header cells.
        aliases (Dict[str, List[str]]): Canonical field -> list of accepted synonyms.
        required (List[str]): Fields that must be located.
        optional (List[str], optional): Fields located when present.

    Returns:
        Tuple[Dict[str, int], List[str]]: (field -> column position, missing required fields).
    """
    normalized = [normalize_column_name(h) for h in headers]
    mapping: Dict[str, int] = {}
    claimed = set()
    for field in list(required) + list(optional or []):
        candidates = [normalize_column_name(a) for a in aliases.get(field, [field])]
        candidates.append(normalize_column_name(field))
        for alias in candidates:
            hits = [i for i, h in enumerate(normalized) if h == alias and i not in claimed]
            if hits:
                mapping[field] = hits[0]
                claimed.add(hits[0])
                logger.debug(f"map_columns: {field} -> column {hits[0]} ('{headers[hits[0]]}')")
                break
    missing = [f for f in required if f not in mapping]
    if missing:
        logger.warning(f"map_columns: Required column(s) not found: {missing}. Headers: {headers}")
    return mapping, missing


def excel_serial_to_datetime(serial: float) -> datetime:
    """
    Converts an Excel serial day number (1900 date system) to a datetime.
    Excel incorrectly treats 1900 as a leap year, so serials after Feb 28, 1900 shift by a day.
    """
    serial_number = float(serial)
    if not np.isfinite(serial_number) or serial_number < 1:
        raise ValueError(f"Not a valid Excel serial date: {serial}")
    if serial_number >= 60:
        serial_number -= 1
    excel_epoch = datetime(1900, 1, 1)
    return excel_epoch + timedelta(days=serial_number - 1)
