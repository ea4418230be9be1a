# maturity.py
# Purpose: Parse a maturity schedule (maturity date, principal, coupon rate, optional dated date
# and series) into validated MaturityRow values plus per-row errors for the rest.

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from core.config import (
    COUPON_RATE_FIELD,
    DATED_DATE_FIELD,
    MATURITY_DATE_FIELD,
    MATURITY_HEADER_KEYWORDS,
    MATURITY_OPTIONAL_FIELDS,
    MATURITY_REQUIRED_FIELDS,
    PRINCIPAL_AMOUNT_FIELD,
    SERIES_FIELD,
)
from core.data_utils import is_blank_cell

from ..models import MaturityRow, ParseSummary, RowError, ScheduleParseResult
from . import table
from .fields import parse_date, parse_principal, parse_rate, parse_series

logger = logging.getLogger(__name__)


def parse_maturity_schedule(content: bytes, filename: Optional[str] = None) -> ScheduleParseResult:
    """
    Parses a maturity schedule upload (xlsx or delimited text).

    Structural problems (unreadable file, no header row, missing required
    columns) raise ScheduleStructureError. Row problems never raise: each bad
    row is reported as a RowError carrying every reason it failed, and blank
    rows are counted as skipped.

    Args:
        content (bytes): Raw upload bytes.
        filename (str, optional): Original filename, used as a format hint and in messages.

    Returns:
        ScheduleParseResult: Valid MaturityRow values in input order plus diagnostics.
    """
    logger.info(f"Maturity schedule parse started ({filename or 'unnamed'}, {len(content or b'')} bytes)")
    grid = table.load_grid(
        content,
        filename,
        MATURITY_HEADER_KEYWORDS,
        "maturity schedule",
        fields=MATURITY_REQUIRED_FIELDS + MATURITY_OPTIONAL_FIELDS,
    )
    mapping, missing = table.resolve_columns(grid, MATURITY_REQUIRED_FIELDS, MATURITY_OPTIONAL_FIELDS)
    if missing:
        logger.error(f"Maturity schedule is missing required columns {missing}; headers: {grid.headers}")
        raise table.missing_columns_error(
            "maturity schedule",
            grid,
            {
                "missing_columns": missing,
                "hint": "Expected columns: Maturity Date, Principal Amount, Coupon Rate",
            },
        )

    valid_rows: List[MaturityRow] = []
    invalid_rows: List[RowError] = []
    warnings: List[str] = []
    summary = ParseSummary()

    for row_number, cells in table.iter_data_rows(grid):
        if table.is_blank_row(cells) or table.is_section_heading(cells):
            summary.skipped += 1
            continue
        summary.total += 1

        reasons: List[str] = []
        maturity = parse_date(table.cell(cells, mapping, MATURITY_DATE_FIELD))
        if not maturity.ok:
            reasons.append(f"Maturity Date: {maturity.error}")
        principal = parse_principal(table.cell(cells, mapping, PRINCIPAL_AMOUNT_FIELD))
        if not principal.ok:
            reasons.append(f"Principal Amount: {principal.error}")
        rate = parse_rate(table.cell(cells, mapping, COUPON_RATE_FIELD))
        if not rate.ok:
            reasons.append(f"Coupon Rate: {rate.error}")

        dated_value: Optional[date] = None
        if DATED_DATE_FIELD in mapping:
            raw_dated = table.cell(cells, mapping, DATED_DATE_FIELD)
            if not is_blank_cell(raw_dated):
                dated = parse_date(raw_dated)
                if dated.ok:
                    dated_value = dated.value
                else:
                    reasons.append(f"Dated Date: {dated.error}")

        series = parse_series(table.cell(cells, mapping, SERIES_FIELD)).value

        if reasons:
            logger.warning(f"Maturity row {row_number} rejected: {reasons}")
            invalid_rows.append(RowError(row_number, reasons, table.raw_cells(grid, cells)))
            continue

        for w in principal.warnings + rate.warnings:
            warnings.append(f"Row {row_number}: {w}")
        valid_rows.append(
            MaturityRow(
                row_number=row_number,
                maturity_date=maturity.value,
                principal_amount=principal.value,
                coupon_rate=rate.value,
                dated_date=dated_value,
                series=series,
            )
        )

    summary.valid = len(valid_rows)
    summary.invalid = len(invalid_rows)

    dated_date, dated_warnings = _resolve_dated_date(valid_rows, DATED_DATE_FIELD in mapping)
    warnings.extend(dated_warnings)

    rate_pct = round(summary.valid / summary.total * 100) if summary.total else 0
    logger.info(
        f"Maturity schedule parse finished: {summary.valid} valid, {summary.invalid} invalid, "
        f"{summary.skipped} skipped ({rate_pct}% success), dated date {dated_date or 'not found'}"
    )
    return ScheduleParseResult(
        valid_rows=valid_rows,
        invalid_rows=invalid_rows,
        summary=summary,
        warnings=warnings,
        column_mapping=table.mapping_headers(grid, mapping),
        header_row_index=grid.header_row_index,
        dated_date=dated_date,
    )


def _resolve_dated_date(rows: List[MaturityRow], has_column: bool) -> Tuple[Optional[date], List[str]]:
    """The schedule-level dated date is the first row's value; disagreement is only a warning."""
    if not has_column:
        return None, ["Dated date column not found; supply the dated date as run metadata"]
    with_dates = [r for r in rows if r.dated_date is not None]
    if not with_dates:
        return None, ["Dated date column is present but holds no usable value"]
    chosen = with_dates[0].dated_date
    distinct: Dict[date, int] = {}
    for r in with_dates:
        distinct.setdefault(r.dated_date, r.row_number)
    warnings: List[str] = []
    if len(distinct) > 1:
        listed = ", ".join(d.isoformat() for d in sorted(distinct))
        warnings.append(
            f"Rows disagree on the dated date ({listed}); using {chosen.isoformat()} from row {with_dates[0].row_number}"
        )
    return chosen, warnings
