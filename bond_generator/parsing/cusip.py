# cusip.py
# Purpose: Parse a CUSIP schedule into validated CusipRow values. Accepts either a single
# CUSIP column or the split Issuer (6) + Issue (2) + Check Digit (1) layout.

from __future__ import annotations

import logging
from typing import List, Optional

from core.config import (
    CUSIP_CHECK_FIELD,
    CUSIP_FIELD,
    CUSIP_HEADER_KEYWORDS,
    CUSIP_ISSUE_FIELD,
    CUSIP_ISSUER_FIELD,
    CUSIP_OPTIONAL_FIELDS,
    CUSIP_REQUIRED_FIELDS,
    CUSIP_SPLIT_REQUIRED_FIELDS,
    MATURITY_DATE_FIELD,
    SERIES_FIELD,
)

from ..models import CusipRow, ParseSummary, RowError, ScheduleParseResult
from . import table
from .fields import assemble_cusip_from_parts, parse_date, parse_series, validate_cusip

logger = logging.getLogger(__name__)


def parse_cusip_schedule(content: bytes, filename: Optional[str] = None) -> ScheduleParseResult:
    """
    Parses a CUSIP schedule upload (xlsx or delimited text).

    The single-column layout wins when both layouts could be mapped. Structural
    problems raise ScheduleStructureError; bad rows become RowError entries.
    """
    logger.info(f"CUSIP schedule parse started ({filename or 'unnamed'}, {len(content or b'')} bytes)")
    grid = table.load_grid(
        content,
        filename,
        CUSIP_HEADER_KEYWORDS,
        "CUSIP schedule",
        fields=list(dict.fromkeys(CUSIP_REQUIRED_FIELDS + CUSIP_SPLIT_REQUIRED_FIELDS + CUSIP_OPTIONAL_FIELDS)),
    )

    mapping, single_missing = table.resolve_columns(grid, CUSIP_REQUIRED_FIELDS, CUSIP_OPTIONAL_FIELDS)
    split = False
    if single_missing:
        split_mapping, split_missing = table.resolve_columns(
            grid, CUSIP_SPLIT_REQUIRED_FIELDS, CUSIP_OPTIONAL_FIELDS
        )
        if split_missing:
            logger.error(
                f"CUSIP schedule matches neither layout (single missing {single_missing}, "
                f"split missing {split_missing}); headers: {grid.headers}"
            )
            raise table.missing_columns_error(
                "CUSIP schedule",
                grid,
                {
                    "single_column_format": {
                        "missing": single_missing,
                        "hint": "Need: CUSIP, Maturity Date",
                    },
                    "split_column_format": {
                        "missing": split_missing,
                        "hint": "Need: Issuer Number, Issue Number, Check Digit, Maturity Date",
                    },
                },
            )
        mapping, split = split_mapping, True
    logger.info(f"CUSIP schedule uses the {'split' if split else 'single'}-column layout: {mapping}")

    valid_rows: List[CusipRow] = []
    invalid_rows: List[RowError] = []
    warnings: List[str] = []
    summary = ParseSummary()

    for row_number, cells in table.iter_data_rows(grid):
        if table.is_blank_row(cells) or table.is_section_heading(cells):
            summary.skipped += 1
            continue
        summary.total += 1

        reasons: List[str] = []
        if split:
            cusip = assemble_cusip_from_parts(
                table.cell(cells, mapping, CUSIP_ISSUER_FIELD),
                table.cell(cells, mapping, CUSIP_ISSUE_FIELD),
                table.cell(cells, mapping, CUSIP_CHECK_FIELD),
            )
        else:
            cusip = validate_cusip(table.cell(cells, mapping, CUSIP_FIELD))
        if not cusip.ok:
            reasons.append(f"CUSIP: {cusip.error}")
        maturity = parse_date(table.cell(cells, mapping, MATURITY_DATE_FIELD))
        if not maturity.ok:
            reasons.append(f"Maturity Date: {maturity.error}")
        series = parse_series(table.cell(cells, mapping, SERIES_FIELD)).value

        if reasons:
            logger.warning(f"CUSIP row {row_number} rejected: {reasons}")
            invalid_rows.append(RowError(row_number, reasons, table.raw_cells(grid, cells)))
            continue

        for w in cusip.warnings:
            warnings.append(f"Row {row_number}: {w}")
        valid_rows.append(
            CusipRow(
                row_number=row_number,
                cusip=cusip.value,
                maturity_date=maturity.value,
                series=series,
            )
        )

    summary.valid = len(valid_rows)
    summary.invalid = len(invalid_rows)
    logger.info(
        f"CUSIP schedule parse finished: {summary.valid} valid, {summary.invalid} invalid, "
        f"{summary.skipped} skipped"
    )
    return ScheduleParseResult(
        valid_rows=valid_rows,
        invalid_rows=invalid_rows,
        summary=summary,
        warnings=warnings,
        column_mapping=table.mapping_headers(grid, mapping),
        header_row_index=grid.header_row_index,
        split_cusip_columns=split,
    )
