# fields.py
# Purpose: Cell-level parsers for schedule values (dates, principal, coupon rate, series, CUSIP).
# Each parser returns a FieldResult and never raises, so one bad cell only fails its own row.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from core.data_utils import excel_serial_to_datetime, is_blank_cell

from ..principal_words import MAX_AMOUNT

logger = logging.getLogger(__name__)

# Explicit formats tried before falling back to pandas' parser
DATE_FORMATS: List[str] = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d-%b-%Y",
]

_NUMERIC_TEXT = re.compile(r"^-?\d+(\.\d+)?$")
_CUSIP_PATTERN = re.compile(r"^[A-Z0-9]{9}$")


@dataclass
class FieldResult:
    value: Any = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def _fail(message: str) -> FieldResult:
    return FieldResult(value=None, error=message)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating, Decimal)) and not isinstance(
        value, (bool, np.bool_)
    )


def _date_from_number(number: float) -> FieldResult:
    if float(number).is_integer() and 1900 <= number <= 2100:
        return _fail(f"date is a year only ({int(number)}), a full date is required")
    try:
        return FieldResult(value=excel_serial_to_datetime(float(number)).date())
    except (ValueError, OverflowError) as e:
        return _fail(f"unparseable date \"{number}\" ({e})")


def parse_date(value: Any) -> FieldResult:
    """
    Parses a schedule date cell into a datetime.date.

    Accepts native date/datetime/Timestamp cells, Excel serial numbers and
    common US/ISO text layouts. Bare years and placeholder text such as
    "June 1, 20__" are rejected.
    """
    if is_blank_cell(value):
        return _fail("date is empty")
    if isinstance(value, pd.Timestamp):
        return FieldResult(value=value.date())
    if isinstance(value, datetime):
        return FieldResult(value=value.date())
    if isinstance(value, date):
        return FieldResult(value=value)
    if _is_number(value):
        return _date_from_number(float(value))
    if not isinstance(value, str):
        return _fail(f"unexpected date type {type(value).__name__}")

    text = value.strip()
    if "_" in text:
        return _fail(f"date contains placeholders \"{text}\"")
    if _NUMERIC_TEXT.match(text):
        return _date_from_number(float(text))
    for fmt in DATE_FORMATS:
        try:
            return FieldResult(value=datetime.strptime(text, fmt).date())
        except ValueError:
            continue
    try:
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        parsed = None
    if parsed is None or pd.isna(parsed):
        return _fail(f"unparseable date \"{text}\"")
    logger.debug(f"parse_date: '{text}' parsed by pandas fallback as {parsed.date()}")
    return FieldResult(value=parsed.date())


def parse_principal(value: Any) -> FieldResult:
    """Parses a principal amount into a positive whole number of dollars."""
    if is_blank_cell(value):
        return _fail("principal amount is empty")
    warnings: List[str] = []
    if _is_number(value):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return _fail(f"principal amount is not a number \"{value}\"")
    elif isinstance(value, str):
        text = value.strip()
        cleaned = re.sub(r"[$,\s]", "", text)
        if "_" in cleaned:
            return _fail(f"principal amount contains placeholders \"{text}\"")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return _fail(f"principal amount is not a number \"{text}\"")
        if "." in cleaned:
            warnings.append("principal amount had a decimal point but was a whole number")
    else:
        return _fail(f"unexpected principal amount type {type(value).__name__}")

    if not amount.is_finite():
        return _fail(f"principal amount is not a number \"{value}\"")
    if amount != amount.to_integral_value():
        return _fail("principal amount is not a whole number")
    if amount <= 0:
        return _fail(f"principal amount must be greater than zero (got {value})")
    if amount > MAX_AMOUNT:
        return _fail(f"principal amount exceeds the largest supported value ({MAX_AMOUNT:,})")
    return FieldResult(value=int(amount), warnings=warnings)


def parse_rate(value: Any) -> FieldResult:
    """
    Parses a coupon rate expressed in percent ("4.25", "4.25%", 4.25).

    The Decimal is built from the cell's text form so binary float noise never
    reaches the certificate.
    """
    if is_blank_cell(value):
        return _fail("coupon rate is empty")
    if _is_number(value):
        text = str(value)
        if isinstance(value, (float, np.floating)) and float(value).is_integer():
            text = str(int(value))
    elif isinstance(value, str):
        text = value.strip().replace("%", "").strip()
        if "_" in text:
            return _fail(f"coupon rate contains placeholders \"{value.strip()}\"")
    else:
        return _fail(f"unexpected coupon rate type {type(value).__name__}")

    try:
        rate = Decimal(text)
    except InvalidOperation:
        return _fail(f"coupon rate is not a number \"{value}\"")
    if not rate.is_finite():
        return _fail(f"coupon rate is not a number \"{value}\"")
    if rate < 0:
        return _fail(f"coupon rate cannot be negative (got {value})")
    warnings: List[str] = []
    if rate > 100:
        warnings.append(f"coupon rate is very high ({rate}%)")
    return FieldResult(value=rate, warnings=warnings)


def parse_series(value: Any) -> FieldResult:
    """Trimmed series label, or None for blank cells."""
    if is_blank_cell(value):
        return FieldResult(value=None)
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return FieldResult(value=str(int(value)))
    text = str(value).strip()
    return FieldResult(value=text or None)


def cusip_check_digit(base: str) -> str:
    """Standard modulus-10 "double add double" check digit over the first eight characters."""
    total = 0
    for i, ch in enumerate(base[:8]):
        if ch.isdigit():
            v = int(ch)
        elif ch.isalpha():
            v = ord(ch.upper()) - ord("A") + 10
        elif ch == "*":
            v = 36
        elif ch == "@":
            v = 37
        else:
            v = 38
        if i % 2 == 1:
            v *= 2
        total += v // 10 + v % 10
    return str((10 - total % 10) % 10)


def validate_cusip(value: Any) -> FieldResult:
    """Normalizes a CUSIP (whitespace removed, upper-cased) and checks its shape."""
    if is_blank_cell(value):
        return _fail("CUSIP is empty")
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        value = int(value)
    cusip = re.sub(r"\s+", "", str(value)).upper()
    if not _CUSIP_PATTERN.match(cusip):
        return _fail(f"CUSIP is not 9 alphanumeric characters (\"{cusip}\")")
    warnings: List[str] = []
    expected = cusip_check_digit(cusip)
    if cusip[8] != expected:
        warnings.append(
            f"CUSIP {cusip} check digit {cusip[8]} does not match computed digit {expected}"
        )
    return FieldResult(value=cusip, warnings=warnings)


def _cusip_part(value: Any, width: int) -> str:
    if is_blank_cell(value):
        return ""
    if _is_number(value) and float(value).is_integer():
        # Spreadsheets drop leading zeros from numeric-looking parts
        return str(int(value)).zfill(width)
    return re.sub(r"\s+", "", str(value)).upper()


def assemble_cusip_from_parts(issuer: Any, issue: Any, check: Any) -> FieldResult:
    """Builds a CUSIP from split issuer (6), issue (2) and check digit (1) columns."""
    parts = [
        ("issuer number", _cusip_part(issuer, 6), 6),
        ("issue number", _cusip_part(issue, 2), 2),
        ("check digit", _cusip_part(check, 1), 1),
    ]
    missing = [label for label, text, _ in parts if not text]
    if missing:
        return _fail(f"missing CUSIP parts: {', '.join(missing)}")
    for label, text, width in parts:
        if len(text) != width:
            return _fail(f"CUSIP {label} must be {width} characters (got {len(text)})")
    return validate_cusip("".join(text for _, text, _ in parts))
