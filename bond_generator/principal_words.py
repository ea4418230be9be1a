# principal_words.py
# Purpose: Convert whole-dollar principal amounts to the words printed on a certificate,
# e.g. 125000 -> "One Hundred Twenty-Five Thousand Dollars".

from __future__ import annotations

import logging
from typing import List

import numpy as np

from .errors import InvalidAmount

logger = logging.getLogger(__name__)

MAX_AMOUNT = 999_999_999_999_999

ONES = [
    "",
    "One",
    "Two",
    "Three",
    "Four",
    "Five",
    "Six",
    "Seven",
    "Eight",
    "Nine",
    "Ten",
    "Eleven",
    "Twelve",
    "Thirteen",
    "Fourteen",
    "Fifteen",
    "Sixteen",
    "Seventeen",
    "Eighteen",
    "Nineteen",
]

TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

SCALES = ["", "Thousand", "Million", "Billion", "Trillion"]


def _hundreds(num: int) -> str:
    """Words for 1..999 (empty for 0)."""
    parts: List[str] = []
    hundreds, remainder = divmod(num, 100)
    if hundreds:
        parts.append(f"{ONES[hundreds]} Hundred")
    if remainder >= 20:
        tens, ones = divmod(remainder, 10)
        parts.append(f"{TENS[tens]}-{ONES[ones]}" if ones else TENS[tens])
    elif remainder:
        parts.append(ONES[remainder])
    return " ".join(parts)


def _validate(amount) -> int:
    if isinstance(amount, (bool, np.bool_)) or not isinstance(amount, (int, np.integer)):
        logger.error(f"Principal amount {amount!r} is not a whole number")
        raise InvalidAmount(
            "Principal amount must be a whole number", details={"amount": repr(amount)}
        )
    value = int(amount)
    if value <= 0:
        logger.error(f"Principal amount {value} is not positive")
        raise InvalidAmount("Principal amount must be greater than zero", details={"amount": value})
    if value > MAX_AMOUNT:
        logger.error(f"Principal amount {value} exceeds {MAX_AMOUNT}")
        raise InvalidAmount(
            "Principal amount exceeds the largest supported value", details={"amount": value}
        )
    return value


def amount_to_words(amount: int) -> str:
    """
    Title-case words, hyphenated 21-99, no "and", followed by "Dollars" ("Dollar" for 1).

    Raises:
        InvalidAmount: for non-integers (bool and float included), zero, negatives and
        amounts above 999,999,999,999,999. Nothing is ever rounded.
    """
    value = _validate(amount)
    groups: List[int] = []
    remaining = value
    while remaining:
        remaining, group = divmod(remaining, 1000)
        groups.append(group)

    words: List[str] = []
    for scale_index in range(len(groups) - 1, -1, -1):
        group = groups[scale_index]
        if not group:
            continue
        scale = SCALES[scale_index]
        words.append(f"{_hundreds(group)} {scale}" if scale else _hundreds(group))

    unit = "Dollar" if value == 1 else "Dollars"
    return f"{' '.join(words)} {unit}"


def amount_to_words_upper(amount: int) -> str:
    """All-caps variant used by certificate forms: "FIVE MILLION DOLLARS"."""
    return amount_to_words(amount).upper()
