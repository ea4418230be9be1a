# numbering.py
# Purpose: Deterministic ordering and sequential numbering of joined bonds.
# Pure: same input always yields the same labels, and inputs are never mutated.

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from core.settings_loader import get_numbering_defaults

from .models import BondNumberingConfig, JoinedBond

logger = logging.getLogger(__name__)


def sort_key(bond: JoinedBond) -> Tuple:
    """Canonical order: maturity date, then series (no series first), then CUSIP."""
    return (bond.maturity_date, bond.series or "", bond.cusip)


def sanitize_prefix(prefix: Optional[str]) -> str:
    """Keep only letters, digits and hyphens so labels are safe inside filenames."""
    if not prefix:
        return ""
    return re.sub(r"[^A-Za-z0-9-]", "", prefix)


def number_width(last_number: int, min_width: int = 3) -> int:
    return max(min_width, len(str(last_number)))


def format_bond_number(
    sequence: int,
    width: int,
    series: Optional[str] = None,
    custom_prefix: Optional[str] = None,
    default_prefix: str = "BOND-",
) -> str:
    prefix = sanitize_prefix(custom_prefix)
    if not prefix:
        if custom_prefix:
            logger.warning(
                f"Custom prefix '{custom_prefix}' sanitized to nothing, using the default prefix"
            )
        series_prefix = sanitize_prefix(series)
        prefix = f"{series_prefix}-" if series_prefix else sanitize_prefix(default_prefix)
    return f"{prefix}{str(sequence).zfill(width)}"


def assign_numbers(
    joined: Sequence[JoinedBond], config: Optional[BondNumberingConfig] = None
) -> List[JoinedBond]:
    """
    Sorts bonds canonically and assigns gap-free sequence numbers and labels.

    Args:
        joined: Joined bonds in any order (already-numbered bonds are renumbered identically).
        config: Starting number and custom prefix; defaults to 1 and no prefix.

    Returns:
        List[JoinedBond]: New frozen instances in sequence order.
    """
    config = config or BondNumberingConfig()
    defaults = get_numbering_defaults()
    if not joined:
        logger.warning("assign_numbers called with no bonds")
        return []

    ordered = sorted(joined, key=sort_key)
    last = config.starting_number + len(ordered) - 1
    width = number_width(last, defaults["min_width"])
    numbered = [
        replace(
            bond,
            sequence_number=config.starting_number + i,
            bond_number=format_bond_number(
                config.starting_number + i,
                width,
                series=bond.series,
                custom_prefix=config.custom_prefix,
                default_prefix=defaults["default_prefix"],
            ),
        )
        for i, bond in enumerate(ordered)
    ]
    logger.info(
        f"Numbered {len(numbered)} bonds: {numbered[0].bond_number} .. {numbered[-1].bond_number}"
        f" (prefix {'custom' if config.custom_prefix else 'default'})"
    )
    return numbered
