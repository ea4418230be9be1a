"""Schedule parsers: maturity and CUSIP uploads into validated rows plus per-row errors."""

from .cusip import parse_cusip_schedule
from .fields import (
    FieldResult,
    assemble_cusip_from_parts,
    parse_date,
    parse_principal,
    parse_rate,
    parse_series,
    validate_cusip,
)
from .maturity import parse_maturity_schedule

__all__ = [
    "FieldResult",
    "assemble_cusip_from_parts",
    "parse_cusip_schedule",
    "parse_date",
    "parse_maturity_schedule",
    "parse_principal",
    "parse_rate",
    "parse_series",
    "validate_cusip",
]
