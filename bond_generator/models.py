# models.py
# Purpose: Typed domain models for schedule rows, joined bonds, template tag maps and assembled output

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import TagMapFinalizedError

# (maturity_date, series) composite key shared by both schedules
JoinKey = Tuple[date, Optional[str]]


@dataclass
class MaturityRow:
    row_number: int
    maturity_date: date
    principal_amount: int
    coupon_rate: Decimal
    dated_date: Optional[date] = None
    series: Optional[str] = None

    @property
    def key(self) -> JoinKey:
        return (self.maturity_date, self.series)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_number": self.row_number,
            "maturity_date": self.maturity_date.isoformat(),
            "principal_amount": self.principal_amount,
            "coupon_rate": str(self.coupon_rate),
            "dated_date": self.dated_date.isoformat() if self.dated_date else None,
            "series": self.series,
        }


@dataclass
class CusipRow:
    row_number: int
    cusip: str
    maturity_date: date
    series: Optional[str] = None

    @property
    def key(self) -> JoinKey:
        return (self.maturity_date, self.series)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_number": self.row_number,
            "cusip": self.cusip,
            "maturity_date": self.maturity_date.isoformat(),
            "series": self.series,
        }


@dataclass
class RowError:
    row_number: int
    reasons: List[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_number": self.row_number,
            "reasons": list(self.reasons),
            "raw": {k: _jsonable(v) for k, v in self.raw.items()},
        }


@dataclass
class ParseSummary:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    skipped: int = 0


@dataclass
class ScheduleParseResult:
    valid_rows: List[Any]
    invalid_rows: List[RowError]
    summary: ParseSummary
    warnings: List[str] = field(default_factory=list)
    column_mapping: Dict[str, str] = field(default_factory=dict)
    header_row_index: int = 0
    dated_date: Optional[date] = None
    split_cusip_columns: bool = False

    @property
    def has_invalid_rows(self) -> bool:
        return bool(self.invalid_rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid_rows": [r.to_dict() for r in self.valid_rows],
            "invalid_rows": [r.to_dict() for r in self.invalid_rows],
            "summary": {
                "total": self.summary.total,
                "valid": self.summary.valid,
                "invalid": self.summary.invalid,
                "skipped": self.summary.skipped,
            },
            "warnings": list(self.warnings),
            "column_mapping": dict(self.column_mapping),
            "header_row_index": self.header_row_index,
            "dated_date": self.dated_date.isoformat() if self.dated_date else None,
            "split_cusip_columns": self.split_cusip_columns,
        }


@dataclass(frozen=True)
class JoinedBond:
    """One certificate's worth of data; both schedule sides are always present."""

    cusip: str
    maturity_date: date
    principal_amount: int
    coupon_rate: Decimal
    maturity_row_number: int
    cusip_row_number: int
    dated_date: Optional[date] = None
    series: Optional[str] = None
    principal_words: Optional[str] = None
    sequence_number: Optional[int] = None
    bond_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence_number": self.sequence_number,
            "bond_number": self.bond_number,
            "cusip": self.cusip,
            "maturity_date": self.maturity_date.isoformat(),
            "dated_date": self.dated_date.isoformat() if self.dated_date else None,
            "principal_amount": self.principal_amount,
            "principal_words": self.principal_words,
            "coupon_rate": str(self.coupon_rate),
            "series": self.series,
            "maturity_row_number": self.maturity_row_number,
            "cusip_row_number": self.cusip_row_number,
        }


@dataclass
class AmbiguousKey:
    key: JoinKey
    maturity_rows: List[int]
    cusip_rows: List[int]


@dataclass
class JoinResult:
    joined: List[JoinedBond]
    unmatched_maturity: List[MaturityRow] = field(default_factory=list)
    unmatched_cusip: List[CusipRow] = field(default_factory=list)
    ambiguous: List[AmbiguousKey] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.unmatched_maturity or self.unmatched_cusip or self.ambiguous)

    def issues(self) -> List[Dict[str, Any]]:
        """Structured description of every row excluded from the join."""
        out: List[Dict[str, Any]] = []
        for amb in self.ambiguous:
            out.append(
                {
                    "kind": "ambiguous_key",
                    "key": _key_dict(amb.key),
                    "maturity_rows": list(amb.maturity_rows),
                    "cusip_rows": list(amb.cusip_rows),
                    "reason": "more than one row shares this maturity date and series",
                }
            )
        for row in self.unmatched_maturity:
            out.append(
                {
                    "kind": "unmatched_maturity",
                    "key": _key_dict(row.key),
                    "maturity_rows": [row.row_number],
                    "cusip_rows": [],
                    "reason": "no CUSIP row for this maturity date and series",
                }
            )
        for row in self.unmatched_cusip:
            out.append(
                {
                    "kind": "unmatched_cusip",
                    "key": _key_dict(row.key),
                    "maturity_rows": [],
                    "cusip_rows": [row.row_number],
                    "reason": "no maturity row for this maturity date and series",
                }
            )
        return out


@dataclass(frozen=True)
class BondNumberingConfig:
    starting_number: int = 1
    custom_prefix: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.starting_number, bool) or not isinstance(self.starting_number, int):
            raise ValueError("starting_number must be an integer")
        if self.starting_number < 1:
            raise ValueError("starting_number must be at least 1")


@dataclass(frozen=True)
class TagPosition:
    tag: str
    offset: int
    paragraph_index: int


@dataclass(frozen=True)
class BlankCandidate:
    blank_id: str
    text: str
    offset: int
    paragraph_index: int


@dataclass
class TagMap:
    template_id: str
    content_hash: str
    tags: Sequence[TagPosition]
    blanks: Sequence[BlankCandidate] = field(default_factory=list)
    preview_html: str = ""
    filename: Optional[str] = None
    size: int = 0
    finalized: bool = False

    def __setattr__(self, name, value):
        if getattr(self, "finalized", False):
            raise TagMapFinalizedError(
                f"Tag map {self.template_id} is finalized and cannot be modified"
            )
        super().__setattr__(name, value)

    def finalize(self) -> "TagMap":
        """Locks the map: tags and blanks become tuples and further assignment raises."""
        if not self.finalized:
            self.tags = tuple(self.tags)
            self.blanks = tuple(self.blanks)
            self.finalized = True
        return self

    @property
    def tag_names(self) -> List[str]:
        return [t.tag for t in self.tags]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template_id": self.template_id,
            "content_hash": self.content_hash,
            "tags": [
                {"tag": t.tag, "offset": t.offset, "paragraph_index": t.paragraph_index}
                for t in self.tags
            ],
            "blanks": [
                {
                    "blank_id": b.blank_id,
                    "text": b.text,
                    "offset": b.offset,
                    "paragraph_index": b.paragraph_index,
                }
                for b in self.blanks
            ],
            "preview_html": self.preview_html,
            "filename": self.filename,
            "size": self.size,
            "finalized": self.finalized,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TagMap":
        tag_map = cls(
            template_id=data["template_id"],
            content_hash=data["content_hash"],
            tags=[TagPosition(**t) for t in data.get("tags", [])],
            blanks=[BlankCandidate(**b) for b in data.get("blanks", [])],
            preview_html=data.get("preview_html", ""),
            filename=data.get("filename"),
            size=int(data.get("size", 0)),
        )
        if data.get("finalized"):
            tag_map.finalize()
        return tag_map


@dataclass
class TagValidationResult:
    complete: bool
    missing: List[str]
    duplicates: Dict[str, int]
    optional_present: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complete": self.complete,
            "missing": list(self.missing),
            "duplicates": dict(self.duplicates),
            "optional_present": list(self.optional_present),
        }


@dataclass(frozen=True)
class BondMetadata:
    """Run-level values the schedules do not carry."""

    issuer_name: Optional[str] = None
    bond_title: Optional[str] = None
    project_name: Optional[str] = None
    interest_dates: Optional[Tuple[date, date]] = None
    dated_date: Optional[date] = None


@dataclass
class FilledDocument:
    bond: JoinedBond
    filename: str
    content: bytes


@dataclass
class Manifest:
    bond_count: int
    dated_date: Optional[date]
    series: List[str]
    template_id: str
    filenames: List[str]
    first_bond_number: Optional[str]
    last_bond_number: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bond_count": self.bond_count,
            "dated_date": self.dated_date.isoformat() if self.dated_date else None,
            "series": list(self.series),
            "template_id": self.template_id,
            "filenames": list(self.filenames),
            "first_bond_number": self.first_bond_number,
            "last_bond_number": self.last_bond_number,
        }


@dataclass
class AssembledOutput:
    documents: List[FilledDocument]
    archive: bytes
    manifest: Manifest


def _key_dict(key: JoinKey) -> Dict[str, Any]:
    return {"maturity_date": key[0].isoformat(), "series": key[1]}


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        if isinstance(value, float) and value != value:
            return None
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
