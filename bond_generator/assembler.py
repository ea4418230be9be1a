# assembler.py
# Purpose: Orchestrates one assembly run: template gate, schedule parsing, join, numbering,
# words, fill, packaging and manifest. Each stage either hands a complete result to the next
# or stops the run with a BondGeneratorError; there is no partial output.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .errors import AcknowledgementRequired, JoinError, NoBondsError
from .filler import fill_template_for_all_bonds
from .joiner import join_schedules
from .models import (
    AssembledOutput,
    BondMetadata,
    BondNumberingConfig,
    JoinedBond,
    JoinResult,
    ScheduleParseResult,
    TagMap,
)
from .numbering import assign_numbers
from .packaging import archive_metadata, assemble_archive, build_manifest
from .parsing import parse_cusip_schedule, parse_maturity_schedule
from .principal_words import amount_to_words
from .tags import require_complete, scan_template, verify_template_matches

logger = logging.getLogger(__name__)


@dataclass
class AssemblyRequest:
    template: bytes
    maturity_schedule: bytes
    cusip_schedule: bytes
    template_filename: Optional[str] = None
    maturity_filename: Optional[str] = None
    cusip_filename: Optional[str] = None
    numbering: Optional[BondNumberingConfig] = None
    metadata: Optional[BondMetadata] = None
    tag_map: Optional[TagMap] = None
    acknowledge_invalid_rows: bool = False
    acknowledge_unmatched_rows: bool = False


@dataclass
class AssemblyPreview:
    bonds: List[JoinedBond]
    maturity: ScheduleParseResult
    cusip: ScheduleParseResult
    join: JoinResult
    warnings: List[str] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, Any]:
        total = self.maturity.summary.valid
        merged = len(self.join.joined)
        return {
            "total_maturity": total,
            "total_cusip": self.cusip.summary.valid,
            "successful_merges": merged,
            "failed_merges": len(self.join.issues()),
            "success_rate": round(merged / total * 100) if total else 0,
        }

    @property
    def diagnostics(self) -> Dict[str, Any]:
        return {
            "maturity_sample_dates": [r.maturity_date.isoformat() for r in self.maturity.valid_rows[:3]],
            "cusip_sample_dates": [r.maturity_date.isoformat() for r in self.cusip.valid_rows[:3]],
            # Both sides parsed but nothing joined: the dates almost certainly disagree in format
            "date_format_mismatch": not self.join.joined
            and bool(self.maturity.valid_rows)
            and bool(self.cusip.valid_rows),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bonds": [b.to_dict() for b in self.bonds],
            "invalid_maturity_rows": [r.to_dict() for r in self.maturity.invalid_rows],
            "invalid_cusip_rows": [r.to_dict() for r in self.cusip.invalid_rows],
            "join_issues": self.join.issues(),
            "warnings": list(self.warnings),
            "dated_date": self.maturity.dated_date.isoformat() if self.maturity.dated_date else None,
            "summary": self.summary,
            "diagnostics": self.diagnostics,
        }


def _resolve_dated_dates(
    bonds: List[JoinedBond], schedule_dated: Optional[date], metadata: BondMetadata
) -> Tuple[List[JoinedBond], List[JoinedBond]]:
    """Per bond: its own row value, else the schedule value, else the run metadata value."""
    resolved: List[JoinedBond] = []
    unresolved: List[JoinedBond] = []
    fallback = schedule_dated or metadata.dated_date
    for bond in bonds:
        value = bond.dated_date or fallback
        if value is None:
            unresolved.append(bond)
            resolved.append(bond)
        else:
            resolved.append(replace(bond, dated_date=value))
    return resolved, unresolved


def _with_words(bonds: List[JoinedBond]) -> List[JoinedBond]:
    return [replace(b, principal_words=amount_to_words(b.principal_amount)) for b in bonds]


def preview_assembly(
    maturity_content: bytes,
    cusip_content: bytes,
    config: Optional[BondNumberingConfig] = None,
    metadata: Optional[BondMetadata] = None,
    maturity_filename: Optional[str] = None,
    cusip_filename: Optional[str] = None,
) -> AssemblyPreview:
    """
    Parses, joins, numbers and converts amounts without filling anything.

    Row errors and join issues are reported, not raised, so a caller can show them
    before asking for acknowledgement. Structural schedule errors still raise.
    """
    metadata = metadata or BondMetadata()
    maturity = parse_maturity_schedule(maturity_content, maturity_filename)
    cusip = parse_cusip_schedule(cusip_content, cusip_filename)
    join = join_schedules(maturity.valid_rows, cusip.valid_rows)
    warnings = list(maturity.warnings) + list(cusip.warnings)

    bonds, unresolved = _resolve_dated_dates(join.joined, maturity.dated_date, metadata)
    if unresolved:
        warnings.append(f"{len(unresolved)} bond(s) have no dated date; supply one before generating")
    bonds = _with_words(assign_numbers(bonds, config))
    preview = AssemblyPreview(bonds=bonds, maturity=maturity, cusip=cusip, join=join, warnings=warnings)
    logger.info(f"Assembly preview: {preview.summary}")
    return preview


def generate_bond_archive(request: AssemblyRequest) -> AssembledOutput:
    """
    Runs the full gated sequence and returns every certificate plus the archive.

    Raises:
        TagCompletenessError / TemplateChangedError / InvalidTemplateError / InvalidTagError:
            template gate failures.
        ScheduleStructureError: unreadable or malformed schedule.
        AcknowledgementRequired: invalid or unmatched rows that were not acknowledged.
        JoinError: ambiguous keys or bonds with no resolvable dated date.
        NoBondsError: nothing joined.
        TagSubstitutionError / PackagingError: fill or packaging failures.
    """
    started = time.perf_counter()
    metadata = request.metadata or BondMetadata()
    logger.info("Bond generation started")

    # 1. Template gate
    tag_map = scan_template(request.template, request.template_filename)
    if request.tag_map is not None:
        verify_template_matches(request.tag_map, request.template)
    require_complete(tag_map)
    tag_map.finalize()
    if request.tag_map is not None:
        request.tag_map.finalize()

    # 2. Schedules
    maturity = parse_maturity_schedule(request.maturity_schedule, request.maturity_filename)
    cusip = parse_cusip_schedule(request.cusip_schedule, request.cusip_filename)

    # 3. Invalid rows need explicit acknowledgement
    if (maturity.invalid_rows or cusip.invalid_rows) and not request.acknowledge_invalid_rows:
        logger.warning(
            f"Generation stopped: {len(maturity.invalid_rows)} invalid maturity rows and "
            f"{len(cusip.invalid_rows)} invalid CUSIP rows were not acknowledged"
        )
        raise AcknowledgementRequired(
            "Some schedule rows are invalid and would be excluded; acknowledge to continue",
            details={
                "acknowledgement": "acknowledge_invalid_rows",
                "invalid_maturity_rows": [r.to_dict() for r in maturity.invalid_rows],
                "invalid_cusip_rows": [r.to_dict() for r in cusip.invalid_rows],
            },
        )

    # 4. Join
    join = join_schedules(maturity.valid_rows, cusip.valid_rows)
    if join.ambiguous:
        issues = [i for i in join.issues() if i["kind"] == "ambiguous_key"]
        raise JoinError(
            f"{len(join.ambiguous)} maturity date/series key(s) match more than one row",
            details={"issues": issues},
        )
    if (join.unmatched_maturity or join.unmatched_cusip) and not request.acknowledge_unmatched_rows:
        raise AcknowledgementRequired(
            "Some rows have no partner in the other schedule and would be excluded; acknowledge to continue",
            details={"acknowledgement": "acknowledge_unmatched_rows", "issues": join.issues()},
        )

    # 5. Something to generate
    if not join.joined:
        raise NoBondsError(
            "No bonds could be assembled from the schedules",
            details={"maturity_rows": maturity.summary.valid, "cusip_rows": cusip.summary.valid},
        )

    # 6. Dated dates
    bonds, unresolved = _resolve_dated_dates(join.joined, maturity.dated_date, metadata)
    if unresolved:
        raise JoinError(
            "No dated date is available for some bonds; supply one in the schedule or as run metadata",
            details={
                "bonds": [
                    {"maturity_date": b.maturity_date.isoformat(), "series": b.series, "cusip": b.cusip}
                    for b in unresolved
                ]
            },
        )

    # 7. Number and words
    bonds = _with_words(assign_numbers(bonds, request.numbering))

    # 8. Fill (all or nothing)
    documents = fill_template_for_all_bonds(request.template, bonds, metadata, tag_map)

    # 9. Package
    archive = assemble_archive(documents)

    # 10. Manifest
    manifest = build_manifest(bonds, documents, tag_map.template_id)
    logger.info(
        f"Bond generation finished: {manifest.bond_count} bonds, {archive_metadata(archive)['total_size']} bytes "
        f"in {time.perf_counter() - started:.2f}s"
    )
    return AssembledOutput(documents=documents, archive=archive, manifest=manifest)
