# filler.py
# Purpose: Fill a tagged DOCX template once per bond. Each fill loads a fresh document from
# the template bytes, so bonds never share state, and the batch fill is all-or-nothing.

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from core.config import MAX_FILENAME_COMPONENT
from core.settings_loader import get_fill_workers
from core.utils import sanitize_filename_component

from . import docx_text
from .errors import BondGeneratorError, TagSubstitutionError
from .models import BondMetadata, FilledDocument, JoinedBond, TagMap
from .principal_words import amount_to_words
from .tags import REQUIRED_TAGS, TAG_PATTERN, require_complete, scan_template, verify_template_matches

logger = logging.getLogger(__name__)


def format_long_date(value: Optional[date]) -> str:
    """June 1, 2030 (no zero padding on the day)."""
    if value is None:
        return ""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_rate(rate: Decimal) -> str:
    return f"{format(rate, 'f')}%"


def format_interest_dates(dates) -> str:
    if not dates:
        return ""
    first, second = dates
    return f"{first.strftime('%B')} {first.day} and {second.strftime('%B')} {second.day}"


def build_replacements(bond: JoinedBond, metadata: Optional[BondMetadata] = None) -> Dict[str, str]:
    """Text for every tag in the vocabulary; optional values missing from the run become ""."""
    metadata = metadata or BondMetadata()
    words = bond.principal_words or amount_to_words(bond.principal_amount)
    return {
        "CUSIP_NO": bond.cusip,
        "MATURITY_DATE": format_long_date(bond.maturity_date),
        "DATED_DATE": format_long_date(bond.dated_date),
        "PRINCIPAL_AMOUNT_NUM": f"{bond.principal_amount:,}",
        "PRINCIPAL_AMOUNT_WORDS": words,
        "INTEREST_RATE": format_rate(bond.coupon_rate),
        "BOND_NUMBER": bond.bond_number or "",
        "SERIES": bond.series or "",
        "ISSUER_NAME": metadata.issuer_name or "",
        "BOND_TITLE": metadata.bond_title or "",
        "PROJECT_NAME": metadata.project_name or "",
        "INTEREST_DATES": format_interest_dates(metadata.interest_dates),
    }


def bond_filename(bond: JoinedBond, metadata: Optional[BondMetadata] = None) -> str:
    """<Issuer>_<Series>_<YYYYMMDD>_<BondNumber>.docx"""
    metadata = metadata or BondMetadata()
    issuer = sanitize_filename_component(metadata.issuer_name, "Bond", MAX_FILENAME_COMPONENT)
    series = sanitize_filename_component(bond.series, "Series", MAX_FILENAME_COMPONENT)
    number = bond.bond_number or str(bond.sequence_number or "")
    return f"{issuer}_{series}_{bond.maturity_date.strftime('%Y%m%d')}_{number}.docx"


def _check_required_values(bond: JoinedBond, replacements: Dict[str, str]) -> None:
    empty = [t for t in REQUIRED_TAGS if not replacements.get(t)]
    if empty:
        raise TagSubstitutionError(
            f"Bond {bond.bond_number or bond.cusip} has no value for required tags {empty}",
            details={"bond_number": bond.bond_number, "cusip": bond.cusip, "tags": empty},
        )


def _fill(content: bytes, bond: JoinedBond, replacements: Dict[str, str]) -> bytes:
    document = docx_text.load_document(content)
    paragraphs, texts, _ = docx_text.flatten(document)
    replaced = 0
    for paragraph, text in zip(paragraphs, texts):
        matches = list(TAG_PATTERN.finditer(text))
        for match in reversed(matches):
            name = match.group(1)
            if name not in replacements:
                raise TagSubstitutionError(
                    f"Template tag {{{{{name}}}}} has no substitution",
                    details={"tag": name, "bond_number": bond.bond_number},
                )
            docx_text.replace_span(paragraph, match.start(), match.end(), replacements[name])
            replaced += 1
    output = docx_text.save_document(document)
    if not output:
        raise TagSubstitutionError(
            f"Filling bond {bond.bond_number or bond.cusip} produced an empty document",
            details={"bond_number": bond.bond_number},
        )
    logger.debug(f"Filled bond {bond.bond_number}: {replaced} placeholders, {len(output)} bytes")
    return output


def fill_template(
    content: bytes,
    bond: JoinedBond,
    metadata: Optional[BondMetadata] = None,
    tag_map: Optional[TagMap] = None,
) -> bytes:
    """
    Produces one filled certificate. The template bytes are never modified.

    Args:
        content (bytes): Template bytes.
        bond (JoinedBond): Numbered bond to render.
        metadata (BondMetadata, optional): Run-level values for optional tags.
        tag_map (TagMap, optional): Previously scanned map; must match the bytes. Scanned when omitted.

    Returns:
        bytes: The filled DOCX.
    """
    if tag_map is None:
        tag_map = scan_template(content)
    else:
        verify_template_matches(tag_map, content)
    require_complete(tag_map)
    replacements = build_replacements(bond, metadata)
    _check_required_values(bond, replacements)
    return _fill(content, bond, replacements)


def fill_template_for_all_bonds(
    content: bytes,
    bonds: Sequence[JoinedBond],
    metadata: Optional[BondMetadata] = None,
    tag_map: Optional[TagMap] = None,
    max_workers: Optional[int] = None,
) -> List[FilledDocument]:
    """
    Fills every bond on a thread pool and returns documents in sequence order.

    The first failure cancels work that has not started and raises
    TagSubstitutionError naming the bond; no partial list is ever returned.
    """
    if tag_map is None:
        tag_map = scan_template(content)
    else:
        verify_template_matches(tag_map, content)
    require_complete(tag_map)
    if not bonds:
        return []

    workers = max(1, min(max_workers or get_fill_workers(), len(bonds)))
    logger.info(f"Filling {len(bonds)} bonds with {workers} worker(s)")

    prepared = []
    for bond in bonds:
        replacements = build_replacements(bond, metadata)
        _check_required_values(bond, replacements)
        prepared.append((bond, replacements))

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bond-fill")
    try:
        futures = {
            executor.submit(_fill, content, bond, replacements): bond
            for bond, replacements in prepared
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        failed = [f for f in done if f.exception() is not None]
        if failed:
            for f in pending:
                f.cancel()
            first = min(failed, key=lambda f: futures[f].sequence_number or 0)
            bond = futures[first]
            error = first.exception()
            logger.error(
                f"Filling bond {bond.bond_number} failed, cancelled {len(pending)} pending fills: {error}"
            )
            if isinstance(error, TagSubstitutionError):
                raise error
            details = error.to_dict() if isinstance(error, BondGeneratorError) else {"error": str(error)}
            raise TagSubstitutionError(
                f"Failed to fill bond {bond.bond_number}", details=details
            ) from error
        documents = [
            FilledDocument(bond=futures[f], filename=bond_filename(futures[f], metadata), content=f.result())
            for f in futures
        ]
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    documents.sort(key=lambda d: (d.bond.sequence_number or 0, d.bond.cusip))
    logger.info(f"Filled {len(documents)} bond documents")
    return documents
