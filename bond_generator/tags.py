# tags.py
# Purpose: Template tag vocabulary, template scanning into a TagMap, the completeness gate,
# and manual tagging (turning selected blanks or text into {{TAG}} placeholders).

from __future__ import annotations

import hashlib
import html
import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from . import docx_text
from .errors import (
    InvalidTagError,
    InvalidTemplateError,
    TagCompletenessError,
    TagMapFinalizedError,
    TemplateChangedError,
)
from .models import BlankCandidate, TagMap, TagPosition, TagValidationResult

logger = logging.getLogger(__name__)

# ============================================================================
# Vocabulary
# ============================================================================

REQUIRED_TAGS: Tuple[str, ...] = (
    "CUSIP_NO",
    "MATURITY_DATE",
    "DATED_DATE",
    "PRINCIPAL_AMOUNT_NUM",
    "PRINCIPAL_AMOUNT_WORDS",
    "INTEREST_RATE",
)

OPTIONAL_TAGS: Tuple[str, ...] = (
    "BOND_NUMBER",
    "SERIES",
    "ISSUER_NAME",
    "BOND_TITLE",
    "INTEREST_DATES",
    "PROJECT_NAME",
)

ALL_TAGS: Tuple[str, ...] = REQUIRED_TAGS + OPTIONAL_TAGS

TAG_LABELS: Dict[str, str] = {
    "CUSIP_NO": "CUSIP Number",
    "MATURITY_DATE": "Maturity Date",
    "DATED_DATE": "Dated Date",
    "PRINCIPAL_AMOUNT_NUM": "Principal Amount (Number)",
    "PRINCIPAL_AMOUNT_WORDS": "Principal Amount (Words)",
    "INTEREST_RATE": "Interest Rate",
    "BOND_NUMBER": "Bond Number",
    "SERIES": "Series",
    "ISSUER_NAME": "Issuer Name",
    "BOND_TITLE": "Bond Title",
    "INTEREST_DATES": "Interest Payment Dates",
    "PROJECT_NAME": "Project Name",
}

TAG_PATTERN = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")
# Underlined blanks ("________") and bracketed placeholders ("[Issuer Name]")
BLANK_PATTERN = re.compile(r"_{3,}|\[[^\[\]\n]{1,80}\]")


def is_valid_tag(tag: str) -> bool:
    return tag in ALL_TAGS


def is_required_tag(tag: str) -> bool:
    return tag in REQUIRED_TAGS


# Choices offered to the tagging UI, required tags first
TAG_OPTIONS: List[Dict[str, object]] = [
    {"value": tag, "label": TAG_LABELS[tag], "required": is_required_tag(tag)} for tag in ALL_TAGS
]


def placeholder(tag: str) -> str:
    return "{{" + tag + "}}"


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


# ============================================================================
# Scanning
# ============================================================================


def _render_paragraph(text: str, spans: List[Tuple[int, int, str]]) -> str:
    out: List[str] = []
    cursor = 0
    for start, end, markup in spans:
        out.append(html.escape(text[cursor:start]))
        out.append(markup)
        cursor = end
    out.append(html.escape(text[cursor:]))
    return f"<p>{''.join(out)}</p>"


def scan_template(content: bytes, filename: Optional[str] = None) -> TagMap:
    """
    Scans a DOCX template for {{TAG}} placeholders and candidate blanks.

    Offsets refer to the flattened document text (paragraphs joined with a newline).
    Every placeholder must name a tag from the vocabulary.

    Raises:
        InvalidTemplateError: bytes are not a DOCX document.
        InvalidTagError: a placeholder names an unknown tag.
    """
    digest = content_hash(content or b"")
    document = docx_text.load_document(content, filename)
    paragraphs, texts, starts = docx_text.flatten(document)

    tags: List[TagPosition] = []
    blanks: List[BlankCandidate] = []
    unknown: List[str] = []
    rendered: List[str] = []

    for index, (text, start) in enumerate(zip(texts, starts)):
        spans: List[Tuple[int, int, str]] = []
        for match in TAG_PATTERN.finditer(text):
            name = match.group(1)
            if not is_valid_tag(name):
                unknown.append(name)
                continue
            tags.append(TagPosition(tag=name, offset=start + match.start(), paragraph_index=index))
            spans.append(
                (
                    match.start(),
                    match.end(),
                    f'<span class="bond-tag" data-tag="{name}">{html.escape(match.group(0))}</span>',
                )
            )
        taken = [(s, e) for s, e, _ in spans]
        for match in BLANK_PATTERN.finditer(text):
            if any(match.start() < e and s < match.end() for s, e in taken):
                continue
            blank_id = f"p{index}-{match.start()}"
            blanks.append(
                BlankCandidate(
                    blank_id=blank_id,
                    text=match.group(0),
                    offset=start + match.start(),
                    paragraph_index=index,
                )
            )
            spans.append(
                (
                    match.start(),
                    match.end(),
                    f'<span class="bond-blank" data-blank-id="{blank_id}">{html.escape(match.group(0))}</span>',
                )
            )
        spans.sort(key=lambda s: s[0])
        rendered.append(_render_paragraph(text, spans))

    if unknown:
        listed = sorted(set(unknown))
        logger.error(f"Template {filename or 'unnamed'} contains unknown tags: {listed}")
        raise InvalidTagError(
            f"Unknown tags found: {', '.join(placeholder(t) for t in listed)}",
            details={"invalid_tags": listed, "valid_tags": list(ALL_TAGS)},
        )

    tags.sort(key=lambda t: t.offset)
    tag_map = TagMap(
        template_id=digest[:16],
        content_hash=digest,
        tags=tags,
        blanks=blanks,
        preview_html="\n".join(rendered),
        filename=filename,
        size=len(content),
    )
    logger.info(
        f"Scanned template {filename or 'unnamed'} ({tag_map.template_id}): "
        f"{len(paragraphs)} paragraphs, {len(tags)} tags, {len(blanks)} blanks"
    )
    return tag_map


# ============================================================================
# Completeness gate
# ============================================================================


def validate_tag_completeness(tag_map: TagMap) -> TagValidationResult:
    """Complete iff every required tag occurs at least once; repeats are reported only."""
    counts = Counter(tag_map.tag_names)
    missing = [t for t in REQUIRED_TAGS if counts[t] == 0]
    duplicates = {t: n for t, n in counts.items() if n > 1 and is_required_tag(t)}
    optional_present = [t for t in OPTIONAL_TAGS if counts[t] > 0]
    return TagValidationResult(
        complete=not missing,
        missing=missing,
        duplicates=duplicates,
        optional_present=optional_present,
    )


def require_complete(tag_map: TagMap) -> TagValidationResult:
    result = validate_tag_completeness(tag_map)
    if not result.complete:
        logger.error(f"Template {tag_map.template_id} is missing required tags {result.missing}")
        raise TagCompletenessError(
            f"Missing required tags: {', '.join(placeholder(t) for t in result.missing)}",
            details={"missing_tags": result.missing, "found_tags": sorted(set(tag_map.tag_names))},
        )
    if result.duplicates:
        logger.info(f"Template {tag_map.template_id} repeats required tags {result.duplicates}")
    return result


def verify_template_matches(tag_map: TagMap, content: bytes) -> None:
    digest = content_hash(content or b"")
    if digest != tag_map.content_hash:
        logger.error(
            f"Template bytes hash {digest[:16]} does not match tag map {tag_map.template_id}"
        )
        raise TemplateChangedError(
            "The template has changed since it was tagged; re-scan it",
            details={"expected": tag_map.content_hash, "actual": digest},
        )


# ============================================================================
# Manual tagging
# ============================================================================


@dataclass(frozen=True)
class TagAssignment:
    """Selects either a scanned blank (by id) or the n-th occurrence of some text."""

    tag: str
    blank_id: Optional[str] = None
    text: Optional[str] = None
    occurrence: int = 0

    def describe(self) -> str:
        if self.blank_id is not None:
            return f"{self.tag} -> blank {self.blank_id}"
        return f"{self.tag} -> '{self.text}' #{self.occurrence}"


def _locate_text(texts: Sequence[str], needle: str, occurrence: int) -> Optional[Tuple[int, int]]:
    seen = 0
    for index, text in enumerate(texts):
        pos = text.find(needle)
        while pos != -1:
            if seen == occurrence:
                return index, pos
            seen += 1
            pos = text.find(needle, pos + len(needle))
    return None


def apply_tag_assignments(
    content: bytes, tag_map: TagMap, assignments: Sequence[TagAssignment]
) -> Tuple[bytes, TagMap]:
    """
    Writes {{TAG}} placeholders over the selected blanks or text.

    Returns the new template bytes and their freshly scanned TagMap.

    Raises:
        TagMapFinalizedError: the tag map was already finalized for generation.
        TemplateChangedError: content does not hash to the tag map's value.
        InvalidTagError: an assignment names an unknown tag, or none were given.
        InvalidTemplateError: one or more selections could not be located.
    """
    if tag_map.finalized:
        raise TagMapFinalizedError(
            f"Tag map {tag_map.template_id} is finalized and cannot be modified"
        )
    verify_template_matches(tag_map, content)
    if not assignments:
        raise InvalidTagError("No tag assignments supplied")
    bad_tags = sorted({a.tag for a in assignments if not is_valid_tag(a.tag)})
    if bad_tags:
        raise InvalidTagError(
            f"Unknown tags in assignments: {', '.join(bad_tags)}",
            details={"invalid_tags": bad_tags, "valid_tags": list(ALL_TAGS)},
        )

    document = docx_text.load_document(content, tag_map.filename)
    paragraphs, texts, _ = docx_text.flatten(document)
    blanks_by_id = {b.blank_id: b for b in tag_map.blanks}

    edits: Dict[int, List[Tuple[int, int, str]]] = {}
    unresolved: List[str] = []
    for assignment in assignments:
        located: Optional[Tuple[int, int, int]] = None
        if assignment.blank_id is not None:
            blank = blanks_by_id.get(assignment.blank_id)
            if blank is not None and blank.paragraph_index < len(texts):
                local = int(assignment.blank_id.split("-", 1)[1])
                text = texts[blank.paragraph_index]
                if text[local : local + len(blank.text)] == blank.text:
                    located = (blank.paragraph_index, local, local + len(blank.text))
        elif assignment.text:
            hit = _locate_text(texts, assignment.text, max(assignment.occurrence, 0))
            if hit is not None:
                located = (hit[0], hit[1], hit[1] + len(assignment.text))
        if located is None:
            unresolved.append(assignment.describe())
            continue
        index, start, end = located
        overlapping = [e for e in edits.get(index, []) if start < e[1] and e[0] < end]
        if overlapping:
            unresolved.append(f"{assignment.describe()} (overlaps another selection)")
            continue
        edits.setdefault(index, []).append((start, end, placeholder(assignment.tag)))

    if unresolved:
        logger.error(f"Tag assignments could not be applied: {unresolved}")
        raise InvalidTemplateError(
            "Some tag selections could not be located in the template",
            details={"unresolved": unresolved},
        )

    for index, spans in edits.items():
        # Right-to-left keeps earlier offsets valid
        for start, end, replacement in sorted(spans, key=lambda s: s[0], reverse=True):
            docx_text.replace_span(paragraphs[index], start, end, replacement)

    updated = docx_text.save_document(document)
    logger.info(
        f"Applied {len(assignments)} tag assignments to template {tag_map.template_id}"
    )
    return updated, scan_template(updated, tag_map.filename)
