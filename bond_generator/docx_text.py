# docx_text.py
# Purpose: Read and edit the visible text of a DOCX template with python-docx.
# Paragraphs are visited in document order (body, nested table cells, content controls,
# then unlinked section headers/footers), and edits splice text across runs so the
# formatting of the run where an edit starts is kept.

from __future__ import annotations

import io
import logging
import zipfile
from typing import Iterator, List, Tuple

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.table import Table, _Cell
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from .errors import InvalidTemplateError

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n"


def load_document(content: bytes, filename: str = None):
    """Opens DOCX bytes; anything python-docx cannot open is an InvalidTemplateError."""
    if not content:
        raise InvalidTemplateError("Template file is empty", details={"filename": filename})
    try:
        return Document(io.BytesIO(content))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        logger.error(f"Template {filename or 'unnamed'} is not a readable DOCX file: {e}")
        raise InvalidTemplateError(
            "Template is not a valid DOCX file", details={"filename": filename, "error": str(e)}
        ) from e


def save_document(document) -> bytes:
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _iter_block_paragraphs(element, parent) -> Iterator[Paragraph]:
    for child in element.iterchildren():
        if child.tag == qn("w:p"):
            yield Paragraph(child, parent)
        elif child.tag == qn("w:tbl"):
            table = Table(child, parent)
            for tr in child.tr_lst:
                # Walk w:tc elements directly; row.cells repeats merged cells
                for tc in tr.tc_lst:
                    yield from _iter_block_paragraphs(tc, _Cell(tc, table))
        elif child.tag == qn("w:sdt"):
            content = child.find(qn("w:sdtContent"))
            if content is not None:
                yield from _iter_block_paragraphs(content, parent)


def iter_paragraphs(document) -> Iterator[Paragraph]:
    """All paragraphs whose text can carry placeholders, in a stable order."""
    yield from _iter_block_paragraphs(document.element.body, document)
    for section in document.sections:
        parts = (
            section.header,
            section.first_page_header,
            section.even_page_header,
            section.footer,
            section.first_page_footer,
            section.even_page_footer,
        )
        for part in parts:
            # Linked parts have no definition of their own (and reading _element would add one)
            if part.is_linked_to_previous:
                continue
            yield from _iter_block_paragraphs(part._element, part)


def paragraph_runs(paragraph: Paragraph) -> List[Run]:
    """Runs directly under the paragraph and inside hyperlinks, in document order."""
    return [Run(r, paragraph) for r in paragraph._p.xpath("./w:r | ./w:hyperlink/w:r")]


def paragraph_text(paragraph: Paragraph) -> str:
    return "".join(run.text for run in paragraph_runs(paragraph))


def flatten(document) -> Tuple[List[Paragraph], List[str], List[int]]:
    """
    Returns (paragraphs, texts, start offsets) where each start offset points into
    PARAGRAPH_SEPARATOR.join(texts).
    """
    paragraphs = list(iter_paragraphs(document))
    texts = [paragraph_text(p) for p in paragraphs]
    starts: List[int] = []
    cursor = 0
    for text in texts:
        starts.append(cursor)
        cursor += len(text) + len(PARAGRAPH_SEPARATOR)
    return paragraphs, texts, starts


def replace_span(paragraph: Paragraph, start: int, end: int, replacement: str) -> None:
    """
    Replaces paragraph text[start:end] with replacement.

    The replacement is written into the run holding `start`, so it inherits that
    run's formatting; the remainder of the span is cut from the following runs.
    """
    if start < 0 or end <= start:
        raise ValueError(f"Invalid span {start}:{end}")
    cursor = 0
    inserted = False
    for run in paragraph_runs(paragraph):
        text = run.text
        run_start, run_end = cursor, cursor + len(text)
        cursor = run_end
        if not inserted:
            if start >= run_end:
                continue
            local_start = start - run_start
            local_end = min(end - run_start, len(text))
            run.text = text[:local_start] + replacement + text[local_end:]
            inserted = True
        else:
            if run_start >= end:
                break
            run.text = text[min(end - run_start, len(text)):]
    if not inserted:
        raise ValueError(f"Span {start}:{end} lies outside the paragraph text")
