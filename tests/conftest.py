# Add project root to sys.path for module imports
import io
import os
import sys
from typing import List, Sequence, Union

import openpyxl
import pandas as pd
import pytest
from docx import Document

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from bond_generator.parsing.fields import cusip_check_digit  # noqa: E402

Run = Union[str, tuple]

TEST_SETTINGS_YAML = """
app_config:
  data_folder: Data
  secret_key: test
bond_generator:
  numbering:
    default_prefix: BOND-
    min_width: 3
  filling:
    max_workers: 2
auth:
  enabled: true
  api_tokens:
    test-token: test-user
"""


def make_cusip(base: str) -> str:
    """Appends the computed check digit to an 8-character CUSIP base."""
    return base + cusip_check_digit(base)


def build_docx(
    paragraphs: Sequence[Union[str, Sequence[Run]]],
    table_rows: Sequence[Sequence[str]] = None,
    header_text: str = None,
) -> bytes:
    """
    Builds a DOCX in memory.

    Each paragraph is a string (one run) or a list of runs, where a run is a string or a
    (text, bold) tuple, so tests can split placeholders across differently formatted runs.
    """
    document = Document()
    for para in paragraphs:
        p = document.add_paragraph()
        runs = [para] if isinstance(para, str) else para
        for run in runs:
            text, bold = (run, False) if isinstance(run, str) else run
            r = p.add_run(text)
            r.bold = bold
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r_idx, row in enumerate(table_rows):
            for c_idx, value in enumerate(row):
                table.cell(r_idx, c_idx).text = value
    if header_text is not None:
        header = document.sections[0].header
        header.is_linked_to_previous = False
        header.paragraphs[0].text = header_text
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def build_xlsx(rows: List[list]) -> bytes:
    """Writes rows (header rows included) to the first sheet of a new workbook."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_csv(rows: List[list]) -> bytes:
    """First row is the header."""
    df = pd.DataFrame(rows[1:], columns=rows[0])
    return df.to_csv(index=False).encode("utf-8")


COMPLETE_TEMPLATE_PARAGRAPHS = [
    "CUSIP {{CUSIP_NO}}",
    [("Maturity Date: {{MATU", True), ("RITY_DATE}}", False)],
    "Dated Date: {{DATED_DATE}}",
    "Principal: ${{PRINCIPAL_AMOUNT_NUM}} ({{PRINCIPAL_AMOUNT_WORDS}})",
    "Interest Rate: {{INTEREST_RATE}} per annum",
    "Series {{SERIES}}",
]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Points the settings loader at a test settings file for every test."""
    from core.settings_loader import reload_settings

    settings_path = tmp_path / "settings.yaml"
    settings_path.write_text(TEST_SETTINGS_YAML, encoding="utf-8")
    monkeypatch.setenv("BOND_GENERATOR_SETTINGS", str(settings_path))
    monkeypatch.delenv("BOND_GENERATOR_DATA_FOLDER", raising=False)
    reload_settings()
    yield settings_path
    reload_settings()


@pytest.fixture
def template_bytes() -> bytes:
    """Template carrying every required tag plus BOND_NUMBER (table) and ISSUER_NAME (header)."""
    return build_docx(
        COMPLETE_TEMPLATE_PARAGRAPHS,
        table_rows=[["Bond No.", "{{BOND_NUMBER}}"]],
        header_text="{{ISSUER_NAME}}",
    )


@pytest.fixture
def cusips() -> List[str]:
    return [make_cusip(f"12345A{n:02d}") for n in range(1, 7)]


@pytest.fixture
def maturity_csv() -> bytes:
    return build_csv(
        [
            ["Maturity Date", "Principal Amount", "Coupon Rate", "Dated Date"],
            ["2027-06-01", "100000", "5.00", "2025-01-15"],
            ["2026-06-01", "125000", "4.25", "2025-01-15"],
            ["2028-06-01", "1000000", "4.5", "2025-01-15"],
        ]
    )


@pytest.fixture
def cusip_csv(cusips) -> bytes:
    return build_csv(
        [
            ["CUSIP", "Maturity Date"],
            [cusips[0], "2026-06-01"],
            [cusips[1], "2027-06-01"],
            [cusips[2], "2028-06-01"],
        ]
    )


@pytest.fixture
def docx_factory():
    return build_docx


@pytest.fixture
def xlsx_factory():
    return build_xlsx


@pytest.fixture
def csv_factory():
    return build_csv


@pytest.fixture
def cusip_factory():
    return make_cusip
