# Purpose: Unit tests for core.data_utils: upload reading, delimiter/header detection, column mapping and Excel serials.

from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from core.config import DEFAULT_COLUMN_ALIASES
from core.data_utils import (
    detect_delimiter,
    detect_header_row,
    excel_serial_to_datetime,
    is_blank_cell,
    map_columns,
    normalize_column_name,
    read_table_robustly,
)


@pytest.mark.parametrize("value", [None, np.nan, pd.NaT, "", "   "])
def test_is_blank_cell_true(value):
    assert is_blank_cell(value)


@pytest.mark.parametrize("value", [0, "x", 1.5, datetime(2030, 6, 1)])
def test_is_blank_cell_false(value):
    assert not is_blank_cell(value)


def test_detect_delimiter_prefers_most_common():
    assert detect_delimiter("a;b;c\n1;2;3\n") == ";"
    assert detect_delimiter("a\tb\n1\t2\n") == "\t"
    assert detect_delimiter("single column\nvalue\n") == ","


def test_read_table_robustly_csv_keeps_text():
    df = read_table_robustly(b"CUSIP,Maturity Date\n012345AB1,2030-06-01\n", "c.csv")
    assert df.shape == (2, 2)
    assert df.iloc[1, 0] == "012345AB1"  # leading zero preserved


def test_read_table_robustly_semicolon_and_bom():
    df = read_table_robustly("\ufeffa;b\n1;2\n".encode("utf-8"))
    assert df.iloc[0].tolist() == ["a", "b"]


def test_read_table_robustly_xlsx_detected_by_magic(xlsx_factory):
    content = xlsx_factory([["Maturity Date", "Principal"], [datetime(2030, 6, 1), 5000]])
    df = read_table_robustly(content, filename=None)
    assert df.shape == (2, 2)
    assert pd.Timestamp(df.iloc[1, 0]).year == 2030


def test_read_table_robustly_empty_returns_none():
    assert read_table_robustly(b"", "empty.csv") is None
    assert read_table_robustly(b"   \n  ", "blank.csv") is None


def test_read_table_robustly_corrupt_workbook_returns_none():
    assert read_table_robustly(b"not really a workbook", "broken.xlsx") is None


def test_normalize_column_name():
    assert normalize_column_name("  Maturity_Date\n") == "maturity date"
    assert normalize_column_name("Principal   Amount") == "principal amount"
    assert normalize_column_name(None) == ""


def test_detect_header_row_skips_preamble():
    frame = pd.DataFrame(
        [
            ["City of Example", None, None],
            ["General Obligation Bonds", None, None],
            ["Maturity Date", "Principal Amount", "Coupon Rate"],
            ["2030-06-01", "5000", "4.0"],
        ],
        dtype=object,
    )
    assert detect_header_row(frame, ["maturity", "principal", "amount", "rate"]) == 2


def test_detect_header_row_none_when_absent():
    frame = pd.DataFrame([["a", "b"], ["1", "2"]], dtype=object)
    assert detect_header_row(frame, ["maturity", "principal"]) is None


def test_detect_header_row_by_aliases():
    frame = pd.DataFrame(
        [
            ["Principal and Rate Schedule", None, None],
            ["Date", "Par Amount", "Coupon"],
            ["2030-06-01", "5000", "4.0"],
        ],
        dtype=object,
    )
    fields = ["maturity_date", "principal_amount", "coupon_rate"]
    # The keyword scan alone would stop at the title row
    assert detect_header_row(frame, ["maturity", "principal", "amount", "rate"]) == 0
    assert (
        detect_header_row(
            frame,
            ["maturity", "principal", "amount", "rate"],
            aliases=DEFAULT_COLUMN_ALIASES,
            fields=fields,
        )
        == 1
    )


def test_map_columns_uses_aliases_without_reuse():
    headers = ["Date", "Par Amount", "Interest Rate", "Dated Date"]
    mapping, missing = map_columns(
        headers,
        DEFAULT_COLUMN_ALIASES,
        ["maturity_date", "principal_amount", "coupon_rate"],
        ["dated_date", "series"],
    )
    assert missing == []
    assert mapping == {"maturity_date": 0, "principal_amount": 1, "coupon_rate": 2, "dated_date": 3}


def test_map_columns_reports_missing():
    mapping, missing = map_columns(["CUSIP"], DEFAULT_COLUMN_ALIASES, ["cusip", "maturity_date"])
    assert mapping == {"cusip": 0}
    assert missing == ["maturity_date"]


def test_excel_serial_to_datetime():
    assert excel_serial_to_datetime(1) == datetime(1900, 1, 1)
    assert excel_serial_to_datetime(61) == datetime(1900, 3, 1)
    assert excel_serial_to_datetime(47635).date().isoformat() == "2030-06-01"
    with pytest.raises(ValueError):
        excel_serial_to_datetime(0)
