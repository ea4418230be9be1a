# Purpose: Tests for join_schedules: one-to-one joins on (maturity date, series), unmatched and ambiguous keys.

from datetime import date
from decimal import Decimal

from bond_generator.joiner import join_schedules, normalize_series
from bond_generator.models import CusipRow, MaturityRow


def _m(row, day, amount=5000, series=None, dated=None):
    return MaturityRow(row, day, amount, Decimal("4.00"), dated_date=dated, series=series)


def _c(row, cusip, day, series=None):
    return CusipRow(row, cusip, day, series=series)


D1, D2, D3 = date(2030, 6, 1), date(2031, 6, 1), date(2032, 6, 1)


def test_clean_join_keeps_maturity_order_and_values():
    result = join_schedules(
        [_m(2, D2, 7000, dated=date(2025, 1, 1)), _m(3, D1, 5000)],
        [_c(2, "AAAAAAAA1", D1), _c(3, "BBBBBBBB2", D2)],
    )
    assert result.is_clean
    assert [b.cusip for b in result.joined] == ["BBBBBBBB2", "AAAAAAAA1"]
    first = result.joined[0]
    assert first.principal_amount == 7000
    assert first.maturity_row_number == 2
    assert first.cusip_row_number == 3
    assert first.dated_date == date(2025, 1, 1)
    assert first.principal_words is None
    assert first.sequence_number is None


def test_series_is_part_of_the_key():
    result = join_schedules(
        [_m(2, D1, series="A"), _m(3, D1, series="B")],
        [_c(2, "BBBBBBBB2", D1, series=" B "), _c(3, "AAAAAAAA1", D1, series="A")],
    )
    assert result.is_clean
    assert {(b.series, b.cusip) for b in result.joined} == {("A", "AAAAAAAA1"), ("B", "BBBBBBBB2")}


def test_unmatched_rows_on_both_sides_are_reported():
    result = join_schedules([_m(2, D1), _m(3, D2)], [_c(2, "AAAAAAAA1", D1), _c(3, "CCCCCCCC3", D3)])
    assert len(result.joined) == 1
    assert [r.row_number for r in result.unmatched_maturity] == [3]
    assert [r.row_number for r in result.unmatched_cusip] == [3]
    kinds = [i["kind"] for i in result.issues()]
    assert kinds == ["unmatched_maturity", "unmatched_cusip"]


def test_duplicate_key_is_ambiguous_and_never_joined():
    result = join_schedules(
        [_m(2, D1), _m(3, D1), _m(4, D2)],
        [_c(2, "AAAAAAAA1", D1), _c(3, "BBBBBBBB2", D2)],
    )
    assert [b.cusip for b in result.joined] == ["BBBBBBBB2"]
    assert len(result.ambiguous) == 1
    issue = result.issues()[0]
    assert issue["kind"] == "ambiguous_key"
    assert issue["key"] == {"maturity_date": "2030-06-01", "series": None}
    assert issue["maturity_rows"] == [2, 3]
    assert issue["cusip_rows"] == [2]


def test_duplicate_cusip_key_without_maturity_partner_is_ambiguous():
    result = join_schedules([], [_c(2, "AAAAAAAA1", D1), _c(3, "BBBBBBBB2", D1)])
    assert result.joined == []
    assert result.ambiguous[0].maturity_rows == []
    assert result.ambiguous[0].cusip_rows == [2, 3]


def test_every_joined_bond_has_exactly_one_row_per_side():
    maturity = [_m(i, date(2030 + i, 6, 1)) for i in range(2, 8)]
    cusip = [_c(i, f"CUSIP{i:03d}X", date(2030 + i, 6, 1)) for i in range(2, 8)]
    result = join_schedules(maturity, cusip)
    assert len(result.joined) == 6
    assert len({b.maturity_row_number for b in result.joined}) == 6
    assert len({b.cusip_row_number for b in result.joined}) == 6


def test_normalize_series():
    assert normalize_series("  ") is None
    assert normalize_series(" 2025A ") == "2025A"
    assert normalize_series(None) is None
