# Purpose: Tests for bond ordering and numbering (canonical sort, gap-free sequences, labels and padding).

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from bond_generator.models import BondNumberingConfig, JoinedBond
from bond_generator.numbering import assign_numbers, format_bond_number, number_width, sanitize_prefix


def _bond(cusip, day, series=None):
    return JoinedBond(
        cusip=cusip,
        maturity_date=day,
        principal_amount=5000,
        coupon_rate=Decimal("4"),
        maturity_row_number=2,
        cusip_row_number=2,
        series=series,
    )


@pytest.fixture
def shuffled():
    return [
        _bond("CCCCCCCC3", date(2032, 6, 1)),
        _bond("AAAAAAAA1", date(2030, 6, 1)),
        _bond("BBBBBBBB2", date(2031, 6, 1)),
    ]


def test_default_labels_and_canonical_order(shuffled):
    numbered = assign_numbers(shuffled)
    assert [b.cusip for b in numbered] == ["AAAAAAAA1", "BBBBBBBB2", "CCCCCCCC3"]
    assert [b.sequence_number for b in numbered] == [1, 2, 3]
    assert [b.bond_number for b in numbered] == ["BOND-001", "BOND-002", "BOND-003"]


def test_inputs_are_not_mutated(shuffled):
    assign_numbers(shuffled)
    assert all(b.sequence_number is None for b in shuffled)


def test_numbering_is_deterministic_regardless_of_input_order(shuffled):
    first = assign_numbers(shuffled)
    second = assign_numbers(list(reversed(shuffled)))
    assert first == second


def test_starting_number_and_custom_prefix(shuffled):
    numbered = assign_numbers(shuffled, BondNumberingConfig(starting_number=998, custom_prefix="R-"))
    assert [b.bond_number for b in numbered] == ["R-0998", "R-0999", "R-1000"]


def test_series_prefix_used_without_custom_prefix():
    numbered = assign_numbers([_bond("AAAAAAAA1", date(2030, 6, 1), series="2025A")])
    assert numbered[0].bond_number == "2025A-001"


@pytest.mark.parametrize(
    "series, expected",
    [("2025/A", "2025A-001"), ("Series A", "SeriesA-001"), ("///", "BOND-001")],
)
def test_series_prefix_is_filename_safe(series, expected):
    numbered = assign_numbers([_bond("AAAAAAAA1", date(2030, 6, 1), series=series)])
    assert numbered[0].bond_number == expected


def test_same_date_orders_by_series_then_cusip():
    day = date(2030, 6, 1)
    numbered = assign_numbers(
        [_bond("ZZZZZZZZ9", day, "B"), _bond("YYYYYYYY8", day, "A"), _bond("XXXXXXXX7", day)]
    )
    assert [b.cusip for b in numbered] == ["XXXXXXXX7", "YYYYYYYY8", "ZZZZZZZZ9"]


def test_prefix_that_sanitizes_to_nothing_falls_back():
    assert format_bond_number(7, 3, custom_prefix="%%%") == "BOND-007"
    assert sanitize_prefix("R 1/") == "R1"


def test_number_width():
    assert number_width(5) == 3
    assert number_width(12345) == 5


def test_empty_input():
    assert assign_numbers([]) == []


def test_renumbering_already_numbered_bonds_is_stable(shuffled):
    numbered = assign_numbers(shuffled)
    again = assign_numbers([replace(b, bond_number="stale") for b in numbered])
    assert again == numbered


@pytest.mark.parametrize("start", [0, -3, 1.5, True])
def test_invalid_starting_number(start):
    with pytest.raises(ValueError):
        BondNumberingConfig(starting_number=start)
