# Purpose: Literal-string tests for amount_to_words and its rejection of non-whole or out-of-range amounts.

import numpy as np
import pytest

from bond_generator.errors import InvalidAmount
from bond_generator.principal_words import MAX_AMOUNT, amount_to_words, amount_to_words_upper


@pytest.mark.parametrize(
    "amount, words",
    [
        (1, "One Dollar"),
        (21, "Twenty-One Dollars"),
        (100, "One Hundred Dollars"),
        (1000, "One Thousand Dollars"),
        (5000, "Five Thousand Dollars"),
        (125000, "One Hundred Twenty-Five Thousand Dollars"),
        (1000000, "One Million Dollars"),
        (1005000, "One Million Five Thousand Dollars"),
        (2_500_000_000, "Two Billion Five Hundred Million Dollars"),
        (1_000_000_000_000, "One Trillion Dollars"),
        (
            999_999,
            "Nine Hundred Ninety-Nine Thousand Nine Hundred Ninety-Nine Dollars",
        ),
    ],
)
def test_amount_to_words(amount, words):
    assert amount_to_words(amount) == words


def test_numpy_integers_accepted():
    assert amount_to_words(np.int64(5000)) == "Five Thousand Dollars"


def test_upper_variant():
    assert amount_to_words_upper(5_000_000) == "FIVE MILLION DOLLARS"


def test_largest_amount():
    assert amount_to_words(MAX_AMOUNT).startswith("Nine Hundred Ninety-Nine Trillion")


@pytest.mark.parametrize("amount", [0, -1, 5000.0, 12.5, True, np.bool_(True), "5000", None, MAX_AMOUNT + 1])
def test_rejected_amounts(amount):
    with pytest.raises(InvalidAmount) as exc:
        amount_to_words(amount)
    assert exc.value.code == "INVALID_AMOUNT"
