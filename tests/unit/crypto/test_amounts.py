"""Unit tests for amount splitting."""

from __future__ import annotations

import pytest

from nutpaywall.crypto.amounts import split_amount

POWERS_OF_TWO = [2**i for i in range(16)]


def test_split_follows_binary_representation():
    assert split_amount(10, POWERS_OF_TWO) == [8, 2]
    assert split_amount(99, POWERS_OF_TWO) == [64, 32, 2, 1]


@pytest.mark.parametrize("amount", [1, 7, 64, 1000, 65535])
def test_split_sums_to_amount_with_popcount_parts(amount):
    parts = split_amount(amount, POWERS_OF_TWO)

    assert sum(parts) == amount
    assert len(parts) == bin(amount).count("1")
    assert parts == sorted(parts, reverse=True)


def test_split_accepts_unsorted_duplicate_denominations():
    assert split_amount(5, [4, 1, 2, 2]) == [4, 1]


@pytest.mark.parametrize("amount", [0, -3])
def test_split_rejects_non_positive_amount(amount):
    with pytest.raises(ValueError):
        split_amount(amount, POWERS_OF_TWO)


def test_split_rejects_unrepresentable_amount():
    with pytest.raises(ValueError):
        split_amount(3, [2, 4])


def test_split_requires_denominations():
    with pytest.raises(ValueError):
        split_amount(3, [])
