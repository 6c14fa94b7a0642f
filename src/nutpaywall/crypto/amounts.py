from __future__ import annotations

from typing import Iterable


def split_amount(amount: int, denominations: Iterable[int]) -> list[int]:
    """
    Decompose `amount` into mint denominations, largest first.

    For a power-of-two keyset this is the binary representation of `amount`,
    so the output length equals its population count:

      split_amount(10, [1, 2, 4, 8, 16]) -> [8, 2]

    Raises ValueError when the amount is not positive or cannot be
    represented exactly; callers must not mint a partial amount.
    """
    if amount <= 0:
        raise ValueError("amount must be > 0")
    ordered = sorted({d for d in denominations if d > 0}, reverse=True)
    if not ordered:
        raise ValueError("no denominations available")

    parts: list[int] = []
    remaining = amount
    for denomination in ordered:
        while remaining >= denomination:
            parts.append(denomination)
            remaining -= denomination
    if remaining != 0:
        raise ValueError(f"amount {amount} cannot be represented exactly")
    return parts
