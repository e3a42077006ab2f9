"""Proof selection for payments."""

from __future__ import annotations

from typing import Sequence

from .types import InsufficientFunds, Proof


def select_proofs(proofs: Sequence[Proof], amount: int) -> tuple[list[Proof], int]:
    """Select a prefix of ``proofs`` covering ``amount``.

    Proofs are taken in the given order until the running total strictly
    exceeds ``amount``. This always covers the target, at the cost of change,
    and is not a minimal-coin selection.

    Args:
        proofs: Candidate proofs, in store order
        amount: Target amount

    Returns:
        Tuple of (selected proofs, overshoot) where overshoot is
        ``sum(selected) - amount``; it is zero only when the proofs run out
        exactly on target

    Raises:
        InsufficientFunds: If ``amount`` exceeds the sum of all proofs
    """
    available = sum(p["amount"] for p in proofs)
    if amount > available:
        raise InsufficientFunds(amount, available)

    selected: list[Proof] = []
    running = 0
    for proof in proofs:
        selected.append(proof)
        running += proof["amount"]
        if running > amount:
            break

    return selected, running - amount
