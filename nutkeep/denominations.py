"""Denomination splitting for Cashu keysets."""

from __future__ import annotations

from .types import WalletError

# Standard powers of 2 used when a keyset advertises no keys
DEFAULT_DENOMINATIONS = [2**i for i in range(21)]


def split_amount(amount: int, available_denominations: list[int] | None = None) -> list[int]:
    """Break ``amount`` into denominations, ascending.

    Uses a greedy algorithm over the available denominations (largest first),
    so for power-of-two keysets the result is the binary decomposition.

    Args:
        amount: Total amount to split
        available_denominations: Denominations offered by the keyset

    Returns:
        List of denominations summing exactly to ``amount`` (empty for 0)

    Raises:
        WalletError: If ``amount`` cannot be expressed exactly
    """
    if amount < 0:
        raise ValueError(f"Cannot split negative amount {amount}")

    denominations = available_denominations or DEFAULT_DENOMINATIONS
    parts: list[int] = []
    remaining = amount

    for denom in sorted(denominations, reverse=True):
        if denom <= 0:
            continue
        if remaining >= denom:
            count = remaining // denom
            parts.extend([denom] * count)
            remaining -= denom * count

    if remaining:
        raise WalletError(
            f"Amount {amount} cannot be expressed with denominations {sorted(denominations)}"
        )

    return sorted(parts)
