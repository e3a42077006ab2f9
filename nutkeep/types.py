"""Type definitions for the nutkeep package following NUT-00 specifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypedDict


class Proof(TypedDict):
    """Spendable proof as stored locally and exchanged in tokens."""

    id: str  # keyset ID
    amount: int
    secret: str
    C: str  # hex encoded unblinded signature


class BlindedMessage(TypedDict):
    """Blinded message for mint operations."""

    amount: int
    B_: str  # hex encoded blinded message
    id: str  # keyset ID


class BlindedSignature(TypedDict):
    """Blinded signature response from mint."""

    amount: int
    C_: str  # hex encoded blinded signature
    id: str  # keyset ID


CurrencyUnit = Literal["sat", "msat", "usd", "eur", "btc"]


# ──────────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────────


class WalletError(Exception):
    """Base class for wallet errors."""


class InsufficientFunds(WalletError):
    """Requested spend exceeds the total value of the available proofs."""

    def __init__(self, needed: int, available: int) -> None:
        super().__init__(
            f"Insufficient balance. Need at least {needed}, but have {available}"
        )
        self.needed = needed
        self.available = available


class InvoiceNotFound(WalletError):
    """Redeem requested for a payment request the wallet never saved."""

    def __init__(self, payment_request: str) -> None:
        super().__init__(f"Invoice not found: {payment_request}")
        self.payment_request = payment_request


class StorageError(WalletError):
    """Persistent store I/O failure or corrupt record."""


class PartialSaveError(StorageError):
    """Some freshly issued proofs could not be persisted.

    ``saved`` are durable, ``unsaved`` still need to be stored (or recovered
    from the mint with ``Wallet.recover``).
    """

    def __init__(self, saved: list[Proof], unsaved: list[Proof], cause: Exception):
        super().__init__(
            f"Saved {len(saved)} of {len(saved) + len(unsaved)} proofs: {cause}"
        )
        self.saved = saved
        self.unsaved = unsaved


class SerializationError(WalletError):
    """Token or record could not be parsed."""


class SetupError(WalletError):
    """Wallet construction failed."""


class MintError(WalletError):
    """Base exception for mint errors."""


class NetworkError(MintError):
    """Transport level failure talking to the mint."""


class ProtocolError(MintError):
    """Mint returned an error status or a malformed response.

    ``status_code`` is set when the mint explicitly rejected the request.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ──────────────────────────────────────────────────────────────────────────────
# Wallet entities
# ──────────────────────────────────────────────────────────────────────────────


@dataclass
class Invoice:
    """Outstanding mint invoice (quote)."""

    hash: str  # mint quote id
    payment_request: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "payment_request": self.payment_request,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Invoice:
        hash_ = data["hash"]
        payment_request = data["payment_request"]
        amount = data["amount"]
        if not isinstance(hash_, str) or not isinstance(payment_request, str):
            raise TypeError("Invoice hash and payment_request must be strings")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise TypeError(f"Invalid invoice amount: {amount!r}")
        return cls(hash=hash_, payment_request=payment_request, amount=amount)


@dataclass
class KeySet:
    """Mint keyset used to unblind promises."""

    id: str
    unit: CurrencyUnit
    keys: dict[int, str] = field(default_factory=dict)  # amount -> pubkey
    input_fee_ppk: int = 0

    @property
    def denominations(self) -> list[int]:
        return sorted(self.keys)

    def pubkey_for(self, amount: int) -> str:
        try:
            return self.keys[amount]
        except KeyError:
            raise ProtocolError(
                f"Keyset {self.id} has no key for amount {amount}"
            ) from None


@dataclass
class BlindedMessageBatch:
    """Parallel outputs for one mint call.

    Index ``i`` of ``amounts``, ``secrets``, ``blinding_factors`` and
    ``blinded_points`` always describes the same output.
    """

    amounts: list[int] = field(default_factory=list)
    secrets: list[str] = field(default_factory=list)
    blinding_factors: list[str] = field(default_factory=list)  # hex
    blinded_points: list[str] = field(default_factory=list)  # hex B_

    def __post_init__(self) -> None:
        n = len(self.amounts)
        if not (
            len(self.secrets) == len(self.blinding_factors) == len(self.blinded_points) == n
        ):
            raise ValueError("Blinded message batch fields have mismatched lengths")

    def __len__(self) -> int:
        return len(self.amounts)

    @property
    def total(self) -> int:
        return sum(self.amounts)

    def outputs(self, keyset_id: str) -> list[BlindedMessage]:
        """Wire representation in batch order."""
        return [
            BlindedMessage(amount=amount, B_=B_, id=keyset_id)
            for amount, B_ in zip(self.amounts, self.blinded_points)
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "amounts": list(self.amounts),
            "secrets": list(self.secrets),
            "blinding_factors": list(self.blinding_factors),
            "blinded_points": list(self.blinded_points),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BlindedMessageBatch:
        return cls(
            amounts=[int(a) for a in data["amounts"]],
            secrets=[str(s) for s in data["secrets"]],
            blinding_factors=[str(r) for r in data["blinding_factors"]],
            blinded_points=[str(b) for b in data["blinded_points"]],
        )


def validate_proof(data: Any) -> Proof:
    """Check that ``data`` has the shape of a stored proof."""
    if not isinstance(data, dict):
        raise TypeError(f"Proof must be an object, got {type(data).__name__}")
    for key in ("id", "secret", "C"):
        if not isinstance(data.get(key), str):
            raise TypeError(f"Proof field '{key}' must be a string")
    amount = data.get("amount")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise TypeError(f"Invalid proof amount: {amount!r}")
    return Proof(id=data["id"], amount=amount, secret=data["secret"], C=data["C"])
