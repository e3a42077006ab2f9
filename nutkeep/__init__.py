"""nutkeep - local Cashu wallet core.

Tracks unspent proofs and outstanding mint invoices, and runs the mint, send
and receive protocols against a single Cashu mint.
"""

from .token import Token
from .types import (
    InsufficientFunds,
    InvoiceNotFound,
    MintError,
    NetworkError,
    PartialSaveError,
    ProtocolError,
    SerializationError,
    SetupError,
    StorageError,
    WalletError,
)
from .wallet import Wallet

__version__ = "0.1.0"

__all__ = [
    # Main wallet class
    "Wallet",
    "Token",
    # Errors
    "WalletError",
    "InsufficientFunds",
    "InvoiceNotFound",
    "StorageError",
    "PartialSaveError",
    "SerializationError",
    "SetupError",
    "MintError",
    "NetworkError",
    "ProtocolError",
]
