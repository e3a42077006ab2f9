"""Shared fixtures: an in-process mint that signs with real secp256k1 keys."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest
from coincurve import PrivateKey, PublicKey

from nutkeep.crypto import hash_to_curve
from nutkeep.store import InvoiceStore, ProofStore, SpendJournal
from nutkeep.types import (
    BlindedMessage,
    BlindedSignature,
    KeySet,
    Proof,
    ProtocolError,
)
from nutkeep.wallet import Wallet

MINT_URL = "http://test.mint"
KEYSET_ID = "009a1f293253e41e"


class FakeMint:
    """Minimal mint honouring the transport contract used by the wallet."""

    def __init__(self, url: str = MINT_URL) -> None:
        self.url = url
        self.privkeys = {
            2**i: PrivateKey(hashlib.sha256(f"fake-mint-key-{i}".encode()).digest())
            for i in range(16)
        }
        self.keyset = KeySet(
            id=KEYSET_ID,
            unit="sat",
            keys={
                amount: key.public_key.format(compressed=True).hex()
                for amount, key in self.privkeys.items()
            },
        )
        self.quotes: dict[str, dict] = {}
        self.spent: set[str] = set()
        self.issued: dict[str, BlindedSignature] = {}
        self.split_calls: list[tuple[list[Proof], list[BlindedMessage]]] = []
        # raised once the next operation has committed, as if the reply was lost
        self.fail_after_commit: Exception | None = None
        self.closed = False

    # ─────────────────────────── helpers ───────────────────────────

    def _sign(self, outputs: list[BlindedMessage]) -> list[BlindedSignature]:
        signatures = []
        for output in outputs:
            k = self.privkeys[output["amount"]]
            C_ = PublicKey(bytes.fromhex(output["B_"])).multiply(k.secret)
            sig = BlindedSignature(
                amount=output["amount"],
                C_=C_.format(compressed=True).hex(),
                id=self.keyset.id,
            )
            self.issued[output["B_"]] = sig
            signatures.append(sig)
        return signatures

    def is_valid(self, proof: Proof) -> bool:
        k = self.privkeys[proof["amount"]]
        expected = hash_to_curve(proof["secret"].encode("utf-8")).multiply(k.secret)
        return expected.format(compressed=True).hex() == proof["C"]

    def _respond(self, signatures: list[BlindedSignature]) -> list[BlindedSignature]:
        if self.fail_after_commit is not None:
            error, self.fail_after_commit = self.fail_after_commit, None
            raise error
        return signatures

    # ─────────────────────────── transport ───────────────────────────

    async def request_invoice(self, amount: int, unit: str = "sat") -> dict:
        quote = f"quote-{len(self.quotes)}"
        self.quotes[quote] = {"amount": amount, "paid": True, "issued": False}
        return {"payment_request": f"lnbc{amount}n1{quote}", "hash": quote}

    async def redeem(self, outputs: list[BlindedMessage], hash: str) -> list[BlindedSignature]:
        quote = self.quotes.get(hash)
        if quote is None or quote["issued"] or not quote["paid"]:
            raise ProtocolError("quote not payable", status_code=400)
        if sum(o["amount"] for o in outputs) != quote["amount"]:
            raise ProtocolError("amount mismatch", status_code=400)
        quote["issued"] = True
        return self._respond(self._sign(outputs))

    async def split(
        self, inputs: list[Proof], outputs: list[BlindedMessage]
    ) -> list[BlindedSignature]:
        self.split_calls.append((list(inputs), list(outputs)))
        for proof in inputs:
            if proof["secret"] in self.spent:
                raise ProtocolError("Token already spent", status_code=400)
            if not self.is_valid(proof):
                raise ProtocolError("invalid proof", status_code=400)
        if sum(p["amount"] for p in inputs) != sum(o["amount"] for o in outputs):
            raise ProtocolError("inputs and outputs not balanced", status_code=400)
        self.spent.update(p["secret"] for p in inputs)
        return self._respond(self._sign(outputs))

    async def restore(self, outputs: list[BlindedMessage]) -> dict:
        found = [o for o in outputs if o["B_"] in self.issued]
        return {
            "outputs": found,
            "signatures": [self.issued[o["B_"]] for o in found],
        }

    async def aclose(self) -> None:
        self.closed = True


def make_wallet(mint: FakeMint, wallet_dir: Path) -> Wallet:
    return Wallet(
        mint,  # type: ignore[arg-type]
        mint.keyset,
        proofs=ProofStore(wallet_dir / "proofs.json"),
        invoices=InvoiceStore(wallet_dir / "invoices.json"),
        journal=SpendJournal(wallet_dir / "pending.json"),
    )


async def _fund(wallet: Wallet, amount: int) -> None:
    invoice = await wallet.request_mint(amount)
    await wallet.mint_tokens(invoice.payment_request)


@pytest.fixture
def fund():
    """Mint ``amount`` into a wallet through the fake mint."""
    return _fund


@pytest.fixture
def fake_mint() -> FakeMint:
    return FakeMint()


@pytest.fixture
def wallet(tmp_path: Path, fake_mint: FakeMint) -> Wallet:
    return make_wallet(fake_mint, tmp_path / "alice")


@pytest.fixture
def other_wallet(tmp_path: Path, fake_mint: FakeMint) -> Wallet:
    return make_wallet(fake_mint, tmp_path / "bob")


CONFIG_ENV_VARS = ("NUTKEEP_MINT_URL", "NUTKEEP_HOME", "NUTKEEP_UNIT", "NUTKEEP_LOG_LEVEL")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No NUTKEEP_* variables and no ``.env`` in the working directory."""
    # setenv first so values loaded from .env files are undone after the test
    for name in CONFIG_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
