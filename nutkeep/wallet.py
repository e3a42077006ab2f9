from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Literal, TypeVar

import httpx

from .batch import BlindBatchBuilder
from .crypto import construct_proofs
from .mint import Mint
from .selection import select_proofs
from .store import InvoiceStore, PendingSpend, ProofStore, SpendJournal
from .token import Token
from .types import (
    BlindedMessageBatch,
    CurrencyUnit,
    Invoice,
    InvoiceNotFound,
    KeySet,
    MintError,
    PartialSaveError,
    Proof,
    ProtocolError,
    SerializationError,
    SetupError,
    StorageError,
    WalletError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROOFS_FILE = "proofs.json"
INVOICES_FILE = "invoices.json"
PENDING_FILE = "pending.json"


# ──────────────────────────────────────────────────────────────────────────────
# Wallet implementation
# ──────────────────────────────────────────────────────────────────────────────


class Wallet:
    """Single-mint Cashu wallet backed by local JSON stores.

    Every mint call that creates outputs is journaled first, and proofs it
    consumes are only deleted once the outputs are durable. If the process
    dies in between, ``recover()`` asks the mint to restore the journaled
    outputs.
    """

    def __init__(
        self,
        mint: Mint,
        keyset: KeySet,
        *,
        proofs: ProofStore,
        invoices: InvoiceStore,
        journal: SpendJournal,
    ) -> None:
        self.mint = mint
        self.keyset = keyset
        self.proofs = proofs
        self.invoices = invoices
        self.journal = journal
        self.batches = BlindBatchBuilder(keyset)

    @classmethod
    async def create(
        cls,
        mint_url: str,
        wallet_dir: Path,
        *,
        unit: CurrencyUnit = "sat",
        client: httpx.AsyncClient | None = None,
    ) -> Wallet:
        """Open the wallet stored in ``wallet_dir`` and load the mint keyset.

        Raises:
            SetupError: If the directory is unusable, the mint is unreachable
                or it has no usable keyset for ``unit``
        """
        try:
            wallet_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Could not create wallet directory {wallet_dir}: {e}") from e

        mint = Mint(mint_url, client=client)
        try:
            keyset = await cls._load_keyset(mint, unit)
        except MintError as e:
            await mint.aclose()
            raise SetupError(f"Could not load keyset from {mint.url}: {e}") from e
        except SetupError:
            await mint.aclose()
            raise

        logger.info("Wallet at %s bound to %s keyset %s", wallet_dir, mint.url, keyset.id)
        return cls(
            mint,
            keyset,
            proofs=ProofStore(wallet_dir / PROOFS_FILE),
            invoices=InvoiceStore(wallet_dir / INVOICES_FILE),
            journal=SpendJournal(wallet_dir / PENDING_FILE),
        )

    @staticmethod
    async def _load_keyset(mint: Mint, unit: CurrencyUnit) -> KeySet:
        keysets = [
            ks
            for ks in await mint.get_keysets()
            if ks.get("active", True) and ks.get("unit") == unit
        ]
        if not keysets:
            raise SetupError(f"Mint {mint.url} has no active keyset for unit '{unit}'")

        free = [ks for ks in keysets if not ks.get("input_fee_ppk", 0)]
        if not free:
            raise SetupError(
                f"Mint {mint.url} only offers fee-charging keysets for unit '{unit}'"
            )
        return await mint.get_keys(free[0]["id"])

    async def aclose(self) -> None:
        await self.mint.aclose()

    async def __aenter__(self) -> Wallet:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ─────────────────────────────── Balance ──────────────────────────────────

    async def get_balance(self) -> int:
        """Sum of all stored proofs."""
        return self.proofs.balance()

    # ─────────────────────────────── Mint ─────────────────────────────────────

    async def request_mint(self, amount: int) -> Invoice:
        """Request a Lightning invoice for ``amount`` and remember it."""
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")

        response = await self.mint.request_invoice(amount, self.keyset.unit)
        invoice = Invoice(
            hash=response["hash"],
            payment_request=response["payment_request"],
            amount=amount,
        )
        self.invoices.save(invoice)
        logger.info("Requested invoice %s for %d %s", invoice.hash, amount, self.keyset.unit)
        return invoice

    async def mint_tokens(self, payment_request: str) -> list[Proof]:
        """Redeem a paid invoice for new proofs.

        Returns:
            The new proofs, all durably saved

        Raises:
            InvoiceNotFound: If the invoice was never requested by this wallet
            PartialSaveError: If only some proofs could be saved
        """
        invoice = self.invoices.get(payment_request)
        if invoice is None:
            raise InvoiceNotFound(payment_request)

        batch = self.batches.build(invoice.amount)
        entry = self.journal.begin(
            PendingSpend(kind="mint", outputs=batch, keyset_id=self.keyset.id)
        )
        promises = await self._mint_call(
            entry, self.mint.redeem(batch.outputs(self.keyset.id), invoice.hash)
        )

        new_proofs = construct_proofs(promises, batch, self.keyset)
        self._save_proofs(new_proofs)
        self.journal.finish(entry.id)

        logger.info("Minted %d proofs worth %d", len(new_proofs), invoice.amount)
        return new_proofs

    # ─────────────────────────────── Send ─────────────────────────────────────

    async def send(
        self,
        amount: int,
        *,
        token_version: Literal[3, 4] = 4,
        memo: str | None = None,
    ) -> str:
        """Create a token worth exactly ``amount``.

        The selected proofs are split into a pay part for the recipient and a
        change part kept locally, in one swap.

        Raises:
            InsufficientFunds: If the balance does not cover ``amount``
            SerializationError: If the token cannot be encoded; the swap stays
                journaled for ``recover()``
        """
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")
        if token_version not in (3, 4):
            raise ValueError(f"Unsupported token version: {token_version}. Use 3 or 4.")

        selected, overshoot = select_proofs(self.proofs.all(), amount)

        pay = self.batches.build(amount)
        change = self.batches.build(overshoot)
        outputs, origins = self.batches.merge(pay, change)

        entry = self.journal.begin(
            PendingSpend(
                kind="send",
                outputs=outputs,
                keyset_id=self.keyset.id,
                inputs=[p["secret"] for p in selected],
            )
        )
        promises = await self._mint_call(
            entry, self.mint.split(selected, outputs.outputs(self.keyset.id))
        )
        new_proofs = construct_proofs(promises, outputs, self.keyset)

        # pair by ordinal position: origin 0 is the pay batch, 1 the change batch
        send_proofs = [p for p, origin in zip(new_proofs, origins) if origin == 0]
        change_proofs = [p for p, origin in zip(new_proofs, origins) if origin == 1]

        # encode before touching the store so a failure leaves the entry recoverable
        token = Token(mint=self.mint.url, proofs=send_proofs, unit=self.keyset.unit, memo=memo)
        try:
            encoded = token.serialize(token_version)
        except ValueError as e:
            raise SerializationError(f"Could not encode token: {e}") from e

        self._save_proofs(change_proofs)
        self.proofs.delete_many(p["secret"] for p in selected)
        self.journal.finish(entry.id)

        logger.info(
            "Sent %d using %d proofs, kept %d change", amount, len(selected), overshoot
        )
        return encoded

    # ─────────────────────────────── Receive ──────────────────────────────────

    async def receive(self, token: str) -> int:
        """Swap the proofs of ``token`` for proofs with our own secrets.

        Returns:
            Amount added to the wallet

        Raises:
            SerializationError: If the token cannot be parsed
            WalletError: If the token is for another mint or unit
        """
        parsed = Token.parse(token)
        if parsed.mint != self.mint.url:
            raise WalletError(
                f"Token is from mint {parsed.mint}, this wallet uses {self.mint.url}"
            )
        if parsed.unit != self.keyset.unit:
            raise WalletError(
                f"Token unit '{parsed.unit}' does not match wallet unit '{self.keyset.unit}'"
            )

        amount = parsed.amount
        if amount <= 0:
            raise WalletError("Token has no value")

        batch = self.batches.build(amount)
        entry = self.journal.begin(
            PendingSpend(kind="receive", outputs=batch, keyset_id=self.keyset.id)
        )
        promises = await self._mint_call(
            entry, self.mint.split(parsed.proofs, batch.outputs(self.keyset.id))
        )

        new_proofs = construct_proofs(promises, batch, self.keyset)
        self._save_proofs(new_proofs)
        self.journal.finish(entry.id)

        logger.info("Received %d in %d proofs", amount, len(new_proofs))
        return amount

    # ─────────────────────────────── Recovery ─────────────────────────────────

    async def recover(self) -> int:
        """Finish or discard every journaled mint call.

        Outputs the mint already signed are restored and saved, and the
        entry's input proofs are deleted as spent. An entry the mint has no
        signatures for never happened and is dropped, leaving its inputs.

        Returns:
            Total amount restored
        """
        recovered = 0
        for entry in self.journal.pending():
            if entry.keyset_id != self.keyset.id:
                raise WalletError(
                    f"Pending {entry.kind} {entry.id} uses keyset {entry.keyset_id}, "
                    f"wallet keyset is {self.keyset.id}"
                )

            result = await self.mint.restore(entry.outputs.outputs(entry.keyset_id))
            signed = {
                output["B_"]: sig
                for output, sig in zip(result["outputs"], result["signatures"])
            }
            indices = [
                i for i, B_ in enumerate(entry.outputs.blinded_points) if B_ in signed
            ]

            if indices:
                restored_batch = BlindedMessageBatch(
                    amounts=[entry.outputs.amounts[i] for i in indices],
                    secrets=[entry.outputs.secrets[i] for i in indices],
                    blinding_factors=[entry.outputs.blinding_factors[i] for i in indices],
                    blinded_points=[entry.outputs.blinded_points[i] for i in indices],
                )
                promises = [signed[B_] for B_ in restored_batch.blinded_points]
                restored = construct_proofs(promises, restored_batch, self.keyset)
                # all or nothing; on failure the entry stays for the next run
                self.proofs.save_many(restored)
                self.proofs.delete_many(entry.inputs)
                recovered += restored_batch.total
                logger.warning(
                    "Restored %d proofs worth %d from pending %s %s",
                    len(restored),
                    restored_batch.total,
                    entry.kind,
                    entry.id,
                )
            else:
                logger.warning(
                    "Pending %s %s was never signed by the mint, discarding",
                    entry.kind,
                    entry.id,
                )
            self.journal.finish(entry.id)

        return recovered

    # ───────────────────────── Helper Methods ─────────────────────────────────

    async def _mint_call(self, entry: PendingSpend, call: Awaitable[T]) -> T:
        """Await a journaled mint call.

        A 4xx answer is the mint refusing the request, so nothing was signed
        and the entry is dropped. Server errors, transport failures and
        malformed responses may hide a committed call and leave the entry for
        ``recover()``.
        """
        try:
            return await call
        except ProtocolError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                self.journal.finish(entry.id)
            raise

    def _save_proofs(self, proofs: list[Proof]) -> None:
        """Save each proof on its own so one failure does not lose the rest."""
        saved: list[Proof] = []
        unsaved: list[Proof] = []
        error: StorageError | None = None
        for proof in proofs:
            try:
                self.proofs.save(proof)
            except StorageError as e:
                unsaved.append(proof)
                error = e
            else:
                saved.append(proof)

        if error is not None:
            logger.warning("Could not save %d of %d proofs: %s", len(unsaved), len(proofs), error)
            raise PartialSaveError(saved, unsaved, error)
