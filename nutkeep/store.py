"""JSON persistence for proofs, invoices and in-flight mint calls.

Each record set lives in its own JSON document inside the wallet directory and
is rewritten atomically on every change.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Literal

from .types import (
    BlindedMessageBatch,
    Invoice,
    Proof,
    StorageError,
    validate_proof,
)

logger = logging.getLogger(__name__)

# Owner read/write only
SECURE_FILE_MODE = 0o600


class JsonRecordStore:
    """Keyed record set persisted as one JSON object: ``{key: record}``."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise StorageError(f"Could not read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt store {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Corrupt store {self.path}: expected a JSON object")
        return data

    def write(self, records: dict[str, Any]) -> None:
        """Replace the whole record set atomically."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
        except OSError as e:
            raise StorageError(f"Could not write {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            if os.name == "posix":
                os.chmod(tmp_name, SECURE_FILE_MODE)
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StorageError(f"Could not write {self.path}: {e}") from e
        logger.debug("Wrote %d records to %s", len(records), self.path)

    def update(self, mutate: Callable[[dict[str, Any]], None]) -> None:
        records = self.load()
        mutate(records)
        self.write(records)


def _decode(path: Path, key: str, record: Any, parse: Callable[[Any], Any]) -> Any:
    try:
        return parse(record)
    except (TypeError, KeyError, ValueError) as e:
        raise StorageError(f"Corrupt record {key!r} in {path}: {e}") from e


class ProofStore:
    """Owned, unspent proofs keyed by secret."""

    def __init__(self, path: Path) -> None:
        self._records = JsonRecordStore(path)

    def all(self) -> list[Proof]:
        """All stored proofs; a corrupt record raises StorageError."""
        proofs: list[Proof] = []
        for secret, record in self._records.load().items():
            proof = _decode(self._records.path, secret, record, validate_proof)
            if proof["secret"] != secret:
                raise StorageError(
                    f"Corrupt record {secret!r} in {self._records.path}: key mismatch"
                )
            proofs.append(proof)
        return proofs

    def get(self, secret: str) -> Proof | None:
        record = self._records.load().get(secret)
        if record is None:
            return None
        return _decode(self._records.path, secret, record, validate_proof)

    def save(self, proof: Proof) -> None:
        """Upsert ``proof``; saving the same secret again overwrites it."""
        self.save_many([proof])

    def save_many(self, proofs: Iterable[Proof]) -> None:
        new = {p["secret"]: dict(p) for p in proofs}
        if new:
            self._records.update(lambda records: records.update(new))

    def delete(self, secret: str) -> None:
        """Remove the proof if present."""
        self.delete_many([secret])

    def delete_many(self, secrets: Iterable[str]) -> None:
        doomed = set(secrets)

        def mutate(records: dict[str, Any]) -> None:
            for secret in doomed:
                records.pop(secret, None)

        if doomed:
            self._records.update(mutate)

    def balance(self) -> int:
        return sum(p["amount"] for p in self.all())


class InvoiceStore:
    """Outstanding mint invoices keyed by payment request."""

    def __init__(self, path: Path) -> None:
        self._records = JsonRecordStore(path)

    def save(self, invoice: Invoice) -> None:
        self._records.update(
            lambda records: records.__setitem__(invoice.payment_request, invoice.to_dict())
        )

    def get(self, payment_request: str) -> Invoice | None:
        record = self._records.load().get(payment_request)
        if record is None:
            return None
        return _decode(self._records.path, payment_request, record, Invoice.from_dict)

    def all(self) -> list[Invoice]:
        return [
            _decode(self._records.path, pr, record, Invoice.from_dict)
            for pr, record in self._records.load().items()
        ]


PendingKind = Literal["mint", "send", "receive"]


@dataclass
class PendingSpend:
    """Mint call whose outputs are not yet durable.

    ``inputs`` are the secrets of our own proofs consumed by the call (empty
    for mint and receive).
    """

    kind: PendingKind
    outputs: BlindedMessageBatch
    keyset_id: str
    inputs: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "inputs": list(self.inputs),
            "outputs": self.outputs.to_dict(),
            "keyset_id": self.keyset_id,
            "created": self.created,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingSpend:
        if data["kind"] not in ("mint", "send", "receive"):
            raise ValueError(f"Unknown pending kind {data['kind']!r}")
        return cls(
            id=str(data["id"]),
            kind=data["kind"],
            inputs=[str(s) for s in data["inputs"]],
            outputs=BlindedMessageBatch.from_dict(data["outputs"]),
            keyset_id=str(data["keyset_id"]),
            created=int(data["created"]),
        )


class SpendJournal:
    """Write-ahead log of mint calls in flight."""

    def __init__(self, path: Path) -> None:
        self._records = JsonRecordStore(path)

    def begin(self, entry: PendingSpend) -> PendingSpend:
        self._records.update(lambda records: records.__setitem__(entry.id, entry.to_dict()))
        logger.debug("Journaled pending %s %s", entry.kind, entry.id)
        return entry

    def finish(self, entry_id: str) -> None:
        self._records.update(lambda records: records.pop(entry_id, None))
        logger.debug("Cleared pending entry %s", entry_id)

    def pending(self) -> list[PendingSpend]:
        return [
            _decode(self._records.path, entry_id, record, PendingSpend.from_dict)
            for entry_id, record in self._records.load().items()
        ]
