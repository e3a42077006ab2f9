"""Cashu token encoding: cashuA (V3, JSON) and cashuB (V4, CBOR)."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Literal, cast

import cbor2

from .types import CurrencyUnit, Proof, SerializationError, validate_proof


@dataclass
class Token:
    """Portable bundle of proofs from a single mint."""

    mint: str
    proofs: list[Proof]
    unit: CurrencyUnit = "sat"
    memo: str | None = None

    @property
    def amount(self) -> int:
        return sum(p["amount"] for p in self.proofs)

    @property
    def groups(self) -> dict[str, list[Proof]]:
        """Proofs grouped by keyset ID, in first-seen order."""
        grouped: dict[str, list[Proof]] = {}
        for proof in self.proofs:
            grouped.setdefault(proof["id"], []).append(proof)
        return grouped

    # ───────────────────────── Serialization ─────────────────────────────────

    def serialize(self, version: Literal[3, 4] = 4) -> str:
        if version == 3:
            return self._serialize_v3()
        elif version == 4:
            return self._serialize_v4()
        raise ValueError(f"Unsupported token version: {version}")

    def _serialize_v3(self) -> str:
        """CashuA token format: cashuA<base64url(json)>."""
        token_proofs = [
            {"id": p["id"], "amount": p["amount"], "secret": p["secret"], "C": p["C"]}
            for p in self.proofs
        ]
        token_data: dict[str, Any] = {
            "token": [{"mint": self.mint, "proofs": token_proofs}],
            "unit": self.unit,
        }
        if self.memo is not None:
            token_data["memo"] = self.memo
        json_str = json.dumps(token_data, separators=(",", ":"))
        encoded = base64.urlsafe_b64encode(json_str.encode()).decode().rstrip("=")
        return f"cashuA{encoded}"

    def _serialize_v4(self) -> str:
        """CashuB token format: cashuB<base64url(cbor)>, proofs grouped by keyset."""
        tokens = []
        for keyset_id, keyset_proofs in self.groups.items():
            tokens.append(
                {
                    "i": bytes.fromhex(keyset_id),
                    "p": [
                        {
                            "a": p["amount"],
                            "s": p["secret"],
                            "c": bytes.fromhex(p["C"]),
                        }
                        for p in keyset_proofs
                    ],
                }
            )

        token_data: dict[str, Any] = {"m": self.mint, "u": self.unit, "t": tokens}
        if self.memo is not None:
            token_data["d"] = self.memo

        cbor_bytes = cbor2.dumps(token_data)
        encoded = base64.urlsafe_b64encode(cbor_bytes).decode().rstrip("=")
        return f"cashuB{encoded}"

    # ───────────────────────── Parsing ─────────────────────────────────

    @classmethod
    def parse(cls, token: str) -> Token:
        """Parse a cashuA or cashuB token string.

        Raises:
            SerializationError: On any malformed input
        """
        token = token.strip()
        if token.startswith("cashu:"):
            token = token[len("cashu:") :]

        try:
            if token.startswith("cashuA"):
                parsed = cls._parse_v3(_b64decode(token[6:]))
            elif token.startswith("cashuB"):
                parsed = cls._parse_v4(_b64decode(token[6:]))
            else:
                raise SerializationError(f"Unknown token version: {token[:7]!r}")
        except SerializationError:
            raise
        except (ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
            raise SerializationError(f"Invalid token: {e}") from e
        except cbor2.CBORDecodeError as e:
            raise SerializationError(f"Invalid token: {e}") from e

        if not parsed.proofs:
            raise SerializationError("Token contains no proofs")
        return parsed

    @classmethod
    def _parse_v3(cls, raw: bytes) -> Token:
        token_data = json.loads(raw.decode())
        entries = token_data["token"]
        mints = {entry["mint"] for entry in entries}
        if len(mints) != 1:
            raise SerializationError("Tokens spanning several mints are not supported")

        proofs = [validate_proof(p) for entry in entries for p in entry["proofs"]]
        return cls(
            mint=mints.pop().rstrip("/"),
            proofs=proofs,
            unit=cast(CurrencyUnit, token_data.get("unit", "sat")),
            memo=token_data.get("memo"),
        )

    @classmethod
    def _parse_v4(cls, raw: bytes) -> Token:
        token_data = cbor2.loads(raw)
        proofs: list[Proof] = []
        # each entry in 't' has 'i' (keyset id bytes) and 'p' (proofs)
        for entry in token_data["t"]:
            keyset_id = entry["i"].hex()
            for p in entry["p"]:
                proofs.append(
                    validate_proof(
                        {"id": keyset_id, "amount": p["a"], "secret": p["s"], "C": p["c"].hex()}
                    )
                )
        return cls(
            mint=str(token_data["m"]).rstrip("/"),
            proofs=proofs,
            unit=cast(CurrencyUnit, token_data["u"]),
            memo=token_data.get("d"),
        )


def _b64decode(encoded: str) -> bytes:
    # add correct padding: (-len) % 4 equals 0,1,2,3
    encoded += "=" * ((-len(encoded)) % 4)
    return base64.urlsafe_b64decode(encoded)
