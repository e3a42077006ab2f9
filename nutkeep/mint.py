"""
Cashu Mint API client wrapper."""

from __future__ import annotations

import logging
from typing import Any, TypedDict, cast

import httpx

from .types import (
    BlindedMessage,
    BlindedSignature,
    CurrencyUnit,
    KeySet,
    NetworkError,
    Proof,
    ProtocolError,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Mint API client
# ──────────────────────────────────────────────────────────────────────────────


class MintInvoice(TypedDict):
    """Result of requesting an invoice from the mint."""

    payment_request: str
    hash: str  # quote id


class KeysetInfo(TypedDict, total=False):
    """Entry of GET /v1/keysets."""

    id: str
    unit: CurrencyUnit
    active: bool
    input_fee_ppk: int


class RestoreResult(TypedDict):
    """Response of POST /v1/restore: parallel outputs and signatures."""

    outputs: list[BlindedMessage]
    signatures: list[BlindedSignature]


class Mint:
    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None) -> None:
        # Normalize URL by removing trailing slashes
        self.url = url.rstrip("/")
        self.client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make HTTP request to mint."""
        logger.debug("%s %s%s", method, self.url, path)
        try:
            response = await self.client.request(method, f"{self.url}{path}", json=json)
        except httpx.HTTPError as e:
            raise NetworkError(f"Could not reach mint {self.url}: {e}") from e

        if response.status_code >= 400:
            raise ProtocolError(
                f"Mint returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Mint returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolError("Mint response must be a JSON object")
        return data

    # ───────────────────────── Keys ─────────────────────────────────

    async def get_keysets(self) -> list[KeysetInfo]:
        """All keysets known to the mint (GET /v1/keysets)."""
        response = await self._request("GET", "/v1/keysets")
        keysets = response.get("keysets")
        if not isinstance(keysets, list) or not all(
            isinstance(ks, dict) and isinstance(ks.get("id"), str) for ks in keysets
        ):
            raise ProtocolError("Malformed keysets response")
        return cast(list[KeysetInfo], keysets)

    async def get_keys(self, keyset_id: str) -> KeySet:
        """Public keys of one keyset (GET /v1/keys/{id})."""
        if not _is_hex(keyset_id):
            raise ProtocolError(f"Keyset id must be hex, got {keyset_id!r}")
        response = await self._request("GET", f"/v1/keys/{keyset_id}")
        try:
            keyset = response["keysets"][0]
            keys = {int(amount): pubkey for amount, pubkey in keyset["keys"].items()}
            unit = keyset["unit"]
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ProtocolError(f"Malformed keys response: {e}") from e

        for amount, pubkey in keys.items():
            if amount <= 0 or not _is_valid_compressed_pubkey(pubkey):
                raise ProtocolError(f"Invalid key for amount {amount} in keyset {keyset_id}")

        return KeySet(id=keyset_id, unit=unit, keys=keys)

    # ───────────────────────── Minting ─────────────────────────────────

    async def request_invoice(self, amount: int, unit: CurrencyUnit = "sat") -> MintInvoice:
        """Request a Lightning invoice to mint tokens."""
        response = await self._request(
            "POST", "/v1/mint/quote/bolt11", json={"unit": unit, "amount": amount}
        )
        quote, request = response.get("quote"), response.get("request")
        if not isinstance(quote, str) or not isinstance(request, str):
            raise ProtocolError("Mint quote response missing 'quote' or 'request'")
        return MintInvoice(payment_request=request, hash=quote)

    async def redeem(
        self, outputs: list[BlindedMessage], hash: str
    ) -> list[BlindedSignature]:
        """Mint tokens for a paid invoice."""
        response = await self._request(
            "POST", "/v1/mint/bolt11", json={"quote": hash, "outputs": outputs}
        )
        return _signatures(response, "signatures")

    # ───────────────────────── Token Management ─────────────────────────────────

    async def split(
        self, inputs: list[Proof], outputs: list[BlindedMessage]
    ) -> list[BlindedSignature]:
        """Swap proofs for new blinded signatures."""
        response = await self._request(
            "POST", "/v1/swap", json={"inputs": inputs, "outputs": outputs}
        )
        return _signatures(response, "signatures")

    async def restore(self, outputs: list[BlindedMessage]) -> RestoreResult:
        """Ask for signatures the mint already issued for ``outputs`` (NUT-09)."""
        response = await self._request("POST", "/v1/restore", json={"outputs": outputs})
        restored = response.get("outputs", [])
        if not isinstance(restored, list) or not all(
            isinstance(o, dict) and isinstance(o.get("B_"), str) for o in restored
        ):
            raise ProtocolError("Malformed restore outputs")
        # older mints answer with 'promises'
        key = "signatures" if "signatures" in response else "promises"
        signatures = _signatures(response, key) if key in response else []
        if len(signatures) != len(restored):
            raise ProtocolError("Restore outputs and signatures differ in length")
        return RestoreResult(
            outputs=cast(list[BlindedMessage], restored), signatures=signatures
        )


def _signatures(response: dict[str, Any], key: str) -> list[BlindedSignature]:
    signatures = response.get(key)
    if not isinstance(signatures, list):
        raise ProtocolError(f"Mint response missing '{key}'")
    for i, sig in enumerate(signatures):
        if not (
            isinstance(sig, dict)
            and isinstance(sig.get("amount"), int)
            and isinstance(sig.get("C_"), str)
            and _is_hex(sig.get("id"))
        ):
            raise ProtocolError(f"Malformed blinded signature at index {i}")
    return cast(list[BlindedSignature], signatures)


def _is_hex(value: Any) -> bool:
    if not isinstance(value, str) or not value or len(value) % 2:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


def _is_valid_compressed_pubkey(pubkey: Any) -> bool:
    """Compressed secp256k1 pubkeys are 33 bytes (66 hex chars) starting 02/03."""
    if not isinstance(pubkey, str) or len(pubkey) != 66:
        return False
    if not pubkey.startswith(("02", "03")):
        return False
    try:
        bytes.fromhex(pubkey)
    except ValueError:
        return False
    return True
