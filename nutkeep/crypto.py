"""Cashu cryptographic primitives for BDHKE (Blind Diffie-Hellmann Key Exchange)."""

from __future__ import annotations

import hashlib
import secrets

from coincurve import PrivateKey, PublicKey

from .types import (
    BlindedMessageBatch,
    BlindedSignature,
    KeySet,
    Proof,
    ProtocolError,
)

DOMAIN_SEPARATOR = b"Secp256k1_HashToCurve_Cashu_"

# secp256k1 group order
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def hash_to_curve(message: bytes) -> PublicKey:
    """Hash a message to a point on the secp256k1 curve (NUT-00).

    The message is hashed together with the Cashu domain separator, then a
    little-endian counter is appended until the digest, prefixed with 0x02,
    is a valid compressed point.
    """
    msg_to_hash = hashlib.sha256(DOMAIN_SEPARATOR + message).digest()
    counter = 0
    while counter < 2**16:
        digest = hashlib.sha256(msg_to_hash + counter.to_bytes(4, "little")).digest()
        try:
            return PublicKey(b"\x02" + digest)
        except ValueError:
            counter += 1
    raise ValueError("No valid point found")


def blind_message(secret: str, r: bytes | None = None) -> tuple[PublicKey, bytes]:
    """Blind a message for the mint.

    Args:
        secret: The secret string to blind
        r: Optional blinding factor (will be generated if not provided)

    Returns:
        Tuple of (blinded_point, blinding_factor)
    """
    Y = hash_to_curve(secret.encode("utf-8"))

    if r is None:
        r = PrivateKey().secret

    # B' = Y + r*G
    B_ = PublicKey.combine_keys([Y, PrivateKey(r).public_key])
    return B_, r


def unblind_signature(C_: PublicKey, r: bytes, K: PublicKey) -> PublicKey:
    """Unblind a signature from the mint.

    Args:
        C_: Blinded signature from mint
        r: Blinding factor used
        K: Mint's public key for the output amount

    Returns:
        Unblinded signature C = C' - r*K
    """
    neg_r = (CURVE_ORDER - int.from_bytes(r, "big")) % CURVE_ORDER
    neg_rK = K.multiply(neg_r.to_bytes(32, "big"))
    return PublicKey.combine_keys([C_, neg_rK])


def random_secret() -> str:
    """Fresh 32-byte hex secret for a new output."""
    return secrets.token_hex(32)


def create_blinded_messages(amounts: list[int]) -> BlindedMessageBatch:
    """Blind one fresh random secret per amount, keeping input order."""
    batch = BlindedMessageBatch()
    for amount in amounts:
        secret = random_secret()
        B_, r = blind_message(secret)
        batch.amounts.append(amount)
        batch.secrets.append(secret)
        batch.blinding_factors.append(r.hex())
        batch.blinded_points.append(B_.format(compressed=True).hex())
    return batch


def construct_proofs(
    promises: list[BlindedSignature],
    batch: BlindedMessageBatch,
    keyset: KeySet,
) -> list[Proof]:
    """Turn the mint's promises into proofs.

    Promise ``i`` answers output ``i`` of ``batch``; a count or amount
    mismatch means the mint broke that pairing and is a protocol error.
    """
    if len(promises) != len(batch):
        raise ProtocolError(
            f"Mint returned {len(promises)} signatures for {len(batch)} outputs"
        )

    proofs: list[Proof] = []
    for i, promise in enumerate(promises):
        amount = promise["amount"]
        if amount != batch.amounts[i]:
            raise ProtocolError(
                f"Signature {i} is for amount {amount}, expected {batch.amounts[i]}"
            )
        if promise.get("id", keyset.id) != keyset.id:
            raise ProtocolError(
                f"Signature {i} is from keyset {promise['id']}, expected {keyset.id}"
            )
        K = PublicKey(bytes.fromhex(keyset.pubkey_for(amount)))
        try:
            C_ = PublicKey(bytes.fromhex(promise["C_"]))
        except ValueError as e:
            raise ProtocolError(f"Invalid blinded signature at index {i}: {e}") from e
        C = unblind_signature(C_, bytes.fromhex(batch.blinding_factors[i]), K)
        proofs.append(
            Proof(
                id=keyset.id,
                amount=amount,
                secret=batch.secrets[i],
                C=C.format(compressed=True).hex(),
            )
        )
    return proofs
