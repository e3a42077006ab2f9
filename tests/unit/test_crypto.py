"""Unit tests for the BDHKE primitives."""

import pytest
from coincurve import PrivateKey, PublicKey

from nutkeep.crypto import (
    blind_message,
    construct_proofs,
    create_blinded_messages,
    hash_to_curve,
    unblind_signature,
)
from nutkeep.types import BlindedSignature, KeySet, ProtocolError


class TestHashToCurve:
    def test_known_vector(self):
        point = hash_to_curve(bytes(32))
        assert (
            point.format(compressed=True).hex()
            == "024cce997d3b518f739663b757deaec95bcd9473c30a14ac2fd04023a739d1a725"
        )

    def test_deterministic(self):
        assert hash_to_curve(b"secret").format() == hash_to_curve(b"secret").format()
        assert hash_to_curve(b"secret").format() != hash_to_curve(b"other").format()


class TestBlindUnblind:
    def test_unblinded_signature_equals_k_times_y(self):
        k = PrivateKey()
        secret = "a" * 64

        B_, r = blind_message(secret)
        C_ = B_.multiply(k.secret)
        C = unblind_signature(C_, r, k.public_key)

        expected = hash_to_curve(secret.encode("utf-8")).multiply(k.secret)
        assert C.format() == expected.format()

    def test_fixed_blinding_factor_is_deterministic(self):
        r = bytes.fromhex("00" * 31 + "01")
        B1, _ = blind_message("test_message", r)
        B2, _ = blind_message("test_message", r)
        assert B1.format() == B2.format()

    def test_fresh_secrets_per_output(self):
        batch = create_blinded_messages([1, 1, 2])
        assert batch.amounts == [1, 1, 2]
        assert len(set(batch.secrets)) == 3
        assert len(set(batch.blinding_factors)) == 3
        assert len(set(batch.blinded_points)) == 3


class TestConstructProofs:
    @pytest.fixture
    def mint_key(self):
        return {1: PrivateKey(), 2: PrivateKey()}

    @pytest.fixture
    def keyset(self, mint_key):
        return KeySet(
            id="00aabbccddeeff00",
            unit="sat",
            keys={a: k.public_key.format().hex() for a, k in mint_key.items()},
        )

    def sign(self, batch, mint_key):
        return [
            BlindedSignature(
                amount=amount,
                C_=bytes_point(B_, mint_key[amount]),
                id="00aabbccddeeff00",
            )
            for amount, B_ in zip(batch.amounts, batch.blinded_points)
        ]

    def test_pairs_promises_by_position(self, keyset, mint_key):
        batch = create_blinded_messages([1, 2, 1])
        proofs = construct_proofs(self.sign(batch, mint_key), batch, keyset)

        assert [p["secret"] for p in proofs] == batch.secrets
        assert [p["amount"] for p in proofs] == [1, 2, 1]
        for proof in proofs:
            k = mint_key[proof["amount"]]
            expected = hash_to_curve(proof["secret"].encode()).multiply(k.secret)
            assert proof["C"] == expected.format().hex()

    def test_count_mismatch(self, keyset, mint_key):
        batch = create_blinded_messages([1, 2])
        promises = self.sign(batch, mint_key)[:1]
        with pytest.raises(ProtocolError):
            construct_proofs(promises, batch, keyset)

    def test_amount_mismatch(self, keyset, mint_key):
        batch = create_blinded_messages([1, 2])
        promises = list(reversed(self.sign(batch, mint_key)))
        with pytest.raises(ProtocolError):
            construct_proofs(promises, batch, keyset)

    def test_foreign_keyset_id(self, keyset, mint_key):
        batch = create_blinded_messages([1])
        promises = self.sign(batch, mint_key)
        promises[0]["id"] = "00ffffffffffffff"
        with pytest.raises(ProtocolError):
            construct_proofs(promises, batch, keyset)

    def test_unknown_amount(self, keyset, mint_key):
        batch = create_blinded_messages([4])
        promises = [BlindedSignature(amount=4, C_=batch.blinded_points[0], id="x")]
        with pytest.raises(ProtocolError):
            construct_proofs(promises, batch, keyset)


def bytes_point(B_hex: str, k: PrivateKey) -> str:
    return PublicKey(bytes.fromhex(B_hex)).multiply(k.secret).format().hex()
