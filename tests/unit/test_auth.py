"""
Unit tests for signer authorization.

Tests cover:
1. Operation digests
2. Capability construction and verification
3. Seed encoding
"""

import pytest

from vendue.core.auth import (
    SignerAuthorization,
    authorize,
    encode_seed,
    operation_hash,
    sign_operation,
)
from vendue.crypto import keypair_from_seed, sha256


@pytest.fixture
def keypair():
    return keypair_from_seed(b"signer")


class TestOperationHash:
    """Tests for the operation digest."""

    def test_deterministic(self):
        assert operation_hash("place_bid", 7, 10, None) == operation_hash("place_bid", 7, 10, None)

    def test_binds_every_input(self):
        """Changing any component changes the digest."""
        base = operation_hash("place_bid", 7, 10, None)
        assert operation_hash("end_auction", 7, 10, None) != base
        assert operation_hash("place_bid", 8, 10, None) != base
        assert operation_hash("place_bid", 7, 11, None) != base
        assert operation_hash("place_bid", 7, 10, b"\x01" * 20) != base

    def test_field_shapes_do_not_collide(self):
        """None, empty bytes and zero are distinct fields."""
        digests = {
            operation_hash("op", 1, None),
            operation_hash("op", 1, b""),
            operation_hash("op", 1, 0),
            operation_hash("op", 1),
        }
        assert len(digests) == 4

    def test_unsupported_field_type(self):
        with pytest.raises(TypeError):
            operation_hash("op", 1, "text")
        with pytest.raises(TypeError):
            operation_hash("op", 1, True)


class TestSignerAuthorization:
    """Tests for the signer capability."""

    def test_sign_operation_verifies(self, keypair):
        auth = sign_operation(keypair, "place_bid", 7, 10, None)
        assert auth.address == keypair.address
        assert auth.verify()
        assert auth.verify(operation_hash("place_bid", 7, 10, None))

    def test_wrong_expected_hash(self, keypair):
        auth = sign_operation(keypair, "place_bid", 7, 10, None)
        assert not auth.verify(operation_hash("place_bid", 7, 999, None))

    def test_swapped_public_key_fails(self, keypair):
        """A signature presented under another key does not verify."""
        auth = sign_operation(keypair, "end_auction", 3)
        other = keypair_from_seed(b"other")
        forged = SignerAuthorization(other.public_key, auth.signature, auth.message_hash)
        assert not forged.verify()

    def test_malformed(self, keypair):
        auth = SignerAuthorization(keypair.public_key, b"\x00" * 10, sha256(b"x"))
        assert not auth.is_well_formed()
        assert not auth.verify()

    def test_authorize_raw_digest(self, keypair):
        digest = sha256(b"anything")
        assert authorize(keypair, digest).verify(digest)

    def test_repr_shows_address_only(self, keypair):
        auth = sign_operation(keypair, "end_auction", 3)
        assert keypair.address_hex in repr(auth)
        assert auth.signature.hex() not in repr(auth)


class TestSeedEncoding:
    """Tests for the derivation seed."""

    def test_little_endian_u64(self):
        assert encode_seed(1) == b"\x01" + bytes(7)
        assert encode_seed(7) == bytes([7, 0, 0, 0, 0, 0, 0, 0])
        assert len(encode_seed(2**64 - 1)) == 8

    def test_out_of_range(self):
        with pytest.raises(OverflowError):
            encode_seed(2**64)
