"""
Tests for Key Operations
========================

Tests cover:
- Private key generation (random and from bytes)
- Public key serialization and parsing
- Deterministic ECDSA signing and verification
- Address derivation and decoding
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from forktree.crypto import KeyPair, PrivateKey, PublicKey, decode_address


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def deterministic_key():
    """A private key from known bytes for reproducible tests."""
    return PrivateKey(bytes(range(1, 33)))


@pytest.fixture
def keypair():
    """A randomly generated key pair."""
    return KeyPair.generate()


# ---------------------------------------------------------------------------
# PrivateKey Tests
# ---------------------------------------------------------------------------

class TestPrivateKey:
    """Tests for the PrivateKey class."""

    def test_generate_is_random(self):
        """Two generated keys should (almost certainly) be different."""
        assert PrivateKey.generate().to_bytes() != PrivateKey.generate().to_bytes()

    def test_from_bytes_wrong_length(self):
        """Creating a key with wrong-length bytes should raise ValueError."""
        with pytest.raises(ValueError):
            PrivateKey(b"\x01" * 31)

    def test_hex_round_trip(self, deterministic_key):
        """from_hex should reconstruct the same key."""
        assert PrivateKey.from_hex(deterministic_key.to_hex()) == deterministic_key

    def test_signing_is_deterministic(self, deterministic_key):
        """Signing the same message twice gives the same signature."""
        assert deterministic_key.sign(b"message") == deterministic_key.sign(b"message")

    def test_repr_hides_key(self, deterministic_key):
        """repr should not contain the full key."""
        assert deterministic_key.to_hex() not in repr(deterministic_key)


# ---------------------------------------------------------------------------
# PublicKey Tests
# ---------------------------------------------------------------------------

class TestPublicKey:
    """Tests for the PublicKey class."""

    def test_verify_valid_signature(self, deterministic_key):
        """A signature by the matching private key verifies."""
        signature = deterministic_key.sign(b"spend")
        assert deterministic_key.public_key.verify(b"spend", signature) is True

    def test_verify_wrong_message(self, deterministic_key):
        """A signature does not verify for a different message."""
        signature = deterministic_key.sign(b"spend")
        assert deterministic_key.public_key.verify(b"other", signature) is False

    def test_verify_wrong_key(self, deterministic_key):
        """A signature does not verify under another public key."""
        signature = deterministic_key.sign(b"spend")
        other = PrivateKey(b"\x07" * 32).public_key
        assert other.verify(b"spend", signature) is False

    def test_verify_garbage_signature(self, deterministic_key):
        """Malformed signature bytes verify as False instead of raising."""
        assert deterministic_key.public_key.verify(b"spend", b"\x00\x01\x02") is False

    def test_compressed_round_trip(self, deterministic_key):
        """A compressed encoding parses back to the same key."""
        public_key = deterministic_key.public_key
        data = public_key.to_bytes(compressed=True)
        assert len(data) == 33
        assert PublicKey.from_bytes(data) == public_key

    def test_uncompressed_round_trip(self, deterministic_key):
        """An uncompressed encoding parses back to the same key."""
        public_key = deterministic_key.public_key
        data = public_key.to_bytes(compressed=False)
        assert len(data) == 65
        assert PublicKey.from_bytes(data) == public_key

    def test_from_bytes_bad_length(self):
        """Unrecognized encodings raise ValueError."""
        with pytest.raises(ValueError):
            PublicKey.from_bytes(b"\x02" * 10)

    def test_from_bytes_point_not_on_curve(self):
        """Coordinates off the curve raise ValueError."""
        with pytest.raises(ValueError):
            PublicKey.from_bytes(b"\x04" + b"\x01" * 64)


# ---------------------------------------------------------------------------
# Address Tests
# ---------------------------------------------------------------------------

class TestAddress:
    """Tests for address derivation."""

    def test_address_starts_with_one(self, keypair):
        """Version byte 0x00 yields addresses starting with '1'."""
        assert keypair.address.startswith("1")

    def test_address_is_stable(self, deterministic_key):
        """The same key always yields the same address."""
        assert deterministic_key.public_key.to_address() == deterministic_key.public_key.to_address()

    def test_decode_address(self, keypair):
        """decode_address returns a 20-byte fingerprint."""
        assert len(decode_address(keypair.address)) == 20

    def test_decode_address_bad_checksum(self, keypair):
        """A corrupted address fails the checksum."""
        last = keypair.address[-1]
        corrupted = keypair.address[:-1] + ("2" if last != "2" else "3")
        with pytest.raises(ValueError):
            decode_address(corrupted)

    def test_keypair_pubkey_is_compressed_hex(self, keypair):
        """KeyPair.pubkey is the 66-character compressed hex encoding."""
        assert len(keypair.pubkey) == 66
        assert keypair.pubkey == keypair.public_key.to_hex()
