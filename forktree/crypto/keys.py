"""
ECDSA Keys, Signing, and Addresses
===================================

Ownership of an unspent output is expressed by a secp256k1 public key: each
``TransactionOutput`` names the compressed public key of its recipient, and a
transaction that spends the output must carry a signature made with the
matching private key.

- **PrivateKey**: 256-bit secret scalar. Signs the double SHA-256 digest of a
  message and returns a DER-encoded signature. Signing is deterministic
  (RFC 6979), so signing the same transaction twice yields the same txid.

- **PublicKey**: curve point derived from the private key. Verifies
  signatures and serializes to the 33-byte compressed form used in outputs.

- **Addresses**: a short, checksummed, human-readable label for a public key:
  Base58Check(version || first 20 bytes of double-SHA-256(compressed pubkey)).
  Addresses are for display only; outputs are locked to the full public key.
"""

import hashlib

import base58
import ecdsa
from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.der import UnexpectedDER
from ecdsa.errors import MalformedPointError
from ecdsa.util import sigencode_der, sigdecode_der

from .hash import double_sha256


ADDRESS_VERSION = b'\x00'


# =============================================================================
# Internal Helper Functions
# =============================================================================

def _base58check_encode(version: bytes, payload: bytes) -> str:
    """
    Encode data with Base58Check.

    The checksum (first 4 bytes of double-SHA-256 of version + payload)
    detects typos in manually transcribed addresses.

    Args:
        version: The version byte(s) identifying the data type.
        payload: The data to encode.

    Returns:
        The Base58Check-encoded string.
    """
    data = version + payload
    checksum = double_sha256(data)[:4]
    return base58.b58encode(data + checksum).decode('ascii')


def _base58check_decode(encoded: str) -> tuple:
    """
    Decode a Base58Check-encoded string.

    Args:
        encoded: The Base58Check-encoded string to decode.

    Returns:
        A tuple of (version_bytes, payload_bytes).

    Raises:
        ValueError: If the checksum does not match.
    """
    decoded = base58.b58decode(encoded)
    payload = decoded[:-4]
    checksum = decoded[-4:]
    if checksum != double_sha256(payload)[:4]:
        raise ValueError("Invalid Base58Check checksum")
    return payload[0:1], payload[1:]


def decode_address(address: str) -> bytes:
    """
    Return the 20-byte key fingerprint encoded in *address*.

    Raises:
        ValueError: If the checksum or version byte is wrong.
    """
    version, payload = _base58check_decode(address)
    if version != ADDRESS_VERSION:
        raise ValueError(f"Unexpected address version byte 0x{version.hex()}")
    return payload


# =============================================================================
# PublicKey Class
# =============================================================================

class PublicKey:
    """
    A secp256k1 public key.

    Serialized either as 65 uncompressed bytes (0x04 || x || y) or as 33
    compressed bytes (0x02/0x03 || x). Outputs always carry the compressed
    form, hex-encoded.
    """

    def __init__(self, key: VerifyingKey):
        """
        Initialize a PublicKey from an ecdsa VerifyingKey.

        Args:
            key: An ecdsa.VerifyingKey instance on the SECP256k1 curve.
        """
        self._key = key

    def verify(self, message: bytes, signature: bytes) -> bool:
        """
        Verify a DER-encoded signature over the double SHA-256 of *message*.

        Args:
            message: The original message bytes.
            signature: The DER-encoded ECDSA signature.

        Returns:
            True if the signature is valid, False otherwise.
        """
        try:
            message_hash = double_sha256(message)
            return self._key.verify_digest(signature, message_hash, sigdecode=sigdecode_der)
        except (ecdsa.BadSignatureError, ecdsa.BadDigestError, UnexpectedDER):
            return False

    def to_bytes(self, compressed: bool = True) -> bytes:
        """
        Serialize the public key to bytes.

        Args:
            compressed: If True (default), return the 33-byte compressed
                format; otherwise the 65-byte uncompressed format.

        Returns:
            The serialized public key bytes.
        """
        raw = self._key.to_string()
        x = raw[:32]
        y = raw[32:]

        if not compressed:
            return b'\x04' + x + y

        if y[-1] % 2 == 0:
            return b'\x02' + x
        return b'\x03' + x

    def to_hex(self, compressed: bool = True) -> str:
        """Serialize the public key to a lowercase hex string."""
        return self.to_bytes(compressed).hex()

    def to_address(self) -> str:
        """
        Derive the display address of this public key.

        Returns:
            The Base58Check-encoded address string.
        """
        fingerprint = double_sha256(self.to_bytes(compressed=True))[:20]
        return _base58check_encode(ADDRESS_VERSION, fingerprint)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'PublicKey':
        """
        Deserialize a public key from compressed or uncompressed bytes.

        Args:
            data: The serialized public key bytes.

        Returns:
            A PublicKey instance.

        Raises:
            ValueError: If the data is not a valid encoded curve point.
        """
        if len(data) == 65 and data[0] == 0x04:
            encoding = data[1:]
        elif len(data) == 33 and data[0] in (0x02, 0x03):
            encoding = data
        else:
            raise ValueError(
                f"Invalid public key format: expected 33 (compressed) or 65 "
                f"(uncompressed) bytes, got {len(data)} bytes"
            )
        try:
            key = VerifyingKey.from_string(encoding, curve=SECP256k1)
        except MalformedPointError as e:
            raise ValueError(f"Invalid public key point: {e}") from e
        return cls(key)

    @classmethod
    def from_hex(cls, hex_string: str) -> 'PublicKey':
        """Deserialize a public key from its hex encoding."""
        return cls.from_bytes(bytes.fromhex(hex_string))

    def __repr__(self) -> str:
        return f"PublicKey({self.to_hex(compressed=True)})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.to_bytes(compressed=True) == other.to_bytes(compressed=True)

    def __hash__(self) -> int:
        return hash(self.to_bytes(compressed=True))


# =============================================================================
# PrivateKey Class
# =============================================================================

class PrivateKey:
    """
    A secp256k1 private key: a 32-byte scalar in [1, n-1].
    """

    def __init__(self, key_bytes: bytes = None):
        """
        Create a PrivateKey from raw bytes or generate a new random one.

        Args:
            key_bytes: Optional 32-byte private key. If None, a new random
                key is generated.

        Raises:
            ValueError: If key_bytes is provided but not exactly 32 bytes.
        """
        if key_bytes is not None:
            if len(key_bytes) != 32:
                raise ValueError(
                    f"Private key must be exactly 32 bytes, got {len(key_bytes)}"
                )
            self._key = SigningKey.from_string(key_bytes, curve=SECP256k1)
        else:
            self._key = SigningKey.generate(curve=SECP256k1)
        self._public_key = None

    @property
    def public_key(self) -> PublicKey:
        """The corresponding public key (computed once and cached)."""
        if self._public_key is None:
            self._public_key = PublicKey(self._key.get_verifying_key())
        return self._public_key

    def sign(self, message: bytes) -> bytes:
        """
        Sign the double SHA-256 digest of *message*.

        Args:
            message: The raw message bytes to sign.

        Returns:
            The DER-encoded ECDSA signature bytes.
        """
        message_hash = double_sha256(message)
        return self._key.sign_digest_deterministic(
            message_hash, hashfunc=hashlib.sha256, sigencode=sigencode_der,
        )

    def to_bytes(self) -> bytes:
        """Return the raw 32-byte private key."""
        return self._key.to_string()

    def to_hex(self) -> str:
        """Return the private key as a lowercase hex string."""
        return self.to_bytes().hex()

    @classmethod
    def from_hex(cls, hex_string: str) -> 'PrivateKey':
        """
        Create a PrivateKey from a hexadecimal string.

        Raises:
            ValueError: If the hex string is invalid or wrong length.
        """
        return cls(bytes.fromhex(hex_string))

    @classmethod
    def generate(cls) -> 'PrivateKey':
        """Generate a new random private key."""
        return cls()

    def __repr__(self) -> str:
        # Partial fingerprint only
        hex_str = self.to_hex()
        return f"PrivateKey({hex_str[:8]}...{hex_str[-8:]})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())


# =============================================================================
# KeyPair Class
# =============================================================================

class KeyPair:
    """
    A matched private key, public key, and display address.

    ``pubkey`` is the hex-encoded compressed public key, the form that
    ``TransactionOutput`` expects.
    """

    def __init__(self, private_key: PrivateKey, public_key: PublicKey, address: str):
        self.private_key = private_key
        self.public_key = public_key
        self.address = address

    @property
    def pubkey(self) -> str:
        return self.public_key.to_hex(compressed=True)

    @classmethod
    def generate(cls) -> 'KeyPair':
        """Generate a fresh key pair and its address."""
        private_key = PrivateKey.generate()
        public_key = private_key.public_key
        return cls(private_key, public_key, public_key.to_address())

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address})"
