"""
Hash Functions
==============

The block tree identifies everything by hash:

- **Transaction ids** are the double SHA-256 of the serialized transaction,
  signatures included.
- **Block hashes** are the double SHA-256 of the previous block hash, the
  coinbase and every transaction in the block.
- **Signatures** are produced over the double SHA-256 digest of the data to
  sign (see ``forktree.crypto.keys``).

Hashes travel through the rest of the package as 64-character lowercase hex
strings, which keeps them usable as dictionary keys and readable in logs.
"""

import hashlib


def sha256(data: bytes) -> bytes:
    """
    Compute the SHA-256 hash of the input data.

    Args:
        data: The raw bytes to hash.

    Returns:
        The 32-byte SHA-256 digest.

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).digest()


def double_sha256(data: bytes) -> bytes:
    """
    Compute the double SHA-256 hash: SHA-256(SHA-256(data)).

    Used for transaction ids, block hashes and signature digests.

    Args:
        data: The raw bytes to hash.

    Returns:
        The 32-byte double-SHA-256 digest.

    Example:
        >>> double_sha256(b"hello").hex()
        '9595c9df90075148eb06860365df33584b75bff782a510c6cd4883a419833d50'
    """
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash256(data: bytes) -> str:
    """
    Compute the double SHA-256 hash and return it as a lowercase hex string.

    Args:
        data: The raw bytes to hash.

    Returns:
        The double-SHA-256 digest as a lowercase hex string (64 characters).

    Example:
        >>> hash256(b"hello")
        '9595c9df90075148eb06860365df33584b75bff782a510c6cd4883a419833d50'
    """
    return double_sha256(data).hex()
