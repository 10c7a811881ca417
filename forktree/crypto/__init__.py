# Hashing, key management and signatures

from .hash import sha256, double_sha256, hash256
from .keys import PrivateKey, PublicKey, KeyPair, decode_address

__all__ = [
    # Hash functions
    'sha256',
    'double_sha256',
    'hash256',
    # Key management
    'PrivateKey',
    'PublicKey',
    'KeyPair',
    'decode_address',
]
