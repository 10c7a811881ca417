"""
Binary encoding helpers.

Transactions and blocks are hashed over a compact binary serialization:

- Fixed-width integers are little-endian.
- Counts and byte-string lengths use a variable-length integer (varint)
  prefix.

Only the encoding direction is needed: nothing in the package parses
serialized data back, the bytes exist to be hashed and signed.
"""


def int_to_little_endian(value: int, length: int, signed: bool = False) -> bytes:
    """
    Encode an integer as little-endian bytes of the specified length.

    Args:
        value: Integer to encode.
        length: Number of bytes in the output.
        signed: Use two's complement so negative values can be encoded.

    Returns:
        Little-endian encoded bytes.

    Example:
        >>> int_to_little_endian(1, 4)
        b'\\x01\\x00\\x00\\x00'
    """
    return value.to_bytes(length, byteorder='little', signed=signed)


def encode_varint(value: int) -> bytes:
    """
    Encode a non-negative integer as a varint.

    Encoding rules:
    - 0x00-0xfc:          1 byte  (the value itself)
    - 0xfd-0xffff:        3 bytes (0xfd prefix + 2-byte little-endian)
    - 0x10000-0xffffffff: 5 bytes (0xfe prefix + 4-byte little-endian)
    - Larger:             9 bytes (0xff prefix + 8-byte little-endian)

    Raises:
        ValueError: If value is negative.

    Example:
        >>> encode_varint(252).hex()
        'fc'
        >>> encode_varint(255).hex()
        'fdff00'
    """
    if value < 0:
        raise ValueError(f"Varint value must be non-negative, got {value}")

    if value < 0xfd:
        return bytes([value])
    elif value <= 0xffff:
        return b'\xfd' + int_to_little_endian(value, 2)
    elif value <= 0xffffffff:
        return b'\xfe' + int_to_little_endian(value, 4)
    else:
        return b'\xff' + int_to_little_endian(value, 8)


def encode_bytes(data: bytes) -> bytes:
    """Prefix *data* with its varint-encoded length."""
    return encode_varint(len(data)) + data
