"""
Minimal SCALE encoder for building extrinsics.

Only the encodings the harness needs: fixed width little-endian integers,
compact integers, length-prefixed byte vectors and strings, and the
concatenation rule for tuples and structs. No decoding.
"""

import hashlib

# Compact encoding mode boundaries
COMPACT_SINGLE_BYTE_MAX = (1 << 6) - 1
COMPACT_TWO_BYTE_MAX = (1 << 14) - 1
COMPACT_FOUR_BYTE_MAX = (1 << 30) - 1
COMPACT_BIG_MAX = (1 << 536) - 1


def _uint(value: int, width: int) -> bytes:
    if value < 0 or value >= 1 << (8 * width):
        raise ValueError(f"{value} does not fit in u{8 * width}")
    return value.to_bytes(width, "little")


def u8(value: int) -> bytes:
    return _uint(value, 1)


def u16(value: int) -> bytes:
    return _uint(value, 2)


def u32(value: int) -> bytes:
    return _uint(value, 4)


def u64(value: int) -> bytes:
    return _uint(value, 8)


def compact(value: int) -> bytes:
    """
    Encode a non-negative integer in SCALE compact form.

    Modes (two low bits of the first byte):
    - 0b00: single byte, value < 2**6
    - 0b01: two bytes, value < 2**14
    - 0b10: four bytes, value < 2**30
    - 0b11: big integer, first byte holds (byte length - 4)
    """
    if value < 0:
        raise ValueError(f"compact encoding of negative value {value}")
    if value <= COMPACT_SINGLE_BYTE_MAX:
        return bytes([value << 2])
    if value <= COMPACT_TWO_BYTE_MAX:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value <= COMPACT_FOUR_BYTE_MAX:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    if value > COMPACT_BIG_MAX:
        raise ValueError(f"{value} is too large for compact encoding")

    length = max(4, (value.bit_length() + 7) // 8)
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def vec(data: bytes) -> bytes:
    """`Vec<u8>`: compact length prefix followed by the raw bytes."""
    return compact(len(data)) + data


def text(value: str) -> bytes:
    return vec(value.encode())


def fixed(data: bytes, length: int) -> bytes:
    """`[u8; N]`: no prefix, length is checked."""
    if len(data) != length:
        raise ValueError(f"expected {length} bytes, got {len(data)}")
    return data


def hex_to_bytes(value: str, length: int | None = None) -> bytes:
    """Decode a `0x`-prefixed hex string, optionally checking its byte length."""
    if not value.startswith("0x"):
        raise ValueError(f"expected 0x-prefixed hex, got {value!r}")
    data = bytes.fromhex(value[2:])
    if length is not None:
        fixed(data, length)
    return data


def blake2_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()
