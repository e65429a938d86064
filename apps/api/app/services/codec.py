"""Little-endian pack/unpack helpers for the RTC access token wire format.

Every field is unsigned: uint16 for lengths, counts and privilege keys, uint32
for salts and timestamps. The signature covers the exact bytes produced here,
so encoding must stay deterministic.
"""
from __future__ import annotations

import struct
from collections.abc import Mapping

UINT16_MAX = 0xFFFF
UINT32_MAX = 0xFFFFFFFF

_UINT16 = struct.Struct("<H")
_UINT32 = struct.Struct("<I")


def encode_uint16(value: int) -> bytes:
    if not 0 <= value <= UINT16_MAX:
        raise ValueError(f"uint16 out of range: {value}")
    return _UINT16.pack(value)


def encode_uint32(value: int) -> bytes:
    if not 0 <= value <= UINT32_MAX:
        raise ValueError(f"uint32 out of range: {value}")
    return _UINT32.pack(value)


def encode_string(value: str) -> bytes:
    """Encode a string as a uint16 byte length followed by its UTF-8 bytes."""

    raw = value.encode("utf-8")
    return encode_uint16(len(raw)) + raw


def encode_map_uint32(values: Mapping[int, int]) -> bytes:
    """Encode a uint16 -> uint32 map as a count followed by entries in insertion order."""

    out = bytearray(encode_uint16(len(values)))
    for key, value in values.items():
        out += encode_uint16(key)
        out += encode_uint32(value)
    return bytes(out)


def decode_uint16(buffer: bytes, offset: int = 0) -> tuple[int, int]:
    _require(buffer, offset, _UINT16.size)
    (value,) = _UINT16.unpack_from(buffer, offset)
    return value, offset + _UINT16.size


def decode_uint32(buffer: bytes, offset: int = 0) -> tuple[int, int]:
    _require(buffer, offset, _UINT32.size)
    (value,) = _UINT32.unpack_from(buffer, offset)
    return value, offset + _UINT32.size


def decode_string(buffer: bytes, offset: int = 0) -> tuple[str, int]:
    length, offset = decode_uint16(buffer, offset)
    _require(buffer, offset, length)
    end = offset + length
    return buffer[offset:end].decode("utf-8"), end


def decode_map_uint32(buffer: bytes, offset: int = 0) -> tuple[dict[int, int], int]:
    """Decode a map written by :func:`encode_map_uint32`, preserving entry order."""

    count, offset = decode_uint16(buffer, offset)
    values: dict[int, int] = {}
    for _ in range(count):
        key, offset = decode_uint16(buffer, offset)
        value, offset = decode_uint32(buffer, offset)
        values[key] = value
    return values, offset


def _require(buffer: bytes, offset: int, size: int) -> None:
    if offset < 0 or offset + size > len(buffer):
        raise ValueError("Buffer truncated")
