"""Signed variable-length integer codec for stored playtime values.

Values are zigzag-encoded and written seven bits at a time, least significant
group first, with the high bit set on every byte except the last. This is the
layout of Go's ``binary.PutVarint``, so stores written by the older bot can be
read back unchanged.
"""

from __future__ import annotations

from .errors import DecodeError

MAX_VARINT_LEN64 = 10

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
_UINT64_MASK = (1 << 64) - 1


def encode_varint(value: int) -> bytes:
    """Encode a signed 64-bit integer."""
    if not INT64_MIN <= value <= INT64_MAX:
        raise OverflowError(f"{value} does not fit in a signed 64-bit varint")
    zigzag = ((value << 1) ^ (value >> 63)) & _UINT64_MASK
    out = bytearray()
    while zigzag >= 0x80:
        out.append((zigzag & 0x7F) | 0x80)
        zigzag >>= 7
    out.append(zigzag)
    return bytes(out)


def decode_varint(data: bytes) -> int:
    """Decode a value written by :func:`encode_varint`.

    The whole buffer must hold exactly one varint; anything else raises
    :class:`DecodeError`.
    """
    if not data:
        raise DecodeError("empty varint")
    zigzag = 0
    shift = 0
    for index, byte in enumerate(data):
        if index == MAX_VARINT_LEN64 - 1 and byte > 1:
            raise DecodeError("varint overflows 64 bits")
        zigzag |= (byte & 0x7F) << shift
        if byte < 0x80:
            if index != len(data) - 1:
                raise DecodeError(
                    f"{len(data) - index - 1} trailing byte(s) after varint"
                )
            return (zigzag >> 1) ^ -(zigzag & 1)
        shift += 7
    raise DecodeError("truncated varint")
