from __future__ import annotations

import pytest

from playtime.errors import DecodeError
from playtime.varint import (
    INT64_MAX,
    INT64_MIN,
    MAX_VARINT_LEN64,
    decode_varint,
    encode_varint,
)


@pytest.mark.parametrize(
    ("value", "encoded"),
    [
        (0, b"\x00"),
        (-1, b"\x01"),
        (1, b"\x02"),
        (63, b"\x7e"),
        (-64, b"\x7f"),
        (64, b"\x80\x01"),
        (1_000_000_000, b"\x80\xa8\xd6\xb9\x07"),
    ],
)
def test_encoding_matches_go_putvarint(value: int, encoded: bytes) -> None:
    assert encode_varint(value) == encoded
    assert decode_varint(encoded) == value


def test_int64_bounds_use_ten_bytes() -> None:
    for value in (INT64_MIN, INT64_MAX):
        encoded = encode_varint(value)
        assert len(encoded) == MAX_VARINT_LEN64
        assert decode_varint(encoded) == value


def test_out_of_range_values_are_rejected() -> None:
    with pytest.raises(OverflowError):
        encode_varint(INT64_MAX + 1)
    with pytest.raises(OverflowError):
        encode_varint(INT64_MIN - 1)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\x80",
        b"\xff\xff",
        b"\x00\x00",
        b"\xff" * 9 + b"\x02",
        b"\xff" * 11,
    ],
    ids=["empty", "truncated", "unterminated", "trailing", "overflow", "too-long"],
)
def test_malformed_input_raises_decode_error(data: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_varint(data)
