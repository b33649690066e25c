"""Tests for ``lib.dbx_bytes`` helpers."""

from datetime import datetime, timezone

import pytest

from lib import dbx_bytes


def test_little_endian_readers() -> None:
    data = bytes(range(1, 17))
    assert dbx_bytes.read_uint16(data, 0) == 0x0201
    assert dbx_bytes.read_uint24(data, 0) == 0x030201
    assert dbx_bytes.read_uint32(data, 1) == 0x05040302
    assert dbx_bytes.read_uint64(data, 8) == 0x100F0E0D0C0B0A09
    assert dbx_bytes.read_uint32_array(data, 0, 2) == (0x04030201, 0x08070605)


def test_reads_past_end_raise_byte_range_error() -> None:
    with pytest.raises(dbx_bytes.ByteRangeError) as excinfo:
        dbx_bytes.read_uint32(b"\x00\x01\x02", 0)
    assert excinfo.value.width == 4
    assert excinfo.value.size == 3
    with pytest.raises(IndexError):
        dbx_bytes.read_uint24(b"\x00" * 4, 2)


def test_get_bit() -> None:
    assert dbx_bytes.get_bit(0x80, 7) is True
    assert dbx_bytes.get_bit(0x7F, 7) is False
    assert dbx_bytes.get_bit(0x01, 0) is True


def test_filetime_to_datetime() -> None:
    # 2001-01-01T00:00:00Z
    assert dbx_bytes.filetime_to_datetime(126227808000000000) == datetime(
        2001, 1, 1, tzinfo=timezone.utc
    )
    assert dbx_bytes.filetime_to_datetime(0) is None
    assert dbx_bytes.filetime_to_datetime(0xFFFFFFFFFFFFFFFF) is None
