"""Little-endian primitive readers for Outlook Express ``.dbx`` buffers."""

from __future__ import annotations

import struct
from datetime import datetime, timedelta, timezone
from typing import Union

Buffer = Union[bytes, bytearray, memoryview]

_UINT16 = struct.Struct("<H")
_UINT32 = struct.Struct("<I")
_UINT64 = struct.Struct("<Q")

# FILETIME counts 100ns ticks from 1601-01-01 UTC.
_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


class ByteRangeError(IndexError):
    """Raised when a read would run past the end of the buffer."""

    def __init__(self, offset: int, width: int, size: int) -> None:
        super().__init__(
            f"read of {width} bytes at offset 0x{offset:X} exceeds buffer of {size} bytes"
        )
        self.offset = offset
        self.width = width
        self.size = size


def _check(data: Buffer, offset: int, width: int) -> None:
    if offset < 0 or offset + width > len(data):
        raise ByteRangeError(offset, width, len(data))


def read_uint16(data: Buffer, offset: int) -> int:
    _check(data, offset, 2)
    return _UINT16.unpack_from(data, offset)[0]


def read_uint24(data: Buffer, offset: int) -> int:
    _check(data, offset, 3)
    return data[offset] | (data[offset + 1] << 8) | (data[offset + 2] << 16)


def read_uint32(data: Buffer, offset: int) -> int:
    _check(data, offset, 4)
    return _UINT32.unpack_from(data, offset)[0]


def read_uint64(data: Buffer, offset: int) -> int:
    _check(data, offset, 8)
    return _UINT64.unpack_from(data, offset)[0]


def read_uint32_array(data: Buffer, offset: int, count: int) -> tuple[int, ...]:
    """Return ``count`` consecutive little-endian words starting at ``offset``."""

    _check(data, offset, count * 4)
    return struct.unpack_from(f"<{count}I", data, offset)


def get_bit(value: int, bit: int) -> bool:
    return bool(value & (1 << bit))


def filetime_to_datetime(value: int) -> datetime | None:
    """Convert a Windows FILETIME value into an aware UTC ``datetime``."""

    if not value:
        return None
    try:
        return _FILETIME_EPOCH + timedelta(microseconds=value // 10)
    except OverflowError:
        return None


__all__ = [
    "Buffer",
    "ByteRangeError",
    "filetime_to_datetime",
    "get_bit",
    "read_uint16",
    "read_uint24",
    "read_uint32",
    "read_uint32_array",
    "read_uint64",
]
