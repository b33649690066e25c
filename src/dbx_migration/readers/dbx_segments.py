"""Walkers for the chained 16-byte-header blocks used by ``.dbx`` files.

Deleted items and message bodies share one layout::

    +0   uint32  address of the block itself
    +4   uint32  size of the block body
    +8   uint32  number of used bytes following the header
    +12  uint32  address of the next block, 0 at the end of the chain
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from lib import dbx_bytes
from dbx_migration.readers.dbx_errors import Diagnostics, FormatError, TreeStructureError

SEGMENT_HEADER_SIZE = 16
DEFAULT_MAX_SEGMENTS = 100_000


@dataclass(frozen=True)
class Segment:
    address: int
    length: int
    next_address: int

    @property
    def content_range(self) -> tuple[int, int]:
        start = self.address + SEGMENT_HEADER_SIZE
        return start, start + self.length


@dataclass(frozen=True)
class DeletedSegment:
    """A block of a logically deleted item still present in the file."""

    address: int
    length: int
    next_address: int
    content: bytes
    text: str


def iter_segment_chain(
    data: bytes,
    head_address: int,
    *,
    max_segments: int = DEFAULT_MAX_SEGMENTS,
    check_marker: bool = False,
    diagnostics: Diagnostics | None = None,
) -> Iterator[Segment]:
    """Yield each block in the chain starting at ``head_address``."""

    seen: set[int] = set()
    address = head_address
    while address:
        if address in seen:
            raise TreeStructureError(f"segment chain revisits 0x{address:X}", address)
        if len(seen) >= max_segments:
            raise TreeStructureError(
                f"segment chain longer than {max_segments} blocks at 0x{address:X}", address
            )
        seen.add(address)

        if address + SEGMENT_HEADER_SIZE > len(data):
            raise FormatError(f"segment header at 0x{address:X} runs past end of file", address)
        marker, _size, length, next_address = dbx_bytes.read_uint32_array(data, address, 4)
        if marker != address:
            if check_marker:
                raise FormatError(
                    f"wrong object marker: expected segment 0x{address:X}, found 0x{marker:X}",
                    address,
                )
            if diagnostics is not None:
                diagnostics.warn(f"segment marker 0x{marker:X} does not match", address)

        segment = Segment(address=address, length=length, next_address=next_address)
        if segment.content_range[1] > len(data):
            raise FormatError(
                f"segment of {length} bytes at 0x{address:X} runs past end of file", address
            )
        yield segment
        address = next_address


def scan_deleted_segments(
    data: bytes,
    head_address: int,
    *,
    encoding: str = "ascii",
    errors: str = "replace",
    max_segments: int = DEFAULT_MAX_SEGMENTS,
    diagnostics: Diagnostics | None = None,
) -> list[DeletedSegment]:
    """Collect the deleted-item blocks linked from ``head_address``."""

    segments: list[DeletedSegment] = []
    for segment in iter_segment_chain(
        data, head_address, max_segments=max_segments, diagnostics=diagnostics
    ):
        start, end = segment.content_range
        content = bytes(data[start:end])
        try:
            text = content.decode(encoding, errors)
        except UnicodeDecodeError as exc:
            if diagnostics is not None:
                diagnostics.field(f"deleted segment is not valid {encoding}: {exc}", segment.address)
            text = content.decode(encoding, "replace")
        segments.append(
            DeletedSegment(
                address=segment.address,
                length=segment.length,
                next_address=segment.next_address,
                content=content,
                text=text,
            )
        )
    return segments


def message_ranges(
    data: bytes,
    message_address: int,
    *,
    max_segments: int = DEFAULT_MAX_SEGMENTS,
) -> list[tuple[int, int]]:
    """Return the ``(start, end)`` file ranges holding a message's raw bytes."""

    return [
        segment.content_range
        for segment in iter_segment_chain(
            data, message_address, max_segments=max_segments, check_marker=True
        )
    ]


def read_message_bytes(data: bytes, message_address: int) -> bytes:
    return b"".join(data[start:end] for start, end in message_ranges(data, message_address))


__all__ = [
    "DeletedSegment",
    "SEGMENT_HEADER_SIZE",
    "Segment",
    "iter_segment_chain",
    "message_ranges",
    "read_message_bytes",
    "scan_deleted_segments",
]
