"""Decoding of the fixed-size header found at the start of every ``.dbx`` file."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lib import dbx_bytes
from dbx_migration.readers.dbx_errors import Diagnostics, FormatError

HEADER_SIZE = 0x24BC

SIGNATURE = bytes(
    [
        0xCF, 0xAD, 0x12, 0xFE, 0xC5, 0xFD, 0x74, 0x6F, 0x66, 0xE3,
        0xD1, 0x11, 0x9A, 0x4E, 0x00, 0xC0, 0x4F, 0xA3, 0x09, 0xD4,
        0x05, 0x00, 0x00, 0x00, 0x05, 0x00, 0x00, 0x00,
    ]
)  # fmt: skip

_TYPE_BYTE = 4
_OFFLINE_TRAILER = bytes([0x9D, 0xFE, 0x26])

FILE_INFO_LENGTH_OFFSET = 0x1C
LAST_SEGMENT_OFFSET = 0x24
DELETED_ITEMS_OFFSET = 0x48
ITEM_COUNT_OFFSET = 0xC4
ROOT_NODE_OFFSET = 0xE4


class DbxFileType(Enum):
    UNKNOWN = "unknown"
    MESSAGE_FILE = "message"
    FOLDER_FILE = "folder"
    OFFLINE = "offline"
    POP3_UIDL = "pop3uidl"


_TYPE_BYTES = {
    0xC5: DbxFileType.MESSAGE_FILE,
    0xC6: DbxFileType.FOLDER_FILE,
    0xC7: DbxFileType.POP3_UIDL,
}


@dataclass(frozen=True)
class DbxHeader:
    """Structural values decoded from a ``.dbx`` header block."""

    file_type: DbxFileType
    file_info_length: int
    last_segment_address: int
    deleted_items_address: int
    item_count: int
    root_node_address: int
    signature_mismatches: tuple[int, ...] = ()

    @property
    def signature_valid(self) -> bool:
        return not self.signature_mismatches


def read_header(data: bytes, diagnostics: Diagnostics | None = None) -> DbxHeader:
    """Decode the header at the start of ``data``.

    Signature mismatches and unknown type markers are reported to
    ``diagnostics`` and decoding carries on; only a buffer too short to hold a
    header is fatal.
    """

    if diagnostics is None:
        diagnostics = Diagnostics()
    if len(data) < HEADER_SIZE:
        raise FormatError(
            f"file is {len(data)} bytes, shorter than the 0x{HEADER_SIZE:X} byte header"
        )

    mismatches = _check_signature(data, diagnostics)
    file_type = detect_file_type(data, diagnostics)

    deleted_items_address = 0
    if file_type is DbxFileType.MESSAGE_FILE:
        deleted_items_address = dbx_bytes.read_uint32(data, DELETED_ITEMS_OFFSET)

    return DbxHeader(
        file_type=file_type,
        file_info_length=dbx_bytes.read_uint32(data, FILE_INFO_LENGTH_OFFSET),
        last_segment_address=dbx_bytes.read_uint32(data, LAST_SEGMENT_OFFSET),
        deleted_items_address=deleted_items_address,
        item_count=dbx_bytes.read_uint32(data, ITEM_COUNT_OFFSET),
        root_node_address=dbx_bytes.read_uint32(data, ROOT_NODE_OFFSET),
        signature_mismatches=mismatches,
    )


def detect_file_type(data: bytes, diagnostics: Diagnostics | None = None) -> DbxFileType:
    marker = data[_TYPE_BYTE]
    file_type = _TYPE_BYTES.get(marker)
    if file_type is not None:
        return file_type
    if marker == 0x30 and bytes(data[5:8]) == _OFFLINE_TRAILER:
        return DbxFileType.OFFLINE

    if diagnostics is not None:
        pattern = " ".join(f"{value:02X}" for value in data[4:8])
        diagnostics.warn(f"file type unknown: {pattern}", _TYPE_BYTE)
    return DbxFileType.UNKNOWN


def _check_signature(data: bytes, diagnostics: Diagnostics) -> tuple[int, ...]:
    mismatches: list[int] = []
    for index, expected in enumerate(SIGNATURE):
        if index == _TYPE_BYTE:
            continue
        actual = data[index]
        if actual != expected:
            mismatches.append(index)
            diagnostics.warn(
                f"signature byte {index} is 0x{actual:02X}, expected 0x{expected:02X}", index
            )
    return tuple(mismatches)


__all__ = [
    "DbxFileType",
    "DbxHeader",
    "HEADER_SIZE",
    "SIGNATURE",
    "detect_file_type",
    "read_header",
]
