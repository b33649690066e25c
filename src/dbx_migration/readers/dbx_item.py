"""Decoder for the variable-length "indexed item" records inside ``.dbx`` files.

Each record starts with a 12 byte preamble::

    +0   uint32  address of the record itself
    +4   uint32  body length
    +8   uint16  length of the field table
    +10  uint8   number of table entries
    +11  uint8   number of changed entries

The body follows the preamble. Its first ``count * 4`` bytes are the field
table: one 4-byte group per field whose first byte carries a "direct" flag in
the high bit and the field slot in the low seven bits. Direct fields keep their
value inside the group itself; indirect fields hold a 16-bit offset relative to
the end of the table.
"""

from __future__ import annotations

from lib import dbx_bytes
from dbx_migration.readers.dbx_errors import Diagnostics, FormatError

PREAMBLE_SIZE = 12
MAX_SLOTS = 0x40
_DIRECT_BIT = 7


class IndexedItem:
    """A decoded record: its body bytes plus the resolved field offsets."""

    def __init__(
        self,
        address: int,
        body: bytes,
        item_count: int,
        changed_count: int = 0,
        *,
        encoding: str = "latin-1",
        errors: str = "replace",
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.address = address
        self.body = body
        self.item_count = item_count
        self.changed_count = changed_count
        self.encoding = encoding
        self.errors = errors
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._offsets: list[int | None] = [None] * MAX_SLOTS
        self._direct: list[bool] = [False] * MAX_SLOTS
        self._decode_table()

    @classmethod
    def read(
        cls,
        data: bytes,
        address: int,
        *,
        encoding: str = "latin-1",
        errors: str = "replace",
        diagnostics: Diagnostics | None = None,
    ) -> "IndexedItem":
        """Decode the record stored at ``address`` in ``data``."""

        if address + PREAMBLE_SIZE > len(data):
            raise FormatError(f"record preamble at 0x{address:X} runs past end of file", address)

        marker, body_length = dbx_bytes.read_uint32_array(data, address, 2)
        if marker != address:
            raise FormatError(
                f"wrong object marker: expected 0x{address:X}, found 0x{marker:X}", address
            )

        item_count = data[address + 10]
        changed_count = data[address + 11]
        start = address + PREAMBLE_SIZE
        end = start + body_length
        if end > len(data):
            raise FormatError(
                f"record body of {body_length} bytes at 0x{address:X} runs past end of file",
                address,
            )

        return cls(
            address,
            bytes(data[start:end]),
            item_count,
            changed_count,
            encoding=encoding,
            errors=errors,
            diagnostics=diagnostics,
        )

    @property
    def body_range(self) -> tuple[int, int]:
        start = self.address + PREAMBLE_SIZE
        return start, start + len(self.body)

    @property
    def table_size(self) -> int:
        return self.item_count * 4

    def _decode_table(self) -> None:
        table_end = self.table_size
        if table_end > len(self.body):
            raise FormatError(
                f"field table of {self.item_count} entries exceeds record body "
                f"of {len(self.body)} bytes",
                self.address,
            )

        for position in range(0, table_end, 4):
            raw = self.body[position]
            slot = raw & 0x7F
            if slot >= MAX_SLOTS:
                self.diagnostics.field(
                    f"field table entry at body offset {position} names slot {slot}",
                    self.address,
                )
                continue
            if dbx_bytes.get_bit(raw, _DIRECT_BIT):
                self._offsets[slot] = position + 1
                self._direct[slot] = True
            else:
                self._offsets[slot] = table_end + dbx_bytes.read_uint16(self.body, position + 1)
                self._direct[slot] = False

    def offset_of(self, slot: int) -> int | None:
        return self._offsets[slot]

    def is_direct(self, slot: int) -> bool:
        return self._direct[slot]

    def is_set(self, slot: int) -> bool:
        return self._offsets[slot] is not None

    def get_string(self, slot: int) -> str | None:
        """Return the NUL-terminated string for ``slot`` or ``None`` when absent."""

        offset = self._offsets[slot]
        if not offset:
            return None
        if offset >= len(self.body):
            self._out_of_range(slot, offset, 1)
            return None
        end = self.body.find(b"\x00", offset)
        if end == -1:
            end = len(self.body)
        try:
            return self.body[offset:end].decode(self.encoding, self.errors)
        except UnicodeDecodeError as exc:
            self.diagnostics.field(f"slot {slot} is not valid {self.encoding}: {exc}", self.address)
            return None

    def get_value(self, slot: int) -> int:
        """Return the 24-bit value for ``slot``; ``0`` when unset or unreadable."""

        return self._read(slot, 3, dbx_bytes.read_uint24)

    def get_value_long(self, slot: int) -> int:
        """Return the 64-bit value for ``slot``, used for FILETIME stamps."""

        return self._read(slot, 8, dbx_bytes.read_uint64)

    def get_address(self, slot: int) -> int:
        """Return a file address stored in ``slot``.

        Direct fields only have room for 24 bits; indirect ones hold a full
        32-bit word.
        """

        if self._direct[slot]:
            return self.get_value(slot)
        return self._read(slot, 4, dbx_bytes.read_uint32)

    def _read(self, slot: int, width: int, reader) -> int:
        offset = self._offsets[slot]
        if offset is None:
            return 0
        try:
            return reader(self.body, offset)
        except dbx_bytes.ByteRangeError:
            self._out_of_range(slot, offset, width)
            return 0

    def _out_of_range(self, slot: int, offset: int, width: int) -> None:
        self.diagnostics.field(
            f"slot {slot} offset {offset} (+{width}) outside body of {len(self.body)} bytes",
            self.address,
        )


__all__ = ["IndexedItem", "MAX_SLOTS", "PREAMBLE_SIZE"]
