"""Folder and message views over decoded indexed items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

from lib import dbx_bytes
from dbx_migration.readers.dbx_errors import Diagnostics
from dbx_migration.readers.dbx_item import IndexedItem


class FolderField(IntEnum):
    ID = 0x00
    PARENT_ID = 0x01
    NAME = 0x02
    FILE_NAME = 0x03
    FLAGS = 0x06
    SUBFOLDER_INDEX = 0x09


class MessageField(IntEnum):
    FLAGS = 0x01
    MESSAGE_TIME = 0x02
    LINE_COUNT = 0x03
    CORRESPONDING_MESSAGE = 0x04
    ORIGINAL_SUBJECT = 0x05
    ID = 0x07
    SUBJECT = 0x08
    SENDER = 0x09
    ANSWER_ID = 0x0A
    SENDER_NAME = 0x0D
    SENDER_EMAIL_ADDRESS = 0x0E
    PRIORITY = 0x10
    RECEIVED_TIME = 0x12
    RECIPIENT_NAME = 0x13
    RECIPIENT_EMAIL_ADDRESS = 0x14
    ACCOUNT = 0x1A
    REGISTRY_KEY = 0x1B
    HOTMAIL_INDEX = 0x23


@dataclass(frozen=True)
class FolderRecord:
    """A folder entry from ``Folders.dbx``. ``parent_id`` 0 means top level."""

    folder_id: int
    parent_id: int
    name: str | None
    file_name: str | None
    flags: int = 0
    subfolder_index: int = 0
    address: int = 0


@dataclass(frozen=True)
class MessageRecord:
    """Message metadata decoded from a per-folder message file."""

    message_id: int
    subject: str | None
    sender_name: str | None
    sender_email_address: str | None
    recipient_name: str | None
    recipient_email_address: str | None
    received_time: datetime | None
    message_address: int = 0
    flags: int = 0
    message_time: datetime | None = None
    line_count: int = 0
    original_subject: str | None = None
    sender: str | None = None
    answer_id: int = 0
    priority: int = 0
    account: str | None = None
    registry_key: str | None = None
    hotmail_index: int = 0
    address: int = 0
    body_range: tuple[int, int] = (0, 0)


def folder_from_item(item: IndexedItem) -> FolderRecord:
    return FolderRecord(
        folder_id=item.get_value(FolderField.ID),
        parent_id=item.get_value(FolderField.PARENT_ID),
        name=item.get_string(FolderField.NAME),
        file_name=item.get_string(FolderField.FILE_NAME),
        flags=item.get_value(FolderField.FLAGS),
        subfolder_index=item.get_value(FolderField.SUBFOLDER_INDEX),
        address=item.address,
    )


def message_from_item(item: IndexedItem) -> MessageRecord:
    # Account, registry key and hotmail index are best-effort; their layout
    # has not been confirmed against real files.
    return MessageRecord(
        message_id=item.get_value(MessageField.ID),
        subject=item.get_string(MessageField.SUBJECT),
        sender_name=item.get_string(MessageField.SENDER_NAME),
        sender_email_address=item.get_string(MessageField.SENDER_EMAIL_ADDRESS),
        recipient_name=item.get_string(MessageField.RECIPIENT_NAME),
        recipient_email_address=item.get_string(MessageField.RECIPIENT_EMAIL_ADDRESS),
        received_time=_filetime(item, MessageField.RECEIVED_TIME),
        message_address=item.get_address(MessageField.CORRESPONDING_MESSAGE),
        flags=item.get_value(MessageField.FLAGS),
        message_time=_filetime(item, MessageField.MESSAGE_TIME),
        line_count=item.get_value(MessageField.LINE_COUNT),
        original_subject=item.get_string(MessageField.ORIGINAL_SUBJECT),
        sender=item.get_string(MessageField.SENDER),
        answer_id=item.get_value(MessageField.ANSWER_ID),
        priority=item.get_value(MessageField.PRIORITY),
        account=item.get_string(MessageField.ACCOUNT),
        registry_key=item.get_string(MessageField.REGISTRY_KEY),
        hotmail_index=item.get_value(MessageField.HOTMAIL_INDEX),
        address=item.address,
        body_range=item.body_range,
    )


def read_folder_record(
    data: bytes,
    address: int,
    *,
    encoding: str = "latin-1",
    errors: str = "replace",
    diagnostics: Diagnostics | None = None,
) -> FolderRecord:
    item = IndexedItem.read(
        data, address, encoding=encoding, errors=errors, diagnostics=diagnostics
    )
    return folder_from_item(item)


def read_message_record(
    data: bytes,
    address: int,
    *,
    encoding: str = "latin-1",
    errors: str = "replace",
    diagnostics: Diagnostics | None = None,
) -> MessageRecord:
    item = IndexedItem.read(
        data, address, encoding=encoding, errors=errors, diagnostics=diagnostics
    )
    return message_from_item(item)


def _filetime(item: IndexedItem, slot: int) -> datetime | None:
    if not item.is_set(slot):
        return None
    return dbx_bytes.filetime_to_datetime(item.get_value_long(slot))


__all__ = [
    "FolderField",
    "FolderRecord",
    "MessageField",
    "MessageRecord",
    "folder_from_item",
    "message_from_item",
    "read_folder_record",
    "read_message_record",
]
