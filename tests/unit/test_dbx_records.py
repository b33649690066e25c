"""Tests for folder and message record views."""

import struct
from datetime import datetime, timezone

from dbx_migration.readers import dbx_records
from dbx_migration.readers.dbx_item import IndexedItem

from dbx_fixtures import DbxImage, folder_fields, to_filetime


def test_folder_from_item() -> None:
    image = DbxImage()
    fields = folder_fields(4, 5, "Inbox", "Inbox.dbx") + [(0x06, 0x20), (0x09, 3)]
    address = image.add_item(fields)

    record = dbx_records.read_folder_record(image.to_bytes(), address)

    assert record == dbx_records.FolderRecord(
        folder_id=4,
        parent_id=5,
        name="Inbox",
        file_name="Inbox.dbx",
        flags=0x20,
        subfolder_index=3,
        address=address,
    )


def test_folder_without_file_name() -> None:
    image = DbxImage()
    address = image.add_item(folder_fields(1, 0, "Outlook Express"))

    record = dbx_records.folder_from_item(IndexedItem.read(image.to_bytes(), address))

    assert record.parent_id == 0
    assert record.file_name is None


def test_message_from_item_decodes_fields() -> None:
    received = datetime(2004, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    image = DbxImage()
    address = image.add_item(
        [
            (dbx_records.MessageField.ID, 42),
            (dbx_records.MessageField.FLAGS, 0x81),
            (dbx_records.MessageField.CORRESPONDING_MESSAGE, struct.pack("<I", 0x3000)),
            (dbx_records.MessageField.SUBJECT, "Hello"),
            (dbx_records.MessageField.SENDER_NAME, "Alice"),
            (dbx_records.MessageField.SENDER_EMAIL_ADDRESS, "alice@example.com"),
            (dbx_records.MessageField.RECIPIENT_NAME, "Bob"),
            (dbx_records.MessageField.RECIPIENT_EMAIL_ADDRESS, "bob@example.com"),
            (dbx_records.MessageField.RECEIVED_TIME, struct.pack("<Q", to_filetime(received))),
            (dbx_records.MessageField.PRIORITY, 3),
        ]
    )

    record = dbx_records.read_message_record(image.to_bytes(), address)

    assert record.message_id == 42
    assert record.flags == 0x81
    assert record.message_address == 0x3000
    assert record.subject == "Hello"
    assert record.sender_name == "Alice"
    assert record.sender_email_address == "alice@example.com"
    assert record.recipient_name == "Bob"
    assert record.recipient_email_address == "bob@example.com"
    assert record.received_time == received
    assert record.message_time is None
    assert record.priority == 3
    assert record.address == address
    assert record.body_range[0] == address + 12


def test_field_numbers_match_format() -> None:
    assert dbx_records.FolderField.SUBFOLDER_INDEX == 0x09
    assert dbx_records.MessageField.RECEIVED_TIME == 0x12
    assert dbx_records.MessageField.HOTMAIL_INDEX == 0x23
