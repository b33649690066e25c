"""Tests for handing decoded folders and messages to a destination sink."""

from pathlib import Path

import pytest

from dbx_migration import migrate
from dbx_migration.readers import dbx_store
from dbx_migration.readers.dbx_errors import Severity
from dbx_migration.writers import eml_directory

from dbx_fixtures import write_store


def _message(message_id: int, subject: str) -> dict:
    return {
        "id": message_id,
        "subject": subject,
        "payload": f"Subject: {subject}\r\n\r\nBody {message_id}\r\n".encode("ascii"),
    }


class RecordingSink:
    def __init__(self) -> None:
        self.folders: list[tuple[str, str | None]] = []
        self.messages: list[tuple[str, bytes]] = []

    def create_folder(self, record, parent_key):
        self.folders.append((record.name, parent_key))
        return record.name

    def import_message(self, folder_key, message, payload):
        self.messages.append((folder_key, payload))


def _store(tmp_path: Path) -> dbx_store.Mailbox:
    store = write_store(
        tmp_path / "Store",
        [
            (1, 3, "Child", "Child.dbx"),
            (2, 0, "Search Folder", "Search.dbx"),
            (3, 0, "Parent", "Parent.dbx"),
            (4, 0, "Other", "Other.dbx"),
        ],
        {
            "Child.dbx": [_message(1, "child one"), {"id": 2, "subject": "no body"}],
            "Search.dbx": [_message(3, "search hit")],
            "Parent.dbx": [_message(4, "parent one")],
            "Other.dbx": [_message(5, "other one")],
        },
    )
    return dbx_store.open_mailbox(store)


def test_migrate_mailbox_creates_parents_before_children(tmp_path: Path) -> None:
    mailbox = _store(tmp_path)
    sink = RecordingSink()

    stats = migrate.migrate_mailbox(mailbox, sink)

    assert sink.folders == [("Parent", None), ("Child", "Parent"), ("Other", None)]
    assert ("Child", b"Subject: child one\r\n\r\nBody 1\r\n") in sink.messages
    assert all(key != "Search Folder" for key, _ in sink.messages)
    assert stats.migrated_messages == 3
    assert stats.empty_messages == 1
    assert stats.skipped_special == 1
    assert stats.processed_folders == 3
    assert stats.dry_run is False


def test_migrate_mailbox_prefix_keeps_ancestors(tmp_path: Path) -> None:
    mailbox = _store(tmp_path)
    sink = RecordingSink()

    stats = migrate.migrate_mailbox(mailbox, sink, prefix="Parent/Child")

    assert sink.folders == [("Parent", None), ("Child", "Parent")]
    assert [key for key, _ in sink.messages] == ["Child"]
    assert stats.skipped_by_prefix == 2
    assert stats.processed_folders == 1


def test_migrate_mailbox_dry_run_needs_no_sink(tmp_path: Path) -> None:
    mailbox = _store(tmp_path)

    stats = migrate.migrate_mailbox(mailbox, None, dry_run=True)

    assert stats.dry_run is True
    assert stats.migrated_messages == 3


def test_migrate_mailbox_requires_sink_without_dry_run(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        migrate.migrate_mailbox(_store(tmp_path), None)


def test_unmapped_parent_falls_back_to_root(tmp_path: Path) -> None:
    store = write_store(
        tmp_path / "Store",
        [(1, 0, "Search Folder", None), (2, 1, "Orphan", "Orphan.dbx")],
        {"Orphan.dbx": [_message(1, "lonely")]},
    )
    mailbox = dbx_store.open_mailbox(store)
    sink = RecordingSink()

    migrate.migrate_mailbox(mailbox, sink)

    assert ("Orphan", None) in sink.folders
    assert mailbox.diagnostics.count(Severity.WARNING) >= 1


def test_migrate_into_eml_directory(tmp_path: Path) -> None:
    mailbox = _store(tmp_path)
    destination = tmp_path / "Export"

    stats = migrate.migrate_mailbox(mailbox, eml_directory.EmlDirectorySink(destination))

    assert stats.migrated_messages == 3
    child_files = sorted((destination / "Parent" / "Child").glob("*.eml"))
    assert [path.name for path in child_files] == ["000001.eml"]
    assert child_files[0].read_bytes().startswith(b"Subject: child one")
    assert (destination / "Other" / "000001.eml").exists()
    assert not (destination / "Search Folder").exists()
