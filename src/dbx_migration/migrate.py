"""High-level workflow for handing Outlook Express content to a destination store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Protocol

from tqdm import tqdm

from dbx_migration.readers.dbx_records import FolderRecord
from dbx_migration.readers.dbx_store import DbxMessage, Mailbox, MailboxFolder

logger = logging.getLogger(__name__)

# Search folders only hold saved queries, never message content.
SKIPPED_FOLDER_NAMES = frozenset({"Search Folder"})


class FolderSink(Protocol):
    """Destination that receives folders parent-first and then their messages."""

    def create_folder(self, record: FolderRecord, parent_key: Hashable | None) -> Hashable:
        ...

    def import_message(self, folder_key: Hashable, message: DbxMessage, payload: bytes) -> None:
        ...


@dataclass(frozen=True)
class MigrationStats:
    """Summary information produced by a migration run."""

    processed_folders: int
    migrated_folders: int
    migrated_messages: int
    empty_messages: int
    failed_folders: int
    skipped_by_prefix: int
    skipped_special: int
    dry_run: bool


def migrate_mailbox(
    mailbox: Mailbox,
    sink: FolderSink | None,
    *,
    prefix: str | None = None,
    dry_run: bool = False,
    show_progress: bool = False,
) -> MigrationStats:
    """Create each folder of ``mailbox`` in ``sink`` and import its messages.

    Folders arrive parent-first, so the destination key of a folder's parent
    is always known by the time the folder itself is created. ``sink`` may be
    ``None`` only for dry runs.
    """

    if sink is None and not dry_run:
        raise ValueError("a sink is required unless dry_run is set")

    display_paths = {id(folder): mailbox.display_path(folder) for folder in mailbox.folders}
    candidates = [
        folder
        for folder in mailbox.folders
        if folder.record.name not in SKIPPED_FOLDER_NAMES
    ]
    skipped_special = len(mailbox.folders) - len(candidates)

    if prefix:
        selected = [f for f in candidates if display_paths[id(f)].startswith(prefix)]
    else:
        selected = list(candidates)
    skipped_by_prefix = len(candidates) - len(selected)

    selected_ids = {id(folder) for folder in selected}
    required_ids = _with_ancestors(mailbox, selected)

    mappings: dict[int, Hashable] = {}
    processed = 0
    migrated_folders = 0
    migrated_messages = 0
    empty_messages = 0
    failed_folders = 0

    total_messages = sum(len(folder.messages) for folder in selected)
    progress = None
    if show_progress and total_messages:
        progress = tqdm(total=total_messages, desc="Exporting Mail", unit="msg")

    for folder in mailbox.folders:
        record = folder.record
        if record.folder_id not in required_ids or record.name in SKIPPED_FOLDER_NAMES:
            continue

        key: Hashable | None = None
        if not dry_run:
            key = sink.create_folder(record, _parent_key(mailbox, mappings, record))
            if record.folder_id in mappings:
                logger.info("Folder id %s (%s) already mapped", record.folder_id, record.name)
            else:
                mappings[record.folder_id] = key

        if id(folder) not in selected_ids:
            continue

        processed += 1
        if progress:
            progress.set_postfix_str(display_paths[id(folder)], refresh=False)

        if folder.error is not None:
            failed_folders += 1
            logger.warning("Skipping messages of %s: %s", display_paths[id(folder)], folder.error)

        folder_messages = 0
        for message in folder.messages:
            if progress:
                progress.update(1)
            payload = message.payload()
            if not payload:
                empty_messages += 1
                continue
            if not dry_run:
                sink.import_message(key, message, payload)
            folder_messages += 1
            migrated_messages += 1

        if folder_messages > 0 or not dry_run:
            migrated_folders += 1

    if progress:
        progress.close()

    return MigrationStats(
        processed_folders=processed,
        migrated_folders=migrated_folders,
        migrated_messages=migrated_messages,
        empty_messages=empty_messages,
        failed_folders=failed_folders,
        skipped_by_prefix=skipped_by_prefix,
        skipped_special=skipped_special,
        dry_run=dry_run,
    )


def _parent_key(
    mailbox: Mailbox,
    mappings: dict[int, Hashable],
    record: FolderRecord,
) -> Hashable | None:
    if not record.parent_id:
        return None
    key = mappings.get(record.parent_id)
    if key is None:
        mailbox.diagnostics.warn(
            f"parent id {record.parent_id} of folder {record.name!r} not mapped, using root",
            record.address,
        )
    return key


def _with_ancestors(mailbox: Mailbox, selected: list[MailboxFolder]) -> set[int]:
    by_id = {folder.record.folder_id: folder.record for folder in mailbox.folders}
    required: set[int] = set()
    for folder in selected:
        current: FolderRecord | None = folder.record
        while current is not None and current.folder_id not in required:
            required.add(current.folder_id)
            current = by_id.get(current.parent_id) if current.parent_id else None
    return required


__all__ = [
    "FolderSink",
    "MigrationStats",
    "SKIPPED_FOLDER_NAMES",
    "migrate_mailbox",
]
