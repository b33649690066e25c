"""Helpers for reading an Outlook Express store (``Folders.dbx`` plus per-folder files)."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Iterator, Sequence

from dbx_migration.readers import dbx_segments
from dbx_migration.readers.dbx_errors import Diagnostic, Diagnostics, FormatError
from dbx_migration.readers.dbx_header import DbxFileType, DbxHeader, read_header
from dbx_migration.readers.dbx_records import (
    FolderRecord,
    MessageRecord,
    read_folder_record,
    read_message_record,
)
from dbx_migration.readers.dbx_tree import DEFAULT_MAX_DEPTH, read_tree_addresses

logger = logging.getLogger(__name__)

FOLDERS_FILE_NAME = "Folders.dbx"
DEFAULT_ENCODING = "latin-1"


@dataclass(frozen=True)
class DbxFile:
    """A ``.dbx`` file loaded fully into memory with its decoded header."""

    path: Path
    data: bytes = field(repr=False)
    header: DbxHeader
    diagnostics: Diagnostics = field(compare=False, repr=False)
    encoding: str = DEFAULT_ENCODING
    errors: str = "replace"

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        encoding: str = DEFAULT_ENCODING,
        errors: str = "replace",
    ) -> "DbxFile":
        data = path.read_bytes()
        diagnostics = Diagnostics(source=path.name)
        header = read_header(data, diagnostics)
        return cls(
            path=path,
            data=data,
            header=header,
            diagnostics=diagnostics,
            encoding=encoding,
            errors=errors,
        )

    def tree_addresses(self, max_depth: int = DEFAULT_MAX_DEPTH) -> list[int]:
        return read_tree_addresses(
            self.data,
            self.header.root_node_address,
            max_depth=max_depth,
            diagnostics=self.diagnostics,
        )

    def deleted_segments(self) -> list[dbx_segments.DeletedSegment]:
        return dbx_segments.scan_deleted_segments(
            self.data,
            self.header.deleted_items_address,
            encoding=self.encoding,
            errors=self.errors,
            diagnostics=self.diagnostics,
        )


@dataclass(frozen=True)
class DbxMessage:
    """A message record paired with the file ranges of its raw bytes."""

    record: MessageRecord
    ranges: tuple[tuple[int, int], ...]
    data: bytes = field(repr=False, compare=False)

    @property
    def size(self) -> int:
        return sum(end - start for start, end in self.ranges)

    def payload(self) -> bytes:
        return b"".join(self.data[start:end] for start, end in self.ranges)


@dataclass
class MailboxFolder:
    record: FolderRecord
    message_path: Path | None
    messages: list[DbxMessage] = field(default_factory=list)
    deleted_segments: list[dbx_segments.DeletedSegment] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    error: FormatError | None = None


@dataclass
class Mailbox:
    """Folders of an Outlook Express store in parent-before-child order."""

    source: Path
    folders: list[MailboxFolder]
    diagnostics: Diagnostics

    @property
    def total_messages(self) -> int:
        return sum(len(folder.messages) for folder in self.folders)

    @cached_property
    def _records_by_id(self) -> dict[int, FolderRecord]:
        by_id: dict[int, FolderRecord] = {}
        for entry in self.folders:
            by_id.setdefault(entry.record.folder_id, entry.record)
        return by_id

    def display_path(self, folder: MailboxFolder) -> str:
        by_id = self._records_by_id
        names: list[str] = []
        seen: set[int] = set()
        current: FolderRecord | None = folder.record
        while current is not None and current.folder_id not in seen:
            seen.add(current.folder_id)
            names.append(current.name or f"Folder {current.folder_id}")
            current = by_id.get(current.parent_id) if current.parent_id else None
        return "/".join(reversed(names))


def resolve_folders_path(path: Path) -> Path:
    """Return the folders file for ``path``; directories map to ``Folders.dbx``."""

    if path.is_dir():
        return _resolve_case_insensitive(path, FOLDERS_FILE_NAME)
    return path


def read_folders(
    folders_file: DbxFile,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[FolderRecord]:
    """Decode every folder entry in tree order."""

    if folders_file.header.file_type is not DbxFileType.FOLDER_FILE:
        folders_file.diagnostics.warn(
            f"{folders_file.path.name} is a {folders_file.header.file_type.value} file, "
            "not a folders file"
        )

    records: list[FolderRecord] = []
    for address in folders_file.tree_addresses(max_depth):
        if not address:
            continue
        records.append(
            read_folder_record(
                folders_file.data,
                address,
                encoding=folders_file.encoding,
                errors=folders_file.errors,
                diagnostics=folders_file.diagnostics,
            )
        )
    return records


def read_messages(
    message_file: DbxFile,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[DbxMessage]:
    """Decode every message entry of a per-folder ``.dbx`` file in tree order."""

    diagnostics = message_file.diagnostics
    if message_file.header.file_type is not DbxFileType.MESSAGE_FILE:
        diagnostics.warn(
            f"{message_file.path.name} is a {message_file.header.file_type.value} file, "
            "not a message file"
        )

    messages: list[DbxMessage] = []
    for address in message_file.tree_addresses(max_depth):
        if not address:
            continue
        record = read_message_record(
            message_file.data,
            address,
            encoding=message_file.encoding,
            errors=message_file.errors,
            diagnostics=diagnostics,
        )
        ranges: list[tuple[int, int]] = []
        if record.message_address:
            try:
                ranges = dbx_segments.message_ranges(message_file.data, record.message_address)
            except FormatError as exc:
                diagnostics.field(f"message body unreadable: {exc}", address)
        messages.append(DbxMessage(record=record, ranges=tuple(ranges), data=message_file.data))
    return messages


def order_folders(
    records: Sequence[FolderRecord],
    diagnostics: Diagnostics | None = None,
) -> list[FolderRecord]:
    """Return ``records`` so that every parent comes before its children.

    Folders keep their original relative order except where a parent has to
    be pulled forward. Folders whose parent is unknown are treated as top
    level; cycles are reported and emitted in their original order.
    """

    if diagnostics is None:
        diagnostics = Diagnostics()

    by_id: dict[int, int] = {}
    for index, record in enumerate(records):
        if record.folder_id in by_id:
            diagnostics.warn(f"duplicate folder id {record.folder_id}", record.address)
            continue
        by_id[record.folder_id] = index

    emitted: set[int] = set()
    ordered: list[FolderRecord] = []
    for start in range(len(records)):
        chain: list[int] = []
        on_chain: set[int] = set()
        cycle_start: int | None = None
        current: int | None = start
        while current is not None and current not in emitted:
            if current in on_chain:
                cycle_start = chain.index(current)
                diagnostics.warn(
                    f"folder id {records[current].folder_id} is its own ancestor",
                    records[current].address,
                )
                break
            on_chain.add(current)
            chain.append(current)
            parent_id = records[current].parent_id
            current = by_id.get(parent_id) if parent_id else None

        # Cycle members go out in raw order, then their descendants parent-first.
        if cycle_start is None:
            cycle_start = len(chain)
        for index in sorted(chain[cycle_start:]) + list(reversed(chain[:cycle_start])):
            emitted.add(index)
            ordered.append(records[index])
    return ordered


def open_mailbox(
    path: Path,
    *,
    encoding: str = DEFAULT_ENCODING,
    errors: str = "replace",
    max_workers: int = 1,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Mailbox:
    """Decode the store at ``path`` into folders and their messages.

    ``path`` may be a store directory, its ``Folders.dbx`` or a single
    per-folder message file. A fatal error in ``Folders.dbx`` propagates;
    errors in a message file are kept on the affected folder only.
    """

    source = resolve_folders_path(path.resolve())
    if not source.exists():
        raise FileNotFoundError(f"Outlook Express store not found: {source}")

    folders_file = DbxFile.open(source, encoding=encoding, errors=errors)
    if folders_file.header.file_type is DbxFileType.MESSAGE_FILE:
        records = [
            FolderRecord(folder_id=1, parent_id=0, name=source.stem, file_name=source.name)
        ]
    else:
        records = order_folders(
            read_folders(folders_file, max_depth=max_depth), folders_file.diagnostics
        )

    directory = source.parent

    def load(record: FolderRecord) -> MailboxFolder:
        return _load_folder(
            record,
            directory,
            encoding=encoding,
            errors=errors,
            max_depth=max_depth,
        )

    if max_workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            folders = list(executor.map(load, records))
    else:
        folders = [load(record) for record in records]

    return Mailbox(source=source, folders=folders, diagnostics=folders_file.diagnostics)


def iter_diagnostics(mailbox: Mailbox) -> Iterator[Diagnostic]:
    yield from mailbox.diagnostics
    for folder in mailbox.folders:
        yield from folder.diagnostics


def _load_folder(
    record: FolderRecord,
    directory: Path,
    *,
    encoding: str,
    errors: str,
    max_depth: int,
) -> MailboxFolder:
    if not record.file_name:
        return MailboxFolder(record=record, message_path=None)

    message_path = _resolve_case_insensitive(directory, record.file_name)
    folder = MailboxFolder(
        record=record,
        message_path=message_path,
        diagnostics=Diagnostics(source=record.file_name),
    )
    if not message_path.exists():
        folder.diagnostics.resource(
            f"message file {record.file_name} for folder {record.name!r} not found"
        )
        return folder

    try:
        message_file = DbxFile.open(message_path, encoding=encoding, errors=errors)
        folder.diagnostics = message_file.diagnostics
        folder.messages = read_messages(message_file, max_depth=max_depth)
    except FormatError as exc:
        logger.error("Failed to decode %s: %s", message_path, exc)
        folder.error = exc
        folder.messages = []
        return folder

    try:
        folder.deleted_segments = message_file.deleted_segments()
    except FormatError as exc:
        folder.diagnostics.warn(f"deleted items unreadable: {exc}", exc.address)
    return folder


def _resolve_case_insensitive(directory: Path, name: str) -> Path:
    candidate = directory / name
    if candidate.exists():
        return candidate
    try:
        lowered = name.lower()
        for child in directory.iterdir():
            if child.name.lower() == lowered:
                return child
    except FileNotFoundError:
        pass
    return candidate


__all__ = [
    "DbxFile",
    "DbxMessage",
    "FOLDERS_FILE_NAME",
    "Mailbox",
    "MailboxFolder",
    "iter_diagnostics",
    "open_mailbox",
    "order_folders",
    "read_folders",
    "read_messages",
    "resolve_folders_path",
]
