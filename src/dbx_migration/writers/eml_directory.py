"""Helpers for exporting raw messages as ``.eml`` files into a directory tree."""

from __future__ import annotations

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable

from dbx_migration.readers.dbx_records import FolderRecord
from dbx_migration.readers.dbx_store import DbxMessage

_UNSAFE_CHARACTERS = re.compile(r'[\x00-\x1f<>:"/\\|?*]')


def sanitize_segment(name: str | None) -> str:
    """Return ``name`` made safe to use as a single path component."""

    cleaned = _UNSAFE_CHARACTERS.sub("_", name or "").strip().strip(".")
    return cleaned or "_"


def ensure_folder_path(base: Path, segments: Iterable[str]) -> Path:
    """Return the directory for ``segments`` beneath ``base``, creating it."""

    current = base
    for segment in segments:
        current = current / sanitize_segment(segment)
    current.mkdir(parents=True, exist_ok=True)
    return current


def write_message(
    directory: Path,
    index: int,
    payload: bytes,
    *,
    received_time: datetime | None = None,
) -> Path:
    """Write ``payload`` to ``<index>.eml`` inside ``directory``."""

    target = directory / f"{index:06d}.eml"
    target.write_bytes(payload)
    if received_time is not None:
        stamp = received_time.timestamp()
        os.utime(target, (stamp, stamp))
    return target


class EmlDirectorySink:
    """Persists folders as directories and messages as ``.eml`` files."""

    def __init__(self, root: Path) -> None:
        if not root.parent.exists():
            raise FileNotFoundError(f"Export destination parent not found: {root.parent}")
        self.root = root
        self.root.mkdir(exist_ok=True)
        self._counters: dict[Path, int] = {}

    def create_folder(self, record: FolderRecord, parent_key: Path | None) -> Path:
        parent = parent_key if parent_key is not None else self.root
        name = record.name or f"Folder {record.folder_id}"
        return ensure_folder_path(parent, [name])

    def import_message(self, folder_key: Path, message: DbxMessage, payload: bytes) -> None:
        index = self._counters.get(folder_key, 0) + 1
        self._counters[folder_key] = index
        write_message(folder_key, index, payload, received_time=message.record.received_time)


__all__ = [
    "EmlDirectorySink",
    "ensure_folder_path",
    "sanitize_segment",
    "write_message",
]
