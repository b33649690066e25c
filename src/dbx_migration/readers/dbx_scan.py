"""Utilities for scanning an Outlook Express store and reporting decode problems."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from tqdm import tqdm

from dbx_migration.readers import dbx_store
from dbx_migration.readers.dbx_errors import Diagnostic, Severity


@dataclass(slots=True)
class FolderScan:
    display_path: str
    folder_id: int
    parent_id: int
    message_path: Path | None
    messages: int
    empty_messages: int
    message_bytes: int
    deleted_segments: int
    deleted_bytes: int
    error: str | None
    diagnostics: list[Diagnostic]


@dataclass(slots=True)
class ScanReport:
    total_folders: int
    total_messages: int
    total_empty_messages: int
    total_deleted_segments: int
    failed_folders: int
    warnings: int
    field_errors: int
    resource_errors: int
    store_diagnostics: list[Diagnostic]
    folders: list[FolderScan]


def scan_mailbox(mailbox: dbx_store.Mailbox, *, show_progress: bool = True) -> ScanReport:
    """Summarize ``mailbox`` and every diagnostic collected while decoding it."""

    progress = tqdm(
        total=len(mailbox.folders),
        disable=not show_progress,
        unit="folder",
        desc="Scanning Store",
    )

    folders: list[FolderScan] = []
    for folder in mailbox.folders:
        empty = sum(1 for message in folder.messages if not message.ranges)
        folders.append(
            FolderScan(
                display_path=mailbox.display_path(folder),
                folder_id=folder.record.folder_id,
                parent_id=folder.record.parent_id,
                message_path=folder.message_path,
                messages=len(folder.messages),
                empty_messages=empty,
                message_bytes=sum(message.size for message in folder.messages),
                deleted_segments=len(folder.deleted_segments),
                deleted_bytes=sum(segment.length for segment in folder.deleted_segments),
                error=str(folder.error) if folder.error is not None else None,
                diagnostics=list(folder.diagnostics),
            )
        )
        progress.update(1)

    progress.close()

    diagnostics = list(dbx_store.iter_diagnostics(mailbox))
    return ScanReport(
        total_folders=len(folders),
        total_messages=sum(entry.messages for entry in folders),
        total_empty_messages=sum(entry.empty_messages for entry in folders),
        total_deleted_segments=sum(entry.deleted_segments for entry in folders),
        failed_folders=sum(1 for entry in folders if entry.error is not None),
        warnings=_count(diagnostics, Severity.WARNING),
        field_errors=_count(diagnostics, Severity.FIELD),
        resource_errors=_count(diagnostics, Severity.RESOURCE),
        store_diagnostics=list(mailbox.diagnostics),
        folders=folders,
    )


def _count(diagnostics: list[Diagnostic], severity: Severity) -> int:
    return sum(1 for entry in diagnostics if entry.severity is severity)


def _diagnostic_to_dict(entry: Diagnostic) -> dict:
    return {
        "severity": entry.severity.value,
        "source": entry.source,
        "address": entry.address,
        "message": entry.message,
    }


def report_to_dict(report: ScanReport, store_root: Path) -> dict:
    timestamp = datetime.now(timezone.utc).isoformat()
    return {
        "generated_at": timestamp,
        "store_root": str(store_root),
        "summary": {
            "total_folders": report.total_folders,
            "total_messages": report.total_messages,
            "total_empty_messages": report.total_empty_messages,
            "total_deleted_segments": report.total_deleted_segments,
            "failed_folders": report.failed_folders,
            "warnings": report.warnings,
            "field_errors": report.field_errors,
            "resource_errors": report.resource_errors,
        },
        "diagnostics": [_diagnostic_to_dict(entry) for entry in report.store_diagnostics],
        "folders": [
            {
                "path": entry.display_path,
                "folder_id": entry.folder_id,
                "parent_id": entry.parent_id,
                "message_file": str(entry.message_path) if entry.message_path else None,
                "messages": entry.messages,
                "empty_messages": entry.empty_messages,
                "message_bytes": entry.message_bytes,
                "deleted_segments": entry.deleted_segments,
                "deleted_bytes": entry.deleted_bytes,
                "error": entry.error,
                "diagnostics": [_diagnostic_to_dict(item) for item in entry.diagnostics],
            }
            for entry in report.folders
        ],
    }


def write_report(report_path: Path, report: ScanReport, store_root: Path) -> None:
    report_path.parent.mkdir(parents=True, exist_ok=True)
    data = report_to_dict(report, store_root)
    report_path.write_text(json.dumps(data, indent=2), encoding="utf-8")


__all__ = [
    "FolderScan",
    "ScanReport",
    "report_to_dict",
    "scan_mailbox",
    "write_report",
]
