"""Command-line interface for the Outlook Express migration toolkit."""

from __future__ import annotations

import argparse
import codecs
import logging
import sys
from pathlib import Path
from typing import Callable

from dbx_migration import migrate as migration
from dbx_migration.readers import dbx_scan, dbx_store
from dbx_migration.readers.dbx_errors import FormatError
from dbx_migration.writers import eml_directory


def _add_decode_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--encoding",
        default=dbx_store.DEFAULT_ENCODING,
        help="Text encoding used for folder names and message fields (default: latin-1).",
    )
    parser.add_argument(
        "--errors",
        choices=("replace", "strict", "ignore"),
        default="replace",
        help="How undecodable bytes in text fields are handled.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of message files decoded in parallel.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Increase logging verbosity for troubleshooting.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbx-migration",
        description="Inspect Outlook Express .dbx stores and export their messages.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_folders_parser = subparsers.add_parser(
        "list-folders",
        help="List folders of an Outlook Express store with message counts.",
    )
    list_folders_parser.add_argument(
        "store_path",
        type=Path,
        help="Path to the store directory, its Folders.dbx, or a single message .dbx file.",
    )
    _add_decode_options(list_folders_parser)
    list_folders_parser.set_defaults(handler=_handle_list_folders)

    list_messages_parser = subparsers.add_parser(
        "list-messages",
        help="List the messages of every folder with sender, subject and received time.",
    )
    list_messages_parser.add_argument(
        "store_path",
        type=Path,
        help="Path to the store directory, its Folders.dbx, or a single message .dbx file.",
    )
    list_messages_parser.add_argument(
        "--prefix",
        help="Only list folders whose path starts with the provided prefix (case-sensitive).",
    )
    _add_decode_options(list_messages_parser)
    list_messages_parser.set_defaults(handler=_handle_list_messages)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Decode the whole store and report structural problems and deleted items.",
    )
    scan_parser.add_argument(
        "store_path",
        type=Path,
        help="Path to the store directory, its Folders.dbx, or a single message .dbx file.",
    )
    scan_parser.add_argument(
        "--report",
        type=Path,
        help="Optional path to write a JSON report describing every diagnostic.",
    )
    scan_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar output during the scan.",
    )
    _add_decode_options(scan_parser)
    scan_parser.set_defaults(handler=_handle_scan)

    export_parser = subparsers.add_parser(
        "export",
        help="Export every message as a raw .eml file into a folder hierarchy.",
    )
    export_parser.add_argument(
        "store_path",
        type=Path,
        help="Path to the store directory, its Folders.dbx, or a single message .dbx file.",
    )
    export_parser.add_argument(
        "destination",
        type=Path,
        help="Directory that receives one subdirectory per folder.",
    )
    export_parser.add_argument(
        "--prefix",
        help="Only export folders whose path starts with the provided prefix (case-sensitive).",
    )
    export_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Decode and count messages without writing anything.",
    )
    export_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar output during the export.",
    )
    _add_decode_options(export_parser)
    export_parser.set_defaults(handler=_handle_export)

    return parser


Handler = Callable[[argparse.Namespace], int]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)

    args.store_path = args.store_path.resolve()
    if args.workers < 1:
        parser.error("--workers must be at least 1")
    try:
        codecs.lookup(args.encoding)
    except LookupError:
        parser.error(f"unknown encoding: {args.encoding}")

    if args.command == "export":
        args.destination = args.destination.resolve()
    elif args.command == "scan":
        if args.report is not None:
            args.report = args.report.resolve()

    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    handler: Handler = args.handler
    try:
        return handler(args)
    except FormatError as exc:
        print(f"Unable to decode {args.store_path}: {exc}", file=sys.stderr)
        return 1


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _open(args: argparse.Namespace) -> dbx_store.Mailbox:
    return dbx_store.open_mailbox(
        args.store_path,
        encoding=args.encoding,
        errors=args.errors,
        max_workers=args.workers,
    )


def _handle_list_folders(args: argparse.Namespace) -> int:
    mailbox = _open(args)
    if not mailbox.folders:
        print(f"No folders found in {mailbox.source}")
        return 0

    rows = [(mailbox.display_path(folder), folder) for folder in mailbox.folders]
    name_width = max(len(name) for name, _ in rows)
    print(f"Folders discovered in {mailbox.source}:")
    header = f"  {'Name'.ljust(name_width)}  {'Id':>6}  {'Parent':>6}  {'Messages':>8}"
    print(header)
    print("  " + "-" * (len(header) - 2))
    for name, folder in rows:
        count = "error" if folder.error is not None else str(len(folder.messages))
        print(
            f"  {name.ljust(name_width)}  {folder.record.folder_id:6d}  "
            f"{folder.record.parent_id:6d}  {count:>8}"
        )
    return 0


def _handle_list_messages(args: argparse.Namespace) -> int:
    mailbox = _open(args)
    for folder in mailbox.folders:
        display_path = mailbox.display_path(folder)
        if args.prefix and not display_path.startswith(args.prefix):
            continue
        if not folder.messages:
            continue
        print(f"{display_path} ({len(folder.messages)} messages)")
        for message in folder.messages:
            record = message.record
            received = record.received_time.isoformat() if record.received_time else "-"
            sender = record.sender_email_address or record.sender_name or "-"
            print(f"  {received}  {sender}  {record.subject or ''}")
    return 0


def _handle_scan(args: argparse.Namespace) -> int:
    mailbox = _open(args)
    report = dbx_scan.scan_mailbox(mailbox, show_progress=not args.no_progress)

    print(
        "Scan complete: "
        f"{report.total_folders} folders, "
        f"{report.total_messages} messages, "
        f"{report.total_deleted_segments} deleted segments."
    )
    print(
        f"Warnings: {report.warnings}; Field errors: {report.field_errors}; "
        f"Missing files: {report.resource_errors}."
    )
    if report.failed_folders:
        print(f"  {report.failed_folders} folders could not be decoded:")
        for entry in report.folders:
            if entry.error is not None:
                print(f"    {entry.display_path}: {entry.error}")
    if report.total_empty_messages:
        print(f"  {report.total_empty_messages} messages have no stored body.")

    if args.report is not None:
        dbx_scan.write_report(args.report, report, mailbox.source)
        print(f"Report written to {args.report}")

    return 0


def _handle_export(args: argparse.Namespace) -> int:
    mailbox = _open(args)
    sink = None
    if not args.dry_run:
        sink = eml_directory.EmlDirectorySink(args.destination)

    stats = migration.migrate_mailbox(
        mailbox,
        sink,
        prefix=args.prefix,
        dry_run=args.dry_run,
        show_progress=not args.no_progress,
    )

    outcome = "Dry run" if stats.dry_run else "Export"
    print(
        f"{outcome} complete: {stats.migrated_messages} messages across "
        f"{stats.migrated_folders} folders."
    )
    if stats.empty_messages:
        print(f"  Skipped {stats.empty_messages} messages without a stored body.")
    if stats.failed_folders:
        print(f"  {stats.failed_folders} folders could not be decoded.")
    if stats.skipped_by_prefix:
        print(f"  {stats.skipped_by_prefix} folders excluded by prefix filter.")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    raise SystemExit(main())
