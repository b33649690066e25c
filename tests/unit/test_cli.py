"""Tests for the dbx migration CLI argument parsing and commands."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from dbx_migration import cli

from dbx_fixtures import write_store


def _store(root: Path) -> Path:
    return write_store(
        root / "Outlook Express",
        [
            (1, 0, "Inbox", "Inbox.dbx"),
            (2, 1, "Work", "Work.dbx"),
        ],
        {
            "Inbox.dbx": [
                {
                    "id": 1,
                    "subject": "Greetings",
                    "sender_email": "alice@example.com",
                    "received": datetime(2001, 1, 1, 12, 0, tzinfo=timezone.utc),
                    "payload": b"From: alice@example.com\r\nSubject: Greetings\r\n\r\nHi\r\n",
                }
            ],
            "Work.dbx": [
                {"id": 2, "subject": "Report", "payload": b"Subject: Report\r\n\r\nDone\r\n"},
            ],
        },
    )


def test_parse_args_resolves_paths_for_export(tmp_path: Path) -> None:
    store = _store(tmp_path)
    args = cli.parse_args(["export", str(store), str(tmp_path / "out"), "--dry-run"])
    assert args.command == "export"
    assert args.store_path == store.resolve()
    assert args.destination == (tmp_path / "out").resolve()
    assert args.encoding == "latin-1"
    assert args.workers == 1
    assert args.dry_run is True


def test_parse_args_rejects_unknown_encoding(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["list-folders", str(tmp_path), "--encoding", "no-such-codec"])


def test_parse_args_rejects_zero_workers(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["list-folders", str(tmp_path), "--workers", "0"])


def test_main_raises_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        cli.main(["list-folders", str(tmp_path / "missing")])


def test_list_folders_command_outputs_counts(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    store = _store(tmp_path)

    exit_code = cli.main(["list-folders", str(store)])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Folders discovered" in captured
    work_line = next(line for line in captured.splitlines() if "Inbox/Work" in line)
    assert work_line.split()[-3:] == ["2", "1", "1"]


def test_list_messages_command_shows_subjects(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    store = _store(tmp_path)

    exit_code = cli.main(["list-messages", str(store), "--prefix", "Inbox"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Inbox (1 messages)" in captured
    assert "2001-01-01T12:00:00+00:00  alice@example.com  Greetings" in captured
    assert "Report" in captured


def test_scan_command_generates_report(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    store = _store(tmp_path)
    report_path = tmp_path / "scan.json"

    exit_code = cli.main(["scan", str(store), "--report", str(report_path), "--no-progress"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Scan complete: 2 folders, 2 messages" in captured
    data = json.loads(report_path.read_text())
    assert data["summary"]["total_messages"] == 2


def test_export_command_writes_eml_files(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    store = _store(tmp_path)
    destination = tmp_path / "Export"

    exit_code = cli.main(["export", str(store), str(destination), "--no-progress"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Export complete: 2 messages across 2 folders." in captured
    assert (destination / "Inbox" / "000001.eml").exists()
    assert (destination / "Inbox" / "Work" / "000001.eml").read_bytes().startswith(b"Subject: Report")


def test_export_command_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = _store(tmp_path)
    destination = tmp_path / "Export"

    exit_code = cli.main(["export", str(store), str(destination), "--dry-run", "--no-progress"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Dry run complete" in captured
    assert not destination.exists()


def test_corrupt_folders_file_exits_with_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    store = tmp_path / "Broken"
    store.mkdir()
    (store / "Folders.dbx").write_bytes(b"\x00" * 16)

    exit_code = cli.main(["list-folders", str(store)])

    assert exit_code == 1
    assert "Unable to decode" in capsys.readouterr().err
