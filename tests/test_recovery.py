"""Unit tests for resuming a log sequence after a restart."""

from __future__ import annotations

import os
from datetime import date, datetime
from pathlib import Path

import pytest

from logsink.core.file_writer import FileLogWriter
from logsink.core.recovery import find_candidates, measure, parse_suffix, recover
from logsink.errors import RecoveryError
from logsink.utils.types import Record, RotationConfig


def _touch(path: Path, content: str, mtime: float) -> Path:
    path.write_text(content, encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


def _record(message: str) -> Record:
    return Record(timestamp=datetime(2025, 1, 1), level="INFO", source="test", message=message)


def test_measure_counts_newlines_and_bytes(tmp_path: Path) -> None:
    target = tmp_path / "app.log"
    target.write_bytes(b"alpha\nbeta\ngamma")
    assert measure(target) == (2, 16)
    assert measure(tmp_path / "missing.log") == (0, 0)


def test_parse_suffix_forms(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    assert parse_suffix(base, base) is None
    assert parse_suffix(base, tmp_path / "app.log.7") == 7
    assert parse_suffix(base, tmp_path / "app.log.2025-01-31.004") is None
    with pytest.raises(RecoveryError):
        parse_suffix(base, tmp_path / "app.log.old")
    with pytest.raises(RecoveryError):
        parse_suffix(base, tmp_path / "app.log.2025-13-40.001")


def test_candidates_skip_sidecars_and_unrelated_names(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    for name in ("app.log", "app.log.1", "app.log.lock", "app.log.tmp", "app.logger", "other.log"):
        (tmp_path / name).write_text("x", encoding="utf-8")

    names = sorted(path.name for path in find_candidates(base))
    assert names == ["app.log", "app.log.1"]


def test_resume_counter_from_highest_backup(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    for number in (1, 2, 3):
        _touch(tmp_path / f"app.log.{number}", "old\n", 1_000_000 - number)
    _touch(base, "a\nb\n", 2_000_000)

    recovered = recover(base)
    assert recovered.path == base
    assert recovered.backup_counter == 3
    assert (recovered.lines, recovered.size) == (2, 4)
    assert recovered.existed is True
    assert recovered.open_date == date.fromtimestamp(2_000_000)


def test_newest_backup_is_adopted(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    _touch(base, "old\n", 1_000_000)
    _touch(tmp_path / "app.log.1", "x\n", 1_500_000)
    _touch(tmp_path / "app.log.2", "one\ntwo\nthree\n", 2_000_000)

    recovered = recover(base)
    assert recovered.path == tmp_path / "app.log.2"
    assert recovered.backup_counter == 2
    assert recovered.lines == 3


def test_malformed_newest_candidate_fails_recovery(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    _touch(base, "old\n", 1_000_000)
    _touch(tmp_path / "app.log.bak", "?\n", 2_000_000)

    with pytest.raises(RecoveryError):
        FileLogWriter(base, shutdown=False)


def test_newest_sidecar_does_not_win(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    _touch(base, "old\n", 1_000_000)
    _touch(tmp_path / "app.log.status", "busy\n", 2_000_000)

    assert recover(base).path == base


def test_no_recovery_scan_without_backups(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    _touch(base, "old\n", 1_000_000)
    _touch(tmp_path / "app.log.5", "newer\n", 2_000_000)

    recovered = recover(base, backups=False, today=date(2025, 1, 1))
    assert recovered.path == base
    assert recovered.backup_counter == 0


def test_fresh_directory_starts_empty(tmp_path: Path) -> None:
    base = tmp_path / "logs" / "app.log"
    recovered = recover(base, today=date(2025, 1, 1))
    assert recovered.path == base
    assert (recovered.lines, recovered.size, recovered.backup_counter) == (0, 0, 0)
    assert recovered.existed is False
    assert recovered.open_date == date(2025, 1, 1)


def test_restart_round_trip_rotates_at_recovered_count(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    config = RotationConfig(format="{message}", max_lines=3)

    first = FileLogWriter(base, config=config, shutdown=False)
    first.enqueue(_record("m0"))
    first.enqueue(_record("m1"))
    first.close()

    second = FileLogWriter(base, config=config, shutdown=False)
    assert second.line_count == 2
    assert second.byte_count == 6
    second.enqueue(_record("m2"))
    second.enqueue(_record("m3"))
    second.close()

    assert (tmp_path / "app.log.1").read_text("utf-8") == "m0\nm1\nm2\n"
    assert base.read_text("utf-8") == "m3\n"
    assert second.backup_counter == 1


def test_restart_continues_backup_numbering(tmp_path: Path) -> None:
    base = tmp_path / "app.log"
    for number in (1, 2):
        _touch(tmp_path / f"app.log.{number}", f"b{number}\n", 1_000_000 - number)
    _touch(base, "m0\n", 2_000_000)

    writer = FileLogWriter(
        base,
        config=RotationConfig(format="{message}", max_lines=1),
        shutdown=False,
    )
    assert writer.backup_counter == 2
    writer.enqueue(_record("m1"))
    writer.close()

    assert (tmp_path / "app.log.1").read_text("utf-8") == "m0\n"
    assert (tmp_path / "app.log.2").read_text("utf-8") == "b1\n"
    assert (tmp_path / "app.log.3").read_text("utf-8") == "b2\n"
    assert base.read_text("utf-8") == "m1\n"
    assert writer.backup_counter == 3
