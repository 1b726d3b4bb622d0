"""Startup recovery of an in-progress log sequence."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import RecoveryError

LOGGER = logging.getLogger(__name__)

SIDECAR_SUFFIXES = (".tmp", ".lock", ".pid", ".status", ".swp")

_NUMBERED = re.compile(r"^(\d+)$")
_DAILY = re.compile(r"^(\d{4}-\d{2}-\d{2})\.(\d{3})$")


@dataclass
class RecoveredLog:
    """Where the writer resumes and what is already on disk there."""

    path: Path
    backup_counter: int
    lines: int
    size: int
    open_date: date
    existed: bool


def measure(path: Path, chunk_size: int = 1024 * 1024) -> Tuple[int, int]:
    """Return ``(newline count, size in bytes)`` of ``path``.

    A missing file measures as ``(0, 0)``.
    """

    path = Path(path)
    try:
        handle = path.open("rb")
    except FileNotFoundError:
        return 0, 0
    lines = 0
    size = 0
    with handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            lines += chunk.count(b"\n")
            size += len(chunk)
    return lines, size


def parse_suffix(base: Path, candidate: Path) -> Optional[int]:
    """Return the backup number encoded in ``candidate``'s name.

    ``None`` means the name carries no backup number (the base file itself or
    a dated daily backup). Any other suffix raises :class:`RecoveryError`.
    """

    if candidate.name == base.name:
        return None
    suffix = candidate.name[len(base.name) + 1 :]
    match = _NUMBERED.match(suffix)
    if match:
        return int(match.group(1))
    match = _DAILY.match(suffix)
    if match:
        try:
            date.fromisoformat(match.group(1))
        except ValueError as exc:
            raise RecoveryError(f"Malformed date in backup name {candidate.name}") from exc
        return None
    raise RecoveryError(f"Cannot parse backup suffix of {candidate.name}")


def find_candidates(base: Path) -> List[Path]:
    """List the base file and its backups, skipping sidecar files."""

    base = Path(base)
    directory = base.parent
    if not directory.is_dir():
        return []
    prefix = base.name + "."
    candidates = []
    for entry in os.scandir(directory):
        if not entry.is_file():
            continue
        if entry.name != base.name and not entry.name.startswith(prefix):
            continue
        if entry.name.endswith(SIDECAR_SUFFIXES):
            continue
        candidates.append(directory / entry.name)
    return candidates


def _highest_backup(base: Path, candidates: Iterable[Path]) -> int:
    highest = 0
    for candidate in candidates:
        try:
            number = parse_suffix(base, candidate)
        except RecoveryError:
            LOGGER.debug("Ignoring unrecognised sibling %s", candidate.name)
            continue
        if number is not None:
            highest = max(highest, number)
    return highest


def recover(base: Path, backups: bool = True, today: Optional[date] = None) -> RecoveredLog:
    """Decide which file a freshly constructed writer appends to.

    With backups enabled the most recently modified candidate wins; if that
    is not the base file it is adopted and its numeric suffix resumes the
    backup counter. Line and byte counts always come from the file on disk.
    """

    base = Path(base)
    today = today or date.today()
    target = base
    counter = 0

    if backups:
        candidates = find_candidates(base)
        if candidates:
            newest = max(
                candidates,
                key=lambda path: (path.stat().st_mtime, path.name == base.name),
            )
            counter = _highest_backup(base, candidates)
            if newest.name != base.name:
                number = parse_suffix(base, newest)
                if number is not None:
                    counter = number
                target = newest
                LOGGER.info("Resuming log sequence in %s (backup counter %d)", target, counter)

    existed = target.exists()
    lines, size = measure(target)
    open_date = date.fromtimestamp(target.stat().st_mtime) if existed else today
    return RecoveredLog(
        path=target,
        backup_counter=counter,
        lines=lines,
        size=size,
        open_date=open_date,
        existed=existed,
    )


__all__ = [
    "RecoveredLog",
    "SIDECAR_SUFFIXES",
    "find_candidates",
    "measure",
    "parse_suffix",
    "recover",
]
