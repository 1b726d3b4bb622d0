"""Rotation decisions and backup file naming.

:class:`RotationPolicy` never touches writer state or renames anything.
It answers two questions for the writer thread: is a rotation due, and
which renames and target file a rotation consists of.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Tuple

from ..errors import RotationError
from ..utils.types import RotationConfig

MAX_DAILY_SEQUENCE = 999

REOPEN = "reopen"
NUMBERED = "numbered"
WRAP = "wrap"
DAILY = "daily"


@dataclass(frozen=True)
class RotationPlan:
    """What a single rotation consists of, in execution order."""

    kind: str
    target: Path
    renames: Tuple[Tuple[Path, Path], ...] = ()
    truncate: bool = False
    backup_counter: int = 0


def numbered_name(base: Path, number: int) -> Path:
    return base.with_name(f"{base.name}.{number}")


def daily_name(base: Path, day: date, sequence: int) -> Path:
    return base.with_name(f"{base.name}.{day:%Y-%m-%d}.{sequence:03d}")


class RotationPolicy:
    """Pure rotation logic for the log file at ``base``."""

    def __init__(
        self,
        base: Path,
        config: RotationConfig,
        exists: Callable[[Path], bool] = os.path.lexists,
    ) -> None:
        self.base = Path(base)
        self.config = config
        self._exists = exists

    def is_due(self, lines: int, size: int, open_date: date, now: datetime) -> bool:
        cfg = self.config
        if cfg.max_lines > 0 and lines >= cfg.max_lines:
            return True
        if cfg.max_bytes > 0 and size >= cfg.max_bytes:
            return True
        return cfg.daily and now.date() != open_date

    def plan(self, backup_counter: int, open_date: date, now: datetime) -> RotationPlan:
        """Compute the next rotation.

        Raises :class:`RotationError` when a daily rollover finds every
        sequence number up to 999 already taken.
        """

        cfg = self.config
        if not cfg.rotate or not self._exists(self.base):
            return RotationPlan(REOPEN, self.base, backup_counter=backup_counter)

        if cfg.daily and now.date() != open_date:
            yesterday = now.date() - timedelta(days=1)
            destination = self._free_daily_name(yesterday)
            return RotationPlan(
                DAILY,
                self.base,
                renames=((self.base, destination),),
                backup_counter=backup_counter,
            )

        if backup_counter + 1 > cfg.max_backup:
            return RotationPlan(WRAP, self.base, truncate=True, backup_counter=0)

        renames = []
        # highest first so nothing is clobbered
        for number in range(cfg.max_backup - 1, 0, -1):
            source = numbered_name(self.base, number)
            if self._exists(source):
                renames.append((source, numbered_name(self.base, number + 1)))
        renames.append((self.base, numbered_name(self.base, 1)))
        return RotationPlan(
            NUMBERED,
            self.base,
            renames=tuple(renames),
            backup_counter=backup_counter + 1,
        )

    def _free_daily_name(self, day: date) -> Path:
        # Linear probe; fine for the small number of rollovers kept per day.
        for sequence in range(1, MAX_DAILY_SEQUENCE + 1):
            candidate = daily_name(self.base, day, sequence)
            if not self._exists(candidate):
                return candidate
        raise RotationError(f"Cannot find free log number to rename {self.base}")


__all__ = [
    "DAILY",
    "MAX_DAILY_SEQUENCE",
    "NUMBERED",
    "REOPEN",
    "RotationPlan",
    "RotationPolicy",
    "WRAP",
    "daily_name",
    "numbered_name",
]
