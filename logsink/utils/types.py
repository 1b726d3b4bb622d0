"""Value types shared by the sink, its policies and its front ends."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any, BinaryIO, Dict, Mapping, Optional

from ..errors import ConfigurationError

DEFAULT_FORMAT = "[{date} {time}] [{level}] ({source}) {message}"
DEFAULT_CAPACITY = 8192
DEFAULT_TIMEOUT = 300.0
DEFAULT_MAX_BACKUP = 999
DEFAULT_QUEUE_CAPACITY = 32


@dataclass(frozen=True)
class Record:
    """A single log entry submitted by a producer."""

    timestamp: datetime
    level: str
    source: str
    message: str

    @classmethod
    def now(cls, level: str, source: str, message: str) -> "Record":
        return cls(timestamp=datetime.now(), level=level, source=source, message=message)


@dataclass
class RotationConfig:
    """Settings consumed by :class:`~logsink.core.file_writer.FileLogWriter`.

    The writer copies these values when its thread starts and treats them as
    read-only afterwards. Sizes are in bytes and durations in seconds.
    """

    rotate: bool = True
    max_lines: int = 0
    max_bytes: int = 0
    daily: bool = False
    max_backup: int = DEFAULT_MAX_BACKUP
    header: str = ""
    trailer: str = ""
    format: str = DEFAULT_FORMAT
    buffering: bool = True
    buffer_capacity: int = DEFAULT_CAPACITY
    flush_timeout: float = DEFAULT_TIMEOUT
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    poll_interval: float = 0.05

    def validate(self) -> "RotationConfig":
        """Raise :class:`ConfigurationError` when a value is out of range."""

        for name in ("max_lines", "max_bytes"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        if self.max_backup < 1:
            raise ConfigurationError("max_backup must be >= 1")
        if self.buffer_capacity < 1:
            raise ConfigurationError("buffer_capacity must be >= 1")
        if self.flush_timeout <= 0:
            raise ConfigurationError("flush_timeout must be > 0")
        if self.queue_capacity < 1:
            raise ConfigurationError("queue_capacity must be >= 1")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be > 0")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RotationConfig":
        known = {item.name: item for item in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        values: Dict[str, Any] = {}
        for key, value in data.items():
            default = getattr(cls, key)
            if isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ConfigurationError(f"{key} must be a boolean")
            elif isinstance(default, (int, float)):
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigurationError(f"{key} must be a number")
                fractional = isinstance(value, float) and not value.is_integer()
                if isinstance(default, int) and fractional:
                    raise ConfigurationError(f"{key} must be a whole number")
                value = type(default)(value)
            elif not isinstance(value, str):
                raise ConfigurationError(f"{key} must be a string")
            values[key] = value
        return cls(**values).validate()

    @classmethod
    def from_json_file(cls, path: Path) -> "RotationConfig":
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")
        return cls.from_mapping(raw)


@dataclass
class WriterState:
    """Mutable state owned by the writer thread and nothing else."""

    filename: Path
    file: Optional[BinaryIO] = None
    buffer: bytearray = field(default_factory=bytearray)
    lines: int = 0
    size: int = 0
    open_date: date = field(default_factory=date.today)
    backup_counter: int = 0

    @property
    def position(self) -> int:
        return len(self.buffer)


__all__ = [
    "DEFAULT_CAPACITY",
    "DEFAULT_FORMAT",
    "DEFAULT_MAX_BACKUP",
    "DEFAULT_QUEUE_CAPACITY",
    "DEFAULT_TIMEOUT",
    "Record",
    "RotationConfig",
    "WriterState",
]
