"""Exception hierarchy raised by the log sink."""
from __future__ import annotations


class SinkError(RuntimeError):
    """Base class for every error raised by :mod:`logsink`."""


class SinkClosedError(SinkError):
    """Raised when a record is offered to a sink that is closing or closed."""


class SinkFailedError(SinkError):
    """Raised when the writer thread has stopped after a fatal error."""


class RotationError(SinkError):
    """Raised when a rotation cannot find a free slot or rename a file."""


class RecoveryError(SinkError):
    """Raised when an existing log sequence cannot be resumed at startup."""


class ConfigurationError(SinkError, ValueError):
    """Raised for invalid settings or settings changed after startup."""


__all__ = [
    "ConfigurationError",
    "RecoveryError",
    "RotationError",
    "SinkClosedError",
    "SinkError",
    "SinkFailedError",
]
