"""Single-writer, buffered, rotating log file sink."""

from .core.file_writer import FileLogWriter, new_xml_log_writer
from .core.flush_timer import FlushTimer, TimerState
from .core.rotation import RotationPlan, RotationPolicy
from .core.signals import SignalShutdownSource
from .errors import (
    ConfigurationError,
    RecoveryError,
    RotationError,
    SinkClosedError,
    SinkError,
    SinkFailedError,
)
from .handler import SinkHandler
from .utils.formatting import render_record, render_xml_record
from .utils.types import Record, RotationConfig

__all__ = [
    "ConfigurationError",
    "FileLogWriter",
    "FlushTimer",
    "Record",
    "RecoveryError",
    "RotationConfig",
    "RotationError",
    "RotationPlan",
    "RotationPolicy",
    "SignalShutdownSource",
    "SinkClosedError",
    "SinkError",
    "SinkFailedError",
    "SinkHandler",
    "TimerState",
    "new_xml_log_writer",
    "render_record",
    "render_xml_record",
]
