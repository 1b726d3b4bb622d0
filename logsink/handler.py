"""Bridge from the standard :mod:`logging` module to a :class:`FileLogWriter`."""
from __future__ import annotations

import logging
from datetime import datetime

from .core.file_writer import FileLogWriter
from .utils.types import Record


class SinkHandler(logging.Handler):
    """Logging handler that enqueues every record on a sink.

    The handler's formatter renders only the message part; timestamp, level
    and logger name travel as separate :class:`Record` fields so the sink's
    template decides the final layout.
    """

    def __init__(self, sink: FileLogWriter, level: int = logging.NOTSET, close_sink: bool = False) -> None:
        super().__init__(level)
        self.sink = sink
        self.close_sink = close_sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink.enqueue(
                Record(
                    timestamp=datetime.fromtimestamp(record.created),
                    level=record.levelname,
                    source=record.name,
                    message=self.format(record),
                )
            )
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            if self.close_sink:
                self.sink.close()
        finally:
            super().close()


__all__ = ["SinkHandler"]
