"""Buffered, rotating file sink driven by a single writer thread."""
from __future__ import annotations

import enum
import logging
import os
import queue
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from ..errors import ConfigurationError, RotationError, SinkClosedError, SinkFailedError
from ..utils.formatting import (
    XML_FORMAT,
    XML_HEADER,
    XML_TRAILER,
    Renderer,
    render_marker,
    render_record,
    render_xml_record,
)
from ..utils.types import Record, RotationConfig, WriterState
from .flush_timer import FlushTimer
from .recovery import measure, recover
from .rotation import REOPEN, RotationPolicy
from .signals import default_shutdown_source

LOGGER = logging.getLogger(__name__)

_CLOSE = object()
_FLUSH = object()


class _Control(enum.Enum):
    ROTATE = "rotate"
    TIMER = "timer"
    SHUTDOWN = "shutdown"


class FileLogWriter:
    """Append :class:`Record` values to a file from a dedicated thread.

    Producers call :meth:`enqueue`, which only touches a bounded queue and
    blocks while it is full. Everything else (the open file, the in-memory
    buffer, the rotation counters) belongs to the writer thread. Rotation
    requests, flush-timer expiries and shutdown signals reach the thread
    over a separate control channel that it drains before handling each
    record.

    The ``set_*`` methods are chainable and must be called before the first
    record is enqueued; afterwards they raise :class:`ConfigurationError`.
    The thread starts with the first :meth:`enqueue`, :meth:`request_rotation`
    or :meth:`flush`.

    Any render, write or rotation error is logged and stops the thread for
    good. Later calls raise :class:`SinkFailedError` and :attr:`error` holds
    the original exception.

    Unless built with ``shutdown=False`` the writer attaches itself to a
    shutdown signal source, by default the process-wide one. The source keeps
    a reference to the writer (and so its open file) until :meth:`close`
    detaches it. Always close a writer, or use it as a context manager.
    """

    def __init__(
        self,
        filename: Path,
        rotate: Optional[bool] = None,
        *,
        config: Optional[RotationConfig] = None,
        renderer: Renderer = render_record,
        shutdown: Any = None,
        exit_func: Callable[[int], Any] = os._exit,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.filename = Path(filename)
        self.config = replace(config) if config is not None else RotationConfig()
        if rotate is not None:
            self.config.rotate = rotate
        self.config.validate()
        self.error: Optional[BaseException] = None

        self._renderer = renderer
        self._exit = exit_func
        self._clock = clock
        self._active = self.config
        self._policy: Optional[RotationPolicy] = None
        self._records: Optional[queue.Queue] = None
        self._control: queue.SimpleQueue = queue.SimpleQueue()
        self._admission = threading.Lock()
        self._started = False
        self._closed = False
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._timer = FlushTimer(self._on_timer_fired)

        self._state = self._open_initial()

        if shutdown is None:
            shutdown = default_shutdown_source()
        self._shutdown = shutdown or None
        if self._shutdown is not None:
            self._shutdown.attach(self.notify_shutdown)

    # ------------------------------------------------------------------
    # Configuration (before the first record)
    # ------------------------------------------------------------------
    def set_format(self, template: str) -> "FileLogWriter":
        return self._configure(format=template)

    def set_head_foot(self, header: str, trailer: str) -> "FileLogWriter":
        return self._configure(header=header, trailer=trailer)

    def set_rotate_lines(self, max_lines: int) -> "FileLogWriter":
        return self._configure(max_lines=max_lines)

    def set_rotate_size(self, max_bytes: int) -> "FileLogWriter":
        return self._configure(max_bytes=max_bytes)

    def set_rotate_daily(self, daily: bool) -> "FileLogWriter":
        return self._configure(daily=daily)

    def set_rotate_max_backup(self, max_backup: int) -> "FileLogWriter":
        return self._configure(max_backup=max_backup)

    def set_rotate(self, rotate: bool) -> "FileLogWriter":
        """Keep old files as backups (``True``) or reopen the same file."""

        return self._configure(rotate=rotate)

    def set_buffering(self, enabled: bool) -> "FileLogWriter":
        return self._configure(buffering=enabled)

    def set_capacity(self, capacity: int) -> "FileLogWriter":
        return self._configure(buffer_capacity=capacity)

    def set_timeout(self, seconds: float) -> "FileLogWriter":
        return self._configure(flush_timeout=seconds)

    def set_queue_capacity(self, capacity: int) -> "FileLogWriter":
        return self._configure(queue_capacity=capacity)

    def _configure(self, **changes: Any) -> "FileLogWriter":
        with self._admission:
            if self._started or self._closed:
                raise ConfigurationError(
                    "FileLogWriter settings must be changed before the first record is written"
                )
            self.config = replace(self.config, **changes).validate()
        return self

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------
    def enqueue(self, record: Record) -> None:
        """Hand ``record`` to the writer thread, waiting while the queue is full."""

        self._put(record)

    def request_rotation(self) -> None:
        """Ask the writer thread to rotate before it takes the next record."""

        with self._admission:
            self._check_open()
            self._ensure_started()
            self._control.put((_Control.ROTATE, None))

    def flush(self) -> None:
        """Write out and fsync everything enqueued so far.

        The request queues behind the records already enqueued; it returns
        without waiting for the writer thread to reach it.
        """

        self._put(_FLUSH)

    def notify_shutdown(self, signum: int) -> bool:
        """Deliver a host shutdown signal; safe to call from a signal handler.

        Returns ``False`` when no writer thread is running to act on it.
        """

        if not self.running:
            return False
        self._control.put((_Control.SHUTDOWN, signum))
        return True

    def close(self) -> None:
        """Drain queued records, flush, write the trailer and close the file."""

        with self._admission:
            if self._closed:
                return
            self._closed = True
            started = self._started
        if self._shutdown is not None:
            self._shutdown.detach(self.notify_shutdown)

        if not started:
            self._active = self.config
            self._write_header_if_empty()
            self._release_file()
            self._stopped.set()
            return

        while self._thread.is_alive():
            try:
                self._records.put(_CLOSE, timeout=self._active.poll_interval)
                break
            except queue.Full:
                continue
        self._thread.join()
        self._timer.disarm_and_drain()

    def __enter__(self) -> "FileLogWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Introspection; only stable before the first record and after close().
    # ------------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def current_filename(self) -> Path:
        return self._state.filename

    @property
    def line_count(self) -> int:
        return self._state.lines

    @property
    def byte_count(self) -> int:
        return self._state.size

    @property
    def backup_counter(self) -> int:
        return self._state.backup_counter

    # ------------------------------------------------------------------
    # Admission helpers (producer side)
    # ------------------------------------------------------------------
    def _check_open(self) -> None:
        if self.error is not None:
            raise SinkFailedError(f"FileLogWriter({self.filename}) has stopped") from self.error
        if self._closed or self._stopped.is_set():
            raise SinkClosedError(f"FileLogWriter({self.filename}) is closed")

    def _put(self, item: Any) -> None:
        while True:
            with self._admission:
                self._check_open()
                self._ensure_started()
                try:
                    self._records.put(item, timeout=self._active.poll_interval)
                    return
                except queue.Full:
                    continue

    def _ensure_started(self) -> None:
        if self._started:
            return
        self._started = True
        self._active = replace(self.config)
        self._policy = RotationPolicy(self.filename, self._active)
        self._records = queue.Queue(maxsize=self._active.queue_capacity)
        self._thread = threading.Thread(
            target=self._run,
            name=f"FileLogWriter({self.filename.name})",
            daemon=True,
        )
        self._thread.start()

    def _on_timer_fired(self, generation: int) -> None:
        self._control.put((_Control.TIMER, generation))

    # ------------------------------------------------------------------
    # Writer thread
    # ------------------------------------------------------------------
    def _open_initial(self) -> WriterState:
        recovered = recover(
            self.filename,
            backups=self.config.rotate,
            today=self._clock().date(),
        )
        recovered.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(recovered.path, "ab", buffering=0)
        LOGGER.debug(
            "Opened %s (%d lines, %d bytes)", recovered.path, recovered.lines, recovered.size
        )
        return WriterState(
            filename=recovered.path,
            file=handle,
            lines=recovered.lines,
            size=recovered.size,
            open_date=recovered.open_date,
            backup_counter=recovered.backup_counter,
        )

    def _run(self) -> None:
        cfg = self._active
        try:
            self._write_header_if_empty()
            if cfg.buffering:
                self._timer.arm(cfg.flush_timeout)
            while self._drain_control():
                try:
                    item = self._records.get(timeout=cfg.poll_interval)
                except queue.Empty:
                    continue
                if item is _CLOSE:
                    self._flush_buffer()
                    break
                if item is _FLUSH:
                    self._flush_buffer()
                    self._sync()
                    continue
                # control posted while we were waiting still goes first
                if not self._drain_control():
                    break
                self._handle_record(item)
        except Exception as exc:
            self.error = exc
            LOGGER.exception("FileLogWriter(%s): writer stopped", self.filename)
        finally:
            self._timer.disarm_and_drain()
            self._release_file()
            self._stopped.set()

    def _drain_control(self) -> bool:
        """Handle pending control events; ``False`` stops the loop."""

        while True:
            try:
                kind, argument = self._control.get_nowait()
            except queue.Empty:
                return True
            if kind is _Control.ROTATE:
                self._flush_buffer()
                self._rotate(self._clock())
            elif kind is _Control.TIMER:
                self._on_timeout(argument)
            elif kind is _Control.SHUTDOWN:
                self._on_shutdown(argument)
                return False

    def _handle_record(self, record: Record) -> None:
        cfg = self._active
        state = self._state
        now = self._clock()
        if self._policy.is_due(state.lines, state.size, state.open_date, now):
            self._flush_buffer()
            self._rotate(now)

        data = self._renderer(record, cfg.format).encode("utf-8")
        if not cfg.buffering:
            self._write(data)
        else:
            if len(data) < cfg.buffer_capacity - state.position:
                state.buffer += data
            else:
                self._flush_buffer()
                if len(data) < cfg.buffer_capacity:
                    state.buffer += data
                else:
                    self._write(data)
            if cfg.buffer_capacity - state.position < cfg.buffer_capacity / 2:
                self._timer.arm_before(cfg.flush_timeout / 2)

        state.lines += 1
        state.size += len(data)

    def _on_timeout(self, generation: int) -> None:
        if not self._timer.consume(generation):
            return
        if self._active.buffering:
            if self._state.buffer:
                LOGGER.debug("Flush timeout reached for %s", self._state.filename)
                self._flush_buffer()
            self._timer.arm(self._active.flush_timeout)

    def _on_shutdown(self, signum: int) -> None:
        LOGGER.warning("FileLogWriter(%s): received shutdown signal %s", self.filename, signum)
        if self._active.buffering:
            LOGGER.info("Flushing %d buffered bytes before exit", self._state.position)
            self._flush_buffer()
            self._sync()
        else:
            LOGGER.info("Log buffering disabled, nothing to flush")
        self._exit(1)

    def _rotate(self, now: datetime) -> None:
        state = self._state
        plan = self._policy.plan(state.backup_counter, state.open_date, now)
        self._close_current()
        try:
            for source, destination in plan.renames:
                os.replace(source, destination)
        except OSError as exc:
            raise RotationError(f"Rotate: {exc}") from exc

        if plan.truncate:
            discarded = measure(plan.target)[1]
            if discarded:
                LOGGER.warning(
                    "Backup limit %d reached; discarding %d bytes of %s",
                    self._active.max_backup,
                    discarded,
                    plan.target,
                )
        state.file = open(plan.target, "wb" if plan.truncate else "ab", buffering=0)
        state.filename = plan.target
        if plan.kind == REOPEN:
            state.lines, state.size = 0, 0
        else:
            state.lines, state.size = measure(plan.target)
        state.open_date = now.date()
        state.backup_counter = plan.backup_counter
        self._write_marker(self._active.header, now, count=True)
        LOGGER.debug(
            "Rotated %s (%s, backup counter %d)", self.filename, plan.kind, plan.backup_counter
        )

    # ------------------------------------------------------------------
    # File helpers (writer thread, or the closing thread if it never started)
    # ------------------------------------------------------------------
    def _write(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = self._state.file.write(view)
            view = view[written:]

    def _flush_buffer(self) -> None:
        state = self._state
        if not state.buffer:
            return
        self._write(bytes(state.buffer))
        state.buffer.clear()

    def _sync(self) -> None:
        if self._state.file is not None:
            os.fsync(self._state.file.fileno())

    def _write_marker(self, template: str, when: datetime, count: bool) -> None:
        data = render_marker(template, self._renderer, when).encode("utf-8")
        if data:
            self._write(data)
            if count:
                self._state.size += len(data)

    def _write_header_if_empty(self) -> None:
        if self._state.size == 0:
            self._write_marker(self._active.header, self._clock(), count=True)

    def _close_current(self) -> None:
        state = self._state
        if state.file is None:
            return
        try:
            self._write_marker(self._active.trailer, self._clock(), count=False)
            self._sync()
        finally:
            state.file.close()
            state.file = None

    def _release_file(self) -> None:
        if self._state.buffer:
            try:
                self._flush_buffer()
            except OSError:
                LOGGER.exception(
                    "FileLogWriter(%s): dropping %d buffered bytes",
                    self.filename,
                    self._state.position,
                )
                self._state.buffer.clear()
        try:
            self._close_current()
        except OSError:
            LOGGER.exception("FileLogWriter(%s): error while closing", self.filename)


def new_xml_log_writer(filename: Path, rotate: Optional[bool] = None, **kwargs: Any) -> FileLogWriter:
    """Create a :class:`FileLogWriter` that emits ``<record>`` elements."""

    writer = FileLogWriter(filename, rotate, renderer=render_xml_record, **kwargs)
    return writer.set_format(XML_FORMAT).set_head_foot(XML_HEADER, XML_TRAILER)


__all__ = ["FileLogWriter", "new_xml_log_writer"]
