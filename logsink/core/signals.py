"""Host shutdown signals delivered to sinks as events."""
from __future__ import annotations

import logging
import os
import signal
import threading
from typing import Callable, Dict, List, Optional, Sequence

LOGGER = logging.getLogger(__name__)

ShutdownListener = Callable[[int], bool]

# SIGKILL cannot be caught; the others are skipped where the platform lacks them.
DEFAULT_SIGNALS = tuple(
    getattr(signal, name)
    for name in ("SIGQUIT", "SIGINT", "SIGTERM", "SIGTSTP")
    if hasattr(signal, name)
)


class SignalShutdownSource:
    """Fan termination signals out to every attached listener.

    Handlers are installed with :func:`signal.signal` when the first listener
    attaches and the previous handlers are restored when the last one
    detaches. Python only allows this from the main thread; elsewhere the
    source logs a warning and stays inert, leaving shutdown to the host.
    Listeners run inside the signal handler and must only post work.
    """

    def __init__(self, signals: Sequence[int] = DEFAULT_SIGNALS) -> None:
        self.signals = tuple(signals)
        self._listeners: List[ShutdownListener] = []
        self._previous: Dict[int, object] = {}
        self._lock = threading.Lock()

    @property
    def installed(self) -> bool:
        return bool(self._previous)

    def attach(self, listener: ShutdownListener) -> None:
        with self._lock:
            self._listeners.append(listener)
            if len(self._listeners) == 1:
                self._install()

    def detach(self, listener: ShutdownListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return
            if not self._listeners:
                self._restore()

    def deliver(self, signum: int) -> bool:
        """Notify listeners as if ``signum`` had been received.

        Returns ``True`` if at least one listener took charge of the shutdown.
        """

        claimed = [listener(signum) for listener in list(self._listeners)]
        return any(claimed)

    # ------------------------------------------------------------------
    def _handle(self, signum: int, frame) -> None:
        if self.deliver(signum):
            return
        # Nobody is running a writer thread: behave as if we were not installed.
        previous = self._previous.get(signum)
        if callable(previous):
            previous(signum, frame)
        elif previous != signal.SIG_IGN:
            signal.signal(signum, signal.SIG_DFL)
            os.kill(os.getpid(), signum)

    def _install(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            LOGGER.warning("Shutdown signals not registered: not running on the main thread")
            return
        for signum in self.signals:
            try:
                self._previous[signum] = signal.signal(signum, self._handle)
            except (OSError, ValueError) as exc:
                LOGGER.warning("Unable to register handler for signal %s: %s", signum, exc)

    def _restore(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)
            except (OSError, ValueError, TypeError) as exc:
                LOGGER.debug("Unable to restore handler for signal %s: %s", signum, exc)
        self._previous.clear()


_default_source: Optional[SignalShutdownSource] = None
_default_lock = threading.Lock()


def default_shutdown_source() -> SignalShutdownSource:
    """Return the source shared by sinks that were given none."""

    global _default_source
    with _default_lock:
        if _default_source is None:
            _default_source = SignalShutdownSource()
        return _default_source


__all__ = [
    "DEFAULT_SIGNALS",
    "ShutdownListener",
    "SignalShutdownSource",
    "default_shutdown_source",
]
