"""Tests for the shutdown signal fan-out."""

from __future__ import annotations

import os
import signal
import time

import pytest

from logsink.core.file_writer import FileLogWriter
from logsink.core.signals import SignalShutdownSource

pytestmark = pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="needs SIGUSR1")


def test_signal_reaches_listeners_and_handlers_are_restored() -> None:
    previous = signal.getsignal(signal.SIGUSR1)
    source = SignalShutdownSource(signals=[signal.SIGUSR1])
    received = []

    def _listener(signum: int) -> bool:
        received.append(signum)
        return True

    source.attach(_listener)
    assert source.installed
    os.kill(os.getpid(), signal.SIGUSR1)
    deadline = time.monotonic() + 5
    while not received and time.monotonic() < deadline:
        time.sleep(0.01)

    assert received == [signal.SIGUSR1]
    source.detach(_listener)
    assert not source.installed
    assert signal.getsignal(signal.SIGUSR1) == previous


def test_deliver_reports_whether_anyone_took_charge() -> None:
    source = SignalShutdownSource(signals=[signal.SIGUSR1])
    assert source.deliver(signal.SIGUSR1) is False

    calls = []
    idle = lambda signum: calls.append(("idle", signum)) or False  # noqa: E731
    busy = lambda signum: calls.append(("busy", signum)) or True  # noqa: E731
    source.attach(idle)
    source.attach(busy)
    try:
        assert source.deliver(signal.SIGUSR1) is True
    finally:
        source.detach(idle)
        source.detach(busy)
    assert calls == [("idle", signal.SIGUSR1), ("busy", signal.SIGUSR1)]


def test_detach_unknown_listener_is_ignored() -> None:
    source = SignalShutdownSource(signals=[signal.SIGUSR1])
    source.detach(lambda signum: True)
    assert not source.installed


def test_writer_stays_attached_until_closed(tmp_path) -> None:
    previous = signal.getsignal(signal.SIGUSR1)
    source = SignalShutdownSource(signals=[signal.SIGUSR1])
    writer = FileLogWriter(tmp_path / "app.log", shutdown=source)
    assert source.installed

    writer.close()
    assert not source.installed
    assert signal.getsignal(signal.SIGUSR1) == previous
