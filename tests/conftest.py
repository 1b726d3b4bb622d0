"""Shared fixtures for the sink tests."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

import pytest

from logsink.utils.types import Record


@pytest.fixture
def make_record() -> Callable[..., Record]:
    def _make(message: str, level: str = "INFO", source: str = "test") -> Record:
        return Record(
            timestamp=datetime(2025, 1, 1, 12, 30, 45),
            level=level,
            source=source,
            message=message,
        )

    return _make


@pytest.fixture
def wait_for() -> Callable[..., bool]:
    def _wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait
