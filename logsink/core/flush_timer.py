"""Restartable countdown driving periodic buffer flushes."""
from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class TimerState(enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"


class FlushTimer:
    """Countdown with an explicit idle/armed/fired state machine.

    Each :meth:`arm` starts a new generation. When the countdown expires the
    timer moves to ``FIRED`` and hands the generation to ``notify``; the
    consumer then calls :meth:`consume` with it. Only the current fired
    generation consumes successfully, so a notification that was already in
    flight when the timer got disarmed or rearmed is recognised as stale.
    """

    def __init__(
        self,
        notify: Callable[[int], None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._notify = notify
        self._clock = clock
        self._lock = threading.Lock()
        self._state = TimerState.IDLE
        self._generation = 0
        self._deadline: Optional[float] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def state(self) -> TimerState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def deadline(self) -> Optional[float]:
        with self._lock:
            return self._deadline

    def arm(self, duration: float) -> int:
        """Disarm, drain and start a fresh countdown of ``duration`` seconds."""

        with self._lock:
            return self._arm_locked(duration)

    def arm_before(self, duration: float) -> bool:
        """Make sure the timer fires within ``duration`` seconds.

        An earlier deadline is left alone, and so is a fire that has not been
        consumed yet. Returns ``True`` if the timer was rearmed.
        """

        with self._lock:
            if self._state is TimerState.FIRED:
                return False
            if (
                self._state is TimerState.ARMED
                and self._deadline is not None
                and self._deadline <= self._clock() + duration
            ):
                return False
            self._arm_locked(duration)
            return True

    def disarm_and_drain(self) -> None:
        with self._lock:
            self._disarm_locked()

    def consume(self, generation: int) -> bool:
        """Acknowledge a fire notification; ``True`` only for the live one."""

        with self._lock:
            if self._state is TimerState.FIRED and generation == self._generation:
                self._state = TimerState.IDLE
                self._deadline = None
                return True
            return False

    # ------------------------------------------------------------------
    def _arm_locked(self, duration: float) -> int:
        self._disarm_locked()
        self._generation += 1
        generation = self._generation
        self._deadline = self._clock() + duration
        self._timer = threading.Timer(duration, self._fire, args=(generation,))
        self._timer.daemon = True
        self._state = TimerState.ARMED
        self._timer.start()
        return generation

    def _disarm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state is TimerState.FIRED:
            LOGGER.debug("Draining unconsumed flush timer generation %d", self._generation)
        self._state = TimerState.IDLE
        self._deadline = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not TimerState.ARMED:
                return
            self._state = TimerState.FIRED
            self._timer = None
        self._notify(generation)


__all__ = ["FlushTimer", "TimerState"]
