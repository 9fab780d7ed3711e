"""Debounce-with-max-wait timer.

State per burst::

    IDLE --signal--> PENDING --signal--> PENDING (deadline moved)
                        |
                        +-- deadline reached --> callback --> IDLE

The deadline after each signal is ``min(now + wait, burst_start + max_wait)``,
so a burst collapses to one callback per quiet window while a sustained burst
still fires at least every ``max_wait`` seconds.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

import structlog

_log = structlog.get_logger(component="dispatch.debounce")


class TimerLoop(Protocol):
    """The slice of asyncio.AbstractEventLoop the debouncer schedules on."""

    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], object]) -> asyncio.TimerHandle: ...


class Debouncer:
    """Coalesces ``signal()`` calls into delayed invocations of *callback*.

    Args:
        callback: Zero-argument callable run on the loop when a burst ends.
        wait:     Quiet period in seconds measured from the latest signal.
        max_wait: Ceiling in seconds measured from the first signal of a burst.
        loop:     Loop used for time and scheduling; defaults to the running
                  loop at first use.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        wait: float,
        max_wait: float,
        loop: TimerLoop | None = None,
    ) -> None:
        if wait <= 0:
            raise ValueError("wait must be positive")
        if max_wait < wait:
            raise ValueError("max_wait must not be shorter than wait")
        self._callback = callback
        self._wait = wait
        self._max_wait = max_wait
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._burst_start: float | None = None
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def deadline(self) -> float | None:
        """Loop time at which the pending callback fires, or None when idle."""
        return self._deadline

    def _get_loop(self) -> TimerLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def signal(self) -> None:
        """Note that something changed now and (re)schedule the callback."""
        loop = self._get_loop()
        now = loop.time()
        if self._burst_start is None:
            self._burst_start = now

        deadline = min(now + self._wait, self._burst_start + self._max_wait)
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        delay = deadline - now
        if delay <= 0:
            _log.debug("debounce_max_wait_reached", burst_age=now - self._burst_start)
            self._fire()
            return

        self._deadline = deadline
        self._handle = loop.call_later(delay, self._fire)

    def flush(self) -> None:
        """Run a pending callback immediately.  Does nothing when idle."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    def cancel(self) -> None:
        """Forget the pending callback without running it."""
        if self._handle is not None:
            self._handle.cancel()
        self._reset()

    def _reset(self) -> None:
        self._handle = None
        self._burst_start = None
        self._deadline = None

    def _fire(self) -> None:
        self._reset()
        try:
            self._callback()
        except Exception as exc:  # noqa: BLE001
            # a failing flush must not leave the timer wedged for the next burst
            _log.error("debounce_callback_failed", error=str(exc), exc_info=True)
