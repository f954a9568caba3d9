"""Sources of time: the system clock and periodic tickers."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from typing import Iterator, Optional, Union

Interval = Union[float, int, timedelta]


def _seconds(interval: Interval) -> float:
    if isinstance(interval, timedelta):
        return interval.total_seconds()
    return float(interval)


class Ticker:
    """Delivers ticks at a fixed interval until it is stopped.

    Ticks that a slow reader misses are dropped rather than queued.
    """

    def __init__(self, interval: Interval) -> None:
        seconds = _seconds(interval)
        if seconds <= 0:
            raise ValueError("non-positive interval for Ticker")
        self.interval = seconds
        self._lock = threading.Lock()
        self._next = time.monotonic() + seconds
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        """Whether stop() has been called."""
        return self._stopped.is_set()

    def wait(self, timeout: Optional[Interval] = None) -> bool:
        """Block until the next tick.

        Returns True on a tick, False if the ticker was stopped or the
        timeout ran out first.
        """
        deadline = None if timeout is None else time.monotonic() + _seconds(timeout)
        while not self._stopped.is_set():
            now = time.monotonic()
            with self._lock:
                remaining = self._next - now
                if remaining <= 0:
                    missed = int(-remaining // self.interval) + 1
                    self._next += missed * self.interval
                    return True
            if deadline is not None:
                left = deadline - now
                if left <= 0:
                    return False
                remaining = min(remaining, left)
            self._stopped.wait(remaining)
        return False

    def stop(self) -> None:
        """Stop the ticker; no further ticks are delivered."""
        self._stopped.set()

    def __iter__(self) -> Iterator[datetime]:
        while self.wait():
            yield datetime.now().astimezone()


class SystemClock:
    """A clock backed by the operating system's time."""

    def now(self) -> datetime:
        """Return the current local time as an aware datetime."""
        return datetime.now().astimezone()

    def new_ticker(self, interval: Interval) -> Ticker:
        """Return a ticker firing every ``interval`` (seconds or timedelta)."""
        return Ticker(interval)


DEFAULT_CLOCK = SystemClock()