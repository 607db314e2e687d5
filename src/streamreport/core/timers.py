"""Per-example timer ledger."""
from __future__ import annotations

import time
from typing import Callable

from streamreport.errors import ErrorCode, ProtocolError


class TimerLedger:
    """Last-in-first-out stack of example start times.

    One ``start()`` per example start, one ``stop()`` per terminal example
    event. Times are in seconds as returned by ``clock``.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._starts: list[float] = []

    def __len__(self) -> int:
        return len(self._starts)

    @property
    def pending(self) -> int:
        """Number of starts not yet stopped."""
        return len(self._starts)

    def start(self) -> None:
        self._starts.append(self._clock())

    def stop(self) -> float:
        """Pop the latest start and return the elapsed seconds.

        Raises:
            ProtocolError: If no start is pending, or the clock moved
                backwards since the matching start.
        """
        if not self._starts:
            raise ProtocolError(code=ErrorCode.E102)
        started = self._starts.pop()
        elapsed = self._clock() - started
        if elapsed < 0:
            raise ProtocolError(f"elapsed {elapsed:.6f}s", ErrorCode.E103)
        return elapsed
