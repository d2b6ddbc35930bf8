"""Cooperative wall-clock deadline for extraction runs."""

from __future__ import annotations

import time
from typing import Callable, Optional

Clock = Callable[[], float]


class Deadline:
    """
    Tracks elapsed time against an optional budget.

    The deadline never interrupts work; callers poll :meth:`expired` between
    units of work. A budget of ``None`` or ``0`` never expires.
    """

    def __init__(self, seconds: Optional[float] = None, *, clock: Clock = time.monotonic) -> None:
        self.seconds = seconds if seconds else None
        self._clock = clock
        self._started = clock()

    def restart(self) -> None:
        self._started = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> Optional[float]:
        if self.seconds is None:
            return None
        return max(0.0, self.seconds - self.elapsed())

    def expired(self) -> bool:
        if self.seconds is None:
            return False
        return self.elapsed() >= self.seconds

    def __repr__(self) -> str:
        return f"Deadline(seconds={self.seconds}, elapsed={self.elapsed():.2f})"


__all__ = ["Clock", "Deadline"]
