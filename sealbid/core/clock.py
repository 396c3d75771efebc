"""
Time sources for the engine.

All deadlines are integer seconds. The engine only reads time through a
zero-argument callable so tests and simulations can drive it.
"""

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock time in whole seconds."""
    return int(time.time())


class ManualClock:
    """Clock advanced explicitly by the caller."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self.now += seconds
        return self.now

    def set(self, timestamp: int) -> None:
        self.now = timestamp
