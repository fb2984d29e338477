from __future__ import annotations
"""
Clock oracles.

Escrow operations compare an immutable unlock time against "now", expressed
as integer UNIX milliseconds. The host supplies now; this module gives the two
sources hosts normally use: the wall clock, and a manually driven clock for
tests, simulations and replays. Monotonicity is assumed, not enforced, for
SystemClock.
"""

import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...


def now_ms() -> int:
    """Current UNIX time in milliseconds (int)."""
    return int(time.time() * 1000)


class SystemClock:
    """Wall-clock time in milliseconds."""

    def now_ms(self) -> int:
        return now_ms()


class ManualClock:
    """
    A clock that only moves when told to. Refuses to go backwards.
    """

    __slots__ = ("_now",)

    def __init__(self, start_ms: int = 0) -> None:
        if start_ms < 0:
            raise ValueError("start_ms must be >= 0")
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError("cannot advance by a negative delta")
        self._now += int(delta_ms)
        return self._now

    def set(self, t_ms: int) -> int:
        if t_ms < self._now:
            raise ValueError(f"clock cannot move backwards ({t_ms} < {self._now})")
        self._now = int(t_ms)
        return self._now


__all__ = ["Clock", "SystemClock", "ManualClock", "now_ms"]
