"""Countdown synchronisation by absolute end time.

The host is the only timer authority. It publishes ``timer_end`` (epoch
milliseconds) and every observer derives the seconds left from its own clock,
so delivery delay and dropped snapshots never skew the countdown. A
"seconds remaining" value must never be put on the wire.
"""

import math
import time
from typing import Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def _round_half_up(value: float) -> int:
    # Browser clients use Math.round; Python's round() is banker's rounding.
    return int(math.floor(value + 0.5))


class TimerSync:

    @staticmethod
    def arm(now: int, duration_sec: int) -> int:
        if duration_sec <= 0:
            raise ValueError('timer duration must be positive')
        return int(now) + int(duration_sec) * 1000

    @staticmethod
    def replace(current: Optional[int], new: Optional[int]) -> Optional[int]:
        """Return the value ``timer_end`` may take next.

        Within one question the end time only ever moves later or is cleared.
        """
        if new is None or current is None:
            return new
        if new <= current:
            raise ValueError(f'timer_end may only move later ({new} <= {current})')
        return new

    @staticmethod
    def cancel() -> None:
        return None

    @staticmethod
    def remaining_seconds(timer_end: Optional[int], now: int) -> int:
        if timer_end is None:
            return 0
        return max(0, _round_half_up((timer_end - now) / 1000.0))
