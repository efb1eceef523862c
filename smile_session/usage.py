"""
usage.py — Daily practice allowance for free users.

Free users get DAILY_LIMIT_SECONDS of practice per calendar day. Entitled
users (one-time purchase) are never limited. Whether the user is entitled
is decided elsewhere; the store integration tells us via `entitled`.

Usage is tracked in whole session durations when a session stops, and the
counter rolls over the first time it is touched on a new day.
"""

import logging
import math
from datetime import date, datetime
from typing import Callable, Optional

from .config import DAILY_LIMIT_SECONDS

logger = logging.getLogger(__name__)


class DailyUsageTracker:
    def __init__(
        self,
        limit_seconds: float = DAILY_LIMIT_SECONDS,
        entitled: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.limit_seconds = limit_seconds
        self.entitled      = entitled
        self._clock        = clock or datetime.now
        self._used_seconds = 0.0
        self._day: date    = self._clock().date()

    def _roll_over_if_needed(self) -> None:
        today = self._clock().date()
        if today != self._day:
            logger.info(f"New day ({today}) — resetting daily usage (was {self._used_seconds:.0f}s)")
            self._day = today
            self._used_seconds = 0.0

    @property
    def used_seconds(self) -> float:
        self._roll_over_if_needed()
        return self._used_seconds

    def track_usage(self, seconds: float) -> None:
        if self.entitled or seconds <= 0:
            return
        self._roll_over_if_needed()
        self._used_seconds += seconds
        logger.info(f"Usage: +{seconds:.1f}s, {self._used_seconds:.1f}s used today")

    def can_use(self) -> bool:
        if self.entitled:
            return True
        allowed = self.used_seconds < self.limit_seconds
        if not allowed:
            logger.info("Daily limit reached")
        return allowed

    def remaining_seconds(self) -> float:
        if self.entitled:
            return math.inf
        return max(0.0, self.limit_seconds - self.used_seconds)

    def usage_percentage(self) -> float:
        if self.entitled or self.limit_seconds <= 0:
            return 0.0
        return min(100.0, self.used_seconds / self.limit_seconds * 100)

    def progress_message(self) -> str:
        if self.entitled:
            return "Unlimited Access"
        remaining = self.remaining_seconds()
        minutes = int(remaining // 60)
        seconds = int(remaining % 60)
        return f"{minutes}m {seconds}s remaining today"
