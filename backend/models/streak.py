from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class StreakCounter:
    """
    Stored consecutive-day counter for one streak key. Day-level, no storage concerns.
    """

    count: int = 0
    last_updated: Optional[date] = None

    def advanced_to(self, day: date) -> int:
        """Count after recording activity on `day`."""
        if self.last_updated is None:
            return 1
        gap_days = (day - self.last_updated).days
        if gap_days == 1:
            return self.count + 1
        if gap_days > 1:
            return 1
        # Same day or a clock that moved backwards keeps the stored count
        return self.count
