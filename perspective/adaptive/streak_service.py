"""
Streak tracking.

A streak counts consecutive UTC days with completed challenges. The
current streak feeds the streak multiplier used by the scorer.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from perspective.adaptive.models import UserContext
from perspective.store.base import ActivityHistoryStore
from perspective.timeutils import Clock, ensure_utc, resolve_clock

AT_RISK_AFTER = timedelta(hours=20)


@dataclass
class StreakUpdate:
    """Result of recording a day of activity."""

    current_streak: int
    longest_streak: int
    streak_maintained: bool
    is_new_record: bool


class StreakService:
    """Maintain users' current and longest streaks."""

    def __init__(self, store: ActivityHistoryStore, clock: Optional[Clock] = None):
        self.store = store
        self._clock = resolve_clock(clock)

    @staticmethod
    def next_streak(
        current_streak: int,
        last_activity: Optional[datetime],
        activity_at: datetime,
    ) -> tuple[int, bool]:
        """
        Compute the streak after activity at ``activity_at``.

        Returns:
            (new streak, whether the previous streak was kept)
        """
        if last_activity is None or current_streak <= 0:
            return 1, True

        day_gap = (activity_at.date() - ensure_utc(last_activity).date()).days
        if day_gap <= 0:
            return current_streak, True
        if day_gap == 1:
            return current_streak + 1, True
        return 1, False

    def update_user_streak(
        self, user_id: int, activity_at: Optional[datetime] = None
    ) -> Optional[StreakUpdate]:
        """
        Record a completed challenge and update the user's streak fields.

        Returns:
            StreakUpdate, or None if the user does not exist
        """
        user = self.store.get_user(user_id)
        if user is None:
            logger.warning(f"Cannot update streak: user {user_id} not found")
            return None

        activity_at = ensure_utc(activity_at or self._clock())
        current, maintained = self.next_streak(
            user.current_streak, user.last_activity_date, activity_at
        )
        is_new_record = current > user.longest_streak
        longest = max(current, user.longest_streak)

        # Late-arriving events never move the last activity backwards
        last_activity = activity_at
        if user.last_activity_date is not None:
            last_activity = max(activity_at, ensure_utc(user.last_activity_date))

        self.store.update_streak(user_id, current, longest, last_activity)
        if is_new_record:
            logger.info(f"User {user_id} reached a new longest streak of {current} days")

        return StreakUpdate(
            current_streak=current,
            longest_streak=longest,
            streak_maintained=maintained,
            is_new_record=is_new_record,
        )

    def is_streak_at_risk(self, user: UserContext, now: Optional[datetime] = None) -> bool:
        """True when a running streak has seen no activity for more than 20 hours."""
        if user.current_streak <= 0 or user.last_activity_date is None:
            return False
        now = now or self._clock()
        return now - ensure_utc(user.last_activity_date) > AT_RISK_AFTER
