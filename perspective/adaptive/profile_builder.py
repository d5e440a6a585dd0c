"""
Performance Profile Builder.

Aggregates a user's recent submissions into a PerformanceProfile:
- Overall and recent success rates (neutral 0.5 prior for new users)
- Success rate and pace per challenge type and per difficulty
- Streak multiplier
- Most recent challenge types (for anti-repetition)
- Bias exposure histogram from bias-swap challenges
"""
from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional, TypeVar

from loguru import logger

from perspective.adaptive.models import (
    AdaptiveConfig,
    ChallengeType,
    PerformanceProfile,
    SubmissionRecord,
    TypePerformance,
    UserContext,
)
from perspective.store.base import ActivityHistoryStore
from perspective.timeutils import Clock, ensure_utc, resolve_clock

NEUTRAL_SUCCESS_RATE = 0.5

K = TypeVar("K")


class PerformanceProfileBuilder:
    """
    Build performance profiles from the activity log.

    The profile is a pure function of the submissions inside the lookback
    window; it is recomputed on every call and never stored.
    """

    def __init__(
        self,
        store: ActivityHistoryStore,
        config: Optional[AdaptiveConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.config = config or AdaptiveConfig()
        self._clock = resolve_clock(clock)

    def build(self, user_id: int, user: Optional[UserContext] = None) -> PerformanceProfile:
        """
        Fetch the user's windowed submissions and build their profile.

        Args:
            user_id: User identifier
            user: Already-loaded user row (saves a lookup when the caller has it)

        Returns:
            PerformanceProfile (neutral defaults when there is no history)
        """
        now = self._clock()
        window_start = now - timedelta(days=self.config.performance_window_days)
        submissions = self.store.get_submissions(user_id, window_start)

        if user is None:
            user = self.store.get_user(user_id)
        current_streak = user.current_streak if user else 0

        profile = self.build_from_records(submissions, current_streak=current_streak, now=now)
        logger.debug(
            f"Profile for user {user_id}: {profile.total_submissions} submissions, "
            f"overall={profile.overall_success_rate:.2f} recent={profile.recent_success_rate:.2f}"
        )
        return profile

    def build_from_records(
        self,
        submissions: Iterable[SubmissionRecord],
        current_streak: int = 0,
        now: Optional[datetime] = None,
    ) -> PerformanceProfile:
        """Build a profile from already-fetched submissions."""
        now = now or self._clock()
        window_start = now - timedelta(days=self.config.performance_window_days)
        recent_start = now - timedelta(days=self.config.recent_days_to_consider)

        in_window = [s for s in submissions if ensure_utc(s.created_at) >= window_start]
        in_window.sort(key=lambda s: ensure_utc(s.created_at), reverse=True)

        overall = self._success_rate(in_window, default=NEUTRAL_SUCCESS_RATE)
        recent = [s for s in in_window if ensure_utc(s.created_at) >= recent_start]
        recent_rate = self._success_rate(recent, default=overall)

        return PerformanceProfile(
            total_submissions=len(in_window),
            overall_success_rate=overall,
            recent_success_rate=recent_rate,
            type_performance=self._bucket_performance(in_window, key=lambda s: s.challenge_type),
            difficulty_performance=self._bucket_performance(in_window, key=lambda s: s.difficulty),
            streak_multiplier=self.streak_multiplier(current_streak),
            last_challenge_types=[
                s.challenge_type for s in recent[: self.config.last_types_to_track]
            ],
            bias_exposure=self._bias_exposure(in_window),
        )

    def streak_multiplier(self, current_streak: int) -> float:
        """1 + 2% per streak day; uncapped unless a cap is configured."""
        multiplier = 1 + max(current_streak, 0) * self.config.streak_bonus_per_day
        if self.config.streak_multiplier_cap is not None:
            multiplier = min(multiplier, self.config.streak_multiplier_cap)
        return multiplier

    @staticmethod
    def _success_rate(submissions: list[SubmissionRecord], default: float) -> float:
        if not submissions:
            return default
        correct = sum(1 for s in submissions if s.is_correct)
        return correct / len(submissions)

    @staticmethod
    def _bucket_performance(submissions: list[SubmissionRecord], key) -> dict[K, TypePerformance]:
        buckets: dict[K, list[SubmissionRecord]] = defaultdict(list)
        for submission in submissions:
            buckets[key(submission)].append(submission)

        performance: dict[K, TypePerformance] = {}
        for bucket, items in buckets.items():
            correct = sum(1 for s in items if s.is_correct)
            avg_time = sum(s.time_spent_seconds or 0 for s in items) / len(items)
            performance[bucket] = TypePerformance(
                success_rate=correct / len(items),
                avg_time_seconds=avg_time,
                attempts=len(items),
            )
        return performance

    @staticmethod
    def _bias_exposure(submissions: list[SubmissionRecord]) -> Counter:
        exposure: Counter = Counter()
        for submission in submissions:
            if submission.challenge_type == ChallengeType.BIAS_SWAP:
                exposure.update(submission.bias_ratings)
        return exposure
