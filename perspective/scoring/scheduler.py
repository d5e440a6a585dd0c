"""
Echo Score Scheduler.

Decides when Echo Scores are recalculated:
- After a challenge, once the user has answered enough challenges today
- After reading, once the user has read enough distinct sources today
- Nightly batch for users active on the previous day
- Weekly averages for reports

Snapshots are throttled to one per user per UTC day.
"""
from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Optional

from loguru import logger

from perspective.scoring.echo_score import EchoScoreCalculator
from perspective.scoring.models import (
    COMPONENTS,
    BatchResult,
    EchoScoreConfig,
    EchoScoreSnapshot,
    WeeklySummary,
)
from perspective.store.base import ActivityHistoryStore
from perspective.timeutils import Clock, resolve_clock, start_of_day


class EchoScoreScheduler:
    """Trigger Echo Score recalculation from activity events and batches."""

    def __init__(
        self,
        store: ActivityHistoryStore,
        calculator: Optional[EchoScoreCalculator] = None,
        config: Optional[EchoScoreConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self._clock = resolve_clock(clock)
        self.config = config or (calculator.config if calculator else EchoScoreConfig())
        self.calculator = calculator or EchoScoreCalculator(store, self.config, clock=self._clock)

    def _scored_today(self, user_id: int, today: date) -> bool:
        return self.store.count_snapshots_on(user_id, today) > 0

    # =========================================================================
    # Activity triggers
    # =========================================================================

    def calculate_after_challenge(self, user_id: int) -> Optional[EchoScoreSnapshot]:
        """
        Recalculate after a completed challenge.

        Returns:
            The new snapshot, or None when throttled or below the threshold
        """
        today = self._clock().date()
        if self._scored_today(user_id, today):
            logger.info(f"Echo Score already calculated today for user {user_id}")
            return None

        answered = len(self.store.get_submissions(user_id, start_of_day(today)))
        if answered < self.config.recalc_min_challenges_today:
            logger.debug(f"User {user_id} has {answered} challenges today - not recalculating")
            return None

        logger.info(f"Calculating Echo Score for user {user_id} after {answered} challenges")
        return self.calculator.calculate_and_save(user_id)

    def calculate_after_reading(self, user_id: int) -> Optional[EchoScoreSnapshot]:
        """
        Recalculate after an article read.

        Returns:
            The new snapshot, or None when throttled or below the threshold
        """
        today = self._clock().date()
        readings = self.store.get_reading_activity(user_id, start_of_day(today))
        sources = {r.source for r in readings if r.source}
        if len(sources) < self.config.recalc_min_sources_today:
            return None

        if self._scored_today(user_id, today):
            logger.info(f"Echo Score already calculated today for user {user_id}")
            return None

        logger.info(f"Calculating Echo Score for user {user_id} after reading from {len(sources)} sources")
        return self.calculator.calculate_and_save(user_id)

    # =========================================================================
    # Batch
    # =========================================================================

    def pending_users(self, day: date) -> list[int]:
        """Users with a session on ``day`` and no snapshot dated ``day``."""
        start = start_of_day(day)
        active = self.store.find_active_user_ids(start, start + timedelta(days=1))
        return [uid for uid in active if self.store.count_snapshots_on(uid, day) == 0]

    async def run_daily_batch(self, day: Optional[date] = None) -> BatchResult:
        """
        Score every user who had a session on ``day`` (default yesterday)
        and has no snapshot dated ``day``.

        Users are processed concurrently up to the configured limit. A
        failure for one user is logged and counted; the batch continues.
        """
        day = day or (self._clock().date() - timedelta(days=1))
        pending = await asyncio.to_thread(self.pending_users, day)

        logger.info(f"Found {len(pending)} active users without Echo Score for {day}")

        semaphore = asyncio.Semaphore(self.config.batch_concurrency_limit)

        async def process(user_id: int) -> bool:
            async with semaphore:
                try:
                    await asyncio.to_thread(self.calculator.calculate_and_save, user_id)
                except Exception as e:
                    logger.error(f"Failed to calculate Echo Score for user {user_id}: {e}")
                    return False
                return True

        outcomes = await asyncio.gather(*(process(uid) for uid in pending))

        result = BatchResult(date=day)
        for user_id, ok in zip(pending, outcomes):
            if ok:
                result.processed += 1
            else:
                result.failed += 1
                result.failed_users.append(user_id)

        logger.info(f"Daily batch for {day}: {result.processed} processed, {result.failed} failed")
        return result

    # =========================================================================
    # Reports
    # =========================================================================

    def weekly_summary(self, user_id: int) -> Optional[WeeklySummary]:
        """Average scores over the last 7 days of snapshots, or None without any."""
        now = self._clock()
        snapshots = self.store.get_echo_history(user_id, since=(now - timedelta(days=7)).date())
        if not snapshots:
            return None

        count = len(snapshots)
        return WeeklySummary(
            scores_count=count,
            average_total=sum(s.total_score for s in snapshots) / count,
            averages={name: sum(s.component(name) for s in snapshots) / count for name in COMPONENTS},
            calculated_at=now,
        )
