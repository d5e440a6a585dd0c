"""
Unit tests for EchoScoreScheduler.

Trigger thresholds, the once-per-day throttle, the async nightly batch
and the weekly summary.
"""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest

from perspective.scoring.echo_score import EchoScoreCalculator
from perspective.scoring.models import COMPONENTS, EchoScoreConfig, EchoScoreSnapshot
from perspective.scoring.scheduler import EchoScoreScheduler


@pytest.fixture
def scheduler(store, clock):
    return EchoScoreScheduler(store, clock=clock)


def answered_today(store, factories, count):
    store.submissions.extend(factories.submission(days_ago=0.01 * (i + 1)) for i in range(count))


def read_today(store, factories, *sources):
    store.readings.extend(
        factories.reading(None, days_ago=0.01 * (i + 1), source=source, article_id=i)
        for i, source in enumerate(sources)
    )


def saved_snapshot(user_id, created_at, total=50.0):
    return EchoScoreSnapshot(
        user_id=user_id,
        total_score=total,
        diversity_score=total,
        accuracy_score=total,
        switch_speed_score=total,
        consistency_score=total,
        improvement_score=total,
        calculation_details={},
        score_date=created_at.date(),
        created_at=created_at,
    )


class TestConstruction:
    def test_shares_calculator_config(self, store, clock):
        config = EchoScoreConfig(recalc_min_challenges_today=1)
        calculator = EchoScoreCalculator(store, config, clock=clock)
        scheduler = EchoScoreScheduler(store, calculator=calculator, clock=clock)
        assert scheduler.config is config
        assert scheduler.calculator is calculator


class TestAfterChallenge:
    def test_below_threshold_does_nothing(self, scheduler, store, factories):
        answered_today(store, factories, 2)
        assert scheduler.calculate_after_challenge(1) is None
        assert store.snapshots == []

    def test_threshold_reached_saves_snapshot(self, scheduler, store, factories):
        answered_today(store, factories, 3)
        snapshot = scheduler.calculate_after_challenge(1)

        assert snapshot is not None
        assert len(store.snapshots) == 1

    def test_yesterdays_challenges_do_not_count(self, scheduler, store, factories):
        answered_today(store, factories, 2)
        store.submissions.append(factories.submission(days_ago=1))
        assert scheduler.calculate_after_challenge(1) is None

    def test_throttled_to_once_per_day(self, scheduler, store, factories):
        answered_today(store, factories, 5)
        scheduler.calculate_after_challenge(1)
        assert scheduler.calculate_after_challenge(1) is None
        assert len(store.snapshots) == 1

    def test_yesterdays_snapshot_does_not_throttle(self, scheduler, store, factories, now):
        store.snapshots.append(saved_snapshot(1, now - timedelta(days=1)))
        answered_today(store, factories, 3)
        assert scheduler.calculate_after_challenge(1) is not None

    def test_store_errors_propagate(self, store, clock, factories):
        answered_today(store, factories, 3)
        calculator = Mock(spec=EchoScoreCalculator)
        calculator.config = EchoScoreConfig()
        calculator.calculate_and_save.side_effect = RuntimeError("db down")
        scheduler = EchoScoreScheduler(store, calculator=calculator, clock=clock)

        with pytest.raises(RuntimeError):
            scheduler.calculate_after_challenge(1)


class TestAfterReading:
    def test_needs_distinct_sources(self, scheduler, store, factories):
        read_today(store, factories, "a", "a", "b", "b")
        assert scheduler.calculate_after_reading(1) is None

    def test_three_sources_trigger(self, scheduler, store, factories):
        read_today(store, factories, "a", "b", "c")
        assert scheduler.calculate_after_reading(1) is not None

    def test_missing_sources_ignored(self, scheduler, store, factories):
        read_today(store, factories, "a", "b", None, "")
        assert scheduler.calculate_after_reading(1) is None

    def test_throttled_after_first_snapshot(self, scheduler, store, factories):
        read_today(store, factories, "a", "b", "c")
        scheduler.calculate_after_reading(1)
        assert scheduler.calculate_after_reading(1) is None
        assert len(store.snapshots) == 1


class TestDailyBatch:
    @pytest.fixture
    def active_yesterday(self, store, factories):
        for user_id in (1, 2, 3):
            store.add_user(user_id)
            store.sessions.append(factories.session(days_ago=1, user_id=user_id))
        return [1, 2, 3]

    @pytest.mark.asyncio
    async def test_scores_users_active_yesterday(self, scheduler, store, active_yesterday, now):
        result = await scheduler.run_daily_batch()

        assert result.date == now.date() - timedelta(days=1)
        assert result.processed == 3
        assert result.failed == 0
        assert sorted(s.user_id for s in store.snapshots) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_inactive_users_skipped(self, scheduler, store, factories, active_yesterday):
        store.add_user(4)
        store.sessions.append(factories.session(days_ago=3, user_id=4))

        result = await scheduler.run_daily_batch()
        assert 4 not in {s.user_id for s in store.snapshots}
        assert result.processed == 3

    @pytest.mark.asyncio
    async def test_already_scored_users_skipped(self, scheduler, store, active_yesterday, now):
        store.snapshots.append(saved_snapshot(2, now - timedelta(days=1)))

        result = await scheduler.run_daily_batch()
        assert result.processed == 2
        assert [s.user_id for s in store.snapshots].count(2) == 1

    @pytest.mark.asyncio
    async def test_failure_for_one_user_does_not_stop_batch(self, store, clock, active_yesterday):
        calculator = Mock(spec=EchoScoreCalculator)
        calculator.config = EchoScoreConfig()

        def calculate_and_save(user_id):
            if user_id == 2:
                raise RuntimeError("boom")
            return Mock()

        calculator.calculate_and_save.side_effect = calculate_and_save
        scheduler = EchoScoreScheduler(store, calculator=calculator, clock=clock)

        result = await scheduler.run_daily_batch()

        assert result.processed == 2
        assert result.failed == 1
        assert result.failed_users == [2]
        assert calculator.calculate_and_save.call_count == 3

    @pytest.mark.asyncio
    async def test_explicit_day(self, scheduler, store, factories, now):
        store.add_user(5)
        store.sessions.append(factories.session(days_ago=4, user_id=5))

        result = await scheduler.run_daily_batch(now.date() - timedelta(days=4))
        assert result.processed == 1
        assert store.snapshots[0].user_id == 5

    @pytest.mark.asyncio
    async def test_store_lookups_run_off_the_event_loop(self, scheduler, store, active_yesterday):
        threads = []
        find_active = store.find_active_user_ids
        count_snapshots = store.count_snapshots_on

        def record_find(start, end):
            threads.append(threading.current_thread())
            return find_active(start, end)

        def record_count(user_id, score_date):
            threads.append(threading.current_thread())
            return count_snapshots(user_id, score_date)

        store.find_active_user_ids = record_find
        store.count_snapshots_on = record_count

        result = await scheduler.run_daily_batch()

        assert result.processed == 3
        assert len(threads) == 4
        assert all(t is not threading.main_thread() for t in threads)

    def test_pending_users(self, scheduler, store, active_yesterday, now):
        yesterday = now.date() - timedelta(days=1)
        store.snapshots.append(saved_snapshot(3, now - timedelta(days=1)))
        assert scheduler.pending_users(yesterday) == [1, 2]

    @pytest.mark.asyncio
    async def test_nobody_active(self, scheduler):
        result = await scheduler.run_daily_batch()
        assert result.processed == 0
        assert result.failed_users == []


class TestWeeklySummary:
    def test_no_snapshots(self, scheduler):
        assert scheduler.weekly_summary(1) is None

    def test_averages_last_week(self, scheduler, store, now):
        store.snapshots = [
            saved_snapshot(1, now - timedelta(days=1), 60),
            saved_snapshot(1, now - timedelta(days=3), 40),
            saved_snapshot(1, now - timedelta(days=12), 0),
        ]
        summary = scheduler.weekly_summary(1)

        assert summary.scores_count == 2
        assert summary.average_total == pytest.approx(50)
        assert set(summary.averages) == set(COMPONENTS)
        assert summary.averages["diversity"] == pytest.approx(50)
        assert summary.calculated_at == now
