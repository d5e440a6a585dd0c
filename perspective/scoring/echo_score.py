"""
Echo Score Calculator.

The Echo Score combines five independent sub-scores (each 0-100) into a
single measure of diverse-perspective consumption and cognitive flexibility.

Formula:
    E = 0.25·diversity + 0.25·accuracy + 0.20·switch_speed
        + 0.15·consistency + 0.15·improvement

Where:
    diversity    = Gini index of bias positions read in the last 7 days (×100)
    accuracy     = % correct challenge responses in the last 30 days
    switch_speed = median bias-swap response time mapped 30s→100 ... 300s→0
    consistency  = distinct active days in the last 14 days / 14 (×100)
    improvement  = 50 + (accuracy slope + speed slope)·25 over the last 30 days

Each sub-score is computed together with its audit details in a single
pass over the fetched activity.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from loguru import logger

from perspective.adaptive.models import (
    ChallengeType,
    ReadingActivityRecord,
    SessionRecord,
    SubmissionRecord,
    UserContext,
)
from perspective.scoring import trend_analyzer
from perspective.scoring.models import (
    COMPONENTS,
    EchoScoreComponents,
    EchoScoreConfig,
    EchoScoreResult,
    EchoScoreSnapshot,
    ProgressPeriod,
    ScoreProgress,
)
from perspective.store.base import ActivityHistoryStore
from perspective.timeutils import Clock, ensure_utc, resolve_clock

NEUTRAL_SCORE = 50.0
RECENT_ACCURACY_DAYS = 7

Component = tuple[float, dict[str, Any]]


@dataclass
class ActivityWindow:
    """Everything one Echo Score calculation reads, fetched once."""

    now: datetime
    user: Optional[UserContext] = None
    submissions: list[SubmissionRecord] = field(default_factory=list)
    readings: list[ReadingActivityRecord] = field(default_factory=list)
    sessions: list[SessionRecord] = field(default_factory=list)
    diversity_history: list[float] = field(default_factory=list)


class EchoScoreCalculator:
    """
    Compute, persist and report Echo Scores.

    Missing history never raises: each component falls back to its
    neutral value (0 for diversity/accuracy/consistency, 50 for
    switch speed and improvement).
    """

    def __init__(
        self,
        store: ActivityHistoryStore,
        config: Optional[EchoScoreConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.config = config or EchoScoreConfig()
        self._clock = resolve_clock(clock)

    # =========================================================================
    # Calculation
    # =========================================================================

    def calculate(self, user_id: int) -> EchoScoreResult:
        """
        Calculate the Echo Score for a user.

        Returns:
            EchoScoreResult with total, components and calculation details
        """
        window = self.gather(user_id)
        return self.calculate_from_window(window)

    def gather(self, user_id: int) -> ActivityWindow:
        """Fetch the activity all components need."""
        now = self._clock()
        cfg = self.config
        response_start = now - timedelta(days=cfg.accuracy_window_days)

        history = self.store.get_echo_history(user_id, since=response_start.date())
        return ActivityWindow(
            now=now,
            user=self.store.get_user(user_id),
            submissions=self.store.get_submissions(user_id, response_start),
            readings=self.store.get_reading_activity(
                user_id, now - timedelta(days=cfg.diversity_window_days)
            ),
            sessions=self.store.get_sessions(
                user_id, now - timedelta(days=cfg.consistency_window_days)
            ),
            # Store returns newest first; trends read oldest first
            diversity_history=[s.diversity_score for s in reversed(history)],
        )

    def calculate_from_window(self, window: ActivityWindow) -> EchoScoreResult:
        """Pure calculation over already-fetched activity."""
        now = window.now
        streak = window.user.current_streak if window.user else 0

        diversity, diversity_details = self.diversity_component(window.readings, now)
        accuracy, accuracy_details = self.accuracy_component(window.submissions, now)
        switch_speed, speed_details = self.switch_speed_component(window.submissions, now)
        consistency, consistency_details = self.consistency_component(window.sessions, now, streak)
        improvement, improvement_details = self.improvement_component(
            window.submissions, now, window.diversity_history
        )

        components = EchoScoreComponents(
            diversity=round(diversity, 2),
            accuracy=round(accuracy, 2),
            switch_speed=round(switch_speed, 2),
            consistency=round(consistency, 2),
            improvement=round(improvement, 2),
        )
        return EchoScoreResult(
            total_score=components.weighted_total(self.config.weights),
            components=components,
            calculation_details={
                "diversity_metrics": diversity_details,
                "accuracy_metrics": accuracy_details,
                "speed_metrics": speed_details,
                "consistency_metrics": consistency_details,
                "improvement_metrics": improvement_details,
                "weights": dict(self.config.weights),
                "calculated_at": now.isoformat(),
            },
        )

    def diversity_component(
        self, readings: list[ReadingActivityRecord], now: datetime
    ) -> Component:
        """
        Gini index over the 1..7 bias positions of recently read articles.

        Unrated articles carry no signal and are skipped.
        """
        start = now - timedelta(days=self.config.diversity_window_days)
        recent = [r for r in readings if ensure_utc(r.created_at) >= start]
        rated = [r.bias_rating for r in recent if r.bias_rating is not None]

        positions = [rating.position for rating in rated]
        gini = trend_analyzer.gini_index(positions)
        scores = [rating.score for rating in rated]
        sources = sorted({r.source for r in recent if r.source})

        details = {
            "gini_index": round(gini, 4),
            "articles_read": len(recent),
            "rated_articles": len(rated),
            "sources_read": sources,
            "bias_range": (max(scores) - min(scores)) if scores else 0,
        }
        if not rated:
            return 0.0, details
        return trend_analyzer.clamp(gini * 100), details

    def accuracy_component(self, submissions: list[SubmissionRecord], now: datetime) -> Component:
        """Percentage of correct responses in the window."""
        start = now - timedelta(days=self.config.accuracy_window_days)
        recent_start = now - timedelta(days=RECENT_ACCURACY_DAYS)
        responses = [s for s in submissions if ensure_utc(s.created_at) >= start]
        last_week = [s for s in responses if ensure_utc(s.created_at) >= recent_start]

        correct = sum(1 for s in responses if s.is_correct)
        week_correct = sum(1 for s in last_week if s.is_correct)
        details = {
            "correct_answers": correct,
            "total_answers": len(responses),
            "recent_accuracy": (week_correct / len(last_week) * 100) if last_week else 0.0,
        }
        if not responses:
            return 0.0, details
        return correct / len(responses) * 100, details

    def switch_speed_component(
        self, submissions: list[SubmissionRecord], now: datetime
    ) -> Component:
        """Median bias-swap response time mapped linearly onto 100..0."""
        start = now - timedelta(days=self.config.accuracy_window_days)
        swaps = sorted(
            (
                s
                for s in submissions
                if s.challenge_type == ChallengeType.BIAS_SWAP
                and s.time_spent_seconds is not None
                and ensure_utc(s.created_at) >= start
            ),
            key=lambda s: ensure_utc(s.created_at),
            reverse=True,
        )
        times = [float(s.time_spent_seconds) for s in swaps]

        median_time = trend_analyzer.median(times)
        # Newest half against oldest half; positive means getting faster
        half = len(times) // 2
        newer = trend_analyzer.median(times[:half])
        older = trend_analyzer.median(times[half:])
        details = {
            "median_response_time": median_time,
            "responses": len(times),
            "improvement_trend": ((older - newer) / older * 100) if older > 0 and half else 0.0,
        }
        if not times:
            return NEUTRAL_SCORE, details
        return self.switch_speed_score(median_time), details

    def switch_speed_score(self, median_seconds: float) -> float:
        fast = self.config.switch_speed_fast_seconds
        slow = self.config.switch_speed_slow_seconds
        bounded = trend_analyzer.clamp(median_seconds, fast, slow)
        return (slow - bounded) / (slow - fast) * 100

    def consistency_component(
        self, sessions: list[SessionRecord], now: datetime, streak: int = 0
    ) -> Component:
        """Share of the last 14 days with at least one session."""
        total_days = self.config.consistency_window_days
        start = now - timedelta(days=total_days)
        active_days = {
            ensure_utc(s.session_start).date()
            for s in sessions
            if ensure_utc(s.session_start) >= start
        }
        details = {
            "active_days": len(active_days),
            "total_days": total_days,
            "streak_length": streak,
        }
        return trend_analyzer.clamp(len(active_days) / total_days * 100), details

    def improvement_component(
        self,
        submissions: list[SubmissionRecord],
        now: datetime,
        diversity_history: Optional[list[float]] = None,
    ) -> Component:
        """
        Trend of accuracy and speed across the window's responses.

        Accuracy is the 0/1 correctness series and speed the 1/time series,
        both in chronological order.
        """
        start = now - timedelta(days=self.config.accuracy_window_days)
        ordered = sorted(
            (s for s in submissions if ensure_utc(s.created_at) >= start),
            key=lambda s: ensure_utc(s.created_at),
        )

        accuracy_slope = trend_analyzer.series_slope([1.0 if s.is_correct else 0.0 for s in ordered])
        speeds = [
            1.0 / s.time_spent_seconds
            for s in ordered
            if s.time_spent_seconds is not None and s.time_spent_seconds > 0
        ]
        speed_slope = trend_analyzer.series_slope(speeds)
        diversity_slope = trend_analyzer.series_slope(diversity_history or [])

        details = {
            "accuracy_slope": accuracy_slope,
            "speed_slope": speed_slope,
            "diversity_slope": diversity_slope,
            "data_points": len(ordered),
        }
        if len(ordered) < self.config.improvement_min_points:
            return NEUTRAL_SCORE, details
        return trend_analyzer.clamp(NEUTRAL_SCORE + (accuracy_slope + speed_slope) * 25), details

    # =========================================================================
    # Persistence
    # =========================================================================

    def calculate_and_save(self, user_id: int) -> EchoScoreSnapshot:
        """
        Calculate the score, append a snapshot and update the user's live score.

        Not idempotent: every call appends a new snapshot. Callers throttle
        to one calculation per user per day. Store errors propagate.
        """
        result = self.calculate(user_id)
        snapshot = EchoScoreSnapshot.from_result(user_id, result, created_at=self._clock())
        saved = self.store.save_echo_snapshot(snapshot)
        logger.info(f"Saved Echo Score {saved.total_score:.2f} for user {user_id}")
        return saved

    # =========================================================================
    # History and progress
    # =========================================================================

    def get_history(self, user_id: int, days: Optional[int] = None) -> list[EchoScoreSnapshot]:
        """Snapshots newest first, optionally limited to the last ``days`` days."""
        since = (self._clock() - timedelta(days=days)).date() if days else None
        return self.store.get_echo_history(user_id, since=since)

    def get_latest(self, user_id: int) -> Optional[EchoScoreSnapshot]:
        history = self.store.get_echo_history(user_id)
        return history[0] if history else None

    def get_score_progress(self, user_id: int, period: ProgressPeriod = "daily") -> ScoreProgress:
        """
        Recent snapshots (7 days for daily, 28 for weekly) in chronological
        order, with the least-squares slope of the total and each component.
        """
        if period not in ("daily", "weekly"):
            raise ValueError(f"Unknown progress period: {period}")

        days = 7 if period == "daily" else 28
        history = list(reversed(self.get_history(user_id, days)))

        scores = [
            {
                "date": snapshot.score_date.isoformat(),
                "total": snapshot.total_score,
                "components": {name: snapshot.component(name) for name in COMPONENTS},
            }
            for snapshot in history
        ]
        trends = {"total": trend_analyzer.series_slope([s.total_score for s in history])}
        for name in COMPONENTS:
            trends[name] = trend_analyzer.series_slope([s.component(name) for s in history])

        return ScoreProgress(period=period, scores=scores, trends=trends)
