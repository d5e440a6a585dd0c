"""
Challenge Selector.

Turns scored candidates into a concrete choice:
- Weighted-random pick among the top candidates (variety, but biased to the best)
- "Today's challenge" with one persisted selection per user per UTC day
- Batches of distinct recommendations
- Progress analysis (strengths, weaknesses, trend)
"""
from __future__ import annotations

import math
import random
from datetime import date, timedelta
from typing import Optional

from loguru import logger

from perspective.adaptive.challenge_scorer import ChallengeScorer
from perspective.adaptive.models import (
    AdaptiveConfig,
    ChallengeCandidate,
    ChallengeScore,
    DailyChallengeSelection,
    ProgressAnalysis,
)
from perspective.adaptive.profile_builder import PerformanceProfileBuilder
from perspective.errors import DuplicateSelectionError
from perspective.store.base import ActivityHistoryStore, ChallengeCatalog
from perspective.timeutils import Clock, resolve_clock

# Width of daily_challenge_selections.selection_reason
MAX_REASON_LENGTH = 255

STRENGTH_THRESHOLD = 0.8
WEAKNESS_THRESHOLD = 0.5
TREND_MARGIN = 0.1


class ChallengeSelector:
    """
    Select challenges for a user.

    Stateless apart from its collaborators: every call recomputes the
    profile and scores from the store, so concurrent calls are safe except
    for the daily-selection insert race handled in get_todays_challenge().
    """

    def __init__(
        self,
        store: ActivityHistoryStore,
        catalog: ChallengeCatalog,
        config: Optional[AdaptiveConfig] = None,
        profile_builder: Optional[PerformanceProfileBuilder] = None,
        scorer: Optional[ChallengeScorer] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.config = config or AdaptiveConfig()
        self._clock = resolve_clock(clock)
        self.profile_builder = profile_builder or PerformanceProfileBuilder(
            store, self.config, clock=self._clock
        )
        self.scorer = scorer or ChallengeScorer(self.config)
        self._rng = rng or random.Random()

    # =========================================================================
    # Selection
    # =========================================================================

    def pick(self, scored: list[ChallengeScore]) -> Optional[ChallengeScore]:
        """
        Weighted-random pick among the top-k scored candidates.

        Draws r in [0, Σ top-k scores) and walks the candidates subtracting
        each score until r drops to zero or below. If floating-point drift
        exhausts the loop, the best candidate is returned.

        Args:
            scored: Candidates sorted best first

        Returns:
            The chosen ChallengeScore, or None for an empty list
        """
        if not scored:
            return None

        top = scored[: self.config.selection_top_k]
        total_weight = sum(candidate.score for candidate in top)

        remaining = self._rng.random() * total_weight
        for candidate in top:
            remaining -= candidate.score
            if remaining <= 0:
                return candidate

        return scored[0]

    def get_available_challenges(self, user_id: int) -> list[ChallengeCandidate]:
        """Active challenges the user has not submitted within the repeat-prevention window."""
        since = self._clock() - timedelta(days=self.config.repeat_prevention_days)
        recent_ids = self.store.get_recent_challenge_ids(user_id, since)
        return self.catalog.list_active(exclude_ids=recent_ids)

    def score_for_user(self, user_id: int) -> list[ChallengeScore]:
        """Score every available challenge for the user, best first."""
        user = self.store.get_user(user_id)
        if user is None:
            logger.warning(f"User {user_id} not found - nothing to score")
            return []

        candidates = self.get_available_challenges(user_id)
        if not candidates:
            logger.info(f"No eligible challenges for user {user_id}")
            return []

        profile = self.profile_builder.build(user_id, user=user)
        return self.scorer.score_challenges(candidates, user, profile)

    def get_next_challenge(self, user_id: int) -> Optional[ChallengeCandidate]:
        """
        Choose a challenge for the user without persisting anything.

        Returns:
            The selected challenge, or None when nothing is available
        """
        selected = self.pick(self.score_for_user(user_id))
        if selected is None:
            return None

        logger.info(
            f"Selected challenge {selected.challenge_id} for user {user_id} "
            f"(score={selected.score:.2f}; {'; '.join(selected.reasons) or 'no reasons'})"
        )
        return selected.challenge

    # =========================================================================
    # Daily challenge
    # =========================================================================

    def get_todays_challenge(
        self, user_id: int, today: Optional[date] = None
    ) -> Optional[ChallengeCandidate]:
        """
        Return the user's challenge for the current UTC day.

        An existing selection is returned as-is without rescoring. Otherwise
        a challenge is selected and exactly one selection row is stored.
        When a concurrent call stores its row first, that row wins.

        Args:
            user_id: User identifier
            today: UTC day (defaults to the current one)

        Returns:
            The day's challenge, or None when nothing is available
        """
        today = today or self._clock().date()

        existing = self.store.get_daily_selection(user_id, today)
        if existing is not None:
            return self._resolve_selection(existing)

        selected = self.pick(self.score_for_user(user_id))
        if selected is None:
            return None

        selection = DailyChallengeSelection(
            user_id=user_id,
            selected_challenge_id=selected.challenge_id,
            selection_date=today,
            reason=self._format_reason(selected.reasons),
            created_at=self._clock(),
        )
        try:
            self.store.save_daily_selection(selection)
        except DuplicateSelectionError:
            winner = self.store.get_daily_selection(user_id, today)
            if winner is None:
                raise
            logger.warning(
                f"Concurrent daily selection for user {user_id} on {today}: keeping "
                f"challenge {winner.selected_challenge_id}, discarding {selected.challenge_id}"
            )
            return self._resolve_selection(winner)

        logger.info(f"Stored daily challenge {selected.challenge_id} for user {user_id} on {today}")
        return selected.challenge

    def _resolve_selection(self, selection: DailyChallengeSelection) -> Optional[ChallengeCandidate]:
        challenge = self.catalog.get(selection.selected_challenge_id)
        if challenge is None:
            logger.warning(
                f"Daily selection for user {selection.user_id} references missing "
                f"challenge {selection.selected_challenge_id}"
            )
        return challenge

    @staticmethod
    def _format_reason(reasons: list[str]) -> str:
        reason = "; ".join(reasons) or "Adaptive selection"
        if len(reason) > MAX_REASON_LENGTH:
            reason = reason[: MAX_REASON_LENGTH - 3] + "..."
        return reason

    # =========================================================================
    # Recommendations
    # =========================================================================

    def get_recommendations(self, user_id: int, count: int = 3) -> list[ChallengeCandidate]:
        """
        Produce up to ``count`` distinct challenge suggestions.

        Oversamples with ⌈1.5·count⌉ independent weighted picks, keeps the
        first occurrence of each challenge, then tops up from the full score
        order when duplicates left the batch short.
        """
        if count <= 0:
            return []

        scored = self.score_for_user(user_id)
        if not scored:
            return []

        attempts = math.ceil(count * self.config.recommendation_oversample)
        chosen: dict[int, ChallengeCandidate] = {}
        for _ in range(attempts):
            selected = self.pick(scored)
            if selected is not None and selected.challenge_id not in chosen:
                chosen[selected.challenge_id] = selected.challenge
                if len(chosen) >= count:
                    break

        if len(chosen) < count:
            for candidate in scored:
                if candidate.challenge_id not in chosen:
                    chosen[candidate.challenge_id] = candidate.challenge
                    if len(chosen) >= count:
                        break

        return list(chosen.values())[:count]

    # =========================================================================
    # Progress analysis
    # =========================================================================

    def analyze_progress(self, user_id: int) -> ProgressAnalysis:
        """Summarize strengths, weaknesses and direction from the user's profile."""
        profile = self.profile_builder.build(user_id)

        strengths = []
        weaknesses = []
        for challenge_type, performance in profile.type_performance.items():
            if performance.success_rate >= STRENGTH_THRESHOLD:
                strengths.append(challenge_type)
            elif performance.success_rate < WEAKNESS_THRESHOLD:
                weaknesses.append(challenge_type)

        delta = profile.recent_success_rate - profile.overall_success_rate
        if delta > TREND_MARGIN:
            trend = "improving"
        elif delta < -TREND_MARGIN:
            trend = "declining"
        else:
            trend = "stable"

        recommended_focus = [
            weakness
            for weakness in weaknesses
            if profile.last_challenge_types.count(weakness) < 2
        ]

        return ProgressAnalysis(
            strengths=strengths,
            weaknesses=weaknesses,
            recommended_focus=recommended_focus,
            progress_trend=trend,
        )
