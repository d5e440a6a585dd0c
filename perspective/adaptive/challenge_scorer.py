"""
Challenge Scorer.

Scores each candidate challenge against a user's PerformanceProfile.

Formula:
    score = 100 × Π adjustments

Adjustments, applied in order:
    1. Difficulty fit       (blended, weight 0.3)
    2. Weakness focus       (blended, weight 0.25)
    3. Bias diversity       (blended, weight 0.3; bias-swap with a bias profile only)
    4. Type diversity       (blended, weight 0.2)
    5. Streak bonus         (direct multiplier)
    6. Time fit             (direct multiplier)

A blended factor f with weight w contributes f·w + (1 - w), so a weight
bounds how far that factor can move the score.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

from loguru import logger

from perspective.adaptive.models import (
    AdaptiveConfig,
    BiasProfile,
    ChallengeCandidate,
    ChallengeScore,
    ChallengeType,
    DifficultyLevel,
    PerformanceProfile,
    UserContext,
)


class ChallengeScorer:
    """
    Rank candidate challenges for one user.

    Every factor is exposed as its own method so that callers (and tests)
    can inspect a single adjustment in isolation.
    """

    BASE_SCORE = 100.0

    # Difficulty fit by distance from the target level
    EXACT_FIT = 1.0
    ADJACENT_FIT = 0.7
    DISTANT_FIT = 0.3

    # Weakness focus
    UNSEEN_TYPE_PRIORITY = 0.6

    # Bias diversity
    BIAS_BASE = 0.5
    UNDEREXPOSED_SHARE = 0.15
    UNDEREXPOSED_BONUS = 0.2
    OPPOSING_VIEW_BONUS = 0.3

    # Type diversity by repeat count (0, 1, 2, 3+)
    REPEAT_PENALTIES = (1.0, 0.7, 0.4, 0.1)

    def __init__(self, config: Optional[AdaptiveConfig] = None):
        self.config = config or AdaptiveConfig()

    def score_challenges(
        self,
        candidates: Iterable[ChallengeCandidate],
        user: Optional[UserContext],
        profile: PerformanceProfile,
    ) -> list[ChallengeScore]:
        """
        Score all candidates and sort them best first.

        Args:
            candidates: Eligible challenges
            user: User row (its bias profile drives the bias-diversity factor)
            profile: Performance profile of the user

        Returns:
            ChallengeScore list sorted by descending score
        """
        scored = [self.score_challenge(candidate, user, profile) for candidate in candidates]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def score_challenge(
        self,
        candidate: ChallengeCandidate,
        user: Optional[UserContext],
        profile: PerformanceProfile,
    ) -> ChallengeScore:
        score = self.BASE_SCORE
        reasons: list[str] = []

        # 1. Difficulty appropriateness
        difficulty_fit = self.difficulty_fit(candidate.difficulty, profile)
        score *= self.blend(difficulty_fit, self.config.difficulty_weight)
        if difficulty_fit > 0.8:
            reasons.append("Appropriate difficulty level")

        # 2. Weakness focus
        weakness = self.weakness_focus(candidate.challenge_type, profile)
        score *= self.blend(weakness, self.config.weakness_focus_weight)
        if weakness > 0.7:
            reasons.append(f"Targets weak area: {candidate.challenge_type.value}")

        # 3. Bias exposure diversity
        bias_profile = user.bias_profile if user else None
        if candidate.challenge_type == ChallengeType.BIAS_SWAP and bias_profile is not None:
            bias = self.bias_diversity(candidate, bias_profile, profile)
            score *= self.blend(bias, self.config.bias_challenge_weight)
            if bias > 0.8:
                reasons.append("Expands bias perspective")

        # 4. Type diversity
        variety = self.type_diversity(candidate.challenge_type, profile.last_challenge_types)
        score *= self.blend(variety, self.config.type_diversity_weight)
        if variety > 0.8:
            reasons.append("Adds variety to challenge types")

        # 5. Streak bonus
        score *= profile.streak_multiplier
        if profile.streak_multiplier > 1.1:
            reasons.append(f"Streak bonus: {round((profile.streak_multiplier - 1) * 100)}%")

        # 6. Time fit
        time_fit = self.time_fit(candidate, profile)
        score *= time_fit
        if time_fit < 0.9:
            reasons.append("Adjusted for time constraints")

        logger.debug(f"Challenge {candidate.id} scored {score:.2f}: {reasons}")
        return ChallengeScore(challenge=candidate, score=score, reasons=reasons)

    @staticmethod
    def blend(factor: float, weight: float) -> float:
        return factor * weight + (1 - weight)

    def target_difficulty(
        self, candidate_difficulty: DifficultyLevel, profile: PerformanceProfile
    ) -> DifficultyLevel:
        """
        Difficulty the user should be working at, seen from this candidate.

        New users start at beginner. Strong recent performance escalates one
        level above the candidate's own level, weak performance drops one
        level below it, otherwise the target is intermediate.
        """
        if profile.is_new_user:
            return DifficultyLevel.BEGINNER
        if profile.recent_success_rate >= self.config.increase_difficulty_threshold:
            return candidate_difficulty.step(+1)
        if profile.recent_success_rate <= self.config.decrease_difficulty_threshold:
            return candidate_difficulty.step(-1)
        return DifficultyLevel.INTERMEDIATE

    def difficulty_fit(self, difficulty: DifficultyLevel, profile: PerformanceProfile) -> float:
        """1.0 on target, 0.7 one level away, 0.3 further."""
        distance = difficulty.distance(self.target_difficulty(difficulty, profile))
        if distance == 0:
            return self.EXACT_FIT
        if distance == 1:
            return self.ADJACENT_FIT
        return self.DISTANT_FIT

    def weakness_focus(self, challenge_type: ChallengeType, profile: PerformanceProfile) -> float:
        """Prioritize types the user struggles with; unseen types get a moderate priority."""
        performance = profile.type_performance.get(challenge_type)
        if performance is None:
            return self.UNSEEN_TYPE_PRIORITY

        rate = performance.success_rate
        if rate < 0.4:
            return 1.0
        if rate < 0.6:
            return 0.8
        if rate < 0.8:
            return 0.5
        return 0.3

    def bias_diversity(
        self,
        candidate: ChallengeCandidate,
        bias_profile: BiasProfile,
        profile: PerformanceProfile,
    ) -> float:
        """
        Reward bias-swap challenges that widen the user's exposure.

        +0.2 for each embedded rating the user has seen in less than 15% of
        their exposure, +0.3 when any embedded rating leans against the
        user's own political lean. Capped at 1.0.
        """
        score = self.BIAS_BASE
        ratings = set(candidate.content.bias_ratings)
        if not ratings:
            return score

        underexposed = sum(
            1 for rating in ratings if profile.exposure_share(rating) < self.UNDEREXPOSED_SHARE
        )
        score += underexposed * self.UNDEREXPOSED_BONUS

        lean = bias_profile.political_lean
        if lean != 0 and any(rating.score * lean < 0 for rating in ratings):
            score += self.OPPOSING_VIEW_BONUS

        return min(1.0, score)

    def type_diversity(
        self, challenge_type: ChallengeType, recent_types: list[ChallengeType]
    ) -> float:
        """Penalize types repeated among the most recent submissions."""
        repeats = sum(1 for t in recent_types if t == challenge_type)
        return self.REPEAT_PENALTIES[min(repeats, len(self.REPEAT_PENALTIES) - 1)]

    def time_fit(self, candidate: ChallengeCandidate, profile: PerformanceProfile) -> float:
        """Slight penalty when the user usually takes much longer than estimated."""
        performance = profile.type_performance.get(candidate.challenge_type)
        estimated_seconds = candidate.estimated_time_minutes * 60
        if performance is None or estimated_seconds <= 0:
            return 1.0

        ratio = performance.avg_time_seconds / estimated_seconds
        if ratio > 2:
            return 0.8
        if ratio > 1.5:
            return 0.9
        return 1.0
