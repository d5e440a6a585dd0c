"""
Unit tests for ChallengeScorer.

Each factor is checked in isolation and then through the combined score.
"""

from collections import Counter

import pytest

from perspective.adaptive.challenge_scorer import ChallengeScorer
from perspective.adaptive.models import (
    BiasProfile,
    BiasRating,
    ChallengeType,
    DifficultyLevel,
    PerformanceProfile,
    TypePerformance,
    UserContext,
)


@pytest.fixture
def scorer():
    return ChallengeScorer()


def profile_with(**fields) -> PerformanceProfile:
    fields.setdefault("total_submissions", 10)
    return PerformanceProfile(**fields)


class TestTargetDifficulty:
    def test_new_user_targets_beginner(self, scorer):
        profile = PerformanceProfile()
        for level in DifficultyLevel:
            assert scorer.target_difficulty(level, profile) == DifficultyLevel.BEGINNER

    def test_strong_performance_escalates(self, scorer):
        profile = profile_with(recent_success_rate=0.9)
        assert scorer.target_difficulty(DifficultyLevel.BEGINNER, profile) == DifficultyLevel.INTERMEDIATE
        assert scorer.target_difficulty(DifficultyLevel.ADVANCED, profile) == DifficultyLevel.ADVANCED

    def test_weak_performance_de_escalates(self, scorer):
        profile = profile_with(recent_success_rate=0.3)
        assert scorer.target_difficulty(DifficultyLevel.ADVANCED, profile) == DifficultyLevel.INTERMEDIATE
        assert scorer.target_difficulty(DifficultyLevel.BEGINNER, profile) == DifficultyLevel.BEGINNER

    def test_middling_performance_targets_intermediate(self, scorer):
        profile = profile_with(recent_success_rate=0.6)
        for level in DifficultyLevel:
            assert scorer.target_difficulty(level, profile) == DifficultyLevel.INTERMEDIATE

    def test_thresholds_are_inclusive(self, scorer):
        assert scorer.target_difficulty(
            DifficultyLevel.BEGINNER, profile_with(recent_success_rate=0.85)
        ) == DifficultyLevel.INTERMEDIATE
        assert scorer.target_difficulty(
            DifficultyLevel.ADVANCED, profile_with(recent_success_rate=0.40)
        ) == DifficultyLevel.INTERMEDIATE


class TestDifficultyFit:
    def test_exact_adjacent_distant(self, scorer):
        new_user = PerformanceProfile()
        assert scorer.difficulty_fit(DifficultyLevel.BEGINNER, new_user) == 1.0
        assert scorer.difficulty_fit(DifficultyLevel.INTERMEDIATE, new_user) == 0.7
        assert scorer.difficulty_fit(DifficultyLevel.ADVANCED, new_user) == 0.3

    def test_strong_user_prefers_advanced_over_beginner(self, scorer, factories):
        """Recent success 0.9: advanced outscores beginner on difficulty alone."""
        profile = profile_with(recent_success_rate=0.9)
        advanced = scorer.score_challenge(
            factories.challenge(1, difficulty=DifficultyLevel.ADVANCED), None, profile
        )
        beginner = scorer.score_challenge(
            factories.challenge(2, difficulty=DifficultyLevel.BEGINNER), None, profile
        )
        assert advanced.score > beginner.score

    @pytest.mark.parametrize("recent_rate", [0.2, 0.6, 0.95])
    def test_on_target_candidate_never_loses_to_neighbour(self, scorer, factories, recent_rate):
        profile = profile_with(recent_success_rate=recent_rate)
        scores = {
            level: scorer.score_challenge(factories.challenge(1, difficulty=level), None, profile).score
            for level in DifficultyLevel
        }
        on_target = [
            level for level in DifficultyLevel if scorer.target_difficulty(level, profile) == level
        ]
        assert on_target
        for level in on_target:
            for neighbour in {level.step(-1), level.step(1)} - {level}:
                assert scores[level] >= scores[neighbour]


class TestWeaknessFocus:
    @pytest.mark.parametrize(
        "rate,expected",
        [(0.1, 1.0), (0.39, 1.0), (0.4, 0.8), (0.59, 0.8), (0.6, 0.5), (0.79, 0.5), (0.8, 0.3), (1.0, 0.3)],
    )
    def test_bands(self, scorer, rate, expected):
        profile = profile_with(
            type_performance={ChallengeType.SYNTHESIS: TypePerformance(rate, 60, 5)}
        )
        assert scorer.weakness_focus(ChallengeType.SYNTHESIS, profile) == expected

    def test_unseen_type(self, scorer):
        assert scorer.weakness_focus(ChallengeType.SYNTHESIS, profile_with()) == 0.6


class TestBiasDiversity:
    def test_no_embedded_ratings_stays_at_base(self, scorer, factories):
        candidate = factories.challenge(1, ChallengeType.BIAS_SWAP)
        score = scorer.bias_diversity(candidate, BiasProfile(political_lean=-2), profile_with())
        assert score == 0.5

    def test_underexposed_rating_adds_bonus(self, scorer, factories):
        profile = profile_with(
            bias_exposure=Counter({BiasRating.LEFT: 9, BiasRating.CENTER: 1})
        )
        candidate = factories.challenge(
            1, ChallengeType.BIAS_SWAP, ratings=(BiasRating.LEFT, BiasRating.CENTER)
        )
        score = scorer.bias_diversity(candidate, BiasProfile(political_lean=0), profile)
        # CENTER share is 10% (< 15%), LEFT is 90%
        assert score == pytest.approx(0.7)

    def test_opposing_view_adds_bonus(self, scorer, factories):
        profile = profile_with(bias_exposure=Counter({BiasRating.RIGHT: 10}))
        candidate = factories.challenge(1, ChallengeType.BIAS_SWAP, ratings=(BiasRating.RIGHT,))
        score = scorer.bias_diversity(candidate, BiasProfile(political_lean=-2), profile)
        assert score == pytest.approx(0.8)

    def test_same_side_gets_no_opposing_bonus(self, scorer, factories):
        profile = profile_with(bias_exposure=Counter({BiasRating.LEFT: 10}))
        candidate = factories.challenge(1, ChallengeType.BIAS_SWAP, ratings=(BiasRating.LEFT,))
        score = scorer.bias_diversity(candidate, BiasProfile(political_lean=-2), profile)
        assert score == pytest.approx(0.5)

    def test_capped_at_one(self, scorer, factories):
        candidate = factories.challenge(
            1,
            ChallengeType.BIAS_SWAP,
            ratings=(BiasRating.FAR_RIGHT, BiasRating.RIGHT, BiasRating.CENTER),
        )
        score = scorer.bias_diversity(candidate, BiasProfile(political_lean=-3), profile_with())
        assert score == 1.0

    def test_only_applies_to_bias_swap_with_profile(self, scorer, factories):
        profile = profile_with()
        user = UserContext(user_id=1, bias_profile=BiasProfile(political_lean=-2))
        candidate = factories.challenge(1, ChallengeType.BIAS_SWAP, ratings=(BiasRating.RIGHT,))

        with_profile = scorer.score_challenge(candidate, user, profile)
        without_profile = scorer.score_challenge(candidate, UserContext(user_id=1), profile)

        assert "Expands bias perspective" in with_profile.reasons
        assert "Expands bias perspective" not in without_profile.reasons


class TestTypeDiversity:
    def test_strictly_decreasing_with_repeats(self, scorer):
        t = ChallengeType.LOGIC_PUZZLE
        values = [scorer.type_diversity(t, [t] * n) for n in range(4)]
        assert values == [1.0, 0.7, 0.4, 0.1]
        assert values == sorted(values, reverse=True)

    def test_saturates_after_three(self, scorer):
        t = ChallengeType.LOGIC_PUZZLE
        assert scorer.type_diversity(t, [t] * 5) == 0.1

    def test_other_types_do_not_count(self, scorer):
        recent = [ChallengeType.SYNTHESIS, ChallengeType.DATA_LITERACY]
        assert scorer.type_diversity(ChallengeType.LOGIC_PUZZLE, recent) == 1.0


class TestTimeFit:
    @pytest.mark.parametrize("avg_seconds,expected", [(300, 1.0), (500, 0.9), (700, 0.8)])
    def test_ratio_bands(self, scorer, factories, avg_seconds, expected):
        profile = profile_with(
            type_performance={ChallengeType.LOGIC_PUZZLE: TypePerformance(0.7, avg_seconds, 4)}
        )
        candidate = factories.challenge(1, estimated_time_minutes=5)
        assert scorer.time_fit(candidate, profile) == expected

    def test_unknown_type_is_neutral(self, scorer, factories):
        assert scorer.time_fit(factories.challenge(1), profile_with()) == 1.0


class TestCombinedScore:
    def test_new_user_beginner_score(self, scorer, factories):
        """Exact difficulty, unseen type, no repeats, no streak, no time data."""
        result = scorer.score_challenge(
            factories.challenge(1, difficulty=DifficultyLevel.BEGINNER),
            UserContext(user_id=1),
            PerformanceProfile(),
        )
        expected = 100 * 1.0 * (0.6 * 0.25 + 0.75) * 1.0
        assert result.score == pytest.approx(expected)
        assert "Appropriate difficulty level" in result.reasons
        assert "Adds variety to challenge types" in result.reasons

    def test_streak_multiplies_directly(self, scorer, factories):
        candidate = factories.challenge(1)
        base = scorer.score_challenge(candidate, None, profile_with()).score
        boosted = scorer.score_challenge(candidate, None, profile_with(streak_multiplier=1.2))
        assert boosted.score == pytest.approx(base * 1.2)
        assert "Streak bonus: 20%" in boosted.reasons

    def test_sorted_best_first(self, scorer, factories):
        profile = PerformanceProfile()
        candidates = [
            factories.challenge(1, difficulty=DifficultyLevel.ADVANCED),
            factories.challenge(2, difficulty=DifficultyLevel.BEGINNER),
            factories.challenge(3, difficulty=DifficultyLevel.INTERMEDIATE),
        ]
        ranked = scorer.score_challenges(candidates, None, profile)
        assert [s.challenge_id for s in ranked] == [2, 3, 1]
