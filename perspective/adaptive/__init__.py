"""
Adaptive Challenge Selection.

Picks the challenge that best fits a user's recent performance.

Components:
- PerformanceProfileBuilder: Aggregates recent submissions into a profile
- ChallengeScorer: Scores candidates against the profile
- ChallengeSelector: Weighted pick, daily challenge, recommendations, progress
- StreakService: Maintains consecutive-day streaks
"""
from perspective.adaptive.models import (
    AdaptiveConfig,
    ArticleBias,
    BiasProfile,
    BiasRating,
    ChallengeCandidate,
    ChallengeContent,
    ChallengeScore,
    ChallengeType,
    DailyChallengeSelection,
    DifficultyLevel,
    PerformanceProfile,
    ProgressAnalysis,
    ReadingActivityRecord,
    SessionRecord,
    SubmissionRecord,
    TypePerformance,
    UserContext,
)
from perspective.adaptive.profile_builder import PerformanceProfileBuilder
from perspective.adaptive.challenge_scorer import ChallengeScorer
from perspective.adaptive.challenge_selector import ChallengeSelector
from perspective.adaptive.streak_service import StreakService, StreakUpdate

__all__ = [
    # Components
    "PerformanceProfileBuilder",
    "ChallengeScorer",
    "ChallengeSelector",
    "StreakService",
    "StreakUpdate",
    # Enums
    "ChallengeType",
    "DifficultyLevel",
    "BiasRating",
    # Data models
    "AdaptiveConfig",
    "ArticleBias",
    "BiasProfile",
    "ChallengeCandidate",
    "ChallengeContent",
    "ChallengeScore",
    "DailyChallengeSelection",
    "PerformanceProfile",
    "ProgressAnalysis",
    "ReadingActivityRecord",
    "SessionRecord",
    "SubmissionRecord",
    "TypePerformance",
    "UserContext",
]
