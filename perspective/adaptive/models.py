"""
Adaptive Challenge Models.

Domain types for the challenge-selection path:
- Challenge taxonomy (type, difficulty, bias rating)
- Activity log records read from the history store
- Performance profile derived from those records
- Scored candidates and persisted daily selections
"""
from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional

from loguru import logger


# =============================================================================
# ENUMS
# =============================================================================


class ChallengeType(str, Enum):
    """Kinds of practice challenge."""

    BIAS_SWAP = "bias_swap"
    LOGIC_PUZZLE = "logic_puzzle"
    DATA_LITERACY = "data_literacy"
    COUNTER_ARGUMENT = "counter_argument"
    SYNTHESIS = "synthesis"
    ETHICAL_DILEMMA = "ethical_dilemma"


class DifficultyLevel(str, Enum):
    """Ordered challenge difficulty."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        """Ordinal position (1 = beginner, 3 = advanced)."""
        return _DIFFICULTY_RANKS[self]

    def step(self, delta: int) -> DifficultyLevel:
        """Move ``delta`` levels along the scale, clamped at both ends."""
        rank = min(3, max(1, self.rank + delta))
        return _DIFFICULTY_BY_RANK[rank]

    def distance(self, other: DifficultyLevel) -> int:
        return abs(self.rank - other.rank)


class BiasRating(str, Enum):
    """Political lean classification of a piece of content."""

    FAR_LEFT = "far_left"
    LEFT = "left"
    LEFT_CENTER = "left_center"
    CENTER = "center"
    RIGHT_CENTER = "right_center"
    RIGHT = "right"
    FAR_RIGHT = "far_right"

    @property
    def score(self) -> int:
        """Numeric lean in -3..+3."""
        return _BIAS_SCORES[self]

    @property
    def position(self) -> int:
        """Ordinal position in 1..7 (far left = 1)."""
        return self.score + 4

    @classmethod
    def from_score(cls, score: int) -> BiasRating:
        for rating, value in _BIAS_SCORES.items():
            if value == score:
                return rating
        raise ValueError(f"Bias score out of range: {score}")

    @classmethod
    def parse(cls, value: Any) -> Optional[BiasRating]:
        """
        Parse a stored rating.

        Accepts the enum itself, its value or name ("left_center",
        "LEFT_CENTER", "left-center") or an integer score in -3..+3.
        Anything else yields None.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, BiasRating):
            return value
        if isinstance(value, (int, float)):
            if float(value).is_integer() and -3 <= value <= 3:
                return cls.from_score(int(value))
            return None
        if isinstance(value, str):
            text = value.strip()
            try:
                return cls.parse(int(text))
            except ValueError:
                pass
            key = text.lower().replace("-", "_").replace(" ", "_")
            try:
                return cls(key)
            except ValueError:
                return None
        return None


_DIFFICULTY_RANKS = {
    DifficultyLevel.BEGINNER: 1,
    DifficultyLevel.INTERMEDIATE: 2,
    DifficultyLevel.ADVANCED: 3,
}
_DIFFICULTY_BY_RANK = {rank: level for level, rank in _DIFFICULTY_RANKS.items()}

_BIAS_SCORES = {
    BiasRating.FAR_LEFT: -3,
    BiasRating.LEFT: -2,
    BiasRating.LEFT_CENTER: -1,
    BiasRating.CENTER: 0,
    BiasRating.RIGHT_CENTER: 1,
    BiasRating.RIGHT: 2,
    BiasRating.FAR_RIGHT: 3,
}


# =============================================================================
# CHALLENGE CONTENT
# =============================================================================


@dataclass(frozen=True)
class ArticleBias:
    """Bias rating of one article embedded in a challenge."""

    article_id: Optional[str]
    bias_rating: BiasRating


@dataclass
class ChallengeContent:
    """Typed view of the free-form article payload embedded in a challenge."""

    articles: list[ArticleBias] = field(default_factory=list)
    malformed: bool = False

    @property
    def bias_ratings(self) -> tuple[BiasRating, ...]:
        return tuple(article.bias_rating for article in self.articles)

    @classmethod
    def from_payload(cls, payload: Any, challenge_id: Optional[int] = None) -> ChallengeContent:
        """
        Parse an embedded article payload.

        Accepts the whole content object ({"articles": [...]}), a bare list
        of articles, or either of them encoded as a JSON string. Corrupt
        payloads are logged and produce an empty, ``malformed`` content
        object so one bad record never aborts a computation.

        Args:
            payload: Raw value from the challenge content column
            challenge_id: Used only for log messages

        Returns:
            ChallengeContent with the rated articles found
        """
        if payload is None or payload == "":
            return cls()

        if isinstance(payload, (str, bytes)):
            try:
                decoded = json.loads(payload)
            except ValueError as e:
                logger.warning(f"Malformed article payload for challenge {challenge_id}: {e}")
                return cls(malformed=True)
            return cls.from_payload(decoded, challenge_id)

        if isinstance(payload, dict):
            articles = payload.get("articles")
            if articles is None:
                return cls()
            if isinstance(articles, (str, bytes)):
                return cls.from_payload(articles, challenge_id)
            payload = articles

        if not isinstance(payload, list):
            logger.warning(
                f"Unexpected article payload type for challenge {challenge_id}: "
                f"{type(payload).__name__}"
            )
            return cls(malformed=True)

        parsed: list[ArticleBias] = []
        malformed = False
        for entry in payload:
            if not isinstance(entry, dict):
                malformed = True
                continue
            rating = BiasRating.parse(entry.get("bias_rating"))
            if rating is None:
                continue
            article_id = entry.get("id")
            parsed.append(ArticleBias(str(article_id) if article_id is not None else None, rating))

        if malformed:
            logger.warning(f"Skipped malformed article entries in challenge {challenge_id}")
        return cls(articles=parsed, malformed=malformed)


# =============================================================================
# ACTIVITY RECORDS
# =============================================================================


@dataclass
class SubmissionRecord:
    """One challenge submission, joined with the challenge it answered."""

    user_id: int
    challenge_id: int
    challenge_type: ChallengeType
    difficulty: DifficultyLevel
    is_correct: bool
    time_spent_seconds: Optional[float]
    created_at: datetime
    bias_ratings: tuple[BiasRating, ...] = ()


@dataclass
class ReadingActivityRecord:
    """One article read by a user."""

    user_id: int
    article_id: int
    bias_rating: Optional[BiasRating]
    created_at: datetime
    source: Optional[str] = None


@dataclass
class SessionRecord:
    """Start of one user session."""

    user_id: int
    session_start: datetime


@dataclass
class BiasProfile:
    """Self-assessed bias profile of a user."""

    political_lean: float = 0.0  # -3 to +3
    preferred_sources: list[str] = field(default_factory=list)
    blind_spots: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> Optional[BiasProfile]:
        """Build from the stored JSON object; returns None when absent or unusable."""
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                logger.warning(f"Malformed bias profile payload: {e}")
                return None
        if not isinstance(payload, dict):
            return None
        try:
            lean = float(payload.get("political_lean") or 0)
        except (TypeError, ValueError):
            logger.warning(f"Invalid political_lean in bias profile: {payload.get('political_lean')!r}")
            lean = 0.0
        return cls(
            political_lean=lean,
            preferred_sources=list(payload.get("preferred_sources") or []),
            blind_spots=list(payload.get("blind_spots") or []),
        )


@dataclass
class UserContext:
    """User fields the engine reads."""

    user_id: int
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[datetime] = None
    bias_profile: Optional[BiasProfile] = None
    echo_score: Optional[float] = None


# =============================================================================
# CHALLENGES AND SCORING
# =============================================================================


@dataclass
class ChallengeCandidate:
    """A challenge from the catalog, as seen by the scorer."""

    id: int
    challenge_type: ChallengeType
    difficulty: DifficultyLevel
    estimated_time_minutes: float = 5.0
    title: str = ""
    content: ChallengeContent = field(default_factory=ChallengeContent)
    is_active: bool = True


@dataclass
class TypePerformance:
    """Success rate and pace for one challenge type or difficulty bucket."""

    success_rate: float
    avg_time_seconds: float
    attempts: int


@dataclass
class PerformanceProfile:
    """
    Snapshot of a user's recent performance.

    Derived from the activity log on every call and never persisted.
    Buckets without submissions are absent from the maps rather than zero.
    """

    total_submissions: int = 0
    overall_success_rate: float = 0.5
    recent_success_rate: float = 0.5
    type_performance: dict[ChallengeType, TypePerformance] = field(default_factory=dict)
    difficulty_performance: dict[DifficultyLevel, TypePerformance] = field(default_factory=dict)
    streak_multiplier: float = 1.0
    last_challenge_types: list[ChallengeType] = field(default_factory=list)
    bias_exposure: Counter = field(default_factory=Counter)

    @property
    def is_new_user(self) -> bool:
        return self.total_submissions == 0

    @property
    def total_bias_exposure(self) -> int:
        return sum(self.bias_exposure.values())

    def exposure_share(self, rating: BiasRating) -> float:
        """Share of observed exposure that went to ``rating`` (0 when nothing observed)."""
        total = self.total_bias_exposure
        if total == 0:
            return 0.0
        return self.bias_exposure.get(rating, 0) / total


@dataclass
class ChallengeScore:
    """A candidate with its multiplicative score and audit reasons."""

    challenge: ChallengeCandidate
    score: float
    reasons: list[str] = field(default_factory=list)

    @property
    def challenge_id(self) -> int:
        return self.challenge.id


@dataclass
class DailyChallengeSelection:
    """The challenge chosen for a user on one UTC day."""

    user_id: int
    selected_challenge_id: int
    selection_date: date
    reason: str
    created_at: datetime
    id: Optional[int] = None


ProgressTrend = Literal["improving", "stable", "declining"]


@dataclass
class ProgressAnalysis:
    """Strengths, weaknesses and direction of a user's recent work."""

    strengths: list[ChallengeType] = field(default_factory=list)
    weaknesses: list[ChallengeType] = field(default_factory=list)
    recommended_focus: list[ChallengeType] = field(default_factory=list)
    progress_trend: ProgressTrend = "stable"


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class AdaptiveConfig:
    """Thresholds, weights and windows for challenge selection."""

    increase_difficulty_threshold: float = 0.85
    decrease_difficulty_threshold: float = 0.40
    difficulty_weight: float = 0.3
    weakness_focus_weight: float = 0.25
    bias_challenge_weight: float = 0.3
    type_diversity_weight: float = 0.2
    performance_window_days: int = 30
    recent_days_to_consider: int = 14
    repeat_prevention_days: int = 7
    last_types_to_track: int = 5
    streak_bonus_per_day: float = 0.02
    streak_multiplier_cap: Optional[float] = None
    selection_top_k: int = 5
    recommendation_oversample: float = 1.5

    @classmethod
    def from_settings(cls, settings: Any = None) -> AdaptiveConfig:
        """Build from application settings (defaults to the cached settings)."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(
            increase_difficulty_threshold=settings.increase_difficulty_threshold,
            decrease_difficulty_threshold=settings.decrease_difficulty_threshold,
            difficulty_weight=settings.difficulty_weight,
            weakness_focus_weight=settings.weakness_focus_weight,
            bias_challenge_weight=settings.bias_challenge_weight,
            type_diversity_weight=settings.type_diversity_weight,
            performance_window_days=settings.performance_window_days,
            recent_days_to_consider=settings.recent_days_to_consider,
            repeat_prevention_days=settings.repeat_prevention_days,
            last_types_to_track=settings.last_types_to_track,
            streak_bonus_per_day=settings.streak_bonus_per_day,
            streak_multiplier_cap=settings.streak_multiplier_cap,
            selection_top_k=settings.selection_top_k,
            recommendation_oversample=settings.recommendation_oversample,
        )
