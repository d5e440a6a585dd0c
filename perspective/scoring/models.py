"""
Echo Score Models.

Result, snapshot and configuration types for the scoring path.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Optional

from perspective.errors import ConfigurationError

COMPONENTS = ("diversity", "accuracy", "switch_speed", "consistency", "improvement")

ProgressPeriod = Literal["daily", "weekly"]


@dataclass
class EchoScoreComponents:
    """The five sub-scores, each in [0, 100]."""

    diversity: float = 0.0
    accuracy: float = 0.0
    switch_speed: float = 50.0
    consistency: float = 0.0
    improvement: float = 50.0

    def weighted_total(self, weights: dict[str, float]) -> float:
        """Weighted sum rounded to 2 decimals."""
        total = sum(getattr(self, name) * weights[name] for name in COMPONENTS)
        return round(total, 2)

    def to_dict(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in COMPONENTS}


@dataclass
class EchoScoreResult:
    """A computed Echo Score with its audit details."""

    total_score: float
    components: EchoScoreComponents
    calculation_details: dict[str, Any] = field(default_factory=dict)

    @property
    def diversity_score(self) -> float:
        return self.components.diversity

    @property
    def accuracy_score(self) -> float:
        return self.components.accuracy

    @property
    def switch_speed_score(self) -> float:
        return self.components.switch_speed

    @property
    def consistency_score(self) -> float:
        return self.components.consistency

    @property
    def improvement_score(self) -> float:
        return self.components.improvement

    def to_dict(self) -> dict[str, Any]:
        """Serializable form; numeric fields stay numbers."""
        return {
            "total_score": float(self.total_score),
            "diversity_score": float(self.components.diversity),
            "accuracy_score": float(self.components.accuracy),
            "switch_speed_score": float(self.components.switch_speed),
            "consistency_score": float(self.components.consistency),
            "improvement_score": float(self.components.improvement),
            "calculation_details": self.calculation_details,
        }


@dataclass
class EchoScoreSnapshot:
    """One persisted Echo Score calculation."""

    user_id: int
    total_score: float
    diversity_score: float
    accuracy_score: float
    switch_speed_score: float
    consistency_score: float
    improvement_score: float
    calculation_details: dict[str, Any]
    score_date: date
    created_at: datetime
    id: Optional[int] = None

    @classmethod
    def from_result(
        cls, user_id: int, result: EchoScoreResult, created_at: datetime
    ) -> EchoScoreSnapshot:
        return cls(
            user_id=user_id,
            total_score=result.total_score,
            diversity_score=result.diversity_score,
            accuracy_score=result.accuracy_score,
            switch_speed_score=result.switch_speed_score,
            consistency_score=result.consistency_score,
            improvement_score=result.improvement_score,
            calculation_details=result.calculation_details,
            score_date=created_at.date(),
            created_at=created_at,
        )

    def component(self, name: str) -> float:
        return float(getattr(self, f"{name}_score"))


@dataclass
class ScoreProgress:
    """Recent snapshots with a trend slope per component."""

    period: ProgressPeriod
    scores: list[dict[str, Any]] = field(default_factory=list)
    trends: dict[str, float] = field(default_factory=dict)


@dataclass
class WeeklySummary:
    """Average component scores over the last week of snapshots."""

    scores_count: int
    average_total: float
    averages: dict[str, float]
    calculated_at: datetime
    period: str = "weekly"


@dataclass
class BatchResult:
    """Outcome of a batch recalculation."""

    date: date
    processed: int = 0
    failed: int = 0
    failed_users: list[int] = field(default_factory=list)


@dataclass
class EchoScoreConfig:
    """Weights and windows for the Echo Score."""

    weights: dict[str, float] = field(
        default_factory=lambda: {
            "diversity": 0.25,
            "accuracy": 0.25,
            "switch_speed": 0.20,
            "consistency": 0.15,
            "improvement": 0.15,
        }
    )
    diversity_window_days: int = 7
    accuracy_window_days: int = 30
    consistency_window_days: int = 14
    improvement_min_points: int = 5
    switch_speed_fast_seconds: float = 30.0
    switch_speed_slow_seconds: float = 300.0
    recalc_min_challenges_today: int = 3
    recalc_min_sources_today: int = 3
    batch_concurrency_limit: int = 10

    def __post_init__(self) -> None:
        missing = set(COMPONENTS) - set(self.weights)
        if missing:
            raise ConfigurationError(f"Missing Echo Score weights: {sorted(missing)}")
        total = sum(self.weights[name] for name in COMPONENTS)
        if abs(total - 1.0) > 1e-6:
            raise ConfigurationError(f"Echo Score weights must sum to 1.0 (got {total:.4f})")
        if self.switch_speed_slow_seconds <= self.switch_speed_fast_seconds:
            raise ConfigurationError("switch_speed_slow_seconds must exceed switch_speed_fast_seconds")

    @classmethod
    def from_settings(cls, settings: Any = None) -> EchoScoreConfig:
        """Build from application settings (defaults to the cached settings)."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(
            weights=settings.get_echo_weights(),
            diversity_window_days=settings.diversity_window_days,
            accuracy_window_days=settings.accuracy_window_days,
            consistency_window_days=settings.consistency_window_days,
            improvement_min_points=settings.improvement_min_points,
            switch_speed_fast_seconds=settings.switch_speed_fast_seconds,
            switch_speed_slow_seconds=settings.switch_speed_slow_seconds,
            recalc_min_challenges_today=settings.recalc_min_challenges_today,
            recalc_min_sources_today=settings.recalc_min_sources_today,
            batch_concurrency_limit=settings.batch_concurrency_limit,
        )
