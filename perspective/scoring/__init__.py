"""
Echo Score.

Components:
- EchoScoreCalculator: Computes and persists the five-part Echo Score
- EchoScoreScheduler: Activity triggers, nightly batch and weekly summaries
- trend_analyzer: Median, Gini index and slope helpers
"""
from perspective.scoring.models import (
    COMPONENTS,
    BatchResult,
    EchoScoreComponents,
    EchoScoreConfig,
    EchoScoreResult,
    EchoScoreSnapshot,
    ScoreProgress,
    WeeklySummary,
)
from perspective.scoring.echo_score import EchoScoreCalculator
from perspective.scoring.scheduler import EchoScoreScheduler

__all__ = [
    "EchoScoreCalculator",
    "EchoScoreScheduler",
    "COMPONENTS",
    "BatchResult",
    "EchoScoreComponents",
    "EchoScoreConfig",
    "EchoScoreResult",
    "EchoScoreSnapshot",
    "ScoreProgress",
    "WeeklySummary",
]
