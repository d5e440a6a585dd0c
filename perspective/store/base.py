"""
Collaborator interfaces.

The engine reads activity logs and the challenge catalog through these
protocols so that production code can use the SQLAlchemy implementations
and tests can substitute in-memory fakes.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from perspective.adaptive.models import (
        ChallengeCandidate,
        ChallengeType,
        DailyChallengeSelection,
        DifficultyLevel,
        ReadingActivityRecord,
        SessionRecord,
        SubmissionRecord,
        UserContext,
    )
    from perspective.scoring.models import EchoScoreSnapshot


class ActivityHistoryStore(Protocol):
    """Read access to activity logs, write access to snapshots and selections."""

    def get_user(self, user_id: int) -> Optional[UserContext]:
        ...

    def get_submissions(self, user_id: int, since: datetime) -> list[SubmissionRecord]:
        """Submissions created at or after ``since``, newest first."""
        ...

    def get_recent_challenge_ids(self, user_id: int, since: datetime) -> set[int]:
        ...

    def get_reading_activity(self, user_id: int, since: datetime) -> list[ReadingActivityRecord]:
        ...

    def get_sessions(self, user_id: int, since: datetime) -> list[SessionRecord]:
        ...

    def get_daily_selection(
        self, user_id: int, selection_date: date
    ) -> Optional[DailyChallengeSelection]:
        ...

    def save_daily_selection(self, selection: DailyChallengeSelection) -> DailyChallengeSelection:
        """Insert a selection; raises DuplicateSelectionError if (user, day) exists."""
        ...

    def save_echo_snapshot(self, snapshot: EchoScoreSnapshot) -> EchoScoreSnapshot:
        """Append a snapshot and overwrite the user's live score in one transaction."""
        ...

    def get_echo_history(
        self, user_id: int, since: Optional[date] = None
    ) -> list[EchoScoreSnapshot]:
        """Snapshots on or after ``since``, newest first."""
        ...

    def count_snapshots_on(self, user_id: int, score_date: date) -> int:
        ...

    def find_active_user_ids(self, start: datetime, end: datetime) -> list[int]:
        """Users with a session starting in [start, end)."""
        ...

    def update_streak(
        self,
        user_id: int,
        current_streak: int,
        longest_streak: int,
        last_activity_date: datetime,
    ) -> None:
        ...


class ChallengeCatalog(Protocol):
    """Read-only listing of challenges."""

    def list_active(
        self,
        exclude_ids: Iterable[int] = (),
        challenge_type: Optional[ChallengeType] = None,
        difficulty: Optional[DifficultyLevel] = None,
    ) -> list[ChallengeCandidate]:
        ...

    def get(self, challenge_id: int) -> Optional[ChallengeCandidate]:
        ...
