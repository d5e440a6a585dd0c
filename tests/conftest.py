"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
in-memory store and catalog fakes, a fixed clock and record factories.
"""
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from perspective.adaptive.models import (  # noqa: E402
    BiasProfile,
    ChallengeCandidate,
    ChallengeContent,
    ChallengeType,
    DailyChallengeSelection,
    DifficultyLevel,
    ReadingActivityRecord,
    SessionRecord,
    SubmissionRecord,
    UserContext,
)
from perspective.errors import DuplicateSelectionError, UserNotFoundError  # noqa: E402
from perspective.scoring.models import EchoScoreSnapshot  # noqa: E402

# Saturday noon UTC
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# In-memory fakes
# =============================================================================


class InMemoryStore:
    """ActivityHistoryStore kept in plain lists and dicts."""

    def __init__(self):
        self.users: dict[int, UserContext] = {}
        self.submissions: list[SubmissionRecord] = []
        self.readings: list[ReadingActivityRecord] = []
        self.sessions: list[SessionRecord] = []
        self.selections: dict[tuple[int, date], DailyChallengeSelection] = {}
        self.snapshots: list[EchoScoreSnapshot] = []
        self.save_selection_calls = 0

    def add_user(self, user_id: int = 1, **fields) -> UserContext:
        user = UserContext(user_id=user_id, **fields)
        self.users[user_id] = user
        return user

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_submissions(self, user_id, since):
        rows = [s for s in self.submissions if s.user_id == user_id and s.created_at >= since]
        return sorted(rows, key=lambda s: s.created_at, reverse=True)

    def get_recent_challenge_ids(self, user_id, since):
        return {s.challenge_id for s in self.get_submissions(user_id, since)}

    def get_reading_activity(self, user_id, since):
        return [r for r in self.readings if r.user_id == user_id and r.created_at >= since]

    def get_sessions(self, user_id, since):
        return [s for s in self.sessions if s.user_id == user_id and s.session_start >= since]

    def get_daily_selection(self, user_id, selection_date):
        return self.selections.get((user_id, selection_date))

    def save_daily_selection(self, selection):
        self.save_selection_calls += 1
        key = (selection.user_id, selection.selection_date)
        if key in self.selections:
            raise DuplicateSelectionError(selection.user_id, selection.selection_date)
        selection.id = len(self.selections) + 1
        self.selections[key] = selection
        return selection

    def save_echo_snapshot(self, snapshot):
        user = self.users.get(snapshot.user_id)
        if user is None:
            raise UserNotFoundError(snapshot.user_id)
        snapshot.id = len(self.snapshots) + 1
        self.snapshots.append(snapshot)
        user.echo_score = snapshot.total_score
        return snapshot

    def get_echo_history(self, user_id, since=None):
        rows = [
            s
            for s in self.snapshots
            if s.user_id == user_id and (since is None or s.score_date >= since)
        ]
        return sorted(rows, key=lambda s: (s.created_at, s.id), reverse=True)

    def count_snapshots_on(self, user_id, score_date):
        return sum(1 for s in self.snapshots if s.user_id == user_id and s.score_date == score_date)

    def find_active_user_ids(self, start, end):
        return sorted({s.user_id for s in self.sessions if start <= s.session_start < end})

    def update_streak(self, user_id, current_streak, longest_streak, last_activity_date):
        user = self.users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        user.current_streak = current_streak
        user.longest_streak = longest_streak
        user.last_activity_date = last_activity_date


class InMemoryCatalog:
    """ChallengeCatalog over a fixed list of candidates."""

    def __init__(self, challenges=()):
        self.challenges = {c.id: c for c in challenges}

    def add(self, challenge: ChallengeCandidate) -> ChallengeCandidate:
        self.challenges[challenge.id] = challenge
        return challenge

    def list_active(self, exclude_ids=(), challenge_type=None, difficulty=None):
        excluded = set(exclude_ids)
        return [
            c
            for c in sorted(self.challenges.values(), key=lambda c: c.id)
            if c.is_active
            and c.id not in excluded
            and (challenge_type is None or c.challenge_type == challenge_type)
            and (difficulty is None or c.difficulty == difficulty)
        ]

    def get(self, challenge_id):
        return self.challenges.get(challenge_id)


# =============================================================================
# Factories
# =============================================================================


def make_challenge(
    challenge_id: int,
    challenge_type: ChallengeType = ChallengeType.LOGIC_PUZZLE,
    difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE,
    ratings: tuple = (),
    **fields,
) -> ChallengeCandidate:
    content = ChallengeContent.from_payload(
        {"articles": [{"id": f"a{i}", "bias_rating": r.value} for i, r in enumerate(ratings)]}
    )
    return ChallengeCandidate(
        id=challenge_id,
        challenge_type=challenge_type,
        difficulty=difficulty,
        content=content,
        **fields,
    )


def make_submission(
    days_ago: float = 1,
    is_correct: bool = True,
    challenge_type: ChallengeType = ChallengeType.LOGIC_PUZZLE,
    difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE,
    challenge_id: int = 100,
    time_spent_seconds=120,
    user_id: int = 1,
    bias_ratings: tuple = (),
) -> SubmissionRecord:
    return SubmissionRecord(
        user_id=user_id,
        challenge_id=challenge_id,
        challenge_type=challenge_type,
        difficulty=difficulty,
        is_correct=is_correct,
        time_spent_seconds=time_spent_seconds,
        created_at=NOW - timedelta(days=days_ago),
        bias_ratings=bias_ratings,
    )


def make_reading(
    rating, days_ago: float = 1, source: str = "source-a", user_id: int = 1, article_id: int = 1
) -> ReadingActivityRecord:
    return ReadingActivityRecord(
        user_id=user_id,
        article_id=article_id,
        bias_rating=rating,
        created_at=NOW - timedelta(days=days_ago),
        source=source,
    )


def make_session(days_ago: float = 0, user_id: int = 1) -> SessionRecord:
    return SessionRecord(user_id=user_id, session_start=NOW - timedelta(days=days_ago))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def store():
    """Empty in-memory store with user 1."""
    s = InMemoryStore()
    s.add_user(1)
    return s


@pytest.fixture
def catalog():
    return InMemoryCatalog()


@pytest.fixture
def left_leaning_user(store):
    """User 1 with a left-leaning bias profile."""
    user = store.users[1]
    user.bias_profile = BiasProfile(political_lean=-2)
    return user


@pytest.fixture
def factories():
    """Record factories, for tests that build their own histories."""

    class Factories:
        challenge = staticmethod(make_challenge)
        submission = staticmethod(make_submission)
        reading = staticmethod(make_reading)
        session = staticmethod(make_session)

    return Factories


