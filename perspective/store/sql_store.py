"""
SQLAlchemy store.

Implements ActivityHistoryStore and ChallengeCatalog on the relational
schema in perspective.db.models. Every method runs in its own
transactional scope; rows are converted to engine records before the
session closes.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum
from typing import Optional, TypeVar

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from perspective.adaptive.models import (
    BiasProfile,
    BiasRating,
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
from perspective.db import models as orm
from perspective.db.database import session_scope
from perspective.errors import DuplicateSelectionError, UserNotFoundError
from perspective.scoring.models import EchoScoreSnapshot
from perspective.timeutils import ensure_utc

E = TypeVar("E", bound=Enum)


def _parse_enum(enum_cls: type[E], value: str, row_id: int) -> Optional[E]:
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} {value!r} on challenge {row_id} - skipped")
        return None


def _to_candidate(row: orm.Challenge) -> Optional[ChallengeCandidate]:
    challenge_type = _parse_enum(ChallengeType, row.type, row.id)
    difficulty = _parse_enum(DifficultyLevel, row.difficulty, row.id)
    if challenge_type is None or difficulty is None:
        return None
    return ChallengeCandidate(
        id=row.id,
        challenge_type=challenge_type,
        difficulty=difficulty,
        estimated_time_minutes=row.estimated_time_minutes or 0.0,
        title=row.title or "",
        content=ChallengeContent.from_payload(row.content, challenge_id=row.id),
        is_active=row.is_active,
    )


def _to_user(row: orm.User) -> UserContext:
    return UserContext(
        user_id=row.id,
        current_streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
        last_activity_date=ensure_utc(row.last_activity_date) if row.last_activity_date else None,
        bias_profile=BiasProfile.from_payload(row.bias_profile),
        echo_score=row.echo_score,
    )


def _to_snapshot(row: orm.EchoScoreHistory) -> EchoScoreSnapshot:
    return EchoScoreSnapshot(
        id=row.id,
        user_id=row.user_id,
        total_score=row.total_score,
        diversity_score=row.diversity_score,
        accuracy_score=row.accuracy_score,
        switch_speed_score=row.switch_speed_score,
        consistency_score=row.consistency_score,
        improvement_score=row.improvement_score,
        calculation_details=row.calculation_details or {},
        score_date=row.score_date,
        created_at=ensure_utc(row.created_at),
    )


def _to_selection(row: orm.DailyChallengeSelection) -> DailyChallengeSelection:
    return DailyChallengeSelection(
        id=row.id,
        user_id=row.user_id,
        selected_challenge_id=row.selected_challenge_id,
        selection_date=row.selection_date,
        reason=row.selection_reason or "",
        created_at=ensure_utc(row.created_at),
    )


class SqlActivityStore:
    """ActivityHistoryStore backed by SQLAlchemy."""

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self._factory = session_factory

    def get_user(self, user_id: int) -> Optional[UserContext]:
        with session_scope(self._factory) as session:
            row = session.get(orm.User, user_id)
            return _to_user(row) if row is not None else None

    def get_submissions(self, user_id: int, since: datetime) -> list[SubmissionRecord]:
        stmt = (
            select(orm.ChallengeSubmission, orm.Challenge)
            .join(orm.Challenge, orm.ChallengeSubmission.challenge_id == orm.Challenge.id)
            .where(
                orm.ChallengeSubmission.user_id == user_id,
                orm.ChallengeSubmission.created_at >= ensure_utc(since),
            )
            .order_by(orm.ChallengeSubmission.created_at.desc(), orm.ChallengeSubmission.id.desc())
        )
        records = []
        with session_scope(self._factory) as session:
            for submission, challenge in session.execute(stmt):
                challenge_type = _parse_enum(ChallengeType, challenge.type, challenge.id)
                difficulty = _parse_enum(DifficultyLevel, challenge.difficulty, challenge.id)
                if challenge_type is None or difficulty is None:
                    continue

                bias_ratings: tuple[BiasRating, ...] = ()
                if challenge_type == ChallengeType.BIAS_SWAP:
                    content = ChallengeContent.from_payload(challenge.content, challenge_id=challenge.id)
                    bias_ratings = content.bias_ratings

                records.append(
                    SubmissionRecord(
                        user_id=submission.user_id,
                        challenge_id=submission.challenge_id,
                        challenge_type=challenge_type,
                        difficulty=difficulty,
                        is_correct=submission.is_correct,
                        time_spent_seconds=submission.time_spent_seconds,
                        created_at=ensure_utc(submission.created_at),
                        bias_ratings=bias_ratings,
                    )
                )
        return records

    def get_recent_challenge_ids(self, user_id: int, since: datetime) -> set[int]:
        stmt = (
            select(orm.ChallengeSubmission.challenge_id)
            .where(
                orm.ChallengeSubmission.user_id == user_id,
                orm.ChallengeSubmission.created_at >= ensure_utc(since),
            )
            .distinct()
        )
        with session_scope(self._factory) as session:
            return set(session.scalars(stmt))

    def get_reading_activity(self, user_id: int, since: datetime) -> list[ReadingActivityRecord]:
        stmt = (
            select(orm.UserReadingActivity, orm.NewsArticle)
            .join(orm.NewsArticle, orm.UserReadingActivity.article_id == orm.NewsArticle.id)
            .where(
                orm.UserReadingActivity.user_id == user_id,
                orm.UserReadingActivity.created_at >= ensure_utc(since),
            )
            .order_by(orm.UserReadingActivity.created_at.desc())
        )
        with session_scope(self._factory) as session:
            return [
                ReadingActivityRecord(
                    user_id=activity.user_id,
                    article_id=activity.article_id,
                    bias_rating=BiasRating.parse(article.bias_rating),
                    created_at=ensure_utc(activity.created_at),
                    source=article.source,
                )
                for activity, article in session.execute(stmt)
            ]

    def get_sessions(self, user_id: int, since: datetime) -> list[SessionRecord]:
        stmt = (
            select(orm.UserSession)
            .where(
                orm.UserSession.user_id == user_id,
                orm.UserSession.session_start >= ensure_utc(since),
            )
            .order_by(orm.UserSession.session_start.desc())
        )
        with session_scope(self._factory) as session:
            return [
                SessionRecord(user_id=row.user_id, session_start=ensure_utc(row.session_start))
                for row in session.scalars(stmt)
            ]

    # =========================================================================
    # Daily selections
    # =========================================================================

    def get_daily_selection(
        self, user_id: int, selection_date: date
    ) -> Optional[DailyChallengeSelection]:
        stmt = select(orm.DailyChallengeSelection).where(
            orm.DailyChallengeSelection.user_id == user_id,
            orm.DailyChallengeSelection.selection_date == selection_date,
        )
        with session_scope(self._factory) as session:
            row = session.scalars(stmt).first()
            return _to_selection(row) if row is not None else None

    def save_daily_selection(self, selection: DailyChallengeSelection) -> DailyChallengeSelection:
        try:
            with session_scope(self._factory) as session:
                row = orm.DailyChallengeSelection(
                    user_id=selection.user_id,
                    selected_challenge_id=selection.selected_challenge_id,
                    selection_date=selection.selection_date,
                    selection_reason=selection.reason,
                    created_at=ensure_utc(selection.created_at),
                )
                session.add(row)
                session.flush()
                saved = _to_selection(row)
        except IntegrityError as e:
            raise DuplicateSelectionError(selection.user_id, selection.selection_date) from e
        return saved

    # =========================================================================
    # Echo Score snapshots
    # =========================================================================

    def save_echo_snapshot(self, snapshot: EchoScoreSnapshot) -> EchoScoreSnapshot:
        with session_scope(self._factory) as session:
            user = session.get(orm.User, snapshot.user_id)
            if user is None:
                raise UserNotFoundError(snapshot.user_id)

            row = orm.EchoScoreHistory(
                user_id=snapshot.user_id,
                total_score=snapshot.total_score,
                diversity_score=snapshot.diversity_score,
                accuracy_score=snapshot.accuracy_score,
                switch_speed_score=snapshot.switch_speed_score,
                consistency_score=snapshot.consistency_score,
                improvement_score=snapshot.improvement_score,
                calculation_details=snapshot.calculation_details,
                score_date=snapshot.score_date,
                created_at=ensure_utc(snapshot.created_at),
            )
            session.add(row)
            user.echo_score = snapshot.total_score
            session.flush()
            return _to_snapshot(row)

    def get_echo_history(
        self, user_id: int, since: Optional[date] = None
    ) -> list[EchoScoreSnapshot]:
        stmt = select(orm.EchoScoreHistory).where(orm.EchoScoreHistory.user_id == user_id)
        if since is not None:
            stmt = stmt.where(orm.EchoScoreHistory.score_date >= since)
        stmt = stmt.order_by(orm.EchoScoreHistory.created_at.desc(), orm.EchoScoreHistory.id.desc())
        with session_scope(self._factory) as session:
            return [_to_snapshot(row) for row in session.scalars(stmt)]

    def count_snapshots_on(self, user_id: int, score_date: date) -> int:
        stmt = select(func.count(orm.EchoScoreHistory.id)).where(
            orm.EchoScoreHistory.user_id == user_id,
            orm.EchoScoreHistory.score_date == score_date,
        )
        with session_scope(self._factory) as session:
            return session.execute(stmt).scalar_one()

    # =========================================================================
    # Users
    # =========================================================================

    def find_active_user_ids(self, start: datetime, end: datetime) -> list[int]:
        stmt = (
            select(orm.UserSession.user_id)
            .where(
                orm.UserSession.session_start >= ensure_utc(start),
                orm.UserSession.session_start < ensure_utc(end),
            )
            .distinct()
            .order_by(orm.UserSession.user_id)
        )
        with session_scope(self._factory) as session:
            return list(session.scalars(stmt))

    def update_streak(
        self,
        user_id: int,
        current_streak: int,
        longest_streak: int,
        last_activity_date: datetime,
    ) -> None:
        with session_scope(self._factory) as session:
            user = session.get(orm.User, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            user.current_streak = current_streak
            user.longest_streak = longest_streak
            user.last_activity_date = ensure_utc(last_activity_date)


class SqlChallengeCatalog:
    """ChallengeCatalog backed by the challenges table."""

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self._factory = session_factory

    def list_active(
        self,
        exclude_ids: Iterable[int] = (),
        challenge_type: Optional[ChallengeType] = None,
        difficulty: Optional[DifficultyLevel] = None,
    ) -> list[ChallengeCandidate]:
        stmt = select(orm.Challenge).where(orm.Challenge.is_active.is_(True))
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(orm.Challenge.id.notin_(excluded))
        if challenge_type is not None:
            stmt = stmt.where(orm.Challenge.type == challenge_type.value)
        if difficulty is not None:
            stmt = stmt.where(orm.Challenge.difficulty == difficulty.value)
        stmt = stmt.order_by(orm.Challenge.id)

        with session_scope(self._factory) as session:
            candidates = (_to_candidate(row) for row in session.scalars(stmt))
            return [c for c in candidates if c is not None]

    def get(self, challenge_id: int) -> Optional[ChallengeCandidate]:
        with session_scope(self._factory) as session:
            row = session.get(orm.Challenge, challenge_id)
            return _to_candidate(row) if row is not None else None
