"""
Challenge Models.

Challenge catalog, submissions and the one-per-day challenge selection.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType


class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # ChallengeType value
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)  # DifficultyLevel value
    title: Mapped[str] = mapped_column(String(255), default="")
    # Free-form payload; bias-swap challenges embed {"articles": [{"id", "bias_rating"}]}
    content: Mapped[Any] = mapped_column(JSONType, nullable=True)
    estimated_time_minutes: Mapped[float] = mapped_column(Float, default=5.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (Index("idx_challenges_active_type", "is_active", "type"),)

    def __repr__(self) -> str:
        return f"<Challenge {self.id} {self.type}/{self.difficulty}>"


class ChallengeSubmission(Base):
    __tablename__ = "challenge_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[int] = mapped_column(
        ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    time_spent_seconds: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    challenge: Mapped[Challenge] = relationship()

    __table_args__ = (Index("idx_submissions_user_created", "user_id", "created_at"),)


class DailyChallengeSelection(Base):
    __tablename__ = "daily_challenge_selections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    selected_challenge_id: Mapped[int] = mapped_column(
        ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    selection_date: Mapped[date] = mapped_column(Date, nullable=False)
    selection_reason: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "selection_date", name="uq_daily_selection_user_date"),
    )
