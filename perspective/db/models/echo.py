"""
Echo Score History.

Append-only log of Echo Score calculations. Several rows per user per day
are allowed; the scheduler throttles to one.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType


class EchoScoreHistory(Base):
    __tablename__ = "echo_score_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Scores (0-100)
    total_score: Mapped[float] = mapped_column(Float, nullable=False)
    diversity_score: Mapped[float] = mapped_column(Float, nullable=False)
    accuracy_score: Mapped[float] = mapped_column(Float, nullable=False)
    switch_speed_score: Mapped[float] = mapped_column(Float, nullable=False)
    consistency_score: Mapped[float] = mapped_column(Float, nullable=False)
    improvement_score: Mapped[float] = mapped_column(Float, nullable=False)

    calculation_details: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    score_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_echo_history_user_date", "user_id", "score_date"),)

    def __repr__(self) -> str:
        return f"<EchoScoreHistory user={self.user_id} date={self.score_date} total={self.total_score}>"
