"""
SQLAlchemy models for survey participants.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ivr_survey.shared.database import Base


class Participant(Base):
    """One respondent's progress through the survey, keyed by call id."""

    __tablename__ = "survey_participants"
    # Timestamps come back with the INSERT instead of a follow-up SELECT.
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    call_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )
    number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    # List of {"legId": ..., "recordingId": ...} in answer order.
    responses: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    # Always len(responses); doubles as the optimistic version for appends.
    answered_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(call_id={self.call_id!r}, number={self.number!r}, "
            f"answered_count={self.answered_count})>"
        )
