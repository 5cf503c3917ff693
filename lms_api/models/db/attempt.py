"""
Attempt (test result) and Answer database models.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms_api.database import Base

if TYPE_CHECKING:
    from lms_api.models.db.test import Test
    from lms_api.models.db.user import User


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt. COMPLETED and ABANDONED are terminal."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


TERMINAL_STATUSES = (AttemptStatus.COMPLETED.value, AttemptStatus.ABANDONED.value)

_ACTIVE_WHERE = sa.text("status = 'IN_PROGRESS'")


class Attempt(Base):
    """
    One learner's run through a test.
    score and is_passed stay NULL until the attempt reaches a terminal state.
    """

    __tablename__ = "test_results"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # References
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_id: Mapped[int] = mapped_column(
        ForeignKey("tests.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    attempt_number: Mapped[int] = mapped_column(default=1, nullable=False)

    # Status and timing
    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    time_spent_minutes: Mapped[int | None] = mapped_column(nullable=True)

    # Results
    score: Mapped[float | None] = mapped_column(nullable=True)
    earned_points: Mapped[int | None] = mapped_column(nullable=True)
    total_points: Mapped[int] = mapped_column(default=0, nullable=False)
    is_passed: Mapped[bool | None] = mapped_column(nullable=True)

    # Presentation snapshot, fixed at creation
    shuffle_seed: Mapped[str] = mapped_column(String(64), nullable=False)
    question_order_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    __table_args__ = (
        # One IN_PROGRESS attempt per (user, test); the loser of a start race fails here
        Index(
            "ix_test_results_user_test_active",
            "user_id",
            "test_id",
            unique=True,
            sqlite_where=_ACTIVE_WHERE,
            postgresql_where=_ACTIVE_WHERE,
        ),
        Index("ix_test_results_test_status", "test_id", "status"),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    test: Mapped["Test"] = relationship("Test", foreign_keys=[test_id])
    answers: Mapped[list["Answer"]] = relationship(
        "Answer", back_populates="attempt", order_by="Answer.id"
    )

    @property
    def question_order(self) -> list[int]:
        """Parse the snapshotted question order from JSON."""
        try:
            value = json.loads(self.question_order_json or "[]")
        except (json.JSONDecodeError, TypeError):
            return []
        return [int(item) for item in value] if isinstance(value, list) else []

    @question_order.setter
    def question_order(self, value: list[int]) -> None:
        """Serialize the question order to JSON."""
        self.question_order_json = json.dumps(list(value))

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS.value

    @property
    def is_completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED.value


class Answer(Base):
    """
    Submitted answer to a single question within an attempt.
    is_correct is NULL while an essay/programming answer awaits manual grading.
    """

    __tablename__ = "user_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    test_result_id: Mapped[int] = mapped_column(
        ForeignKey("test_results.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="RESTRICT"), nullable=False
    )

    selected_option_id: Mapped[int | None] = mapped_column(
        ForeignKey("question_options.id", ondelete="SET NULL"), nullable=True
    )
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(nullable=True)
    points_awarded: Mapped[int] = mapped_column(default=0, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("test_result_id", "question_id", name="uq_result_question"),
    )

    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")

    @property
    def is_pending_review(self) -> bool:
        return self.is_correct is None
