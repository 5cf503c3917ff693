"""
Test and TestQuestion database models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms_api.config import DEFAULT_PASSING_SCORE
from lms_api.database import Base

if TYPE_CHECKING:
    from lms_api.models.db.question import Question
    from lms_api.models.db.user import User


class Test(Base):
    """
    Test definition: limits, scoring rules, availability window and questions.
    """

    __tablename__ = "tests"
    __test__ = False  # not a pytest test class

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    course_id: Mapped[int] = mapped_column(nullable=False, index=True)
    lesson_id: Mapped[int | None] = mapped_column(nullable=True)

    # Rules
    time_limit_minutes: Mapped[int | None] = mapped_column(nullable=True)
    max_attempts: Mapped[int | None] = mapped_column(nullable=True)
    passing_score: Mapped[float] = mapped_column(
        default=DEFAULT_PASSING_SCORE, nullable=False
    )
    shuffle_questions: Mapped[bool] = mapped_column(default=False, nullable=False)
    shuffle_options: Mapped[bool] = mapped_column(default=False, nullable=False)
    show_results_immediately: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_published: Mapped[bool] = mapped_column(default=False, nullable=False)

    # Availability window
    available_from: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    available_until: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    creator: Mapped["User"] = relationship("User", foreign_keys=[created_by])
    test_questions: Mapped[list["TestQuestion"]] = relationship(
        "TestQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestQuestion.sort_order",
    )


class TestQuestion(Base):
    """
    Join of Test and Question. sort_order is the canonical order before shuffling.
    """

    __tablename__ = "test_questions"
    __test__ = False

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    test_id: Mapped[int] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="RESTRICT"), nullable=False
    )
    sort_order: Mapped[int] = mapped_column(default=1, nullable=False)

    __table_args__ = (
        UniqueConstraint("test_id", "question_id", name="uq_test_question"),
    )

    test: Mapped["Test"] = relationship("Test", back_populates="test_questions")
    question: Mapped["Question"] = relationship("Question")
