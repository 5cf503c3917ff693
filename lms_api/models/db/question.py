"""Question and QuestionOption database models."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms_api.database import Base


class QuestionType(str, enum.Enum):
    """Kinds of questions the grading engine understands."""

    SINGLE_CHOICE = "SINGLE_CHOICE"
    ESSAY = "ESSAY"
    PROGRAMMING = "PROGRAMMING"


# Types whose answers are free text and need a manual grading pass
MANUALLY_GRADED_TYPES = frozenset({QuestionType.ESSAY.value, QuestionType.PROGRAMMING.value})


class Question(Base):
    """A reusable question from the question bank."""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(
        String(20), default=QuestionType.SINGLE_CHOICE.value, nullable=False
    )
    points: Mapped[int] = mapped_column(default=1, nullable=False)
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    options: Mapped[list["QuestionOption"]] = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.sort_order",
    )

    @property
    def is_single_choice(self) -> bool:
        return self.question_type == QuestionType.SINGLE_CHOICE.value

    @property
    def correct_option_id(self) -> int | None:
        """Designated correct option of a SINGLE_CHOICE question."""
        for option in self.options:
            if option.is_correct:
                return option.id
        return None


class QuestionOption(Base):
    """Answer option of a SINGLE_CHOICE question."""

    __tablename__ = "question_options"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    question: Mapped["Question"] = relationship("Question", back_populates="options")
