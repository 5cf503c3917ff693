"""Database models."""
from lms_api.models.db.user import User, UserRole
from lms_api.models.db.question import (
    MANUALLY_GRADED_TYPES,
    Question,
    QuestionOption,
    QuestionType,
)
from lms_api.models.db.test import Test, TestQuestion
from lms_api.models.db.attempt import Answer, Attempt, AttemptStatus, TERMINAL_STATUSES

__all__ = [
    "User",
    "UserRole",
    "MANUALLY_GRADED_TYPES",
    "Question",
    "QuestionOption",
    "QuestionType",
    "Test",
    "TestQuestion",
    "Answer",
    "Attempt",
    "AttemptStatus",
    "TERMINAL_STATUSES",
]
