"""Test catalog Pydantic models."""
from datetime import datetime

from pydantic import BaseModel, Field

from lms_api.models.db.question import QuestionType


class TestCreate(BaseModel):
    """Model for creating a test."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    courseId: int = Field(..., gt=0)
    lessonId: int | None = Field(None, gt=0)
    timeLimitMinutes: int | None = Field(None, ge=1, le=480)
    maxAttempts: int | None = Field(None, ge=1, le=10)
    passingScore: float | None = Field(None, ge=0, le=100)
    shuffleQuestions: bool = False
    shuffleOptions: bool = False
    showResultsImmediately: bool = True
    isPublished: bool = False
    availableFrom: datetime | None = None
    availableUntil: datetime | None = None


class TestUpdate(BaseModel):
    """Model for updating a test. Only fields that are sent are applied."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    courseId: int | None = Field(None, gt=0)
    lessonId: int | None = Field(None, gt=0)
    timeLimitMinutes: int | None = Field(None, ge=1, le=480)
    maxAttempts: int | None = Field(None, ge=1, le=10)
    passingScore: float | None = Field(None, ge=0, le=100)
    shuffleQuestions: bool | None = None
    shuffleOptions: bool | None = None
    showResultsImmediately: bool | None = None
    isPublished: bool | None = None
    availableFrom: datetime | None = None
    availableUntil: datetime | None = None


class OptionCreate(BaseModel):
    """Option of a single choice question."""

    text: str = Field(..., min_length=1, max_length=1000)
    isCorrect: bool = False


class QuestionCreate(BaseModel):
    """Model for creating a question in the question bank."""

    title: str = Field(..., min_length=1, max_length=200)
    questionText: str = Field(..., min_length=1)
    questionType: QuestionType = QuestionType.SINGLE_CHOICE
    points: int = Field(1, ge=1, le=1000)
    options: list[OptionCreate] = Field(default_factory=list)


class AddQuestionRequest(BaseModel):
    """Model for attaching a question to a test."""

    questionId: int = Field(..., gt=0)
    sortOrder: int | None = Field(None, ge=1)
