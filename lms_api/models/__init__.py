"""Pydantic models."""
from lms_api.models.attempts import (
    AbandonRequest,
    AttemptListResponse,
    AttemptResponse,
    CanTakeResponse,
    CleanupResponse,
    QuestionsResponse,
    RegradeRequest,
    StartResponse,
    StatisticsResponse,
    SubmitRequest,
    SubmittedAnswer,
)
from lms_api.models.tests import (
    AddQuestionRequest,
    OptionCreate,
    QuestionCreate,
    TestCreate,
    TestUpdate,
)

__all__ = [
    "AbandonRequest",
    "AddQuestionRequest",
    "AttemptListResponse",
    "AttemptResponse",
    "CanTakeResponse",
    "CleanupResponse",
    "OptionCreate",
    "QuestionCreate",
    "QuestionsResponse",
    "RegradeRequest",
    "StartResponse",
    "StatisticsResponse",
    "SubmitRequest",
    "SubmittedAnswer",
    "TestCreate",
    "TestUpdate",
]
