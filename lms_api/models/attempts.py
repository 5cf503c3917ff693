"""Attempt-related Pydantic models."""
from pydantic import BaseModel, Field


class SubmittedAnswer(BaseModel):
    """A single answer inside a submission."""

    questionId: int = Field(..., gt=0)
    selectedOptionId: int | None = Field(None, gt=0)
    answerText: str | None = Field(None, max_length=5000)


class SubmitRequest(BaseModel):
    """Model for submitting an attempt."""

    testResultId: int = Field(..., gt=0)
    answers: list[SubmittedAnswer] = Field(default_factory=list)


class AbandonRequest(BaseModel):
    """Model for abandoning an attempt."""

    testResultId: int = Field(..., gt=0)


class RegradeRequest(BaseModel):
    """Model for manually grading an essay/programming answer."""

    pointsAwarded: int = Field(..., ge=0)


class PresentedOptionResponse(BaseModel):
    """Option as shown to a learner."""

    id: int
    text: str


class PresentedQuestionResponse(BaseModel):
    """Question as shown to a learner (no answer key)."""

    questionId: int
    type: str
    title: str
    questionText: str
    points: int
    options: list[PresentedOptionResponse]


class StartResponse(BaseModel):
    """Model for a started attempt."""

    attemptId: int
    attemptNumber: int
    startedAt: str
    expiresAt: str | None
    questions: list[PresentedQuestionResponse]


class QuestionsResponse(BaseModel):
    """Presentation view for the active attempt."""

    attemptId: int
    startedAt: str
    expiresAt: str | None
    questions: list[PresentedQuestionResponse]


class CanTakeResponse(BaseModel):
    """Eligibility check result."""

    canTake: bool
    reason: str | None = None
    reasonCode: str | None = None


class AnswerResultResponse(BaseModel):
    """Per-answer grading outcome."""

    questionId: int
    isCorrect: bool | None
    pointsAwarded: int


class AttemptResponse(BaseModel):
    """Attempt summary. Result fields are null when hidden or not yet graded."""

    id: int
    testId: int
    userId: int
    attemptNumber: int
    status: str
    startedAt: str
    completedAt: str | None
    timeSpentMinutes: int | None
    score: float | None
    earnedPoints: int | None
    totalPoints: int
    isPassed: bool | None
    timedOut: bool = False
    pendingReview: int = 0
    answers: list[AnswerResultResponse] | None = None


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class AttemptListResponse(BaseModel):
    """Paginated attempts."""

    data: list[AttemptResponse]
    pagination: PaginationResponse


class StatisticsResponse(BaseModel):
    """Aggregate metrics over completed attempts."""

    totalAttempts: int
    passedAttempts: int
    failedAttempts: int
    abandonedAttempts: int
    averageScore: float
    averageTimeSpent: float
    highestScore: float
    lowestScore: float
    passRate: float


class CleanupResponse(BaseModel):
    """Administrative cleanup outcome."""

    abandoned: int
