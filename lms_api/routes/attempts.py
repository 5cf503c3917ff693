"""Test-taking endpoints: eligibility, start, questions, submit, abandon."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from lms_api.database import get_db
from lms_api.dependencies.auth import get_current_user
from lms_api.errors import BusinessRuleViolation
from lms_api.i18n import get_locale, translate
from lms_api.models import (
    AbandonRequest,
    AttemptResponse,
    CanTakeResponse,
    QuestionsResponse,
    StartResponse,
    SubmitRequest,
)
from lms_api.models.db.user import User
from lms_api.serialization import serialize_attempt, serialize_presented_questions
from lms_api.services import attempt_service
from lms_api.services.eligibility_service import can_start
from lms_api.utils.time_utils import Clock, get_clock, isoformat_or_none

router = APIRouter(prefix="/api/tests", tags=["attempts"])


@router.get("/{test_id}/can-take", response_model=CanTakeResponse)
def can_take_test(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
    locale: Annotated[str, Depends(get_locale)],
) -> dict[str, object]:
    """Check whether the caller may start an attempt now."""
    result = can_start(db, current_user.id, test_id, clock.now())
    if result.allowed:
        return {"canTake": True}
    return {
        "canTake": False,
        "reason": translate(result.reason.value, locale, **result.params),
        "reasonCode": result.reason.value,
    }


@router.post("/{test_id}/start", response_model=StartResponse, status_code=201)
def start_test(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> dict[str, object]:
    """Start a new attempt and return its question view."""
    outcome = attempt_service.start_attempt(db, current_user.id, test_id, clock.now())
    if not outcome.ok:
        raise outcome.denial.to_violation()

    return {
        "attemptId": outcome.attempt.id,
        "attemptNumber": outcome.attempt.attempt_number,
        "startedAt": isoformat_or_none(outcome.attempt.started_at),
        "expiresAt": isoformat_or_none(outcome.expires_at),
        "questions": serialize_presented_questions(outcome.questions),
    }


@router.get("/{test_id}/questions", response_model=QuestionsResponse)
def get_questions(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> dict[str, object]:
    """Question view of the caller's active attempt, in the order fixed at start."""
    view = attempt_service.get_attempt_questions(db, current_user.id, test_id, clock.now())
    if not view.ok:
        raise BusinessRuleViolation(view.reason)

    return {
        "attemptId": view.attempt.id,
        "startedAt": isoformat_or_none(view.attempt.started_at),
        "expiresAt": isoformat_or_none(view.expires_at),
        "questions": serialize_presented_questions(view.questions),
    }


@router.get("/{test_id}/session", response_model=AttemptResponse | None)
def get_session(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object] | None:
    """The caller's active attempt on the test, or null."""
    attempt = attempt_service.get_active_attempt(db, current_user.id, test_id)
    if attempt is None:
        return None
    return serialize_attempt(attempt, include_answers=False)


@router.post("/{test_id}/submit", response_model=AttemptResponse)
def submit_test(
    test_id: int,
    payload: SubmitRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> dict[str, object]:
    """Submit answers. A late submission abandons the attempt instead of grading it."""
    outcome = attempt_service.complete_attempt(
        db,
        payload.testResultId,
        current_user.id,
        payload.answers,
        clock.now(),
        test_id=test_id,
    )
    if not outcome.ok:
        raise BusinessRuleViolation(outcome.reason)

    attempt = outcome.attempt
    return serialize_attempt(
        attempt,
        hide_results=not outcome.timed_out and not attempt.test.show_results_immediately,
        timed_out=outcome.timed_out,
    )


@router.post("/{test_id}/abandon", response_model=AttemptResponse)
def abandon_test(
    test_id: int,
    payload: AbandonRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> dict[str, object]:
    """Give up the active attempt. It still counts toward maxAttempts."""
    outcome = attempt_service.abandon_attempt(
        db, payload.testResultId, current_user.id, clock.now(), test_id=test_id
    )
    if not outcome.ok:
        raise BusinessRuleViolation(outcome.reason)
    return serialize_attempt(outcome.attempt)
