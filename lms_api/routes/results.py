"""Attempt history, manual grading and stale-attempt cleanup endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from lms_api.config import RESULTS_MAX_PAGE_SIZE, RESULTS_PAGE_SIZE, STALE_ATTEMPT_GRACE_MINUTES
from lms_api.database import get_db
from lms_api.dependencies.auth import get_current_user, require_admin
from lms_api.models import AttemptListResponse, AttemptResponse, CleanupResponse, RegradeRequest
from lms_api.models.db.test import Test
from lms_api.models.db.user import User
from lms_api.serialization import serialize_attempt, serialize_attempt_page
from lms_api.services import attempt_service, grading_service
from lms_api.services.catalog_service import ensure_can_manage, require_test
from lms_api.utils.time_utils import Clock, get_clock

router = APIRouter(prefix="/api/tests", tags=["results"])


@router.get("/results/me", response_model=AttemptListResponse)
def get_my_results(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    test_id: Annotated[int | None, Query(alias="testId", gt=0)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=RESULTS_MAX_PAGE_SIZE)] = RESULTS_PAGE_SIZE,
) -> dict[str, object]:
    """The caller's attempts, newest first."""
    results = attempt_service.list_user_attempts(db, current_user.id, test_id, page, limit)

    test_ids = {attempt.test_id for attempt in results.items}
    hidden = set(
        db.execute(
            select(Test.id).where(
                Test.id.in_(test_ids),
                Test.show_results_immediately.is_(False),
            )
        ).scalars()
    ) if test_ids else set()

    return serialize_attempt_page(results, hide_results_for=hidden)


@router.get("/{test_id}/results", response_model=AttemptListResponse)
def get_test_results(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=RESULTS_MAX_PAGE_SIZE)] = RESULTS_PAGE_SIZE,
) -> dict[str, object]:
    """All attempts on a test (creator or admin)."""
    test = require_test(db, test_id)
    ensure_can_manage(test, current_user, "view")
    return serialize_attempt_page(attempt_service.list_test_attempts(db, test.id, page, limit))


@router.patch(
    "/results/{attempt_id}/answers/{question_id}", response_model=AttemptResponse
)
def regrade_answer(
    attempt_id: int,
    question_id: int,
    payload: RegradeRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Award points to an essay or programming answer and recompute the score."""
    attempt = grading_service.regrade(
        db, attempt_id, question_id, payload.pointsAwarded, current_user
    )
    return serialize_attempt(attempt)


@router.post("/attempts/cleanup", response_model=CleanupResponse)
def cleanup_attempts(
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
    grace_minutes: Annotated[int, Query(alias="graceMinutes", ge=0)] = STALE_ATTEMPT_GRACE_MINUTES,
) -> dict[str, int]:
    """Abandon attempts left running long past their time limit (admin only)."""
    abandoned = attempt_service.abandon_expired_attempts(db, clock.now(), grace_minutes)
    return {"abandoned": abandoned}
