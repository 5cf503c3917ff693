"""Test management endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session as DbSession

from lms_api.config import RESULTS_MAX_PAGE_SIZE, RESULTS_PAGE_SIZE
from lms_api.database import get_db
from lms_api.dependencies.auth import get_current_user
from lms_api.errors import NotFoundError
from lms_api.models import AddQuestionRequest, TestCreate, TestUpdate
from lms_api.models.db.user import User
from lms_api.serialization import serialize_test, serialize_test_page
from lms_api.services import catalog_service
from lms_api.utils.time_utils import Clock, get_clock

router = APIRouter(prefix="/api/tests", tags=["tests"])


@router.get("")
def list_tests(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
    course_id: Annotated[int | None, Query(alias="courseId", gt=0)] = None,
    lesson_id: Annotated[int | None, Query(alias="lessonId", gt=0)] = None,
    is_published: Annotated[bool | None, Query(alias="isPublished")] = None,
    available_only: Annotated[bool, Query(alias="availableOnly")] = False,
    search: Annotated[str | None, Query(max_length=200)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=RESULTS_MAX_PAGE_SIZE)] = RESULTS_PAGE_SIZE,
) -> dict[str, object]:
    """List tests. Unpublished tests are only listed for their creator and admins."""
    results = catalog_service.list_tests(
        db,
        current_user,
        course_id=course_id,
        lesson_id=lesson_id,
        is_published=is_published,
        available_at=clock.now() if available_only else None,
        search=search,
        page=page,
        limit=limit,
    )
    return serialize_test_page(results)


@router.post("", status_code=201)
def create_test(
    payload: TestCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Create a new test owned by the caller."""
    test = catalog_service.create_test(db, payload, current_user)
    return serialize_test(test, include_questions=True)


@router.get("/{test_id}")
def get_test(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """
    Get a test.
    Managers see the questions with their answer key; learners only see a
    published test's settings.
    """
    test = catalog_service.require_test(db, test_id, with_questions=True)
    if catalog_service.can_manage_test(test, current_user):
        return serialize_test(test, include_questions=True)
    if not test.is_published:
        raise NotFoundError("TEST_NOT_FOUND")
    return serialize_test(test)


@router.patch("/{test_id}")
def update_test(
    test_id: int,
    payload: TestUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Update test settings. Only title and description change once attempts exist."""
    test = catalog_service.require_test(db, test_id)
    test = catalog_service.update_test(db, test, payload, current_user)
    return serialize_test(test)


@router.delete("/{test_id}", status_code=204)
def delete_test(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> Response:
    """Delete a test that has no attempts."""
    test = catalog_service.require_test(db, test_id)
    catalog_service.delete_test(db, test, current_user)
    return Response(status_code=204)


@router.post("/{test_id}/questions", status_code=201)
def add_question(
    test_id: int,
    payload: AddQuestionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Attach a question from the bank to the test."""
    test = catalog_service.require_test(db, test_id)
    link = catalog_service.add_question_to_test(
        db, test, payload.questionId, payload.sortOrder, current_user
    )
    return {"testId": link.test_id, "questionId": link.question_id, "sortOrder": link.sort_order}


@router.delete("/{test_id}/questions/{question_id}", status_code=204)
def remove_question(
    test_id: int,
    question_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> Response:
    """Detach a question from the test."""
    test = catalog_service.require_test(db, test_id)
    catalog_service.remove_question_from_test(db, test, question_id, current_user)
    return Response(status_code=204)
