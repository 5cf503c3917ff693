"""Question bank endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from lms_api.database import get_db
from lms_api.dependencies.auth import get_current_user
from lms_api.errors import AuthorizationError, NotFoundError
from lms_api.models import QuestionCreate
from lms_api.models.db.question import Question
from lms_api.models.db.user import User
from lms_api.serialization import serialize_question
from lms_api.services import catalog_service

router = APIRouter(prefix="/api/questions", tags=["questions"])


@router.post("", status_code=201)
def create_question(
    payload: QuestionCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Add a question to the bank."""
    question = catalog_service.create_question(db, payload, current_user)
    return serialize_question(question)


@router.get("/{question_id}")
def get_question(
    question_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Get a question with its answer key (author or admin)."""
    question = db.get(Question, question_id)
    if question is None:
        raise NotFoundError("QUESTION_NOT_FOUND")
    if not current_user.is_admin and question.created_by != current_user.id:
        raise AuthorizationError("ADMIN_ONLY")
    return serialize_question(question)
