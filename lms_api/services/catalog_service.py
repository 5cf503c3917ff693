"""Service layer for test definitions (the test catalog)."""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session as DbSession, selectinload

from lms_api.config import RESULTS_PAGE_SIZE
from lms_api.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from lms_api.models.db.attempt import Attempt, AttemptStatus
from lms_api.models.db.question import Question, QuestionOption, QuestionType
from lms_api.models.db.test import Test, TestQuestion
from lms_api.models.db.user import User
from lms_api.models.tests import QuestionCreate, TestCreate, TestUpdate
from lms_api.utils.time_utils import ensure_timezone_aware

logger = logging.getLogger(__name__)

# API field -> column
_TEST_FIELDS = {
    "title": "title",
    "description": "description",
    "courseId": "course_id",
    "lessonId": "lesson_id",
    "timeLimitMinutes": "time_limit_minutes",
    "maxAttempts": "max_attempts",
    "passingScore": "passing_score",
    "shuffleQuestions": "shuffle_questions",
    "shuffleOptions": "shuffle_options",
    "showResultsImmediately": "show_results_immediately",
    "isPublished": "is_published",
    "availableFrom": "available_from",
    "availableUntil": "available_until",
}

# Fields that may still change once attempts exist
_NON_STRUCTURAL_FIELDS = {"title", "description"}


@dataclass
class TestPage:
    __test__ = False

    items: list[Test] = field(default_factory=list)
    page: int = 1
    limit: int = RESULTS_PAGE_SIZE
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def get_test(db: DbSession, test_id: int) -> Test | None:
    """Get test by id without its questions."""
    return db.get(Test, test_id)


def get_test_with_questions(db: DbSession, test_id: int) -> Test | None:
    """Get test with questions and options loaded."""
    stmt = (
        select(Test)
        .options(
            selectinload(Test.test_questions)
            .selectinload(TestQuestion.question)
            .selectinload(Question.options)
        )
        .where(Test.id == test_id)
    )
    return db.execute(stmt).scalar_one_or_none()


def require_test(db: DbSession, test_id: int, with_questions: bool = False) -> Test:
    """Get test or raise NotFoundError."""
    test = get_test_with_questions(db, test_id) if with_questions else get_test(db, test_id)
    if test is None:
        raise NotFoundError("TEST_NOT_FOUND")
    return test


def list_tests(
    db: DbSession,
    user: User,
    course_id: int | None = None,
    lesson_id: int | None = None,
    is_published: bool | None = None,
    available_at: datetime | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = RESULTS_PAGE_SIZE,
) -> TestPage:
    """
    Tests visible to user, newest first.

    Administrators see every test; everyone else sees published tests and
    the ones they created. With available_at only published tests inside
    their availability window at that instant are returned.
    """
    query = select(Test)
    if not user.is_admin:
        query = query.where(or_(Test.is_published.is_(True), Test.created_by == user.id))
    if course_id is not None:
        query = query.where(Test.course_id == course_id)
    if lesson_id is not None:
        query = query.where(Test.lesson_id == lesson_id)
    if is_published is not None:
        query = query.where(Test.is_published.is_(is_published))
    if available_at is not None:
        query = query.where(
            Test.is_published.is_(True),
            or_(Test.available_from.is_(None), Test.available_from <= available_at),
            or_(Test.available_until.is_(None), Test.available_until >= available_at),
        )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Test.title.ilike(pattern), Test.description.ilike(pattern)))

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    items = db.execute(
        query.order_by(Test.created_at.desc(), Test.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return TestPage(items=list(items), page=page, limit=limit, total=total)


def ordered_test_questions(test: Test) -> list[TestQuestion]:
    """Test questions in canonical order (sort_order ascending)."""
    return sorted(test.test_questions, key=lambda tq: (tq.sort_order, tq.id))


def can_manage_test(test: Test, user: User) -> bool:
    """Creator or administrator."""
    return user.is_admin or test.created_by == user.id


def ensure_can_manage(test: Test, user: User, action: str = "modify") -> None:
    if not can_manage_test(test, user):
        raise AuthorizationError("UNAUTHORIZED_ACCESS", action=action)


def _normalized(value: object) -> object:
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    return value


def validate_availability_window(
    available_from: datetime | None, available_until: datetime | None
) -> None:
    """availableFrom must be strictly before availableUntil when both are set."""
    start = ensure_timezone_aware(available_from)
    end = ensure_timezone_aware(available_until)
    if start and end and start >= end:
        raise ValidationError("INVALID_DATE_RANGE")


def count_attempts_for_test(
    db: DbSession, test_id: int, status: str | None = None
) -> int:
    """Count attempts referencing a test."""
    query = select(func.count(Attempt.id)).where(Attempt.test_id == test_id)
    if status:
        query = query.where(Attempt.status == status)
    return db.execute(query).scalar() or 0


def create_test(db: DbSession, data: TestCreate, creator: User) -> Test:
    """Create a new test owned by creator."""
    values = {
        column: getattr(data, field)
        for field, column in _TEST_FIELDS.items()
        if getattr(data, field) is not None
    }
    validate_availability_window(data.availableFrom, data.availableUntil)

    test = Test(created_by=creator.id, **values)
    db.add(test)
    db.commit()
    db.refresh(test)
    logger.info("Test %s created by user %s", test.id, creator.id)
    return test


def update_test(db: DbSession, test: Test, data: TestUpdate, user: User) -> Test:
    """
    Apply the fields present in data.
    Once any attempt exists only title and description may change.
    """
    ensure_can_manage(test, user, "update")

    changes = {
        _TEST_FIELDS[field]: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if field in _TEST_FIELDS
    }
    if changes.get("passing_score", 0) is None:
        del changes["passing_score"]

    structural = {
        column for column, value in changes.items()
        if column not in _NON_STRUCTURAL_FIELDS
        and _normalized(getattr(test, column)) != _normalized(value)
    }
    if structural and count_attempts_for_test(db, test.id) > 0:
        raise ConflictError("TEST_LOCKED")

    validate_availability_window(
        changes.get("available_from", test.available_from),
        changes.get("available_until", test.available_until),
    )

    for column, value in changes.items():
        setattr(test, column, value)

    db.commit()
    db.refresh(test)
    return test


def delete_test(db: DbSession, test: Test, user: User) -> None:
    """Delete a test. Refused while any attempt references it."""
    ensure_can_manage(test, user, "delete")

    if count_attempts_for_test(db, test.id) > 0:
        raise ConflictError("CANNOT_DELETE_TEST_WITH_RESULTS")

    db.delete(test)
    db.commit()
    logger.info("Test %s deleted by user %s", test.id, user.id)


def create_question(db: DbSession, data: QuestionCreate, creator: User) -> Question:
    """Create a question with its options."""
    if data.questionType == QuestionType.SINGLE_CHOICE:
        if len(data.options) < 2:
            raise ValidationError("INSUFFICIENT_OPTIONS")
        if sum(1 for option in data.options if option.isCorrect) != 1:
            raise ValidationError("NO_SINGLE_CORRECT_OPTION")
    elif data.options:
        raise ValidationError("OPTIONS_NOT_ALLOWED")

    question = Question(
        title=data.title,
        question_text=data.questionText,
        question_type=data.questionType.value,
        points=data.points,
        created_by=creator.id,
    )
    for index, option in enumerate(data.options, start=1):
        question.options.append(
            QuestionOption(
                option_text=option.text,
                is_correct=option.isCorrect,
                sort_order=index,
            )
        )

    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def _ensure_question_set_unlocked(db: DbSession, test: Test) -> None:
    if count_attempts_for_test(db, test.id, AttemptStatus.IN_PROGRESS.value) > 0:
        raise ConflictError("QUESTION_SET_LOCKED")


def add_question_to_test(
    db: DbSession,
    test: Test,
    question_id: int,
    sort_order: int | None,
    user: User,
) -> TestQuestion:
    """Attach a question to a test (next sort order when not given)."""
    ensure_can_manage(test, user, "modify")

    if db.get(Question, question_id) is None:
        raise NotFoundError("QUESTION_NOT_FOUND")

    existing = db.execute(
        select(TestQuestion).where(
            TestQuestion.test_id == test.id,
            TestQuestion.question_id == question_id,
        )
    ).scalar_one_or_none()
    if existing:
        raise ValidationError("QUESTION_ALREADY_IN_TEST")

    _ensure_question_set_unlocked(db, test)

    if sort_order is None:
        last = db.execute(
            select(func.max(TestQuestion.sort_order)).where(TestQuestion.test_id == test.id)
        ).scalar()
        sort_order = (last or 0) + 1

    link = TestQuestion(test_id=test.id, question_id=question_id, sort_order=sort_order)
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def remove_question_from_test(
    db: DbSession, test: Test, question_id: int, user: User
) -> None:
    """Detach a question from a test."""
    ensure_can_manage(test, user, "modify")

    link = db.execute(
        select(TestQuestion).where(
            TestQuestion.test_id == test.id,
            TestQuestion.question_id == question_id,
        )
    ).scalar_one_or_none()
    if link is None:
        raise NotFoundError("QUESTION_NOT_IN_TEST")

    _ensure_question_set_unlocked(db, test)

    db.delete(link)
    db.commit()
