"""
Service layer for attempts: the IN_PROGRESS -> COMPLETED | ABANDONED state machine.

Terminal transitions are single conditional UPDATEs guarded by
``status = 'IN_PROGRESS'``; a caller that loses a race sees rowcount 0 and
gets ``NOT_IN_PROGRESS``. Concurrent starts are settled by the partial unique
index on the active attempt.
"""
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession, selectinload

from lms_api.config import (
    RESULTS_PAGE_SIZE,
    STALE_ATTEMPT_GRACE_MINUTES,
    SUBMISSION_GRACE_SECONDS,
)
from lms_api.errors import EligibilityReason
from lms_api.models.attempts import SubmittedAnswer
from lms_api.models.db.attempt import Answer, Attempt, AttemptStatus
from lms_api.models.db.question import Question
from lms_api.models.db.test import Test
from lms_api.services.catalog_service import get_test_with_questions, ordered_test_questions
from lms_api.services.eligibility_service import (
    EligibilityResult,
    check_availability,
    count_terminal_attempts,
    evaluate,
    get_in_progress_attempt,
)
from lms_api.services.grading_service import GradeResult, grade
from lms_api.services.presentation_service import (
    PresentedQuestion,
    new_seed,
    present,
    question_order,
)
from lms_api.utils.time_utils import elapsed_minutes, ensure_timezone_aware

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartOutcome:
    """Result of a start request: a new attempt or the eligibility denial."""

    attempt: Attempt | None = None
    questions: tuple[PresentedQuestion, ...] = ()
    expires_at: datetime | None = None
    denial: EligibilityResult | None = None

    @property
    def ok(self) -> bool:
        return self.denial is None


@dataclass(frozen=True)
class AttemptView:
    """Presentation view of the caller's active attempt."""

    attempt: Attempt | None = None
    questions: tuple[PresentedQuestion, ...] = ()
    expires_at: datetime | None = None
    reason: EligibilityReason | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class SubmitOutcome:
    """Graded completion, timeout abandonment, or NOT_IN_PROGRESS."""

    attempt: Attempt | None = None
    result: GradeResult | None = None
    timed_out: bool = False
    reason: EligibilityReason | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class AbandonOutcome:
    attempt: Attempt | None = None
    reason: EligibilityReason | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class AttemptPage:
    items: list[Attempt] = field(default_factory=list)
    page: int = 1
    limit: int = RESULTS_PAGE_SIZE
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def attempt_deadline(attempt: Attempt, test: Test) -> datetime | None:
    """Instant after which a submission no longer counts, or None without a limit."""
    if not test.time_limit_minutes:
        return None
    return ensure_timezone_aware(attempt.started_at) + timedelta(
        minutes=test.time_limit_minutes
    )


def is_overdue(attempt: Attempt, test: Test, now: datetime, grace_seconds: int = 0) -> bool:
    """Elapsed time exceeds the limit by more than grace_seconds (strict comparison)."""
    deadline = attempt_deadline(attempt, test)
    if deadline is None:
        return False
    return now > deadline + timedelta(seconds=grace_seconds)


def _attempt_questions(test: Test, attempt: Attempt) -> list[Question]:
    """Questions of the attempt in its snapshotted order."""
    by_id = {tq.question_id: tq.question for tq in test.test_questions}
    order = attempt.question_order or [tq.question_id for tq in ordered_test_questions(test)]
    return [by_id[question_id] for question_id in order if question_id in by_id]


def _active_attempt_query(attempt_id: int, user_id: int | None, test_id: int | None):
    query = select(Attempt).where(
        Attempt.id == attempt_id,
        Attempt.status == AttemptStatus.IN_PROGRESS.value,
    )
    if user_id is not None:
        query = query.where(Attempt.user_id == user_id)
    if test_id is not None:
        query = query.where(Attempt.test_id == test_id)
    return query


def _transition(db: DbSession, attempt_id: int, **values: object) -> bool:
    """Move an IN_PROGRESS attempt to a terminal state. False if it already left IN_PROGRESS."""
    result = db.execute(
        update(Attempt)
        .where(
            Attempt.id == attempt_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(**values)
    )
    return result.rowcount == 1


def _abandon_values(attempt: Attempt, now: datetime) -> dict[str, object]:
    return {
        "status": AttemptStatus.ABANDONED.value,
        "completed_at": now,
        "time_spent_minutes": elapsed_minutes(attempt.started_at, now),
        "score": 0.0,
        "earned_points": 0,
        "is_passed": False,
    }


def start_attempt(db: DbSession, user_id: int, test_id: int, now: datetime) -> StartOutcome:
    """
    Start a new attempt.
    Eligibility is re-evaluated here; an earlier can-take answer is only advisory.
    """
    test = get_test_with_questions(db, test_id)
    eligibility = evaluate(db, test, user_id, now)
    if not eligibility.allowed:
        return StartOutcome(denial=eligibility)

    test_questions = ordered_test_questions(test)
    seed = new_seed()
    order = question_order(test_questions, test.shuffle_questions, seed)

    attempt = Attempt(
        user_id=user_id,
        test_id=test.id,
        attempt_number=count_terminal_attempts(db, user_id, test.id) + 1,
        status=AttemptStatus.IN_PROGRESS.value,
        started_at=now,
        total_points=sum(tq.question.points for tq in test_questions),
        shuffle_seed=seed,
    )
    attempt.question_order = order
    db.add(attempt)

    try:
        db.flush()
    except IntegrityError:
        # Another request created the active attempt between our check and insert
        db.rollback()
        logger.warning(
            "Concurrent start detected for user %s on test %s", user_id, test_id
        )
        return StartOutcome(
            denial=EligibilityResult.deny(EligibilityReason.ALREADY_IN_PROGRESS)
        )

    db.commit()
    db.refresh(attempt)
    logger.info(
        "Attempt %s started by user %s on test %s (attempt #%s)",
        attempt.id,
        user_id,
        test.id,
        attempt.attempt_number,
    )

    return StartOutcome(
        attempt=attempt,
        questions=tuple(present(test_questions, seed, order, test.shuffle_options)),
        expires_at=attempt_deadline(attempt, test),
    )


def get_active_attempt(db: DbSession, user_id: int, test_id: int) -> Attempt | None:
    """The caller's IN_PROGRESS attempt on a test, if any."""
    return get_in_progress_attempt(db, user_id, test_id)


def get_attempt_questions(
    db: DbSession, user_id: int, test_id: int, now: datetime
) -> AttemptView:
    """
    Re-derive the question view of the active attempt from its stored seed.
    Only availability is re-checked; the active attempt itself is the ticket.
    """
    test = get_test_with_questions(db, test_id)
    reason = check_availability(test, now)
    if reason is not None:
        return AttemptView(reason=reason)

    attempt = get_in_progress_attempt(db, user_id, test.id)
    if attempt is None:
        return AttemptView(reason=EligibilityReason.NOT_IN_PROGRESS)

    questions = present(
        ordered_test_questions(test),
        attempt.shuffle_seed,
        attempt.question_order,
        test.shuffle_options,
    )
    return AttemptView(
        attempt=attempt,
        questions=tuple(questions),
        expires_at=attempt_deadline(attempt, test),
    )


def complete_attempt(
    db: DbSession,
    attempt_id: int,
    user_id: int,
    answers: Sequence[SubmittedAnswer],
    now: datetime,
    test_id: int | None = None,
) -> SubmitOutcome:
    """
    Submit an attempt.

    Unknown id, another user's attempt and an attempt that already ended all
    answer NOT_IN_PROGRESS. A submission past the time limit abandons the
    attempt with score 0 instead of grading it. Malformed answers raise
    ValidationError before any state changes.
    """
    attempt = db.execute(_active_attempt_query(attempt_id, user_id, test_id)).scalar_one_or_none()
    if attempt is None:
        return SubmitOutcome(reason=EligibilityReason.NOT_IN_PROGRESS)

    test = get_test_with_questions(db, attempt.test_id)

    if is_overdue(attempt, test, now, SUBMISSION_GRACE_SECONDS):
        if not _transition(db, attempt.id, **_abandon_values(attempt, now)):
            db.rollback()
            return SubmitOutcome(reason=EligibilityReason.NOT_IN_PROGRESS)
        db.commit()
        db.refresh(attempt)
        logger.info(
            "Attempt %s abandoned on late submission (%s min, limit %s)",
            attempt.id,
            attempt.time_spent_minutes,
            test.time_limit_minutes,
        )
        return SubmitOutcome(attempt=attempt, timed_out=True)

    result = grade(_attempt_questions(test, attempt), test.passing_score, answers)

    completed = _transition(
        db,
        attempt.id,
        status=AttemptStatus.COMPLETED.value,
        completed_at=now,
        time_spent_minutes=elapsed_minutes(attempt.started_at, now),
        score=result.score,
        earned_points=result.earned_points,
        total_points=result.total_points,
        is_passed=result.is_passed,
    )
    if not completed:
        db.rollback()
        logger.warning("Attempt %s was already finalized by a concurrent request", attempt.id)
        return SubmitOutcome(reason=EligibilityReason.NOT_IN_PROGRESS)

    db.add_all(
        Answer(
            test_result_id=attempt.id,
            question_id=item.question_id,
            selected_option_id=item.selected_option_id,
            answer_text=item.answer_text,
            is_correct=item.is_correct,
            points_awarded=item.points_awarded,
            answered_at=now,
        )
        for item in result.per_answer
    )
    db.commit()
    db.refresh(attempt)

    logger.info(
        "Attempt %s completed: score %.2f, passed=%s, %s answer(s) pending review",
        attempt.id,
        result.score,
        result.is_passed,
        result.pending_review,
    )
    return SubmitOutcome(attempt=attempt, result=result)


def abandon_attempt(
    db: DbSession,
    attempt_id: int,
    user_id: int,
    now: datetime,
    test_id: int | None = None,
) -> AbandonOutcome:
    """Explicitly abandon the caller's active attempt. Consumes an attempt slot."""
    attempt = db.execute(_active_attempt_query(attempt_id, user_id, test_id)).scalar_one_or_none()
    if attempt is None:
        return AbandonOutcome(reason=EligibilityReason.NOT_IN_PROGRESS)

    if not _transition(db, attempt.id, **_abandon_values(attempt, now)):
        db.rollback()
        return AbandonOutcome(reason=EligibilityReason.NOT_IN_PROGRESS)

    db.commit()
    db.refresh(attempt)
    logger.info("Attempt %s abandoned by user %s", attempt.id, user_id)
    return AbandonOutcome(attempt=attempt)


def abandon_expired_attempts(
    db: DbSession, now: datetime, grace_minutes: int = STALE_ATTEMPT_GRACE_MINUTES
) -> int:
    """
    Abandon IN_PROGRESS attempts whose time limit passed more than grace_minutes ago.
    Returns the number of attempts abandoned.
    """
    rows = db.execute(
        select(Attempt, Test)
        .join(Test, Attempt.test_id == Test.id)
        .where(
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
            Test.time_limit_minutes.is_not(None),
        )
    ).all()

    abandoned = 0
    for attempt, test in rows:
        if not is_overdue(attempt, test, now, grace_minutes * 60):
            continue
        if _transition(db, attempt.id, **_abandon_values(attempt, now)):
            abandoned += 1

    db.commit()
    if abandoned:
        logger.info("Abandoned %s expired attempt(s)", abandoned)
    return abandoned


def _paginate(db: DbSession, query, page: int, limit: int) -> AttemptPage:
    total = db.execute(
        select(func.count()).select_from(query.order_by(None).subquery())
    ).scalar() or 0
    items = db.execute(
        query.options(selectinload(Attempt.answers))
        .order_by(Attempt.started_at.desc(), Attempt.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return AttemptPage(items=list(items), page=page, limit=limit, total=total)


def list_user_attempts(
    db: DbSession,
    user_id: int,
    test_id: int | None = None,
    page: int = 1,
    limit: int = RESULTS_PAGE_SIZE,
) -> AttemptPage:
    """The caller's attempts, newest first, optionally for one test."""
    query = select(Attempt).where(Attempt.user_id == user_id)
    if test_id is not None:
        query = query.where(Attempt.test_id == test_id)
    return _paginate(db, query, page, limit)


def list_test_attempts(
    db: DbSession, test_id: int, page: int = 1, limit: int = RESULTS_PAGE_SIZE
) -> AttemptPage:
    """All users' attempts on a test, newest first."""
    return _paginate(db, select(Attempt).where(Attempt.test_id == test_id), page, limit)
