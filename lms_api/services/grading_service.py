"""
Scoring of submitted answers.

Every question of the attempt counts toward the denominator, answered or not.
SINGLE_CHOICE answers are graded against the designated option; ESSAY and
PROGRAMMING answers are stored as pending (0 points, ``is_correct`` NULL)
until ``regrade`` awards points for them.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DbSession, selectinload

from lms_api.errors import NotFoundError, ValidationError
from lms_api.models.attempts import SubmittedAnswer
from lms_api.models.db.attempt import Answer, Attempt
from lms_api.models.db.question import MANUALLY_GRADED_TYPES, Question
from lms_api.models.db.test import Test
from lms_api.models.db.user import User
from lms_api.services.catalog_service import ensure_can_manage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerGrade:
    question_id: int
    selected_option_id: int | None
    answer_text: str | None
    is_correct: bool | None
    points_awarded: int


@dataclass(frozen=True)
class GradeResult:
    score: float
    is_passed: bool
    earned_points: int
    total_points: int
    per_answer: tuple[AnswerGrade, ...]

    @property
    def pending_review(self) -> int:
        return sum(1 for answer in self.per_answer if answer.is_correct is None)


def compute_score(earned_points: int, total_points: int) -> float:
    """Percentage in [0, 100], two decimals. A test worth nothing scores 0."""
    if total_points <= 0:
        return 0.0
    return round(earned_points * 100 / total_points, 2)


def is_passing(earned_points: int, total_points: int, passing_score: float) -> bool:
    """Compare the unrounded percentage, so rounding never decides a pass."""
    if total_points <= 0:
        return passing_score <= 0
    return earned_points * 100 >= passing_score * total_points


def _has_text(value: str | None) -> bool:
    return value is not None and value.strip() != ""


def validate_answers(
    questions: Sequence[Question], answers: Sequence[SubmittedAnswer]
) -> None:
    """
    Reject the whole submission on the first malformed answer.
    Raises ValidationError; nothing is graded or persisted in that case.
    """
    by_id = {question.id: question for question in questions}
    seen: set[int] = set()

    for answer in answers:
        question = by_id.get(answer.questionId)
        if question is None:
            raise ValidationError("ANSWER_FOR_UNKNOWN_QUESTION", question_id=answer.questionId)

        if answer.questionId in seen:
            raise ValidationError("DUPLICATE_ANSWER", question_id=answer.questionId)
        seen.add(answer.questionId)

        if question.is_single_choice:
            if answer.selectedOptionId is None or answer.answerText is not None:
                raise ValidationError("CHOICE_ANSWER_SHAPE", question_id=question.id)
            if answer.selectedOptionId not in {option.id for option in question.options}:
                raise ValidationError(
                    "UNKNOWN_OPTION",
                    option_id=answer.selectedOptionId,
                    question_id=question.id,
                )
        else:
            if answer.selectedOptionId is not None or not _has_text(answer.answerText):
                raise ValidationError("TEXT_ANSWER_SHAPE", question_id=question.id)


def _grade_answer(question: Question, answer: SubmittedAnswer) -> AnswerGrade:
    if question.is_single_choice:
        is_correct = answer.selectedOptionId == question.correct_option_id
        return AnswerGrade(
            question_id=question.id,
            selected_option_id=answer.selectedOptionId,
            answer_text=None,
            is_correct=is_correct,
            points_awarded=question.points if is_correct else 0,
        )

    return AnswerGrade(
        question_id=question.id,
        selected_option_id=None,
        answer_text=answer.answerText,
        is_correct=None,
        points_awarded=0,
    )


def grade(
    questions: Sequence[Question],
    passing_score: float,
    answers: Sequence[SubmittedAnswer],
) -> GradeResult:
    """
    Grade a submission against the attempt's questions.

    Args:
        questions: Every question of the attempt (the score denominator)
        passing_score: Threshold in percent; a score equal to it passes
        answers: Submitted answers; missing ones simply earn nothing
    """
    validate_answers(questions, answers)

    by_question = {answer.questionId: answer for answer in answers}
    per_answer = tuple(
        _grade_answer(question, by_question[question.id])
        for question in questions
        if question.id in by_question
    )

    total_points = sum(question.points for question in questions)
    earned_points = sum(item.points_awarded for item in per_answer)
    score = compute_score(earned_points, total_points)

    return GradeResult(
        score=score,
        is_passed=is_passing(earned_points, total_points, passing_score),
        earned_points=earned_points,
        total_points=total_points,
        per_answer=per_answer,
    )


def get_attempt_with_answers(db: DbSession, attempt_id: int) -> Attempt | None:
    """Get attempt by id with answers loaded, locking the attempt row."""
    return db.execute(
        select(Attempt)
        .options(selectinload(Attempt.answers))
        .where(Attempt.id == attempt_id)
        .with_for_update()
    ).scalar_one_or_none()


def regrade(
    db: DbSession,
    attempt_id: int,
    question_id: int,
    points_awarded: int,
    user: User,
) -> Attempt:
    """
    Manually grade an ESSAY/PROGRAMMING answer of a completed attempt,
    then recompute and persist score and pass/fail.
    """
    attempt = get_attempt_with_answers(db, attempt_id)
    if attempt is None:
        raise NotFoundError("ATTEMPT_NOT_FOUND")

    test = db.get(Test, attempt.test_id)
    ensure_can_manage(test, user, "grade")

    if not attempt.is_completed:
        raise ValidationError("ATTEMPT_NOT_COMPLETED")

    answer = next((item for item in attempt.answers if item.question_id == question_id), None)
    if answer is None:
        raise NotFoundError("ANSWER_NOT_FOUND")

    question = db.get(Question, question_id)
    if question is None or question.question_type not in MANUALLY_GRADED_TYPES:
        raise ValidationError("NOT_MANUALLY_GRADABLE")

    if not 0 <= points_awarded <= question.points:
        raise ValidationError("POINTS_OUT_OF_RANGE", max_points=question.points)

    answer.points_awarded = points_awarded
    answer.is_correct = points_awarded == question.points

    db.flush()

    # Totals come from the stored answers, including ones graded in other sessions
    earned_points = db.execute(
        select(func.coalesce(func.sum(Answer.points_awarded), 0)).where(
            Answer.test_result_id == attempt.id
        )
    ).scalar_one()
    attempt.earned_points = earned_points
    attempt.score = compute_score(earned_points, attempt.total_points)
    attempt.is_passed = is_passing(earned_points, attempt.total_points, test.passing_score)

    db.commit()
    db.refresh(attempt)
    logger.info(
        "Attempt %s question %s regraded to %s points by user %s (score %.2f)",
        attempt.id,
        question_id,
        points_awarded,
        user.id,
        attempt.score,
    )
    return attempt


def pending_answers(answers: Sequence[Answer]) -> int:
    """Answers still waiting for manual grading."""
    return sum(1 for answer in answers if answer.is_pending_review)
