from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from lms_api.models.db.attempt import Answer, Attempt
from lms_api.models.db.question import Question
from lms_api.models.db.test import Test
from lms_api.services.attempt_service import AttemptPage
from lms_api.services.catalog_service import TestPage, ordered_test_questions
from lms_api.services.grading_service import pending_answers
from lms_api.services.presentation_service import PresentedQuestion
from lms_api.services.stats_service import TestStatistics
from lms_api.utils.time_utils import isoformat_or_none


def serialize_presented_question(question: PresentedQuestion) -> dict[str, Any]:
    return {
        "questionId": question.question_id,
        "type": question.type,
        "title": question.title,
        "questionText": question.question_text,
        "points": question.points,
        "options": [{"id": option.id, "text": option.text} for option in question.options],
    }


def serialize_presented_questions(questions: Iterable[PresentedQuestion]) -> list[dict[str, Any]]:
    return [serialize_presented_question(question) for question in questions]


def serialize_question(question: Question, include_answer_key: bool = True) -> dict[str, Any]:
    """Question bank entry. The answer key is only for test managers."""
    options = []
    for option in question.options:
        item: dict[str, Any] = {
            "id": option.id,
            "text": option.option_text,
            "sortOrder": option.sort_order,
        }
        if include_answer_key:
            item["isCorrect"] = option.is_correct
        options.append(item)

    return {
        "id": question.id,
        "title": question.title,
        "questionText": question.question_text,
        "questionType": question.question_type,
        "points": question.points,
        "options": options,
    }


def serialize_test(test: Test, include_questions: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "courseId": test.course_id,
        "lessonId": test.lesson_id,
        "timeLimitMinutes": test.time_limit_minutes,
        "maxAttempts": test.max_attempts,
        "passingScore": test.passing_score,
        "shuffleQuestions": test.shuffle_questions,
        "shuffleOptions": test.shuffle_options,
        "showResultsImmediately": test.show_results_immediately,
        "isPublished": test.is_published,
        "availableFrom": isoformat_or_none(test.available_from),
        "availableUntil": isoformat_or_none(test.available_until),
        "createdBy": test.created_by,
        "createdAt": isoformat_or_none(test.created_at),
        "updatedAt": isoformat_or_none(test.updated_at),
    }
    if include_questions:
        payload["questions"] = [
            {**serialize_question(tq.question), "sortOrder": tq.sort_order}
            for tq in ordered_test_questions(test)
        ]
    return payload


def serialize_test_page(page: TestPage) -> dict[str, Any]:
    return {
        "data": [serialize_test(test) for test in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "totalPages": page.total_pages,
        },
    }


def serialize_answer(answer: Answer) -> dict[str, Any]:
    return {
        "questionId": answer.question_id,
        "isCorrect": answer.is_correct,
        "pointsAwarded": answer.points_awarded,
    }


def serialize_attempt(
    attempt: Attempt,
    hide_results: bool = False,
    timed_out: bool = False,
    include_answers: bool = True,
) -> dict[str, Any]:
    """
    Attempt summary.
    With hide_results the score, pass flag and per-answer grading are withheld.
    """
    answers = list(attempt.answers) if include_answers else []
    payload: dict[str, Any] = {
        "id": attempt.id,
        "testId": attempt.test_id,
        "userId": attempt.user_id,
        "attemptNumber": attempt.attempt_number,
        "status": attempt.status,
        "startedAt": isoformat_or_none(attempt.started_at),
        "completedAt": isoformat_or_none(attempt.completed_at),
        "timeSpentMinutes": attempt.time_spent_minutes,
        "score": attempt.score,
        "earnedPoints": attempt.earned_points,
        "totalPoints": attempt.total_points,
        "isPassed": attempt.is_passed,
        "timedOut": timed_out,
        "pendingReview": pending_answers(answers),
        "answers": [serialize_answer(answer) for answer in answers] if include_answers else None,
    }
    if hide_results:
        payload.update(
            {"score": None, "earnedPoints": None, "isPassed": None, "answers": None}
        )
    return payload


def serialize_attempt_page(
    page: AttemptPage, hide_results_for: set[int] | None = None
) -> dict[str, Any]:
    hidden = hide_results_for or set()
    return {
        "data": [
            serialize_attempt(attempt, hide_results=attempt.test_id in hidden)
            for attempt in page.items
        ],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "totalPages": page.total_pages,
        },
    }


def serialize_statistics(stats: TestStatistics) -> dict[str, Any]:
    return {
        "totalAttempts": stats.total_attempts,
        "passedAttempts": stats.passed_attempts,
        "failedAttempts": stats.failed_attempts,
        "abandonedAttempts": stats.abandoned_attempts,
        "averageScore": stats.average_score,
        "averageTimeSpent": stats.average_time_spent,
        "highestScore": stats.highest_score,
        "lowestScore": stats.lowest_score,
        "passRate": stats.pass_rate,
    }
