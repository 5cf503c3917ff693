"""Service layer for statistics calculation."""
from dataclasses import dataclass

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session as DbSession

from lms_api.models.db.attempt import Attempt, AttemptStatus


@dataclass(frozen=True)
class TestStatistics:
    """Aggregates over COMPLETED attempts; abandoned ones are only counted."""

    __test__ = False

    total_attempts: int = 0
    passed_attempts: int = 0
    failed_attempts: int = 0
    abandoned_attempts: int = 0
    average_score: float = 0.0
    average_time_spent: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
    pass_rate: float = 0.0


def _rounded(value: float | None) -> float:
    return round(float(value), 2) if value is not None else 0.0


def compute_statistics(db: DbSession, test_id: int) -> TestStatistics:
    """Compute statistics for a test. No completed attempts yields all zeros."""
    row = db.execute(
        select(
            func.count(Attempt.id),
            func.sum(case((Attempt.is_passed.is_(True), 1), else_=0)),
            func.avg(Attempt.score),
            func.avg(Attempt.time_spent_minutes),
            func.max(Attempt.score),
            func.min(Attempt.score),
        ).where(
            Attempt.test_id == test_id,
            Attempt.status == AttemptStatus.COMPLETED.value,
        )
    ).one()
    total, passed, avg_score, avg_time, highest, lowest = row

    abandoned = db.execute(
        select(func.count(Attempt.id)).where(
            Attempt.test_id == test_id,
            Attempt.status == AttemptStatus.ABANDONED.value,
        )
    ).scalar() or 0

    total = total or 0
    passed = int(passed or 0)
    if total == 0:
        return TestStatistics(abandoned_attempts=abandoned)

    return TestStatistics(
        total_attempts=total,
        passed_attempts=passed,
        failed_attempts=total - passed,
        abandoned_attempts=abandoned,
        average_score=_rounded(avg_score),
        average_time_spent=_rounded(avg_time),
        highest_score=_rounded(highest),
        lowest_score=_rounded(lowest),
        pass_rate=round(passed * 100 / total, 2),
    )
