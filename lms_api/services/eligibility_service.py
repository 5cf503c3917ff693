"""
Eligibility checks for starting a test attempt.

Checks run in a fixed order and the first failing one is reported, so a
caller always gets a single deterministic reason. Everything here is
read-only; ``attempt_service`` re-runs it before every start instead of
trusting an earlier client-side check.
"""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DbSession

from lms_api.errors import BusinessRuleViolation, EligibilityReason
from lms_api.models.db.attempt import Attempt, AttemptStatus, TERMINAL_STATUSES
from lms_api.models.db.test import Test
from lms_api.utils.time_utils import ensure_timezone_aware


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of an eligibility check."""

    allowed: bool
    reason: EligibilityReason | None = None
    max_attempts: int | None = None

    @classmethod
    def allow(cls) -> "EligibilityResult":
        return cls(allowed=True)

    @classmethod
    def deny(
        cls, reason: EligibilityReason, max_attempts: int | None = None
    ) -> "EligibilityResult":
        return cls(allowed=False, reason=reason, max_attempts=max_attempts)

    @property
    def params(self) -> dict[str, object]:
        """Message parameters for the denial reason."""
        if self.reason == EligibilityReason.MAX_ATTEMPTS_EXCEEDED:
            return {"max_attempts": self.max_attempts}
        return {}

    def to_violation(self) -> BusinessRuleViolation:
        if self.reason is None:
            raise ValueError("allowed result has no violation")
        return BusinessRuleViolation(self.reason, **self.params)


def check_availability(test: Test | None, now: datetime) -> EligibilityReason | None:
    """Published and inside the availability window (checks 1-3)."""
    if test is None or not test.is_published:
        return EligibilityReason.NOT_PUBLISHED

    available_from = ensure_timezone_aware(test.available_from)
    if available_from is not None and now < available_from:
        return EligibilityReason.NOT_AVAILABLE_YET

    available_until = ensure_timezone_aware(test.available_until)
    if available_until is not None and now > available_until:
        return EligibilityReason.NO_LONGER_AVAILABLE

    return None


def get_in_progress_attempt(db: DbSession, user_id: int, test_id: int) -> Attempt | None:
    """The single IN_PROGRESS attempt for (user, test), if any."""
    return db.execute(
        select(Attempt).where(
            Attempt.user_id == user_id,
            Attempt.test_id == test_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
    ).scalar_one_or_none()


def count_terminal_attempts(db: DbSession, user_id: int, test_id: int) -> int:
    """Attempts that consumed a slot (COMPLETED or ABANDONED)."""
    return db.execute(
        select(func.count(Attempt.id)).where(
            Attempt.user_id == user_id,
            Attempt.test_id == test_id,
            Attempt.status.in_(TERMINAL_STATUSES),
        )
    ).scalar() or 0


def evaluate(db: DbSession, test: Test | None, user_id: int, now: datetime) -> EligibilityResult:
    """Run all checks against an already loaded test."""
    reason = check_availability(test, now)
    if reason is not None:
        return EligibilityResult.deny(reason)

    if get_in_progress_attempt(db, user_id, test.id) is not None:
        return EligibilityResult.deny(EligibilityReason.ALREADY_IN_PROGRESS)

    if test.max_attempts is not None:
        if count_terminal_attempts(db, user_id, test.id) >= test.max_attempts:
            return EligibilityResult.deny(
                EligibilityReason.MAX_ATTEMPTS_EXCEEDED, max_attempts=test.max_attempts
            )

    return EligibilityResult.allow()


def can_start(db: DbSession, user_id: int, test_id: int, now: datetime) -> EligibilityResult:
    """Decide whether user may start a new attempt on test."""
    return evaluate(db, db.get(Test, test_id), user_id, now)
