"""
Error taxonomy for the assessment engine.

Services raise these (or return typed ``EligibilityReason`` outcomes); the
exception handlers in ``lms_api.app`` turn them into localized JSON
responses. Nothing here knows about locales or HTTP framework types.
"""

from __future__ import annotations

import enum
from typing import Any


class EligibilityReason(str, enum.Enum):
    """Business rule that blocks (or would block) an attempt transition."""

    NOT_PUBLISHED = "NOT_PUBLISHED"
    NOT_AVAILABLE_YET = "NOT_AVAILABLE_YET"
    NO_LONGER_AVAILABLE = "NO_LONGER_AVAILABLE"
    ALREADY_IN_PROGRESS = "ALREADY_IN_PROGRESS"
    MAX_ATTEMPTS_EXCEEDED = "MAX_ATTEMPTS_EXCEEDED"
    NOT_IN_PROGRESS = "NOT_IN_PROGRESS"


class AppError(Exception):
    """Base class for expected, user-presentable failures."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message_key: str, **params: Any) -> None:
        super().__init__(message_key)
        self.message_key = message_key
        self.params = params


class NotFoundError(AppError):
    status_code = 404
    code = "RESOURCE_NOT_FOUND"


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(AppError):
    status_code = 409
    code = "RESOURCE_CONFLICT"


class BusinessRuleViolation(AppError):
    """A denied attempt transition, carrying its ``EligibilityReason``."""

    code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, reason: EligibilityReason, **params: Any) -> None:
        super().__init__(reason.value, **params)
        self.reason = reason

    @property
    def status_code(self) -> int:  # type: ignore[override]
        if self.reason in (
            EligibilityReason.ALREADY_IN_PROGRESS,
            EligibilityReason.NOT_IN_PROGRESS,
        ):
            return 409
        return 400
