"""Service for cleanup operations."""
import logging
import threading
import time

from lms_api.config import (
    EXPIRED_ATTEMPTS_CLEANUP_INTERVAL_SECONDS,
    STALE_ATTEMPT_GRACE_MINUTES,
)
from lms_api.database import SessionLocal
from lms_api.services.attempt_service import abandon_expired_attempts
from lms_api.utils.time_utils import Clock, get_clock

logger = logging.getLogger(__name__)


def cleanup_expired_attempts(clock: Clock | None = None) -> int:
    """Abandon stale IN_PROGRESS attempts in a fresh session."""
    now = (clock or get_clock()).now()
    db = SessionLocal()
    try:
        return abandon_expired_attempts(db, now, STALE_ATTEMPT_GRACE_MINUTES)
    finally:
        db.close()


def schedule_expired_attempts_cleanup(
    interval: int = EXPIRED_ATTEMPTS_CLEANUP_INTERVAL_SECONDS,
) -> threading.Thread | None:
    """Start the periodic sweep. Disabled when interval is not positive."""
    if interval <= 0:
        return None

    def _worker() -> None:
        while True:
            time.sleep(interval)
            try:
                cleanup_expired_attempts()
            except Exception:
                logger.exception("Expired attempts cleanup failed")

    thread = threading.Thread(
        target=_worker,
        name="expired_attempts_cleanup",
        daemon=True,
    )
    thread.start()
    logger.info("Expired attempts cleanup scheduled every %s seconds", interval)
    return thread
