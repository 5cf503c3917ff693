"""Statistics endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from lms_api.database import get_db
from lms_api.dependencies.auth import get_current_user
from lms_api.models import StatisticsResponse
from lms_api.models.db.user import User
from lms_api.serialization import serialize_statistics
from lms_api.services.catalog_service import ensure_can_manage, require_test
from lms_api.services.stats_service import compute_statistics

router = APIRouter(prefix="/api/tests", tags=["statistics"])


@router.get("/{test_id}/statistics", response_model=StatisticsResponse)
def get_test_statistics(
    test_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Aggregate results of a test (creator or admin)."""
    test = require_test(db, test_id)
    ensure_can_manage(test, current_user, "view")
    return serialize_statistics(compute_statistics(db, test.id))
