"""Main FastAPI application with modularized routes."""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lms_api.config import LOG_LEVEL
from lms_api.core.logging_setup import setup_console_logging
from lms_api.database import init_db
from lms_api.errors import AppError, BusinessRuleViolation
from lms_api.i18n import get_locale, translate
from lms_api.routes import attempts, questions, results, statistics, tests
from lms_api.services.cleanup_service import schedule_expired_attempts_cleanup

setup_console_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="LMS Assessment API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and schedule cleanup tasks on startup."""
    init_db()
    schedule_expired_attempts_cleanup()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an expected failure in the caller's locale."""
    locale = get_locale(request)
    content: dict[str, object] = {
        "detail": translate(exc.message_key, locale, **exc.params),
        "code": exc.code,
    }
    if isinstance(exc, BusinessRuleViolation):
        content["reason"] = exc.reason.value
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unexpected failure under an error id; the response carries no internals."""
    error_id = str(uuid.uuid4())
    logger.exception(
        "Unhandled exception [error_id=%s] on %s %s",
        error_id,
        request.method,
        request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": translate("INTERNAL_SERVER_ERROR", get_locale(request)),
            "code": "INTERNAL_SERVER_ERROR",
            "errorId": error_id,
        },
    )


# Include routers; fixed paths (/results/me) before parameterized ones
app.include_router(results.router)
app.include_router(statistics.router)
app.include_router(attempts.router)
app.include_router(tests.router)
app.include_router(questions.router)
