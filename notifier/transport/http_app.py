# notifier/transport/http_app.py
"""
HTTP entry points for the notification fan-out.

Public:
    POST /notifyAvailablePlayerIndividual   {"name": str}
    POST /notifyNewChallenge                {"communityName", "challengeId", "creatorId"}
    GET  /health

Internal (METRICS_TOKEN):
    GET  /metrics

Request bodies are parsed once into a strict selection criterion; anything
malformed is rejected with 400 before the pipeline runs. Directory failures
become a 500 carrying the cause; delivery failures only show up in counts.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from notifier.config import settings, validate_or_warn
from notifier.core.errors import DirectoryError, InputError, NotifierError
from notifier.core.use_cases import NotificationService
from notifier.infra.fcm_sender import FcmPushSender
from notifier.infra.http_client import close_all_sessions
from notifier.infra.logging_config import setup_logging, get_logger
from notifier.infra.metrics import get_metrics_collector
from notifier.infra.rtdb_directory import RealtimeDatabaseDirectory
from notifier.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
)
from notifier.transport.schemas import AvailablePlayerIn, NewChallengeIn
from notifier.transport.security import (
    require_metrics_auth,
    SecurityHeaders,
    sanitize_error_message,
)

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)

INVALID_NAME_ERROR = (
    'Missing or invalid "name" in request body. Ensure Content-Type is application/json.'
)
INVALID_CHALLENGE_ERROR = (
    'Missing or invalid "communityName", "challengeId" or "creatorId" in request body. '
    "Ensure Content-Type is application/json."
)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_notification_service(request: Request) -> NotificationService:
    """Get the notification service from app state"""
    return request.app.state.notification_service


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def _read_json_body(request: Request) -> Any:
    """Parsed JSON body, or None when the body is absent or not JSON."""
    try:
        return await request.json()
    except ValueError:
        return None


# ============================================================================
# MIDDLEWARE FOR SECURITY HEADERS
# ============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        return SecurityHeaders.add_security_headers(response)


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    logger.info(f"Starting application: env={settings.app_env}")

    try:
        warnings = validate_or_warn(settings)
    except RuntimeError:
        logger.critical("Invalid production configuration", exc_info=True)
        raise
    for msg in warnings:
        logger.warning(f"[config] {msg}")

    directory = RealtimeDatabaseDirectory()
    sender = FcmPushSender()

    fastapi_app.state.notification_service = NotificationService(
        directory=directory,
        transport=sender,
        parallel_lookups=settings.directory_parallel_lookups,
    )
    logger.info(
        f"Directory: {directory.database_url or '<unset>'} "
        f"(recipients=/{directory.recipients_path}, groups=/{directory.groups_path}); "
        f"FCM project: {sender.project_id or '<unset>'}, dry_run={sender.validate_only}"
    )

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    await close_all_sessions()
    logger.info("Application shutdown complete")


# ============================================================================
# CREATE APP
# ============================================================================

app = FastAPI(
    title="Community Notifier",
    description="Push notification fan-out for players and community challenges",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

if settings.is_production or settings.is_staging:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins if settings.allowed_origins != ["*"] else [],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
app.add_middleware(RequestIDMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Routing and auth errors (404, 405, 401...) as {"error": detail}"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})
    elif exc.status_code == 404:
        logger.warning(f"404 - Unknown route accessed: {request.url.path}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(NotifierError)
async def notifier_error_handler(request: Request, exc: NotifierError):
    if isinstance(exc, InputError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    if isinstance(exc, DirectoryError):
        logger.error(
            f"Directory error ({exc.operation}): {exc.detail}",
            extra={"request_id": _request_id(request)},
        )
        message = exc.detail
    else:
        logger.error(f"Notifier error: {exc.detail}", exc_info=True)
        message = sanitize_error_message(exc, settings.is_production)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "Internal Server Error", "message": message},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Unexpected exceptions raised outside the error-handling middleware"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": sanitize_error_message(exc, settings.is_production),
        },
    )


# ============================================================================
# NOTIFICATION ENDPOINTS
# ============================================================================

@app.post("/notifyAvailablePlayerIndividual")
async def notify_available_player(
    request: Request,
    service: NotificationService = Depends(get_notification_service),
):
    """
    Notify every registered user with a token that ``name`` is waiting to play.
    The user whose display name equals ``name`` is skipped.
    """
    body = await _read_json_body(request)
    try:
        payload = AvailablePlayerIn.model_validate(body)
    except ValidationError:
        logger.error('Invalid request: "name" missing or invalid in body')
        raise InputError(INVALID_NAME_ERROR)

    logger.info(f"notifyAvailablePlayerIndividual invoked for: {payload.name}")
    result = await service.notify_available_player(payload.name, request_id=_request_id(request))
    return result.to_dict()


@app.post("/notifyNewChallenge")
async def notify_new_challenge(
    request: Request,
    service: NotificationService = Depends(get_notification_service),
):
    """
    Notify the members of a community about a new challenge.
    The creator is skipped; an unknown community is not an error.
    """
    body = await _read_json_body(request)
    try:
        payload = NewChallengeIn.model_validate(body)
    except ValidationError:
        logger.error("Invalid request: communityName/challengeId/creatorId missing or invalid")
        raise InputError(INVALID_CHALLENGE_ERROR)

    logger.info(
        f"notifyNewChallenge invoked: community='{payload.communityName}', "
        f"challenge={payload.challengeId}, creator={payload.creatorId}"
    )
    result = await service.notify_new_challenge(
        payload.communityName,
        payload.challengeId,
        payload.creatorId,
        request_id=_request_id(request),
    )
    return result.to_dict()


# ============================================================================
# MONITORING ENDPOINTS
# ============================================================================

@app.get("/health")
def health():
    """
    Basic health check - PUBLIC endpoint.
    """
    return {"status": "healthy"}


@app.get("/metrics", dependencies=[Depends(require_metrics_auth)])
def metrics():
    """
    In-process counters and histograms.

    Access: METRICS_TOKEN (or open outside production when unset)
    """
    if not settings.enable_metrics:
        return {"counters": {}, "histograms": {}}
    return get_metrics_collector().get_metrics()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "notifier.transport.http_app:app",
        host="0.0.0.0",
        port=8099,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,
        server_header=False,
        date_header=False,
    )
