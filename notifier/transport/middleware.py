# notifier/transport/middleware.py
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from notifier.config import settings
from notifier.core.domain import ByDisplayNameExclusion, ByGroup
from notifier.infra.logging_config import get_logger, LogContext
from notifier.infra.metrics import inc_counter
from notifier.transport.security import sanitize_error_message

logger = get_logger(__name__)

# Notify endpoints and the selection criterion each one builds
CRITERION_BY_PATH = {
    "/notifyAvailablePlayerIndividual": ByDisplayNameExclusion.kind,
    "/notifyNewChallenge": ByGroup.kind,
}

QUIET_PATHS = {"/health", "/metrics"}


def criterion_for_path(path: str) -> str | None:
    return CRITERION_BY_PATH.get(path.rstrip("/") or path)


def _log_context(request: Request) -> LogContext:
    return LogContext(
        logger,
        request_id=getattr(request.state, "request_id", None),
        criterion=getattr(request.state, "criterion", None),
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id (X-Request-ID, echoed back) and its criterion"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.criterion = criterion_for_path(request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request; notify calls at INFO, probes at DEBUG"""

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled:
            return await call_next(request)

        start_time = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        log_ctx = _log_context(request)
        log = log_ctx.debug if request.url.path in QUIET_PATHS else log_ctx.info
        if response.status_code >= 500:
            log = log_ctx.warning
        log(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Last-resort 500 for failures the route handlers do not map.

    Notifier errors (bad input, directory failures) are answered by the app's
    exception handlers before reaching this point; anything else still gets
    the {"error", "message"} body, with the message sanitized in production.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            _log_context(request).error(
                f"Unhandled {exc.__class__.__name__} on {request.method} {request.url.path}: {exc}",
                extra={"error_type": exc.__class__.__name__},
                exc_info=True,
            )
            inc_counter(
                "notify_unhandled_errors_total",
                criterion=getattr(request.state, "criterion", None) or "none",
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "message": sanitize_error_message(exc, settings.is_production),
                },
            )
