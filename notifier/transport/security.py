# notifier/transport/security.py
"""
Security helpers for the HTTP layer.

- Constant-time bearer check for /metrics
- Response security headers
- Error message sanitization for production responses
"""
import hmac

from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from notifier.config import settings
from notifier.infra.logging_config import get_logger

logger = get_logger(__name__)

metrics_bearer_scheme = HTTPBearer(
    scheme_name="Metrics Token",
    description="Enter the metrics token (without 'Bearer ' prefix)",
    auto_error=False,
)


def require_metrics_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(metrics_bearer_scheme),
):
    """
    Dependency for the /metrics endpoint.

    1. If METRICS_TOKEN is set: require Bearer token authentication
    2. If METRICS_TOKEN is not set: open outside production, closed in production
    """
    if settings.metrics_token:
        if not credentials:
            logger.warning("Metrics endpoint accessed without token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not hmac.compare_digest(credentials.credentials, settings.metrics_token):
            logger.warning(
                "Invalid metrics token attempt",
                extra={"token_prefix": credentials.credentials[:4] if len(credentials.credentials) >= 4 else "***"}
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return

    if settings.is_production:
        logger.warning(f"Metrics access refused (no METRICS_TOKEN configured) path={request.url.path}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


class SecurityHeaders:
    """OWASP recommended response headers for a JSON API."""

    @staticmethod
    def add_security_headers(response):
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        # HSTS (only in production with HTTPS)
        if settings.is_production or settings.is_staging:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"

        if "Server" in response.headers:
            del response.headers["Server"]

        return response


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """
    Sanitize error messages for external responses.
    In production: Generic messages
    In dev: Detailed messages
    """
    if not is_production:
        return str(error)

    error_type = type(error).__name__

    generic_messages = {
        "ValueError": "Invalid input",
        "KeyError": "Invalid request",
        "ConnectionError": "Service temporarily unavailable",
        "TimeoutError": "Request timeout",
    }

    return generic_messages.get(error_type, "An error occurred")
