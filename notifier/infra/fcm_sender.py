# notifier/infra/fcm_sender.py
"""
Firebase Cloud Messaging HTTP v1 outbound sender.

One request per message:

    POST {FCM_API_BASE}/v1/projects/{project}/messages:send
    Authorization: Bearer {FCM_ACCESS_TOKEN}
    {"message": {"token", "notification": {title, body}, "data": {...}}}

Error classification (PushSendError.retryable):
- UNREGISTERED / INVALID_ARGUMENT  → NOT retryable (token is dead or malformed)
- 401 / 403 (auth, sender mismatch) → NOT retryable (needs human intervention)
- 429 QUOTA_EXCEEDED               → retryable
- 5xx UNAVAILABLE / INTERNAL       → retryable
- Network / timeout                → retryable

``retryable`` is informational (logs, metrics). The dispatcher never
retries: one failed attempt is final for that request.

HTTP session lifecycle:
- Uses the shared push session from notifier.infra.http_client.
- Call close_all_sessions() during application shutdown.
"""
from __future__ import annotations

import aiohttp

from notifier.config import settings
from notifier.core.domain import OutboundMessage
from notifier.infra.http_client import get_push_session
from notifier.infra.logging_config import get_logger, mask_token
from notifier.infra.metrics import inc_counter

logger = get_logger(__name__)

_FCM_ERROR_TYPE = "type.googleapis.com/google.firebase.fcm.v1.FcmError"


# ---------------------------------------------------------------------------
# Error type
# ---------------------------------------------------------------------------

class PushSendError(Exception):
    """Error sending a message via FCM.

    Attributes:
        status:     HTTP status code (0 for connection-level errors).
        error_code: FCM error code (e.g. ``UNREGISTERED``) when the body has one.
        retryable:  Whether a later attempt could succeed.
    """

    def __init__(
        self,
        status: int,
        error_code: str | None,
        message: str,
        *,
        retryable: bool = False,
    ):
        self.status = status
        self.error_code = error_code
        self.retryable = retryable
        super().__init__(f"FCM error {status} (code={error_code}): {message}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_fcm_payload(message: OutboundMessage, *, validate_only: bool = False) -> dict:
    """Convert an OutboundMessage into the HTTP v1 request body."""
    payload: dict = {
        "message": {
            "token": message.destination_token,
            "notification": {
                "title": message.title,
                "body": message.body,
            },
            "data": {str(k): str(v) for k, v in message.data.items()},
        }
    }
    if validate_only:
        payload["validate_only"] = True
    return payload


def _parse_error(body: dict | None) -> tuple[str | None, str]:
    """Extract (error_code, description) from an FCM error body."""
    error = (body or {}).get("error") or {}
    if not isinstance(error, dict):
        return None, str(error)

    description = error.get("message", "Unknown error")
    for detail in error.get("details") or []:
        if isinstance(detail, dict) and detail.get("@type") == _FCM_ERROR_TYPE:
            return detail.get("errorCode"), description
    return error.get("status"), description


def _is_retryable(status: int, error_code: str | None) -> bool:
    if status in (400, 401, 403, 404):
        return False
    if error_code in ("UNREGISTERED", "INVALID_ARGUMENT", "SENDER_ID_MISMATCH", "THIRD_PARTY_AUTH_ERROR"):
        return False
    return status == 429 or status >= 500


# ---------------------------------------------------------------------------
# Sender
# ---------------------------------------------------------------------------

class FcmPushSender:
    """AsyncPushTransport implementation over FCM HTTP v1."""

    def __init__(
        self,
        project_id: str | None = None,
        access_token: str | None = None,
        *,
        api_base: str | None = None,
        validate_only: bool | None = None,
    ) -> None:
        self.project_id = project_id or settings.fcm_project_id
        self.access_token = access_token or settings.fcm_access_token
        self.api_base = (api_base or settings.fcm_api_base).rstrip("/")
        self.validate_only = settings.push_dry_run if validate_only is None else validate_only

    @property
    def url(self) -> str:
        return f"{self.api_base}/v1/projects/{self.project_id}/messages:send"

    def is_configured(self) -> bool:
        return bool(self.project_id and self.access_token)

    async def send(self, message: OutboundMessage) -> str:
        """
        Send one message.

        Returns:
            FCM message name (``projects/.../messages/...``)

        Raises:
            PushSendError: On API or connection errors (check .retryable)
        """
        if not self.is_configured():
            inc_counter("fcm_outbound_not_configured")
            raise PushSendError(0, None, "FCM project id / access token not configured", retryable=False)

        payload = build_fcm_payload(message, validate_only=self.validate_only)
        headers = {"Authorization": f"Bearer {self.access_token}"}
        token = mask_token(message.destination_token)

        try:
            session = get_push_session()
            async with session.post(self.url, json=payload, headers=headers) as resp:
                body = await _safe_response_json(resp)

                if resp.status == 200:
                    name = (body or {}).get("name", "unknown")
                    logger.debug(f"FCM message accepted: to={token}, name={name}")
                    inc_counter("fcm_outbound_sent")
                    return name

                error_code, description = _parse_error(body)
                retryable = _is_retryable(resp.status, error_code)

                if error_code == "UNREGISTERED":
                    logger.warning(f"FCM token unregistered: to={token}")
                    inc_counter("fcm_outbound_unregistered")
                elif resp.status in (401, 403):
                    logger.error(f"FCM auth error: status={resp.status}, msg={description}")
                    inc_counter("fcm_outbound_auth_error")
                elif resp.status == 429:
                    logger.warning(f"FCM quota exceeded: to={token}")
                    inc_counter("fcm_outbound_rate_limited")
                else:
                    logger.error(
                        f"FCM API error: status={resp.status}, code={error_code}, msg={description}"
                    )
                    inc_counter("fcm_outbound_error")

                raise PushSendError(resp.status, error_code, description, retryable=retryable)

        except PushSendError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.error(f"FCM connection error: {exc.__class__.__name__}: {exc}")
            inc_counter("fcm_outbound_connection_error")
            raise PushSendError(0, None, f"{exc.__class__.__name__}: {exc}", retryable=True) from exc


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

async def _safe_response_json(resp: aiohttp.ClientResponse) -> dict | None:
    """Parse JSON from response, returning None if body is not valid JSON."""
    try:
        data = await resp.json(content_type=None)
    except Exception:
        logger.warning(f"FCM returned non-JSON body: status={resp.status}")
        return None
    return data if isinstance(data, dict) else None
