# notifier/infra/rtdb_directory.py
"""
Recipient directory backed by the Firebase Realtime Database REST API.

Layout read by this adapter (paths configurable):

    /usuarios/{uid}        -> {"nombre": str, "fcmToken": str, ...}
    /comunidades/{cid}     -> {"nombre": str, "creadorId": str,
                               "miembros": [uid, ...] | {pushId: uid, ...}}

Reads are plain ``GET {DATABASE_URL}/{path}.json`` requests. A ``null`` body
means the node does not exist and is returned as an empty result. Anything
else that goes wrong (HTTP error, bad JSON, connection failure) raises
``DirectoryError``; the pipeline does not retry.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import quote

import aiohttp

from notifier.config import settings
from notifier.core.domain import GroupRecord, RecipientRecord, normalize_member_ids
from notifier.core.errors import DirectoryError
from notifier.infra.http_client import get_directory_session
from notifier.infra.logging_config import get_logger
from notifier.infra.metrics import NotifierMetrics

logger = get_logger(__name__)

FIELD_NAME = "nombre"
FIELD_TOKEN = "fcmToken"
FIELD_CREATOR = "creadorId"
FIELD_MEMBERS = "miembros"


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------

def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _row_to_recipient(recipient_id: str, row: Any) -> RecipientRecord:
    """Build a RecipientRecord; non-dict rows become records without fields."""
    if not isinstance(row, dict):
        row = {}
    name = row.get(FIELD_NAME)
    return RecipientRecord(
        id=recipient_id,
        display_name=name if isinstance(name, str) else None,
        destination_token=_str_or_none(row.get(FIELD_TOKEN)),
    )


def _row_to_group(group_id: str, row: Any) -> GroupRecord:
    if not isinstance(row, dict):
        row = {}
    name = row.get(FIELD_NAME)
    creator = row.get(FIELD_CREATOR)
    return GroupRecord(
        id=group_id,
        display_name=name if isinstance(name, str) else "",
        creator_id=str(creator) if creator is not None else "",
        member_ids=tuple(normalize_member_ids(row.get(FIELD_MEMBERS))),
    )


def _as_keyed(node: Any) -> dict[str, Any]:
    """
    Collection nodes come back as objects, or as arrays when every key is a
    small integer. Arrays are re-keyed by index with null holes dropped.
    """
    if node is None:
        return {}
    if isinstance(node, dict):
        return {str(k): v for k, v in node.items()}
    if isinstance(node, list):
        return {str(i): v for i, v in enumerate(node) if v is not None}
    raise DirectoryError(f"Unexpected collection type: {type(node).__name__}")


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

class RealtimeDatabaseDirectory:
    """AsyncDirectory implementation over the Realtime Database REST API."""

    def __init__(
        self,
        database_url: str | None = None,
        auth: str | None = None,
        *,
        recipients_path: str | None = None,
        groups_path: str | None = None,
    ) -> None:
        self.database_url = (database_url or settings.firebase_database_url or "").rstrip("/")
        self.auth = auth if auth is not None else settings.firebase_database_auth
        self.recipients_path = (recipients_path or settings.recipients_path).strip("/")
        self.groups_path = (groups_path or settings.groups_path).strip("/")

    def _url(self, path: str) -> str:
        return f"{self.database_url}/{path}.json"

    async def _get(self, path: str, operation: str) -> Any:
        if not self.database_url:
            NotifierMetrics.directory_error(operation)
            raise DirectoryError("Realtime Database URL is not configured", operation=operation)

        params = {"auth": self.auth} if self.auth else None
        try:
            session = get_directory_session()
            async with session.get(self._url(path), params=params) as resp:
                if resp.status != 200:
                    text = await _safe_response_text(resp)
                    NotifierMetrics.directory_error(operation)
                    raise DirectoryError(
                        f"Realtime Database {operation} failed: status={resp.status} body={text}",
                        operation=operation,
                        status=resp.status,
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    NotifierMetrics.directory_error(operation)
                    raise DirectoryError(
                        f"Realtime Database {operation} returned invalid JSON: {exc}",
                        operation=operation,
                        status=resp.status,
                    ) from exc

        except DirectoryError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.error(f"Realtime Database connection error during {operation}: {exc}", exc_info=True)
            NotifierMetrics.directory_error(operation)
            raise DirectoryError(
                f"Realtime Database {operation} failed: {exc.__class__.__name__}: {exc}",
                operation=operation,
            ) from exc

    async def get_all_recipients(self) -> dict[str, RecipientRecord]:
        node = _as_keyed(await self._get(self.recipients_path, "get_all_recipients"))
        return {rid: _row_to_recipient(rid, row) for rid, row in node.items()}

    async def get_all_groups(self) -> dict[str, GroupRecord]:
        node = _as_keyed(await self._get(self.groups_path, "get_all_groups"))
        return {gid: _row_to_group(gid, row) for gid, row in node.items()}

    async def get_recipient_destination_token(self, recipient_id: str) -> str | None:
        path = f"{self.recipients_path}/{quote(recipient_id, safe='')}/{FIELD_TOKEN}"
        return _str_or_none(await self._get(path, "get_recipient_destination_token"))


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

async def _safe_response_text(resp: aiohttp.ClientResponse, max_len: int = 300) -> str:
    """Read response body as text, truncated for safe logging."""
    try:
        text = await resp.text()
        return text[:max_len]
    except Exception:
        return "<unreadable>"
