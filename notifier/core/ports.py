# notifier/core/ports.py
from __future__ import annotations
from typing import Protocol, Optional
from notifier.core.domain import RecipientRecord, GroupRecord, OutboundMessage


class AsyncDirectory(Protocol):
    """Read-only access to recipients and communities."""

    async def get_all_recipients(self) -> dict[str, RecipientRecord]: ...
    async def get_all_groups(self) -> dict[str, GroupRecord]: ...
    async def get_recipient_destination_token(self, recipient_id: str) -> Optional[str]: ...


class AsyncPushTransport(Protocol):
    async def send(self, message: OutboundMessage) -> str:
        """
        Deliver one message. Returns the provider message id.
        Raises on failure; the caller decides what a failure means.
        """
        ...
