# notifier/core/dispatcher.py
"""
Concurrent fan-out of outbound messages.

Every message gets its own task; each task converts its own failure into a
``Failed`` outcome so one bad token never affects its siblings. Counts come
from the joined outcomes only, nothing is shared between tasks.

No retries: a failed attempt is final for this invocation.
"""
from __future__ import annotations

import asyncio

from notifier.core.domain import (
    DispatchOutcome,
    DispatchSummary,
    Failed,
    OutboundMessage,
    Sent,
)
from notifier.core.ports import AsyncPushTransport
from notifier.infra.logging_config import get_logger, mask_token
from notifier.infra.metrics import NotifierMetrics

logger = get_logger(__name__)


class Dispatcher:

    def __init__(self, transport: AsyncPushTransport) -> None:
        self._transport = transport

    async def dispatch(self, messages: list[OutboundMessage]) -> DispatchSummary:
        if not messages:
            return DispatchSummary(0, 0)

        logger.info(f"Sending {len(messages)} notification(s) individually")
        with NotifierMetrics.track_dispatch_time():
            outcomes = await asyncio.gather(*(self._deliver(m) for m in messages))

        return summarize(outcomes)

    async def _deliver(self, message: OutboundMessage) -> DispatchOutcome:
        token = mask_token(message.destination_token)
        try:
            message_id = await self._transport.send(message)
        except Exception as exc:
            logger.error(f"Failed to send message to token {token}: {exc}")
            NotifierMetrics.failed(retryable=bool(getattr(exc, "retryable", False)))
            return Failed(cause=exc)

        logger.info(f"Successfully sent message to token {token}: {message_id}")
        NotifierMetrics.sent()
        return Sent(message_id=message_id or "")


def summarize(outcomes) -> DispatchSummary:
    success = sum(1 for o in outcomes if isinstance(o, Sent))
    failure = sum(1 for o in outcomes if isinstance(o, Failed))
    logger.info(f"Dispatch results: success={success}, failure={failure}")
    return DispatchSummary(success_count=success, failure_count=failure)
