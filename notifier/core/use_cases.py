# notifier/core/use_cases.py
from notifier.core.audience import AudienceResolver
from notifier.core.dispatcher import Dispatcher
from notifier.core.domain import (
    ByDisplayNameExclusion,
    ByGroup,
    NotifyResult,
    SelectionCriterion,
)
from notifier.core.exclusion import filter_candidates
from notifier.core.messages import build_message
from notifier.core.ports import AsyncDirectory, AsyncPushTransport
from notifier.infra.logging_config import get_logger, LogContext
from notifier.infra.metrics import NotifierMetrics

logger = get_logger(__name__)

NO_USERS_FOUND = "No users found"
COMMUNITY_NOT_FOUND = "Community not found"
NO_PARTICIPANTS = "No participants in community"
NO_ELIGIBLE_USERS = "No eligible users to notify"


class NotificationService:
    """
    Application service / use-case layer.
    Workflow: resolve audience -> filter -> build messages -> dispatch.

    Stateless: the same instance serves every request. Only directory
    failures propagate; empty audiences come back as zero counts with an
    informational message.
    """

    def __init__(
        self,
        *,
        directory: AsyncDirectory,
        transport: AsyncPushTransport,
        parallel_lookups: bool = False,
    ) -> None:
        self.resolver = AudienceResolver(directory, parallel_lookups=parallel_lookups)
        self.dispatcher = Dispatcher(transport)

    async def notify(self, criterion: SelectionCriterion, *, request_id: str | None = None) -> NotifyResult:
        log = LogContext(logger, request_id=request_id, criterion=criterion.kind)
        NotifierMetrics.notify_requested(criterion.kind)

        audience = await self.resolver.resolve(criterion)

        if not audience.found:
            return NotifyResult(message=COMMUNITY_NOT_FOUND)
        if not audience.candidates:
            if isinstance(criterion, ByGroup):
                log.info("Community has no participants")
                return NotifyResult(message=NO_PARTICIPANTS)
            log.info("No users found in directory")
            return NotifyResult(message=NO_USERS_FOUND)

        eligible, skip_counts = filter_candidates(audience.candidates, criterion)
        for reason, count in skip_counts.items():
            NotifierMetrics.skipped(reason.value, count)

        messages = [build_message(c, criterion, audience.group) for c in eligible]
        log.info(
            f"Prepared {len(messages)} message(s) from {len(audience.candidates)} candidate(s)"
        )

        if not messages:
            log.info("No eligible tokens to send notifications after filtering")
            return NotifyResult(message=NO_ELIGIBLE_USERS)

        summary = await self.dispatcher.dispatch(messages)
        log.info(
            f"Notification fan-out complete: success={summary.success_count}, "
            f"failure={summary.failure_count}"
        )
        return NotifyResult(success=summary.success_count, failure=summary.failure_count)

    async def notify_available_player(self, name: str, *, request_id: str | None = None) -> NotifyResult:
        return await self.notify(ByDisplayNameExclusion(excluded_name=name), request_id=request_id)

    async def notify_new_challenge(
        self,
        community_name: str,
        challenge_id: str,
        creator_id: str,
        *,
        request_id: str | None = None,
    ) -> NotifyResult:
        criterion = ByGroup(
            group_display_name=community_name,
            excluded_recipient_id=creator_id,
            challenge_id=challenge_id,
        )
        return await self.notify(criterion, request_id=request_id)
