# notifier/core/__init__.py
"""
Core pipeline -- transport-agnostic fan-out logic.

Resolver -> exclusion filter -> message builder -> dispatcher, plus the
use-case orchestrator (NotificationService) that runs them in order.

Canonical imports:
    from notifier.core import NotificationService
    from notifier.core.domain import ByGroup, ByDisplayNameExclusion
    from notifier.core.ports import AsyncDirectory, AsyncPushTransport
"""
from notifier.core.domain import (  # noqa: F401
    RecipientRecord,
    GroupRecord,
    ByDisplayNameExclusion,
    ByGroup,
    Candidate,
    SkipReason,
    OutboundMessage,
    DispatchSummary,
    NotifyResult,
)
from notifier.core.ports import AsyncDirectory, AsyncPushTransport  # noqa: F401
from notifier.core.use_cases import NotificationService  # noqa: F401
