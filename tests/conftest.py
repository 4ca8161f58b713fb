# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from notifier.core.domain import GroupRecord, OutboundMessage, RecipientRecord  # noqa: E402


class InMemoryDirectory:
    """AsyncDirectory over plain dicts; counts calls for round-trip assertions."""

    def __init__(
        self,
        recipients: dict[str, RecipientRecord] | None = None,
        groups: dict[str, GroupRecord] | None = None,
        error: Exception | None = None,
    ):
        self.recipients = recipients or {}
        self.groups = groups or {}
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def get_all_recipients(self):
        self.calls.append(("get_all_recipients", None))
        if self.error:
            raise self.error
        return dict(self.recipients)

    async def get_all_groups(self):
        self.calls.append(("get_all_groups", None))
        if self.error:
            raise self.error
        return dict(self.groups)

    async def get_recipient_destination_token(self, recipient_id):
        self.calls.append(("get_recipient_destination_token", recipient_id))
        if self.error:
            raise self.error
        record = self.recipients.get(recipient_id)
        return record.destination_token if record else None


class FakePushTransport:
    """AsyncPushTransport that records sends and fails for selected tokens."""

    def __init__(self, fail_tokens: set[str] | None = None):
        self.fail_tokens = fail_tokens or set()
        self.sent: list[OutboundMessage] = []
        self.attempts: list[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> str:
        self.attempts.append(message)
        if message.destination_token in self.fail_tokens:
            raise RuntimeError(f"simulated failure for {message.destination_token}")
        self.sent.append(message)
        return f"projects/test/messages/{len(self.sent)}"


@pytest.fixture
def make_directory():
    """Factory for in-memory directories"""
    return InMemoryDirectory


@pytest.fixture
def make_transport():
    """Factory for fake push transports"""
    return FakePushTransport


@pytest.fixture
def players():
    """Three recipients: the acting player, one without token, one reachable"""
    return {
        "u1": RecipientRecord(id="u1", display_name="Ana", destination_token="token-ana-11111"),
        "u2": RecipientRecord(id="u2", display_name="Luis", destination_token=None),
        "u3": RecipientRecord(id="u3", display_name="Marta", destination_token="token-marta-33333"),
    }


@pytest.fixture
def community():
    """Community 'Padel Club' created by u1 with members u1, u2, u3"""
    return GroupRecord(
        id="c1",
        display_name="Padel Club",
        creator_id="u1",
        member_ids=("u1", "u2", "u3"),
    )
