# tests/test_use_cases.py
"""End-to-end pipeline tests for NotificationService (in-memory directory and transport)."""
from __future__ import annotations

import pytest

from notifier.core.domain import ByDisplayNameExclusion, ByGroup, GroupRecord, RecipientRecord
from notifier.core.errors import DirectoryError
from notifier.core.use_cases import (
    COMMUNITY_NOT_FOUND,
    NO_ELIGIBLE_USERS,
    NO_PARTICIPANTS,
    NO_USERS_FOUND,
    NotificationService,
)


def _service(directory, transport, **kwargs) -> NotificationService:
    return NotificationService(directory=directory, transport=transport, **kwargs)


class TestAvailablePlayer:
    @pytest.mark.asyncio
    async def test_self_no_token_and_eligible(self, make_directory, make_transport, players):
        transport = make_transport()
        result = await _service(make_directory(recipients=players), transport).notify_available_player("Ana")

        assert result.to_dict() == {"success": 1, "failure": 0}
        assert [m.destination_token for m in transport.sent] == ["token-marta-33333"]
        assert transport.sent[0].body == "Ana está esperando para jugar."

    @pytest.mark.asyncio
    async def test_no_users(self, make_directory, make_transport):
        transport = make_transport()
        result = await _service(make_directory(), transport).notify_available_player("Ana")

        assert result.to_dict() == {"success": 0, "failure": 0, "message": NO_USERS_FOUND}
        assert transport.attempts == []

    @pytest.mark.asyncio
    async def test_nobody_eligible(self, make_directory, make_transport):
        recipients = {
            "u1": RecipientRecord(id="u1", display_name="Ana", destination_token="t1"),
            "u2": RecipientRecord(id="u2", display_name="Luis"),
        }
        transport = make_transport()
        result = await _service(make_directory(recipients=recipients), transport).notify_available_player("Ana")

        assert result.to_dict() == {"success": 0, "failure": 0, "message": NO_ELIGIBLE_USERS}
        assert transport.attempts == []

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self, make_directory, make_transport):
        recipients = {
            f"u{i}": RecipientRecord(id=f"u{i}", display_name=f"P{i}", destination_token=f"tok-{i}")
            for i in range(3)
        }
        transport = make_transport(fail_tokens={"tok-1"})
        result = await _service(make_directory(recipients=recipients), transport).notify_available_player("Ana")

        assert (result.success, result.failure) == (2, 1)
        assert sorted(m.destination_token for m in transport.sent) == ["tok-0", "tok-2"]

    @pytest.mark.asyncio
    async def test_counts_match_messages_not_candidates(self, make_directory, make_transport, players):
        transport = make_transport()
        result = await _service(make_directory(recipients=players), transport).notify_available_player("Ana")

        assert result.success + result.failure == len(transport.attempts)
        assert result.success + result.failure != len(players)


class TestNewChallenge:
    @pytest.mark.asyncio
    async def test_creator_skipped_despite_token(self, make_directory, make_transport, players, community):
        transport = make_transport()
        directory = make_directory(recipients=players, groups={"c1": community})
        result = await _service(directory, transport).notify_new_challenge("Padel Club", "ch-1", "u1")

        # u1 is creator (has a token), u2 has no token, u3 is notified
        assert result.to_dict() == {"success": 1, "failure": 0}
        assert [m.destination_token for m in transport.sent] == ["token-marta-33333"]
        assert transport.sent[0].data["communityId"] == "c1"
        assert transport.sent[0].data["challengeId"] == "ch-1"

    @pytest.mark.asyncio
    async def test_community_not_found(self, make_directory, make_transport, community):
        transport = make_transport()
        directory = make_directory(groups={"c1": community})
        result = await _service(directory, transport).notify_new_challenge("Tennis", "ch-1", "u1")

        assert result.to_dict() == {"success": 0, "failure": 0, "message": COMMUNITY_NOT_FOUND}
        assert transport.attempts == []

    @pytest.mark.asyncio
    async def test_no_participants(self, make_directory, make_transport):
        empty = GroupRecord(id="c9", display_name="Empty", creator_id="u1")
        transport = make_transport()
        result = await _service(make_directory(groups={"c9": empty}), transport).notify_new_challenge(
            "Empty", "ch-1", "u1"
        )

        assert result.to_dict() == {"success": 0, "failure": 0, "message": NO_PARTICIPANTS}
        assert transport.attempts == []

    @pytest.mark.asyncio
    async def test_only_creator_in_community(self, make_directory, make_transport, players):
        solo = GroupRecord(id="c2", display_name="Solo", creator_id="u1", member_ids=("u1",))
        transport = make_transport()
        directory = make_directory(recipients=players, groups={"c2": solo})
        result = await _service(directory, transport).notify_new_challenge("Solo", "ch-1", "u1")

        assert result.message == NO_ELIGIBLE_USERS
        assert transport.attempts == []

    @pytest.mark.asyncio
    async def test_parallel_lookups_same_result(self, make_directory, make_transport, players, community):
        directory = make_directory(recipients=players, groups={"c1": community})
        sequential = await _service(directory, make_transport()).notify_new_challenge("Padel Club", "1", "u1")
        parallel = await _service(directory, make_transport(), parallel_lookups=True).notify_new_challenge(
            "Padel Club", "1", "u1"
        )
        assert sequential == parallel


class TestPipelineProperties:
    @pytest.mark.asyncio
    async def test_repeated_runs_are_identical(self, make_directory, make_transport, players, community):
        directory = make_directory(recipients=players, groups={"c1": community})
        service = _service(directory, make_transport())

        first = await service.notify(ByGroup("Padel Club", "u1", "ch-1"))
        second = await service.notify(ByGroup("Padel Club", "u1", "ch-1"))
        assert first == second

        first = await service.notify(ByDisplayNameExclusion("Ana"))
        second = await service.notify(ByDisplayNameExclusion("Ana"))
        assert first == second

    @pytest.mark.asyncio
    async def test_directory_error_propagates(self, make_directory, make_transport):
        transport = make_transport()
        directory = make_directory(error=DirectoryError("unreachable"))

        with pytest.raises(DirectoryError, match="unreachable"):
            await _service(directory, transport).notify_available_player("Ana")
        assert transport.attempts == []
