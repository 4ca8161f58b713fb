# notifier/core/audience.py
"""
Audience resolution: turn a selection criterion into candidates.

Two strategies, kept deliberately different:

- ``ByDisplayNameExclusion`` reads the whole recipient set once and keeps
  display names (the filter matches on name).
- ``ByGroup`` reads every community once, picks the first whose stored name
  equals the requested one, then looks up each member's token individually
  (the filter matches on id, so names are never resolved).
"""
from __future__ import annotations

import asyncio

from notifier.core.domain import (
    Audience,
    ByDisplayNameExclusion,
    ByGroup,
    Candidate,
    GroupRecord,
    SelectionCriterion,
)
from notifier.core.ports import AsyncDirectory
from notifier.infra.logging_config import get_logger

logger = get_logger(__name__)


class AudienceResolver:

    def __init__(self, directory: AsyncDirectory, *, parallel_lookups: bool = False) -> None:
        self._directory = directory
        self._parallel_lookups = parallel_lookups

    async def resolve(self, criterion: SelectionCriterion) -> Audience:
        if isinstance(criterion, ByDisplayNameExclusion):
            return await self._resolve_all_recipients()
        if isinstance(criterion, ByGroup):
            return await self._resolve_group(criterion)
        raise TypeError(f"Unsupported selection criterion: {type(criterion).__name__}")

    async def _resolve_all_recipients(self) -> Audience:
        recipients = await self._directory.get_all_recipients()
        candidates = [
            Candidate(
                id=record.id,
                display_name=record.display_name,
                destination_token=record.destination_token,
            )
            for record in recipients.values()
        ]
        logger.info(f"Resolved {len(candidates)} recipient(s) from directory")
        return Audience(candidates=candidates)

    async def _resolve_group(self, criterion: ByGroup) -> Audience:
        groups = await self._directory.get_all_groups()
        group = find_group_by_name(groups.values(), criterion.group_display_name)
        if group is None:
            logger.info(f"Community not found: '{criterion.group_display_name}'")
            return Audience(found=False)

        member_ids = list(group.member_ids)
        if self._parallel_lookups:
            tokens = await asyncio.gather(
                *(self._directory.get_recipient_destination_token(m) for m in member_ids)
            )
        else:
            tokens = []
            for member_id in member_ids:
                tokens.append(await self._directory.get_recipient_destination_token(member_id))

        candidates = [
            Candidate(id=member_id, destination_token=token)
            for member_id, token in zip(member_ids, tokens)
        ]
        logger.info(
            f"Resolved {len(candidates)} member(s) of community '{group.display_name}' (id={group.id})"
        )
        return Audience(candidates=candidates, group=group)


def find_group_by_name(groups, display_name: str) -> GroupRecord | None:
    """First group whose stored name equals ``display_name`` exactly."""
    for group in groups:
        if group.display_name == display_name:
            return group
    return None
