# notifier/core/messages.py
"""Push message texts and payload construction."""
from __future__ import annotations

from notifier.core.domain import (
    ByDisplayNameExclusion,
    ByGroup,
    Candidate,
    GroupRecord,
    OutboundMessage,
    SelectionCriterion,
)

PLAYER_AVAILABLE_TITLE = "¡Jugador Disponible!"
PLAYER_AVAILABLE_BODY = "{name} está esperando para jugar."

NEW_CHALLENGE_TITLE = "¡Nuevo Desafío Disponible!"
NEW_CHALLENGE_BODY = "Hay un nuevo desafío en la comunidad {community}."
NEW_CHALLENGE_TYPE = "new_challenge"


def build_message(
    candidate: Candidate,
    criterion: SelectionCriterion,
    group: GroupRecord | None = None,
) -> OutboundMessage:
    """
    Build the message for one eligible candidate.

    Title and body are duplicated into ``data`` for clients that only read
    the data channel. All data values are strings (FCM rejects anything else).
    """
    token = candidate.destination_token or ""

    if isinstance(criterion, ByDisplayNameExclusion):
        title = PLAYER_AVAILABLE_TITLE
        body = PLAYER_AVAILABLE_BODY.format(name=criterion.excluded_name)
        return OutboundMessage(
            destination_token=token,
            title=title,
            body=body,
            data={"title": title, "body": body},
        )

    if isinstance(criterion, ByGroup):
        community_name = group.display_name if group else criterion.group_display_name
        community_id = group.id if group else ""
        title = NEW_CHALLENGE_TITLE
        body = NEW_CHALLENGE_BODY.format(community=community_name)
        return OutboundMessage(
            destination_token=token,
            title=title,
            body=body,
            data={
                "type": NEW_CHALLENGE_TYPE,
                "challengeId": str(criterion.challenge_id),
                "communityId": str(community_id),
                "communityName": str(community_name),
                "title": title,
                "body": body,
            },
        )

    raise TypeError(f"Unsupported selection criterion: {type(criterion).__name__}")
