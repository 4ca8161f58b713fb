# notifier/core/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


# ============================================================================
# DIRECTORY RECORDS (owned by the directory, read-only here)
# ============================================================================

@dataclass(frozen=True)
class RecipientRecord:
    """A registered user that may receive push notifications."""
    id: str
    display_name: Optional[str] = None
    destination_token: Optional[str] = None  # None means "not reachable"


@dataclass(frozen=True)
class GroupRecord:
    """A community: named set of member ids with one creator."""
    id: str
    display_name: str
    creator_id: str
    member_ids: tuple[str, ...] = ()


def normalize_member_ids(members: Any) -> list[str]:
    """
    Flatten a stored member collection into a list of recipient ids.

    Members may be stored as a list or as a mapping. For mappings the ids are
    the *values* (keys are push ids / insertion keys, not recipient ids).
    Null holes, which the Realtime Database emits for sparse arrays, are dropped.
    """
    if not members:
        return []
    if isinstance(members, dict):
        values = list(members.values())
    elif isinstance(members, (list, tuple)):
        values = list(members)
    else:
        return []
    return [str(v) for v in values if v is not None and v != ""]


# ============================================================================
# SELECTION CRITERIA (parsed once at the HTTP boundary)
# ============================================================================

@dataclass(frozen=True)
class ByDisplayNameExclusion:
    """Audience = every registered user except the one named ``excluded_name``."""
    excluded_name: str

    kind = "available_player"

    def __post_init__(self) -> None:
        object.__setattr__(self, "excluded_name", self.excluded_name.strip())


@dataclass(frozen=True)
class ByGroup:
    """Audience = members of one community, minus its creator."""
    group_display_name: str
    excluded_recipient_id: str
    challenge_id: str = ""

    kind = "new_challenge"

    def __post_init__(self) -> None:
        # Only the input is trimmed; stored group names are compared verbatim.
        object.__setattr__(self, "group_display_name", self.group_display_name.strip())


SelectionCriterion = Union[ByDisplayNameExclusion, ByGroup]


# ============================================================================
# PIPELINE VALUES (transient, one invocation)
# ============================================================================

@dataclass(frozen=True)
class Candidate:
    id: str
    display_name: Optional[str] = None
    destination_token: Optional[str] = None


class SkipReason(str, Enum):
    SELF_MATCH = "self_match"
    NO_DESTINATION = "no_destination"
    IS_CREATOR = "is_creator"


@dataclass
class Audience:
    """
    Resolver output.

    ``found`` is False only when the criterion's target (the community)
    does not exist; an existing target with zero members is found but empty.
    """
    candidates: list[Candidate] = field(default_factory=list)
    group: Optional[GroupRecord] = None
    found: bool = True


@dataclass(frozen=True)
class OutboundMessage:
    destination_token: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Sent:
    message_id: str = ""


@dataclass(frozen=True)
class Failed:
    cause: BaseException


DispatchOutcome = Union[Sent, Failed]


@dataclass(frozen=True)
class DispatchSummary:
    success_count: int = 0
    failure_count: int = 0


@dataclass(frozen=True)
class NotifyResult:
    """What the HTTP layer serializes: counts plus an optional informational note."""
    success: int = 0
    failure: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "failure": self.failure}
        if self.message is not None:
            body["message"] = self.message
        return body
