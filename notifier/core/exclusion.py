# notifier/core/exclusion.py
"""Skip rules applied to resolved candidates.

Rules run in a fixed order and the first match wins, so a candidate is
counted under exactly one reason. The criterion-specific exclusion is checked
before the token check: a creator without a token is reported as IS_CREATOR.
"""
from __future__ import annotations

from notifier.core.domain import (
    ByDisplayNameExclusion,
    ByGroup,
    Candidate,
    SelectionCriterion,
    SkipReason,
)
from notifier.infra.logging_config import get_logger, LogContext

logger = get_logger(__name__)


def skip_reason_for(candidate: Candidate, criterion: SelectionCriterion) -> SkipReason | None:
    """Return why ``candidate`` must not be notified, or None if eligible."""
    if isinstance(criterion, ByDisplayNameExclusion):
        name = candidate.display_name
        if isinstance(name, str) and name.strip() == criterion.excluded_name:
            return SkipReason.SELF_MATCH
    elif isinstance(criterion, ByGroup):
        if candidate.id == criterion.excluded_recipient_id:
            return SkipReason.IS_CREATOR

    if not candidate.destination_token:
        return SkipReason.NO_DESTINATION

    return None


def filter_candidates(
    candidates: list[Candidate],
    criterion: SelectionCriterion,
) -> tuple[list[Candidate], dict[SkipReason, int]]:
    """
    Split candidates into the eligible list and per-reason skip counts.

    ``skip_counts`` always holds every SkipReason (zero when unused), so
    ``len(eligible) + sum(skip_counts.values()) == len(candidates)``.
    """
    eligible: list[Candidate] = []
    skip_counts: dict[SkipReason, int] = {reason: 0 for reason in SkipReason}

    for candidate in candidates:
        reason = skip_reason_for(candidate, criterion)
        if reason is None:
            eligible.append(candidate)
            continue
        skip_counts[reason] += 1
        LogContext(logger, criterion=criterion.kind, recipient_id=candidate.id).debug(
            f"Skipping recipient {candidate.id}: {reason.value}"
        )

    logger.info(
        f"Filtered candidates: eligible={len(eligible)} "
        f"self={skip_counts[SkipReason.SELF_MATCH]} "
        f"creator={skip_counts[SkipReason.IS_CREATOR]} "
        f"no_token={skip_counts[SkipReason.NO_DESTINATION]}"
    )
    return eligible, skip_counts
