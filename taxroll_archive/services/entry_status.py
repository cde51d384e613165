"""Review status state machine for enslavement details.

The transition table is explicit so a stricter submit policy can be
selected through configuration without touching the workflows.
"""

from enum import Enum
from typing import Dict, FrozenSet

from taxroll_archive.core.exceptions import InvalidTransitionError


class EntryStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubmitPolicy(str, Enum):
    PERMISSIVE = "permissive"
    STRICT = "strict"


ALL_STATUSES: FrozenSet[EntryStatus] = frozenset(EntryStatus)

# Observed behavior: submit and decide apply from any status.
PERMISSIVE_TRANSITIONS: Dict[EntryStatus, FrozenSet[EntryStatus]] = {
    EntryStatus.DRAFT: frozenset({EntryStatus.PENDING_REVIEW, EntryStatus.APPROVED, EntryStatus.REJECTED}),
    EntryStatus.PENDING_REVIEW: frozenset({EntryStatus.PENDING_REVIEW, EntryStatus.APPROVED, EntryStatus.REJECTED}),
    EntryStatus.APPROVED: frozenset({EntryStatus.PENDING_REVIEW, EntryStatus.APPROVED, EntryStatus.REJECTED}),
    EntryStatus.REJECTED: frozenset({EntryStatus.PENDING_REVIEW, EntryStatus.APPROVED, EntryStatus.REJECTED}),
}

# Approved entries stay approved unless a reviewer reverses the decision.
STRICT_TRANSITIONS: Dict[EntryStatus, FrozenSet[EntryStatus]] = {
    **PERMISSIVE_TRANSITIONS,
    EntryStatus.APPROVED: frozenset({EntryStatus.APPROVED, EntryStatus.REJECTED}),
}

TRANSITIONS: Dict[SubmitPolicy, Dict[EntryStatus, FrozenSet[EntryStatus]]] = {
    SubmitPolicy.PERMISSIVE: PERMISSIVE_TRANSITIONS,
    SubmitPolicy.STRICT: STRICT_TRANSITIONS,
}


def parse_status(value: str) -> EntryStatus:
    try:
        return EntryStatus(value)
    except ValueError:
        # Unknown legacy values are treated as drafts
        return EntryStatus.DRAFT


def can_transition(current: str, target: EntryStatus, policy: SubmitPolicy = SubmitPolicy.PERMISSIVE) -> bool:
    return target in TRANSITIONS[policy][parse_status(current)]


def ensure_transition(current: str, target: EntryStatus, policy: SubmitPolicy = SubmitPolicy.PERMISSIVE) -> None:
    """Raise InvalidTransitionError when the policy forbids the move."""
    if not can_transition(current, target, policy):
        raise InvalidTransitionError(current, target.value)
