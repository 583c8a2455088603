"""
Letter Status Workflow

    draft -> submitted -> in_review -> approved -> completed

Any non-terminal status may move to cancelled. completed and cancelled are
terminal. Re-setting the current status is a no-op and always allowed.
"""
from typing import Dict, FrozenSet

from app.errors import InvalidStatusTransition
from app.models.records import LetterStatus

TERMINAL_STATUSES: FrozenSet[LetterStatus] = frozenset({LetterStatus.COMPLETED, LetterStatus.CANCELLED})

_FORWARD: Dict[LetterStatus, LetterStatus] = {
    LetterStatus.DRAFT: LetterStatus.SUBMITTED,
    LetterStatus.SUBMITTED: LetterStatus.IN_REVIEW,
    LetterStatus.IN_REVIEW: LetterStatus.APPROVED,
    LetterStatus.APPROVED: LetterStatus.COMPLETED,
}


def allowed_transitions(current: LetterStatus) -> FrozenSet[LetterStatus]:
    """Statuses reachable in one step from `current` (excluding itself)."""
    if current in TERMINAL_STATUSES:
        return frozenset()
    return frozenset({_FORWARD[current], LetterStatus.CANCELLED})


def can_transition(current: LetterStatus, target: LetterStatus) -> bool:
    return current == target or target in allowed_transitions(current)


def validate_transition(current: LetterStatus, target: LetterStatus) -> LetterStatus:
    if not can_transition(current, target):
        allowed = ", ".join(sorted(s.value for s in allowed_transitions(current))) or "none"
        raise InvalidStatusTransition(
            f"A letter in '{current.value}' cannot move to '{target.value}' (allowed: {allowed})."
        )
    return target
