"""
Match status machine.

pending -> active -> completed, and pending/active -> cancelled.
completed and cancelled are terminal; a completed result only changes through
an audited result edit, which keeps the status.
"""

from typing import Dict, FrozenSet

from dronesoccer.services.errors import ConflictError

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

ALL_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_CANCELLED)
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    STATUS_PENDING: frozenset({STATUS_ACTIVE, STATUS_CANCELLED}),
    STATUS_ACTIVE: frozenset({STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, new: str) -> None:
    """Raise ConflictError unless current -> new is allowed."""
    if new not in ALL_STATUSES:
        raise ConflictError(f"Unknown match status: {new}")
    if current in TERMINAL_STATUSES:
        raise ConflictError(f"Match is {current}; status is terminal")
    if not can_transition(current, new):
        raise ConflictError(f"Cannot move match from {current} to {new}")
