from __future__ import annotations

from leaveflow.exceptions import IllegalTransitionError
from leaveflow.models.enums import LeaveStatus

# APPROVED only leaves through CANCELLATION_REQUESTED or RECALLED: a request that
# already consumed balance must never re-enter the approval queue directly.
ALLOWED_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.DRAFT: frozenset({LeaveStatus.SUBMITTED, LeaveStatus.CANCELLED}),
    LeaveStatus.SUBMITTED: frozenset({LeaveStatus.PENDING, LeaveStatus.RETURNED, LeaveStatus.CANCELLED}),
    LeaveStatus.PENDING: frozenset(
        {LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.RETURNED, LeaveStatus.CANCELLED}
    ),
    LeaveStatus.RETURNED: frozenset({LeaveStatus.PENDING, LeaveStatus.SUBMITTED, LeaveStatus.CANCELLED}),
    LeaveStatus.RECALLED: frozenset({LeaveStatus.SUBMITTED, LeaveStatus.CANCELLED}),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLATION_REQUESTED, LeaveStatus.RECALLED}),
    LeaveStatus.CANCELLATION_REQUESTED: frozenset({LeaveStatus.CANCELLED, LeaveStatus.APPROVED}),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}

_IMMUTABLE_CONTENT = frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED})


def allowed_from(status: LeaveStatus | str) -> list[LeaveStatus]:
    """Sorted list of statuses reachable in one step."""
    return sorted(ALLOWED_TRANSITIONS[LeaveStatus(status)])


def can_transition(current: LeaveStatus | str, target: LeaveStatus | str) -> bool:
    current, target = LeaveStatus(current), LeaveStatus(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


def validate(current: LeaveStatus | str, target: LeaveStatus | str) -> None:
    """Raise IllegalTransitionError unless ``current -> target`` is legal.

    Re-applying the current status is a no-op.
    """
    if can_transition(current, target):
        return
    raise IllegalTransitionError(
        str(current),
        str(target),
        [s.value for s in allowed_from(current)],
    )


def is_terminal(status: LeaveStatus | str) -> bool:
    return not ALLOWED_TRANSITIONS[LeaveStatus(status)]


def is_mutable(status: LeaveStatus | str) -> bool:
    """Whether the request content (dates, category, reason) may still change."""
    return LeaveStatus(status) not in _IMMUTABLE_CONTENT


def is_in_review(status: LeaveStatus | str) -> bool:
    return LeaveStatus(status) in (LeaveStatus.SUBMITTED, LeaveStatus.PENDING)
