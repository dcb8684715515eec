"""Tests for the status transition guard."""

from __future__ import annotations

import pytest

from leaveflow.exceptions import IllegalTransitionError
from leaveflow.models.enums import LeaveStatus
from leaveflow.services import transitions


@pytest.mark.parametrize("status", list(LeaveStatus))
def test_same_status_is_noop(status: LeaveStatus) -> None:
    transitions.validate(status, status)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (LeaveStatus.DRAFT, LeaveStatus.SUBMITTED),
        (LeaveStatus.SUBMITTED, LeaveStatus.PENDING),
        (LeaveStatus.PENDING, LeaveStatus.APPROVED),
        (LeaveStatus.PENDING, LeaveStatus.RETURNED),
        (LeaveStatus.RETURNED, LeaveStatus.SUBMITTED),
        (LeaveStatus.RECALLED, LeaveStatus.SUBMITTED),
        (LeaveStatus.APPROVED, LeaveStatus.CANCELLATION_REQUESTED),
        (LeaveStatus.APPROVED, LeaveStatus.RECALLED),
        (LeaveStatus.CANCELLATION_REQUESTED, LeaveStatus.CANCELLED),
        (LeaveStatus.CANCELLATION_REQUESTED, LeaveStatus.APPROVED),
    ],
)
def test_legal_transitions(current: LeaveStatus, target: LeaveStatus) -> None:
    assert transitions.can_transition(current, target)
    transitions.validate(current, target)


@pytest.mark.parametrize("target", [LeaveStatus.PENDING, LeaveStatus.SUBMITTED, LeaveStatus.CANCELLED])
def test_approved_never_reenters_queue(target: LeaveStatus) -> None:
    assert not transitions.can_transition(LeaveStatus.APPROVED, target)
    with pytest.raises(IllegalTransitionError):
        transitions.validate(LeaveStatus.APPROVED, target)


def test_illegal_transition_details() -> None:
    with pytest.raises(IllegalTransitionError) as exc_info:
        transitions.validate(LeaveStatus.APPROVED, LeaveStatus.PENDING)
    details = exc_info.value.details
    assert details["current_status"] == "APPROVED"
    assert details["requested_status"] == "PENDING"
    assert details["allowed"] == ["CANCELLATION_REQUESTED", "RECALLED"]
    assert exc_info.value.code == "IllegalTransition"


@pytest.mark.parametrize("status", [LeaveStatus.REJECTED, LeaveStatus.CANCELLED])
def test_terminal_states(status: LeaveStatus) -> None:
    assert transitions.is_terminal(status)
    assert transitions.allowed_from(status) == []
    with pytest.raises(IllegalTransitionError, match="none \\(terminal state\\)"):
        transitions.validate(status, LeaveStatus.SUBMITTED)


def test_non_terminal_states() -> None:
    for status in (LeaveStatus.DRAFT, LeaveStatus.APPROVED, LeaveStatus.RECALLED):
        assert not transitions.is_terminal(status)


def test_is_mutable() -> None:
    assert transitions.is_mutable(LeaveStatus.DRAFT)
    assert transitions.is_mutable(LeaveStatus.PENDING)
    assert not transitions.is_mutable(LeaveStatus.APPROVED)
    assert not transitions.is_mutable(LeaveStatus.REJECTED)
    assert not transitions.is_mutable(LeaveStatus.CANCELLED)


def test_is_in_review() -> None:
    assert transitions.is_in_review(LeaveStatus.SUBMITTED)
    assert transitions.is_in_review(LeaveStatus.PENDING)
    assert not transitions.is_in_review(LeaveStatus.RETURNED)
