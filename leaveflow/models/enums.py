from __future__ import annotations

import enum


class LeaveCategory(enum.StrEnum):
    """Leave type; each category resolves to an approval chain."""

    CASUAL = "CASUAL"
    EARNED = "EARNED"
    MEDICAL = "MEDICAL"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    STUDY = "STUDY"
    SPECIAL_DISABILITY = "SPECIAL_DISABILITY"
    QUARANTINE = "QUARANTINE"
    EXTRA_WITH_PAY = "EXTRA_WITH_PAY"
    EXTRA_WITHOUT_PAY = "EXTRA_WITHOUT_PAY"
    SPECIAL = "SPECIAL"


class Role(enum.StrEnum):
    """Organisational role of an actor."""

    EMPLOYEE = "EMPLOYEE"
    DEPT_HEAD = "DEPT_HEAD"
    HR_ADMIN = "HR_ADMIN"
    HR_HEAD = "HR_HEAD"
    CEO = "CEO"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


class LeaveStatus(enum.StrEnum):
    """State machine for leave requests."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    RETURNED = "RETURNED"
    RECALLED = "RECALLED"
    CANCELLATION_REQUESTED = "CANCELLATION_REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class WorkflowAction(enum.StrEnum):
    """Actions an actor can take on a leave request."""

    SUBMIT = "SUBMIT"
    FORWARD = "FORWARD"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"
    RECALL = "RECALL"
    REQUEST_CANCELLATION = "REQUEST_CANCELLATION"
    CANCEL = "CANCEL"
    DECLINE_CANCELLATION = "DECLINE_CANCELLATION"
    CHANGE_CATEGORY = "CHANGE_CATEGORY"
    RESUBMIT = "RESUBMIT"
    SHORTEN = "SHORTEN"
    PARTIAL_CANCEL = "PARTIAL_CANCEL"
    EXTEND = "EXTEND"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_REQUEST = "LEAVE_REQUEST"
