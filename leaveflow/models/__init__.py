from sqlmodel import SQLModel

from leaveflow.models.approval import ApprovalDecisionRecord
from leaveflow.models.audit import AuditLog
from leaveflow.models.balance import BalanceRecord
from leaveflow.models.base import TimestampMixin, UUIDBase, VersionedMixin
from leaveflow.models.enums import (
    AuditEntityType,
    LeaveCategory,
    LeaveStatus,
    Role,
    WorkflowAction,
)
from leaveflow.models.request import LeaveRequest

__all__ = [
    "ApprovalDecisionRecord",
    "AuditEntityType",
    "AuditLog",
    "BalanceRecord",
    "LeaveCategory",
    "LeaveRequest",
    "LeaveStatus",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "VersionedMixin",
    "WorkflowAction",
]
