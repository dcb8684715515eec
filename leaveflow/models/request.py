# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase, VersionedMixin
from leaveflow.models.enums import LeaveStatus


class LeaveRequest(UUIDBase, TimestampMixin, VersionedMixin, table=True):
    """An employee's leave request with approval workflow state.

    Rows are never deleted; REJECTED and CANCELLED requests stay for audit.
    """

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_company_status", "company_id", "status"),
        sa.CheckConstraint("working_days_requested > 0", name="ck_leave_request_positive_days"),
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_request_date_order"),
    )

    company_id: uuid.UUID = Field(index=True)
    requester_id: uuid.UUID = Field(index=True)
    category: str = Field(max_length=50)
    start_date: date
    end_date: date
    working_days_requested: int
    status: str = Field(
        default=LeaveStatus.DRAFT, max_length=50, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    reason: str = Field(default="", max_length=2000)
    supporting_document_ref: str | None = Field(default=None, max_length=500)
    approval_cycle: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    debited_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    # Set on extension requests: the approved leave they continue.
    parent_request_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_request.id"), nullable=True, index=True),
    )

    @property
    def ledger_year(self) -> int:
        return self.start_date.year
