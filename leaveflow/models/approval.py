# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import UUIDBase, now_utc


class ApprovalDecisionRecord(UUIDBase, table=True):
    """Append-only row recording one decision taken on a leave request.

    ``decision`` mirrors the variant kind for filtering; ``detail_json`` holds the
    full tagged variant (see ``leaveflow.schemas.decision``).
    """

    __tablename__ = "approval_decision"
    __table_args__ = (sa.Index("ix_approval_decision_request_cycle", "leave_request_id", "cycle", "step"),)

    company_id: uuid.UUID = Field(index=True)
    leave_request_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_request.id"), nullable=False, index=True),
    )
    cycle: int
    step: int
    approver_id: uuid.UUID
    approver_role: str = Field(max_length=50)
    decision: str = Field(max_length=50)
    detail_json: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    comment: str | None = None
    decided_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
