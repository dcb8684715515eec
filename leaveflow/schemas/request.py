# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

from leaveflow.models.enums import LeaveCategory, LeaveStatus, Role, WorkflowAction
from leaveflow.schemas.decision import Decision

# Actions routed through ``act``; the others carry their own payloads.
_ACT_ACTIONS = frozenset(WorkflowAction) - {
    WorkflowAction.CHANGE_CATEGORY,
    WorkflowAction.RESUBMIT,
    WorkflowAction.SHORTEN,
    WorkflowAction.PARTIAL_CANCEL,
    WorkflowAction.EXTEND,
}

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class LeaveDetails(BaseModel):
    """Editable content of a leave request."""

    category: LeaveCategory
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=2000)
    supporting_document_ref: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class SubmitLeavePayload(LeaveDetails):
    """Request body for creating a leave request."""

    as_draft: bool = False


class ResubmitLeavePayload(LeaveDetails):
    """Request body for editing a draft or returned request and sending it for approval."""


class ShortenPayload(BaseModel):
    """Request body for ending an approved leave earlier than planned."""

    new_end_date: date
    reason: str = Field(max_length=2000)


class PartialCancelPayload(BaseModel):
    """Request body for cancelling the remaining days of a leave in progress."""

    reason: str = Field(max_length=2000)


class ExtendPayload(BaseModel):
    """Request body for asking for more days after an approved leave."""

    new_end_date: date
    reason: str = Field(max_length=2000)


class ActionPayload(BaseModel):
    """Request body for a single workflow action."""

    action: WorkflowAction
    comment: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _validate_action(self) -> Self:
        if self.action not in _ACT_ACTIONS:
            msg = f"{self.action} is not available through this endpoint"
            raise ValueError(msg)
        return self


class ChangeCategoryPayload(BaseModel):
    """Request body for reclassifying a request under review."""

    category: LeaveCategory
    justification: str = Field(max_length=2000)


class BulkActionPayload(ActionPayload):
    """Request body for applying one action to many requests."""

    ids: list[uuid.UUID] = Field(min_length=1, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    company_id: uuid.UUID
    requester_id: uuid.UUID
    category: LeaveCategory
    start_date: date
    end_date: date
    working_days_requested: int
    status: LeaveStatus
    reason: str
    supporting_document_ref: str | None
    approval_cycle: int
    debited_days: int
    parent_request_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[LeaveRequestResponse]
    total: int


class DecisionRecordResponse(BaseModel):
    """One approval decision record."""

    id: uuid.UUID
    leave_request_id: uuid.UUID
    cycle: int
    step: int
    approver_id: uuid.UUID
    approver_role: Role
    decision: Decision
    comment: str | None
    decided_at: datetime


class DecisionRecordListResponse(BaseModel):
    """All decision records of a request, ordered by cycle and step."""

    items: list[DecisionRecordResponse]
    total: int


class ActionResult(BaseModel):
    """Outcome of a successful workflow action."""

    id: uuid.UUID
    action: WorkflowAction
    previous_status: LeaveStatus
    new_status: LeaveStatus
    balance: dict[str, Any] | None = None
    replayed: bool = False


class BulkFailure(BaseModel):
    """A request the bulk action could not apply."""

    id: uuid.UUID
    reason: str
    detail: str | None = None


class BulkActionResult(BaseModel):
    """Partitioned result of a bulk action."""

    succeeded: list[uuid.UUID]
    failed: list[BulkFailure]


class AuditEntryResponse(BaseModel):
    """One audit log entry."""

    id: uuid.UUID
    actor_id: uuid.UUID
    actor_role: Role
    entity_type: str
    entity_id: uuid.UUID
    action: str
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    created_at: datetime


class AuditEntryListResponse(BaseModel):
    """Audit trail of a request, oldest first."""

    items: list[AuditEntryResponse]
    total: int
