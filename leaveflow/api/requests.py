# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leaveflow.api.deps import ActorDep, validate_company_scope
from leaveflow.db import SessionDep
from leaveflow.models.enums import LeaveCategory, LeaveStatus
from leaveflow.schemas.request import (
    ActionPayload,
    ActionResult,
    AuditEntryListResponse,
    BulkActionPayload,
    BulkActionResult,
    ChangeCategoryPayload,
    DecisionRecordListResponse,
    ExtendPayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    PartialCancelPayload,
    ResubmitLeavePayload,
    ShortenPayload,
    SubmitLeavePayload,
)
from leaveflow.services import workflow

requests_router = APIRouter(
    prefix="/companies/{company_id}/leave-requests",
    tags=["leave-requests"],
    dependencies=[Depends(validate_company_scope)],
)


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitLeavePayload,
    session: SessionDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    """Create a leave request (submitted, or a draft when ``as_draft`` is set)."""
    return await workflow.submit(session, actor, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    session: SessionDep,
    actor: ActorDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    category: LeaveCategory | None = Query(default=None),
    requester_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List leave requests with optional filters."""
    return await workflow.list_requests(
        session, actor.company_id, status_filter, category, requester_id, offset, limit
    )


@requests_router.post("/bulk-actions", response_model=BulkActionResult)
async def bulk_action(
    payload: BulkActionPayload,
    session: SessionDep,
    actor: ActorDep,
) -> BulkActionResult:
    """Apply one action to many requests; each request commits on its own."""
    return await workflow.bulk_act(session, actor, payload.ids, payload.action, payload.comment)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    return await workflow.get_request(session, actor.company_id, request_id)


@requests_router.post("/{request_id}/actions", response_model=ActionResult)
async def apply_action(
    request_id: uuid.UUID,
    payload: ActionPayload,
    session: SessionDep,
    actor: ActorDep,
) -> ActionResult:
    """Forward, approve, reject, return, recall or cancel a leave request."""
    return await workflow.act(session, actor, request_id, payload.action, payload.comment)


@requests_router.post("/{request_id}/category", response_model=ActionResult)
async def change_category(
    request_id: uuid.UUID,
    payload: ChangeCategoryPayload,
    session: SessionDep,
    actor: ActorDep,
) -> ActionResult:
    """Reclassify a request under review."""
    return await workflow.change_category(session, actor, request_id, payload.category, payload.justification)


@requests_router.post("/{request_id}/resubmit", response_model=ActionResult)
async def resubmit_request(
    request_id: uuid.UUID,
    payload: ResubmitLeavePayload,
    session: SessionDep,
    actor: ActorDep,
) -> ActionResult:
    """Edit a draft or returned request and send it for approval."""
    return await workflow.resubmit(session, actor, request_id, payload)


@requests_router.post("/{request_id}/shorten", response_model=ActionResult)
async def shorten_leave(
    request_id: uuid.UUID,
    payload: ShortenPayload,
    session: SessionDep,
    actor: ActorDep,
) -> ActionResult:
    """End an approved leave in progress earlier; released days are credited back."""
    return await workflow.shorten(session, actor, request_id, payload.new_end_date, payload.reason)


@requests_router.post("/{request_id}/partial-cancel", response_model=ActionResult)
async def partial_cancel_leave(
    request_id: uuid.UUID,
    payload: PartialCancelPayload,
    session: SessionDep,
    actor: ActorDep,
) -> ActionResult:
    """Cancel the remaining days of an approved leave in progress."""
    return await workflow.partial_cancel(session, actor, request_id, payload.reason)


@requests_router.post(
    "/{request_id}/extensions", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED
)
async def extend_leave(
    request_id: uuid.UUID,
    payload: ExtendPayload,
    session: SessionDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    """Request more days after an approved leave; the extension goes through approval."""
    return await workflow.extend(session, actor, request_id, payload.new_end_date, payload.reason)


@requests_router.get("/{request_id}/decisions", response_model=DecisionRecordListResponse)
async def list_decisions(
    request_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> DecisionRecordListResponse:
    """Approval decision records of a request."""
    return await workflow.list_decisions(session, actor.company_id, request_id)


@requests_router.get("/{request_id}/audit", response_model=AuditEntryListResponse)
async def get_audit_trail(
    request_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> AuditEntryListResponse:
    """Audit trail of a request."""
    return await workflow.get_audit_trail(session, actor.company_id, request_id)
