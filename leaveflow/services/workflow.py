"""Workflow resolver.

Entry point for every state change of a leave request. Each action runs as one
transaction:

1. Lock the leave request row (NotFound).
2. Check who may act (Forbidden, including self-approval).
3. Check the status (AlreadyResolved, IllegalTransition through the guard).
4. Check the input (ValidationError).
5. Apply ledger effects (NoBalanceRecord, InsufficientBalance).
6. Write status, decision record and exactly one audit entry; commit.

Steps 2-4 only read, so any failure leaves the database untouched; the session
is rolled back before the error propagates. The audit entry is delivered to the
external sink after commit.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, NoReturn

from sqlalchemy import func, select
from sqlmodel import col

from leaveflow.config import get_settings
from leaveflow.exceptions import (
    AlreadyResolvedError,
    AppError,
    ForbiddenError,
    IllegalTransitionError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationFailedError,
)
from leaveflow.models.approval import ApprovalDecisionRecord
from leaveflow.models.enums import AuditEntityType, LeaveCategory, LeaveStatus, Role, WorkflowAction
from leaveflow.models.request import LeaveRequest
from leaveflow.schemas.decision import (
    Approved,
    CategoryChanged,
    Decision,
    Forwarded,
    Rejected,
    Returned,
    dump_decision,
    parse_decision,
)
from leaveflow.schemas.request import (
    ActionResult,
    AuditEntryListResponse,
    AuditEntryResponse,
    BulkActionResult,
    BulkFailure,
    DecisionRecordListResponse,
    DecisionRecordResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
)
from leaveflow.services import chains, ledger, transitions
from leaveflow.services.audit import deliver_audit_entry, list_audit_entries, model_to_audit_dict, write_audit_log
from leaveflow.services.calendar import get_calendar
from leaveflow.services.employee import get_employee_directory, reports_to

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.models.audit import AuditLog
    from leaveflow.schemas.auth import ActorContext
    from leaveflow.schemas.balance import LedgerChange
    from leaveflow.schemas.request import LeaveDetails, ResubmitLeavePayload, SubmitLeavePayload

logger = logging.getLogger(__name__)

BULK_INTERNAL_ERROR = "InternalError"


@dataclass
class _Action:
    """Mutable state of one action while it is being resolved."""

    session: AsyncSession
    actor: ActorContext
    request: LeaveRequest
    action: WorkflowAction
    comment: str | None
    today: date
    previous_status: LeaveStatus = field(init=False)
    records: list[ApprovalDecisionRecord] = field(default_factory=list)
    decision: Decision | None = None
    decision_step: int = 0
    ledger_change: LedgerChange | None = None
    replayed: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.previous_status = LeaveStatus(self.request.status)

    @property
    def status(self) -> LeaveStatus:
        return LeaveStatus(self.request.status)

    @property
    def category(self) -> LeaveCategory:
        return LeaveCategory(self.request.category)

    @property
    def is_self(self) -> bool:
        return self.actor.user_id == self.request.requester_id


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a leave request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        company_id=request.company_id,
        requester_id=request.requester_id,
        category=LeaveCategory(request.category),
        start_date=request.start_date,
        end_date=request.end_date,
        working_days_requested=request.working_days_requested,
        status=LeaveStatus(request.status),
        reason=request.reason,
        supporting_document_ref=request.supporting_document_ref,
        approval_cycle=request.approval_cycle,
        debited_days=request.debited_days,
        parent_request_id=request.parent_request_id,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def _build_decision_response(record: ApprovalDecisionRecord) -> DecisionRecordResponse:
    return DecisionRecordResponse(
        id=record.id,
        leave_request_id=record.leave_request_id,
        cycle=record.cycle,
        step=record.step,
        approver_id=record.approver_id,
        approver_role=Role(record.approver_role),
        decision=parse_decision(record.detail_json),
        comment=record.comment,
        decided_at=record.decided_at,
    )


async def _get_request(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request scoped to company. Raises NotFound if absent."""
    query = select(LeaveRequest).where(
        col(LeaveRequest.id) == request_id,
        col(LeaveRequest.company_id) == company_id,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError(details={"id": str(request_id)})
    return request


async def _cycle_records(session: AsyncSession, request: LeaveRequest) -> list[ApprovalDecisionRecord]:
    """Decision records of the request's current approval cycle, in chain order."""
    result = await session.execute(
        select(ApprovalDecisionRecord)
        .where(
            col(ApprovalDecisionRecord.leave_request_id) == request.id,
            col(ApprovalDecisionRecord.cycle) == request.approval_cycle,
        )
        .order_by(col(ApprovalDecisionRecord.step), col(ApprovalDecisionRecord.decided_at))
    )
    return list(result.scalars().all())


def _role_on_turn(category: LeaveCategory, records: list[ApprovalDecisionRecord]) -> Role:
    """The chain role currently holding the request."""
    target: Role | None = None
    for record in records:
        decision = parse_decision(record.detail_json)
        if isinstance(decision, Forwarded):
            target = decision.target_role
    return target if target is not None else chains.chain_for(category)[0]


def _forbid_self(ctx: _Action, verb: str) -> None:
    if ctx.is_self:
        raise ForbiddenError(
            f"You cannot {verb} your own leave request",
            {"reason": "self_action_disallowed", "action": ctx.action.value},
        )


def _forbid(ctx: _Action, message: str) -> NoReturn:
    raise ForbiddenError(
        message,
        {"actor_role": ctx.actor.role.value, "action": ctx.action.value, "category": ctx.category.value},
    )


def _ensure_open(ctx: _Action) -> None:
    if transitions.is_terminal(ctx.status):
        raise AlreadyResolvedError(ctx.status.value)


def _require_status(ctx: _Action, required: set[LeaveStatus], target: LeaveStatus) -> None:
    if ctx.status not in required:
        raise IllegalTransitionError(
            ctx.status.value,
            target.value,
            [s.value for s in transitions.allowed_from(ctx.status)],
            required=sorted(s.value for s in required),
        )


def _validate_path(current: LeaveStatus, *targets: LeaveStatus) -> None:
    """Validate a multi-hop status path through the guard."""
    for target in targets:
        transitions.validate(current, target)
        current = target


def _review_path(ctx: _Action, target: LeaveStatus) -> tuple[LeaveStatus, ...]:
    """Hops from SUBMITTED/PENDING to a decision status; SUBMITTED enters review first."""
    _require_status(ctx, {LeaveStatus.SUBMITTED, LeaveStatus.PENDING}, target)
    path = (LeaveStatus.PENDING, target) if ctx.status == LeaveStatus.SUBMITTED else (target,)
    _validate_path(ctx.status, *path)
    return path


def _require_comment(ctx: _Action) -> str:
    comment = (ctx.comment or "").strip()
    if not comment:
        raise ValidationFailedError(
            f"A comment is required to {ctx.action.value.lower()} a leave request",
            {"field": "comment"},
        )
    return comment


def _set_status(ctx: _Action, status: LeaveStatus) -> None:
    ctx.request.status = status.value


async def _ledger_debit(ctx: _Action, days: int) -> LedgerChange:
    req = ctx.request
    return await ledger.debit(ctx.session, req.company_id, req.requester_id, req.category, req.ledger_year, days)


async def _ledger_credit(ctx: _Action, days: int) -> LedgerChange:
    req = ctx.request
    return await ledger.credit(ctx.session, req.company_id, req.requester_id, req.category, req.ledger_year, days)


async def _count_working_days(company_id: uuid.UUID, employee_id: uuid.UUID, start: date, end: date) -> int:
    employee = await get_employee_directory().get_employee(company_id, employee_id)
    return await get_calendar().working_days(start, end, employee)


def _require_reason(ctx: _Action) -> str:
    reason = (ctx.comment or "").strip()
    min_length = get_settings().date_change_min_reason
    if len(reason) < min_length:
        raise ValidationFailedError(
            f"Reason must be at least {min_length} characters",
            {"field": "reason", "min_length": min_length},
        )
    return reason


def _check_in_progress(ctx: _Action, verb: str) -> None:
    """Requester-only date changes on an APPROVED leave that has started and not ended."""
    if not ctx.is_self:
        _forbid(ctx, f"Only the requester can {verb} their leave")
    _ensure_open(ctx)
    _require_status(ctx, {LeaveStatus.APPROVED}, LeaveStatus.APPROVED)
    _require_reason(ctx)
    req = ctx.request
    if ctx.today < req.start_date:
        raise ValidationFailedError(
            f"Cannot {verb} a leave that has not started; cancel it instead",
            {"field": "start_date", "start_date": req.start_date.isoformat(), "today": ctx.today.isoformat()},
        )
    if ctx.today > req.end_date:
        raise ValidationFailedError(
            f"Cannot {verb} a leave that has already ended",
            {"field": "end_date", "end_date": req.end_date.isoformat(), "today": ctx.today.isoformat()},
        )


async def _shorten_to(ctx: _Action, new_end: date) -> None:
    """Move the end date of an approved leave back and credit the released days."""
    req = ctx.request
    new_days = await _count_working_days(req.company_id, req.requester_id, req.start_date, new_end)
    released = req.working_days_requested - new_days
    if released <= 0:
        raise ValidationFailedError(
            "The new end date does not release any working days",
            {"field": "new_end_date", "new_end_date": new_end.isoformat()},
        )
    if new_days <= 0:
        raise ValidationFailedError(
            "No working day would remain; cancel the leave instead",
            {"field": "new_end_date", "new_end_date": new_end.isoformat()},
        )

    # An approval debit that was clamped holds fewer days than requested.
    to_credit = req.debited_days - min(req.debited_days, new_days)
    if to_credit > 0:
        change = await _ledger_credit(ctx, to_credit)
        ctx.ledger_change = change
        req.debited_days -= change.days_applied
    ctx.extra.update(
        original_end_date=req.end_date.isoformat(),
        original_working_days=req.working_days_requested,
        released_days=released,
    )
    req.end_date = new_end
    req.working_days_requested = new_days


# Statuses whose content the requester may still edit before resubmitting.
_EDITABLE = frozenset({LeaveStatus.DRAFT, LeaveStatus.RETURNED})


def _apply_details(request: LeaveRequest, details: LeaveDetails, working_days: int) -> list[str]:
    """Copy edited content onto the request; returns the names of changed fields."""
    values = {
        "category": details.category.value,
        "start_date": details.start_date,
        "end_date": details.end_date,
        "reason": details.reason.strip(),
        "supporting_document_ref": details.supporting_document_ref,
        "working_days_requested": working_days,
    }
    changed = sorted(name for name, value in values.items() if getattr(request, name) != value)
    for name, value in values.items():
        setattr(request, name, value)
    return changed


# ---------------------------------------------------------------------------
# Action handlers
# ---------------------------------------------------------------------------


async def _handle_submit(ctx: _Action) -> None:
    """DRAFT/RETURNED/RECALLED -> SUBMITTED; opens a fresh approval cycle."""
    if not ctx.is_self:
        _forbid(ctx, "Only the requester can submit a leave request")
    _ensure_open(ctx)
    if ctx.status == LeaveStatus.SUBMITTED:
        ctx.replayed = True
        return
    transitions.validate(ctx.status, LeaveStatus.SUBMITTED)
    ctx.request.approval_cycle += 1
    _set_status(ctx, LeaveStatus.SUBMITTED)


async def _handle_forward(ctx: _Action) -> None:
    """Pass the request to the next role; SUBMITTED becomes PENDING."""
    _forbid_self(ctx, "forward")
    if not chains.can_act(ctx.actor.role, WorkflowAction.FORWARD, ctx.category):
        _forbid(ctx, f"{ctx.actor.role} cannot forward {ctx.category} leave requests")
    if transitions.is_in_review(ctx.status):
        on_turn = _role_on_turn(ctx.category, ctx.records)
        if on_turn != ctx.actor.role:
            raise ForbiddenError(
                f"This request is waiting on {on_turn}, not {ctx.actor.role}",
                {"actor_role": ctx.actor.role.value, "role_on_turn": on_turn.value},
            )
    _ensure_open(ctx)
    _require_status(ctx, {LeaveStatus.SUBMITTED, LeaveStatus.PENDING}, LeaveStatus.PENDING)
    transitions.validate(ctx.status, LeaveStatus.PENDING)

    target = chains.next_role(ctx.actor.role, ctx.category)
    if target is None:
        _forbid(ctx, "No next role in the approval chain")
    ctx.decision = Forwarded(target_role=target)
    ctx.decision_step = chains.step_for(ctx.actor.role, ctx.category)
    _set_status(ctx, LeaveStatus.PENDING)


def _check_final_decision_rights(ctx: _Action, verb: str) -> None:
    _forbid_self(ctx, verb)
    if chains.is_operational(ctx.actor.role):
        _forbid(ctx, f"{ctx.actor.role} is an operational role and cannot {verb} leave requests")
    if not chains.can_act(ctx.actor.role, ctx.action, ctx.category):
        _forbid(ctx, f"Only the final approver can {verb} {ctx.category} leave requests")


async def _handle_approve(ctx: _Action) -> None:
    """Final approval; the only place the ledger is debited."""
    _check_final_decision_rights(ctx, "approve")
    if ctx.status == LeaveStatus.APPROVED:
        ctx.replayed = True
        return
    _ensure_open(ctx)
    path = _review_path(ctx, LeaveStatus.APPROVED)

    # A recalled leave sent back for approval still holds the days already taken.
    outstanding = max(ctx.request.working_days_requested - ctx.request.debited_days, 0)
    change = await _ledger_debit(ctx, outstanding)
    ctx.ledger_change = change
    ctx.request.debited_days += change.days_applied
    ctx.decision = Approved()
    ctx.decision_step = chains.step_for(ctx.actor.role, ctx.category)
    ctx.extra["path"] = [s.value for s in path]
    _set_status(ctx, LeaveStatus.APPROVED)


async def _handle_reject(ctx: _Action) -> None:
    """Final rejection; nothing was debited, so no ledger effect."""
    _check_final_decision_rights(ctx, "reject")
    _ensure_open(ctx)
    path = _review_path(ctx, LeaveStatus.REJECTED)

    ctx.decision = Rejected()
    ctx.decision_step = chains.step_for(ctx.actor.role, ctx.category)
    ctx.extra["path"] = [s.value for s in path]
    _set_status(ctx, LeaveStatus.REJECTED)


async def _handle_return(ctx: _Action) -> None:
    """Send the request back to the requester with a mandatory comment."""
    _forbid_self(ctx, "return")
    if not chains.can_act(ctx.actor.role, WorkflowAction.RETURN, ctx.category):
        own_team = ctx.actor.role == Role.DEPT_HEAD and await reports_to(
            ctx.request.company_id, ctx.request.requester_id, ctx.actor.user_id
        )
        if not own_team:
            _forbid(ctx, f"{ctx.actor.role} cannot return this leave request")
    _ensure_open(ctx)
    _require_status(ctx, {LeaveStatus.SUBMITTED, LeaveStatus.PENDING}, LeaveStatus.RETURNED)
    transitions.validate(ctx.status, LeaveStatus.RETURNED)
    _require_comment(ctx)

    # Recorded at the position the request had reached in the chain.
    on_turn = _role_on_turn(ctx.category, ctx.records)
    ctx.decision = Returned()
    ctx.decision_step = chains.step_for(on_turn, ctx.category)
    _set_status(ctx, LeaveStatus.RETURNED)


async def _handle_recall(ctx: _Action) -> None:
    """End an approved leave early and credit back the unused remainder."""
    if not chains.is_senior(ctx.actor.role):
        _forbid(ctx, "Only HR or executive roles can recall a leave")
    _forbid_self(ctx, "recall")
    if ctx.status == LeaveStatus.RECALLED:
        ctx.replayed = True
        return
    _ensure_open(ctx)
    _require_status(ctx, {LeaveStatus.APPROVED}, LeaveStatus.RECALLED)
    transitions.validate(ctx.status, LeaveStatus.RECALLED)
    if ctx.request.end_date < ctx.today:
        raise ValidationFailedError(
            "Cannot recall a leave that has already ended",
            {"field": "end_date", "end_date": ctx.request.end_date.isoformat(), "today": ctx.today.isoformat()},
        )

    elapsed = ledger.elapsed_fraction(ctx.request.start_date, ctx.request.end_date, ctx.today)
    req = ctx.request
    change = await ledger.partial_credit(
        ctx.session,
        req.company_id,
        req.requester_id,
        req.category,
        req.ledger_year,
        elapsed,
        req.debited_days,
    )
    ctx.ledger_change = change
    req.debited_days -= change.days_applied
    ctx.extra["elapsed_fraction"] = f"{elapsed.numerator}/{elapsed.denominator}"
    _set_status(ctx, LeaveStatus.RECALLED)


async def _handle_request_cancellation(ctx: _Action) -> None:
    """Requester withdraws: direct cancel before approval, a cancellation request after."""
    if not ctx.is_self:
        _forbid(ctx, "Only the requester can ask to cancel their own leave")
    if ctx.status == LeaveStatus.CANCELLATION_REQUESTED:
        ctx.replayed = True
        return
    _ensure_open(ctx)
    if ctx.status == LeaveStatus.APPROVED:
        transitions.validate(ctx.status, LeaveStatus.CANCELLATION_REQUESTED)
        _set_status(ctx, LeaveStatus.CANCELLATION_REQUESTED)
        return
    transitions.validate(ctx.status, LeaveStatus.CANCELLED)
    _set_status(ctx, LeaveStatus.CANCELLED)


async def _handle_cancel(ctx: _Action) -> None:
    """Cancel on behalf of the requester; credits back anything debited."""
    _forbid_self(ctx, "cancel on behalf of")
    if not chains.is_senior(ctx.actor.role):
        own_team = (
            ctx.actor.role == Role.DEPT_HEAD
            and transitions.is_in_review(ctx.status)
            and await reports_to(ctx.request.company_id, ctx.request.requester_id, ctx.actor.user_id)
        )
        if not own_team:
            _forbid(ctx, f"{ctx.actor.role} cannot cancel this leave request")
    _ensure_open(ctx)
    if ctx.status == LeaveStatus.APPROVED:
        path: tuple[LeaveStatus, ...] = (LeaveStatus.CANCELLATION_REQUESTED, LeaveStatus.CANCELLED)
    else:
        path = (LeaveStatus.CANCELLED,)
    _validate_path(ctx.status, *path)

    if ctx.status in (LeaveStatus.APPROVED, LeaveStatus.CANCELLATION_REQUESTED) and ctx.request.debited_days > 0:
        change = await _ledger_credit(ctx, ctx.request.debited_days)
        ctx.ledger_change = change
        ctx.request.debited_days -= change.days_applied
    ctx.extra["path"] = [s.value for s in path]
    _set_status(ctx, LeaveStatus.CANCELLED)


async def _handle_decline_cancellation(ctx: _Action) -> None:
    """Refuse a cancellation request; the leave stays approved and debited."""
    if not chains.is_senior(ctx.actor.role):
        _forbid(ctx, "Only HR or executive roles can decline a cancellation request")
    _forbid_self(ctx, "decline the cancellation of")
    _ensure_open(ctx)
    _require_status(ctx, {LeaveStatus.CANCELLATION_REQUESTED}, LeaveStatus.APPROVED)
    transitions.validate(ctx.status, LeaveStatus.APPROVED)
    _set_status(ctx, LeaveStatus.APPROVED)


_HANDLERS: dict[WorkflowAction, Callable[[_Action], Awaitable[None]]] = {
    WorkflowAction.SUBMIT: _handle_submit,
    WorkflowAction.FORWARD: _handle_forward,
    WorkflowAction.APPROVE: _handle_approve,
    WorkflowAction.REJECT: _handle_reject,
    WorkflowAction.RETURN: _handle_return,
    WorkflowAction.RECALL: _handle_recall,
    WorkflowAction.REQUEST_CANCELLATION: _handle_request_cancellation,
    WorkflowAction.CANCEL: _handle_cancel,
    WorkflowAction.DECLINE_CANCELLATION: _handle_decline_cancellation,
}


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------


async def _finish(ctx: _Action, before: dict[str, Any]) -> tuple[ActionResult, AuditLog]:
    """Write the decision record and audit entry, then commit."""
    request = ctx.request
    if not ctx.replayed:
        request.touch()
    if ctx.decision is not None:
        ctx.session.add(
            ApprovalDecisionRecord(
                company_id=request.company_id,
                leave_request_id=request.id,
                cycle=request.approval_cycle,
                step=ctx.decision_step,
                approver_id=ctx.actor.user_id,
                approver_role=ctx.actor.role.value,
                decision=ctx.decision.kind,
                detail_json=dump_decision(ctx.decision),
                comment=(ctx.comment or "").strip() or None,
            )
        )

    after = model_to_audit_dict(request)
    if ctx.decision is not None:
        after["decision"] = dump_decision(ctx.decision)
        after["step"] = ctx.decision_step
    if ctx.ledger_change is not None:
        after["ledger"] = ctx.ledger_change.to_audit()
    if ctx.comment:
        after["comment"] = ctx.comment.strip()
    if ctx.replayed:
        after["replayed"] = True
    after.update(ctx.extra)

    await ctx.session.flush()
    entry = await write_audit_log(
        ctx.session,
        actor=ctx.actor,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=request.id,
        action=ctx.action.value,
        before_json=before,
        after_json=after,
    )
    await ctx.session.commit()

    logger.info(
        "Leave request %s: %s by %s %s -> %s%s",
        request.id,
        ctx.action.value,
        ctx.actor.role.value,
        ctx.previous_status.value,
        request.status,
        " (replayed)" if ctx.replayed else "",
    )
    result = ActionResult(
        id=request.id,
        action=ctx.action,
        previous_status=ctx.previous_status,
        new_status=LeaveStatus(request.status),
        balance=ctx.ledger_change.to_audit() if ctx.ledger_change is not None else None,
        replayed=ctx.replayed,
    )
    return result, entry


async def _run(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    action: WorkflowAction,
    comment: str | None,
    today: date,
    handler: Callable[[_Action], Awaitable[None]],
) -> ActionResult:
    try:
        request = await _get_request(session, actor.company_id, request_id, for_update=True)
        ctx = _Action(session=session, actor=actor, request=request, action=action, comment=comment, today=today)
        ctx.records = await _cycle_records(session, request)
        before = model_to_audit_dict(request)
        await handler(ctx)
        result, entry = await _finish(ctx, before)
    except AppError:
        await session.rollback()
        raise
    await deliver_audit_entry(entry)
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit(
    session: AsyncSession,
    actor: ActorContext,
    payload: SubmitLeavePayload,
) -> LeaveRequestResponse:
    """Create a leave request for the acting employee.

    Working days come from the external calendar; a range with none is rejected.
    The request starts in SUBMITTED (approval cycle 1) or DRAFT (cycle 0).
    """
    days = await _count_working_days(actor.company_id, actor.user_id, payload.start_date, payload.end_date)
    if days <= 0:
        raise ValidationFailedError(
            "The requested range contains no working days",
            {"field": "end_date", "working_days": days},
        )

    status = LeaveStatus.DRAFT if payload.as_draft else LeaveStatus.SUBMITTED
    request = LeaveRequest(
        company_id=actor.company_id,
        requester_id=actor.user_id,
        category=payload.category.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        working_days_requested=days,
        status=status.value,
        reason=payload.reason.strip(),
        supporting_document_ref=payload.supporting_document_ref,
        approval_cycle=0 if payload.as_draft else 1,
    )
    session.add(request)
    await session.flush()

    entry = await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=request.id,
        action="CREATE",
        after_json=model_to_audit_dict(request),
    )
    await session.commit()
    logger.info("Leave request %s created by %s in %s (%d days)", request.id, actor.user_id, status.value, days)
    await deliver_audit_entry(entry)
    return _build_request_response(request)


async def act(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    action: WorkflowAction,
    comment: str | None = None,
    *,
    today: date | None = None,
) -> ActionResult:
    """Apply one workflow action to a request as a single transaction."""
    handler = _HANDLERS.get(action)
    if handler is None:
        raise ValidationFailedError(f"{action} is not a request action", {"field": "action"})
    return await _run(session, actor, request_id, action, comment, today or date.today(), handler)


async def change_category(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    new_category: LeaveCategory,
    justification: str,
) -> ActionResult:
    """Reclassify a request under review after checking the new category's balance.

    The new category has its own chain, so a fresh approval cycle starts; the
    audit-only CATEGORY_CHANGED record opens it at step 0.
    """

    async def _handle_change_category(ctx: _Action) -> None:
        if not chains.is_senior(ctx.actor.role):
            _forbid(ctx, "Only HR or executive roles can change the leave category")
        _forbid_self(ctx, "reclassify")
        _ensure_open(ctx)
        _require_status(ctx, {LeaveStatus.SUBMITTED, LeaveStatus.PENDING}, ctx.status)

        reason = (ctx.comment or "").strip()
        min_length = get_settings().category_change_min_justification
        if len(reason) < min_length:
            raise ValidationFailedError(
                f"Justification must be at least {min_length} characters",
                {"field": "justification", "min_length": min_length},
            )
        if new_category == ctx.category:
            raise ValidationFailedError(
                "New category must differ from the current one",
                {"field": "category", "category": new_category.value},
            )

        req = ctx.request
        balance = await ledger.get_balance_for_update(
            ctx.session, req.company_id, req.requester_id, new_category, req.ledger_year
        )
        if balance.closing < req.working_days_requested:
            raise InsufficientBalanceError(new_category.value, balance.closing, req.working_days_requested)

        previous = ctx.category
        req.category = new_category.value
        req.approval_cycle += 1
        ctx.decision = CategoryChanged(from_category=previous, to_category=new_category)
        ctx.decision_step = 0

    return await _run(
        session,
        actor,
        request_id,
        WorkflowAction.CHANGE_CATEGORY,
        justification,
        date.today(),
        _handle_change_category,
    )


async def resubmit(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    payload: ResubmitLeavePayload,
) -> ActionResult:
    """Edit a DRAFT or RETURNED request and send it for approval.

    Working days are recounted for the new dates. The request enters a new
    approval cycle at the head of its (possibly new) category's chain.
    """

    async def _handle_resubmit(ctx: _Action) -> None:
        if not ctx.is_self:
            _forbid(ctx, "Only the requester can edit and resubmit a leave request")
        _ensure_open(ctx)
        if not transitions.is_mutable(ctx.status) or ctx.status not in _EDITABLE:
            raise IllegalTransitionError(
                ctx.status.value,
                LeaveStatus.SUBMITTED.value,
                [s.value for s in transitions.allowed_from(ctx.status)],
                required=sorted(s.value for s in _EDITABLE),
            )
        transitions.validate(ctx.status, LeaveStatus.SUBMITTED)

        req = ctx.request
        days = await _count_working_days(req.company_id, req.requester_id, payload.start_date, payload.end_date)
        if days <= 0:
            raise ValidationFailedError(
                "The requested range contains no working days",
                {"field": "end_date", "working_days": days},
            )
        ctx.extra["changed_fields"] = _apply_details(req, payload, days)
        req.approval_cycle += 1
        _set_status(ctx, LeaveStatus.SUBMITTED)

    return await _run(
        session,
        actor,
        request_id,
        WorkflowAction.RESUBMIT,
        None,
        date.today(),
        _handle_resubmit,
    )


async def shorten(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    new_end_date: date,
    reason: str,
    *,
    today: date | None = None,
) -> ActionResult:
    """End an approved leave in progress on ``new_end_date`` (not before today).

    The released working days go back to the balance; the status stays APPROVED.
    """

    async def _handle_shorten(ctx: _Action) -> None:
        _check_in_progress(ctx, "shorten")
        if new_end_date >= ctx.request.end_date:
            raise ValidationFailedError(
                "New end date must be before the current end date",
                {"field": "new_end_date", "end_date": ctx.request.end_date.isoformat()},
            )
        if new_end_date < ctx.today:
            raise ValidationFailedError(
                "New end date cannot be in the past",
                {"field": "new_end_date", "today": ctx.today.isoformat()},
            )
        await _shorten_to(ctx, new_end_date)

    return await _run(
        session,
        actor,
        request_id,
        WorkflowAction.SHORTEN,
        reason,
        today or date.today(),
        _handle_shorten,
    )


async def partial_cancel(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    reason: str,
    *,
    today: date | None = None,
) -> ActionResult:
    """Cancel the days of an approved leave still ahead.

    Days already taken stay used: the leave ends yesterday, or today when it
    started today. The status stays APPROVED.
    """

    async def _handle_partial_cancel(ctx: _Action) -> None:
        _check_in_progress(ctx, "partially cancel")
        yesterday = ctx.today - timedelta(days=1)
        new_end = yesterday if yesterday >= ctx.request.start_date else ctx.today
        await _shorten_to(ctx, new_end)

    return await _run(
        session,
        actor,
        request_id,
        WorkflowAction.PARTIAL_CANCEL,
        reason,
        today or date.today(),
        _handle_partial_cancel,
    )


async def extend(
    session: AsyncSession,
    actor: ActorContext,
    request_id: uuid.UUID,
    new_end_date: date,
    reason: str,
    *,
    today: date | None = None,
) -> LeaveRequestResponse:
    """Ask for more days right after an approved leave in progress.

    The extension is a new SUBMITTED request linked to its parent, covering the
    day after the parent's end through ``new_end_date``. It walks the full chain
    and is debited only when approved; the parent stays APPROVED. The balance
    must cover the extra days at the time of asking.
    """
    today = today or date.today()
    try:
        parent = await _get_request(session, actor.company_id, request_id, for_update=True)
        ctx = _Action(
            session=session, actor=actor, request=parent, action=WorkflowAction.EXTEND, comment=reason, today=today
        )
        _check_in_progress(ctx, "extend")
        if new_end_date <= parent.end_date:
            raise ValidationFailedError(
                "New end date must be after the current end date",
                {"field": "new_end_date", "end_date": parent.end_date.isoformat()},
            )
        open_count = await session.execute(
            select(func.count())
            .select_from(LeaveRequest)
            .where(
                col(LeaveRequest.parent_request_id) == parent.id,
                col(LeaveRequest.status).in_([LeaveStatus.SUBMITTED.value, LeaveStatus.PENDING.value]),
            )
        )
        if open_count.scalar_one() > 0:
            raise ValidationFailedError(
                "An extension of this leave is already under review",
                {"field": "parent_request_id", "parent_request_id": str(parent.id)},
            )

        start = parent.end_date + timedelta(days=1)
        days = await _count_working_days(parent.company_id, parent.requester_id, start, new_end_date)
        if days <= 0:
            raise ValidationFailedError(
                "The extension contains no working days",
                {"field": "new_end_date", "working_days": days},
            )
        balance = await ledger.get_balance_for_update(
            session, parent.company_id, parent.requester_id, parent.category, start.year
        )
        if balance.closing < days:
            raise InsufficientBalanceError(parent.category, balance.closing, days)

        extension = LeaveRequest(
            company_id=parent.company_id,
            requester_id=parent.requester_id,
            category=parent.category,
            start_date=start,
            end_date=new_end_date,
            working_days_requested=days,
            status=LeaveStatus.SUBMITTED.value,
            reason=reason.strip(),
            approval_cycle=1,
            parent_request_id=parent.id,
        )
        session.add(extension)
        await session.flush()

        entry = await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=extension.id,
            action=WorkflowAction.EXTEND.value,
            after_json=model_to_audit_dict(extension),
        )
        await session.commit()
    except AppError:
        await session.rollback()
        raise

    logger.info("Leave request %s extended by %s through %s (%d days)", parent.id, extension.id, new_end_date, days)
    await deliver_audit_entry(entry)
    return _build_request_response(extension)


async def bulk_act(
    session: AsyncSession,
    actor: ActorContext,
    request_ids: list[uuid.UUID],
    action: WorkflowAction,
    comment: str | None = None,
    *,
    today: date | None = None,
) -> BulkActionResult:
    """Apply an action to each request in its own transaction.

    A failure never undoes earlier successes; each failure carries its error code,
    or ``InternalError`` when something other than a workflow error went wrong.
    """
    succeeded: list[uuid.UUID] = []
    failed: list[BulkFailure] = []
    for request_id in dict.fromkeys(request_ids):
        try:
            await act(session, actor, request_id, action, comment, today=today)
        except AppError as exc:
            failed.append(BulkFailure(id=request_id, reason=exc.code, detail=exc.message))
            continue
        except Exception:
            logger.exception("Bulk %s failed unexpectedly on %s", action.value, request_id)
            await session.rollback()
            failed.append(BulkFailure(id=request_id, reason=BULK_INTERNAL_ERROR, detail="Unexpected error"))
            continue
        succeeded.append(request_id)

    logger.info(
        "Bulk %s by %s: succeeded=%d failed=%d",
        action.value,
        actor.user_id,
        len(succeeded),
        len(failed),
    )
    return BulkActionResult(succeeded=succeeded, failed=failed)


async def get_request(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Get a single request by ID."""
    request = await _get_request(session, company_id, request_id)
    return _build_request_response(request)


async def list_requests(
    session: AsyncSession,
    company_id: uuid.UUID,
    status_filter: LeaveStatus | None = None,
    category: LeaveCategory | None = None,
    requester_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List requests with optional filters, newest first."""
    base_filters = [col(LeaveRequest.company_id) == company_id]
    if status_filter is not None:
        base_filters.append(col(LeaveRequest.status) == status_filter.value)
    if category is not None:
        base_filters.append(col(LeaveRequest.category) == category.value)
    if requester_id is not None:
        base_filters.append(col(LeaveRequest.requester_id) == requester_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filters)
        .order_by(col(LeaveRequest.created_at).desc(), col(LeaveRequest.id))
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())
    return LeaveRequestListResponse(items=[_build_request_response(r) for r in requests], total=total)


async def list_decisions(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> DecisionRecordListResponse:
    """All decision records of a request across cycles."""
    await _get_request(session, company_id, request_id)
    result = await session.execute(
        select(ApprovalDecisionRecord)
        .where(col(ApprovalDecisionRecord.leave_request_id) == request_id)
        .order_by(
            col(ApprovalDecisionRecord.cycle),
            col(ApprovalDecisionRecord.step),
            col(ApprovalDecisionRecord.decided_at),
        )
    )
    records = list(result.scalars().all())
    return DecisionRecordListResponse(items=[_build_decision_response(r) for r in records], total=len(records))


async def get_audit_trail(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> AuditEntryListResponse:
    """Audit entries of a request, oldest first."""
    await _get_request(session, company_id, request_id)
    entries = await list_audit_entries(session, company_id, request_id)
    items = [
        AuditEntryResponse(
            id=e.id,
            actor_id=e.actor_id,
            actor_role=Role(e.actor_role),
            entity_type=e.entity_type,
            entity_id=e.entity_id,
            action=e.action,
            before_json=e.before_json,
            after_json=e.after_json,
            created_at=e.created_at,
        )
        for e in entries
    ]
    return AuditEntryListResponse(items=items, total=len(items))
