# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leaveflow.api.deps import ActorDep, validate_company_scope
from leaveflow.db import SessionDep
from leaveflow.schemas.balance import BalanceListResponse
from leaveflow.services import ledger

employee_balance_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
    year: int | None = Query(default=None, ge=1900, le=9999),
) -> BalanceListResponse:
    """Get ledger balances for an employee, optionally for one year."""
    return await ledger.list_employee_balances(session, actor.company_id, employee_id, year)
