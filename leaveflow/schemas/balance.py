# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from leaveflow.models.enums import LeaveCategory

# ---------------------------------------------------------------------------
# Ledger values
# ---------------------------------------------------------------------------


class BalanceFigures(BaseModel):
    """Snapshot of the four ledger figures."""

    opening: int
    accrued: int
    used: int
    closing: int


class LedgerChange(BaseModel):
    """Before/after figures of one debit or credit.

    ``days_applied`` differs from ``days_requested`` when the ledger clamped
    the change to keep ``used`` and ``closing`` non-negative.
    """

    category: LeaveCategory
    year: int
    days_requested: int
    days_applied: int
    before: BalanceFigures
    after: BalanceFigures

    @property
    def clamped(self) -> bool:
        return self.days_applied != self.days_requested

    @property
    def closing(self) -> int:
        return self.after.closing

    def to_audit(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["clamped"] = self.clamped
        return data


# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Balance for one category and year."""

    employee_id: uuid.UUID
    category: LeaveCategory
    year: int
    opening: int
    accrued: int
    used: int
    closing: int
    updated_at: datetime


class BalanceListResponse(BaseModel):
    """All balances of an employee."""

    items: list[BalanceResponse]
    total: int
