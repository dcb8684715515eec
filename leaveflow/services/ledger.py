"""Balance ledger.

The only code that mutates ``BalanceRecord`` rows. Every mutation keeps
``closing == opening + accrued - used`` with ``used >= 0`` and ``closing >= 0``;
a change that would break the floor is clamped rather than rejected, and the
clamp shows up in the returned ``LedgerChange``.

Functions here never commit. The workflow resolver calls them inside its own
transaction, after locking the leave request, so the status write and the
balance write land together.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import date
from fractions import Fraction
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leaveflow.exceptions import NoBalanceRecordError
from leaveflow.models.balance import BalanceRecord
from leaveflow.models.enums import LeaveCategory
from leaveflow.schemas.balance import BalanceFigures, BalanceListResponse, BalanceResponse, LedgerChange

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _figures(record: BalanceRecord) -> BalanceFigures:
    return BalanceFigures(opening=record.opening, accrued=record.accrued, used=record.used, closing=record.closing)


def _apply_used(record: BalanceRecord, new_used: int) -> None:
    """Set ``used`` within [0, entitlement] and recompute ``closing``."""
    record.used = min(max(new_used, 0), max(record.entitlement, 0))
    record.closing = max(0, record.entitlement - record.used)
    record.touch()


def _build_balance_response(record: BalanceRecord) -> BalanceResponse:
    return BalanceResponse(
        employee_id=record.employee_id,
        category=LeaveCategory(record.category),
        year=record.year,
        opening=record.opening,
        accrued=record.accrued,
        used=record.used,
        closing=record.closing,
        updated_at=record.updated_at,
    )


async def get_balance_for_update(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    year: int,
) -> BalanceRecord:
    """Fetch the ledger row with a FOR UPDATE lock. Raises NoBalanceRecordError if absent."""
    result = await session.execute(
        select(BalanceRecord)
        .where(
            col(BalanceRecord.company_id) == company_id,
            col(BalanceRecord.employee_id) == employee_id,
            col(BalanceRecord.category) == str(category),
            col(BalanceRecord.year) == year,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NoBalanceRecordError(str(category), year)
    return record


def _change(
    record: BalanceRecord,
    before: BalanceFigures,
    days_requested: int,
) -> LedgerChange:
    change = LedgerChange(
        category=LeaveCategory(record.category),
        year=record.year,
        days_requested=days_requested,
        days_applied=abs(record.used - before.used),
        before=before,
        after=_figures(record),
    )
    if change.clamped:
        logger.warning(
            "Ledger clamp employee=%s category=%s year=%s requested=%d applied=%d",
            record.employee_id,
            record.category,
            record.year,
            days_requested,
            change.days_applied,
        )
    return change


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def debit(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    year: int,
    days: int,
) -> LedgerChange:
    """Add ``days`` to ``used``; ``used`` is capped so ``closing`` floors at 0."""
    record = await get_balance_for_update(session, company_id, employee_id, category, year)
    before = _figures(record)
    _apply_used(record, record.used + days)
    return _change(record, before, days)


async def credit(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    year: int,
    days: int,
) -> LedgerChange:
    """Remove ``days`` from ``used``, never below zero."""
    record = await get_balance_for_update(session, company_id, employee_id, category, year)
    before = _figures(record)
    _apply_used(record, record.used - days)
    return _change(record, before, days)


def unused_remainder(total_days: int, elapsed_fraction: Fraction) -> int:
    """Days still unused after ``elapsed_fraction`` of the leave, rounded up.

    Never more than ``total_days`` and never negative.
    """
    elapsed = min(max(elapsed_fraction, Fraction(0)), Fraction(1))
    remainder = math.ceil(total_days * (1 - elapsed))
    return min(max(remainder, 0), total_days)


def elapsed_fraction(start: date, end: date, today: date) -> Fraction:
    """Share of the calendar span ``[start, end]`` already behind ``today``."""
    if today < start:
        return Fraction(0)
    span = (end - start).days
    if span <= 0 or today >= end:
        return Fraction(1)
    return Fraction((today - start).days, span)


async def partial_credit(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    year: int,
    elapsed: Fraction,
    total_days: int,
) -> LedgerChange:
    """Credit back only the unused remainder of an in-progress leave."""
    remainder = unused_remainder(total_days, elapsed)
    return await credit(session, company_id, employee_id, category, year, remainder)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balance(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    year: int,
) -> BalanceRecord | None:
    result = await session.execute(
        select(BalanceRecord).where(
            col(BalanceRecord.company_id) == company_id,
            col(BalanceRecord.employee_id) == employee_id,
            col(BalanceRecord.category) == str(category),
            col(BalanceRecord.year) == year,
        )
    )
    return result.scalar_one_or_none()


async def list_employee_balances(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int | None = None,
) -> BalanceListResponse:
    """All ledger rows of an employee, optionally for one year."""
    filters = [
        col(BalanceRecord.company_id) == company_id,
        col(BalanceRecord.employee_id) == employee_id,
    ]
    if year is not None:
        filters.append(col(BalanceRecord.year) == year)
    result = await session.execute(
        select(BalanceRecord).where(*filters).order_by(col(BalanceRecord.year).desc(), col(BalanceRecord.category))
    )
    records = list(result.scalars().all())
    return BalanceListResponse(items=[_build_balance_response(r) for r in records], total=len(records))
