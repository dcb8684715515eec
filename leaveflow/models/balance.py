# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import UUIDBase, VersionedMixin, now_utc


class BalanceRecord(UUIDBase, VersionedMixin, table=True):
    """Ledger row per (employee, category, year).

    ``closing`` is derived (opening + accrued - used) but persisted for reads;
    only the balance ledger service writes it.
    """

    __tablename__ = "balance_record"
    __table_args__ = (
        sa.UniqueConstraint("company_id", "employee_id", "category", "year", name="uq_balance_employee_category_year"),
        sa.CheckConstraint("used >= 0", name="ck_balance_used_non_negative"),
        sa.CheckConstraint("closing >= 0", name="ck_balance_closing_non_negative"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    category: str = Field(max_length=50)
    year: int
    opening: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    accrued: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    used: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    closing: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    updated_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )

    @property
    def entitlement(self) -> int:
        return self.opening + self.accrued
