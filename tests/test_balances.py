"""Integration tests for the balance read endpoint."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from leaveflow.models.balance import BalanceRecord

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

COMPANY_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(EMPLOYEE_ID),
    "X-Role": "EMPLOYEE",
}
BALANCES_URL = f"/companies/{COMPANY_ID}/employees/{EMPLOYEE_ID}/balances"


async def _seed(session: AsyncSession, category: str, year: int, opening: int, accrued: int = 0, used: int = 0) -> None:
    session.add(
        BalanceRecord(
            company_id=COMPANY_ID,
            employee_id=EMPLOYEE_ID,
            category=category,
            year=year,
            opening=opening,
            accrued=accrued,
            used=used,
            closing=opening + accrued - used,
        )
    )
    await session.commit()


async def test_empty_balances(async_client: AsyncClient) -> None:
    resp = await async_client.get(BALANCES_URL, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"items": [], "total": 0}


async def test_balances_listed_newest_year_first(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _seed(db_session, "EARNED", 2024, opening=5)
    await _seed(db_session, "EARNED", 2025, opening=8, accrued=2, used=3)
    await _seed(db_session, "CASUAL", 2025, opening=10)

    resp = await async_client.get(BALANCES_URL, headers=HEADERS)
    data = resp.json()
    assert data["total"] == 3
    assert [(b["year"], b["category"]) for b in data["items"]] == [
        (2025, "CASUAL"),
        (2025, "EARNED"),
        (2024, "EARNED"),
    ]
    earned = data["items"][1]
    assert earned["opening"] == 8
    assert earned["accrued"] == 2
    assert earned["used"] == 3
    assert earned["closing"] == 7


async def test_balances_year_filter(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _seed(db_session, "EARNED", 2024, opening=5)
    await _seed(db_session, "EARNED", 2025, opening=8)

    resp = await async_client.get(BALANCES_URL, params={"year": 2024}, headers=HEADERS)
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["year"] == 2024


async def test_balances_other_company_hidden(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _seed(db_session, "EARNED", 2025, opening=8)
    other = uuid.uuid4()
    resp = await async_client.get(
        f"/companies/{other}/employees/{EMPLOYEE_ID}/balances",
        headers={**HEADERS, "X-Company-Id": str(other)},
    )
    assert resp.json()["total"] == 0
