"""Integration tests for the employee directory API (upsert, get, list)."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from leaveflow.services.employee import get_employee_directory

if TYPE_CHECKING:
    from httpx import AsyncClient

    from leaveflow.services.employee import InMemoryEmployeeDirectory

COMPANY_ID = uuid.uuid4()
USER_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
HR_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(USER_ID),
    "X-Role": "HR_ADMIN",
}
EMPLOYEE_HEADERS = {
    "X-Company-Id": str(COMPANY_ID),
    "X-User-Id": str(USER_ID),
    "X-Role": "EMPLOYEE",
}
EMPLOYEES_URL = f"/companies/{COMPANY_ID}/employees"


def _employee_payload(
    name: str = "John Doe",
    email: str = "john@example.com",
    role: str = "EMPLOYEE",
    dept_head_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    return {
        "name": name,
        "email": email,
        "role": role,
        "department": "Engineering",
        "dept_head_id": str(dept_head_id) if dept_head_id else None,
    }


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


async def test_upsert_employee(async_client: AsyncClient, directory: InMemoryEmployeeDirectory) -> None:
    head_id = uuid.uuid4()
    resp = await async_client.put(
        f"{EMPLOYEES_URL}/{EMPLOYEE_ID}",
        json=_employee_payload(dept_head_id=head_id),
        headers=HR_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == str(EMPLOYEE_ID)
    assert data["company_id"] == str(COMPANY_ID)
    assert data["role"] == "EMPLOYEE"
    assert data["dept_head_id"] == str(head_id)

    stored = await directory.get_employee(COMPANY_ID, EMPLOYEE_ID)
    assert stored is not None
    assert stored.dept_head_id == head_id


async def test_upsert_replaces_existing(async_client: AsyncClient, directory: InMemoryEmployeeDirectory) -> None:
    await async_client.put(f"{EMPLOYEES_URL}/{EMPLOYEE_ID}", json=_employee_payload(), headers=HR_HEADERS)
    resp = await async_client.put(
        f"{EMPLOYEES_URL}/{EMPLOYEE_ID}",
        json=_employee_payload(name="John Smith", role="DEPT_HEAD"),
        headers=HR_HEADERS,
    )
    assert resp.json()["name"] == "John Smith"
    assert len(await directory.list_employees(COMPANY_ID)) == 1


async def test_upsert_requires_hr_role(async_client: AsyncClient) -> None:
    resp = await async_client.put(f"{EMPLOYEES_URL}/{EMPLOYEE_ID}", json=_employee_payload(), headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Forbidden"


async def test_upsert_invalid_role_422(async_client: AsyncClient) -> None:
    resp = await async_client.put(
        f"{EMPLOYEES_URL}/{EMPLOYEE_ID}",
        json=_employee_payload(role="INTERN"),
        headers=HR_HEADERS,
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Get / list
# ---------------------------------------------------------------------------


async def test_get_employee(async_client: AsyncClient, directory: InMemoryEmployeeDirectory) -> None:
    await async_client.put(f"{EMPLOYEES_URL}/{EMPLOYEE_ID}", json=_employee_payload(), headers=HR_HEADERS)
    resp = await async_client.get(f"{EMPLOYEES_URL}/{EMPLOYEE_ID}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["email"] == "john@example.com"


async def test_get_employee_not_found(async_client: AsyncClient, directory: InMemoryEmployeeDirectory) -> None:
    resp = await async_client.get(f"{EMPLOYEES_URL}/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFound"


async def test_list_employees(async_client: AsyncClient, directory: InMemoryEmployeeDirectory) -> None:
    for i in range(3):
        await async_client.put(
            f"{EMPLOYEES_URL}/{uuid.uuid4()}",
            json=_employee_payload(name=f"Employee {i}", email=f"e{i}@example.com"),
            headers=HR_HEADERS,
        )
    resp = await async_client.get(EMPLOYEES_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["total"] == 3
    assert get_employee_directory() is directory
