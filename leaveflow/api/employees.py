# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from leaveflow.api.deps import ActorDep, DirectoryAdminDep, validate_company_scope
from leaveflow.exceptions import NotFoundError
from leaveflow.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from leaveflow.services.employee import EmployeeInfo, get_employee_directory

employees_router = APIRouter(
    prefix="/companies/{company_id}/employees",
    tags=["employees"],
    dependencies=[Depends(validate_company_scope)],
)


def _to_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        company_id=employee.company_id,
        name=employee.name,
        email=employee.email,
        role=employee.role,
        department=employee.department,
        dept_head_id=employee.dept_head_id,
    )


@employees_router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
async def upsert_employee(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    actor: DirectoryAdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub directory (HR only)."""
    directory = get_employee_directory()
    employee = EmployeeInfo(
        id=employee_id,
        company_id=company_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        department=payload.department,
        dept_head_id=payload.dept_head_id,
    )
    directory.seed(employee)  # ty: ignore[unresolved-attribute]
    return _to_response(employee)


@employees_router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
async def get_employee(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    actor: ActorDep,
) -> EmployeeResponse:
    """Get employee info from the stub directory."""
    employee = await get_employee_directory().get_employee(company_id, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found", {"employee_id": str(employee_id)})
    return _to_response(employee)


@employees_router.get(
    "",
    response_model=EmployeeListResponse,
)
async def list_employees(
    company_id: uuid.UUID,
    actor: ActorDep,
) -> EmployeeListResponse:
    """List all employees for a company from the stub directory."""
    employees = await get_employee_directory().list_employees(company_id)
    items = [_to_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))
