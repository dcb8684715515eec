# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path

from leaveflow.exceptions import ForbiddenError
from leaveflow.models.enums import Role
from leaveflow.schemas.auth import ActorContext

# Roles allowed to maintain the employee directory.
_DIRECTORY_ADMIN_ROLES = frozenset({Role.HR_ADMIN, Role.HR_HEAD, Role.SYSTEM_ADMIN})


async def get_actor_context(
    x_company_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: Role = Header(default=Role.EMPLOYEE),
) -> ActorContext:
    """Extract dev actor context from request headers."""
    return ActorContext(company_id=x_company_id, user_id=x_user_id, role=x_role)


ActorDep = Annotated[ActorContext, Depends(get_actor_context)]


async def require_directory_admin(
    actor: ActorDep,
) -> ActorContext:
    """Require an HR or system administrator role."""
    if actor.role not in _DIRECTORY_ADMIN_ROLES:
        raise ForbiddenError("HR or system administrator access required", {"actor_role": actor.role.value})
    return actor


DirectoryAdminDep = Annotated[ActorContext, Depends(require_directory_admin)]


async def validate_company_scope(
    company_id: uuid.UUID = Path(),
    actor: ActorContext = Depends(get_actor_context),
) -> ActorContext:
    """Ensure the path company_id matches the X-Company-Id header."""
    if company_id != actor.company_id:
        raise ForbiddenError("Company ID mismatch", {"company_id": str(company_id)})
    return actor
