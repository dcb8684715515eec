"""Audit trail.

``write_audit_log`` builds the entry inside the caller's transaction, so it
commits or rolls back together with the state change it describes. Once the
transaction has committed, ``deliver_audit_entry`` hands the entry to the
external sink; delivery failures are logged and never propagate, because the
committed business state is the source of truth.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import select
from sqlmodel import col

from leaveflow.models.audit import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from leaveflow.models.enums import AuditEntityType
    from leaveflow.schemas.auth import ActorContext

logger = logging.getLogger(__name__)


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    data: dict[str, Any] = {}
    for key, value in model.model_dump().items():
        if isinstance(value, uuid.UUID):
            data[key] = str(value)
        elif isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
        else:
            data[key] = value
    return data


async def write_audit_log(
    session: AsyncSession,
    *,
    actor: ActorContext,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: str,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Write an immutable audit log entry within the caller's transaction."""
    entry = AuditLog(
        company_id=actor.company_id,
        actor_id=actor.user_id,
        actor_role=actor.role.value,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def list_audit_entries(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_id: uuid.UUID,
) -> list[AuditLog]:
    """Audit entries for one entity, oldest first."""
    result = await session.execute(
        select(AuditLog)
        .where(col(AuditLog.company_id) == company_id, col(AuditLog.entity_id) == entity_id)
        .order_by(col(AuditLog.created_at), col(AuditLog.id))
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# External sink
# ---------------------------------------------------------------------------


@runtime_checkable
class AuditSink(Protocol):
    """Interface for downstream audit delivery (SIEM, event bus, ...)."""

    async def record(self, entry: dict[str, Any]) -> None:
        """Deliver one committed audit entry."""
        ...


class LoggingAuditSink:
    """Default sink: emits each entry on the ``leaveflow.audit`` logger."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("leaveflow.audit")

    async def record(self, entry: dict[str, Any]) -> None:
        self._logger.info(
            "audit action=%s entity=%s actor=%s",
            entry.get("action"),
            entry.get("entity_id"),
            entry.get("actor_id"),
        )


class InMemoryAuditSink:
    """Collects delivered entries; used in tests."""

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    async def record(self, entry: dict[str, Any]) -> None:
        self.entries.append(entry)


_audit_sink: AuditSink = LoggingAuditSink()


def get_audit_sink() -> AuditSink:
    return _audit_sink


def set_audit_sink(sink: AuditSink) -> None:
    """Override the sink (for testing or production wiring)."""
    global _audit_sink
    _audit_sink = sink


async def deliver_audit_entry(entry: AuditLog) -> bool:
    """Hand a committed entry to the sink. Returns False when delivery failed."""
    payload = model_to_audit_dict(entry)
    try:
        await get_audit_sink().record(payload)
    except Exception:
        # Business state is already committed; delivery is best-effort.
        logger.exception("audit_delivery_failed entry=%s action=%s", payload.get("id"), payload.get("action"))
        return False
    return True
