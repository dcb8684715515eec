from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from leaveflow.models.enums import LeaveCategory, Role

# ---------------------------------------------------------------------------
# Decision outcomes (tagged union, discriminated on ``kind``)
# ---------------------------------------------------------------------------


class Forwarded(BaseModel):
    """Passed on to the next role in the chain."""

    kind: Literal["FORWARDED"] = "FORWARDED"
    target_role: Role


class Approved(BaseModel):
    """Final approval."""

    kind: Literal["APPROVED"] = "APPROVED"


class Rejected(BaseModel):
    """Final rejection."""

    kind: Literal["REJECTED"] = "REJECTED"


class Returned(BaseModel):
    """Sent back to the requester for modification."""

    kind: Literal["RETURNED"] = "RETURNED"


class CategoryChanged(BaseModel):
    """Audit-only record of a reclassification."""

    kind: Literal["CATEGORY_CHANGED"] = "CATEGORY_CHANGED"
    from_category: LeaveCategory
    to_category: LeaveCategory


Decision = Annotated[
    Forwarded | Approved | Rejected | Returned | CategoryChanged,
    Field(discriminator="kind"),
]

_decision_adapter: TypeAdapter[Decision] = TypeAdapter(Decision)


def parse_decision(data: dict[str, Any]) -> Decision:
    """Rebuild a decision variant from its stored JSON form."""
    return _decision_adapter.validate_python(data)


def dump_decision(decision: Decision) -> dict[str, Any]:
    return decision.model_dump(mode="json")
