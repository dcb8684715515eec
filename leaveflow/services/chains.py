"""Approval chain registry.

Maps each leave category to its ordered sequence of approver roles and answers
the permission questions the workflow resolver asks. Every function here is pure
apart from reading the cached settings, so it may be called inside or outside a
transaction.
"""

from __future__ import annotations

from leaveflow.config import get_settings
from leaveflow.models.enums import LeaveCategory, Role, WorkflowAction

DEFAULT_CHAIN: tuple[Role, ...] = (Role.HR_ADMIN, Role.DEPT_HEAD, Role.HR_HEAD, Role.CEO)

_BUILTIN_CHAINS: dict[LeaveCategory, tuple[Role, ...]] = {
    LeaveCategory.CASUAL: (Role.DEPT_HEAD,),
}

# May forward and return, never issue a final decision.
OPERATIONAL_ROLES: frozenset[Role] = frozenset({Role.HR_ADMIN})

# May recall, cancel on behalf of others, decline cancellations and reclassify.
SENIOR_ROLES: frozenset[Role] = frozenset({Role.HR_ADMIN, Role.HR_HEAD, Role.CEO, Role.SYSTEM_ADMIN})

_DECISION_ACTIONS = frozenset({WorkflowAction.APPROVE, WorkflowAction.REJECT})


def chain_for(category: LeaveCategory | str) -> tuple[Role, ...]:
    """Return the ordered approver roles for a category.

    Settings overrides win over the built-in table; unknown categories fall back
    to ``DEFAULT_CHAIN``.
    """
    key = str(category)
    override = get_settings().approval_chains.get(key)
    if override:
        return tuple(Role(role) for role in override)
    try:
        return _BUILTIN_CHAINS.get(LeaveCategory(key), DEFAULT_CHAIN)
    except ValueError:
        return DEFAULT_CHAIN


def step_for(role: Role | str, category: LeaveCategory | str) -> int:
    """1-based position of ``role`` in the chain, 0 when absent."""
    chain = chain_for(category)
    try:
        return chain.index(Role(role)) + 1
    except ValueError:
        return 0


def is_in_chain(role: Role | str, category: LeaveCategory | str) -> bool:
    return step_for(role, category) > 0


def is_final_approver(role: Role | str, category: LeaveCategory | str) -> bool:
    chain = chain_for(category)
    return bool(chain) and chain[-1] == Role(role)


def next_role(role: Role | str, category: LeaveCategory | str) -> Role | None:
    """Role right after ``role`` in the chain, or None if final or absent."""
    chain = chain_for(category)
    step = step_for(role, category)
    if step == 0 or step >= len(chain):
        return None
    return chain[step]


def is_operational(role: Role | str) -> bool:
    return Role(role) in OPERATIONAL_ROLES


def is_senior(role: Role | str) -> bool:
    return Role(role) in SENIOR_ROLES


def can_act(role: Role | str, action: WorkflowAction | str, category: LeaveCategory | str) -> bool:
    """Chain-level permission for an action.

    APPROVE/REJECT belong to the final approver only, FORWARD to non-final chain
    members, RETURN to any chain member. A role outside the chain can never act
    through the chain.
    """
    if not is_in_chain(role, category):
        return False
    action = WorkflowAction(action)
    if action in _DECISION_ACTIONS:
        return is_final_approver(role, category)
    if action == WorkflowAction.FORWARD:
        return not is_final_approver(role, category)
    return action == WorkflowAction.RETURN
