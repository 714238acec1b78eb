"""Acting user and role guard.

Authentication and role lookup happen upstream; the engine receives an
already-resolved actor and only checks that its role may perform the action.
An employee actor's id is its employee id, so employees reach their own
records only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from payroll_settlement.errors import AuthorizationError


class Role(str, Enum):
    """User roles."""

    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLEADO"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""

    actor_id: UUID
    role: str


# Operation -> roles allowed to perform it
_ADMIN_ONLY = frozenset({Role.ADMIN.value})
_ANY_ROLE = frozenset({Role.ADMIN.value, Role.EMPLOYEE.value})

PERMISSIONS: dict[str, frozenset[str]] = {
    "generate settlements": _ADMIN_ONLY,
    "approve settlements": _ADMIN_ONLY,
    "reject settlements": _ADMIN_ONLY,
    "pay settlements": _ADMIN_ONLY,
    "view payment reports": _ADMIN_ONLY,
    "view settlements": _ANY_ROLE,
    "view attendance": _ANY_ROLE,
    "record attendance": _ANY_ROLE,
}


def require_role(actor: Actor, operation: str) -> None:
    """Raise AuthorizationError unless the actor's role may perform operation."""
    allowed = PERMISSIONS.get(operation, frozenset())
    if actor.role not in allowed:
        raise AuthorizationError(actor.role, operation)


def require_employee_access(actor: Actor, employee_id: UUID, operation: str) -> None:
    """Like require_role, and non-admins may only act on their own employee id."""
    require_role(actor, operation)
    if actor.role != Role.ADMIN.value and actor.actor_id != employee_id:
        raise AuthorizationError(actor.role, f"{operation} of another employee")
