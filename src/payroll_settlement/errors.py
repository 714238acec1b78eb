"""Error taxonomy for the settlement engine.

Every failure path in the core raises one of these. Callers decide on retry:
only ``PersistenceError`` is retryable, and only as a whole operation.
"""

from __future__ import annotations

from uuid import UUID


class SettlementError(Exception):
    """Base class for all settlement engine errors."""


class ValidationError(SettlementError):
    """Malformed input: bad period, missing base salary, bad payment data."""


class DuplicateSettlementError(SettlementError):
    """An active settlement already exists for the employee and period."""

    def __init__(self, employee_id: UUID, month: int, year: int):
        self.employee_id = employee_id
        self.month = month
        self.year = year
        super().__init__(
            f"Employee {employee_id} already has an active settlement for {month}/{year}"
        )


class InvalidTransitionError(SettlementError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotFoundError(SettlementError):
    """Unknown settlement or employee id."""

    def __init__(self, entity: str, entity_id: UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class AuthorizationError(SettlementError):
    """The acting role may not perform the requested operation."""

    def __init__(self, role: str, operation: str):
        self.role = role
        self.operation = operation
        super().__init__(f"Role '{role}' is not allowed to {operation}")


class PersistenceError(SettlementError):
    """Storage failure during a unit of work. The unit has been rolled back."""
