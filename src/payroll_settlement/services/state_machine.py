"""Settlement state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from payroll_settlement.errors import InvalidTransitionError


class SettlementStatus(str, Enum):
    """Settlement status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class SettlementStateMachine:
    """State machine for settlement status transitions.

    Allowed transitions:
    - pending → approved
    - pending → rejected
    - approved → paid

    pending is entered only at creation. rejected and paid are terminal; after
    a rejection a new settlement may be generated for the same period.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        SettlementStatus.PENDING: [SettlementStatus.APPROVED, SettlementStatus.REJECTED],
        SettlementStatus.APPROVED: [SettlementStatus.PAID],
        SettlementStatus.REJECTED: [],  # Terminal state
        SettlementStatus.PAID: [],  # Terminal state
    }

    # Statuses that block generating another settlement for the same period
    ACTIVE = {
        SettlementStatus.PENDING,
        SettlementStatus.APPROVED,
        SettlementStatus.PAID,
    }

    TERMINAL = {
        SettlementStatus.REJECTED,
        SettlementStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if cls.can_transition(from_status, to_status):
            return

        reason = None
        if to_status == SettlementStatus.PAID and from_status == SettlementStatus.PENDING:
            reason = "settlement must be approved before payment"
        elif from_status == to_status:
            reason = f"settlement is already {from_status}"
        elif from_status in cls.TERMINAL:
            reason = f"'{from_status}' is a terminal state"
        raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_active(cls, status: str) -> bool:
        """Check if a settlement in this status blocks regeneration."""
        return status in cls.ACTIVE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
