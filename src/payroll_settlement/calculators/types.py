"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

# Currency minor unit
MONEY_PRECISION = Decimal("0.01")
HOURS_PRECISION = Decimal("0.01")

ZERO = Decimal("0")


def round_money(amount: Decimal) -> Decimal:
    """Round amount to the currency minor unit."""
    return amount.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a numeric input to Decimal without going through binary float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class TimedRecord(Protocol):
    """Anything carrying worked hours (ORM AttendanceRecord or a plain value)."""

    @property
    def hours_worked(self) -> Decimal | None: ...


@dataclass(frozen=True)
class GrossSalaryBreakdown:
    """Result of converting attendance into gross salary."""

    base_salary: Decimal
    hourly_rate: Decimal  # unrounded
    regular_hours: Decimal
    overtime_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    gross: Decimal
    full_attendance: bool  # gross governed by base salary + overtime
    assumed_full_attendance: bool = False  # no records at all


@dataclass(frozen=True)
class DeductionLine:
    """One itemized statutory deduction."""

    concept: str
    amount: Decimal


@dataclass(frozen=True)
class DeductionBreakdown:
    """Statutory deductions for a gross salary."""

    pension: Decimal
    health: Decimal
    total: Decimal
    line_items: list[DeductionLine] = field(default_factory=list)

    def amount_for(self, concept: str) -> Decimal:
        for line in self.line_items:
            if line.concept == concept:
                return line.amount
        return ZERO
