"""Attendance to gross salary conversion."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from payroll_settlement.calculators.types import (
    ZERO,
    GrossSalaryBreakdown,
    TimedRecord,
    round_money,
    to_decimal,
)
from payroll_settlement.errors import ValidationError


@dataclass(frozen=True)
class TimeAccountingPolicy:
    """Working time constants for a month of attendance."""

    standard_days_per_month: int = 20
    standard_hours_per_shift: Decimal = Decimal("8")
    overtime_multiplier: Decimal = Decimal("1.5")

    @property
    def standard_monthly_hours(self) -> Decimal:
        return self.standard_days_per_month * self.standard_hours_per_shift


DEFAULT_POLICY = TimeAccountingPolicy()


class TimeAccountingCalculator:
    """Converts attendance records and a base salary into gross salary.

    Rules:
    - No records at all: full attendance is assumed, gross = base salary.
    - Per record, hours up to the standard shift are regular, the rest overtime.
    - Hourly rate = base / (standard days * standard shift hours).
    - Below the standard monthly hours, gross is prorated:
      regular_hours * rate + overtime_hours * rate * multiplier.
    - At or above the standard monthly hours, gross = base + overtime pay.

    Amounts are kept at full Decimal precision internally and rounded to the
    currency minor unit only in the returned breakdown.
    """

    def __init__(self, policy: TimeAccountingPolicy = DEFAULT_POLICY):
        self.policy = policy

    def compute_gross_salary(
        self,
        base_salary: Decimal | int | str,
        records: Iterable[TimedRecord],
    ) -> GrossSalaryBreakdown:
        """Compute the gross salary breakdown for a period."""
        if base_salary is None:
            raise ValidationError("Base salary is required to compute gross salary")
        base = to_decimal(base_salary)
        if base < 0:
            raise ValidationError(f"Base salary cannot be negative: {base}")

        records = list(records)
        policy = self.policy
        hourly_rate = base / policy.standard_monthly_hours

        if not records:
            return GrossSalaryBreakdown(
                base_salary=base,
                hourly_rate=hourly_rate,
                regular_hours=ZERO,
                overtime_hours=ZERO,
                regular_pay=round_money(base),
                overtime_pay=round_money(ZERO),
                gross=round_money(base),
                full_attendance=True,
                assumed_full_attendance=True,
            )

        regular_hours, overtime_hours = self.split_hours(records)

        regular_pay = regular_hours * hourly_rate
        overtime_pay = overtime_hours * hourly_rate * policy.overtime_multiplier

        full_attendance = regular_hours >= policy.standard_monthly_hours
        if full_attendance:
            regular_pay = base

        return GrossSalaryBreakdown(
            base_salary=base,
            hourly_rate=hourly_rate,
            regular_hours=regular_hours,
            overtime_hours=overtime_hours,
            regular_pay=round_money(regular_pay),
            overtime_pay=round_money(overtime_pay),
            gross=round_money(regular_pay + overtime_pay),
            full_attendance=full_attendance,
        )

    def split_hours(self, records: Iterable[TimedRecord]) -> tuple[Decimal, Decimal]:
        """Sum regular and overtime hours over records.

        Open shifts (no hours recorded yet) contribute nothing.
        """
        shift = self.policy.standard_hours_per_shift
        regular = ZERO
        overtime = ZERO

        for record in records:
            if record.hours_worked is None:
                continue
            hours = to_decimal(record.hours_worked)
            if hours < 0:
                raise ValidationError(f"Hours worked cannot be negative: {hours}")
            if hours <= shift:
                regular += hours
            else:
                regular += shift
                overtime += hours - shift

        return regular, overtime


def compute_gross_salary(
    base_salary: Decimal | int | str,
    records: Iterable[TimedRecord],
    policy: TimeAccountingPolicy = DEFAULT_POLICY,
) -> Decimal:
    """Gross salary only, for callers that do not need the breakdown."""
    return TimeAccountingCalculator(policy).compute_gross_salary(base_salary, records).gross
