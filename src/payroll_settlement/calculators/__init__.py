"""Payroll calculators (pure, no I/O)."""

from payroll_settlement.calculators.deductions import (
    HEALTH_CONCEPT,
    PENSION_CONCEPT,
    DeductionCalculator,
    DeductionRates,
)
from payroll_settlement.calculators.time_accounting import (
    TimeAccountingCalculator,
    TimeAccountingPolicy,
    compute_gross_salary,
)
from payroll_settlement.calculators.types import (
    DeductionBreakdown,
    DeductionLine,
    GrossSalaryBreakdown,
    round_money,
)

__all__ = [
    "TimeAccountingCalculator",
    "TimeAccountingPolicy",
    "compute_gross_salary",
    "DeductionCalculator",
    "DeductionRates",
    "PENSION_CONCEPT",
    "HEALTH_CONCEPT",
    "DeductionBreakdown",
    "DeductionLine",
    "GrossSalaryBreakdown",
    "round_money",
]
