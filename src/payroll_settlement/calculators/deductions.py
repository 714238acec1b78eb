"""Statutory deduction calculator (pension and health)."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_settlement.calculators.types import (
    DeductionBreakdown,
    DeductionLine,
    round_money,
    to_decimal,
)
from payroll_settlement.config import get_settings
from payroll_settlement.errors import ValidationError

PENSION_CONCEPT = "AFP"
HEALTH_CONCEPT = "Salud"


@dataclass(frozen=True)
class DeductionRates:
    """Statutory withholding rates, as fractions of gross salary."""

    pension: Decimal = Decimal("0.10")
    health: Decimal = Decimal("0.07")

    @classmethod
    def from_settings(cls) -> DeductionRates:
        settings = get_settings()
        return cls(pension=settings.pension_rate, health=settings.health_rate)


class DeductionCalculator:
    """Computes pension and health withholding for a gross salary.

    Line items are always emitted in the order AFP, Salud. Each amount is
    rounded to the currency minor unit and the total is the sum of the
    rounded lines, so line items always add up to the total.
    """

    def __init__(self, rates: DeductionRates | None = None):
        self.rates = rates or DeductionRates()

    def compute_statutory_deductions(self, gross_salary: Decimal | int | str) -> DeductionBreakdown:
        gross = to_decimal(gross_salary)
        if gross < 0:
            raise ValidationError(f"Gross salary cannot be negative: {gross}")

        pension = round_money(gross * self.rates.pension)
        health = round_money(gross * self.rates.health)

        return DeductionBreakdown(
            pension=pension,
            health=health,
            total=pension + health,
            line_items=[
                DeductionLine(concept=PENSION_CONCEPT, amount=pension),
                DeductionLine(concept=HEALTH_CONCEPT, amount=health),
            ],
        )
