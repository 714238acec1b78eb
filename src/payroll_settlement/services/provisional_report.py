"""Monthly provisional (pension + health) remittance report."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from payroll_settlement.calculators.types import ZERO, round_money
from payroll_settlement.models.base import utcnow
from payroll_settlement.services.gateway import PersistenceGateway
from payroll_settlement.services.period import SettlementPeriod


@dataclass(frozen=True)
class ProvisionalReport:
    """Totals of the provisional payments dated in one month."""

    period_label: str
    generated_at: datetime
    payment_count: int
    pension_total: Decimal
    health_total: Decimal
    total: Decimal


class ProvisionalReportService:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def monthly_report(self, month: int, year: int) -> ProvisionalReport:
        """Summarize provisional payments whose payment date falls in the month."""
        period = SettlementPeriod.for_month(month, year)
        payments = await self.gateway.list_provisional_payments(
            period.start_datetime(), period.end_datetime()
        )

        pension = sum((Decimal(p.pension_amount) for p in payments), ZERO)
        health = sum((Decimal(p.health_amount) for p in payments), ZERO)
        return ProvisionalReport(
            period_label=period.label,
            generated_at=utcnow(),
            payment_count=len(payments),
            pension_total=round_money(pension),
            health_total=round_money(health),
            total=round_money(pension + health),
        )
