"""Payment orchestrator - records the payment of approved settlements.

Paying a settlement is one unit of work:
1. Transition approved → paid (guarded by SettlementService)
2. Salary payment record for the net salary
3. Optional provisional (pension + health) payment record

Nothing here moves funds; these are ledger records.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from payroll_settlement.calculators import HEALTH_CONCEPT, PENSION_CONCEPT
from payroll_settlement.calculators.types import ZERO, round_money
from payroll_settlement.errors import NotFoundError, ValidationError
from payroll_settlement.models import (
    Deduction,
    ProvisionalPayment,
    SalaryPayment,
    Settlement,
)
from payroll_settlement.models.base import utcnow
from payroll_settlement.services.authorization import Actor, require_role
from payroll_settlement.services.gateway import PersistenceGateway
from payroll_settlement.services.settlement_service import SettlementService
from payroll_settlement.services.state_machine import (
    SettlementStateMachine,
    SettlementStatus,
)

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cheque", "deposito")


@dataclass(frozen=True)
class ProvisionalPaymentData:
    """Request to record the social-security remittance with the payment.

    ``payment_date`` defaults to now; ``period_label`` defaults to the
    payment date's "M/YYYY".
    """

    payment_date: datetime | None = None
    period_label: str | None = None


@dataclass(frozen=True)
class PaymentRequest:
    settlement_id: UUID
    bank: str
    method: str
    provisional: ProvisionalPaymentData | None = None


@dataclass(frozen=True)
class PaymentResult:
    """Result of paying one settlement."""

    settlement: Settlement
    salary_payment: SalaryPayment
    provisional_payment: ProvisionalPayment | None = None


class PaymentOrchestrator:
    """Pays approved settlements.

    Every write of a payment goes through the same unit of work as the
    status change, so a failure at any step leaves the settlement approved
    and no payment rows behind.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        settlements: SettlementService | None = None,
    ):
        self.gateway = gateway
        self.settlements = settlements or SettlementService(gateway)

    async def pay_period(self, request: PaymentRequest, actor: Actor) -> PaymentResult:
        """Pay one approved settlement.

        Raises:
            AuthorizationError: actor is not an administrator
            ValidationError: bad method/bank, or provisional total is not positive
            NotFoundError: unknown settlement
            InvalidTransitionError: settlement is not approved
            PersistenceError: storage failure (everything rolled back)
        """
        require_role(actor, "pay settlements")
        _validate_payment_details(request.bank, request.method)

        async with self.gateway.unit_of_work():
            result = await self._pay(
                request.settlement_id,
                request.bank.strip(),
                request.method,
                request.provisional,
                actor,
            )

        logger.info(
            "Paid settlement %s: %s via %s (%s)",
            request.settlement_id,
            result.salary_payment.amount,
            request.method,
            request.bank.strip(),
        )
        return result

    async def pay_batch(
        self,
        settlement_ids: Sequence[UUID],
        *,
        bank: str,
        method: str,
        actor: Actor,
        provisional: ProvisionalPaymentData | None = None,
    ) -> list[PaymentResult]:
        """Pay several approved settlements, all or nothing.

        Every id is checked before anything is written; any failure leaves
        every settlement in the batch untouched.
        """
        require_role(actor, "pay settlements")
        _validate_payment_details(bank, method)

        ids = list(settlement_ids)
        if not ids:
            raise ValidationError("A payment batch needs at least one settlement")
        if len(set(ids)) != len(ids):
            raise ValidationError("A payment batch may not list a settlement twice")

        results: list[PaymentResult] = []
        async with self.gateway.unit_of_work():
            found = await self.gateway.get_settlements(ids, for_update=True)
            for settlement_id in ids:
                settlement = found.get(settlement_id)
                if settlement is None:
                    raise NotFoundError("Settlement", settlement_id)
                SettlementStateMachine.validate_transition(
                    settlement.status, SettlementStatus.PAID.value
                )

            for settlement_id in ids:
                results.append(
                    await self._pay(settlement_id, bank.strip(), method, provisional, actor)
                )

        logger.info("Paid batch of %d settlements via %s", len(results), method)
        return results

    async def _pay(
        self,
        settlement_id: UUID,
        bank: str,
        method: str,
        provisional: ProvisionalPaymentData | None,
        actor: Actor,
    ) -> PaymentResult:
        settlement = await self.settlements.mark_paid(settlement_id, actor)
        now = utcnow()

        salary_payment = await self.gateway.add_salary_payment(
            SalaryPayment(
                settlement_id=settlement.settlement_id,
                bank=bank,
                method=method,
                amount=settlement.net_salary,
                payment_date=now,
            )
        )

        provisional_payment = None
        if provisional is not None:
            deductions = await self.gateway.list_deductions(settlement.settlement_id)
            provisional_payment = await self.gateway.add_provisional_payment(
                build_provisional_payment(
                    settlement,
                    deductions,
                    payment_date=provisional.payment_date or now,
                    period_label=provisional.period_label,
                )
            )

        return PaymentResult(
            settlement=settlement,
            salary_payment=salary_payment,
            provisional_payment=provisional_payment,
        )

    async def list_payments_for_employee(self, employee_id: UUID) -> list[SalaryPayment]:
        """Salary payments made to an employee, most recent first."""
        await self.gateway.get_employee(employee_id)
        return await self.gateway.list_salary_payments_for_employee(employee_id)


def build_provisional_payment(
    settlement: Settlement,
    deductions: Sequence[Deduction],
    *,
    payment_date: datetime,
    period_label: str | None = None,
) -> ProvisionalPayment:
    """Build the remittance record from a settlement's AFP and Salud lines.

    A concept without a deduction line counts as zero.

    Raises:
        ValidationError: if pension + health is not positive
    """
    pension = _concept_total(deductions, PENSION_CONCEPT)
    health = _concept_total(deductions, HEALTH_CONCEPT)
    total = pension + health
    if total <= ZERO:
        raise ValidationError(
            f"Settlement {settlement.settlement_id} has no pension or health "
            "withholding to remit"
        )

    return ProvisionalPayment(
        settlement_id=settlement.settlement_id,
        payment_date=payment_date,
        period_label=period_label or f"{payment_date.month}/{payment_date.year}",
        total_amount=total,
        pension_amount=pension,
        health_amount=health,
    )


def _concept_total(deductions: Sequence[Deduction], concept: str) -> Decimal:
    return round_money(
        sum((Decimal(d.amount) for d in deductions if d.concept == concept), ZERO)
    )


def _validate_payment_details(bank: str, method: str) -> None:
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Payment method must be one of {', '.join(PAYMENT_METHODS)}, got {method!r}"
        )
    if not bank or not bank.strip():
        raise ValidationError("Bank is required")
