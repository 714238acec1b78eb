"""Settlement service - generation and lifecycle of monthly settlements."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm.exc import StaleDataError

from payroll_settlement.calculators import (
    DeductionCalculator,
    DeductionRates,
    TimeAccountingCalculator,
)
from payroll_settlement.errors import (
    DuplicateSettlementError,
    InvalidTransitionError,
    SettlementError,
    ValidationError,
)
from payroll_settlement.models import Deduction, Settlement
from payroll_settlement.models.base import utcnow
from payroll_settlement.services.authorization import Actor, require_role
from payroll_settlement.services.gateway import PersistenceGateway
from payroll_settlement.services.period import SettlementPeriod, has_active_settlement
from payroll_settlement.services.state_machine import (
    SettlementStateMachine,
    SettlementStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class SettlementBreakdown:
    """A settlement with its deduction lines."""

    settlement: Settlement
    deductions: list[Deduction]

    @property
    def status(self) -> str:
        return self.settlement.status


@dataclass
class GenerationFailure:
    employee_id: UUID
    error: str


@dataclass
class BulkGenerationResult:
    """Outcome of generating settlements for several employees."""

    succeeded: list[Settlement] = field(default_factory=list)
    failed: list[GenerationFailure] = field(default_factory=list)


class SettlementService:
    """Service for managing the settlement lifecycle.

    Operations:
    - generate: compute gross/deductions/net and persist a pending settlement
    - approve: pending → approved, recording approver and timestamp
    - reject: pending → rejected, recording reason and timestamp
    - mark_paid: approved → paid (called by the payment orchestrator)

    Each operation is one unit of work against the gateway.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        time_calculator: TimeAccountingCalculator | None = None,
        deduction_calculator: DeductionCalculator | None = None,
    ):
        self.gateway = gateway
        self.time_calculator = time_calculator or TimeAccountingCalculator()
        self.deduction_calculator = deduction_calculator or DeductionCalculator(
            DeductionRates.from_settings()
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        employee_id: UUID,
        month: int,
        year: int,
        actor: Actor,
    ) -> SettlementBreakdown:
        """Generate a pending settlement for an employee and month.

        Raises:
            ValidationError: malformed period or employee without base salary
            NotFoundError: unknown employee
            DuplicateSettlementError: an active settlement already exists
        """
        require_role(actor, "generate settlements")
        period = SettlementPeriod.for_month(month, year)

        async with self.gateway.unit_of_work():
            employee = await self.gateway.get_employee(employee_id)
            if employee.base_salary is None:
                raise ValidationError(f"Employee {employee_id} has no base salary")

            if await has_active_settlement(self.gateway, employee_id, period):
                logger.warning(
                    "Duplicate settlement request for employee %s period %s",
                    employee_id,
                    period.label,
                )
                raise DuplicateSettlementError(employee_id, month, year)

            records = await self.gateway.list_attendance(
                employee_id, period.start, period.end
            )
            gross = self.time_calculator.compute_gross_salary(employee.base_salary, records)
            deductions = self.deduction_calculator.compute_statutory_deductions(gross.gross)
            net = gross.gross - deductions.total
            if net < 0:
                raise ValidationError(
                    f"Deductions {deductions.total} exceed gross salary {gross.gross}"
                )

            settlement = Settlement(
                employee_id=employee_id,
                period_month=period.month,
                period_year=period.year,
                period_start=period.start,
                period_end=period.end,
                status=SettlementStatus.PENDING.value,
                regular_hours=gross.regular_hours,
                overtime_hours=gross.overtime_hours,
                regular_pay=gross.regular_pay,
                overtime_pay=gross.overtime_pay,
                gross_salary=gross.gross,
                total_deductions=deductions.total,
                net_salary=net,
            )
            lines = [
                Deduction(line_number=i, concept=line.concept, amount=line.amount)
                for i, line in enumerate(deductions.line_items, start=1)
            ]
            await self.gateway.add_settlement(settlement, lines)

        logger.info(
            "Generated settlement %s for employee %s period %s (gross=%s net=%s)",
            settlement.settlement_id,
            employee_id,
            period.label,
            settlement.gross_salary,
            settlement.net_salary,
        )
        return SettlementBreakdown(settlement=settlement, deductions=lines)

    async def generate_many(
        self,
        employee_ids: Iterable[UUID],
        month: int,
        year: int,
        actor: Actor,
    ) -> BulkGenerationResult:
        """Generate settlements for several employees.

        Each employee is its own unit of work; one failure does not affect
        the others and is reported in ``failed``.
        """
        require_role(actor, "generate settlements")
        SettlementPeriod.for_month(month, year)

        outcome = BulkGenerationResult()
        succeeded_ids: list[UUID] = []
        for employee_id in employee_ids:
            try:
                breakdown = await self.generate(employee_id, month, year, actor)
            except SettlementError as exc:
                outcome.failed.append(GenerationFailure(employee_id=employee_id, error=str(exc)))
            else:
                succeeded_ids.append(breakdown.settlement.settlement_id)

        # A rolled-back failure expires everything loaded before it
        found = await self.gateway.get_settlements(succeeded_ids)
        outcome.succeeded = [found[settlement_id] for settlement_id in succeeded_ids]

        logger.info(
            "Generated %d settlements for %d/%d (%d failed)",
            len(outcome.succeeded),
            month,
            year,
            len(outcome.failed),
        )
        return outcome

    async def generate_for_company(
        self,
        company_id: UUID,
        month: int,
        year: int,
        actor: Actor,
    ) -> BulkGenerationResult:
        """Generate settlements for every employee of a company.

        A company without employees yields an empty result.
        """
        require_role(actor, "generate settlements")
        employees = await self.gateway.list_company_employees(company_id)
        employee_ids = [employee.employee_id for employee in employees]
        logger.info(
            "Generating %d/%d settlements for company %s (%d employees)",
            month,
            year,
            company_id,
            len(employee_ids),
        )
        return await self.generate_many(employee_ids, month, year, actor)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def approve(self, settlement_id: UUID, actor: Actor) -> Settlement:
        """Approve a pending settlement."""
        require_role(actor, "approve settlements")

        async with self.gateway.unit_of_work():
            settlement = await self.gateway.get_settlement(settlement_id, for_update=True)
            now = utcnow()
            await self._transition(
                settlement,
                SettlementStatus.APPROVED,
                approved_by=actor.actor_id,
                approved_at=now,
            )

        logger.info(
            "Settlement %s (%s) approved by %s",
            settlement_id,
            settlement.period_label,
            actor.actor_id,
        )
        return settlement

    async def reject(self, settlement_id: UUID, reason: str, actor: Actor) -> Settlement:
        """Reject a pending settlement. A new one may then be generated."""
        require_role(actor, "reject settlements")
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")

        async with self.gateway.unit_of_work():
            settlement = await self.gateway.get_settlement(settlement_id, for_update=True)
            await self._transition(
                settlement,
                SettlementStatus.REJECTED,
                rejection_reason=reason.strip(),
                rejected_at=utcnow(),
            )

        logger.info(
            "Settlement %s (%s) rejected by %s",
            settlement_id,
            settlement.period_label,
            actor.actor_id,
        )
        return settlement

    async def mark_paid(self, settlement_id: UUID, actor: Actor) -> Settlement:
        """Mark an approved settlement as paid.

        Payment records are the orchestrator's concern; call this through
        PaymentOrchestrator so both land in the same unit of work.
        """
        require_role(actor, "pay settlements")

        async with self.gateway.unit_of_work():
            settlement = await self.gateway.get_settlement(settlement_id, for_update=True)
            await self._transition(settlement, SettlementStatus.PAID, paid_at=utcnow())

        return settlement

    async def _transition(
        self,
        settlement: Settlement,
        to_status: SettlementStatus,
        **changes: object,
    ) -> None:
        """Validate, apply and flush a status change."""
        from_status = settlement.status
        try:
            SettlementStateMachine.validate_transition(from_status, to_status.value)
        except InvalidTransitionError:
            logger.warning(
                "Rejected transition %s → %s for settlement %s",
                from_status,
                to_status.value,
                settlement.settlement_id,
            )
            raise

        settlement.status = to_status.value
        for name, value in changes.items():
            setattr(settlement, name, value)

        try:
            await self.gateway.flush()
        except StaleDataError as exc:
            raise InvalidTransitionError(
                from_status,
                to_status.value,
                "settlement was modified concurrently",
            ) from exc

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    async def get_settlement(self, settlement_id: UUID) -> Settlement:
        return await self.gateway.get_settlement(settlement_id)

    async def get_breakdown(self, settlement_id: UUID) -> SettlementBreakdown:
        settlement = await self.gateway.get_settlement(settlement_id)
        deductions = await self.gateway.list_deductions(settlement_id)
        return SettlementBreakdown(settlement=settlement, deductions=deductions)

    async def list_for_employee(self, employee_id: UUID) -> list[Settlement]:
        return await self.list_settlements(employee_id=employee_id)

    async def list_by_status(self, status: str) -> list[Settlement]:
        return await self.list_settlements(status=status)

    async def list_settlements(
        self,
        employee_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Settlement]:
        """Settlements newest period first, optionally filtered."""
        if status is not None and status not in SettlementStateMachine.VALID_TRANSITIONS:
            raise ValidationError(f"Unknown settlement status '{status}'")
        return await self.gateway.list_settlements(employee_id=employee_id, status=status)
