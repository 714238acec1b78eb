"""Persistence gateway - the only place the engine talks to the database.

Provides CRUD-by-id and query-by-(employee, period) for the engine's entities,
and the unit-of-work boundary every settlement-affecting operation runs in.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.errors import (
    DuplicateSettlementError,
    NotFoundError,
    PersistenceError,
    SettlementError,
)
from payroll_settlement.models import (
    AttendanceRecord,
    Deduction,
    Employee,
    ProvisionalPayment,
    SalaryPayment,
    Settlement,
)
from payroll_settlement.services.state_machine import SettlementStatus

logger = logging.getLogger(__name__)

ACTIVE_PERIOD_INDEX = "uq_settlement_active_period"


class PersistenceGateway:
    """Database access for the settlement engine over an AsyncSession.

    ``unit_of_work()`` commits on success and rolls back on any failure.
    Nested units join the outermost one, so an operation composed of other
    operations still commits or rolls back as a whole.
    """

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout
        self._depth = 0

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @property
    def in_unit_of_work(self) -> bool:
        return self._depth > 0

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[None]:
        """Run the enclosed block as one transaction."""
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            async with asyncio.timeout(self.timeout):
                yield
                await self.session.flush()
            await self.session.commit()
        except SettlementError:
            await self.session.rollback()
            raise
        except TimeoutError as exc:
            await self.session.rollback()
            logger.error("Unit of work exceeded %ss and was rolled back", self.timeout)
            raise PersistenceError(
                f"Operation timed out after {self.timeout}s; no changes were saved"
            ) from exc
        except SQLAlchemyError as exc:
            logger.exception("Unit of work failed and was rolled back")
            await self.session.rollback()
            raise PersistenceError(f"Storage failure: {exc}") from exc
        except BaseException:
            await self.session.rollback()
            raise
        finally:
            self._depth = 0

    async def flush(self) -> None:
        await self.session.flush()

    # ------------------------------------------------------------------
    # Employees and attendance
    # ------------------------------------------------------------------

    async def get_employee(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    async def list_company_employees(self, company_id: UUID) -> list[Employee]:
        result = await self.session.execute(
            select(Employee)
            .where(Employee.company_id == company_id)
            .order_by(Employee.full_name, Employee.employee_id)
        )
        return list(result.scalars().all())

    async def list_attendance(
        self,
        employee_id: UUID,
        period_start: date,
        period_end: date,
    ) -> list[AttendanceRecord]:
        """Attendance records of an employee with work_date in [start, end]."""
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_date >= period_start,
                AttendanceRecord.work_date <= period_end,
            )
            .order_by(AttendanceRecord.work_date, AttendanceRecord.entry_time)
        )
        return list(result.scalars().all())

    async def find_open_attendance(
        self, employee_id: UUID, work_date: date
    ) -> AttendanceRecord | None:
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_date == work_date,
                AttendanceRecord.exit_time.is_(None),
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def add_attendance(self, record: AttendanceRecord) -> AttendanceRecord:
        self.session.add(record)
        await self.session.flush()
        return record

    # ------------------------------------------------------------------
    # Settlements and deductions
    # ------------------------------------------------------------------

    async def get_settlement(
        self, settlement_id: UUID, for_update: bool = False
    ) -> Settlement:
        query = select(Settlement).where(Settlement.settlement_id == settlement_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        settlement = result.scalar_one_or_none()
        if settlement is None:
            raise NotFoundError("Settlement", settlement_id)
        return settlement

    async def get_settlements(
        self, settlement_ids: Iterable[UUID], for_update: bool = False
    ) -> dict[UUID, Settlement]:
        """Load several settlements at once, keyed by id. Missing ids are absent."""
        ids = list(settlement_ids)
        if not ids:
            return {}
        query = (
            select(Settlement)
            .where(Settlement.settlement_id.in_(ids))
            .order_by(Settlement.settlement_id)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return {s.settlement_id: s for s in result.scalars().all()}

    async def find_active_settlement(
        self, employee_id: UUID, month: int, year: int
    ) -> Settlement | None:
        result = await self.session.execute(
            select(Settlement).where(
                Settlement.employee_id == employee_id,
                Settlement.period_month == month,
                Settlement.period_year == year,
                Settlement.status != SettlementStatus.REJECTED.value,
            )
        )
        return result.scalars().first()

    async def list_settlements(
        self,
        employee_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Settlement]:
        query = select(Settlement)
        if employee_id is not None:
            query = query.where(Settlement.employee_id == employee_id)
        if status is not None:
            query = query.where(Settlement.status == status)
        query = query.order_by(
            Settlement.period_year.desc(),
            Settlement.period_month.desc(),
            Settlement.created_at.desc(),
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def add_settlement(
        self, settlement: Settlement, deductions: list[Deduction]
    ) -> Settlement:
        """Insert a settlement and its deduction lines.

        A violation of the one-active-settlement index means another request
        won the race for the same employee and period.
        """
        self.session.add(settlement)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if _is_active_period_violation(exc):
                raise DuplicateSettlementError(
                    settlement.employee_id,
                    settlement.period_month,
                    settlement.period_year,
                ) from exc
            raise

        for line in deductions:
            line.settlement_id = settlement.settlement_id
        self.session.add_all(deductions)
        await self.session.flush()
        return settlement

    async def list_deductions(self, settlement_id: UUID) -> list[Deduction]:
        result = await self.session.execute(
            select(Deduction)
            .where(Deduction.settlement_id == settlement_id)
            .order_by(Deduction.line_number)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def add_salary_payment(self, payment: SalaryPayment) -> SalaryPayment:
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def add_provisional_payment(
        self, payment: ProvisionalPayment
    ) -> ProvisionalPayment:
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_salary_payment(self, settlement_id: UUID) -> SalaryPayment | None:
        result = await self.session.execute(
            select(SalaryPayment).where(SalaryPayment.settlement_id == settlement_id)
        )
        return result.scalar_one_or_none()

    async def get_provisional_payment(
        self, settlement_id: UUID
    ) -> ProvisionalPayment | None:
        result = await self.session.execute(
            select(ProvisionalPayment).where(
                ProvisionalPayment.settlement_id == settlement_id
            )
        )
        return result.scalar_one_or_none()

    async def list_salary_payments_for_employee(
        self, employee_id: UUID
    ) -> list[SalaryPayment]:
        result = await self.session.execute(
            select(SalaryPayment)
            .join(Settlement, SalaryPayment.settlement_id == Settlement.settlement_id)
            .where(Settlement.employee_id == employee_id)
            .order_by(SalaryPayment.payment_date.desc())
        )
        return list(result.scalars().all())

    async def list_provisional_payments(
        self, start: datetime, end: datetime
    ) -> list[ProvisionalPayment]:
        """Provisional payments with payment_date in [start, end]."""
        result = await self.session.execute(
            select(ProvisionalPayment)
            .where(
                ProvisionalPayment.payment_date >= start,
                ProvisionalPayment.payment_date <= end,
            )
            .order_by(ProvisionalPayment.payment_date)
        )
        return list(result.scalars().all())


def _is_active_period_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return ACTIVE_PERIOD_INDEX in message or (
        "settlement.employee_id" in message and "settlement.period_month" in message
    )
