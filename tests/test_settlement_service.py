"""Tests for settlement generation and lifecycle."""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from payroll_settlement.errors import (
    AuthorizationError,
    DuplicateSettlementError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from payroll_settlement.models import Deduction, Settlement
from payroll_settlement.services import PersistenceGateway, SettlementService


async def count_settlements(session, employee_id) -> int:
    return await session.scalar(
        select(func.count()).select_from(Settlement).where(Settlement.employee_id == employee_id)
    )


class TestGenerate:
    """Test settlement generation."""

    async def test_generate_without_attendance(self, settlement_service, employee, admin):
        """No attendance: gross = base salary, deductions at 10% + 7%."""
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        settlement = breakdown.settlement

        assert settlement.status == "pending"
        assert settlement.gross_salary == Decimal("900000.00")
        assert settlement.total_deductions == Decimal("153000.00")
        assert settlement.net_salary == Decimal("747000.00")
        assert settlement.period_start == date(2024, 3, 1)
        assert settlement.period_end == date(2024, 3, 31)
        assert [(d.line_number, d.concept, d.amount) for d in breakdown.deductions] == [
            (1, "AFP", Decimal("90000.00")),
            (2, "Salud", Decimal("63000.00")),
        ]

    async def test_generate_full_month(
        self, settlement_service, employee, shift_factory, admin
    ):
        """20 shifts of 8 hours pay exactly the base salary."""
        await shift_factory(employee, date(2024, 5, 1), [Decimal("8")] * 20)

        breakdown = await settlement_service.generate(employee.employee_id, 5, 2024, admin)

        assert breakdown.settlement.gross_salary == Decimal("900000.00")
        assert breakdown.settlement.regular_hours == Decimal("160")
        assert breakdown.settlement.overtime_hours == Decimal("0")

    async def test_one_million_gross(self, settlement_service, employee_factory, admin):
        employee = await employee_factory(base_salary=Decimal("1000000"))

        breakdown = await settlement_service.generate(employee.employee_id, 1, 2024, admin)

        assert breakdown.settlement.total_deductions == Decimal("170000.00")
        assert breakdown.settlement.net_salary == Decimal("830000.00")

    async def test_only_period_attendance_counts(
        self, settlement_service, employee, shift_factory, admin
    ):
        """Records outside the month are ignored."""
        await shift_factory(employee, date(2024, 5, 31), [Decimal("8"), Decimal("8")])

        breakdown = await settlement_service.generate(employee.employee_id, 5, 2024, admin)

        # Only May 31 counts: 8h at 900000 / 160
        assert breakdown.settlement.gross_salary == Decimal("45000.00")

    async def test_deductions_persisted(self, session, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        stored = (
            await session.execute(
                select(Deduction).where(
                    Deduction.settlement_id == breakdown.settlement.settlement_id
                )
            )
        ).scalars().all()
        assert sum(d.amount for d in stored) == breakdown.settlement.total_deductions

    async def test_unknown_employee(self, settlement_service, admin):
        with pytest.raises(NotFoundError):
            await settlement_service.generate(uuid4(), 3, 2024, admin)

    async def test_missing_base_salary(self, settlement_service, employee_factory, admin):
        employee = await employee_factory(base_salary=None)

        with pytest.raises(ValidationError):
            await settlement_service.generate(employee.employee_id, 3, 2024, admin)

    async def test_invalid_month(self, settlement_service, employee, admin):
        with pytest.raises(ValidationError):
            await settlement_service.generate(employee.employee_id, 13, 2024, admin)

    async def test_requires_admin(self, settlement_service, employee, clerk):
        with pytest.raises(AuthorizationError):
            await settlement_service.generate(employee.employee_id, 3, 2024, clerk)


class TestDuplicatePrevention:
    """One active settlement per employee and period."""

    async def test_duplicate_while_pending(
        self, session, settlement_service, employee, admin
    ):
        employee_id = employee.employee_id
        await settlement_service.generate(employee_id, 3, 2024, admin)

        with pytest.raises(DuplicateSettlementError):
            await settlement_service.generate(employee_id, 3, 2024, admin)

        assert await count_settlements(session, employee_id) == 1

    async def test_duplicate_while_approved(
        self, session, settlement_service, employee, admin
    ):
        employee_id = employee.employee_id
        breakdown = await settlement_service.generate(employee_id, 3, 2024, admin)
        await settlement_service.approve(breakdown.settlement.settlement_id, admin)

        with pytest.raises(DuplicateSettlementError):
            await settlement_service.generate(employee_id, 3, 2024, admin)

        assert await count_settlements(session, employee_id) == 1

    async def test_rejected_does_not_block(self, settlement_service, employee, admin):
        first = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        await settlement_service.reject(first.settlement.settlement_id, "wrong hours", admin)

        second = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        assert second.settlement.settlement_id != first.settlement.settlement_id
        assert second.settlement.status == "pending"

    async def test_other_period_not_blocked(self, settlement_service, employee, admin):
        await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        breakdown = await settlement_service.generate(employee.employee_id, 4, 2024, admin)
        assert breakdown.settlement.period_month == 4

    async def test_unique_index_backs_the_check(self, gateway, settlement_service, employee, admin):
        """A racing insert that slipped past the check is still refused."""
        existing = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        s = existing.settlement
        clone = Settlement(
            employee_id=s.employee_id,
            period_month=s.period_month,
            period_year=s.period_year,
            period_start=s.period_start,
            period_end=s.period_end,
            status="pending",
            regular_hours=s.regular_hours,
            overtime_hours=s.overtime_hours,
            regular_pay=s.regular_pay,
            overtime_pay=s.overtime_pay,
            gross_salary=s.gross_salary,
            total_deductions=s.total_deductions,
            net_salary=s.net_salary,
        )

        with pytest.raises(DuplicateSettlementError):
            async with gateway.unit_of_work():
                await gateway.add_settlement(clone, [])


class TestGenerateMany:
    async def test_reports_successes_and_failures(
        self, settlement_service, employee, employee_factory, admin
    ):
        first_id = employee.employee_id
        other_id = (await employee_factory(full_name="Second Employee")).employee_id
        no_salary_id = (await employee_factory(base_salary=None, full_name="No Salary")).employee_id
        missing = uuid4()

        outcome = await settlement_service.generate_many(
            [first_id, no_salary_id, other_id, missing],
            6,
            2024,
            admin,
        )

        assert {s.employee_id for s in outcome.succeeded} == {first_id, other_id}
        assert all(s.status == "pending" for s in outcome.succeeded)
        assert {f.employee_id for f in outcome.failed} == {no_salary_id, missing}

    async def test_existing_settlement_reported_as_failure(
        self, settlement_service, employee, admin
    ):
        await settlement_service.generate(employee.employee_id, 6, 2024, admin)

        outcome = await settlement_service.generate_many([employee.employee_id], 6, 2024, admin)

        assert outcome.succeeded == []
        assert "already has an active settlement" in outcome.failed[0].error

    async def test_requires_admin(self, settlement_service, employee, clerk):
        with pytest.raises(AuthorizationError):
            await settlement_service.generate_many([employee.employee_id], 6, 2024, clerk)


class TestGenerateForCompany:
    """Company-wide generation looks the employees up itself."""

    async def test_generates_for_every_company_employee(
        self, settlement_service, employee, employee_factory, admin
    ):
        company_id = uuid4()
        first = await employee_factory(full_name="Ana Rojas", company_id=company_id)
        second = await employee_factory(full_name="Bruno Díaz", company_id=company_id)
        no_salary = await employee_factory(
            full_name="Carla Soto", company_id=company_id, base_salary=None
        )
        expected = {first.employee_id, second.employee_id}
        no_salary_id = no_salary.employee_id
        outsider_id = employee.employee_id

        outcome = await settlement_service.generate_for_company(company_id, 6, 2024, admin)

        assert {s.employee_id for s in outcome.succeeded} == expected
        assert [f.employee_id for f in outcome.failed] == [no_salary_id]
        assert outsider_id not in {s.employee_id for s in outcome.succeeded}

    async def test_company_without_employees(self, settlement_service, admin):
        outcome = await settlement_service.generate_for_company(uuid4(), 6, 2024, admin)

        assert outcome.succeeded == []
        assert outcome.failed == []

    async def test_requires_admin(self, settlement_service, clerk):
        with pytest.raises(AuthorizationError):
            await settlement_service.generate_for_company(uuid4(), 6, 2024, clerk)


class TestTransitions:
    """Test approve / reject / mark_paid."""

    async def test_approve_records_approver(self, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        settlement = await settlement_service.approve(breakdown.settlement.settlement_id, admin)

        assert settlement.status == "approved"
        assert settlement.approved_by == admin.actor_id
        assert settlement.approved_at is not None

    async def test_double_approve_raises(self, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        settlement_id = breakdown.settlement.settlement_id
        await settlement_service.approve(settlement_id, admin)

        with pytest.raises(InvalidTransitionError):
            await settlement_service.approve(settlement_id, admin)

        reloaded = await settlement_service.get_settlement(settlement_id)
        assert reloaded.status == "approved"

    async def test_reject_records_reason(self, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        settlement = await settlement_service.reject(
            breakdown.settlement.settlement_id, "  hours disputed  ", admin
        )

        assert settlement.status == "rejected"
        assert settlement.rejection_reason == "hours disputed"
        assert settlement.rejected_at is not None

    async def test_reject_requires_reason(self, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        with pytest.raises(ValidationError):
            await settlement_service.reject(breakdown.settlement.settlement_id, "   ", admin)

    async def test_cannot_reject_approved(self, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        settlement_id = breakdown.settlement.settlement_id
        await settlement_service.approve(settlement_id, admin)

        with pytest.raises(InvalidTransitionError):
            await settlement_service.reject(settlement_id, "too late", admin)

    async def test_mark_paid_requires_approval(self, settlement_service, employee, admin):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        with pytest.raises(InvalidTransitionError, match="approved before payment"):
            await settlement_service.mark_paid(breakdown.settlement.settlement_id, admin)

    async def test_approve_requires_admin(self, settlement_service, employee, admin, clerk):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)

        with pytest.raises(AuthorizationError):
            await settlement_service.approve(breakdown.settlement.settlement_id, clerk)

    async def test_unknown_settlement(self, settlement_service, admin):
        with pytest.raises(NotFoundError):
            await settlement_service.approve(uuid4(), admin)

    async def test_stale_write_is_refused(self, session, settlement_service, employee, admin):
        """A concurrent change bumps the version; the second write must not win."""
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        settlement = breakdown.settlement

        # Another writer updates the row behind this session's back
        await session.execute(
            update(Settlement.__table__)
            .where(Settlement.__table__.c.settlement_id == settlement.settlement_id)
            .values(version=settlement.version + 1)
        )

        with pytest.raises(InvalidTransitionError, match="modified concurrently"):
            await settlement_service.approve(settlement.settlement_id, admin)


class TestUnitOfWork:
    async def test_timeout_rolls_back(self, session, employee, admin, monkeypatch):
        employee_id = employee.employee_id
        gateway = PersistenceGateway(session, timeout=0.05)
        service = SettlementService(gateway)
        original = gateway.list_attendance

        async def slow_list_attendance(*args, **kwargs):
            await asyncio.sleep(1)
            return await original(*args, **kwargs)

        monkeypatch.setattr(gateway, "list_attendance", slow_list_attendance)

        with pytest.raises(PersistenceError, match="timed out"):
            await service.generate(employee_id, 3, 2024, admin)

        assert await count_settlements(session, employee_id) == 0
        assert gateway.in_unit_of_work is False


class TestReadAccessors:
    async def test_breakdown_and_lists(self, settlement_service, employee, admin):
        march = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        april = await settlement_service.generate(employee.employee_id, 4, 2024, admin)
        await settlement_service.approve(april.settlement.settlement_id, admin)

        breakdown = await settlement_service.get_breakdown(march.settlement.settlement_id)
        assert [d.concept for d in breakdown.deductions] == ["AFP", "Salud"]

        listed = await settlement_service.list_for_employee(employee.employee_id)
        assert [s.period_month for s in listed] == [4, 3]

        approved = await settlement_service.list_by_status("approved")
        assert [s.settlement_id for s in approved] == [april.settlement.settlement_id]

    async def test_unknown_status(self, settlement_service):
        with pytest.raises(ValidationError):
            await settlement_service.list_by_status("archived")
