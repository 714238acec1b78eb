"""Tests for settlement payment.

A payment is one unit of work: the paid transition, the salary payment and
the optional provisional payment land together or not at all.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from payroll_settlement.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from payroll_settlement.models import SalaryPayment
from payroll_settlement.services import PaymentRequest, ProvisionalPaymentData
from payroll_settlement.services.payment_orchestrator import build_provisional_payment


async def approved_settlement(settlement_service, employee_id, admin, month=3, year=2024):
    breakdown = await settlement_service.generate(employee_id, month, year, admin)
    settlement = await settlement_service.approve(breakdown.settlement.settlement_id, admin)
    return settlement.settlement_id


async def salary_payment_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(SalaryPayment))


class TestPayPeriod:
    """Test paying a single settlement."""

    async def test_generate_approve_pay(
        self, settlement_service, orchestrator, employee_factory, admin
    ):
        """Full scenario: the payment amount equals the net salary."""
        employee = await employee_factory(base_salary=Decimal("1000000"))
        settlement_id = await approved_settlement(
            settlement_service, employee.employee_id, admin
        )

        result = await orchestrator.pay_period(
            PaymentRequest(settlement_id=settlement_id, bank="Banco Estado", method="deposito"),
            admin,
        )

        assert result.settlement.status == "paid"
        assert result.settlement.paid_at is not None
        assert result.salary_payment.amount == Decimal("830000.00")
        assert result.salary_payment.bank == "Banco Estado"
        assert result.salary_payment.method == "deposito"
        assert result.provisional_payment is None

    async def test_with_provisional_payment(
        self, gateway, settlement_service, orchestrator, employee_factory, admin
    ):
        employee = await employee_factory(base_salary=Decimal("1000000"))
        settlement_id = await approved_settlement(
            settlement_service, employee.employee_id, admin
        )
        paid_on = datetime(2024, 4, 5, 10, 30, tzinfo=timezone.utc)

        result = await orchestrator.pay_period(
            PaymentRequest(
                settlement_id=settlement_id,
                bank="Banco Estado",
                method="cheque",
                provisional=ProvisionalPaymentData(payment_date=paid_on),
            ),
            admin,
        )

        provisional = result.provisional_payment
        assert provisional.pension_amount == Decimal("100000.00")
        assert provisional.health_amount == Decimal("70000.00")
        assert provisional.total_amount == Decimal("170000.00")
        assert provisional.period_label == "4/2024"
        assert (await gateway.get_provisional_payment(settlement_id)) is provisional

    async def test_provisional_label_override(
        self, settlement_service, orchestrator, employee, admin
    ):
        settlement_id = await approved_settlement(settlement_service, employee.employee_id, admin)

        result = await orchestrator.pay_period(
            PaymentRequest(
                settlement_id=settlement_id,
                bank="Banco Estado",
                method="cheque",
                provisional=ProvisionalPaymentData(period_label="3/2024"),
            ),
            admin,
        )

        assert result.provisional_payment.period_label == "3/2024"

    async def test_pay_pending_raises(
        self, session, settlement_service, orchestrator, employee, admin
    ):
        breakdown = await settlement_service.generate(employee.employee_id, 3, 2024, admin)
        settlement_id = breakdown.settlement.settlement_id

        with pytest.raises(InvalidTransitionError):
            await orchestrator.pay_period(
                PaymentRequest(settlement_id=settlement_id, bank="Banco", method="cheque"),
                admin,
            )

        reloaded = await settlement_service.get_settlement(settlement_id)
        assert reloaded.status == "pending"
        assert await salary_payment_count(session) == 0

    async def test_pay_twice_raises(self, session, settlement_service, orchestrator, employee, admin):
        settlement_id = await approved_settlement(settlement_service, employee.employee_id, admin)
        request = PaymentRequest(settlement_id=settlement_id, bank="Banco", method="cheque")
        await orchestrator.pay_period(request, admin)

        with pytest.raises(InvalidTransitionError):
            await orchestrator.pay_period(request, admin)

        assert await salary_payment_count(session) == 1

    @pytest.mark.parametrize(
        "bank,method",
        [("Banco", "efectivo"), ("Banco", ""), ("", "cheque"), ("   ", "deposito")],
    )
    async def test_invalid_payment_details(
        self, settlement_service, orchestrator, employee, admin, bank, method
    ):
        settlement_id = await approved_settlement(settlement_service, employee.employee_id, admin)

        with pytest.raises(ValidationError):
            await orchestrator.pay_period(
                PaymentRequest(settlement_id=settlement_id, bank=bank, method=method),
                admin,
            )

    async def test_requires_admin(self, settlement_service, orchestrator, employee, admin, clerk):
        settlement_id = await approved_settlement(settlement_service, employee.employee_id, admin)

        with pytest.raises(AuthorizationError):
            await orchestrator.pay_period(
                PaymentRequest(settlement_id=settlement_id, bank="Banco", method="cheque"),
                clerk,
            )

    async def test_unknown_settlement(self, orchestrator, admin):
        with pytest.raises(NotFoundError):
            await orchestrator.pay_period(
                PaymentRequest(settlement_id=uuid4(), bank="Banco", method="cheque"),
                admin,
            )

    async def test_payments_by_employee(
        self, settlement_service, orchestrator, employee, admin
    ):
        employee_id = employee.employee_id
        for month in (3, 4):
            settlement_id = await approved_settlement(
                settlement_service, employee_id, admin, month=month
            )
            await orchestrator.pay_period(
                PaymentRequest(settlement_id=settlement_id, bank="Banco", method="cheque"),
                admin,
            )

        payments = await orchestrator.list_payments_for_employee(employee_id)

        assert len(payments) == 2
        assert all(p.amount == Decimal("747000.00") for p in payments)


class TestPaymentAtomicity:
    """A failure at any step leaves the settlement approved with no payments."""

    async def test_storage_failure_rolls_back(
        self, session, gateway, settlement_service, orchestrator, employee, admin, monkeypatch
    ):
        settlement_id = await approved_settlement(settlement_service, employee.employee_id, admin)

        async def failing_add_salary_payment(payment):
            raise OperationalError("INSERT INTO salary_payment", {}, Exception("disk I/O error"))

        monkeypatch.setattr(gateway, "add_salary_payment", failing_add_salary_payment)

        with pytest.raises(PersistenceError):
            await orchestrator.pay_period(
                PaymentRequest(settlement_id=settlement_id, bank="Banco", method="cheque"),
                admin,
            )

        reloaded = await settlement_service.get_settlement(settlement_id)
        assert reloaded.status == "approved"
        assert reloaded.paid_at is None
        assert await gateway.get_salary_payment(settlement_id) is None

    async def test_zero_provisional_total_rolls_back(
        self, session, gateway, settlement_service, orchestrator, employee_factory, admin
    ):
        """No withholding to remit: nothing is paid."""
        employee = await employee_factory(base_salary=Decimal("0"))
        settlement_id = await approved_settlement(
            settlement_service, employee.employee_id, admin
        )

        with pytest.raises(ValidationError):
            await orchestrator.pay_period(
                PaymentRequest(
                    settlement_id=settlement_id,
                    bank="Banco",
                    method="cheque",
                    provisional=ProvisionalPaymentData(),
                ),
                admin,
            )

        reloaded = await settlement_service.get_settlement(settlement_id)
        assert reloaded.status == "approved"
        assert await salary_payment_count(session) == 0


class TestPayBatch:
    """Batch payment is all or nothing."""

    async def test_pays_every_settlement(
        self, settlement_service, orchestrator, employee, employee_factory, admin
    ):
        other = await employee_factory(full_name="Second Employee")
        first_id = await approved_settlement(settlement_service, employee.employee_id, admin)
        second_id = await approved_settlement(settlement_service, other.employee_id, admin)

        results = await orchestrator.pay_batch(
            [first_id, second_id], bank="Banco", method="deposito", actor=admin
        )

        assert [r.settlement.settlement_id for r in results] == [first_id, second_id]
        assert all(r.settlement.status == "paid" for r in results)

    async def test_one_pending_blocks_the_batch(
        self, session, settlement_service, orchestrator, employee, employee_factory, admin
    ):
        other_id = (await employee_factory(full_name="Second Employee")).employee_id
        approved_id = await approved_settlement(settlement_service, employee.employee_id, admin)
        pending = await settlement_service.generate(other_id, 3, 2024, admin)
        pending_id = pending.settlement.settlement_id

        with pytest.raises(InvalidTransitionError):
            await orchestrator.pay_batch(
                [approved_id, pending_id], bank="Banco", method="deposito", actor=admin
            )

        assert (await settlement_service.get_settlement(approved_id)).status == "approved"
        assert (await settlement_service.get_settlement(pending_id)).status == "pending"
        assert await salary_payment_count(session) == 0

    async def test_unknown_id_blocks_the_batch(
        self, session, settlement_service, orchestrator, employee, admin
    ):
        approved_id = await approved_settlement(settlement_service, employee.employee_id, admin)

        with pytest.raises(NotFoundError):
            await orchestrator.pay_batch(
                [approved_id, uuid4()], bank="Banco", method="deposito", actor=admin
            )

        assert (await settlement_service.get_settlement(approved_id)).status == "approved"
        assert await salary_payment_count(session) == 0

    async def test_late_failure_rolls_back_earlier_payments(
        self, session, gateway, settlement_service, orchestrator, employee, employee_factory,
        admin, monkeypatch,
    ):
        other_id = (await employee_factory(full_name="Second Employee")).employee_id
        first_id = await approved_settlement(settlement_service, employee.employee_id, admin)
        second_id = await approved_settlement(settlement_service, other_id, admin)
        original = gateway.add_salary_payment

        async def fail_on_second(payment):
            if payment.settlement_id == second_id:
                raise OperationalError("INSERT INTO salary_payment", {}, Exception("lost"))
            return await original(payment)

        monkeypatch.setattr(gateway, "add_salary_payment", fail_on_second)

        with pytest.raises(PersistenceError):
            await orchestrator.pay_batch(
                [first_id, second_id], bank="Banco", method="deposito", actor=admin
            )

        assert (await settlement_service.get_settlement(first_id)).status == "approved"
        assert (await settlement_service.get_settlement(second_id)).status == "approved"
        assert await salary_payment_count(session) == 0

    async def test_duplicate_ids_rejected(self, orchestrator, admin):
        settlement_id = uuid4()
        with pytest.raises(ValidationError):
            await orchestrator.pay_batch(
                [settlement_id, settlement_id], bank="Banco", method="cheque", actor=admin
            )

    async def test_empty_batch_rejected(self, orchestrator, admin):
        with pytest.raises(ValidationError):
            await orchestrator.pay_batch([], bank="Banco", method="cheque", actor=admin)


class TestBuildProvisionalPayment:
    """Pension / health split from deduction lines."""

    def test_missing_concept_counts_as_zero(self):
        settlement = SimpleNamespace(settlement_id=uuid4())
        lines = [SimpleNamespace(concept="AFP", amount=Decimal("1000.00"))]

        payment = build_provisional_payment(
            settlement, lines, payment_date=datetime(2024, 2, 1, tzinfo=timezone.utc)
        )

        assert payment.pension_amount == Decimal("1000.00")
        assert payment.health_amount == Decimal("0.00")
        assert payment.total_amount == Decimal("1000.00")
        assert payment.period_label == "2/2024"

    def test_no_withholding_rejected(self):
        settlement = SimpleNamespace(settlement_id=uuid4())

        with pytest.raises(ValidationError):
            build_provisional_payment(
                settlement, [], payment_date=datetime(2024, 2, 1, tzinfo=timezone.utc)
            )
