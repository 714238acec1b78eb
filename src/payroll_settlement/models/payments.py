"""Salary and provisional (social security) payment records."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_settlement.models.base import Base, TimestampMixin


class SalaryPayment(Base, TimestampMixin):
    """Ledger entry for the net salary payment of a settlement.

    Recording only; no funds movement happens here.
    """

    __tablename__ = "salary_payment"

    salary_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    settlement_id: Mapped[UUID] = mapped_column(
        ForeignKey("settlement.settlement_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    bank: Mapped[str] = mapped_column(String, nullable=False)
    method: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "method IN ('cheque', 'deposito')",
            name="salary_payment_method_check",
        ),
        CheckConstraint("amount >= 0", name="salary_payment_amount_check"),
    )


class ProvisionalPayment(Base, TimestampMixin):
    """Pension and health remittance produced alongside a salary payment."""

    __tablename__ = "provisional_payment"

    provisional_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    settlement_id: Mapped[UUID] = mapped_column(
        ForeignKey("settlement.settlement_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_label: Mapped[str] = mapped_column(String, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    pension_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    health_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="provisional_payment_total_check"),
    )
