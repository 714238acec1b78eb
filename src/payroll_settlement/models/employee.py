"""Employee and attendance models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_settlement.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record.

    Maintained by the employee administration module; the settlement engine
    only reads it (base salary is the input to gross salary calculation).
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID | None] = mapped_column(nullable=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    national_id: Mapped[str] = mapped_column(String, nullable=False)
    position: Mapped[str | None] = mapped_column(String, nullable=True)
    base_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    __table_args__ = (
        UniqueConstraint("national_id", name="employee_national_id_unique"),
        CheckConstraint(
            "base_salary IS NULL OR base_salary >= 0",
            name="employee_base_salary_check",
        ),
    )


class AttendanceRecord(Base, TimestampMixin):
    """One day of attendance for an employee.

    ``exit_time`` is NULL while the shift is open; ``hours_worked`` stays zero
    until the exit is recorded.
    """

    __tablename__ = "attendance_record"

    attendance_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    exit_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hours_worked: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint("hours_worked >= 0", name="attendance_hours_check"),
        Index("ix_attendance_employee_date", "employee_id", "work_date"),
        # At most one open shift per employee and day
        Index(
            "uq_attendance_open_shift",
            "employee_id",
            "work_date",
            unique=True,
            postgresql_where=text("exit_time IS NULL"),
            sqlite_where=text("exit_time IS NULL"),
        ),
    )

    @property
    def is_open(self) -> bool:
        return self.exit_time is None
