"""ORM models."""

from payroll_settlement.models.base import Base, TimestampMixin
from payroll_settlement.models.employee import AttendanceRecord, Employee
from payroll_settlement.models.payments import ProvisionalPayment, SalaryPayment
from payroll_settlement.models.settlement import Deduction, Settlement

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "AttendanceRecord",
    "Settlement",
    "Deduction",
    "SalaryPayment",
    "ProvisionalPayment",
]
