"""Pydantic schemas for API request/response models."""

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str


# ============================================================================
# Settlement schemas
# ============================================================================


class SettlementCreate(BaseModel):
    """Schema for generating a settlement."""

    employee_id: UUID
    month: int
    year: int


class SettlementBatchCreate(BaseModel):
    """Schema for generating settlements for several employees."""

    employee_ids: list[UUID] = Field(min_length=1)
    month: int
    year: int


class CompanySettlementCreate(BaseModel):
    """Schema for generating settlements for every employee of a company."""

    month: int
    year: int


class DeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    concept: str
    amount: Decimal


class SettlementResponse(BaseModel):
    """Schema for settlement response."""

    model_config = ConfigDict(from_attributes=True)

    settlement_id: UUID
    employee_id: UUID
    period_month: int
    period_year: int
    period_start: date
    period_end: date
    status: str
    regular_hours: Decimal
    overtime_hours: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    rejected_at: datetime | None = None
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    deductions: list[DeductionResponse] = []

    @classmethod
    def from_settlement(cls, settlement, deductions: Iterable = ()) -> "SettlementResponse":
        response = cls.model_validate(settlement)
        response.deductions = [DeductionResponse.model_validate(d) for d in deductions]
        return response


class SettlementListResponse(BaseModel):
    items: list[SettlementResponse]
    total: int


class GenerationFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    error: str


class BatchGenerationResponse(BaseModel):
    """Schema for company-wide generation results."""

    succeeded: list[SettlementResponse]
    failed: list[GenerationFailureResponse]


class RejectionRequest(BaseModel):
    reason: str


# ============================================================================
# Payment schemas
# ============================================================================


class ProvisionalPaymentRequest(BaseModel):
    """Request to also record the pension and health remittance."""

    payment_date: datetime | None = None
    period_label: str | None = None


class PaymentCreate(BaseModel):
    """Schema for paying one settlement."""

    settlement_id: UUID
    bank: str
    method: str
    provisional: ProvisionalPaymentRequest | None = None


class PaymentBatchCreate(BaseModel):
    """Schema for paying several settlements at once."""

    settlement_ids: list[UUID]
    bank: str
    method: str
    provisional: ProvisionalPaymentRequest | None = None


class SalaryPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    salary_payment_id: UUID
    settlement_id: UUID
    bank: str
    method: str
    amount: Decimal
    payment_date: datetime


class ProvisionalPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provisional_payment_id: UUID
    settlement_id: UUID
    payment_date: datetime
    period_label: str
    total_amount: Decimal
    pension_amount: Decimal
    health_amount: Decimal


class PaymentResponse(BaseModel):
    """Schema for a completed payment."""

    model_config = ConfigDict(from_attributes=True)

    settlement: SettlementResponse
    salary_payment: SalaryPaymentResponse
    provisional_payment: ProvisionalPaymentResponse | None = None


class PaymentBatchResponse(BaseModel):
    items: list[PaymentResponse]
    total: int


class ProvisionalReportResponse(BaseModel):
    """Schema for the monthly provisional remittance report."""

    model_config = ConfigDict(from_attributes=True)

    period_label: str
    generated_at: datetime
    payment_count: int
    pension_total: Decimal
    health_total: Decimal
    total: Decimal


# ============================================================================
# Attendance schemas
# ============================================================================


class ClockRequest(BaseModel):
    """Optional explicit clock time; defaults to now."""

    at: datetime | None = None


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attendance_record_id: UUID
    employee_id: UUID
    work_date: date
    entry_time: datetime
    exit_time: datetime | None = None
    hours_worked: Decimal


class AttendanceListResponse(BaseModel):
    items: list[AttendanceResponse]
    total: int


class HoursSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    start: date
    end: date
    days_worked: int
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    records: list[AttendanceResponse]


class AttendanceDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    work_date: date
    weekday: str
    is_working_day: bool
    attended: bool
    hours_worked: Decimal
    overtime_hours: Decimal
    entry_time: datetime | None = None
    exit_time: datetime | None = None


class AttendancePeriodResponse(BaseModel):
    """Day-by-day attendance for a month."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    period_label: str
    days_in_month: int
    days_worked: int
    complete_days: int
    incomplete_days: int
    absent_days: int
    overtime_days: int
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    days: list[AttendanceDayResponse]
