"""Attendance API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from payroll_settlement.api.dependencies import Attendance, CurrentActor
from payroll_settlement.api.schemas import (
    AttendanceListResponse,
    AttendancePeriodResponse,
    AttendanceResponse,
    ClockRequest,
    ErrorResponse,
    HoursSummaryResponse,
)
from payroll_settlement.services import require_employee_access

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post(
    "/{employee_id}/clock-in",
    response_model=AttendanceResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def clock_in(
    service: Attendance,
    actor: CurrentActor,
    employee_id: Annotated[UUID, Path()],
    payload: ClockRequest | None = None,
) -> AttendanceResponse:
    """Open today's attendance record (returns the open one if present)."""
    require_employee_access(actor, employee_id, "record attendance")
    record = await service.clock_in(employee_id, payload.at if payload else None)
    return AttendanceResponse.model_validate(record)


@router.post(
    "/{employee_id}/clock-out",
    response_model=AttendanceResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def clock_out(
    service: Attendance,
    actor: CurrentActor,
    employee_id: Annotated[UUID, Path()],
    payload: ClockRequest | None = None,
) -> AttendanceResponse:
    """Close the open attendance record and compute worked hours."""
    require_employee_access(actor, employee_id, "record attendance")
    record = await service.clock_out(employee_id, payload.at if payload else None)
    return AttendanceResponse.model_validate(record)


@router.get(
    "/{employee_id}",
    response_model=AttendanceListResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def list_attendance(
    service: Attendance,
    actor: CurrentActor,
    employee_id: Annotated[UUID, Path()],
    start: Annotated[date, Query()],
    end: Annotated[date, Query()],
) -> AttendanceListResponse:
    """Attendance records with work date in [start, end]."""
    require_employee_access(actor, employee_id, "view attendance")
    records = await service.list_attendance(employee_id, start, end)
    return AttendanceListResponse(
        items=[AttendanceResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get(
    "/{employee_id}/summary",
    response_model=HoursSummaryResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def hours_summary(
    service: Attendance,
    actor: CurrentActor,
    employee_id: Annotated[UUID, Path()],
    start: Annotated[date, Query()],
    end: Annotated[date, Query()],
) -> HoursSummaryResponse:
    """Days worked and regular/overtime hours over [start, end]."""
    require_employee_access(actor, employee_id, "view attendance")
    summary = await service.hours_summary(employee_id, start, end)
    return HoursSummaryResponse.model_validate(summary)


@router.get(
    "/{employee_id}/period",
    response_model=AttendancePeriodResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def period_detail(
    service: Attendance,
    actor: CurrentActor,
    employee_id: Annotated[UUID, Path()],
    month: Annotated[int, Query()],
    year: Annotated[int, Query()],
) -> AttendancePeriodResponse:
    """Day-by-day attendance for a calendar month."""
    require_employee_access(actor, employee_id, "view attendance")
    detail = await service.period_detail(employee_id, month, year)
    return AttendancePeriodResponse.model_validate(detail)
