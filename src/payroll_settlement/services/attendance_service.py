"""Attendance capture: clock-in, clock-out, history and hour summaries."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from payroll_settlement.calculators import TimeAccountingCalculator
from payroll_settlement.calculators.types import HOURS_PRECISION, ZERO, to_decimal
from payroll_settlement.errors import ValidationError
from payroll_settlement.models import AttendanceRecord
from payroll_settlement.models.base import utcnow
from payroll_settlement.services.gateway import PersistenceGateway
from payroll_settlement.services.period import SettlementPeriod

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

WEEKDAY_NAMES = (
    "lunes",
    "martes",
    "miércoles",
    "jueves",
    "viernes",
    "sábado",
    "domingo",
)


def worked_hours(entry: datetime, exit_: datetime) -> Decimal:
    """Hours between two clock readings, from whole minutes, to 2 decimals.

    Aware readings are compared on the UTC timeline, so entry and exit may
    carry different offsets. Two naive readings only carry a time of day; an
    exit earlier than the entry is then a shift that crossed midnight.

    Raises:
        ValidationError: aware exit before the entry
    """
    if entry.tzinfo is None and exit_.tzinfo is None:
        minutes = (exit_.hour * 60 + exit_.minute) - (entry.hour * 60 + entry.minute)
        if minutes < 0:
            minutes += MINUTES_PER_DAY
    else:
        elapsed = _to_minute(_utc(exit_)) - _to_minute(_utc(entry))
        minutes = int(elapsed.total_seconds()) // 60
        if minutes < 0:
            raise ValidationError(
                f"Exit time {exit_.isoformat()} is before entry time {entry.isoformat()}"
            )
    return _hours(Decimal(minutes) / Decimal(60))


@dataclass(frozen=True)
class HoursSummary:
    """Worked hours of an employee over a date range."""

    employee_id: UUID
    start: date
    end: date
    days_worked: int
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    records: list[AttendanceRecord] = field(default_factory=list)


@dataclass(frozen=True)
class AttendanceDay:
    """One calendar day of a monthly attendance detail."""

    work_date: date
    weekday: str
    is_working_day: bool
    attended: bool
    hours_worked: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    entry_time: datetime | None = None
    exit_time: datetime | None = None


@dataclass(frozen=True)
class AttendancePeriodDetail:
    """Day-by-day attendance of an employee for a calendar month.

    A day is complete at or above the standard shift, incomplete below it;
    absences count only weekdays without attendance.
    """

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
    days: list[AttendanceDay]


class AttendanceService:
    """Clock-in / clock-out for employees.

    At most one open (no exit time) record per employee and work date.
    Clock times are stored in UTC and the work date is the UTC date of entry.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        time_calculator: TimeAccountingCalculator | None = None,
    ):
        self.gateway = gateway
        self.time_calculator = time_calculator or TimeAccountingCalculator()

    async def clock_in(self, employee_id: UUID, at: datetime | None = None) -> AttendanceRecord:
        """Open a record for the day, or return the one already open."""
        at = _utc(at or utcnow())

        async with self.gateway.unit_of_work():
            await self.gateway.get_employee(employee_id)
            existing = await self.gateway.find_open_attendance(employee_id, at.date())
            if existing is not None:
                return existing

            record = await self.gateway.add_attendance(
                AttendanceRecord(
                    employee_id=employee_id,
                    work_date=at.date(),
                    entry_time=at,
                    hours_worked=Decimal("0"),
                )
            )

        logger.info("Employee %s clocked in at %s", employee_id, at.isoformat())
        return record

    async def clock_out(self, employee_id: UUID, at: datetime | None = None) -> AttendanceRecord:
        """Close the open record and derive its worked hours.

        When the employee has no record at all for the day, the one opened the
        previous day is closed instead, so a night shift can end after
        midnight. A day that already has records never reaches back.

        Raises:
            NotFoundError: unknown employee
            ValidationError: no open record to close, or exit before entry
        """
        at = _utc(at or utcnow())
        today = at.date()

        async with self.gateway.unit_of_work():
            await self.gateway.get_employee(employee_id)
            record = await self.gateway.find_open_attendance(employee_id, today)
            if record is None and not await self.gateway.list_attendance(
                employee_id, today, today
            ):
                record = await self.gateway.find_open_attendance(
                    employee_id, today - timedelta(days=1)
                )
            if record is None:
                raise ValidationError(
                    f"Employee {employee_id} has no open attendance record to close"
                )

            record.hours_worked = worked_hours(_utc(record.entry_time), at)
            record.exit_time = at
            await self.gateway.flush()

        logger.info(
            "Employee %s clocked out at %s (%s h)",
            employee_id,
            at.isoformat(),
            record.hours_worked,
        )
        return record

    async def list_attendance(
        self, employee_id: UUID, start: date, end: date
    ) -> list[AttendanceRecord]:
        if end < start:
            raise ValidationError("End date must not be before start date")
        await self.gateway.get_employee(employee_id)
        return await self.gateway.list_attendance(employee_id, start, end)

    async def hours_summary(self, employee_id: UUID, start: date, end: date) -> HoursSummary:
        """Days worked and regular/overtime hours over [start, end]."""
        records = await self.list_attendance(employee_id, start, end)
        regular, overtime = self.time_calculator.split_hours(records)
        return HoursSummary(
            employee_id=employee_id,
            start=start,
            end=end,
            days_worked=len({r.work_date for r in records}),
            total_hours=_hours(regular + overtime),
            regular_hours=_hours(regular),
            overtime_hours=_hours(overtime),
            records=records,
        )

    async def period_detail(
        self, employee_id: UUID, month: int, year: int
    ) -> AttendancePeriodDetail:
        """Every day of a month with its attendance and day classification."""
        period = SettlementPeriod.for_month(month, year)
        records = await self.list_attendance(employee_id, period.start, period.end)
        shift = self.time_calculator.policy.standard_hours_per_shift

        by_date: dict[date, list[AttendanceRecord]] = {}
        for record in records:
            by_date.setdefault(record.work_date, []).append(record)

        days: list[AttendanceDay] = []
        complete = incomplete = absent = overtime_days = 0
        for day_number in range(1, calendar.monthrange(year, month)[1] + 1):
            day = date(year, month, day_number)
            is_working_day = day.weekday() < 5
            day_records = by_date.get(day)
            if not day_records:
                if is_working_day:
                    absent += 1
                days.append(
                    AttendanceDay(
                        work_date=day,
                        weekday=WEEKDAY_NAMES[day.weekday()],
                        is_working_day=is_working_day,
                        attended=False,
                    )
                )
                continue

            regular, overtime = self.time_calculator.split_hours(day_records)
            hours = regular + overtime
            if hours >= shift:
                complete += 1
            else:
                incomplete += 1
            if overtime > ZERO:
                overtime_days += 1
            days.append(
                AttendanceDay(
                    work_date=day,
                    weekday=WEEKDAY_NAMES[day.weekday()],
                    is_working_day=is_working_day,
                    attended=True,
                    hours_worked=_hours(hours),
                    overtime_hours=_hours(overtime),
                    entry_time=day_records[0].entry_time,
                    exit_time=day_records[-1].exit_time,
                )
            )

        regular, overtime = self.time_calculator.split_hours(records)
        return AttendancePeriodDetail(
            employee_id=employee_id,
            period_label=period.label,
            days_in_month=len(days),
            days_worked=len(by_date),
            complete_days=complete,
            incomplete_days=incomplete,
            absent_days=absent,
            overtime_days=overtime_days,
            total_hours=_hours(regular + overtime),
            regular_hours=_hours(regular),
            overtime_hours=_hours(overtime),
            days=days,
        )


def _hours(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)


def _to_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def _utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
