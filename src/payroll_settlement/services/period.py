"""Settlement period resolution and duplicate detection."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from payroll_settlement.errors import ValidationError

if TYPE_CHECKING:
    from payroll_settlement.services.gateway import PersistenceGateway

MIN_YEAR = 1900
MAX_YEAR = 9999


@dataclass(frozen=True)
class SettlementPeriod:
    """A calendar month bounding the attendance that feeds a settlement."""

    month: int
    year: int
    start: date
    end: date  # inclusive

    @classmethod
    def for_month(cls, month: int, year: int) -> SettlementPeriod:
        """Resolve the first and last calendar day of (month, year)."""
        if isinstance(month, bool) or not isinstance(month, int):
            raise ValidationError(f"Month must be an integer, got {month!r}")
        if isinstance(year, bool) or not isinstance(year, int):
            raise ValidationError(f"Year must be an integer, got {year!r}")
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValidationError(f"Year out of range: {year}")

        last_day = calendar.monthrange(year, month)[1]
        return cls(
            month=month,
            year=year,
            start=date(year, month, 1),
            end=date(year, month, last_day),
        )

    @classmethod
    def containing(cls, moment: date | datetime) -> SettlementPeriod:
        return cls.for_month(moment.month, moment.year)

    @property
    def label(self) -> str:
        return f"{self.month}/{self.year}"

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    def end_datetime(self) -> datetime:
        return datetime.combine(self.end, time.max, tzinfo=timezone.utc)


async def has_active_settlement(
    gateway: PersistenceGateway,
    employee_id: UUID,
    period: SettlementPeriod,
) -> bool:
    """Check whether a non-rejected settlement exists for employee and period."""
    existing = await gateway.find_active_settlement(employee_id, period.month, period.year)
    return existing is not None
