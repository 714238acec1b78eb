"""Pytest fixtures for settlement engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_settlement.database import make_session_factory
from payroll_settlement.models import AttendanceRecord, Base, Employee
from payroll_settlement.services import (
    Actor,
    PaymentOrchestrator,
    PersistenceGateway,
    Role,
    SettlementService,
)

# Fresh in-memory SQLite per test; StaticPool keeps every session on the
# same connection so they all see the same database.
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def gateway(session) -> PersistenceGateway:
    return PersistenceGateway(session, timeout=5)


@pytest.fixture
def settlement_service(gateway) -> SettlementService:
    return SettlementService(gateway)


@pytest.fixture
def orchestrator(gateway, settlement_service) -> PaymentOrchestrator:
    return PaymentOrchestrator(gateway, settlement_service)


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.ADMIN.value)


@pytest.fixture
def clerk() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.EMPLOYEE.value)


async def create_employee(
    session: AsyncSession,
    base_salary: Decimal | None = Decimal("900000"),
    full_name: str = "Test Employee",
    company_id: UUID | None = None,
) -> Employee:
    """Insert and commit an employee."""
    employee = Employee(
        company_id=company_id or uuid4(),
        full_name=full_name,
        national_id=f"{uuid4().int % 10**8}-{uuid4().int % 10}",
        position="Analyst",
        base_salary=base_salary,
    )
    session.add(employee)
    await session.commit()
    return employee


async def add_closed_shifts(
    session: AsyncSession,
    employee: Employee,
    start: date,
    hours: list[Decimal],
) -> list[AttendanceRecord]:
    """Insert one closed attendance record per day, starting at ``start``."""
    records = []
    for offset, worked in enumerate(hours):
        work_date = start + timedelta(days=offset)
        entry = datetime.combine(work_date, time(9, 0), tzinfo=timezone.utc)
        records.append(
            AttendanceRecord(
                employee_id=employee.employee_id,
                work_date=work_date,
                entry_time=entry,
                exit_time=entry + timedelta(minutes=int(worked * 60)),
                hours_worked=worked,
            )
        )
    session.add_all(records)
    await session.commit()
    return records


@pytest.fixture
async def employee(session) -> Employee:
    """Employee with a 900000 base salary and no attendance."""
    return await create_employee(session)


@pytest.fixture
def employee_factory(session):
    """Async factory: ``await employee_factory(base_salary=...)``."""

    async def factory(**kwargs) -> Employee:
        return await create_employee(session, **kwargs)

    return factory


@pytest.fixture
def shift_factory(session):
    """Async factory: ``await shift_factory(employee, start, [hours, ...])``."""

    async def factory(employee: Employee, start: date, hours: list[Decimal]):
        return await add_closed_shifts(session, employee, start, hours)

    return factory
