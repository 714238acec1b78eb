"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_settlement.config import get_settings
from payroll_settlement.database import init_db
from payroll_settlement.services import (
    Actor,
    AttendanceService,
    PaymentOrchestrator,
    PersistenceGateway,
    ProvisionalReportService,
    SettlementService,
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for request handlers (overridden in tests)."""
    _, factory = init_db()
    return factory


async def get_db_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_current_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the acting user from headers set by the upstream auth gateway."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id and X-Actor-Role headers are required",
        )
    try:
        actor_id = UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-Id format",
        )
    return Actor(actor_id=actor_id, role=x_actor_role.strip().upper())


def get_gateway(db: DbSession) -> PersistenceGateway:
    return PersistenceGateway(db, timeout=get_settings().operation_timeout_seconds)


Gateway = Annotated[PersistenceGateway, Depends(get_gateway)]


def get_settlement_service(gateway: Gateway) -> SettlementService:
    return SettlementService(gateway)


def get_payment_orchestrator(gateway: Gateway) -> PaymentOrchestrator:
    return PaymentOrchestrator(gateway)


def get_attendance_service(gateway: Gateway) -> AttendanceService:
    return AttendanceService(gateway)


def get_report_service(gateway: Gateway) -> ProvisionalReportService:
    return ProvisionalReportService(gateway)


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Settlements = Annotated[SettlementService, Depends(get_settlement_service)]
Payments = Annotated[PaymentOrchestrator, Depends(get_payment_orchestrator)]
Attendance = Annotated[AttendanceService, Depends(get_attendance_service)]
Reports = Annotated[ProvisionalReportService, Depends(get_report_service)]
