"""Health endpoints: process liveness, database reachability and schema readiness."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from payroll_settlement import __version__
from payroll_settlement.api.dependencies import DbSession
from payroll_settlement.models import Base

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    database: str


class ReadinessResponse(BaseModel):
    """Ready once the database answers and every settlement table exists."""

    status: str
    missing_tables: list[str] = []


async def _missing_tables(db: DbSession) -> list[str]:
    existing = set(
        await db.run_sync(lambda session: inspect(session.connection()).get_table_names())
    )
    return sorted(set(Base.metadata.tables) - existing)


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report the running version and whether the database answers."""
    db_status = "unhealthy"
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        database=db_status,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check(db: DbSession, response: Response) -> ReadinessResponse:
    """503 until the schema holding settlements, payments and attendance is in place."""
    try:
        missing = await _missing_tables(db)
    except SQLAlchemyError:
        logger.warning("Readiness check could not reach the database", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="unavailable")

    if missing:
        logger.warning("Not ready, missing tables: %s", ", ".join(missing))
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not_ready", missing_tables=missing)
    return ReadinessResponse(status="ready")


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
