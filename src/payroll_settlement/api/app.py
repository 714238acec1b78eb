"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_settlement import __version__
from payroll_settlement.api.routes import (
    attendance_router,
    health_router,
    payments_router,
    settlements_router,
)
from payroll_settlement.database import dispose_db, init_db
from payroll_settlement.errors import (
    AuthorizationError,
    DuplicateSettlementError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    SettlementError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Error class -> (HTTP status, error code)
ERROR_RESPONSES: dict[type[SettlementError], tuple[int, str]] = {
    ValidationError: (422, "VALIDATION_ERROR"),
    DuplicateSettlementError: (status.HTTP_409_CONFLICT, "DUPLICATE_SETTLEMENT"),
    InvalidTransitionError: (status.HTTP_409_CONFLICT, "INVALID_TRANSITION"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    AuthorizationError: (status.HTTP_403_FORBIDDEN, "FORBIDDEN"),
    PersistenceError: (status.HTTP_503_SERVICE_UNAVAILABLE, "PERSISTENCE_ERROR"),
}


def error_response_for(exc: SettlementError) -> tuple[int, str]:
    for cls in type(exc).__mro__:
        if cls in ERROR_RESPONSES:
            return ERROR_RESPONSES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Settlement API",
        description="Monthly settlements: attendance, deductions, approval and payment",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(SettlementError)
    async def settlement_exception_handler(
        request: Request, exc: SettlementError
    ) -> JSONResponse:
        """Map the engine's error taxonomy onto HTTP statuses."""
        status_code, code = error_response_for(exc)
        if isinstance(exc, PersistenceError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(settlements_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")
    app.include_router(attendance_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
