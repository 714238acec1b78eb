"""API routes."""

from payroll_settlement.api.routes.attendance import router as attendance_router
from payroll_settlement.api.routes.health import router as health_router
from payroll_settlement.api.routes.payments import router as payments_router
from payroll_settlement.api.routes.settlements import router as settlements_router

__all__ = ["attendance_router", "health_router", "payments_router", "settlements_router"]
