"""Settlement engine services."""

from payroll_settlement.services.attendance_service import (
    AttendanceDay,
    AttendancePeriodDetail,
    AttendanceService,
    HoursSummary,
)
from payroll_settlement.services.authorization import (
    Actor,
    Role,
    require_employee_access,
    require_role,
)
from payroll_settlement.services.gateway import PersistenceGateway
from payroll_settlement.services.payment_orchestrator import (
    PaymentOrchestrator,
    PaymentRequest,
    PaymentResult,
    ProvisionalPaymentData,
)
from payroll_settlement.services.period import SettlementPeriod
from payroll_settlement.services.provisional_report import (
    ProvisionalReport,
    ProvisionalReportService,
)
from payroll_settlement.services.settlement_service import (
    BulkGenerationResult,
    SettlementBreakdown,
    SettlementService,
)
from payroll_settlement.services.state_machine import (
    SettlementStateMachine,
    SettlementStatus,
)

__all__ = [
    "Actor",
    "Role",
    "require_role",
    "require_employee_access",
    "AttendanceDay",
    "AttendancePeriodDetail",
    "AttendanceService",
    "HoursSummary",
    "PersistenceGateway",
    "PaymentOrchestrator",
    "PaymentRequest",
    "PaymentResult",
    "ProvisionalPaymentData",
    "ProvisionalReport",
    "ProvisionalReportService",
    "SettlementPeriod",
    "SettlementService",
    "SettlementBreakdown",
    "BulkGenerationResult",
    "SettlementStateMachine",
    "SettlementStatus",
]
