"""Settlement API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_settlement.api.dependencies import CurrentActor, Settlements
from payroll_settlement.api.schemas import (
    BatchGenerationResponse,
    CompanySettlementCreate,
    ErrorResponse,
    GenerationFailureResponse,
    RejectionRequest,
    SettlementBatchCreate,
    SettlementCreate,
    SettlementListResponse,
    SettlementResponse,
)
from payroll_settlement.services import Role, require_employee_access

router = APIRouter(prefix="/settlements", tags=["settlements"])


# ============================================================================
# Generation
# ============================================================================


@router.post(
    "",
    response_model=SettlementResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def generate_settlement(
    service: Settlements,
    actor: CurrentActor,
    payload: SettlementCreate,
) -> SettlementResponse:
    """Generate a pending settlement for an employee and month."""
    breakdown = await service.generate(payload.employee_id, payload.month, payload.year, actor)
    return SettlementResponse.from_settlement(breakdown.settlement, breakdown.deductions)


@router.post(
    "/batch",
    response_model=BatchGenerationResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def generate_settlements(
    service: Settlements,
    actor: CurrentActor,
    payload: SettlementBatchCreate,
) -> BatchGenerationResponse:
    """Generate settlements for several employees; failures are reported, not raised."""
    outcome = await service.generate_many(payload.employee_ids, payload.month, payload.year, actor)
    return BatchGenerationResponse(
        succeeded=[SettlementResponse.model_validate(s) for s in outcome.succeeded],
        failed=[GenerationFailureResponse.model_validate(f) for f in outcome.failed],
    )


@router.post(
    "/company/{company_id}",
    response_model=BatchGenerationResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def generate_company_settlements(
    service: Settlements,
    actor: CurrentActor,
    payload: CompanySettlementCreate,
    company_id: Annotated[UUID, Path()],
) -> BatchGenerationResponse:
    """Generate settlements for every employee of a company."""
    outcome = await service.generate_for_company(company_id, payload.month, payload.year, actor)
    return BatchGenerationResponse(
        succeeded=[SettlementResponse.model_validate(s) for s in outcome.succeeded],
        failed=[GenerationFailureResponse.model_validate(f) for f in outcome.failed],
    )


# ============================================================================
# Queries
# ============================================================================


@router.get(
    "",
    response_model=SettlementListResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def list_settlements(
    service: Settlements,
    actor: CurrentActor,
    employee_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> SettlementListResponse:
    """List settlements, newest period first.

    Employees only see their own settlements.
    """
    if actor.role != Role.ADMIN.value and employee_id is None:
        employee_id = actor.actor_id
    if employee_id is not None:
        require_employee_access(actor, employee_id, "view settlements")
    settlements = await service.list_settlements(employee_id=employee_id, status=status_filter)
    return SettlementListResponse(
        items=[SettlementResponse.model_validate(s) for s in settlements],
        total=len(settlements),
    )


@router.get(
    "/{settlement_id}",
    response_model=SettlementResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_settlement(
    service: Settlements,
    actor: CurrentActor,
    settlement_id: Annotated[UUID, Path()],
) -> SettlementResponse:
    """Get a settlement with its deduction lines."""
    breakdown = await service.get_breakdown(settlement_id)
    require_employee_access(actor, breakdown.settlement.employee_id, "view settlements")
    return SettlementResponse.from_settlement(breakdown.settlement, breakdown.deductions)


# ============================================================================
# Transitions
# ============================================================================


@router.post(
    "/{settlement_id}/approve",
    response_model=SettlementResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_settlement(
    service: Settlements,
    actor: CurrentActor,
    settlement_id: Annotated[UUID, Path()],
) -> SettlementResponse:
    """Approve a pending settlement."""
    settlement = await service.approve(settlement_id, actor)
    return SettlementResponse.model_validate(settlement)


@router.post(
    "/{settlement_id}/reject",
    response_model=SettlementResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def reject_settlement(
    service: Settlements,
    actor: CurrentActor,
    payload: RejectionRequest,
    settlement_id: Annotated[UUID, Path()],
) -> SettlementResponse:
    """Reject a pending settlement."""
    settlement = await service.reject(settlement_id, payload.reason, actor)
    return SettlementResponse.model_validate(settlement)
