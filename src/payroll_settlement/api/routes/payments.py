"""Payment API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from payroll_settlement.api.dependencies import CurrentActor, Payments, Reports
from payroll_settlement.api.schemas import (
    ErrorResponse,
    PaymentBatchCreate,
    PaymentBatchResponse,
    PaymentCreate,
    PaymentResponse,
    ProvisionalPaymentRequest,
    ProvisionalReportResponse,
)
from payroll_settlement.services import PaymentRequest, ProvisionalPaymentData, require_role

router = APIRouter(prefix="/payments", tags=["payments"])


def _provisional(payload: ProvisionalPaymentRequest | None) -> ProvisionalPaymentData | None:
    if payload is None:
        return None
    return ProvisionalPaymentData(
        payment_date=payload.payment_date,
        period_label=payload.period_label,
    )


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def pay_settlement(
    orchestrator: Payments,
    actor: CurrentActor,
    payload: PaymentCreate,
) -> PaymentResponse:
    """Pay an approved settlement."""
    result = await orchestrator.pay_period(
        PaymentRequest(
            settlement_id=payload.settlement_id,
            bank=payload.bank,
            method=payload.method,
            provisional=_provisional(payload.provisional),
        ),
        actor,
    )
    return PaymentResponse.model_validate(result)


@router.post(
    "/batch",
    response_model=PaymentBatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def pay_settlements(
    orchestrator: Payments,
    actor: CurrentActor,
    payload: PaymentBatchCreate,
) -> PaymentBatchResponse:
    """Pay several approved settlements, all or nothing."""
    results = await orchestrator.pay_batch(
        payload.settlement_ids,
        bank=payload.bank,
        method=payload.method,
        actor=actor,
        provisional=_provisional(payload.provisional),
    )
    return PaymentBatchResponse(
        items=[PaymentResponse.model_validate(r) for r in results],
        total=len(results),
    )


@router.get(
    "/provisional-report",
    response_model=ProvisionalReportResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def provisional_report(
    reports: Reports,
    actor: CurrentActor,
    month: Annotated[int, Query()],
    year: Annotated[int, Query()],
) -> ProvisionalReportResponse:
    """Pension and health remittance totals for a month."""
    require_role(actor, "view payment reports")
    report = await reports.monthly_report(month, year)
    return ProvisionalReportResponse.model_validate(report)
