"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from timesheet_payroll.api.dependencies import DbSession, OrganizationId
from timesheet_payroll.api.schemas import (
    CalculateRequest,
    CalculationResultResponse,
    CalculationSummaryResponse,
    CalculationTotals,
    ErrorResponse,
    ItemResponse,
    PeriodCreate,
    PeriodListResponse,
    PeriodResponse,
    PeriodStatsResponse,
    PreviewResponse,
    RunResponse,
    SlipResponse,
    TransitionRequest,
)
from timesheet_payroll.services.calculation_service import PayrollCalculationService
from timesheet_payroll.services.period_service import PeriodService

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


# ============================================================================
# Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_period(
    db: DbSession,
    organization_id: OrganizationId,
    payload: PeriodCreate,
) -> PeriodResponse:
    """Create a new payroll period in draft status."""
    service = PeriodService(db, organization_id)
    period = await service.create_period(
        period_start=payload.period_start,
        period_end=payload.period_end,
        frequency=payload.frequency,
        name=payload.name,
        payment_date=payload.payment_date,
        notes=payload.notes,
        created_by=payload.created_by,
    )
    await db.commit()
    await db.refresh(period)
    return PeriodResponse.model_validate(period)


@router.get("", response_model=PeriodListResponse)
async def list_periods(
    db: DbSession,
    organization_id: OrganizationId,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    frequency: str | None = None,
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
) -> PeriodListResponse:
    """List payroll periods with optional filters."""
    service = PeriodService(db, organization_id)
    periods = await service.list_periods(status=status_filter, frequency=frequency, year=year)
    return PeriodListResponse(
        items=[PeriodResponse.model_validate(p) for p in periods],
        total=len(periods),
    )


@router.get("/stats", response_model=PeriodStatsResponse)
async def get_stats(
    db: DbSession,
    organization_id: OrganizationId,
) -> PeriodStatsResponse:
    """Get period counts and settled totals for the organization."""
    service = PeriodService(db, organization_id)
    return PeriodStatsResponse(**await service.get_stats())


@router.get(
    "/{period_id}",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_period(
    db: DbSession,
    organization_id: OrganizationId,
    period_id: Annotated[UUID, Path()],
) -> PeriodResponse:
    """Get a payroll period by ID."""
    period = await PeriodService(db, organization_id).get_period(period_id)
    return PeriodResponse.model_validate(period)


@router.delete(
    "/{period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_period(
    db: DbSession,
    organization_id: OrganizationId,
    period_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a draft payroll period."""
    await PeriodService(db, organization_id).delete_period(period_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Calculation
# ============================================================================


@router.post(
    "/{period_id}/calculate",
    response_model=CalculationSummaryResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def calculate_period(
    db: DbSession,
    organization_id: OrganizationId,
    period_id: Annotated[UUID, Path()],
    payload: CalculateRequest,
) -> CalculationSummaryResponse:
    """Run payroll calculation for every active employee in the period."""
    service = PayrollCalculationService(db, organization_id)
    summary = await service.calculate_period(
        period_id, payload.executed_by, supersede=payload.supersede
    )
    await db.commit()

    return CalculationSummaryResponse(
        period_id=summary.period_id,
        run_id=summary.run_id,
        run_number=summary.run_number,
        total_employees=summary.total_employees,
        created=summary.created,
        updated=summary.updated,
        skipped=summary.skipped,
        errors=summary.errors,
        totals=CalculationTotals(**summary.totals),
        rules_fingerprint=summary.rules_fingerprint,
        results=[
            CalculationResultResponse(
                employment_id=r.employment_id,
                employee_name=r.employee_name,
                status=r.status,
                message=r.message,
                slip_id=r.slip_id,
                summary=r.summary,
            )
            for r in summary.results
        ],
    )


@router.post(
    "/{period_id}/preview",
    response_model=PreviewResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def preview_period(
    db: DbSession,
    organization_id: OrganizationId,
    period_id: Annotated[UUID, Path()],
) -> PreviewResponse:
    """Estimate the period's totals without persisting anything."""
    period = await PeriodService(db, organization_id).get_period(period_id)
    service = PayrollCalculationService(db, organization_id)
    preview = await service.preview_calculation(period.period_start, period.period_end)
    return PreviewResponse(period_id=period.id, **preview)


@router.post(
    "/{period_id}/transition",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_period(
    db: DbSession,
    organization_id: OrganizationId,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> PeriodResponse:
    """Approve, pay or cancel a period."""
    service = PeriodService(db, organization_id)
    period = await service.transition(
        period_id, payload.to_status, actor=payload.actor, reason=payload.reason
    )
    await db.commit()
    await db.refresh(period)
    return PeriodResponse.model_validate(period)


# ============================================================================
# Runs, slips and items
# ============================================================================


@router.get(
    "/{period_id}/runs",
    response_model=list[RunResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_runs(
    db: DbSession,
    organization_id: OrganizationId,
    period_id: Annotated[UUID, Path()],
) -> list[RunResponse]:
    """List calculation runs for a period, newest first."""
    runs = await PeriodService(db, organization_id).get_runs(period_id)
    return [RunResponse.model_validate(r) for r in runs]


@router.get(
    "/runs/{run_id}/slips",
    response_model=list[SlipResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_slips(
    db: DbSession,
    organization_id: OrganizationId,
    run_id: Annotated[UUID, Path()],
) -> list[SlipResponse]:
    """List the slips produced by a run."""
    slips = await PeriodService(db, organization_id).get_slips(run_id)
    return [SlipResponse.model_validate(s) for s in slips]


@router.get("/slips/{slip_id}/items", response_model=list[ItemResponse])
async def list_items(
    db: DbSession,
    organization_id: OrganizationId,
    slip_id: Annotated[UUID, Path()],
) -> list[ItemResponse]:
    """List the itemized lines of a slip."""
    items = await PeriodService(db, organization_id).get_items(slip_id)
    return [ItemResponse.model_validate(i) for i in items]
