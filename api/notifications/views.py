# api/notifications/views.py
"""
Manual triggers for the workflow and a read view over report statuses.

The scheduler runs the same operations on its own; these endpoints exist for
operators re-triggering a cycle or a sweep by hand.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from core.deps import Engine, Settings
from core.errors import TransientIOError
from api.cycles import db_manager as cycle_db_manager
from scheduler.reminder_scheduler import local_today
from .constants import InteractionStatus
from .models import InitiateRequest, InitiationResponse, ReportStatusRead, SweepResponse
from . import queries

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _unavailable(exc: TransientIOError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


@router.post(
    "/initiate",
    response_model=InitiationResponse,
    summary="Start or re-trigger a notification cycle",
)
async def initiate_cycle_endpoint(
    payload: InitiateRequest,
    engine: Engine,
    app_settings: Settings,
) -> InitiationResponse:
    """
    Idempotent: re-running for the same date and type never duplicates rows
    and only asks teachers who were not asked yet.
    """
    cycle_date = payload.cycle_date
    if cycle_date is None:
        cycle_date = local_today(app_settings.SCHEDULER_TIMEZONE)
    try:
        result = await engine.initiate(payload.cycle_type, cycle_date)
    except TransientIOError as exc:
        raise _unavailable(exc) from exc

    return InitiationResponse.model_validate(result)


@router.post(
    "/sweeps/first-reminder",
    response_model=SweepResponse,
    summary="Run the 1-hour reminder sweep now",
)
async def first_reminder_sweep_endpoint(engine: Engine) -> SweepResponse:
    try:
        result = await engine.sweep_first_reminder()
    except TransientIOError as exc:
        raise _unavailable(exc) from exc

    return SweepResponse.model_validate(result)


@router.post(
    "/sweeps/next-day",
    response_model=SweepResponse,
    summary="Run the next-day reminder sweep now",
)
async def next_day_sweep_endpoint(engine: Engine) -> SweepResponse:
    """
    Targets questions last sent yesterday, so running it twice a day is a no-op.
    """
    try:
        result = await engine.sweep_next_day()
    except TransientIOError as exc:
        raise _unavailable(exc) from exc

    return SweepResponse.model_validate(result)


@router.get(
    "/cycles/{cycle_id}/statuses",
    response_model=list[ReportStatusRead],
    summary="List report statuses of a cycle",
)
async def list_cycle_statuses_endpoint(
    cycle_id: int,
    status_filter: InteractionStatus | None = Query(None, alias="status", description="Only rows in this status"),
    db: AsyncSession = Depends(get_session),
) -> list[ReportStatusRead]:
    try:
        await cycle_db_manager.get_cycle_by_id(db, cycle_id)
    except cycle_db_manager.CycleNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    if status_filter is None:
        stmt = queries.select_statuses_for_cycle(cycle_id)
    else:
        stmt = queries.select_statuses_by_status(cycle_id, status_filter.value)
    result = await db.execute(stmt)
    return [ReportStatusRead.model_validate(r) for r in result.scalars().all()]
