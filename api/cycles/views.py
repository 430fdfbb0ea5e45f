# api/cycles/views.py
"""
Notification cycle endpoints. Cycles are created by initiation only, so the
surface here is read-only.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from .models import CycleRead, CycleStats
from . import db_manager

router = APIRouter(prefix="/cycles", tags=["cycles"])


@router.get(
    "",
    response_model=list[CycleRead],
    summary="List notification cycles",
)
async def list_cycles_endpoint(
    limit: int | None = Query(None, ge=1, le=500, description="Return at most this many cycles"),
    db: AsyncSession = Depends(get_session),
) -> list[CycleRead]:
    """
    List notification cycles, most recent cycle date first.
    """
    cycles = await db_manager.list_cycles(db, limit=limit)
    return [CycleRead.model_validate(c) for c in cycles]


@router.get(
    "/{cycle_id}",
    response_model=CycleRead,
    summary="Get notification cycle by ID",
)
async def get_cycle_endpoint(
    cycle_id: int,
    db: AsyncSession = Depends(get_session),
) -> CycleRead:
    try:
        cycle = await db_manager.get_cycle_by_id(db, cycle_id)
    except db_manager.CycleNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return CycleRead.model_validate(cycle)


@router.get(
    "/{cycle_id}/stats",
    response_model=CycleStats,
    summary="Get answer statistics for a cycle",
)
async def get_cycle_stats_endpoint(
    cycle_id: int,
    db: AsyncSession = Depends(get_session),
) -> CycleStats:
    """
    Per-status row counts and the number of teachers who confirmed every table.
    """
    try:
        stats = await db_manager.get_cycle_stats(db, cycle_id)
    except db_manager.CycleNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return CycleStats(**stats)
