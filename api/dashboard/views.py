# api/dashboard/views.py
"""
Dashboard and aggregate statistics endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from .models import CycleDashboard, DashboardOverview
from . import db_manager

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/overview",
    response_model=DashboardOverview,
    summary="Get high-level overview statistics",
)
async def get_overview_endpoint(
    recent: int = Query(5, ge=1, le=50, description="How many recent cycles to include"),
    db: AsyncSession = Depends(get_session),
) -> DashboardOverview:
    """
    Roster size, number of cycles, and answer stats of the most recent cycles.
    """
    stats = await db_manager.get_overview_stats(db, recent_limit=recent)
    return DashboardOverview(**stats)


@router.get(
    "/cycles/{cycle_id}",
    response_model=CycleDashboard,
    summary="Get progress of every teacher in a cycle",
)
async def get_cycle_dashboard_endpoint(
    cycle_id: int,
    db: AsyncSession = Depends(get_session),
) -> CycleDashboard:
    try:
        data = await db_manager.get_cycle_dashboard(db, cycle_id)
    except db_manager.CycleNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return CycleDashboard(**data)
