# api/teachers/views.py
"""
Teacher roster endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from .models import TeacherCreate, TeacherListResponse, TeacherResponse
from . import db_manager

router = APIRouter(prefix="/teachers", tags=["teachers"])


@router.post(
    "",
    response_model=TeacherResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a teacher to the roster",
)
async def add_teacher_endpoint(
    payload: TeacherCreate,
    db: AsyncSession = Depends(get_session),
) -> TeacherResponse:
    try:
        teacher = await db_manager.add_teacher(
            db,
            telegram_id=payload.telegram_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except db_manager.DuplicateTeacherError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return TeacherResponse.model_validate(teacher)


@router.get(
    "",
    response_model=TeacherListResponse,
    summary="List teachers",
)
async def list_teachers_endpoint(
    active_only: bool = Query(False, description="Only teachers that receive new cycles"),
    db: AsyncSession = Depends(get_session),
) -> TeacherListResponse:
    teachers = await db_manager.list_teachers(db, active_only=active_only)
    return TeacherListResponse(
        teachers=[TeacherResponse.model_validate(t) for t in teachers],
        total=len(teachers),
    )


@router.get(
    "/{teacher_id}",
    response_model=TeacherResponse,
    summary="Get teacher by ID",
)
async def get_teacher_endpoint(
    teacher_id: int,
    db: AsyncSession = Depends(get_session),
) -> TeacherResponse:
    try:
        teacher = await db_manager.get_teacher_by_id(db, teacher_id)
    except db_manager.TeacherNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return TeacherResponse.model_validate(teacher)


@router.post(
    "/{telegram_id}/deactivate",
    response_model=TeacherResponse,
    summary="Deactivate a teacher",
)
async def deactivate_teacher_endpoint(
    telegram_id: int,
    db: AsyncSession = Depends(get_session),
) -> TeacherResponse:
    """
    Soft-delete a teacher by Telegram id. Their answers in past cycles are kept.
    """
    try:
        teacher = await db_manager.deactivate_teacher(db, telegram_id)
    except db_manager.TeacherNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except db_manager.TeacherAlreadyInactiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return TeacherResponse.model_validate(teacher)
