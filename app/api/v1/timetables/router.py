from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetable_assignments.conflicts import check_timetable_conflicts
from app.api.v1.timetable_assignments.schemas import ConflictReport
from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import TimetableStatus
from app.core.exceptions import ServiceError
from app.core.schemas import CloneResult
from app.db.session import get_db

from .cloning import clone_timetable
from .schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    CloneRequest,
    PeriodCreate,
    PeriodResponse,
    PeriodTimeUpdate,
    TimetableCreate,
    TimetableDetailResponse,
    TimetableResponse,
    TimetableStatusUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/timetables", tags=["timetables"])


@router.post(
    "",
    response_model=TimetableDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "create"))],
)
async def create_timetable(
    payload: TimetableCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.create_timetable(db, current_user.school_id, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "",
    response_model=List[TimetableResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_timetables(
    class_id: Optional[str] = Query(None),
    status_filter: Optional[TimetableStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.list_timetables(db, current_user.school_id, class_id=class_id, status=status_filter)


@router.get(
    "/by-teacher/{teacher_id}",
    response_model=List[TimetableResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_timetables_by_teacher(
    teacher_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.list_timetables_by_teacher(db, current_user.school_id, teacher_id)


@router.post(
    "/bulk-delete",
    response_model=BulkDeleteResponse,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def bulk_delete_timetables(
    payload: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.bulk_delete_timetables(db, current_user.school_id, payload.timetable_ids)


@router.put(
    "/periods/{period_id}",
    response_model=PeriodResponse,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def update_period_time(
    period_id: UUID,
    payload: PeriodTimeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.update_period_time(db, current_user.school_id, period_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete(
    "/periods/{period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def delete_period(
    period_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        await service.delete_period(db, current_user.school_id, period_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{timetable_id}",
    response_model=TimetableDetailResponse,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_timetable(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.get_timetable(db, current_user.school_id, timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch(
    "/{timetable_id}",
    response_model=TimetableResponse,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def update_timetable_status(
    timetable_id: UUID,
    payload: TimetableStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.update_timetable_status(db, current_user.school_id, timetable_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete(
    "/{timetable_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def delete_timetable(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        await service.delete_timetable(db, current_user.school_id, timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{timetable_id}/clone",
    response_model=CloneResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "create"))],
)
async def clone(
    timetable_id: UUID,
    payload: CloneRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await clone_timetable(db, current_user.school_id, timetable_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{timetable_id}/conflicts",
    response_model=ConflictReport,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_conflicts(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await check_timetable_conflicts(db, current_user.school_id, timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{timetable_id}/periods",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def add_period(
    timetable_id: UUID,
    payload: PeriodCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.add_period(db, current_user.school_id, timetable_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
