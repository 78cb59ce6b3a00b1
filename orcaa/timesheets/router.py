"""Timesheet, timesheet-activity and list-value endpoints."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user, require_action
from orcaa.common.exceptions import ForbiddenException
from orcaa.common.pagination import PaginationParams
from orcaa.database import get_db
from orcaa.timesheets.schemas import (
    ListValueCreate,
    ListValueOut,
    ListValueUpdate,
    TimesheetCreate,
    TimesheetListResponse,
    TimesheetOut,
    TimesheetSummary,
    TimesheetUpdate,
)
from orcaa.timesheets.service import ListValueService, TimesheetService
from orcaa.users.models import User

router = APIRouter(prefix="", tags=["timesheets"])
activities_router = APIRouter(prefix="", tags=["timesheets"])
list_values_router = APIRouter(prefix="", tags=["list-values"])

_entry = require_action("timesheet_entry")


# ── /api/timesheets ─────────────────────────────────────────────────

@router.post("", response_model=TimesheetOut, status_code=201)
async def create_timesheet(
    body: TimesheetCreate,
    user: User = Depends(_entry),
    db: AsyncSession = Depends(get_db),
):
    return await TimesheetService.create_timesheet(db, user, body)


@router.get("", response_model=TimesheetListResponse)
async def list_timesheets(
    user_id: Optional[uuid.UUID] = Query(None),
    all: bool = Query(False, description="Everyone's entries (admins and supervisors)"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    activity: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_entry),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await TimesheetService.list_timesheets(
        db,
        user,
        pagination,
        user_id=user_id,
        all_users=all,
        date_from=date_from,
        date_to=date_to,
        activity=activity,
    )
    return TimesheetListResponse(data=[TimesheetOut.model_validate(t) for t in rows], meta=meta)


@router.get("/summary", response_model=TimesheetSummary)
async def timesheet_summary(
    user_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    user: User = Depends(_entry),
    db: AsyncSession = Depends(get_db),
):
    """Hours per activity. Defaults to the caller; reviewers may pass ``user_id``."""
    target = user_id or user.id
    if target != user.id and not TimesheetService.can_review(user):
        raise ForbiddenException("You can only summarise your own timesheets.")
    return await TimesheetService.summary(db, target, date_from=date_from, date_to=date_to)


@router.get("/{timesheet_id}", response_model=TimesheetOut)
async def get_timesheet(
    timesheet_id: uuid.UUID,
    user: User = Depends(_entry),
    db: AsyncSession = Depends(get_db),
):
    return await TimesheetService.get_timesheet(db, timesheet_id, user)


@router.put("/{timesheet_id}", response_model=TimesheetOut)
async def update_timesheet(
    timesheet_id: uuid.UUID,
    body: TimesheetUpdate,
    user: User = Depends(_entry),
    db: AsyncSession = Depends(get_db),
):
    return await TimesheetService.update_timesheet(db, timesheet_id, user, body)


@router.delete("/{timesheet_id}", status_code=204)
async def delete_timesheet(
    timesheet_id: uuid.UUID,
    user: User = Depends(_entry),
    db: AsyncSession = Depends(get_db),
):
    await TimesheetService.delete_timesheet(db, timesheet_id, user)


# ── /api/timesheet-activities ───────────────────────────────────────

@activities_router.get("", response_model=list[ListValueOut])
async def timesheet_activities(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ListValueService.timesheet_activities(db)


# ── /api/list-values ────────────────────────────────────────────────

@list_values_router.get("", response_model=list[ListValueOut])
async def list_values(
    list_value_type: Optional[str] = Query(None),
    active_only: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ListValueService.list_values(db, list_value_type, active_only=active_only)


@list_values_router.post("", response_model=ListValueOut, status_code=201)
async def create_list_value(
    body: ListValueCreate,
    user: User = Depends(require_action("list_values")),
    db: AsyncSession = Depends(get_db),
):
    return await ListValueService.create_value(db, body)


@list_values_router.put("/{value_id}", response_model=ListValueOut)
async def update_list_value(
    value_id: uuid.UUID,
    body: ListValueUpdate,
    user: User = Depends(require_action("list_values")),
    db: AsyncSession = Depends(get_db),
):
    return await ListValueService.update_value(db, value_id, body)


@list_values_router.delete("/{value_id}", status_code=204)
async def delete_list_value(
    value_id: uuid.UUID,
    user: User = Depends(require_action("list_values")),
    db: AsyncSession = Depends(get_db),
):
    await ListValueService.delete_value(db, value_id)
