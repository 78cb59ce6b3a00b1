"""Timesheet and list-value service layer."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.constants import TIMESHEET_ACTIVITY_LIST, UserRole
from orcaa.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from orcaa.common.pagination import PaginationMeta, PaginationParams, paginate
from orcaa.timesheets.models import ListValue, Timesheet
from orcaa.timesheets.schemas import (
    ActivityHours,
    ListValueCreate,
    ListValueUpdate,
    TimesheetCreate,
    TimesheetSummary,
    TimesheetUpdate,
)
from orcaa.users.models import User

logger = logging.getLogger(__name__)

# Roles that may read everyone's timesheets
TIMESHEET_REVIEW_ROLES = (UserRole.admin, UserRole.supervisor)


class ListValueService:
    """Administrator-maintained dropdown values."""

    @staticmethod
    async def list_values(
        db: AsyncSession,
        list_value_type: Optional[str] = None,
        *,
        active_only: bool = False,
    ) -> list[ListValue]:
        query = select(ListValue).order_by(
            ListValue.list_value_type, ListValue.order, ListValue.descr,
        )
        if list_value_type:
            query = query.where(ListValue.list_value_type == list_value_type)
        if active_only:
            query = query.where(ListValue.is_active.is_(True))
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_value(db: AsyncSession, value_id: uuid.UUID) -> ListValue:
        item = await db.get(ListValue, value_id)
        if item is None:
            raise NotFoundException("List value", value_id)
        return item

    @staticmethod
    async def create_value(db: AsyncSession, body: ListValueCreate) -> ListValue:
        existing = await db.execute(
            select(ListValue).where(
                ListValue.list_value_type == body.list_value_type,
                ListValue.code == body.code,
            )
        )
        if existing.scalars().first() is not None:
            raise ConflictError("code", f"{body.list_value_type}:{body.code}")
        item = ListValue(**body.model_dump())
        db.add(item)
        await db.flush()
        return item

    @staticmethod
    async def update_value(
        db: AsyncSession, value_id: uuid.UUID, body: ListValueUpdate,
    ) -> ListValue:
        item = await ListValueService.get_value(db, value_id)
        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(item, field, value)
        await db.flush()
        return item

    @staticmethod
    async def delete_value(db: AsyncSession, value_id: uuid.UUID) -> None:
        item = await ListValueService.get_value(db, value_id)
        await db.delete(item)
        await db.flush()

    @staticmethod
    async def timesheet_activities(db: AsyncSession) -> list[ListValue]:
        return await ListValueService.list_values(
            db, TIMESHEET_ACTIVITY_LIST, active_only=True,
        )


class TimesheetService:

    @staticmethod
    async def _check_activity(db: AsyncSession, activity: str) -> None:
        """When activity values are configured, *activity* must be one of their codes."""
        codes = {v.code for v in await ListValueService.timesheet_activities(db)}
        if codes and activity not in codes:
            raise ValidationException({"activity": [f"Unknown activity: {activity}"]})

    @staticmethod
    def can_review(user: User) -> bool:
        return user.is_admin or user.has_any_role(TIMESHEET_REVIEW_ROLES)

    @staticmethod
    async def get_timesheet(db: AsyncSession, timesheet_id: uuid.UUID, user: User) -> Timesheet:
        entry = await db.get(Timesheet, timesheet_id)
        if entry is None:
            raise NotFoundException("Timesheet", timesheet_id)
        if entry.user_id != user.id and not TimesheetService.can_review(user):
            raise ForbiddenException("You can only access your own timesheets.")
        return entry

    @staticmethod
    async def create_timesheet(db: AsyncSession, user: User, body: TimesheetCreate) -> Timesheet:
        await TimesheetService._check_activity(db, body.activity)
        entry = Timesheet(user_id=user.id, **body.model_dump())
        db.add(entry)
        await db.flush()
        logger.info("Timesheet %s: %s h on %s by %s", entry.id, entry.time_in_hours, entry.date, user.email)
        return entry

    @staticmethod
    async def list_timesheets(
        db: AsyncSession,
        user: User,
        params: PaginationParams,
        *,
        user_id: Optional[uuid.UUID] = None,
        all_users: bool = False,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        activity: Optional[str] = None,
    ) -> tuple[list[Timesheet], PaginationMeta]:
        """Own entries; reviewers may pass ``user_id`` or ``all_users``."""
        query = select(Timesheet).order_by(Timesheet.date.desc(), Timesheet.created_at.desc())
        if TimesheetService.can_review(user) and (all_users or user_id):
            if user_id:
                query = query.where(Timesheet.user_id == user_id)
        else:
            if user_id and user_id != user.id:
                raise ForbiddenException("You can only access your own timesheets.")
            query = query.where(Timesheet.user_id == user.id)
        if date_from:
            query = query.where(Timesheet.date >= date_from)
        if date_to:
            query = query.where(Timesheet.date <= date_to)
        if activity:
            query = query.where(Timesheet.activity == activity)
        return await paginate(db, query, params, model=Timesheet)

    @staticmethod
    async def update_timesheet(
        db: AsyncSession, timesheet_id: uuid.UUID, user: User, body: TimesheetUpdate,
    ) -> Timesheet:
        entry = await TimesheetService.get_timesheet(db, timesheet_id, user)
        if entry.user_id != user.id and not user.is_admin:
            raise ForbiddenException("You can only edit your own timesheets.")
        data = body.model_dump(exclude_unset=True)
        if data.get("activity"):
            await TimesheetService._check_activity(db, data["activity"])
        for field, value in data.items():
            setattr(entry, field, value)
        await db.flush()
        return entry

    @staticmethod
    async def delete_timesheet(db: AsyncSession, timesheet_id: uuid.UUID, user: User) -> None:
        entry = await TimesheetService.get_timesheet(db, timesheet_id, user)
        if entry.user_id != user.id and not user.is_admin:
            raise ForbiddenException("You can only delete your own timesheets.")
        await db.delete(entry)
        await db.flush()

    @staticmethod
    async def summary(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> TimesheetSummary:
        """Hours per activity for one user over a date range."""
        query = select(Timesheet).where(Timesheet.user_id == user_id)
        if date_from:
            query = query.where(Timesheet.date >= date_from)
        if date_to:
            query = query.where(Timesheet.date <= date_to)
        result = await db.execute(query)

        hours: dict[str, Decimal] = {}
        entries: dict[str, int] = {}
        for row in result.scalars().all():
            hours[row.activity] = hours.get(row.activity, Decimal("0")) + Decimal(row.time_in_hours)
            entries[row.activity] = entries.get(row.activity, 0) + 1

        by_activity = [
            ActivityHours(activity=name, hours=total, entries=entries[name])
            for name, total in sorted(hours.items(), key=lambda kv: (-kv[1], kv[0]))
        ]
        return TimesheetSummary(
            date_from=date_from,
            date_to=date_to,
            total_hours=sum(hours.values(), Decimal("0")),
            by_activity=by_activity,
        )
