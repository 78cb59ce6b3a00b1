"""Inbox service: read-only aggregation across complaints, tasks, requests and notifications.

All methods are static async, following the project convention.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.constants import (
    APPROVER_ROLES,
    OPEN_TASK_STATUSES,
    ComplaintStatus,
    RequestStatus,
)
from orcaa.complaints.models import Complaint
from orcaa.inbox.schemas import InboxCounts, InboxItem
from orcaa.leave.models import LeaveRequest
from orcaa.notifications.service import NotificationService
from orcaa.overtime.models import OvertimeRequest
from orcaa.users.models import User
from orcaa.workflow.models import WorkflowTask

_OPEN_REQUEST = (RequestStatus.pending.value, RequestStatus.forwarded.value)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class InboxService:

    @staticmethod
    def is_approver(user: User) -> bool:
        return user.is_admin or user.has_any_role(APPROVER_ROLES)

    @staticmethod
    async def _complaints(db: AsyncSession, user: User) -> list[InboxItem]:
        result = await db.execute(
            select(Complaint).where(
                Complaint.assigned_to == user.id,
                Complaint.status != ComplaintStatus.closed.value,
            )
        )
        return [
            InboxItem(
                kind="complaint",
                id=c.id,
                title=f"Complaint {c.complaint_id}",
                status=c.status,
                priority=c.priority,
                created_at=c.created_at,
                link=f"/complaints/{c.id}",
            )
            for c in result.scalars().all()
        ]

    @staticmethod
    async def _tasks(db: AsyncSession, user: User) -> list[InboxItem]:
        """Open tasks assigned to *user*, keeping only the most recent per complaint."""
        result = await db.execute(
            select(WorkflowTask)
            .where(
                WorkflowTask.assigned_to == user.id,
                WorkflowTask.status.in_([s.value for s in OPEN_TASK_STATUSES]),
            )
            .order_by(WorkflowTask.created_at, WorkflowTask.sequence)
        )
        latest: dict = {}
        for task in result.scalars().all():
            latest[task.complaint_id] = task
        return [
            InboxItem(
                kind="task",
                id=t.id,
                title=t.task_name,
                status=t.status,
                priority=t.priority,
                created_at=t.activated_at or t.created_at,
                link=f"/workflow-tasks/{t.id}",
            )
            for t in latest.values()
        ]

    @staticmethod
    async def _requests(db: AsyncSession, user: User) -> list[InboxItem]:
        """Own leave/overtime requests, plus others' open ones for approvers."""
        approver = InboxService.is_approver(user)
        items: list[InboxItem] = []

        for model, kind, label, path in (
            (LeaveRequest, "leave_request", "Leave request", "/leave-requests"),
            (OvertimeRequest, "overtime_request", "Overtime request", "/overtime-requests"),
        ):
            condition = model.user_id == user.id
            if approver:
                condition = or_(
                    condition,
                    model.status.in_(_OPEN_REQUEST),
                )
            result = await db.execute(select(model).where(condition))
            for row in result.scalars().all():
                own = row.user_id == user.id
                if kind == "leave_request":
                    title = f"{label}: {row.leave_type} {row.start_date} to {row.end_date}"
                else:
                    title = f"{label}: {row.hours} h on {row.date}"
                if not own:
                    title = f"Approval needed: {title}"
                items.append(
                    InboxItem(
                        kind=kind,
                        id=row.id,
                        title=title,
                        status=row.status,
                        created_at=row.created_at,
                        link=f"{path}/{row.id}",
                    )
                )
        return items

    @staticmethod
    async def _notifications(db: AsyncSession, user: User) -> list[InboxItem]:
        return [
            InboxItem(
                kind="notification",
                id=n.id,
                title=n.title,
                status=n.type,
                created_at=n.created_at,
                link=n.action_url or "/notifications",
                is_read=n.is_read,
            )
            for n in await NotificationService.recent_for_user(db, user.id)
        ]

    @staticmethod
    async def get_inbox(db: AsyncSession, user: User) -> list[InboxItem]:
        """Every inbox item for *user*, newest first."""
        items = (
            await InboxService._complaints(db, user)
            + await InboxService._tasks(db, user)
            + await InboxService._requests(db, user)
            + await InboxService._notifications(db, user)
        )
        items.sort(key=lambda item: _aware(item.created_at), reverse=True)
        return items

    @staticmethod
    async def get_counts(db: AsyncSession, user: User) -> InboxCounts:
        items = await InboxService.get_inbox(db, user)
        counts = Counter(item.kind for item in items if item.is_read is not True)
        return InboxCounts(**counts, total=sum(counts.values()))
