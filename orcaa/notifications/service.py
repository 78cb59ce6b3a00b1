"""Notification service: in-app CRUD plus cross-module dispatchers."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.constants import DATE_FORMAT, NotificationType
from orcaa.common.exceptions import ForbiddenException, NotFoundException
from orcaa.common.pagination import PaginationParams, paginate
from orcaa.notifications import channels, templates
from orcaa.notifications.models import Notification
from orcaa.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

if TYPE_CHECKING:
    from orcaa.complaints.models import Complaint
    from orcaa.leave.models import LeaveRequest
    from orcaa.overtime.models import OvertimeRequest
    from orcaa.users.models import User
    from orcaa.workflow.models import WorkflowTask

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async in-app notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient_id,
            type=type.value,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Paginated notifications for a user, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type.value)

        rows, meta = await paginate(db, query, pagination)

        # Unread count ignores the filters above; it feeds the header badge
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def recent_for_user(
        db: AsyncSession, user_id: uuid.UUID, *, limit: int = 20,
    ) -> list[Notification]:
        result = await db.execute(
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != user_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Bulk-mark every unread notification as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Outbound helpers ────────────────────────────────────────────────


async def alert_user(user: User, message: str) -> bool:
    """SMS and/or WhatsApp a staff member according to their preferences."""
    sent = False
    if user.enable_sms_notifications and user.sms_number:
        sent = await channels.send_sms(user.sms_number, message) or sent
    if user.enable_whatsapp_notifications and user.whatsapp_number:
        sent = await channels.send_whatsapp(user.whatsapp_number, message) or sent
    return sent


async def email_complainant(complaint: Complaint, subject: str, body: str, **extra) -> bool:
    ctx = templates.complaint_context(complaint, **extra)
    rendered_subject, rendered_body = templates.render(subject, body, ctx)
    return await channels.send_email(
        complaint.complainant_email,
        rendered_subject,
        rendered_body,
        to_name=complaint.complainant_name,
    )


# ── Cross-module dispatchers ────────────────────────────────────────
# Imported by the complaints, workflow, leave and overtime services. They
# take ORM objects directly to avoid schema coupling.


async def notify_complaint_received(complaint: Complaint) -> bool:
    return await email_complainant(
        complaint,
        templates.COMPLAINT_RECEIVED_SUBJECT,
        templates.COMPLAINT_RECEIVED_BODY,
    )


async def notify_status_change(complaint: Complaint, assignee: Optional[User]) -> None:
    """Tell the assignee (SMS) and the complainant (email) about a new status."""
    ctx = templates.complaint_context(complaint)
    if assignee is not None:
        await alert_user(assignee, channels.substitute_variables(templates.STATUS_SMS, ctx))
    if complaint.status == "closed":
        await email_complainant(
            complaint,
            templates.COMPLAINT_RESOLVED_SUBJECT,
            templates.COMPLAINT_RESOLVED_BODY,
        )
    else:
        await email_complainant(
            complaint,
            templates.STATUS_UPDATE_SUBJECT,
            templates.STATUS_UPDATE_BODY,
        )


async def notify_complaint_assigned(
    db: AsyncSession, complaint: Complaint, assignee: User,
) -> Notification:
    ctx = templates.complaint_context(complaint)
    await alert_user(assignee, channels.substitute_variables(templates.ASSIGNED_SMS, ctx))
    return await NotificationService.create_notification(
        db,
        recipient_id=assignee.id,
        type=NotificationType.action_required,
        title="Complaint Assigned",
        message=f"Complaint {complaint.complaint_id} has been assigned to you.",
        action_url=f"/complaints/{complaint.id}",
        entity_type="complaint",
        entity_id=complaint.id,
    )


async def notify_task_assigned(
    db: AsyncSession, task: WorkflowTask, complaint: Complaint, assignee: User,
) -> Notification:
    """In-app notification, email and SMS for a newly activated task."""
    ctx = templates.complaint_context(
        complaint,
        task_name=task.task_name,
        due_date=task.due_date.strftime(DATE_FORMAT) if task.due_date else "not set",
    )
    subject, body = templates.render(
        templates.TASK_ASSIGNMENT_SUBJECT, templates.TASK_ASSIGNMENT_BODY, ctx,
    )
    await channels.send_email(assignee.email, subject, body, to_name=assignee.display_name)
    await alert_user(assignee, channels.substitute_variables(templates.TASK_SMS, ctx))
    return await NotificationService.create_notification(
        db,
        recipient_id=assignee.id,
        type=NotificationType.action_required,
        title="Task Assigned",
        message=f'"{task.task_name}" for complaint {complaint.complaint_id} is assigned to you.',
        action_url=f"/workflow-tasks/{task.id}",
        entity_type="workflow_task",
        entity_id=task.id,
    )


async def notify_action_required(complaint: Complaint, user: User, task_name: str) -> bool:
    ctx = templates.complaint_context(complaint, task_name=task_name)
    subject, body = templates.render(
        templates.ACTION_REQUIRED_SUBJECT, templates.ACTION_REQUIRED_BODY, ctx,
    )
    return await channels.send_email(user.email, subject, body, to_name=user.display_name)


async def notify_leave_request(
    db: AsyncSession, leave_request: LeaveRequest, approver_id: uuid.UUID,
) -> Notification:
    """Tell an approver that a leave request needs review."""
    return await NotificationService.create_notification(
        db,
        recipient_id=approver_id,
        type=NotificationType.action_required,
        title="New Leave Request",
        message=(
            f"A {leave_request.leave_type} leave request from {leave_request.start_date} "
            f"to {leave_request.end_date} ({leave_request.total_days} day(s)) "
            f"requires your approval."
        ),
        action_url=f"/leave-requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_decision(
    db: AsyncSession, leave_request: LeaveRequest,
) -> Notification:
    """Tell the requester their leave request was approved or rejected."""
    approved = leave_request.status == "approved"
    message = (
        f"Your leave request from {leave_request.start_date} to "
        f"{leave_request.end_date} has been {leave_request.status}."
    )
    if not approved and leave_request.rejection_reason:
        message += f" Reason: {leave_request.rejection_reason}"
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.user_id,
        type=NotificationType.approval if approved else NotificationType.alert,
        title="Leave Request Approved" if approved else "Leave Request Rejected",
        message=message,
        action_url=f"/leave-requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_overtime_request(
    db: AsyncSession, overtime: OvertimeRequest, approver_id: uuid.UUID,
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=approver_id,
        type=NotificationType.action_required,
        title="New Overtime Request",
        message=(
            f"An overtime request for {overtime.hours} hour(s) on {overtime.date} "
            f"requires your approval."
        ),
        action_url=f"/overtime-requests/{overtime.id}",
        entity_type="overtime_request",
        entity_id=overtime.id,
    )


async def notify_overtime_decision(
    db: AsyncSession, overtime: OvertimeRequest,
) -> Notification:
    approved = overtime.status == "approved"
    message = f"Your overtime request for {overtime.date} has been {overtime.status}."
    if not approved and overtime.rejection_reason:
        message += f" Reason: {overtime.rejection_reason}"
    return await NotificationService.create_notification(
        db,
        recipient_id=overtime.user_id,
        type=NotificationType.approval if approved else NotificationType.alert,
        title="Overtime Request Approved" if approved else "Overtime Request Rejected",
        message=message,
        action_url=f"/overtime-requests/{overtime.id}",
        entity_type="overtime_request",
        entity_id=overtime.id,
    )
