"""Overtime request service."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orcaa.common.approvals import (
    approvers_for,
    can_decide,
    ensure_decidable,
    ensure_owner_pending,
)
from orcaa.common.audit import create_audit_entry
from orcaa.common.constants import AuditAction, RequestStatus
from orcaa.common.exceptions import ForbiddenException, NotFoundException, ValidationException
from orcaa.common.pagination import PaginationMeta, PaginationParams, paginate
from orcaa.notifications import service as notify
from orcaa.overtime.models import OvertimeRequest
from orcaa.overtime.schemas import OvertimeRequestCreate, OvertimeRequestUpdate
from orcaa.users.models import User
from orcaa.users.service import UserService

logger = logging.getLogger(__name__)

APPROVE_ACTION = "approve_overtime"


class OvertimeService:

    @staticmethod
    async def _load(db: AsyncSession, request_id: uuid.UUID) -> OvertimeRequest:
        result = await db.execute(
            select(OvertimeRequest)
            .options(selectinload(OvertimeRequest.user))
            .where(OvertimeRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        overtime = result.scalars().first()
        if overtime is None:
            raise NotFoundException("OvertimeRequest", request_id)
        return overtime

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID, user: User) -> OvertimeRequest:
        overtime = await OvertimeService._load(db, request_id)
        if overtime.user_id != user.id and not await can_decide(db, user, APPROVE_ACTION):
            raise ForbiddenException("You can only view your own overtime requests.")
        return overtime

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        user: User,
        params: PaginationParams,
        *,
        all_requests: bool = False,
        status: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[OvertimeRequest], PaginationMeta]:
        query = (
            select(OvertimeRequest)
            .options(selectinload(OvertimeRequest.user))
            .order_by(OvertimeRequest.created_at.desc())
        )
        if all_requests:
            if not await can_decide(db, user, APPROVE_ACTION):
                raise ForbiddenException("Only approvers can list all overtime requests.")
            if user_id:
                query = query.where(OvertimeRequest.user_id == user_id)
        else:
            query = query.where(OvertimeRequest.user_id == user.id)
        if status:
            query = query.where(OvertimeRequest.status == status)
        return await paginate(db, query, params, model=OvertimeRequest)

    @staticmethod
    async def create_request(
        db: AsyncSession, user: User, body: OvertimeRequestCreate,
    ) -> OvertimeRequest:
        overtime = OvertimeRequest(
            user_id=user.id,
            status=RequestStatus.pending.value,
            **body.model_dump(),
        )
        db.add(overtime)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.created,
            entity_type="overtime_request",
            entity_id=overtime.id,
            user_id=user.id,
            new_value={"date": body.date, "hours": body.hours},
            reason="Overtime request submitted",
        )
        for approver in await approvers_for(db, APPROVE_ACTION, exclude=user.id):
            await notify.notify_overtime_request(db, overtime, approver.id)

        logger.info("Overtime request %s submitted by %s", overtime.id, user.email)
        return await OvertimeService._load(db, overtime.id)

    @staticmethod
    async def update_request(
        db: AsyncSession, request_id: uuid.UUID, user: User, body: OvertimeRequestUpdate,
    ) -> OvertimeRequest:
        overtime = await OvertimeService._load(db, request_id)
        ensure_owner_pending(overtime, user, "overtime request")
        data = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
        for field, value in data.items():
            setattr(overtime, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.updated,
            entity_type="overtime_request",
            entity_id=overtime.id,
            user_id=user.id,
            new_value=data,
            reason=f"Updated fields: {', '.join(sorted(data))}",
        )
        return await OvertimeService._load(db, overtime.id)

    @staticmethod
    async def delete_request(db: AsyncSession, request_id: uuid.UUID, user: User) -> None:
        overtime = await OvertimeService._load(db, request_id)
        ensure_owner_pending(overtime, user, "overtime request")
        await db.delete(overtime)
        await db.flush()

    @staticmethod
    async def _decide(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: User,
        status: RequestStatus,
        *,
        reason: Optional[str] = None,
    ) -> OvertimeRequest:
        overtime = await OvertimeService._load(db, request_id)
        ensure_decidable(overtime, approver, "overtime request")
        previous = overtime.status
        overtime.status = status.value
        overtime.approved_by = approver.id
        overtime.approved_at = datetime.now(timezone.utc)
        if status == RequestStatus.rejected:
            overtime.rejection_reason = reason
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.status_changed,
            entity_type="overtime_request",
            entity_id=overtime.id,
            user_id=approver.id,
            previous_value=previous,
            new_value=status.value,
            reason=reason or f"Overtime request {status.value}",
        )
        await notify.notify_overtime_decision(db, overtime)
        return await OvertimeService._load(db, overtime.id)

    @staticmethod
    async def approve(db: AsyncSession, request_id: uuid.UUID, approver: User) -> OvertimeRequest:
        return await OvertimeService._decide(db, request_id, approver, RequestStatus.approved)

    @staticmethod
    async def reject(
        db: AsyncSession, request_id: uuid.UUID, approver: User, reason: str,
    ) -> OvertimeRequest:
        return await OvertimeService._decide(
            db, request_id, approver, RequestStatus.rejected, reason=reason,
        )

    @staticmethod
    async def forward(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: User,
        forwarded_to: uuid.UUID,
        comments: Optional[str] = None,
    ) -> OvertimeRequest:
        overtime = await OvertimeService._load(db, request_id)
        ensure_decidable(overtime, approver, "overtime request")
        target = await UserService.get_user(db, forwarded_to)
        if not target.is_active or not await can_decide(db, target, APPROVE_ACTION):
            raise ValidationException({"forwarded_to": ["User cannot approve overtime requests."]})
        if target.id == overtime.user_id:
            raise ValidationException({"forwarded_to": ["Cannot forward to the requester."]})

        previous = overtime.status
        overtime.status = RequestStatus.forwarded.value
        overtime.forwarded_to = target.id
        overtime.forward_comments = comments
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.status_changed,
            entity_type="overtime_request",
            entity_id=overtime.id,
            user_id=approver.id,
            previous_value=previous,
            new_value=RequestStatus.forwarded.value,
            reason=f"Forwarded to {target.display_name}" + (f": {comments}" if comments else ""),
        )
        await notify.notify_overtime_request(db, overtime, target.id)
        return await OvertimeService._load(db, overtime.id)
