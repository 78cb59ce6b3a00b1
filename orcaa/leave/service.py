"""Leave request service: submit, edit, approve / reject / forward."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orcaa.common.approvals import (
    DECIDABLE_STATUSES,
    approvers_for,
    can_decide,
    ensure_decidable,
    ensure_owner_pending,
)
from orcaa.common.audit import create_audit_entry
from orcaa.common.constants import AuditAction, RequestStatus
from orcaa.common.exceptions import ForbiddenException, NotFoundException, ValidationException
from orcaa.common.pagination import PaginationMeta, PaginationParams, paginate
from orcaa.leave.models import LeaveRequest
from orcaa.leave.schemas import LeaveRequestCreate, LeaveRequestUpdate
from orcaa.notifications import service as notify
from orcaa.users.models import User
from orcaa.users.service import UserService

logger = logging.getLogger(__name__)

APPROVE_ACTION = "approve_leave"


class LeaveService:

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.user))
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_req

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID, user: User) -> LeaveRequest:
        leave_req = await LeaveService._load(db, request_id)
        if leave_req.user_id != user.id and not await can_decide(db, user, APPROVE_ACTION):
            raise ForbiddenException("You can only view your own leave requests.")
        return leave_req

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        user: User,
        params: PaginationParams,
        *,
        all_requests: bool = False,
        status: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[LeaveRequest], PaginationMeta]:
        """The caller's own requests, or everyone's for approvers with ``all_requests``."""
        query = (
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.user))
            .order_by(LeaveRequest.created_at.desc())
        )
        if all_requests:
            if not await can_decide(db, user, APPROVE_ACTION):
                raise ForbiddenException("Only approvers can list all leave requests.")
            if user_id:
                query = query.where(LeaveRequest.user_id == user_id)
        else:
            query = query.where(LeaveRequest.user_id == user.id)
        if status:
            query = query.where(LeaveRequest.status == status)
        return await paginate(db, query, params, model=LeaveRequest)

    # ─────────────────────────────────────────────────────────────────
    # Submit / edit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        user_id: uuid.UUID,
        start: date,
        end: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.user_id == user_id,
            LeaveRequest.status.in_([*DECIDABLE_STATUSES, RequestStatus.approved.value]),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

    @staticmethod
    async def create_request(
        db: AsyncSession, user: User, body: LeaveRequestCreate,
    ) -> LeaveRequest:
        await LeaveService._check_overlap(db, user.id, body.start_date, body.end_date)

        leave_req = LeaveRequest(
            user_id=user.id,
            leave_type=body.leave_type,
            start_date=body.start_date,
            end_date=body.end_date,
            reason=body.reason,
            status=RequestStatus.pending.value,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.created,
            entity_type="leave_request",
            entity_id=leave_req.id,
            user_id=user.id,
            new_value={
                "leave_type": body.leave_type,
                "start_date": body.start_date,
                "end_date": body.end_date,
                "total_days": leave_req.total_days,
            },
            reason="Leave request submitted",
        )
        for approver in await approvers_for(db, APPROVE_ACTION, exclude=user.id):
            await notify.notify_leave_request(db, leave_req, approver.id)

        logger.info("Leave request %s submitted by %s", leave_req.id, user.email)
        return await LeaveService._load(db, leave_req.id)

    @staticmethod
    async def update_request(
        db: AsyncSession, request_id: uuid.UUID, user: User, body: LeaveRequestUpdate,
    ) -> LeaveRequest:
        leave_req = await LeaveService._load(db, request_id)
        ensure_owner_pending(leave_req, user, "leave request")

        data = body.model_dump(exclude_unset=True)
        start = data.get("start_date") or leave_req.start_date
        end = data.get("end_date") or leave_req.end_date
        if end < start:
            raise ValidationException({"end_date": ["End date must not precede start date."]})
        if "start_date" in data or "end_date" in data:
            await LeaveService._check_overlap(db, user.id, start, end, exclude_id=leave_req.id)

        for field, value in data.items():
            if value is not None:
                setattr(leave_req, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.updated,
            entity_type="leave_request",
            entity_id=leave_req.id,
            user_id=user.id,
            new_value=data,
            reason=f"Updated fields: {', '.join(sorted(data))}",
        )
        return await LeaveService._load(db, leave_req.id)

    @staticmethod
    async def delete_request(db: AsyncSession, request_id: uuid.UUID, user: User) -> None:
        leave_req = await LeaveService._load(db, request_id)
        ensure_owner_pending(leave_req, user, "leave request")
        await db.delete(leave_req)
        await db.flush()

    # ─────────────────────────────────────────────────────────────────
    # Decisions
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _decide(
        db: AsyncSession,
        leave_req: LeaveRequest,
        approver: User,
        status: RequestStatus,
        *,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        ensure_decidable(leave_req, approver, "leave request")
        previous = leave_req.status
        leave_req.status = status.value
        leave_req.approved_by = approver.id
        leave_req.approved_at = datetime.now(timezone.utc)
        if status == RequestStatus.rejected:
            leave_req.rejection_reason = reason
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.status_changed,
            entity_type="leave_request",
            entity_id=leave_req.id,
            user_id=approver.id,
            previous_value=previous,
            new_value=status.value,
            reason=reason or f"Leave request {status.value}",
        )
        await notify.notify_leave_decision(db, leave_req)
        return await LeaveService._load(db, leave_req.id)

    @staticmethod
    async def approve(db: AsyncSession, request_id: uuid.UUID, approver: User) -> LeaveRequest:
        leave_req = await LeaveService._load(db, request_id)
        return await LeaveService._decide(db, leave_req, approver, RequestStatus.approved)

    @staticmethod
    async def reject(
        db: AsyncSession, request_id: uuid.UUID, approver: User, reason: str,
    ) -> LeaveRequest:
        leave_req = await LeaveService._load(db, request_id)
        return await LeaveService._decide(
            db, leave_req, approver, RequestStatus.rejected, reason=reason,
        )

    @staticmethod
    async def forward(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: User,
        forwarded_to: uuid.UUID,
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        """Hand the decision to another approver."""
        leave_req = await LeaveService._load(db, request_id)
        ensure_decidable(leave_req, approver, "leave request")
        target = await UserService.get_user(db, forwarded_to)
        if not target.is_active or not await can_decide(db, target, APPROVE_ACTION):
            raise ValidationException({"forwarded_to": ["User cannot approve leave requests."]})
        if target.id == leave_req.user_id:
            raise ValidationException({"forwarded_to": ["Cannot forward to the requester."]})

        previous = leave_req.status
        leave_req.status = RequestStatus.forwarded.value
        leave_req.forwarded_to = target.id
        leave_req.forward_comments = comments
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.status_changed,
            entity_type="leave_request",
            entity_id=leave_req.id,
            user_id=approver.id,
            previous_value=previous,
            new_value=RequestStatus.forwarded.value,
            reason=f"Forwarded to {target.display_name}" + (f": {comments}" if comments else ""),
        )
        await notify.notify_leave_request(db, leave_req, target.id)
        return await LeaveService._load(db, leave_req.id)
