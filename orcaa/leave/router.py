"""Leave request endpoints.

All endpoints require authentication. Decisions require the ``approve_leave`` action.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import require_action
from orcaa.common.constants import RequestStatus
from orcaa.common.pagination import PaginationParams
from orcaa.database import get_db
from orcaa.leave.schemas import (
    LeaveForwardRequest,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestListResponse,
    LeaveRequestOut,
    LeaveRequestUpdate,
)
from orcaa.leave.service import APPROVE_ACTION, LeaveService
from orcaa.users.models import User

router = APIRouter(prefix="", tags=["leave"])

_requester = require_action("leave_requests")
_approver = require_action(APPROVE_ACTION)


@router.post("", response_model=LeaveRequestOut, status_code=201)
async def create_leave_request(
    body: LeaveRequestCreate,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Rejects overlaps with pending or approved requests."""
    return await LeaveService.create_request(db, user, body)


@router.get("", response_model=LeaveRequestListResponse)
async def list_leave_requests(
    all: bool = Query(False, description="Everyone's requests (approvers only)"),
    status: Optional[RequestStatus] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await LeaveService.list_requests(
        db,
        user,
        pagination,
        all_requests=all,
        status=status.value if status else None,
        user_id=user_id,
    )
    return LeaveRequestListResponse(
        data=[LeaveRequestOut.model_validate(r) for r in rows], meta=meta,
    )


@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, user)


@router.put("/{request_id}", response_model=LeaveRequestOut)
async def update_leave_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_request(db, request_id, user, body)


@router.delete("/{request_id}", status_code=204)
async def delete_leave_request(
    request_id: uuid.UUID,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    await LeaveService.delete_request(db, request_id, user)


# ── Decisions ───────────────────────────────────────────────────────

@router.put("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave_request(
    request_id: uuid.UUID,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.approve(db, request_id, user)


@router.put("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave_request(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.reject(db, request_id, user, body.reason)


@router.put("/{request_id}/forward", response_model=LeaveRequestOut)
async def forward_leave_request(
    request_id: uuid.UUID,
    body: LeaveForwardRequest,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.forward(db, request_id, user, body.forwarded_to, body.comments)
