"""Overtime request endpoints. Decisions require ``approve_overtime``."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import require_action
from orcaa.common.constants import RequestStatus
from orcaa.common.pagination import PaginationParams
from orcaa.database import get_db
from orcaa.overtime.schemas import (
    OvertimeForwardRequest,
    OvertimeRejectRequest,
    OvertimeRequestCreate,
    OvertimeRequestListResponse,
    OvertimeRequestOut,
    OvertimeRequestUpdate,
)
from orcaa.overtime.service import APPROVE_ACTION, OvertimeService
from orcaa.users.models import User

router = APIRouter(prefix="", tags=["overtime"])

_requester = require_action("overtime_requests")
_approver = require_action(APPROVE_ACTION)


@router.post("", response_model=OvertimeRequestOut, status_code=201)
async def create_overtime_request(
    body: OvertimeRequestCreate,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.create_request(db, user, body)


@router.get("", response_model=OvertimeRequestListResponse)
async def list_overtime_requests(
    all: bool = Query(False, description="Everyone's requests (approvers only)"),
    status: Optional[RequestStatus] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await OvertimeService.list_requests(
        db,
        user,
        pagination,
        all_requests=all,
        status=status.value if status else None,
        user_id=user_id,
    )
    return OvertimeRequestListResponse(
        data=[OvertimeRequestOut.model_validate(r) for r in rows], meta=meta,
    )


@router.get("/{request_id}", response_model=OvertimeRequestOut)
async def get_overtime_request(
    request_id: uuid.UUID,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.get_request(db, request_id, user)


@router.put("/{request_id}", response_model=OvertimeRequestOut)
async def update_overtime_request(
    request_id: uuid.UUID,
    body: OvertimeRequestUpdate,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.update_request(db, request_id, user, body)


@router.delete("/{request_id}", status_code=204)
async def delete_overtime_request(
    request_id: uuid.UUID,
    user: User = Depends(_requester),
    db: AsyncSession = Depends(get_db),
):
    await OvertimeService.delete_request(db, request_id, user)


# ── Decisions ───────────────────────────────────────────────────────

@router.put("/{request_id}/approve", response_model=OvertimeRequestOut)
async def approve_overtime_request(
    request_id: uuid.UUID,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.approve(db, request_id, user)


@router.put("/{request_id}/reject", response_model=OvertimeRequestOut)
async def reject_overtime_request(
    request_id: uuid.UUID,
    body: OvertimeRejectRequest,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.reject(db, request_id, user, body.reason)


@router.put("/{request_id}/forward", response_model=OvertimeRequestOut)
async def forward_overtime_request(
    request_id: uuid.UUID,
    body: OvertimeForwardRequest,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.forward(db, request_id, user, body.forwarded_to, body.comments)
