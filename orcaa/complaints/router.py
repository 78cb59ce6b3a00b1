"""Complaint endpoints.

Public (no auth, rate limited): air-quality and demolition intake, attachment
upload, tracking-number lookup. Everything else requires a staff login.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user, require_action
from orcaa.common.constants import ComplaintStatus, ComplaintType, Priority
from orcaa.common.pagination import PaginationParams
from orcaa.common.rate_limit import PUBLIC_LOOKUP_LIMIT, PUBLIC_SUBMIT_LIMIT, limiter
from orcaa.complaints.schemas import (
    AirQualityComplaintCreate,
    AttachmentOut,
    ComplaintAnalytics,
    ComplaintAssign,
    ComplaintFilterOptions,
    ComplaintListResponse,
    ComplaintOut,
    ComplaintPublicOut,
    ComplaintStatistics,
    ComplaintStatusUpdate,
    ComplaintSubmittedOut,
    ComplaintSummary,
    ComplaintUpdate,
    DemolitionNoticeCreate,
    WorkDescriptionCreate,
    WorkDescriptionOut,
)
from orcaa.complaints.service import ComplaintService
from orcaa.database import get_db
from orcaa.users.models import User

router = APIRouter(prefix="", tags=["complaints"])
ids_router = APIRouter(prefix="", tags=["complaints"])

_view = require_action("view_complaints")
_edit = require_action("edit_complaints")


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# ── Public intake ───────────────────────────────────────────────────

@router.post("", response_model=ComplaintSubmittedOut, status_code=201)
@limiter.limit(PUBLIC_SUBMIT_LIMIT)
async def submit_air_quality_complaint(
    request: Request,
    body: AirQualityComplaintCreate,
    db: AsyncSession = Depends(get_db),
):
    """Public air-quality complaint form."""
    return await ComplaintService.create_air_quality(db, body, ip_address=_client_ip(request))


@router.post("/demolition", response_model=ComplaintSubmittedOut, status_code=201)
@limiter.limit(PUBLIC_SUBMIT_LIMIT)
async def submit_demolition_notice(
    request: Request,
    body: DemolitionNoticeCreate,
    db: AsyncSession = Depends(get_db),
):
    """Public demolition notification form."""
    return await ComplaintService.create_demolition(db, body, ip_address=_client_ip(request))


@router.post("/{complaint_id}/attachments", response_model=AttachmentOut, status_code=201)
@limiter.limit(PUBLIC_SUBMIT_LIMIT)
async def upload_attachment(
    request: Request,
    complaint_id: uuid.UUID,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.save_attachment(db, complaint_id, file)


@router.get("/public-search/{tracking_number}", response_model=ComplaintPublicOut)
@limiter.limit(PUBLIC_LOOKUP_LIMIT)
async def public_search(
    request: Request,
    tracking_number: str,
    db: AsyncSession = Depends(get_db),
):
    """Status lookup by tracking number (e.g. ``AQ-2025-001``)."""
    return await ComplaintService.get_by_tracking_number(db, tracking_number)


# ── Staff: lists & reports ──────────────────────────────────────────
# Static paths come before /{complaint_id}

@router.get("", response_model=ComplaintListResponse)
async def list_complaints(
    status: Optional[ComplaintStatus] = Query(None),
    priority: Optional[Priority] = Query(None),
    complaint_type: Optional[ComplaintType] = Query(None),
    problem_type: Optional[str] = Query(None),
    assigned_to: Optional[uuid.UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_view),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await ComplaintService.list_complaints(
        db,
        pagination,
        status=status.value if status else None,
        priority=priority.value if priority else None,
        complaint_type=complaint_type.value if complaint_type else None,
        problem_type=problem_type,
        assigned_to=assigned_to,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return ComplaintListResponse(
        data=[ComplaintSummary.model_validate(c) for c in rows], meta=meta,
    )


@router.get("/statistics", response_model=ComplaintStatistics)
async def complaint_statistics(
    user: User = Depends(_view),
    db: AsyncSession = Depends(get_db),
):
    """Dashboard cards: total, in progress, resolved, urgent."""
    return await ComplaintService.statistics(db)


@router.get("/analytics", response_model=ComplaintAnalytics)
async def complaint_analytics(
    user: User = Depends(require_action("view_reports")),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.analytics(db)


@router.get("/filter-options", response_model=ComplaintFilterOptions)
async def filter_options(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.filter_options(db)


# ── Staff: single complaint ─────────────────────────────────────────

@router.get("/{complaint_id}", response_model=ComplaintOut)
async def get_complaint(
    complaint_id: uuid.UUID,
    user: User = Depends(_view),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.get_complaint(db, complaint_id)


@router.put("/{complaint_id}", response_model=ComplaintOut)
async def update_complaint(
    complaint_id: uuid.UUID,
    body: ComplaintUpdate,
    request: Request,
    actor: User = Depends(_edit),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.update_complaint(
        db, complaint_id, body, actor_id=actor.id, ip_address=_client_ip(request),
    )


@router.put("/{complaint_id}/status", response_model=ComplaintOut)
async def update_status(
    complaint_id: uuid.UUID,
    body: ComplaintStatusUpdate,
    request: Request,
    actor: User = Depends(_edit),
    db: AsyncSession = Depends(get_db),
):
    """Write a new status. Only membership in the status set is checked."""
    return await ComplaintService.set_status(
        db,
        complaint_id,
        body.status,
        actor_id=actor.id,
        reason=body.reason,
        ip_address=_client_ip(request),
    )


@router.put("/{complaint_id}/assign", response_model=ComplaintOut)
async def assign_complaint(
    complaint_id: uuid.UUID,
    body: ComplaintAssign,
    request: Request,
    actor: User = Depends(require_action("assign_complaints")),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.assign(
        db, complaint_id, body.assigned_to, actor_id=actor.id, ip_address=_client_ip(request),
    )


@router.post(
    "/{complaint_id}/work-descriptions",
    response_model=WorkDescriptionOut,
    status_code=201,
)
async def add_work_description(
    complaint_id: uuid.UUID,
    body: WorkDescriptionCreate,
    request: Request,
    actor: User = Depends(_view),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.add_work_description(
        db, complaint_id, body, actor_id=actor.id, ip_address=_client_ip(request),
    )


@router.get("/{complaint_id}/work-descriptions", response_model=list[WorkDescriptionOut])
async def list_work_descriptions(
    complaint_id: uuid.UUID,
    user: User = Depends(_view),
    db: AsyncSession = Depends(get_db),
):
    return await ComplaintService.list_work_descriptions(db, complaint_id)


# ── /api/valid-complaint-ids ────────────────────────────────────────

@ids_router.get("/valid-complaint-ids", response_model=list[str])
async def valid_complaint_ids(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Tracking numbers accepted as a timesheet business work id."""
    return await ComplaintService.valid_complaint_ids(db)
