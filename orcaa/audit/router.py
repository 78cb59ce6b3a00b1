"""Audit trail endpoint."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.audit.schemas import AuditTrailResponse
from orcaa.audit.service import AuditService
from orcaa.auth.dependencies import require_action
from orcaa.common.constants import AuditAction
from orcaa.common.pagination import PaginationParams
from orcaa.database import get_db
from orcaa.users.models import User

router = APIRouter(prefix="", tags=["audit"])


@router.get("", response_model=AuditTrailResponse)
async def list_audit_trail(
    complaint_id: Optional[uuid.UUID] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[uuid.UUID] = Query(None),
    action: Optional[AuditAction] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_action("audit_trail")),
    db: AsyncSession = Depends(get_db),
):
    """Audit entries, newest first. ``complaint_id`` narrows to one complaint."""
    return await AuditService.list_entries(
        db,
        pagination,
        complaint_id=complaint_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action.value if action else None,
        user_id=user_id,
    )
