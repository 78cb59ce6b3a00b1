"""Inbox endpoints: the signed-in user's unified work queue."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user
from orcaa.database import get_db
from orcaa.inbox.schemas import InboxCounts, InboxItem
from orcaa.inbox.service import InboxService
from orcaa.users.models import User

router = APIRouter(prefix="", tags=["inbox"])


@router.get("", response_model=list[InboxItem])
async def get_inbox(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Assigned complaints, open tasks, leave/overtime requests and notifications, newest first."""
    return await InboxService.get_inbox(db, user)


@router.get("/counts", response_model=InboxCounts)
async def get_inbox_counts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Counts per kind; read notifications are not counted."""
    return await InboxService.get_counts(db, user)
