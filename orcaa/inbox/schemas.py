"""Inbox item and count schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

InboxKind = Literal["complaint", "task", "leave_request", "overtime_request", "notification"]


class InboxItem(BaseModel):
    """One row of the unified inbox, whatever its source."""

    kind: InboxKind
    id: uuid.UUID
    title: str
    status: Optional[str] = None
    priority: Optional[str] = None
    created_at: datetime
    link: str
    is_read: Optional[bool] = None


class InboxCounts(BaseModel):
    complaint: int = 0
    task: int = 0
    leave_request: int = 0
    overtime_request: int = 0
    notification: int = 0
    total: int = 0
