"""Audit trail response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from orcaa.common.pagination import PaginationMeta


class AuditEntryOut(BaseModel):
    id: uuid.UUID
    complaint_id: Optional[uuid.UUID] = None
    entity_type: str
    entity_id: Optional[uuid.UUID] = None
    action: str
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    user_id: Optional[uuid.UUID] = None
    user_name: Optional[str] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    timestamp: datetime


class AuditTrailResponse(BaseModel):
    data: list[AuditEntryOut]
    meta: PaginationMeta
