"""Overtime request schemas."""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orcaa.common.constants import RequestStatus
from orcaa.common.pagination import PaginationMeta
from orcaa.users.schemas import UserBrief

MIN_HOURS = Decimal("0.1")
MAX_HOURS = Decimal("12")


def _not_in_future(v: Optional[dt.date]) -> Optional[dt.date]:
    if v is not None and v > dt.date.today():
        raise ValueError("Overtime date cannot be in the future")
    return v


class OvertimeRequestCreate(BaseModel):
    date: dt.date
    hours: Decimal = Field(..., ge=MIN_HOURS, le=MAX_HOURS, decimal_places=2)
    project_description: str = Field(..., min_length=1)
    justification: str = Field(..., min_length=1)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: dt.date) -> dt.date:
        return _not_in_future(v)


class OvertimeRequestUpdate(BaseModel):
    date: Optional[dt.date] = None
    hours: Optional[Decimal] = Field(None, ge=MIN_HOURS, le=MAX_HOURS, decimal_places=2)
    project_description: Optional[str] = Field(None, min_length=1)
    justification: Optional[str] = Field(None, min_length=1)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[dt.date]) -> Optional[dt.date]:
        return _not_in_future(v)


class OvertimeRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class OvertimeForwardRequest(BaseModel):
    forwarded_to: uuid.UUID
    comments: Optional[str] = Field(None, max_length=1000)


class OvertimeRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    user: Optional[UserBrief] = None
    date: dt.date
    hours: Decimal
    project_description: str
    justification: str
    status: RequestStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    forwarded_to: Optional[uuid.UUID] = None
    forward_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OvertimeRequestListResponse(BaseModel):
    data: list[OvertimeRequestOut]
    meta: PaginationMeta
