"""Leave request Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from orcaa.common.constants import LEAVE_TYPES, RequestStatus
from orcaa.common.pagination import PaginationMeta
from orcaa.users.schemas import UserBrief


def _check_leave_type(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in LEAVE_TYPES:
        raise ValueError(f"Leave type must be one of: {', '.join(LEAVE_TYPES)}")
    return v


class LeaveRequestCreate(BaseModel):
    leave_type: str
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("leave_type")
    @classmethod
    def validate_leave_type(cls, v: str) -> str:
        return _check_leave_type(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason is required")
        return v.strip()

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must not precede start date")
        return self


class LeaveRequestUpdate(BaseModel):
    """Owner edit while the request is still pending."""

    leave_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)

    @field_validator("leave_type")
    @classmethod
    def validate_leave_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_leave_type(v)

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveRequestUpdate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must not precede start date")
        return self


class LeaveRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class LeaveForwardRequest(BaseModel):
    forwarded_to: uuid.UUID
    comments: Optional[str] = Field(None, max_length=1000)


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    user: Optional[UserBrief] = None
    leave_type: str
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: RequestStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    forwarded_to: Optional[uuid.UUID] = None
    forward_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    data: list[LeaveRequestOut]
    meta: PaginationMeta
