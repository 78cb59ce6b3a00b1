"""Timesheet and list-value schemas."""

from __future__ import annotations

import uuid
import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orcaa.common.pagination import PaginationMeta


# ═════════════════════════════════════════════════════════════════════
# List values
# ═════════════════════════════════════════════════════════════════════


class ListValueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    list_value_type: str
    code: str
    descr: str
    order: int
    value: Optional[str] = None
    is_active: bool


class ListValueCreate(BaseModel):
    list_value_type: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=100)
    descr: str = Field(..., min_length=1, max_length=255)
    order: int = Field(0, ge=0)
    value: Optional[str] = Field(None, max_length=255)
    is_active: bool = True


class ListValueUpdate(BaseModel):
    descr: Optional[str] = Field(None, min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)
    value: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


# ═════════════════════════════════════════════════════════════════════
# Timesheets
# ═════════════════════════════════════════════════════════════════════


def _not_in_future(v: Optional[dt.date]) -> Optional[dt.date]:
    if v is not None and v > dt.date.today():
        raise ValueError("Date cannot be in the future")
    return v


class TimesheetCreate(BaseModel):
    """One block of time against an activity."""

    date: dt.date
    activity: str = Field(..., min_length=1, max_length=100)
    comments: Optional[str] = None
    business_work_id: Optional[str] = Field(None, max_length=50)
    time_in_hours: Decimal = Field(..., ge=Decimal("0.25"), le=Decimal("24"), decimal_places=2)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: dt.date) -> dt.date:
        return _not_in_future(v)


class TimesheetUpdate(BaseModel):
    date: Optional[dt.date] = None
    activity: Optional[str] = Field(None, min_length=1, max_length=100)
    comments: Optional[str] = None
    business_work_id: Optional[str] = Field(None, max_length=50)
    time_in_hours: Optional[Decimal] = Field(
        None, ge=Decimal("0.25"), le=Decimal("24"), decimal_places=2,
    )

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[dt.date]) -> Optional[dt.date]:
        return _not_in_future(v)


class TimesheetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    date: dt.date
    activity: str
    comments: Optional[str] = None
    business_work_id: Optional[str] = None
    time_in_hours: Decimal
    created_at: datetime
    updated_at: datetime


class TimesheetListResponse(BaseModel):
    data: list[TimesheetOut]
    meta: PaginationMeta


class ActivityHours(BaseModel):
    activity: str
    hours: Decimal
    entries: int


class TimesheetSummary(BaseModel):
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    total_hours: Decimal
    by_activity: list[ActivityHours]
