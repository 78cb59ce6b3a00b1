"""Complaint Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Out               → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from orcaa.common.constants import (
    COUNTIES,
    DEMOLITION_PROBLEM_TYPE,
    PROBLEM_TYPES,
    ComplaintStatus,
    ComplaintType,
    Priority,
)
from orcaa.common.pagination import PaginationMeta
from orcaa.config import settings
from orcaa.users.schemas import UserBrief


def _check_problem_types(values: list[str], *extra: str) -> list[str]:
    unknown = [v for v in values if v not in PROBLEM_TYPES and v not in extra]
    if unknown:
        raise ValueError(f"Unknown problem type(s): {', '.join(unknown)}")
    return list(dict.fromkeys(values))


# ═════════════════════════════════════════════════════════════════════
# Public intake
# ═════════════════════════════════════════════════════════════════════


class AirQualityComplaintCreate(BaseModel):
    """Public air-quality complaint form."""

    is_anonymous: bool = False
    complainant_first_name: Optional[str] = Field(None, max_length=100)
    complainant_last_name: Optional[str] = Field(None, max_length=100)
    complainant_email: EmailStr
    complainant_address: Optional[str] = Field(None, max_length=255)
    complainant_city: Optional[str] = Field(None, max_length=100)
    complainant_state: Optional[str] = Field(None, max_length=50)
    complainant_zip_code: Optional[str] = Field(None, max_length=10)
    complainant_phone: Optional[str] = Field(None, max_length=30)

    source_name: Optional[str] = Field(None, max_length=50)
    source_address: Optional[str] = Field(None, max_length=255)
    source_city: Optional[str] = Field(None, max_length=100)
    problem_types: list[str] = Field(..., min_length=1)
    other_description: Optional[str] = None
    last_occurred: Optional[str] = Field(None, max_length=100)
    previous_contact: bool = False

    @field_validator("problem_types")
    @classmethod
    def validate_problem_types(cls, v: list[str]) -> list[str]:
        return _check_problem_types(v)

    @model_validator(mode="after")
    def check_form_rules(self) -> "AirQualityComplaintCreate":
        if "other" in self.problem_types and not (self.other_description or "").strip():
            raise ValueError("other_description is required when problem type 'other' is selected")
        if not self.is_anonymous and not (
            (self.complainant_first_name or "").strip()
            and (self.complainant_last_name or "").strip()
        ):
            raise ValueError("First and last name are required unless the complaint is anonymous")
        return self


class DemolitionNoticeCreate(BaseModel):
    """Public demolition notification form. The property owner is the complainant."""

    property_owner_name: str = Field(..., min_length=1, max_length=200)
    property_owner_email: EmailStr
    property_owner_phone: str = Field(..., min_length=1, max_length=30)
    property_owner_address: str = Field(..., min_length=1, max_length=255)
    property_owner_city: Optional[str] = Field(None, max_length=100)
    property_owner_state: Optional[str] = Field(None, max_length=50)
    property_owner_zip: Optional[str] = Field(None, max_length=10)

    work_site_address: str = Field(..., min_length=1, max_length=255)
    work_site_city: str = Field(..., min_length=1, max_length=100)
    work_site_zip: str = Field(..., min_length=5, max_length=10)
    work_site_county: str

    is_primary_residence: bool = False
    asbestos_to_be_removed: bool = False
    asbestos_notification_number: Optional[str] = Field(None, max_length=50)
    project_start_date: date
    project_completion_date: date
    asbestos_square_feet: Optional[Decimal] = Field(None, ge=0)
    asbestos_linear_feet: Optional[Decimal] = Field(None, ge=0)
    asbestos_contractor_name: Optional[str] = Field(None, max_length=200)
    is_neshap_project: bool = False

    problem_description: str = Field(..., min_length=10)

    @field_validator("work_site_county")
    @classmethod
    def validate_county(cls, v: str) -> str:
        if v not in COUNTIES:
            raise ValueError(f"County must be one of: {', '.join(COUNTIES)}")
        return v

    @field_validator("project_start_date")
    @classmethod
    def validate_notice_period(cls, v: date) -> date:
        earliest = date.today() + timedelta(days=settings.DEMOLITION_NOTICE_DAYS)
        if v < earliest:
            raise ValueError(
                f"Project start date must be at least {settings.DEMOLITION_NOTICE_DAYS} days from today"
            )
        return v

    @model_validator(mode="after")
    def check_dates_and_asbestos(self) -> "DemolitionNoticeCreate":
        if self.project_completion_date < self.project_start_date:
            raise ValueError("project_completion_date must not precede project_start_date")
        if self.asbestos_to_be_removed and not (self.asbestos_notification_number or "").strip():
            raise ValueError("asbestos_notification_number is required when asbestos is removed")
        return self


# ═════════════════════════════════════════════════════════════════════
# Staff updates
# ═════════════════════════════════════════════════════════════════════


class ComplaintUpdate(BaseModel):
    """Partial update of a complaint. Status and assignee have their own endpoints."""

    priority: Optional[Priority] = None
    complainant_first_name: Optional[str] = Field(None, max_length=100)
    complainant_last_name: Optional[str] = Field(None, max_length=100)
    complainant_email: Optional[EmailStr] = None
    complainant_address: Optional[str] = Field(None, max_length=255)
    complainant_city: Optional[str] = Field(None, max_length=100)
    complainant_state: Optional[str] = Field(None, max_length=50)
    complainant_zip_code: Optional[str] = Field(None, max_length=10)
    complainant_phone: Optional[str] = Field(None, max_length=30)
    source_name: Optional[str] = Field(None, max_length=50)
    source_address: Optional[str] = Field(None, max_length=255)
    source_city: Optional[str] = Field(None, max_length=100)
    problem_types: Optional[list[str]] = Field(None, min_length=1)
    other_description: Optional[str] = None
    last_occurred: Optional[str] = Field(None, max_length=100)
    previous_contact: Optional[bool] = None
    work_site_address: Optional[str] = Field(None, max_length=255)
    work_site_city: Optional[str] = Field(None, max_length=100)
    work_site_zip: Optional[str] = Field(None, min_length=5, max_length=10)
    asbestos_notification_number: Optional[str] = Field(None, max_length=50)
    project_start_date: Optional[date] = None
    project_completion_date: Optional[date] = None
    problem_description: Optional[str] = None

    @field_validator("problem_types")
    @classmethod
    def validate_problem_types(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _check_problem_types(v, DEMOLITION_PROBLEM_TYPE)


class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus
    reason: Optional[str] = Field(None, max_length=1000)


class ComplaintAssign(BaseModel):
    """``assigned_to=None`` clears the assignment."""

    assigned_to: Optional[uuid.UUID] = None


class WorkDescriptionCreate(BaseModel):
    description: str = Field(..., min_length=1)
    status: Optional[ComplaintStatus] = None


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class AttachmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    created_at: datetime


class WorkDescriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    complaint_id: uuid.UUID
    description: str
    user_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    created_at: datetime


class ComplaintSummary(BaseModel):
    """Row shape used by the complaint list."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    complaint_id: str
    complaint_type: ComplaintType
    status: ComplaintStatus
    priority: Priority
    complainant_name: str
    complainant_email: str
    source_name: Optional[str] = None
    source_address: Optional[str] = None
    problem_types: list[str]
    assigned_to: Optional[uuid.UUID] = None
    workflow_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class ComplaintOut(ComplaintSummary):
    """Full complaint with attachments, work log and assignee."""

    is_anonymous: bool
    complainant_first_name: Optional[str] = None
    complainant_last_name: Optional[str] = None
    complainant_address: Optional[str] = None
    complainant_city: Optional[str] = None
    complainant_state: Optional[str] = None
    complainant_zip_code: Optional[str] = None
    complainant_phone: Optional[str] = None
    source_city: Optional[str] = None
    other_description: Optional[str] = None
    last_occurred: Optional[str] = None
    previous_contact: bool = False

    property_owner_name: Optional[str] = None
    property_owner_address: Optional[str] = None
    property_owner_city: Optional[str] = None
    property_owner_state: Optional[str] = None
    property_owner_zip: Optional[str] = None
    property_owner_phone: Optional[str] = None
    property_owner_email: Optional[str] = None
    work_site_address: Optional[str] = None
    work_site_city: Optional[str] = None
    work_site_zip: Optional[str] = None
    work_site_county: Optional[str] = None
    is_primary_residence: Optional[bool] = None
    asbestos_to_be_removed: Optional[bool] = None
    asbestos_notification_number: Optional[str] = None
    project_start_date: Optional[date] = None
    project_completion_date: Optional[date] = None
    asbestos_square_feet: Optional[Decimal] = None
    asbestos_linear_feet: Optional[Decimal] = None
    asbestos_contractor_name: Optional[str] = None
    is_neshap_project: Optional[bool] = None
    problem_description: Optional[str] = None

    assignee: Optional[UserBrief] = None
    attachments: list[AttachmentOut] = []
    work_descriptions: list[WorkDescriptionOut] = []


class ComplaintPublicOut(BaseModel):
    """What an anonymous visitor may see when looking up a tracking number."""

    model_config = ConfigDict(from_attributes=True)

    complaint_id: str
    complaint_type: ComplaintType
    status: ComplaintStatus
    created_at: datetime
    updated_at: datetime


class ComplaintSubmittedOut(ComplaintPublicOut):
    """Returned to the submitter; ``id`` is needed to upload attachments."""

    id: uuid.UUID


class ComplaintListResponse(BaseModel):
    data: list[ComplaintSummary]
    meta: PaginationMeta


class ComplaintStatistics(BaseModel):
    total: int
    in_progress: int
    resolved: int
    urgent: int


class MonthlyCount(BaseModel):
    month: str
    total: int
    in_progress: int
    resolved: int


class ComplaintAnalytics(BaseModel):
    by_status: dict[str, int]
    by_type: dict[str, int]
    by_priority: dict[str, int]
    by_problem_type: dict[str, int]
    monthly: list[MonthlyCount]
    last_12_months: list[MonthlyCount]


class FilterOption(BaseModel):
    value: str
    label: str


class ComplaintFilterOptions(BaseModel):
    statuses: list[FilterOption]
    priorities: list[FilterOption]
    complaint_types: list[FilterOption]
    problem_types: list[FilterOption]
    counties: list[FilterOption]
    assignees: list[UserBrief]
