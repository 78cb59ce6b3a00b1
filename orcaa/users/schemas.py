"""User and Role Pydantic schemas for request / response validation."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from orcaa.common.pagination import PaginationMeta


def _dedupe(roles: list[str]) -> list[str]:
    seen: list[str] = []
    for role in roles:
        role = role.strip()
        if role and role not in seen:
            seen.append(role)
    return seen


# ── Users ───────────────────────────────────────────────────────────

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    profile_image_url: Optional[str] = None
    roles: list[str]
    phone: Optional[str] = None
    mobile_number: Optional[str] = None
    whatsapp_number: Optional[str] = None
    enable_sms_notifications: bool = True
    enable_whatsapp_notifications: bool = True
    is_active: bool = True
    created_at: datetime


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    display_name: str


class CurrentUserOut(UserOut):
    """``GET /api/auth/user``: profile plus the action ids the user may perform."""

    permissions: list[str] = []


class UserCreate(BaseModel):
    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    roles: list[str] = Field(default_factory=lambda: ["field_staff"], min_length=1)
    phone: Optional[str] = Field(None, max_length=30)
    mobile_number: Optional[str] = Field(None, max_length=30)
    whatsapp_number: Optional[str] = Field(None, max_length=30)
    enable_sms_notifications: bool = True
    enable_whatsapp_notifications: bool = True

    @field_validator("roles")
    @classmethod
    def normalize_roles(cls, v: list[str]) -> list[str]:
        return _dedupe(v)


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    mobile_number: Optional[str] = Field(None, max_length=30)
    whatsapp_number: Optional[str] = Field(None, max_length=30)
    enable_sms_notifications: Optional[bool] = None
    enable_whatsapp_notifications: Optional[bool] = None
    is_active: Optional[bool] = None


class UserRolesUpdate(BaseModel):
    roles: list[str] = Field(..., min_length=1)

    @field_validator("roles")
    @classmethod
    def normalize_roles(cls, v: list[str]) -> list[str]:
        return _dedupe(v)


class UserListResponse(BaseModel):
    data: list[UserOut]
    meta: PaginationMeta


class RoleReportEntry(BaseModel):
    role: str
    display_name: str
    user_count: int
    users: list[UserBrief]


# ── Roles ───────────────────────────────────────────────────────────

class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    display_name: str
    description: Optional[str] = None
    permissions: list[str] = []
    is_active: bool = True
    created_at: datetime


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[list[str]] = None
    is_active: Optional[bool] = None
