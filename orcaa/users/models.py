"""User and Role ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from orcaa.common.constants import UserRole
from orcaa.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Staff account. ``roles`` is a list of role names (see ``roles`` table)."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    external_id: Mapped[Optional[str]] = mapped_column(
        sa.String(255), unique=True, nullable=True,
    )
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    profile_image_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    roles: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=lambda: [UserRole.field_staff.value],
    )
    phone: Mapped[Optional[str]] = mapped_column(sa.String(30))
    mobile_number: Mapped[Optional[str]] = mapped_column(sa.String(30))
    whatsapp_number: Mapped[Optional[str]] = mapped_column(sa.String(30))
    enable_sms_notifications: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    enable_whatsapp_notifications: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email

    @property
    def sms_number(self) -> Optional[str]:
        """Number used for SMS alerts; mobile wins over the desk phone."""
        return self.mobile_number or self.phone

    def has_role(self, role: UserRole | str) -> bool:
        value = role.value if isinstance(role, UserRole) else role
        return value in (self.roles or [])

    def has_any_role(self, roles: Iterable[UserRole | str]) -> bool:
        return any(self.has_role(r) for r in roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role(UserRole.admin)

    def __repr__(self) -> str:
        return f"<User {self.email} roles={self.roles}>"


class Role(Base):
    """Named role that can be granted to users."""

    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    permissions: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<Role {self.name}>"
