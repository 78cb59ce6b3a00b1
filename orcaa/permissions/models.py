"""Role → action grant table editable by administrators."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from orcaa.database import Base


class RoleActionMapping(Base):
    __tablename__ = "role_action_mappings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    role_name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    action_id: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    action_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    action_category: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    action_description: Mapped[Optional[str]] = mapped_column(sa.Text)
    has_permission: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        sa.UniqueConstraint("role_name", "action_id", name="uq_role_action"),
        sa.Index("ix_role_action_mappings_action_id", "action_id"),
    )

    def __repr__(self) -> str:
        flag = "+" if self.has_permission else "-"
        return f"<RoleActionMapping {self.role_name} {flag}{self.action_id}>"
