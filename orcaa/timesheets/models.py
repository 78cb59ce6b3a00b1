"""Timesheet and list-value ORM models."""

from __future__ import annotations

import uuid
import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from orcaa.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListValue(Base):
    """Administrator-maintained dropdown value, grouped by ``list_value_type``."""

    __tablename__ = "list_values"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    list_value_type: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    code: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    descr: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    order: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    value: Mapped[Optional[str]] = mapped_column(sa.String(255))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.UniqueConstraint("list_value_type", "code", name="uq_list_value_type_code"),
    )

    def __repr__(self) -> str:
        return f"<ListValue {self.list_value_type}:{self.code}>"


class Timesheet(Base):
    __tablename__ = "timesheets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    activity: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    business_work_id: Mapped[Optional[str]] = mapped_column(sa.String(50))
    time_in_hours: Mapped[Decimal] = mapped_column(sa.Numeric(4, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.Index("ix_timesheets_user_date", "user_id", "date"),
    )
