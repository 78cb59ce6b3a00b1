"""Complaint ORM models: Complaint, Attachment, WorkDescription.

SQLAlchemy 2.0 async-compatible models. One ``complaints`` table holds both
air-quality complaints and demolition notices; the demolition columns are
NULL for air-quality rows.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orcaa.common.constants import ComplaintStatus, ComplaintType, Priority
from orcaa.database import Base

if TYPE_CHECKING:
    from orcaa.users.models import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Complaint(Base):
    """Citizen-filed case record."""

    __tablename__ = "complaints"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    complaint_id: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    complaint_type: Mapped[str] = mapped_column(
        sa.String(30), nullable=False, default=ComplaintType.AIR_QUALITY.value,
    )

    # Complainant
    is_anonymous: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    complainant_first_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    complainant_last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    complainant_email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    complainant_address: Mapped[Optional[str]] = mapped_column(sa.String(255))
    complainant_city: Mapped[Optional[str]] = mapped_column(sa.String(100))
    complainant_state: Mapped[Optional[str]] = mapped_column(sa.String(50))
    complainant_zip_code: Mapped[Optional[str]] = mapped_column(sa.String(10))
    complainant_phone: Mapped[Optional[str]] = mapped_column(sa.String(30))

    # Source of the problem
    source_name: Mapped[Optional[str]] = mapped_column(sa.String(50))
    source_address: Mapped[Optional[str]] = mapped_column(sa.String(255))
    source_city: Mapped[Optional[str]] = mapped_column(sa.String(100))
    problem_types: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    other_description: Mapped[Optional[str]] = mapped_column(sa.Text)
    last_occurred: Mapped[Optional[str]] = mapped_column(sa.String(100))
    previous_contact: Mapped[bool] = mapped_column(sa.Boolean, default=False)

    # Case handling
    status: Mapped[str] = mapped_column(
        sa.String(30), nullable=False, default=ComplaintStatus.initiated.value,
    )
    priority: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=Priority.normal.value,
    )
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
    )
    workflow_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workflows.id"), nullable=True,
    )

    # Demolition notice
    property_owner_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    property_owner_address: Mapped[Optional[str]] = mapped_column(sa.String(255))
    property_owner_city: Mapped[Optional[str]] = mapped_column(sa.String(100))
    property_owner_state: Mapped[Optional[str]] = mapped_column(sa.String(50))
    property_owner_zip: Mapped[Optional[str]] = mapped_column(sa.String(10))
    property_owner_phone: Mapped[Optional[str]] = mapped_column(sa.String(30))
    property_owner_email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    work_site_address: Mapped[Optional[str]] = mapped_column(sa.String(255))
    work_site_city: Mapped[Optional[str]] = mapped_column(sa.String(100))
    work_site_zip: Mapped[Optional[str]] = mapped_column(sa.String(10))
    work_site_county: Mapped[Optional[str]] = mapped_column(sa.String(50))
    is_primary_residence: Mapped[Optional[bool]] = mapped_column(sa.Boolean)
    asbestos_to_be_removed: Mapped[Optional[bool]] = mapped_column(sa.Boolean)
    asbestos_notification_number: Mapped[Optional[str]] = mapped_column(sa.String(50))
    project_start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    project_completion_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    asbestos_square_feet: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))
    asbestos_linear_feet: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))
    asbestos_contractor_name: Mapped[Optional[str]] = mapped_column(sa.String(200))
    is_neshap_project: Mapped[Optional[bool]] = mapped_column(sa.Boolean)
    problem_description: Mapped[Optional[str]] = mapped_column(sa.Text)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # Relationships
    attachments: Mapped[list[Attachment]] = relationship(
        back_populates="complaint",
        cascade="all, delete-orphan",
        order_by="Attachment.created_at",
    )
    work_descriptions: Mapped[list[WorkDescription]] = relationship(
        back_populates="complaint",
        cascade="all, delete-orphan",
        order_by="WorkDescription.created_at",
    )
    assignee: Mapped[Optional[User]] = relationship("User", foreign_keys=[assigned_to])

    __table_args__ = (
        sa.Index("ix_complaints_status", "status"),
        sa.Index("ix_complaints_assigned_to", "assigned_to"),
        sa.Index("ix_complaints_created_at", "created_at"),
    )

    @property
    def complainant_name(self) -> str:
        if self.is_anonymous:
            return "Anonymous"
        name = f"{self.complainant_first_name or ''} {self.complainant_last_name or ''}".strip()
        return name or "Complainant"

    def __repr__(self) -> str:
        return f"<Complaint {self.complaint_id} {self.status}>"


class Attachment(Base):
    __tablename__ = "attachments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    complaint_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("complaints.id", ondelete="CASCADE"),
        nullable=False,
    )
    filename: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    size: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    url: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    complaint: Mapped[Complaint] = relationship(back_populates="attachments")


class WorkDescription(Base):
    """Free-text work log entry recorded by staff against a complaint."""

    __tablename__ = "work_descriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    complaint_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("complaints.id", ondelete="CASCADE"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
    )
    status: Mapped[Optional[str]] = mapped_column(sa.String(30))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    complaint: Mapped[Complaint] = relationship(back_populates="work_descriptions")
