"""Workflow ORM models: WorkflowStage, Workflow, WorkflowTask."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orcaa.common.constants import Priority, TaskStatus
from orcaa.database import Base

if TYPE_CHECKING:
    from orcaa.complaints.models import Complaint
    from orcaa.users.models import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowStage(Base):
    """One named complaint status with the role that works it and the stage that follows."""

    __tablename__ = "workflow_stages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    assigned_role: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    next_stage: Mapped[Optional[str]] = mapped_column(sa.String(30))
    order: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    sms_notification: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<WorkflowStage {self.name} -> {self.next_stage}>"


class Workflow(Base):
    """Designer graph (``workflow_data = {"nodes": [...], "edges": [...]}``)."""

    __tablename__ = "workflows"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    complaint_type: Mapped[Optional[str]] = mapped_column(sa.String(30))
    workflow_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=lambda: {"nodes": [], "edges": []},
    )
    is_template: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        marker = " [template]" if self.is_template else ""
        return f"<Workflow {self.name}{marker}>"


class WorkflowTask(Base):
    """Unit of work generated from a workflow node for one complaint."""

    __tablename__ = "workflow_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    complaint_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("complaints.id", ondelete="CASCADE"),
        nullable=False,
    )
    workflow_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workflows.id", ondelete="SET NULL"),
    )
    node_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    sequence: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    task_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    task_type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    assigned_role: Mapped[Optional[str]] = mapped_column(sa.String(50))
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
    )
    status: Mapped[str] = mapped_column(
        sa.String(30), nullable=False, default=TaskStatus.pending.value,
    )
    priority: Mapped[str] = mapped_column(
        sa.String(20), nullable=False, default=Priority.normal.value,
    )
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    activated_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    observations: Mapped[Optional[str]] = mapped_column(sa.Text)
    inspection_status: Mapped[Optional[str]] = mapped_column(sa.String(20))
    forward_email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    forward_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    completion_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    completed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # Relationships
    complaint: Mapped[Complaint] = relationship("Complaint")
    assignee: Mapped[Optional[User]] = relationship("User", foreign_keys=[assigned_to])

    __table_args__ = (
        sa.Index("ix_workflow_tasks_complaint", "complaint_id", "sequence"),
        sa.Index("ix_workflow_tasks_assigned_to", "assigned_to"),
    )

    @property
    def is_active(self) -> bool:
        return self.activated_at is not None and self.status in (
            TaskStatus.pending.value,
            TaskStatus.in_progress.value,
        )

    def __repr__(self) -> str:
        return f"<WorkflowTask {self.task_type} #{self.sequence} {self.status}>"
