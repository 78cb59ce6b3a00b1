"""Audit trail model and async helper for recording complaint and record changes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import sqlalchemy as sa
from fastapi.encoders import jsonable_encoder
from sqlalchemy.dialects.postgresql import INET, JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from orcaa.common.constants import AuditAction
from orcaa.database import Base


# ── Immutable audit-trail table ─────────────────────────────────────

class AuditTrail(Base):
    """Immutable log of every significant data change."""

    __tablename__ = "audit_trail"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    complaint_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("complaints.id", ondelete="CASCADE"),
        nullable=True,
    )
    entity_type: Mapped[str] = mapped_column(
        sa.String(50), nullable=False, default="complaint",
    )
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    action: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    previous_value: Mapped[Optional[Any]] = mapped_column(JSONB)
    new_value: Mapped[Optional[Any]] = mapped_column(JSONB)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True,
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    ip_address: Mapped[Optional[str]] = mapped_column(INET)
    timestamp: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        sa.Index("ix_audit_trail_complaint_id", "complaint_id"),
        sa.Index("ix_audit_trail_entity", "entity_type", "entity_id"),
        sa.Index("ix_audit_trail_timestamp", "timestamp"),
        sa.Index("ix_audit_trail_action", "action"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditTrail {self.action} {self.entity_type}"
            f"/{self.entity_id or self.complaint_id} by {self.user_id}>"
        )


# ── Helpers ─────────────────────────────────────────────────────────

def snapshot(instance: Any, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """Return a JSON-safe dict of an ORM instance's column values."""
    mapper = sa.inspect(instance).mapper
    data = {
        attr.key: getattr(instance, attr.key)
        for attr in mapper.column_attrs
        if attr.key not in exclude
    }
    return jsonable_encoder(data)


async def create_audit_entry(
    session: AsyncSession,
    *,
    action: AuditAction | str,
    complaint_id: Optional[uuid.UUID] = None,
    entity_type: str = "complaint",
    entity_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    previous_value: Any = None,
    new_value: Any = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuditTrail:
    """
    Create and flush an audit-trail entry.

    Args:
        session: Async SQLAlchemy session.
        action: created | status_changed | assigned | updated | ...
        complaint_id: Complaint the entry belongs to, if any.
        entity_type: e.g. "complaint", "workflow_task", "leave_request".
        entity_id: UUID of the affected record (defaults to complaint_id).
        user_id: Acting user; ``None`` for public submissions.
        previous_value: Prior state (scalar or JSON-safe dict).
        new_value: New state (scalar or JSON-safe dict).
        reason: Human-readable explanation shown in the audit log.
        ip_address: Client IP.
    """
    entry = AuditTrail(
        complaint_id=complaint_id,
        entity_type=entity_type,
        entity_id=entity_id or complaint_id,
        action=action.value if isinstance(action, AuditAction) else action,
        previous_value=jsonable_encoder(previous_value),
        new_value=jsonable_encoder(new_value),
        user_id=user_id,
        reason=reason,
        ip_address=ip_address,
    )
    session.add(entry)
    await session.flush()
    return entry
