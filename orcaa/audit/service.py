"""Audit trail queries."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from orcaa.audit.schemas import AuditEntryOut, AuditTrailResponse
from orcaa.common.audit import AuditTrail
from orcaa.common.pagination import PaginationParams, build_meta
from orcaa.users.models import User


class AuditService:

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        params: PaginationParams,
        *,
        complaint_id: Optional[uuid.UUID] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        action: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> AuditTrailResponse:
        """Audit entries newest first, with the acting user's name resolved."""
        conditions = []
        if complaint_id is not None:
            conditions.append(AuditTrail.complaint_id == complaint_id)
        if entity_type:
            conditions.append(AuditTrail.entity_type == entity_type)
        if entity_id is not None:
            conditions.append(AuditTrail.entity_id == entity_id)
        if action:
            conditions.append(AuditTrail.action == action)
        if user_id is not None:
            conditions.append(AuditTrail.user_id == user_id)

        total = (
            await db.execute(select(func.count()).select_from(AuditTrail).where(*conditions))
        ).scalar_one()

        actor = aliased(User, flat=True)
        stmt = (
            select(AuditTrail, actor)
            .outerjoin(actor, AuditTrail.user_id == actor.id)
            .where(*conditions)
            .order_by(AuditTrail.timestamp.desc())
            .offset(params.offset)
            .limit(params.page_size)
        )
        rows = (await db.execute(stmt)).all()

        data = [
            AuditEntryOut(
                id=entry.id,
                complaint_id=entry.complaint_id,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                action=entry.action,
                previous_value=entry.previous_value,
                new_value=entry.new_value,
                user_id=entry.user_id,
                user_name=user.display_name if user is not None else None,
                reason=entry.reason,
                ip_address=str(entry.ip_address) if entry.ip_address else None,
                timestamp=entry.timestamp,
            )
            for entry, user in rows
        ]
        return AuditTrailResponse(
            data=data, meta=build_meta(total, params.page, params.page_size),
        )
