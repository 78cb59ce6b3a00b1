"""Shared rules for requests that go through an approver (leave, overtime)."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.constants import RequestStatus
from orcaa.common.exceptions import ForbiddenException, ValidationException
from orcaa.permissions.service import PermissionService
from orcaa.users.models import User
from orcaa.users.service import UserService

DECIDABLE_STATUSES = (RequestStatus.pending.value, RequestStatus.forwarded.value)


async def approvers_for(
    db: AsyncSession,
    action_id: str,
    *,
    exclude: Optional[uuid.UUID] = None,
) -> list[User]:
    """Active users whose roles grant *action_id* (admins included)."""
    roles = set(await PermissionService.get_roles_for_action(db, action_id))
    roles.add("admin")
    return [u for u in await UserService.users_with_roles(db, roles) if u.id != exclude]


async def can_decide(db: AsyncSession, user: User, action_id: str) -> bool:
    return user.is_admin or await PermissionService.user_has_action(db, user.roles or [], action_id)


def ensure_owner_pending(request: Any, user: User, noun: str) -> None:
    if request.user_id != user.id:
        raise ForbiddenException(f"You can only change your own {noun}s.")
    if request.status != RequestStatus.pending.value:
        raise ValidationException({"status": [f"Only pending {noun}s can be changed."]})


def ensure_decidable(request: Any, approver: User, noun: str) -> None:
    if request.user_id == approver.id:
        raise ForbiddenException(f"You cannot decide your own {noun}.")
    if request.status not in DECIDABLE_STATUSES:
        raise ValidationException({"status": [f"{noun.capitalize()} is already {request.status}."]})
