"""Auth dependencies: JWT validation, role and action enforcement."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.models import UserSession
from orcaa.auth.service import hash_token
from orcaa.common.constants import UserRole
from orcaa.common.exceptions import ForbiddenException, UnauthorizedException
from orcaa.config import settings
from orcaa.database import get_db
from orcaa.permissions.service import PermissionService
from orcaa.users.models import User


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException(detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT, verify session, return the authenticated User."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException(detail="Token has expired.")
    except JWTError:
        raise UnauthorizedException(detail="Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException(detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise UnauthorizedException(detail="Session invalid or expired.")

    user_result = await db.execute(
        select(User).where(
            User.id == uuid.UUID(payload["sub"]),
            User.is_active.is_(True),
        ),
    )
    user = user_result.scalars().first()
    if user is None:
        raise UnauthorizedException(detail="User account is inactive or not found.")

    # Roles come from the database, not the token, so role edits apply immediately
    request.state.user_roles = list(user.roles or [])
    return user


# ── Role-based dependency ───────────────────────────────────────────

def require_roles(*allowed_roles: UserRole) -> Callable:
    """Return a dependency that requires one of *allowed_roles*. Admins always pass."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.is_admin or user.has_any_role(allowed_roles):
            return user
        raise ForbiddenException(
            detail=f"Requires one of roles: {[r.value for r in allowed_roles]}.",
        )

    return _check


# ── Action-based dependency ─────────────────────────────────────────

def require_action(action_id: str) -> Callable:
    """Return a dependency that requires *action_id* in the role/action table.

    Admins always pass.
    """

    async def _check(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if user.is_admin:
            return user
        if not await PermissionService.user_has_action(db, user.roles or [], action_id):
            raise ForbiddenException(
                detail=f"Action '{action_id}' is not granted to roles {user.roles}.",
            )
        return user

    return _check
