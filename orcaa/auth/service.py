"""Auth service: OIDC code exchange, user upsert, JWT management, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.models import UserSession
from orcaa.common.constants import UserRole
from orcaa.common.exceptions import ForbiddenException, UnauthorizedException
from orcaa.config import settings
from orcaa.users.models import User

logger = logging.getLogger(__name__)

_oidc_config: Optional[dict[str, Any]] = None


# ── OIDC ────────────────────────────────────────────────────────────

async def get_oidc_config() -> dict[str, Any]:
    """Fetch (once) the provider's discovery document."""
    global _oidc_config
    if _oidc_config is None:
        url = f"{settings.OIDC_ISSUER_URL.rstrip('/')}/.well-known/openid-configuration"
        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.get(url)
        if resp.status_code != 200:
            raise UnauthorizedException(detail="Login provider is unavailable.")
        _oidc_config = resp.json()
    return _oidc_config


async def build_login_url(state: str) -> str:
    config = await get_oidc_config()
    query = urlencode({
        "client_id": settings.OIDC_CLIENT_ID,
        "redirect_uri": settings.OIDC_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile offline_access",
        "prompt": "login consent",
        "state": state,
    })
    return f"{config['authorization_endpoint']}?{query}"


async def exchange_oidc_code(code: str) -> dict[str, Any]:
    """Exchange an authorization code for the user's claims.

    Returns dict with keys: sub, email, first_name, last_name, profile_image_url.
    """
    config = await get_oidc_config()
    async with httpx.AsyncClient(timeout=15) as client:
        token_resp = await client.post(
            config["token_endpoint"],
            data={
                "client_id": settings.OIDC_CLIENT_ID,
                "client_secret": settings.OIDC_CLIENT_SECRET,
                "code": code,
                "redirect_uri": settings.OIDC_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        token_data = token_resp.json()
        if token_resp.status_code != 200 or "access_token" not in token_data:
            logger.warning("OIDC token exchange failed: %s", token_data.get("error"))
            raise ForbiddenException(
                detail=f"Login failed: {token_data.get('error_description', 'unknown error')}",
            )

        info_resp = await client.get(
            config["userinfo_endpoint"],
            headers={"Authorization": f"Bearer {token_data['access_token']}"},
        )
        if info_resp.status_code != 200:
            raise ForbiddenException(detail="Failed to fetch user info from the login provider.")
        info = info_resp.json()

    if not info.get("email"):
        raise ForbiddenException(detail="The login provider did not return an email address.")

    return {
        "sub": str(info["sub"]),
        "email": info["email"],
        "first_name": info.get("first_name") or info.get("given_name"),
        "last_name": info.get("last_name") or info.get("family_name"),
        "profile_image_url": info.get("profile_image_url") or info.get("picture"),
    }


# ── User upsert ─────────────────────────────────────────────────────

async def upsert_user(db: AsyncSession, claims: dict[str, Any]) -> User:
    """Find the user by OIDC subject or email; create a field_staff account if new."""
    result = await db.execute(
        select(User).where(
            (User.external_id == claims["sub"]) | (User.email == claims["email"])
        ),
    )
    user = result.scalars().first()
    if user is None:
        user = User(
            external_id=claims["sub"],
            email=claims["email"],
            roles=[UserRole.field_staff.value],
        )
        db.add(user)
        logger.info("Created user %s on first login", claims["email"])

    user.external_id = claims["sub"]
    user.first_name = claims.get("first_name") or user.first_name
    user.last_name = claims.get("last_name") or user.last_name
    user.profile_image_url = claims.get("profile_image_url") or user.profile_image_url
    await db.flush()

    if not user.is_active:
        raise ForbiddenException(detail="This account has been deactivated.")
    return user


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(user: User) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user.id),
        "roles": list(user.roles or []),
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def create_refresh_token(user_id: uuid.UUID) -> str:
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_EXPIRY_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    user: User,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, str, int]:
    """Create a JWT pair and persist the session. Returns (access, refresh, expires_in)."""
    access_token, expires_in = create_access_token(user)
    refresh_token = create_refresh_token(user.id)

    db.add(UserSession(
        user_id=user.id,
        token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    ))
    await db.flush()
    return access_token, refresh_token, expires_in


async def refresh_access_token(
    db: AsyncSession,
    refresh_token_str: str,
) -> tuple[str, str, int]:
    """Validate a refresh token, rotate it, and issue a new token pair.

    Each refresh token can be used once. Replaying a consumed token revokes
    every session of that user.
    """
    try:
        payload = jwt.decode(
            refresh_token_str,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise UnauthorizedException(detail="Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise UnauthorizedException(detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()
    if session is None:
        raise UnauthorizedException(detail="Invalid refresh token.")

    if session.is_revoked:
        await revoke_all_user_sessions(db, session.user_id)
        await db.commit()
        logger.warning("Refresh token reuse detected for user %s", session.user_id)
        raise UnauthorizedException(
            detail="Refresh token reuse detected. All sessions revoked for security.",
        )

    session.is_revoked = True
    await db.flush()

    user = await db.get(User, uuid.UUID(payload["sub"]))
    if user is None or not user.is_active:
        raise UnauthorizedException(detail="User account is inactive or not found.")

    return await create_session(db, user, session.ip_address, session.user_agent)


# ── Revoke ──────────────────────────────────────────────────────────

async def revoke_all_user_sessions(db: AsyncSession, user_id: uuid.UUID) -> None:
    result = await db.execute(
        select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    for session in result.scalars().all():
        session.is_revoked = True
    await db.flush()


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its access-token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()
