"""Auth router: OIDC login/callback, token refresh, logout, current user."""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user
from orcaa.auth.schemas import RefreshRequest, RefreshResponse, TokenResponse
from orcaa.auth.service import (
    build_login_url,
    create_session,
    exchange_oidc_code,
    hash_token,
    refresh_access_token,
    revoke_session,
    upsert_user,
)
from orcaa.common.audit import create_audit_entry
from orcaa.database import get_db
from orcaa.permissions.service import PermissionService
from orcaa.users.models import User
from orcaa.users.schemas import CurrentUserOut

router = APIRouter(prefix="", tags=["auth"])


async def _current_user_out(db: AsyncSession, user: User) -> CurrentUserOut:
    out = CurrentUserOut.model_validate(user)
    out.permissions = await PermissionService.allowed_actions(db, user.roles or [])
    return out


# ── GET /login: redirect to the identity provider ──────────────────

@router.get("/login")
async def login():
    url = await build_login_url(state=secrets.token_urlsafe(16))
    return RedirectResponse(url, status_code=302)


# ── GET /callback: provider redirects back with ?code= ─────────────

@router.get("/callback", response_model=TokenResponse)
async def callback(
    request: Request,
    code: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    claims = await exchange_oidc_code(code)
    user = await upsert_user(db, claims)

    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    access_token, refresh_token, expires_in = await create_session(db, user, ip, user_agent)

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=user.id,
        user_id=user.id,
        ip_address=ip,
    )

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=await _current_user_out(db, user),
    )


# ── POST /auth/refresh: rotate token pair ─────────────────────────

@router.post("/auth/refresh", response_model=RefreshResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    access, refresh, expires_in = await refresh_access_token(db, body.refresh_token)
    return RefreshResponse(access_token=access, refresh_token=refresh, expires_in=expires_in)


# ── POST /logout: revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    token = request.headers.get("Authorization", "").removeprefix("Bearer ")
    await revoke_session(db, hash_token(token))

    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=user.id,
        user_id=user.id,
        ip_address=request.client.host if request.client else None,
    )
    return {"message": "Logged out successfully"}


# ── GET /auth/user: current user profile ──────────────────────────

@router.get("/auth/user", response_model=CurrentUserOut)
async def current_user(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _current_user_out(db, user)
