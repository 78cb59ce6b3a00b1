"""User and role management endpoints.

Reads need an authenticated user; writes need the ``user_management`` or
``role_management`` action.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user, require_action
from orcaa.common.pagination import PaginationParams
from orcaa.database import get_db
from orcaa.users.models import User
from orcaa.users.schemas import (
    RoleCreate,
    RoleOut,
    RoleReportEntry,
    RoleUpdate,
    UserCreate,
    UserListResponse,
    UserOut,
    UserRolesUpdate,
    UserUpdate,
)
from orcaa.users.service import RoleService, UserService

users_router = APIRouter(prefix="", tags=["users"])
roles_router = APIRouter(prefix="", tags=["roles"])

_user_admin = require_action("user_management")
_role_admin = require_action("role_management")


# ── Users ───────────────────────────────────────────────────────────

@users_router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List staff accounts (used for assignment pickers and user management)."""
    rows, meta = await UserService.list_users(
        db, pagination, search=search, role=role, is_active=is_active,
    )
    return UserListResponse(data=[UserOut.model_validate(u) for u in rows], meta=meta)


@users_router.get("/role-report", response_model=list[RoleReportEntry])
async def role_report(
    user: User = Depends(require_action("view_reports")),
    db: AsyncSession = Depends(get_db),
):
    """Active users grouped by role."""
    return await UserService.role_report(db)


@users_router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    actor: User = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.create_user(db, body, actor_id=actor.id)


@users_router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.get_user(db, user_id)


@users_router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    actor: User = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.update_user(db, user_id, body)


@users_router.put("/{user_id}/roles", response_model=UserOut)
async def update_user_roles(
    user_id: uuid.UUID,
    body: UserRolesUpdate,
    actor: User = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the user's roles. Every name must be a known, active role."""
    return await UserService.set_roles(db, user_id, body.roles, actor_id=actor.id)


@users_router.delete("/{user_id}", response_model=UserOut)
async def deactivate_user(
    user_id: uuid.UUID,
    actor: User = Depends(_user_admin),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate (soft-delete) a user."""
    return await UserService.deactivate_user(db, user_id, actor_id=actor.id)


# ── Roles ───────────────────────────────────────────────────────────

@roles_router.get("", response_model=list[RoleOut])
async def list_roles(
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RoleService.list_roles(db, include_inactive=include_inactive)


@roles_router.post("", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    actor: User = Depends(_role_admin),
    db: AsyncSession = Depends(get_db),
):
    return await RoleService.create_role(db, body)


@roles_router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: uuid.UUID,
    body: RoleUpdate,
    actor: User = Depends(_role_admin),
    db: AsyncSession = Depends(get_db),
):
    return await RoleService.update_role(db, role_id, body)


@roles_router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: uuid.UUID,
    actor: User = Depends(_role_admin),
    db: AsyncSession = Depends(get_db),
):
    await RoleService.delete_role(db, role_id)
