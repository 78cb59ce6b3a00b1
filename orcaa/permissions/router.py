"""Role → action mapping endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user, require_action
from orcaa.common.exceptions import ValidationException
from orcaa.database import get_db
from orcaa.permissions import catalog
from orcaa.permissions.schemas import (
    ActionCategoryOut,
    ActionOut,
    PermissionCheckOut,
    RoleActionMappingOut,
    RoleActionsUpdate,
)
from orcaa.permissions.service import PermissionService
from orcaa.users.models import User
from orcaa.users.service import RoleService

router = APIRouter(prefix="", tags=["permissions"])


@router.get("/actions", response_model=list[ActionCategoryOut])
async def list_actions(user: User = Depends(get_current_user)):
    """The action catalog grouped by category, with each action's default roles."""
    return [
        ActionCategoryOut(
            category=category,
            actions=[
                ActionOut(
                    id=a.id,
                    name=a.name,
                    description=a.description,
                    category=a.category,
                    default_roles=catalog.get_required_roles_for_action(a.id),
                )
                for a in actions
            ],
        )
        for category, actions in catalog.ACTION_CATEGORIES.items()
    ]


@router.get("/check", response_model=PermissionCheckOut)
async def check_action(
    action_id: str = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Whether the current user may perform *action_id*."""
    roles = await PermissionService.get_roles_for_action(db, action_id)
    allowed = user.is_admin or bool(set(user.roles or []).intersection(roles))
    return PermissionCheckOut(action_id=action_id, allowed=allowed, roles=roles)


@router.get("", response_model=list[RoleActionMappingOut])
async def list_mappings(
    role_name: Optional[str] = Query(None),
    user: User = Depends(require_action("role_management")),
    db: AsyncSession = Depends(get_db),
):
    return await PermissionService.list_mappings(db, role_name=role_name)


@router.put("", response_model=list[RoleActionMappingOut])
async def set_role_actions(
    body: RoleActionsUpdate,
    actor: User = Depends(require_action("role_management")),
    db: AsyncSession = Depends(get_db),
):
    """Replace the set of actions granted to one role."""
    if body.role_name not in await RoleService.valid_role_names(db):
        raise ValidationException({"role_name": [f"Unknown role: {body.role_name}"]})
    await PermissionService.set_role_actions(
        db, body.role_name, body.action_ids, actor_id=actor.id,
    )
    return await PermissionService.list_mappings(db, role_name=body.role_name)
