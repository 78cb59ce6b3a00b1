"""Role-action mapping schemas."""

from pydantic import BaseModel, Field


class ActionOut(BaseModel):
    id: str
    name: str
    description: str
    category: str
    default_roles: list[str]


class ActionCategoryOut(BaseModel):
    category: str
    actions: list[ActionOut]


class RoleActionMappingOut(BaseModel):
    role_name: str
    action_id: str
    action_name: str
    action_category: str
    action_description: str | None = None
    has_permission: bool


class RoleActionsUpdate(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=50)
    action_ids: list[str] = Field(default_factory=list)


class PermissionCheckOut(BaseModel):
    action_id: str
    allowed: bool
    roles: list[str]
