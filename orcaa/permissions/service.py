"""Permission service: role → action lookups backed by ``role_action_mappings``.

Once any mapping row exists for an action, the rows decide who holds it;
actions without rows fall back to the default catalog.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.audit import create_audit_entry
from orcaa.common.constants import UserRole
from orcaa.common.exceptions import ValidationException
from orcaa.permissions import catalog
from orcaa.permissions.models import RoleActionMapping


def _role_names(roles: Iterable[UserRole | str]) -> set[str]:
    return {r.value if isinstance(r, UserRole) else str(r) for r in roles}


class PermissionService:
    """Async role/action permission operations."""

    @staticmethod
    async def get_roles_for_action(db: AsyncSession, action_id: str) -> list[str]:
        """Role names that hold *action_id*."""
        result = await db.execute(
            select(RoleActionMapping).where(RoleActionMapping.action_id == action_id)
        )
        rows = result.scalars().all()
        if not rows:
            return catalog.get_required_roles_for_action(action_id)
        return sorted(r.role_name for r in rows if r.has_permission)

    @staticmethod
    async def user_has_action(
        db: AsyncSession,
        roles: Iterable[UserRole | str],
        action_id: str,
    ) -> bool:
        granted = await PermissionService.get_roles_for_action(db, action_id)
        return bool(_role_names(roles).intersection(granted))

    @staticmethod
    async def allowed_actions(
        db: AsyncSession,
        roles: Iterable[UserRole | str],
    ) -> list[str]:
        """Every action id granted to at least one of *roles*."""
        names = _role_names(roles)
        overrides = await PermissionService._override_table(db)
        allowed: list[str] = []
        for action_id in catalog.all_action_ids():
            if action_id in overrides:
                granted = overrides[action_id]
            else:
                granted = set(catalog.get_required_roles_for_action(action_id))
            if names.intersection(granted):
                allowed.append(action_id)
        return allowed

    @staticmethod
    async def list_mappings(
        db: AsyncSession,
        role_name: Optional[str] = None,
    ) -> list[dict]:
        """Effective role × action matrix, one row per pair."""
        overrides = await PermissionService._override_table(db)
        roles = [role_name] if role_name else [r.value for r in UserRole]
        rows: list[dict] = []
        for category, actions in catalog.ACTION_CATEGORIES.items():
            for action in actions:
                granted = overrides.get(
                    action.id, set(catalog.get_required_roles_for_action(action.id)),
                )
                for role in roles:
                    rows.append({
                        "role_name": role,
                        "action_id": action.id,
                        "action_name": action.name,
                        "action_category": category,
                        "action_description": action.description,
                        "has_permission": role in granted,
                    })
        return rows

    @staticmethod
    async def set_role_actions(
        db: AsyncSession,
        role_name: str,
        action_ids: list[str],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> list[RoleActionMapping]:
        """Replace the action grants of *role_name* with exactly *action_ids*."""
        unknown = sorted(set(action_ids) - set(catalog.all_action_ids()))
        if unknown:
            raise ValidationException({"action_ids": [f"Unknown action: {a}" for a in unknown]})

        await PermissionService.ensure_seeded(db)
        result = await db.execute(
            select(RoleActionMapping).where(RoleActionMapping.role_name == role_name)
        )
        existing = {m.action_id: m for m in result.scalars().all()}
        before = sorted(a for a, m in existing.items() if m.has_permission)

        wanted = set(action_ids)
        rows: list[RoleActionMapping] = []
        for action_id in catalog.all_action_ids():
            mapping = existing.get(action_id)
            if mapping is None:
                action = catalog.get_action_definition(action_id)
                mapping = RoleActionMapping(
                    role_name=role_name,
                    action_id=action_id,
                    action_name=action.name,
                    action_category=action.category,
                    action_description=action.description,
                )
                db.add(mapping)
            mapping.has_permission = action_id in wanted
            rows.append(mapping)
        await db.flush()

        await create_audit_entry(
            db,
            action="updated",
            entity_type="role_action_mapping",
            user_id=actor_id,
            previous_value=before,
            new_value=sorted(wanted),
            reason=f"Permissions updated for role {role_name}",
        )
        return rows

    @staticmethod
    async def ensure_seeded(db: AsyncSession, role_names: Optional[Iterable[str]] = None) -> int:
        """Materialise catalog defaults as rows for roles that have none yet."""
        result = await db.execute(select(RoleActionMapping.role_name).distinct())
        seeded = {row[0] for row in result.all()}
        names = list(role_names) if role_names is not None else [r.value for r in UserRole]
        created = 0
        for role in names:
            if role in seeded:
                continue
            for actions in catalog.ACTION_CATEGORIES.values():
                for action in actions:
                    db.add(RoleActionMapping(
                        role_name=role,
                        action_id=action.id,
                        action_name=action.name,
                        action_category=action.category,
                        action_description=action.description,
                        has_permission=role in catalog.get_required_roles_for_action(action.id),
                    ))
                    created += 1
        await db.flush()
        return created

    @staticmethod
    async def _override_table(db: AsyncSession) -> dict[str, set[str]]:
        result = await db.execute(select(RoleActionMapping))
        table: dict[str, set[str]] = {}
        for row in result.scalars().all():
            granted = table.setdefault(row.action_id, set())
            if row.has_permission:
                granted.add(row.role_name)
        return table
