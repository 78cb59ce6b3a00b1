"""User and role service layer."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.audit import create_audit_entry
from orcaa.common.constants import UserRole
from orcaa.common.exceptions import ConflictError, NotFoundException, ValidationException
from orcaa.common.pagination import PaginationMeta, PaginationParams, paginate
from orcaa.users.models import Role, User
from orcaa.users.schemas import RoleCreate, RoleUpdate, UserCreate, UserUpdate


class RoleService:
    """Role catalog operations."""

    @staticmethod
    async def list_roles(db: AsyncSession, include_inactive: bool = False) -> list[Role]:
        query = select(Role).order_by(Role.display_name)
        if not include_inactive:
            query = query.where(Role.is_active.is_(True))
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_role(db: AsyncSession, role_id: uuid.UUID) -> Role:
        role = await db.get(Role, role_id)
        if role is None:
            raise NotFoundException("Role", role_id)
        return role

    @staticmethod
    async def valid_role_names(db: AsyncSession) -> set[str]:
        """Built-in roles plus every active role in the ``roles`` table."""
        result = await db.execute(select(Role.name).where(Role.is_active.is_(True)))
        return {r.value for r in UserRole} | {row[0] for row in result.all()}

    @staticmethod
    async def create_role(db: AsyncSession, body: RoleCreate) -> Role:
        existing = await db.execute(select(Role).where(Role.name == body.name))
        if existing.scalars().first() is not None:
            raise ConflictError("name", body.name)
        role = Role(**body.model_dump())
        db.add(role)
        await db.flush()
        return role

    @staticmethod
    async def update_role(db: AsyncSession, role_id: uuid.UUID, body: RoleUpdate) -> Role:
        role = await RoleService.get_role(db, role_id)
        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(role, field, value)
        await db.flush()
        return role

    @staticmethod
    async def delete_role(db: AsyncSession, role_id: uuid.UUID) -> None:
        """Delete a custom role. Built-in roles and roles still held by users are refused."""
        role = await RoleService.get_role(db, role_id)
        if role.name in {r.value for r in UserRole}:
            raise ValidationException({"name": [f"Built-in role '{role.name}' cannot be deleted."]})
        holders = await UserService.users_with_roles(db, [role.name], active_only=False)
        if holders:
            raise ValidationException(
                {"name": [f"Role '{role.name}' is still assigned to {len(holders)} user(s)."]}
            )
        await db.delete(role)
        await db.flush()


class UserService:
    """User account operations."""

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundException("User", user_id)
        return user

    @staticmethod
    async def list_users(
        db: AsyncSession,
        params: PaginationParams,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[list[User], PaginationMeta]:
        query = select(User).order_by(User.last_name, User.first_name, User.email)
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(
                User.email.ilike(term),
                User.first_name.ilike(term),
                User.last_name.ilike(term),
            ))
        if role:
            # JSON containment differs across backends; filter ids in Python
            ids = [u.id for u in await UserService.users_with_roles(db, [role], active_only=False)]
            query = query.where(User.id.in_(ids))
        return await paginate(db, query, params, model=User)

    @staticmethod
    async def users_with_roles(
        db: AsyncSession,
        roles: Iterable[str],
        *,
        active_only: bool = True,
    ) -> list[User]:
        """Users holding any of *roles*, ordered by creation time."""
        wanted = {str(getattr(r, "value", r)) for r in roles}
        query = select(User).order_by(User.created_at)
        if active_only:
            query = query.where(User.is_active.is_(True))
        result = await db.execute(query)
        return [u for u in result.scalars().all() if wanted.intersection(u.roles or [])]

    @staticmethod
    async def _validate_roles(db: AsyncSession, roles: list[str]) -> None:
        valid = await RoleService.valid_role_names(db)
        unknown = [r for r in roles if r not in valid]
        if unknown:
            raise ValidationException({"roles": [f"Unknown role: {r}" for r in unknown]})

    @staticmethod
    async def create_user(
        db: AsyncSession,
        body: UserCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        count = await db.execute(
            select(func.count()).select_from(User).where(User.email == body.email)
        )
        if count.scalar_one():
            raise ConflictError("email", body.email)
        await UserService._validate_roles(db, body.roles)

        user = User(**body.model_dump())
        db.add(user)
        await db.flush()
        await create_audit_entry(
            db,
            action="created",
            entity_type="user",
            entity_id=user.id,
            user_id=actor_id,
            new_value={"email": user.email, "roles": user.roles},
            reason="User account created",
        )
        return user

    @staticmethod
    async def update_user(db: AsyncSession, user_id: uuid.UUID, body: UserUpdate) -> User:
        user = await UserService.get_user(db, user_id)
        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        await db.flush()
        return user

    @staticmethod
    async def set_roles(
        db: AsyncSession,
        user_id: uuid.UUID,
        roles: list[str],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        """Replace a user's role list after validating every name."""
        user = await UserService.get_user(db, user_id)
        await UserService._validate_roles(db, roles)
        previous = list(user.roles or [])
        user.roles = list(roles)
        await db.flush()
        await create_audit_entry(
            db,
            action="updated",
            entity_type="user",
            entity_id=user.id,
            user_id=actor_id,
            previous_value=previous,
            new_value=user.roles,
            reason="Roles updated",
        )
        return user

    @staticmethod
    async def deactivate_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        user = await UserService.get_user(db, user_id)
        if actor_id == user.id:
            raise ValidationException({"id": ["You cannot deactivate your own account."]})
        user.is_active = False
        await db.flush()
        return user

    @staticmethod
    async def role_report(db: AsyncSession) -> list[dict]:
        """Active users grouped by role, one entry per known role."""
        roles = await RoleService.list_roles(db)
        labels = {r.name: r.display_name for r in roles}
        for builtin in UserRole:
            labels.setdefault(builtin.value, builtin.value.replace("_", " ").title())

        result = await db.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.email)
        )
        users = result.scalars().all()
        report = []
        for name, label in sorted(labels.items(), key=lambda kv: kv[1]):
            holders = [u for u in users if name in (u.roles or [])]
            report.append({
                "role": name,
                "display_name": label,
                "user_count": len(holders),
                "users": holders,
            })
        return report
