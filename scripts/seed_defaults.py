#!/usr/bin/env python3
"""Seed reference data into an ORCAA database.

Inserts whatever is missing of:
  - built-in roles
  - the default workflow stage progression
  - role → action permission rows (from the action catalog)
  - timesheet activity list values
and optionally bootstraps an administrator account.

Existing rows are never modified, so the script is safe to re-run after
administrators have edited stages, permissions or list values.

Usage:
    python scripts/seed_defaults.py                            # seed everything
    python scripts/seed_defaults.py --admin-email ops@orcaa.org
    python scripts/seed_defaults.py --skip-permissions
    python scripts/seed_defaults.py --dry-run                  # report, then roll back

Requires DATABASE_URL and JWT_SECRET in the environment or .env
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

if (PROJECT_ROOT / ".env").exists():
    load_dotenv(PROJECT_ROOT / ".env")

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.constants import (
    DEFAULT_ROLES,
    DEFAULT_TIMESHEET_ACTIVITIES,
    DEFAULT_WORKFLOW_STAGES,
    TIMESHEET_ACTIVITY_LIST,
    UserRole,
)
from orcaa.database import async_session_factory, engine
from orcaa.permissions.catalog import all_action_ids
from orcaa.permissions.service import PermissionService
from orcaa.timesheets.models import ListValue
from orcaa.users.models import Role, User
from orcaa.workflow.models import WorkflowStage

# Imported for relationship resolution
import orcaa.complaints.models  # noqa: F401
import orcaa.notifications.models  # noqa: F401

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("seed_defaults")


# ═════════════════════════════════════════════════════════════════════
# Seed steps
# ═════════════════════════════════════════════════════════════════════


async def seed_roles(db: AsyncSession) -> int:
    existing = set((await db.execute(select(Role.name))).scalars().all())
    created = 0
    for name, display, description in DEFAULT_ROLES:
        if name in existing:
            continue
        permissions = all_action_ids() if name == UserRole.admin.value else []
        db.add(Role(
            name=name, display_name=display, description=description, permissions=permissions,
        ))
        created += 1
    await db.flush()
    return created


async def seed_stages(db: AsyncSession) -> int:
    existing = set((await db.execute(select(WorkflowStage.name))).scalars().all())
    created = 0
    for name, display, role, nxt, order, sms in DEFAULT_WORKFLOW_STAGES:
        if name in existing:
            continue
        db.add(WorkflowStage(
            name=name,
            display_name=display,
            assigned_role=role,
            next_stage=nxt,
            order=order,
            sms_notification=sms,
        ))
        created += 1
    await db.flush()
    return created


async def seed_activities(db: AsyncSession) -> int:
    result = await db.execute(
        select(ListValue.code).where(ListValue.list_value_type == TIMESHEET_ACTIVITY_LIST)
    )
    existing = set(result.scalars().all())
    created = 0
    for order, (code, descr) in enumerate(DEFAULT_TIMESHEET_ACTIVITIES, start=1):
        if code in existing:
            continue
        db.add(ListValue(
            list_value_type=TIMESHEET_ACTIVITY_LIST, code=code, descr=descr, order=order,
        ))
        created += 1
    await db.flush()
    return created


async def ensure_admin(db: AsyncSession, email: str) -> str:
    """Create *email* as an administrator, or add the admin role to an existing account."""
    email = email.strip().lower()
    user = (await db.execute(select(User).where(User.email == email))).scalars().first()
    if user is None:
        db.add(User(email=email, roles=[UserRole.admin.value]))
        await db.flush()
        return "created"
    if not user.is_admin:
        user.roles = list(user.roles or []) + [UserRole.admin.value]
    user.is_active = True
    await db.flush()
    return "promoted"


# ═════════════════════════════════════════════════════════════════════
# Entry point
# ═════════════════════════════════════════════════════════════════════


async def run(args: argparse.Namespace) -> dict[str, int | str]:
    results: dict[str, int | str] = {}
    async with async_session_factory() as db:
        results["roles"] = await seed_roles(db)
        results["workflow_stages"] = await seed_stages(db)
        if not args.skip_permissions:
            results["role_action_mappings"] = await PermissionService.ensure_seeded(
                db, [name for name, _, _ in DEFAULT_ROLES],
            )
        results["timesheet_activities"] = await seed_activities(db)
        if args.admin_email:
            results["admin"] = await ensure_admin(db, args.admin_email)

        if args.dry_run:
            await db.rollback()
            logger.info("Dry run: changes rolled back")
        else:
            await db.commit()
    await engine.dispose()
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Seed ORCAA reference data (roles, stages, permissions, list values)",
    )
    parser.add_argument("--admin-email", help="Create or promote this account to administrator")
    parser.add_argument("--skip-permissions", action="store_true",
                        help="Leave role_action_mappings untouched")
    parser.add_argument("--dry-run", action="store_true",
                        help="Report what would be inserted, then roll back")
    args = parser.parse_args()

    results = asyncio.run(run(args))

    print(f"\n  {'Entity':<25} {'Inserted'}")
    print("  " + "─" * 40)
    for entity, count in results.items():
        print(f"  {entity:<25} {count}")


if __name__ == "__main__":
    main()
