"""Role → action permission tests: catalog defaults, database overrides, guards."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.permissions import catalog
from orcaa.permissions.models import RoleActionMapping
from orcaa.permissions.service import PermissionService


# ═════════════════════════════════════════════════════════════════════
# CATALOG
# ═════════════════════════════════════════════════════════════════════


class TestCatalog:

    @pytest.mark.parametrize("action_id, roles", [
        ("initial_inspection", ["admin"]),
        ("safety_inspection", ["field_staff"]),
        ("assessment", ["supervisor"]),
        ("resolution", ["approver", "field_staff"]),
        ("role_management", ["admin"]),
    ])
    def test_default_roles(self, action_id, roles):
        assert sorted(catalog.get_required_roles_for_action(action_id)) == roles

    def test_unknown_action_has_no_roles(self):
        assert catalog.get_required_roles_for_action("launch_rockets") == []

    def test_action_ids_unique(self):
        ids = catalog.all_action_ids()
        assert len(ids) == len(set(ids))


# ═════════════════════════════════════════════════════════════════════
# SERVICE
# ═════════════════════════════════════════════════════════════════════


class TestPermissionService:

    async def test_falls_back_to_catalog(self, db: AsyncSession):
        assert await PermissionService.get_roles_for_action(db, "assessment") == ["supervisor"]
        assert await PermissionService.user_has_action(db, ["supervisor"], "assessment")
        assert not await PermissionService.user_has_action(db, ["field_staff"], "assessment")

    async def test_database_rows_override_catalog(self, db: AsyncSession):
        db.add_all([
            RoleActionMapping(
                role_name="field_staff", action_id="assessment", action_name="Assessment",
                action_category="Workflow Tasks", has_permission=True,
            ),
            RoleActionMapping(
                role_name="supervisor", action_id="assessment", action_name="Assessment",
                action_category="Workflow Tasks", has_permission=False,
            ),
        ])
        await db.commit()

        assert await PermissionService.get_roles_for_action(db, "assessment") == ["field_staff"]
        assert not await PermissionService.user_has_action(db, ["supervisor"], "assessment")

    async def test_allowed_actions(self, db: AsyncSession):
        allowed = await PermissionService.allowed_actions(db, ["approver"])
        assert "approve_leave" in allowed
        assert "resolution" in allowed
        assert "create_complaints" not in allowed

    async def test_ensure_seeded_is_idempotent(self, db: AsyncSession):
        created = await PermissionService.ensure_seeded(db, ["supervisor"])
        assert created == len(catalog.all_action_ids())
        assert await PermissionService.ensure_seeded(db, ["supervisor"]) == 0
        # seeded rows match the defaults
        assert await PermissionService.get_roles_for_action(db, "assessment") == ["supervisor"]


# ═════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═════════════════════════════════════════════════════════════════════


class TestPermissionEndpoints:

    async def test_actions_grouped_by_category(self, client, field_headers):
        resp = await client.get("/api/role-action-mappings/actions", headers=field_headers)
        assert resp.status_code == 200
        categories = {c["category"]: c["actions"] for c in resp.json()}
        assert set(categories) == set(catalog.ACTION_CATEGORIES)
        flat = {a["id"]: a for actions in categories.values() for a in actions}
        assert flat["safety_inspection"]["default_roles"] == ["field_staff"]

    async def test_check_for_current_user(self, client, field_headers):
        resp = await client.get(
            "/api/role-action-mappings/check?action_id=safety_inspection", headers=field_headers,
        )
        assert resp.json() == {
            "action_id": "safety_inspection", "allowed": True, "roles": ["field_staff"],
        }
        resp = await client.get(
            "/api/role-action-mappings/check?action_id=assessment", headers=field_headers,
        )
        assert resp.json()["allowed"] is False

    async def test_admin_allowed_everything(self, client, admin_headers):
        resp = await client.get(
            "/api/role-action-mappings/check?action_id=safety_inspection", headers=admin_headers,
        )
        assert resp.json()["allowed"] is True

    async def test_matrix_requires_role_management(self, client, supervisor_headers):
        resp = await client.get("/api/role-action-mappings", headers=supervisor_headers)
        assert resp.status_code == 403

    async def test_matrix_for_one_role(self, client, admin_headers):
        resp = await client.get(
            "/api/role-action-mappings?role_name=field_staff", headers=admin_headers,
        )
        rows = resp.json()
        assert len(rows) == len(catalog.all_action_ids())
        granted = {r["action_id"] for r in rows if r["has_permission"]}
        assert "safety_inspection" in granted
        assert "initial_inspection" not in granted

    async def test_put_replaces_grants(self, client, admin_headers, field_headers):
        resp = await client.put("/api/role-action-mappings", json={
            "role_name": "field_staff",
            "action_ids": ["view_complaints", "assessment"],
        }, headers=admin_headers)
        assert resp.status_code == 200
        granted = {r["action_id"] for r in resp.json() if r["has_permission"]}
        assert granted == {"view_complaints", "assessment"}

        # the change applies to the next request
        resp = await client.get("/api/timesheets", headers=field_headers)
        assert resp.status_code == 403
        resp = await client.get(
            "/api/role-action-mappings/check?action_id=assessment", headers=field_headers,
        )
        assert resp.json()["allowed"] is True

    async def test_put_unknown_action(self, client, admin_headers):
        resp = await client.put("/api/role-action-mappings", json={
            "role_name": "field_staff", "action_ids": ["launch_rockets"],
        }, headers=admin_headers)
        assert resp.status_code == 422
        assert "action_ids" in resp.json()["errors"]

    async def test_put_unknown_role(self, client, admin_headers):
        resp = await client.put("/api/role-action-mappings", json={
            "role_name": "janitor", "action_ids": [],
        }, headers=admin_headers)
        assert resp.status_code == 422

    async def test_admin_bypasses_revoked_grants(self, client, admin_headers):
        await client.put("/api/role-action-mappings", json={
            "role_name": "admin", "action_ids": [],
        }, headers=admin_headers)
        resp = await client.get("/api/role-action-mappings", headers=admin_headers)
        assert resp.status_code == 200
