"""User and role management tests."""

from __future__ import annotations

import uuid

from orcaa.users.models import Role


class TestUsers:

    async def test_list_requires_auth(self, client):
        resp = await client.get("/api/users")
        assert resp.status_code == 401

    async def test_list_filters(self, client, field_headers, field_staff, supervisor, user_factory):
        await user_factory("field_staff", is_active=False, first_name="Gone")

        resp = await client.get("/api/users?role=field_staff&is_active=true", headers=field_headers)
        assert [u["id"] for u in resp.json()["data"]] == [str(field_staff.id)]

        resp = await client.get("/api/users?search=super", headers=field_headers)
        assert [u["id"] for u in resp.json()["data"]] == [str(supervisor.id)]

    async def test_create_user(self, client, admin_headers):
        resp = await client.post("/api/users", json={
            "email": "new.staff@orcaa.org",
            "first_name": "New",
            "last_name": "Staff",
            "roles": ["field_staff", "approver", "field_staff"],
            "mobile_number": "+13605550111",
        }, headers=admin_headers)
        assert resp.status_code == 201
        body = resp.json()
        assert body["roles"] == ["field_staff", "approver"]
        assert body["display_name"] == "New Staff"

    async def test_create_duplicate_email(self, client, admin_headers, field_staff):
        resp = await client.post("/api/users", json={
            "email": field_staff.email, "roles": ["field_staff"],
        }, headers=admin_headers)
        assert resp.status_code == 409

    async def test_create_unknown_role(self, client, admin_headers):
        resp = await client.post("/api/users", json={
            "email": "x@orcaa.org", "roles": ["janitor"],
        }, headers=admin_headers)
        assert resp.status_code == 422
        assert "roles" in resp.json()["errors"]

    async def test_create_requires_user_management(self, client, field_headers):
        resp = await client.post("/api/users", json={
            "email": "x@orcaa.org", "roles": ["field_staff"],
        }, headers=field_headers)
        assert resp.status_code == 403

    async def test_update_contact_preferences(self, client, supervisor_headers, field_staff):
        resp = await client.put(f"/api/users/{field_staff.id}", json={
            "enable_sms_notifications": False, "whatsapp_number": "+13605550122",
        }, headers=supervisor_headers)
        assert resp.status_code == 200
        assert resp.json()["enable_sms_notifications"] is False
        assert resp.json()["whatsapp_number"] == "+13605550122"

    async def test_set_roles(self, client, admin_headers, field_staff):
        resp = await client.put(
            f"/api/users/{field_staff.id}/roles",
            json={"roles": ["supervisor"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["roles"] == ["supervisor"]

    async def test_set_roles_requires_one(self, client, admin_headers, field_staff):
        resp = await client.put(
            f"/api/users/{field_staff.id}/roles", json={"roles": []}, headers=admin_headers,
        )
        assert resp.status_code == 422

    async def test_set_custom_role(self, client, db, admin_headers, field_staff):
        db.add(Role(name="lab_tech", display_name="Lab Technician"))
        await db.commit()
        resp = await client.put(
            f"/api/users/{field_staff.id}/roles",
            json={"roles": ["field_staff", "lab_tech"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200

    async def test_deactivate(self, client, admin_headers, field_staff, field_headers):
        resp = await client.delete(f"/api/users/{field_staff.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        resp = await client.get("/api/auth/user", headers=field_headers)
        assert resp.status_code == 401

    async def test_cannot_deactivate_self(self, client, admin_headers, admin):
        resp = await client.delete(f"/api/users/{admin.id}", headers=admin_headers)
        assert resp.status_code == 422

    async def test_get_missing(self, client, admin_headers):
        resp = await client.get(f"/api/users/{uuid.uuid4()}", headers=admin_headers)
        assert resp.status_code == 404

    async def test_role_report(self, client, approver_headers, field_staff, supervisor):
        resp = await client.get("/api/users/role-report", headers=approver_headers)
        assert resp.status_code == 200
        report = {entry["role"]: entry for entry in resp.json()}
        assert report["field_staff"]["user_count"] == 1
        assert report["field_staff"]["users"][0]["id"] == str(field_staff.id)
        assert report["admin"]["user_count"] == 0
        assert report["field_staff"]["display_name"] == "Field Staff"

    async def test_role_report_forbidden_for_field_staff(self, client, field_headers):
        resp = await client.get("/api/users/role-report", headers=field_headers)
        assert resp.status_code == 403


class TestRoles:

    async def test_create_and_list(self, client, admin_headers):
        resp = await client.post("/api/roles", json={
            "name": "lab_tech", "display_name": "Lab Technician",
        }, headers=admin_headers)
        assert resp.status_code == 201

        resp = await client.get("/api/roles", headers=admin_headers)
        assert [r["name"] for r in resp.json()] == ["lab_tech"]

    async def test_name_pattern_enforced(self, client, admin_headers):
        resp = await client.post("/api/roles", json={
            "name": "Lab Tech", "display_name": "Lab Technician",
        }, headers=admin_headers)
        assert resp.status_code == 422

    async def test_duplicate_role(self, client, admin_headers):
        body = {"name": "lab_tech", "display_name": "Lab Technician"}
        await client.post("/api/roles", json=body, headers=admin_headers)
        resp = await client.post("/api/roles", json=body, headers=admin_headers)
        assert resp.status_code == 409

    async def test_supervisor_cannot_manage_roles(self, client, supervisor_headers):
        resp = await client.post("/api/roles", json={
            "name": "lab_tech", "display_name": "Lab Technician",
        }, headers=supervisor_headers)
        assert resp.status_code == 403

    async def test_deactivated_role_hidden(self, client, admin_headers):
        role = (await client.post("/api/roles", json={
            "name": "lab_tech", "display_name": "Lab Technician",
        }, headers=admin_headers)).json()
        await client.put(f"/api/roles/{role['id']}", json={"is_active": False}, headers=admin_headers)

        resp = await client.get("/api/roles", headers=admin_headers)
        assert resp.json() == []
        resp = await client.get("/api/roles?include_inactive=true", headers=admin_headers)
        assert len(resp.json()) == 1

    async def test_builtin_role_cannot_be_deleted(self, client, db, admin_headers):
        role = Role(name="supervisor", display_name="Supervisor")
        db.add(role)
        await db.commit()
        resp = await client.delete(f"/api/roles/{role.id}", headers=admin_headers)
        assert resp.status_code == 422

    async def test_held_role_cannot_be_deleted(self, client, admin_headers, user_factory):
        role = (await client.post("/api/roles", json={
            "name": "lab_tech", "display_name": "Lab Technician",
        }, headers=admin_headers)).json()
        await user_factory("lab_tech")

        resp = await client.delete(f"/api/roles/{role['id']}", headers=admin_headers)
        assert resp.status_code == 422

    async def test_delete_unused_role(self, client, admin_headers):
        role = (await client.post("/api/roles", json={
            "name": "lab_tech", "display_name": "Lab Technician",
        }, headers=admin_headers)).json()
        resp = await client.delete(f"/api/roles/{role['id']}", headers=admin_headers)
        assert resp.status_code == 204
