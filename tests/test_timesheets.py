"""Tests for timesheets, timesheet activities and list values."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from orcaa.common.constants import TIMESHEET_ACTIVITY_LIST
from orcaa.timesheets.models import ListValue

YESTERDAY = date.today() - timedelta(days=1)


def _entry(**overrides) -> dict:
    payload = {
        "date": YESTERDAY.isoformat(),
        "activity": "OFFICE_WORK",
        "comments": "Filing",
        "time_in_hours": "7.5",
    }
    payload.update(overrides)
    return payload


async def _create(client, headers, **overrides) -> dict:
    resp = await client.post("/api/timesheets", json=_entry(**overrides), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
async def activities(db):
    db.add_all([
        ListValue(list_value_type=TIMESHEET_ACTIVITY_LIST, code="OFFICE_WORK", descr="Office Work", order=1),
        ListValue(list_value_type=TIMESHEET_ACTIVITY_LIST, code="TRAVEL", descr="Travel", order=2),
        ListValue(
            list_value_type=TIMESHEET_ACTIVITY_LIST, code="RETIRED", descr="Retired", order=3,
            is_active=False,
        ),
    ])
    await db.commit()


# ═════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════


class TestCreateTimesheet:

    async def test_create_for_self(self, client, field_headers, field_staff):
        body = await _create(client, field_headers, business_work_id="AQ-2025-001")
        assert body["user_id"] == str(field_staff.id)
        assert Decimal(str(body["time_in_hours"])) == Decimal("7.5")
        assert body["business_work_id"] == "AQ-2025-001"

    @pytest.mark.parametrize("hours", ["0.2", "24.25", "0"])
    async def test_hours_out_of_range(self, client, field_headers, hours):
        resp = await client.post(
            "/api/timesheets", json=_entry(time_in_hours=hours), headers=field_headers,
        )
        assert resp.status_code == 422

    @pytest.mark.parametrize("hours", ["0.25", "24"])
    async def test_hours_bounds_inclusive(self, client, field_headers, hours):
        await _create(client, field_headers, time_in_hours=hours)

    async def test_future_date_rejected(self, client, field_headers):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        resp = await client.post("/api/timesheets", json=_entry(date=tomorrow), headers=field_headers)
        assert resp.status_code == 422
        assert "date" in resp.json()["errors"]

    async def test_any_activity_when_none_configured(self, client, field_headers):
        await _create(client, field_headers, activity="WHATEVER")

    async def test_activity_must_be_configured_code(self, client, field_headers, activities):
        resp = await client.post(
            "/api/timesheets", json=_entry(activity="GARDENING"), headers=field_headers,
        )
        assert resp.status_code == 422
        assert "activity" in resp.json()["errors"]

    async def test_inactive_activity_rejected(self, client, field_headers, activities):
        resp = await client.post(
            "/api/timesheets", json=_entry(activity="RETIRED"), headers=field_headers,
        )
        assert resp.status_code == 422

    async def test_requires_auth(self, client):
        resp = await client.post("/api/timesheets", json=_entry())
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# READ / LIST
# ═════════════════════════════════════════════════════════════════════


class TestListTimesheets:

    async def test_list_returns_only_own(self, client, field_headers, supervisor_headers):
        await _create(client, field_headers)
        await _create(client, supervisor_headers)

        resp = await client.get("/api/timesheets", headers=field_headers)
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 1

    async def test_reviewer_lists_everyone(self, client, field_headers, supervisor_headers):
        await _create(client, field_headers)
        await _create(client, supervisor_headers)

        resp = await client.get("/api/timesheets?all=true", headers=supervisor_headers)
        assert resp.json()["meta"]["total"] == 2

    async def test_reviewer_filters_by_user(
        self, client, field_headers, supervisor_headers, field_staff,
    ):
        await _create(client, field_headers)
        await _create(client, supervisor_headers)

        resp = await client.get(
            f"/api/timesheets?user_id={field_staff.id}", headers=supervisor_headers,
        )
        data = resp.json()["data"]
        assert [row["user_id"] for row in data] == [str(field_staff.id)]

    async def test_staff_cannot_list_another_user(self, client, field_headers, supervisor):
        resp = await client.get(f"/api/timesheets?user_id={supervisor.id}", headers=field_headers)
        assert resp.status_code == 403

    async def test_all_flag_ignored_for_staff(self, client, field_headers, supervisor_headers):
        await _create(client, field_headers)
        await _create(client, supervisor_headers)

        resp = await client.get("/api/timesheets?all=true", headers=field_headers)
        assert resp.json()["meta"]["total"] == 1

    async def test_date_and_activity_filters(self, client, field_headers):
        earlier = (YESTERDAY - timedelta(days=5)).isoformat()
        await _create(client, field_headers, date=earlier, activity="TRAVEL")
        await _create(client, field_headers)

        resp = await client.get(
            f"/api/timesheets?date_from={YESTERDAY.isoformat()}", headers=field_headers,
        )
        assert resp.json()["meta"]["total"] == 1
        resp = await client.get("/api/timesheets?activity=TRAVEL", headers=field_headers)
        assert [r["date"] for r in resp.json()["data"]] == [earlier]

    async def test_get_other_users_entry_forbidden(
        self, client, field_headers, approver_headers,
    ):
        entry = await _create(client, field_headers)
        resp = await client.get(f"/api/timesheets/{entry['id']}", headers=approver_headers)
        assert resp.status_code == 403

    async def test_reviewer_reads_any_entry(self, client, field_headers, supervisor_headers):
        entry = await _create(client, field_headers)
        resp = await client.get(f"/api/timesheets/{entry['id']}", headers=supervisor_headers)
        assert resp.status_code == 200

    async def test_get_missing(self, client, field_headers):
        resp = await client.get(f"/api/timesheets/{uuid.uuid4()}", headers=field_headers)
        assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# UPDATE / DELETE
# ═════════════════════════════════════════════════════════════════════


class TestModifyTimesheet:

    async def test_owner_updates(self, client, field_headers):
        entry = await _create(client, field_headers)
        resp = await client.put(
            f"/api/timesheets/{entry['id']}",
            json={"time_in_hours": "3.25", "comments": "Revised"},
            headers=field_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(str(body["time_in_hours"])) == Decimal("3.25")
        assert body["comments"] == "Revised"
        assert body["activity"] == "OFFICE_WORK"

    async def test_supervisor_cannot_edit_others(self, client, field_headers, supervisor_headers):
        entry = await _create(client, field_headers)
        resp = await client.put(
            f"/api/timesheets/{entry['id']}", json={"comments": "x"}, headers=supervisor_headers,
        )
        assert resp.status_code == 403

    async def test_admin_edits_any(self, client, field_headers, admin_headers):
        entry = await _create(client, field_headers)
        resp = await client.put(
            f"/api/timesheets/{entry['id']}", json={"comments": "Corrected"}, headers=admin_headers,
        )
        assert resp.status_code == 200

    async def test_update_validates_hours(self, client, field_headers):
        entry = await _create(client, field_headers)
        resp = await client.put(
            f"/api/timesheets/{entry['id']}", json={"time_in_hours": "25"}, headers=field_headers,
        )
        assert resp.status_code == 422

    async def test_owner_deletes(self, client, field_headers):
        entry = await _create(client, field_headers)
        resp = await client.delete(f"/api/timesheets/{entry['id']}", headers=field_headers)
        assert resp.status_code == 204
        resp = await client.get(f"/api/timesheets/{entry['id']}", headers=field_headers)
        assert resp.status_code == 404

    async def test_supervisor_cannot_delete_others(
        self, client, field_headers, supervisor_headers,
    ):
        entry = await _create(client, field_headers)
        resp = await client.delete(f"/api/timesheets/{entry['id']}", headers=supervisor_headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# SUMMARY
# ═════════════════════════════════════════════════════════════════════


class TestSummary:

    async def test_hours_grouped_by_activity(self, client, field_headers):
        await _create(client, field_headers, activity="OFFICE_WORK", time_in_hours="2")
        await _create(client, field_headers, activity="TRAVEL", time_in_hours="3.5")
        await _create(client, field_headers, activity="OFFICE_WORK", time_in_hours="1")

        resp = await client.get("/api/timesheets/summary", headers=field_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(str(body["total_hours"])) == Decimal("6.5")
        rows = [(r["activity"], Decimal(str(r["hours"])), r["entries"]) for r in body["by_activity"]]
        assert rows == [("TRAVEL", Decimal("3.5"), 1), ("OFFICE_WORK", Decimal("3"), 2)]

    async def test_staff_cannot_summarise_others(self, client, field_headers, supervisor):
        resp = await client.get(
            f"/api/timesheets/summary?user_id={supervisor.id}", headers=field_headers,
        )
        assert resp.status_code == 403

    async def test_reviewer_summarises_staff(
        self, client, field_headers, supervisor_headers, field_staff,
    ):
        await _create(client, field_headers)
        resp = await client.get(
            f"/api/timesheets/summary?user_id={field_staff.id}", headers=supervisor_headers,
        )
        assert Decimal(str(resp.json()["total_hours"])) == Decimal("7.5")


# ═════════════════════════════════════════════════════════════════════
# LIST VALUES
# ═════════════════════════════════════════════════════════════════════


class TestListValues:

    async def test_timesheet_activities_only_active(self, client, field_headers, activities):
        resp = await client.get("/api/timesheet-activities", headers=field_headers)
        assert resp.status_code == 200
        assert [v["code"] for v in resp.json()] == ["OFFICE_WORK", "TRAVEL"]

    async def test_list_filtered_by_type(self, client, field_headers, activities, db):
        db.add(ListValue(list_value_type="COUNTY", code="GRAYS_HARBOR", descr="Grays Harbor"))
        await db.commit()

        resp = await client.get("/api/list-values?list_value_type=COUNTY", headers=field_headers)
        assert [v["code"] for v in resp.json()] == ["GRAYS_HARBOR"]
        resp = await client.get("/api/list-values", headers=field_headers)
        assert len(resp.json()) == 4

    async def test_admin_crud(self, client, admin_headers):
        resp = await client.post("/api/list-values", json={
            "list_value_type": TIMESHEET_ACTIVITY_LIST,
            "code": "FIELD_WORK",
            "descr": "Field Work",
            "order": 4,
        }, headers=admin_headers)
        assert resp.status_code == 201
        value_id = resp.json()["id"]

        resp = await client.put(
            f"/api/list-values/{value_id}", json={"is_active": False}, headers=admin_headers,
        )
        assert resp.json()["is_active"] is False

        resp = await client.delete(f"/api/list-values/{value_id}", headers=admin_headers)
        assert resp.status_code == 204

    async def test_duplicate_code_conflicts(self, client, admin_headers, activities):
        resp = await client.post("/api/list-values", json={
            "list_value_type": TIMESHEET_ACTIVITY_LIST,
            "code": "TRAVEL",
            "descr": "Travel again",
        }, headers=admin_headers)
        assert resp.status_code == 409

    async def test_supervisor_cannot_manage(self, client, supervisor_headers):
        resp = await client.post("/api/list-values", json={
            "list_value_type": "COUNTY", "code": "MASON", "descr": "Mason",
        }, headers=supervisor_headers)
        assert resp.status_code == 403
