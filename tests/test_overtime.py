"""Overtime request tests."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from orcaa.notifications.models import Notification

WORKED = date.today() - timedelta(days=2)


def _overtime(**overrides) -> dict:
    payload = {
        "date": WORKED.isoformat(),
        "hours": "2.5",
        "project_description": "Evening odor patrol",
        "justification": "Complaints spiked after hours",
    }
    payload.update(overrides)
    return payload


async def _submit(client, headers, **overrides) -> dict:
    resp = await client.post("/api/overtime-requests", json=_overtime(**overrides), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ═════════════════════════════════════════════════════════════════════
# SUBMISSION
# ═════════════════════════════════════════════════════════════════════


class TestSubmitOvertime:

    async def test_submit_pending(self, client, field_headers, field_staff):
        body = await _submit(client, field_headers)
        assert body["status"] == "pending"
        assert Decimal(str(body["hours"])) == Decimal("2.5")
        assert body["user_id"] == str(field_staff.id)

    @pytest.mark.parametrize("hours", ["0.05", "12.5"])
    async def test_hours_out_of_range(self, client, field_headers, hours):
        resp = await client.post(
            "/api/overtime-requests", json=_overtime(hours=hours), headers=field_headers,
        )
        assert resp.status_code == 422
        assert "hours" in resp.json()["errors"]

    @pytest.mark.parametrize("hours", ["0.1", "12"])
    async def test_hours_bounds_inclusive(self, client, field_headers, hours):
        await _submit(client, field_headers, hours=hours)

    async def test_future_date_rejected(self, client, field_headers):
        resp = await client.post(
            "/api/overtime-requests",
            json=_overtime(date=(date.today() + timedelta(days=1)).isoformat()),
            headers=field_headers,
        )
        assert resp.status_code == 422

    async def test_justification_required(self, client, field_headers):
        resp = await client.post(
            "/api/overtime-requests", json=_overtime(justification=""), headers=field_headers,
        )
        assert resp.status_code == 422

    async def test_approvers_notified(self, client, db, field_headers, supervisor, approver):
        await _submit(client, field_headers)
        result = await db.execute(
            select(Notification).where(Notification.title == "New Overtime Request")
        )
        assert {n.recipient_id for n in result.scalars().all()} == {supervisor.id, approver.id}


# ═════════════════════════════════════════════════════════════════════
# DECISIONS
# ═════════════════════════════════════════════════════════════════════


class TestDecideOvertime:

    async def test_approve(self, client, db, field_headers, approver_headers, field_staff):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/overtime-requests/{req['id']}/approve", headers=approver_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"

        result = await db.execute(
            select(Notification).where(Notification.title == "Overtime Request Approved")
        )
        assert [n.recipient_id for n in result.scalars().all()] == [field_staff.id]

    async def test_reject(self, client, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/overtime-requests/{req['id']}/reject",
            json={"reason": "Not pre-authorised"},
            headers=supervisor_headers,
        )
        assert resp.json()["status"] == "rejected"
        assert resp.json()["rejection_reason"] == "Not pre-authorised"

    async def test_self_decision_forbidden(self, client, approver_headers):
        req = await _submit(client, approver_headers)
        resp = await client.put(
            f"/api/overtime-requests/{req['id']}/approve", headers=approver_headers,
        )
        assert resp.status_code == 403

    async def test_field_staff_cannot_decide(self, client, user_factory, headers_for, field_headers):
        other = await user_factory("field_staff")
        req = await _submit(client, await headers_for(other))
        resp = await client.put(f"/api/overtime-requests/{req['id']}/approve", headers=field_headers)
        assert resp.status_code == 403

    async def test_forward(self, client, field_headers, supervisor_headers, approver):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/overtime-requests/{req['id']}/forward",
            json={"forwarded_to": str(approver.id)},
            headers=supervisor_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "forwarded"

    async def test_cannot_forward_to_requester(self, client, supervisor_headers, approver_headers, supervisor):
        req = await _submit(client, supervisor_headers)
        resp = await client.put(
            f"/api/overtime-requests/{req['id']}/forward",
            json={"forwarded_to": str(supervisor.id)},
            headers=approver_headers,
        )
        assert resp.status_code == 422


# ═════════════════════════════════════════════════════════════════════
# OWNER ACCESS
# ═════════════════════════════════════════════════════════════════════


class TestOvertimeAccess:

    async def test_list_own_and_all(self, client, field_headers, supervisor_headers):
        await _submit(client, field_headers)
        await _submit(client, supervisor_headers)

        resp = await client.get("/api/overtime-requests", headers=field_headers)
        assert resp.json()["meta"]["total"] == 1
        resp = await client.get("/api/overtime-requests?all=true", headers=supervisor_headers)
        assert resp.json()["meta"]["total"] == 2

    async def test_all_forbidden_for_field_staff(self, client, field_headers):
        resp = await client.get("/api/overtime-requests?all=true", headers=field_headers)
        assert resp.status_code == 403

    async def test_update_pending(self, client, field_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/overtime-requests/{req['id']}", json={"hours": "4"}, headers=field_headers,
        )
        assert resp.status_code == 200
        assert Decimal(str(resp.json()["hours"])) == Decimal("4")

    async def test_delete_after_decision_rejected(self, client, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        await client.put(f"/api/overtime-requests/{req['id']}/approve", headers=supervisor_headers)
        resp = await client.delete(f"/api/overtime-requests/{req['id']}", headers=field_headers)
        assert resp.status_code == 422

    async def test_missing(self, client, field_headers):
        resp = await client.get(f"/api/overtime-requests/{uuid.uuid4()}", headers=field_headers)
        assert resp.status_code == 404
