"""Leave module tests: submission, overlap rules, approve / reject / forward,
visibility, and the notifications each step produces.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.audit import AuditTrail
from orcaa.notifications.models import Notification

START = date.today() + timedelta(days=14)


def _leave(offset: int = 0, days: int = 3, **overrides) -> dict:
    start = START + timedelta(days=offset)
    payload = {
        "leave_type": "Annual",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=days - 1)).isoformat(),
        "reason": "Family visit",
    }
    payload.update(overrides)
    return payload


async def _submit(client, headers, **kwargs) -> dict:
    resp = await client.post("/api/leave-requests", json=_leave(**kwargs), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _notifications(db: AsyncSession, title: str) -> list[Notification]:
    result = await db.execute(select(Notification).where(Notification.title == title))
    return list(result.scalars().all())


# ═════════════════════════════════════════════════════════════════════
# SUBMISSION
# ═════════════════════════════════════════════════════════════════════


class TestSubmitLeave:

    async def test_submit_pending(self, client, field_headers, field_staff):
        body = await _submit(client, field_headers)
        assert body["status"] == "pending"
        assert body["total_days"] == 3
        assert body["user_id"] == str(field_staff.id)

    async def test_single_day(self, client, field_headers):
        body = await _submit(client, field_headers, days=1)
        assert body["total_days"] == 1

    async def test_end_before_start_rejected(self, client, field_headers):
        payload = _leave(end_date=(START - timedelta(days=1)).isoformat())
        resp = await client.post("/api/leave-requests", json=payload, headers=field_headers)
        assert resp.status_code == 422

    async def test_unknown_leave_type_rejected(self, client, field_headers):
        resp = await client.post(
            "/api/leave-requests", json=_leave(leave_type="Sabbatical"), headers=field_headers,
        )
        assert resp.status_code == 422
        assert "leave_type" in resp.json()["errors"]

    async def test_blank_reason_rejected(self, client, field_headers):
        resp = await client.post(
            "/api/leave-requests", json=_leave(reason="   "), headers=field_headers,
        )
        assert resp.status_code == 422

    async def test_overlap_with_pending_rejected(self, client, field_headers):
        await _submit(client, field_headers)
        resp = await client.post(
            "/api/leave-requests", json=_leave(offset=2), headers=field_headers,
        )
        assert resp.status_code == 422
        assert "dates" in resp.json()["errors"]

    async def test_overlap_with_forwarded_rejected(
        self, client, field_headers, supervisor_headers, approver,
    ):
        first = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{first['id']}/forward",
            json={"forwarded_to": str(approver.id)},
            headers=supervisor_headers,
        )
        assert resp.json()["status"] == "forwarded"

        resp = await client.post("/api/leave-requests", json=_leave(), headers=field_headers)
        assert resp.status_code == 422
        assert "dates" in resp.json()["errors"]

    async def test_adjacent_dates_allowed(self, client, field_headers):
        await _submit(client, field_headers)
        await _submit(client, field_headers, offset=3)

    async def test_rejected_request_does_not_block(
        self, client, field_headers, supervisor_headers,
    ):
        first = await _submit(client, field_headers)
        await client.put(
            f"/api/leave-requests/{first['id']}/reject",
            json={"reason": "Short staffed"},
            headers=supervisor_headers,
        )
        await _submit(client, field_headers)

    async def test_approvers_notified(self, client, db, field_headers, supervisor, approver, admin):
        await _submit(client, field_headers)
        recipients = {n.recipient_id for n in await _notifications(db, "New Leave Request")}
        assert recipients == {supervisor.id, approver.id, admin.id}

    async def test_submission_audited(self, client, db, field_headers):
        body = await _submit(client, field_headers)
        result = await db.execute(
            select(AuditTrail).where(AuditTrail.entity_id == uuid.UUID(body["id"]))
        )
        entry = result.scalars().one()
        assert entry.action == "created"
        assert entry.entity_type == "leave_request"
        assert entry.new_value["total_days"] == 3


# ═════════════════════════════════════════════════════════════════════
# DECISIONS
# ═════════════════════════════════════════════════════════════════════


class TestDecideLeave:

    async def test_approver_approves(self, client, db, field_headers, approver_headers, approver, field_staff):
        req = await _submit(client, field_headers)
        resp = await client.put(f"/api/leave-requests/{req['id']}/approve", headers=approver_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "approved"
        assert body["approved_by"] == str(approver.id)
        assert body["approved_at"] is not None

        decided = await _notifications(db, "Leave Request Approved")
        assert [n.recipient_id for n in decided] == [field_staff.id]

    async def test_reject_records_reason(self, client, db, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}/reject",
            json={"reason": "Inspection backlog"},
            headers=supervisor_headers,
        )
        assert resp.json()["status"] == "rejected"
        assert resp.json()["rejection_reason"] == "Inspection backlog"
        assert len(await _notifications(db, "Leave Request Rejected")) == 1

    async def test_reject_requires_reason(self, client, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}/reject", json={"reason": ""},
            headers=supervisor_headers,
        )
        assert resp.status_code == 422

    async def test_field_staff_cannot_approve(self, client, user_factory, headers_for, field_headers):
        other = await user_factory("field_staff")
        req = await _submit(client, await headers_for(other))
        resp = await client.put(f"/api/leave-requests/{req['id']}/approve", headers=field_headers)
        assert resp.status_code == 403

    async def test_cannot_decide_own_request(self, client, supervisor_headers):
        req = await _submit(client, supervisor_headers)
        resp = await client.put(f"/api/leave-requests/{req['id']}/approve", headers=supervisor_headers)
        assert resp.status_code == 403

    async def test_cannot_decide_twice(self, client, field_headers, supervisor_headers, approver_headers):
        req = await _submit(client, field_headers)
        await client.put(f"/api/leave-requests/{req['id']}/approve", headers=supervisor_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}/reject", json={"reason": "Changed mind"},
            headers=approver_headers,
        )
        assert resp.status_code == 422

    async def test_forward_then_decide(
        self, client, db, field_headers, supervisor_headers, approver, approver_headers,
    ):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}/forward",
            json={"forwarded_to": str(approver.id), "comments": "Please review"},
            headers=supervisor_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "forwarded"
        assert body["forwarded_to"] == str(approver.id)
        assert body["forward_comments"] == "Please review"

        notes = await _notifications(db, "New Leave Request")
        # one on submission and one on forward
        assert sum(1 for n in notes if n.recipient_id == approver.id) == 2

        resp = await client.put(f"/api/leave-requests/{req['id']}/approve", headers=approver_headers)
        assert resp.json()["status"] == "approved"

    async def test_forward_to_non_approver_rejected(
        self, client, user_factory, field_headers, supervisor_headers,
    ):
        other = await user_factory("field_staff")
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}/forward",
            json={"forwarded_to": str(other.id)},
            headers=supervisor_headers,
        )
        assert resp.status_code == 422
        assert "forwarded_to" in resp.json()["errors"]

    async def test_forward_to_unknown_user(self, client, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}/forward",
            json={"forwarded_to": str(uuid.uuid4())},
            headers=supervisor_headers,
        )
        assert resp.status_code == 404

    async def test_decision_audited(self, client, db, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        await client.put(f"/api/leave-requests/{req['id']}/approve", headers=supervisor_headers)
        result = await db.execute(
            select(AuditTrail).where(
                AuditTrail.entity_id == uuid.UUID(req["id"]),
                AuditTrail.action == "status_changed",
            )
        )
        entry = result.scalars().one()
        assert entry.previous_value == "pending"
        assert entry.new_value == "approved"


# ═════════════════════════════════════════════════════════════════════
# VISIBILITY AND OWNER EDITS
# ═════════════════════════════════════════════════════════════════════


class TestLeaveAccess:

    async def test_list_own(self, client, field_headers, supervisor_headers):
        await _submit(client, field_headers)
        await _submit(client, supervisor_headers)
        resp = await client.get("/api/leave-requests", headers=field_headers)
        assert resp.json()["meta"]["total"] == 1

    async def test_all_requires_approver(self, client, field_headers):
        resp = await client.get("/api/leave-requests?all=true", headers=field_headers)
        assert resp.status_code == 403

    async def test_approver_lists_all_with_status(
        self, client, field_headers, supervisor_headers, approver_headers,
    ):
        first = await _submit(client, field_headers)
        await _submit(client, supervisor_headers)
        await client.put(f"/api/leave-requests/{first['id']}/approve", headers=approver_headers)

        resp = await client.get("/api/leave-requests?all=true", headers=approver_headers)
        assert resp.json()["meta"]["total"] == 2
        resp = await client.get(
            "/api/leave-requests?all=true&status=pending", headers=approver_headers,
        )
        assert resp.json()["meta"]["total"] == 1

    async def test_other_user_cannot_view(self, client, user_factory, headers_for, field_headers):
        other = await user_factory("field_staff")
        req = await _submit(client, field_headers)
        resp = await client.get(f"/api/leave-requests/{req['id']}", headers=await headers_for(other))
        assert resp.status_code == 403

    async def test_owner_edits_pending(self, client, field_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}",
            json={"leave_type": "Sick", "end_date": (START + timedelta(days=4)).isoformat()},
            headers=field_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["leave_type"] == "Sick"
        assert resp.json()["total_days"] == 5

    async def test_edit_cannot_invert_dates(self, client, field_headers):
        req = await _submit(client, field_headers)
        resp = await client.put(
            f"/api/leave-requests/{req['id']}",
            json={"end_date": (START - timedelta(days=2)).isoformat()},
            headers=field_headers,
        )
        assert resp.status_code == 422

    async def test_decided_request_is_locked(self, client, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        await client.put(f"/api/leave-requests/{req['id']}/approve", headers=supervisor_headers)

        resp = await client.put(
            f"/api/leave-requests/{req['id']}", json={"reason": "Changed"}, headers=field_headers,
        )
        assert resp.status_code == 422
        resp = await client.delete(f"/api/leave-requests/{req['id']}", headers=field_headers)
        assert resp.status_code == 422

    async def test_owner_deletes_pending(self, client, field_headers):
        req = await _submit(client, field_headers)
        resp = await client.delete(f"/api/leave-requests/{req['id']}", headers=field_headers)
        assert resp.status_code == 204

    async def test_approver_cannot_delete_others(self, client, field_headers, supervisor_headers):
        req = await _submit(client, field_headers)
        resp = await client.delete(f"/api/leave-requests/{req['id']}", headers=supervisor_headers)
        assert resp.status_code == 403


@pytest.mark.parametrize("leave_type", ["Annual", "Sick", "Emergency", "Study Leave"])
async def test_known_leave_types_accepted(client, field_headers, leave_type):
    await _submit(client, field_headers, leave_type=leave_type)
