"""Inbox aggregation tests."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

from orcaa.workflow.models import WorkflowTask


async def _assign(client, headers, complaint_id: str, user) -> None:
    resp = await client.put(
        f"/api/complaints/{complaint_id}/assign",
        json={"assigned_to": str(user.id)},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text


async def _leave(client, headers) -> dict:
    start = date.today() + timedelta(days=7)
    resp = await client.post("/api/leave-requests", json={
        "leave_type": "Personal",
        "start_date": start.isoformat(),
        "end_date": start.isoformat(),
        "reason": "Appointment",
    }, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _kinds(items: list[dict]) -> list[str]:
    return sorted(item["kind"] for item in items)


class TestInbox:

    async def test_requires_auth(self, client):
        resp = await client.get("/api/inbox")
        assert resp.status_code == 401

    async def test_empty(self, client, field_headers):
        resp = await client.get("/api/inbox", headers=field_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_assigned_complaint_and_notification(
        self, client, field_headers, supervisor_headers, field_staff, submitted_complaint,
    ):
        await _assign(client, supervisor_headers, submitted_complaint["id"], field_staff)

        items = (await client.get("/api/inbox", headers=field_headers)).json()
        assert _kinds(items) == ["complaint", "notification"]
        complaint = next(i for i in items if i["kind"] == "complaint")
        assert complaint["title"] == f"Complaint {submitted_complaint['complaint_id']}"
        assert complaint["link"] == f"/complaints/{submitted_complaint['id']}"

    async def test_closed_complaint_hidden(
        self, client, field_headers, supervisor_headers, field_staff, submitted_complaint,
    ):
        await _assign(client, supervisor_headers, submitted_complaint["id"], field_staff)
        await client.put(
            f"/api/complaints/{submitted_complaint['id']}",
            json={"status": "closed"},
            headers=supervisor_headers,
        )
        items = (await client.get("/api/inbox", headers=field_headers)).json()
        assert "complaint" not in _kinds(items)

    async def test_latest_task_per_complaint(self, client, db, field_headers, field_staff, submitted_complaint):
        complaint_id = uuid.UUID(submitted_complaint["id"])
        now = datetime.now(timezone.utc)
        db.add_all([
            WorkflowTask(
                complaint_id=complaint_id, sequence=1, task_name="Site Visit", task_type="TASK",
                assigned_to=field_staff.id, status="in_progress", priority="normal",
                activated_at=now, created_at=now,
            ),
            WorkflowTask(
                complaint_id=complaint_id, sequence=2, task_name="Write Report", task_type="TASK",
                assigned_to=field_staff.id, status="pending", priority="normal",
                activated_at=now, created_at=now + timedelta(seconds=1),
            ),
            WorkflowTask(
                complaint_id=complaint_id, sequence=3, task_name="Done Already", task_type="TASK",
                assigned_to=field_staff.id, status="completed", priority="normal",
                activated_at=now, created_at=now + timedelta(seconds=2),
            ),
        ])
        await db.commit()

        items = (await client.get("/api/inbox", headers=field_headers)).json()
        tasks = [i for i in items if i["kind"] == "task"]
        assert [t["title"] for t in tasks] == ["Write Report"]

    async def test_own_request_listed(self, client, field_headers):
        await _leave(client, field_headers)
        items = (await client.get("/api/inbox", headers=field_headers)).json()
        requests = [i for i in items if i["kind"] == "leave_request"]
        assert len(requests) == 1
        assert requests[0]["title"].startswith("Leave request: Personal")

    async def test_approver_sees_open_requests(self, client, field_headers, approver_headers):
        await _leave(client, field_headers)
        items = (await client.get("/api/inbox", headers=approver_headers)).json()
        requests = [i for i in items if i["kind"] == "leave_request"]
        assert requests[0]["title"].startswith("Approval needed: ")
        assert requests[0]["status"] == "pending"

    async def test_decided_requests_leave_approver_inbox(
        self, client, field_headers, approver_headers, supervisor_headers,
    ):
        req = await _leave(client, field_headers)
        await client.put(f"/api/leave-requests/{req['id']}/approve", headers=supervisor_headers)
        items = (await client.get("/api/inbox", headers=approver_headers)).json()
        assert "leave_request" not in _kinds(items)

    async def test_newest_first(self, client, field_headers, supervisor_headers, field_staff, submitted_complaint):
        await _assign(client, supervisor_headers, submitted_complaint["id"], field_staff)
        await _leave(client, field_headers)
        items = (await client.get("/api/inbox", headers=field_headers)).json()
        assert items[0]["kind"] == "leave_request"
        assert len(items) == 3


class TestInboxCounts:

    async def test_counts_by_kind(
        self, client, field_headers, supervisor_headers, field_staff, submitted_complaint,
    ):
        await _assign(client, supervisor_headers, submitted_complaint["id"], field_staff)
        await _leave(client, field_headers)

        counts = (await client.get("/api/inbox/counts", headers=field_headers)).json()
        assert counts["complaint"] == 1
        assert counts["leave_request"] == 1
        assert counts["notification"] == 1
        assert counts["total"] == 3

    async def test_read_notifications_not_counted(
        self, client, field_headers, supervisor_headers, field_staff, submitted_complaint,
    ):
        await _assign(client, supervisor_headers, submitted_complaint["id"], field_staff)
        await client.put("/api/notifications/read-all", headers=field_headers)

        counts = (await client.get("/api/inbox/counts", headers=field_headers)).json()
        assert counts["notification"] == 0
        assert counts["total"] == 1
