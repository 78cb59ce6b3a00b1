"""Notification module tests: template substitution, outbound channels
(Twilio / SendGrid over httpx), and the in-app notification endpoints.

Uses the shared conftest.py pattern with in-memory SQLite.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.common.constants import NotificationType
from orcaa.config import settings
from orcaa.notifications import channels, templates
from orcaa.notifications.models import Notification
from orcaa.notifications.service import NotificationService, alert_user


# ── Helpers ─────────────────────────────────────────────────────────


async def _create_notification(
    db: AsyncSession,
    recipient_id: uuid.UUID,
    *,
    type: NotificationType = NotificationType.info,
    title: str = "Test Notification",
    message: str = "Test message body",
) -> Notification:
    notification = await NotificationService.create_notification(
        db, recipient_id=recipient_id, type=type, title=title, message=message,
    )
    await db.commit()
    return notification


def _response(status: int, url: str, payload: dict | None = None) -> httpx.Response:
    return httpx.Response(status, json=payload or {}, request=httpx.Request("POST", url))


@pytest.fixture
def twilio(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(settings, "TWILIO_PHONE_NUMBER", "+13605550000")
    monkeypatch.setattr(settings, "TWILIO_WHATSAPP_NUMBER", "+13605550001")
    post = AsyncMock(return_value=_response(201, "https://api.twilio.com", {"sid": "SM1"}))
    monkeypatch.setattr(httpx.AsyncClient, "post", post)
    return post


@pytest.fixture
def sendgrid(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.key")
    post = AsyncMock(return_value=_response(202, settings.SENDGRID_API_URL))
    monkeypatch.setattr(httpx.AsyncClient, "post", post)
    return post


# ═════════════════════════════════════════════════════════════════════
# TEMPLATES
# ═════════════════════════════════════════════════════════════════════


class TestTemplates:

    def test_substitute_known_variables(self):
        text = channels.substitute_variables(
            "Hi {{ name }}, ref {{complaint_id}}", {"name": "Jane", "complaint_id": "AQ-2025-001"},
        )
        assert text == "Hi Jane, ref AQ-2025-001"

    def test_unknown_variables_left_in_place(self):
        assert channels.substitute_variables("{{missing}} stays", {}) == "{{missing}} stays"

    def test_status_label(self):
        assert templates.status_label("work_in_progress") == "Work In Progress"

    def test_complaint_context(self, monkeypatch):
        monkeypatch.setattr(settings, "PUBLIC_BASE_URL", "https://orcaa.example/")
        complaint = SimpleNamespace(
            id=uuid.uuid4(), complaint_id="AQ-2025-007", complaint_type="air_quality",
            complainant_name=None, complainant_email="a@example.com", source_name="Mill",
            source_address="1 Dock St", status="inspection", priority="normal",
            created_at=datetime(2025, 3, 4, 6, 30, tzinfo=timezone.utc),
        )
        ctx = templates.complaint_context(complaint, task_name="Visit")
        assert ctx["complainant_name"] == "Complainant"
        assert ctx["status"] == "Inspection"
        assert ctx["status_url"] == "https://orcaa.example/complaint-status/AQ-2025-007"
        assert ctx["task_name"] == "Visit"
        # 06:30 UTC is the previous evening in Pacific time
        assert ctx["submitted_date"] == "03/03/2025"

        subject, _ = templates.render(
            templates.COMPLAINT_RECEIVED_SUBJECT, templates.COMPLAINT_RECEIVED_BODY, ctx,
        )
        assert subject == "ORCAA Complaint Received - AQ-2025-007"


# ═════════════════════════════════════════════════════════════════════
# OUTBOUND CHANNELS
# ═════════════════════════════════════════════════════════════════════


class TestChannels:

    async def test_unconfigured_channels_skip(self):
        assert await channels.send_sms("+13605550199", "hi") is False
        assert await channels.send_whatsapp("+13605550199", "hi") is False
        assert await channels.send_email("a@example.com", "Subject", "Body") is False

    async def test_missing_recipient_skips(self, twilio):
        assert await channels.send_sms(None, "hi") is False
        twilio.assert_not_awaited()

    async def test_sms_posts_to_twilio(self, twilio):
        assert await channels.send_sms("+13605550199", "Complaint received") is True
        url = twilio.await_args.args[0]
        assert url.endswith("/Accounts/AC123/Messages.json")
        assert twilio.await_args.kwargs["data"] == {
            "To": "+13605550199", "From": "+13605550000", "Body": "Complaint received",
        }
        assert twilio.await_args.kwargs["auth"] == ("AC123", "secret")

    async def test_whatsapp_prefixes_numbers(self, twilio):
        assert await channels.send_whatsapp("+13605550199", "hello") is True
        data = twilio.await_args.kwargs["data"]
        assert data["To"] == "whatsapp:+13605550199"
        assert data["From"] == "whatsapp:+13605550001"

    async def test_twilio_error_returns_false(self, twilio):
        twilio.return_value = _response(400, "https://api.twilio.com", {"message": "bad number"})
        assert await channels.send_sms("+1", "hi") is False

    async def test_transport_error_returns_false(self, twilio):
        twilio.side_effect = httpx.ConnectError("down")
        assert await channels.send_sms("+13605550199", "hi") is False

    async def test_email_posts_to_sendgrid(self, sendgrid):
        ok = await channels.send_email(
            "jane@example.com", "Subject", "Plain", to_name="Jane", html="<p>Plain</p>",
        )
        assert ok is True
        kwargs = sendgrid.await_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer SG.key"
        payload = kwargs["json"]
        assert payload["personalizations"] == [{"to": [{"email": "jane@example.com", "name": "Jane"}]}]
        assert payload["subject"] == "Subject"
        assert [c["type"] for c in payload["content"]] == ["text/plain", "text/html"]

    async def test_sendgrid_rejection_returns_false(self, sendgrid):
        sendgrid.return_value = _response(401, settings.SENDGRID_API_URL)
        assert await channels.send_email("jane@example.com", "S", "B") is False

    async def test_alert_user_respects_preferences(self, monkeypatch):
        sms = AsyncMock(return_value=True)
        whatsapp = AsyncMock(return_value=True)
        monkeypatch.setattr(channels, "send_sms", sms)
        monkeypatch.setattr(channels, "send_whatsapp", whatsapp)
        user = SimpleNamespace(
            enable_sms_notifications=True, sms_number="+13605550101",
            enable_whatsapp_notifications=False, whatsapp_number="+13605550102",
        )
        assert await alert_user(user, "ping") is True
        sms.assert_awaited_once_with("+13605550101", "ping")
        whatsapp.assert_not_awaited()


# ═════════════════════════════════════════════════════════════════════
# IN-APP NOTIFICATIONS
# ═════════════════════════════════════════════════════════════════════


class TestNotificationEndpoints:

    async def test_list_own_with_unread(self, client, db, field_headers, field_staff, supervisor):
        await _create_notification(db, field_staff.id, title="One")
        await _create_notification(db, field_staff.id, title="Two")
        await _create_notification(db, supervisor.id, title="Not mine")

        resp = await client.get("/api/notifications", headers=field_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert {n["title"] for n in body["data"]} == {"One", "Two"}
        assert body["meta"]["unread"] == 2

    async def test_filter_by_read_state(self, client, db, field_headers, field_staff):
        first = await _create_notification(db, field_staff.id)
        await _create_notification(db, field_staff.id)
        await client.put(f"/api/notifications/{first.id}/read", headers=field_headers)

        resp = await client.get("/api/notifications?is_read=false", headers=field_headers)
        assert resp.json()["meta"]["total"] == 1

    async def test_unread_count(self, client, db, field_headers, field_staff):
        await _create_notification(db, field_staff.id)
        resp = await client.get("/api/notifications/unread-count", headers=field_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["count"] == 1

    async def test_mark_read(self, client, db, field_headers, field_staff):
        note = await _create_notification(db, field_staff.id)
        resp = await client.put(f"/api/notifications/{note.id}/read", headers=field_headers)
        assert resp.status_code == 200
        resp = await client.get("/api/notifications/unread-count", headers=field_headers)
        assert resp.json()["data"]["count"] == 0

    async def test_cannot_mark_others_read(self, client, db, field_headers, supervisor):
        note = await _create_notification(db, supervisor.id)
        resp = await client.put(f"/api/notifications/{note.id}/read", headers=field_headers)
        assert resp.status_code == 403

    async def test_mark_missing_read(self, client, field_headers):
        resp = await client.put(f"/api/notifications/{uuid.uuid4()}/read", headers=field_headers)
        assert resp.status_code == 404

    async def test_mark_all_read(self, client, db, field_headers, field_staff, supervisor):
        await _create_notification(db, field_staff.id)
        await _create_notification(db, field_staff.id)
        other = await _create_notification(db, supervisor.id)

        resp = await client.put("/api/notifications/read-all", headers=field_headers)
        assert resp.json()["data"]["count"] == 2

        await db.refresh(other)
        assert other.is_read is False
