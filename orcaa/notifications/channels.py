"""Outbound notification channels: SMS / WhatsApp (Twilio) and email (SendGrid).

Every sender returns ``True`` on success and ``False`` when the channel is not
configured or the provider rejects the message. Failures are logged; they
never abort the request that triggered them.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

import httpx

from orcaa.config import settings

logger = logging.getLogger(__name__)

_VARIABLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def substitute_variables(template: str, context: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left untouched."""

    def _replace(match: re.Match) -> str:
        value = context.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _VARIABLE.sub(_replace, template)


# ── Twilio ──────────────────────────────────────────────────────────

def twilio_configured() -> bool:
    return bool(settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN)


async def _send_twilio(to: str, body: str, from_: str) -> bool:
    url = f"{settings.TWILIO_API_BASE}/Accounts/{settings.TWILIO_ACCOUNT_SID}/Messages.json"
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.post(
                url,
                data={"To": to, "From": from_, "Body": body},
                auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            )
    except httpx.HTTPError as exc:
        logger.error("Twilio request to %s failed: %s", to, exc)
        return False
    if resp.status_code >= 400:
        logger.error("Twilio rejected message to %s: %s %s", to, resp.status_code, resp.text)
        return False
    logger.info("Twilio message %s queued for %s", resp.json().get("sid"), to)
    return True


async def send_sms(to: Optional[str], body: str) -> bool:
    if not to:
        return False
    if not twilio_configured() or not settings.TWILIO_PHONE_NUMBER:
        logger.warning("SMS to %s skipped: Twilio is not configured", to)
        return False
    return await _send_twilio(to, body, settings.TWILIO_PHONE_NUMBER)


async def send_whatsapp(to: Optional[str], body: str) -> bool:
    if not to:
        return False
    if not twilio_configured() or not settings.TWILIO_WHATSAPP_NUMBER:
        logger.warning("WhatsApp message to %s skipped: Twilio is not configured", to)
        return False
    return await _send_twilio(
        f"whatsapp:{to}", body, f"whatsapp:{settings.TWILIO_WHATSAPP_NUMBER}",
    )


# ── SendGrid ────────────────────────────────────────────────────────

def email_configured() -> bool:
    return bool(settings.SENDGRID_API_KEY)


async def send_email(
    to: Optional[str],
    subject: str,
    text: str,
    *,
    to_name: Optional[str] = None,
    html: Optional[str] = None,
) -> bool:
    if not to:
        return False
    if not email_configured():
        logger.warning("Email '%s' to %s skipped: SendGrid is not configured", subject, to)
        return False

    recipient: dict[str, str] = {"email": to}
    if to_name:
        recipient["name"] = to_name
    content = [{"type": "text/plain", "value": text}]
    if html:
        content.append({"type": "text/html", "value": html})

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.post(
                settings.SENDGRID_API_URL,
                headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
                json={
                    "personalizations": [{"to": [recipient]}],
                    "from": {"email": settings.EMAIL_FROM, "name": "ORCAA"},
                    "subject": subject,
                    "content": content,
                },
            )
    except httpx.HTTPError as exc:
        logger.error("SendGrid request for %s failed: %s", to, exc)
        return False
    if resp.status_code >= 400:
        logger.error("SendGrid rejected email to %s: %s %s", to, resp.status_code, resp.text)
        return False
    return True
