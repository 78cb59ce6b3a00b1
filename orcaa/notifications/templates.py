"""Email and SMS message templates.

Templates use ``{{variable}}`` placeholders filled by
:func:`orcaa.notifications.channels.substitute_variables`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from orcaa.common.constants import DATE_FORMAT, TIMEZONE
from orcaa.config import settings
from orcaa.notifications.channels import substitute_variables

COMPLAINT_RECEIVED_SUBJECT = "ORCAA Complaint Received - {{complaint_id}}"
STATUS_UPDATE_SUBJECT = "ORCAA Complaint Update - {{complaint_id}} - {{status}}"
ACTION_REQUIRED_SUBJECT = "ORCAA Action Required - {{complaint_id}}"
COMPLAINT_RESOLVED_SUBJECT = "ORCAA Complaint Resolved - {{complaint_id}}"
TASK_ASSIGNMENT_SUBJECT = "ORCAA Task Assignment - {{task_name}}"

COMPLAINT_RECEIVED_BODY = """\
Dear {{complainant_name}},

Thank you for contacting the Olympic Region Clean Air Agency. Your complaint
has been received on {{submitted_date}} and assigned the tracking number
{{complaint_id}}.

You can check its status at any time at {{status_url}}.

Olympic Region Clean Air Agency
"""

STATUS_UPDATE_BODY = """\
Dear {{complainant_name}},

The status of complaint {{complaint_id}} has changed to: {{status}}.

You can check its status at any time at {{status_url}}.

Olympic Region Clean Air Agency
"""

ACTION_REQUIRED_BODY = """\
Complaint {{complaint_id}} requires your attention: {{task_name}}.

Open it at {{staff_url}}.
"""

COMPLAINT_RESOLVED_BODY = """\
Dear {{complainant_name}},

Complaint {{complaint_id}} has been resolved and closed. Thank you for
helping protect air quality in our region.

Olympic Region Clean Air Agency
"""

TASK_ASSIGNMENT_BODY = """\
You have been assigned the task "{{task_name}}" for complaint {{complaint_id}}.
Due: {{due_date}}

Open it at {{staff_url}}.
"""

NEW_COMPLAINT_SMS = "ORCAA: new {{complaint_type}} complaint {{complaint_id}} needs triage."
ASSIGNED_SMS = "ORCAA: complaint {{complaint_id}} has been assigned to you."
STATUS_SMS = "ORCAA: complaint {{complaint_id}} is now {{status}}."
TASK_SMS = "ORCAA: task \"{{task_name}}\" for {{complaint_id}} is assigned to you."


def status_label(status: str) -> str:
    return status.replace("_", " ").title()


def local_date(value: Optional[datetime]) -> str:
    """Format a timestamp as an agency-local calendar date."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(TIMEZONE)).strftime(DATE_FORMAT)


def complaint_context(complaint: Any, **extra: Any) -> dict[str, Any]:
    """Variables available to every complaint template."""
    base = settings.PUBLIC_BASE_URL.rstrip("/")
    ctx: dict[str, Any] = {
        "complaint_id": complaint.complaint_id,
        "complaint_type": complaint.complaint_type,
        "complainant_name": complaint.complainant_name or "Complainant",
        "complainant_email": complaint.complainant_email,
        "source_name": complaint.source_name,
        "source_address": complaint.source_address,
        "status": status_label(complaint.status),
        "priority": complaint.priority,
        "submitted_date": local_date(complaint.created_at),
        "status_url": f"{base}/complaint-status/{complaint.complaint_id}",
        "staff_url": f"{base}/complaints/{complaint.id}",
    }
    ctx.update(extra)
    return ctx


def render(subject: str, body: str, context: dict[str, Any]) -> tuple[str, str]:
    return substitute_variables(subject, context), substitute_variables(body, context)
