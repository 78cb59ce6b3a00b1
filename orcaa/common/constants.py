"""Enums and constants for the ORCAA complaint system."""

from __future__ import annotations

import enum


# ── Complaints ──────────────────────────────────────────────────────

class ComplaintType(str, enum.Enum):
    AIR_QUALITY = "AIR_QUALITY"
    DEMOLITION_NOTICE = "DEMOLITION_NOTICE"


class ComplaintStatus(str, enum.Enum):
    initiated = "initiated"
    inspection = "inspection"
    work_in_progress = "work_in_progress"
    work_completed = "work_completed"
    reviewed = "reviewed"
    approved = "approved"
    closed = "closed"


class Priority(str, enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


# Complaint id prefix per type: AQ-2025-001, DN-2025-001
COMPLAINT_ID_PREFIX: dict[ComplaintType, str] = {
    ComplaintType.AIR_QUALITY: "AQ",
    ComplaintType.DEMOLITION_NOTICE: "DN",
}

# Grouping used by the dashboard statistics
IN_PROGRESS_STATUSES = (
    ComplaintStatus.initiated,
    ComplaintStatus.inspection,
    ComplaintStatus.work_in_progress,
)
RESOLVED_STATUSES = (ComplaintStatus.closed, ComplaintStatus.approved)

PROBLEM_TYPES: dict[str, str] = {
    "smoke": "Smoke",
    "industrial": "Industrial",
    "odor": "Odor",
    "outdoor_burning": "Outdoor Burning",
    "dust": "Dust",
    "wood_stove": "Wood Stove",
    "asbestos_demo": "Asbestos/Demo",
    "marijuana": "Marijuana",
    "other": "Other",
}
DEMOLITION_PROBLEM_TYPE = "demolition"

COUNTIES: dict[str, str] = {
    "clallam": "Clallam County",
    "grays_harbor": "Grays Harbor County",
    "jefferson": "Jefferson County",
    "mason": "Mason County",
    "pacific": "Pacific County",
    "thurston": "Thurston County",
}

ALLOWED_ATTACHMENT_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    field_staff = "field_staff"
    contract_staff = "contract_staff"
    supervisor = "supervisor"
    approver = "approver"
    admin = "admin"


ALL_ROLES: list[UserRole] = list(UserRole)

# Roles that see other people's pending leave / overtime in the inbox
APPROVER_ROLES = frozenset({UserRole.admin, UserRole.supervisor, UserRole.approver})


# ── Workflow ────────────────────────────────────────────────────────

class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    approved = "approved"
    rejected = "rejected"
    forwarded = "forwarded"


class InspectionStatus(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"
    pending = "pending"
    forward = "forward"


class TaskType(str, enum.Enum):
    INITIAL_INSPECTION = "INITIAL_INSPECTION"
    SAFETY_INSPECTION = "SAFETY_INSPECTION"
    ASSESSMENT = "ASSESSMENT"
    ENFORCEMENT_ACTION = "ENFORCEMENT_ACTION"
    RESOLUTION = "RESOLUTION"
    REJECT_DEMOLITION = "REJECT_DEMOLITION"


OPEN_TASK_STATUSES = (TaskStatus.pending, TaskStatus.in_progress)


# ── Leave / Overtime ────────────────────────────────────────────────

class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    forwarded = "forwarded"


LEAVE_TYPES: list[str] = [
    "Annual",
    "Sick",
    "Personal",
    "Emergency",
    "Bereavement",
    "Maternity",
    "Paternity",
    "Study Leave",
]

TIMESHEET_ACTIVITY_LIST = "TIMESHEET_ACTIVITY"


# ── Audit ───────────────────────────────────────────────────────────

class AuditAction(str, enum.Enum):
    created = "created"
    status_changed = "status_changed"
    assigned = "assigned"
    updated = "updated"
    work_description_added = "work_description_added"
    closed = "closed"
    workflow_assigned = "workflow_assigned"
    task_created = "task_created"
    task_updated = "task_updated"
    task_completed = "task_completed"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    reminder = "reminder"
    alert = "alert"


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%m/%d/%Y"
TIMEZONE = "America/Los_Angeles"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50


# ── Seed defaults ───────────────────────────────────────────────────

DEFAULT_ROLES: list[tuple[str, str, str]] = [
    ("field_staff", "Field Staff", "Inspectors working complaints on site"),
    ("contract_staff", "Contract Staff", "Contractors with limited access"),
    ("supervisor", "Supervisor", "Triages complaints and reviews work"),
    ("approver", "Approver", "Approves completed work and time requests"),
    ("admin", "Administrator", "Full access to every module"),
]

# (name, display name, assigned role, next stage, order, sms)
DEFAULT_WORKFLOW_STAGES: list[tuple[str, str, str, str | None, int, bool]] = [
    ("initiated", "Initiated", "supervisor", "inspection", 1, True),
    ("inspection", "Inspection", "field_staff", "work_in_progress", 2, False),
    ("work_in_progress", "Work In Progress", "field_staff", "work_completed", 3, False),
    ("work_completed", "Work Completed", "supervisor", "reviewed", 4, False),
    ("reviewed", "Reviewed", "approver", "approved", 5, False),
    ("approved", "Approved", "admin", "closed", 6, False),
    ("closed", "Closed", "admin", None, 7, False),
]

DEFAULT_TIMESHEET_ACTIVITIES: list[tuple[str, str]] = [
    ("COMPLAINT_INSPECTION", "Complaint Inspection"),
    ("OFFICE_WORK", "Office Work"),
    ("TRAINING", "Training"),
    ("TRAVEL", "Travel"),
    ("MEETING", "Meeting"),
    ("OTHER", "Other"),
]
