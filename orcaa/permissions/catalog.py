"""Default role → action catalog and pure permission lookups.

The catalog is the built-in grant table. Rows in ``role_action_mappings``
override it per action once an administrator edits them (see service.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from orcaa.common.constants import TaskType, UserRole

_ALL = tuple(UserRole)


@dataclass(frozen=True)
class ActionDefinition:
    id: str
    name: str
    description: str
    category: str
    required_roles: tuple[UserRole, ...] = field(default_factory=tuple)


def _actions(category: str, *rows: tuple[str, str, str, tuple[UserRole, ...]]) -> list[ActionDefinition]:
    return [
        ActionDefinition(id=a, name=n, description=d, category=category, required_roles=r)
        for a, n, d, r in rows
    ]


ACTION_CATEGORIES: dict[str, list[ActionDefinition]] = {
    "Application Management": _actions(
        "Application Management",
        ("user_management", "User Management", "Create, edit and deactivate user accounts",
         (UserRole.admin, UserRole.supervisor)),
        ("role_management", "Role Management", "Create and edit roles and their permissions",
         (UserRole.admin,)),
        ("workflow_designer", "Workflow Designer", "Design workflows and manage templates",
         (UserRole.admin, UserRole.supervisor)),
        ("list_values", "List Values", "Maintain dropdown list values",
         (UserRole.admin,)),
    ),
    "Workflow Tasks": _actions(
        "Workflow Tasks",
        ("initial_inspection", "Initial Inspection", "Perform the first site inspection",
         (UserRole.admin,)),
        ("safety_inspection", "Safety Inspection", "Carry out safety inspections on site",
         (UserRole.field_staff,)),
        ("assessment", "Assessment", "Assess inspection findings",
         (UserRole.supervisor,)),
        ("enforcement_action", "Enforcement Action", "Issue notices and enforcement actions",
         (UserRole.admin, UserRole.supervisor)),
        ("resolution", "Resolution", "Resolve and close out complaints",
         (UserRole.approver, UserRole.field_staff)),
        ("reject_demolition", "Reject Demolition", "Reject a demolition notification",
         (UserRole.admin, UserRole.supervisor)),
    ),
    "Complaint Management": _actions(
        "Complaint Management",
        ("view_complaints", "View Complaints", "View complaint records", _ALL),
        ("create_complaints", "Create Complaints", "Enter complaints on behalf of citizens",
         (UserRole.admin, UserRole.supervisor, UserRole.field_staff)),
        ("edit_complaints", "Edit Complaints", "Edit complaint details and status",
         (UserRole.admin, UserRole.supervisor)),
        ("assign_complaints", "Assign Complaints", "Assign complaints and workflows to staff",
         (UserRole.admin, UserRole.supervisor)),
    ),
    "Time Management": _actions(
        "Time Management",
        ("timesheet_entry", "Timesheet Entry", "Record time against activities", _ALL),
        ("leave_requests", "Leave Requests", "Submit leave requests", _ALL),
        ("approve_leave", "Approve Leave", "Approve or reject leave requests",
         (UserRole.admin, UserRole.supervisor, UserRole.approver)),
        ("overtime_requests", "Overtime Requests", "Submit overtime requests", _ALL),
        ("approve_overtime", "Approve Overtime", "Approve or reject overtime requests",
         (UserRole.admin, UserRole.supervisor, UserRole.approver)),
    ),
    "Reporting": _actions(
        "Reporting",
        ("view_reports", "View Reports", "View dashboards and reports",
         (UserRole.admin, UserRole.supervisor, UserRole.approver)),
        ("export_data", "Export Data", "Export complaint data",
         (UserRole.admin, UserRole.supervisor)),
        ("audit_trail", "Audit Trail", "View the audit trail",
         (UserRole.admin, UserRole.supervisor)),
    ),
}

_BY_ID: dict[str, ActionDefinition] = {
    action.id: action
    for actions in ACTION_CATEGORIES.values()
    for action in actions
}

_TASK_TYPE_ACTIONS: dict[TaskType, str] = {
    TaskType.INITIAL_INSPECTION: "initial_inspection",
    TaskType.SAFETY_INSPECTION: "safety_inspection",
    TaskType.ASSESSMENT: "assessment",
    TaskType.ENFORCEMENT_ACTION: "enforcement_action",
    TaskType.RESOLUTION: "resolution",
    TaskType.REJECT_DEMOLITION: "reject_demolition",
}


def all_action_ids() -> list[str]:
    return list(_BY_ID)


def get_action_definition(action_id: str) -> Optional[ActionDefinition]:
    return _BY_ID.get(action_id)


def get_required_roles_for_action(action_id: str) -> list[str]:
    """Role names granted *action_id* by the default catalog (empty if unknown)."""
    action = _BY_ID.get(action_id)
    if action is None:
        return []
    return [role.value for role in action.required_roles]


def has_permission(user_roles: Iterable[str], action_id: str) -> bool:
    """True when any of *user_roles* is granted *action_id* by the catalog."""
    required = set(get_required_roles_for_action(action_id))
    return any(str(getattr(r, "value", r)) in required for r in user_roles)


def map_task_type_to_action_id(task_type: TaskType | str) -> Optional[str]:
    try:
        return _TASK_TYPE_ACTIONS[TaskType(task_type)]
    except ValueError:
        return None
