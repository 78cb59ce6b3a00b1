"""Workflow graph orchestration.

A workflow is a designer graph ``{"nodes": [...], "edges": [...]}``. Nodes are
ordered with Kahn's algorithm; the ordered nodes become a plan of workflow
tasks and notification steps. Start, end and unrecognised custom nodes
contribute nothing to the plan.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from orcaa.common.constants import Priority, TaskType
from orcaa.common.exceptions import ValidationException

logger = logging.getLogger(__name__)

GENERIC_TASK_TYPE = "TASK"
DECISION_TASK_TYPE = "DECISION"

MARKER_NODE_TYPES = frozenset({"start", "end"})

# Checked in order; "safety inspection" must win over plain "inspection"
LABEL_TASK_TYPES: tuple[tuple[str, TaskType], ...] = (
    ("initial inspection", TaskType.INITIAL_INSPECTION),
    ("safety inspection", TaskType.SAFETY_INSPECTION),
    ("reject demolition", TaskType.REJECT_DEMOLITION),
    ("inspection", TaskType.INITIAL_INSPECTION),
    ("assessment", TaskType.ASSESSMENT),
    ("enforcement", TaskType.ENFORCEMENT_ACTION),
    ("resolution", TaskType.RESOLUTION),
)

NOTIFICATION_LABELS: tuple[tuple[str, str], ...] = (
    ("email notification", "email"),
    ("sms notification", "sms"),
    ("whatsapp notification", "whatsapp"),
)


@dataclass(frozen=True)
class PlannedTask:
    node_id: str
    task_name: str
    task_type: str
    assigned_role: Optional[str] = None
    priority: Optional[str] = None
    due_in_days: Optional[int] = None


@dataclass(frozen=True)
class PlannedNotification:
    node_id: str
    channel: str
    config: dict[str, Any] = field(default_factory=dict)


PlanStep = Union[PlannedTask, PlannedNotification]


def _label(node: dict[str, Any]) -> str:
    return str((node.get("data") or {}).get("label") or node.get("type") or node["id"])


def _priority(node_id: str, value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    if not isinstance(value, str) or value not in {p.value for p in Priority}:
        allowed = ", ".join(p.value for p in Priority)
        raise ValidationException(
            {"workflow_data": [f"Node '{node_id}' priority must be one of: {allowed}."]}
        )
    return value


def _due_in_days(node_id: str, value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    raise ValidationException(
        {"workflow_data": [f"Node '{node_id}' dueInDays must be a whole number of days."]}
    )


def task_type_for_label(label: str) -> Optional[TaskType]:
    lowered = label.lower()
    for needle, task_type in LABEL_TASK_TYPES:
        if needle in lowered:
            return task_type
    return None


def notification_channel_for_label(label: str) -> Optional[str]:
    lowered = label.lower()
    for needle, channel in NOTIFICATION_LABELS:
        if needle in lowered:
            return channel
    return None


class WorkflowGraph:
    """Validated node/edge graph with a deterministic execution order."""

    def __init__(self, nodes: list[dict[str, Any]], edges: list[dict[str, Any]]) -> None:
        self.nodes: dict[str, dict[str, Any]] = {}
        errors: list[str] = []
        for node in nodes:
            node_id = node.get("id")
            if not node_id:
                errors.append("Every node needs an id.")
            elif node_id in self.nodes:
                errors.append(f"Duplicate node id '{node_id}'.")
            else:
                self.nodes[node_id] = node
        for edge in edges:
            for end in ("source", "target"):
                if edge.get(end) not in self.nodes:
                    errors.append(
                        f"Edge '{edge.get('id', '?')}' {end} '{edge.get(end)}' is not a node."
                    )
        if errors:
            raise ValidationException({"workflow_data": errors})
        self.edges = edges

    @classmethod
    def from_data(cls, workflow_data: Optional[dict[str, Any]]) -> "WorkflowGraph":
        data = workflow_data or {}
        return cls(list(data.get("nodes") or []), list(data.get("edges") or []))

    def execution_order(self) -> list[str]:
        """Kahn's algorithm. Ties keep the nodes' declaration order."""
        successors: dict[str, list[str]] = {node_id: [] for node_id in self.nodes}
        in_degree: dict[str, int] = {node_id: 0 for node_id in self.nodes}
        for edge in self.edges:
            successors[edge["source"]].append(edge["target"])
            in_degree[edge["target"]] += 1

        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for nxt in successors[current]:
                in_degree[nxt] -= 1
                if in_degree[nxt] == 0:
                    queue.append(nxt)

        if len(order) != len(self.nodes):
            raise ValidationException(
                {"workflow_data": ["Cycle detected in workflow graph; workflows must be acyclic."]}
            )
        return order

    def plan(self) -> list[PlanStep]:
        """Ordered task and notification steps."""
        steps: list[PlanStep] = []
        for node_id in self.execution_order():
            step = self._step_for(self.nodes[node_id])
            if step is not None:
                steps.append(step)
        return steps

    def _step_for(self, node: dict[str, Any]) -> Optional[PlanStep]:
        node_type = str(node.get("type") or "").lower()
        data = node.get("data") or {}
        label = _label(node)

        if node_type in MARKER_NODE_TYPES:
            return None

        channel = notification_channel_for_label(label)
        if channel is not None:
            return PlannedNotification(
                node_id=node["id"], channel=channel, config=dict(data.get("config") or {}),
            )

        labelled = task_type_for_label(label)
        explicit = data.get("taskType")
        if explicit in {t.value for t in TaskType}:
            task_type: str = explicit
        elif labelled is not None:
            task_type = labelled.value
        elif node_type == "task":
            task_type = GENERIC_TASK_TYPE
        elif node_type == "decision":
            task_type = DECISION_TASK_TYPE
        else:
            logger.debug("Skipping custom node %s (%s)", node["id"], label)
            return None

        return PlannedTask(
            node_id=node["id"],
            task_name=label,
            task_type=task_type,
            assigned_role=data.get("assignedRole") or None,
            priority=_priority(node["id"], data.get("priority")),
            due_in_days=_due_in_days(node["id"], data.get("dueInDays")),
        )


def notifications_between(
    plan: list[PlanStep],
    after_node: Optional[str],
) -> list[PlannedNotification]:
    """Notification steps following *after_node* up to the next task.

    ``after_node=None`` means the start of the plan.
    """
    started = after_node is None
    found: list[PlannedNotification] = []
    for step in plan:
        if not started:
            started = step.node_id == after_node
            continue
        if isinstance(step, PlannedTask):
            break
        found.append(step)
    return found


def template_variables(complaint: Any) -> dict[str, Any]:
    """Variables designers may use in notification node templates."""
    problem = ", ".join(complaint.problem_types or [])
    received = complaint.created_at.strftime("%m/%d/%Y") if complaint.created_at else ""
    return {
        "complaintId": complaint.complaint_id,
        "status": complaint.status,
        "priority": complaint.priority,
        "problemType": problem,
        "dateReceived": received,
        "location": complaint.source_address or "Not specified",
        "description": complaint.other_description or complaint.problem_description or "",
        "complainantName": complaint.complainant_name,
        "complainantPhone": complaint.complainant_phone or "Not provided",
        "complainantEmail": complaint.complainant_email or "Not provided",
    }
