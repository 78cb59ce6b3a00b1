"""Workflow service layer: stages, designer workflows and workflow tasks."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orcaa.common.audit import create_audit_entry
from orcaa.common.constants import (
    OPEN_TASK_STATUSES,
    AuditAction,
    ComplaintStatus,
    InspectionStatus,
    TaskStatus,
)
from orcaa.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from orcaa.common.pagination import PaginationMeta, PaginationParams, paginate
from orcaa.complaints.models import Complaint
from orcaa.complaints.service import ComplaintService
from orcaa.notifications import channels, templates
from orcaa.notifications import service as notify
from orcaa.permissions import catalog
from orcaa.permissions.service import PermissionService
from orcaa.users.models import User
from orcaa.users.service import RoleService, UserService
from orcaa.workflow.models import Workflow, WorkflowStage, WorkflowTask
from orcaa.workflow.orchestrator import (
    PlannedNotification,
    PlannedTask,
    WorkflowGraph,
    notifications_between,
    template_variables,
)
from orcaa.workflow.schemas import (
    WorkflowCreate,
    WorkflowStageCreate,
    WorkflowStageUpdate,
    WorkflowTaskUpdate,
    WorkflowUpdate,
)

logger = logging.getLogger(__name__)

_OPEN = [s.value for s in OPEN_TASK_STATUSES]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Stages
# ═════════════════════════════════════════════════════════════════════


class StageService:
    """The status table: which role works each status and what follows it."""

    @staticmethod
    async def list_stages(db: AsyncSession, include_inactive: bool = True) -> list[WorkflowStage]:
        query = select(WorkflowStage).order_by(WorkflowStage.order, WorkflowStage.name)
        if not include_inactive:
            query = query.where(WorkflowStage.is_active.is_(True))
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_stage(db: AsyncSession, stage_id: uuid.UUID) -> WorkflowStage:
        stage = await db.get(WorkflowStage, stage_id)
        if stage is None:
            raise NotFoundException("Workflow stage", stage_id)
        return stage

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[WorkflowStage]:
        result = await db.execute(select(WorkflowStage).where(WorkflowStage.name == name))
        return result.scalars().first()

    @staticmethod
    async def _check_role(db: AsyncSession, role: str) -> None:
        if role not in await RoleService.valid_role_names(db):
            raise ValidationException({"assigned_role": [f"Unknown role: {role}"]})

    @staticmethod
    async def create_stage(db: AsyncSession, body: WorkflowStageCreate) -> WorkflowStage:
        if await StageService.get_by_name(db, body.name.value) is not None:
            raise ConflictError("name", body.name.value)
        await StageService._check_role(db, body.assigned_role)
        stage = WorkflowStage(
            name=body.name.value,
            display_name=body.display_name,
            assigned_role=body.assigned_role,
            next_stage=body.next_stage.value if body.next_stage else None,
            order=body.order,
            sms_notification=body.sms_notification,
        )
        db.add(stage)
        await db.flush()
        return stage

    @staticmethod
    async def update_stage(
        db: AsyncSession, stage_id: uuid.UUID, body: WorkflowStageUpdate,
    ) -> WorkflowStage:
        stage = await StageService.get_stage(db, stage_id)
        data = body.model_dump(exclude_unset=True)
        if "next_stage" in data:
            nxt = data["next_stage"]
            data["next_stage"] = nxt.value if nxt is not None else None
            if data["next_stage"] == stage.name:
                raise ValidationException({"next_stage": ["A stage cannot follow itself."]})
        if data.get("assigned_role"):
            await StageService._check_role(db, data["assigned_role"])
        for field, value in data.items():
            setattr(stage, field, value)
        await db.flush()
        return stage

    @staticmethod
    async def next_stage(db: AsyncSession, status: str) -> Optional[WorkflowStage]:
        """The stage that follows *status*, or ``None`` at the end of the chain."""
        current = await StageService.get_by_name(db, status)
        if current is None:
            raise NotFoundException("Workflow stage", status)
        if not current.next_stage:
            return None
        return await StageService.get_by_name(db, current.next_stage)

    @staticmethod
    async def next_stage_or_none(db: AsyncSession, status: str) -> Optional[WorkflowStage]:
        current = await StageService.get_by_name(db, status)
        if current is None or not current.is_active or not current.next_stage:
            return None
        return await StageService.get_by_name(db, current.next_stage)


# ═════════════════════════════════════════════════════════════════════
# Designer workflows
# ═════════════════════════════════════════════════════════════════════


class WorkflowService:
    """CRUD for designer graphs and template selection."""

    @staticmethod
    async def list_workflows(db: AsyncSession) -> list[Workflow]:
        result = await db.execute(select(Workflow).order_by(Workflow.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def list_templates(db: AsyncSession) -> list[Workflow]:
        result = await db.execute(
            select(Workflow)
            .where(Workflow.is_template.is_(True))
            .order_by(Workflow.complaint_type, Workflow.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> Workflow:
        workflow = await db.get(Workflow, workflow_id)
        if workflow is None:
            raise NotFoundException("Workflow", workflow_id)
        return workflow

    @staticmethod
    async def create_workflow(
        db: AsyncSession, body: WorkflowCreate, *, actor_id: uuid.UUID,
    ) -> Workflow:
        graph_data = body.workflow_data.model_dump()
        WorkflowGraph.from_data(graph_data).plan()

        complaint_type = body.complaint_type.value if body.complaint_type else None
        if body.is_template:
            if complaint_type is None:
                raise ValidationException(
                    {"complaint_type": ["A template needs a complaint type."]}
                )
            await WorkflowService._clear_templates(db, complaint_type)

        workflow = Workflow(
            name=body.name,
            description=body.description,
            complaint_type=complaint_type,
            workflow_data=graph_data,
            is_template=body.is_template,
            is_active=body.is_active,
            created_by=actor_id,
        )
        db.add(workflow)
        await db.flush()
        return workflow

    @staticmethod
    async def update_workflow(
        db: AsyncSession, workflow_id: uuid.UUID, body: WorkflowUpdate,
    ) -> Workflow:
        workflow = await WorkflowService.get_workflow(db, workflow_id)
        data = body.model_dump(exclude_unset=True)
        if data.get("workflow_data") is not None:
            WorkflowGraph.from_data(data["workflow_data"]).plan()
        if "complaint_type" in data and data["complaint_type"] is not None:
            data["complaint_type"] = body.complaint_type.value
        for field, value in data.items():
            setattr(workflow, field, value)
        await db.flush()
        return workflow

    @staticmethod
    async def delete_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> None:
        workflow = await WorkflowService.get_workflow(db, workflow_id)
        await db.execute(
            update(Complaint)
            .where(Complaint.workflow_id == workflow.id)
            .values(workflow_id=None)
        )
        await db.delete(workflow)
        await db.flush()

    @staticmethod
    async def _clear_templates(db: AsyncSession, complaint_type: str) -> None:
        await db.execute(
            update(Workflow)
            .where(Workflow.complaint_type == complaint_type, Workflow.is_template.is_(True))
            .values(is_template=False)
        )

    @staticmethod
    async def set_template(
        db: AsyncSession, workflow_id: uuid.UUID, complaint_type: str,
    ) -> Workflow:
        """Make *workflow_id* the only template for *complaint_type*."""
        workflow = await WorkflowService.get_workflow(db, workflow_id)
        await WorkflowService._clear_templates(db, complaint_type)
        workflow.complaint_type = complaint_type
        workflow.is_template = True
        await db.flush()
        await db.refresh(workflow)
        return workflow

    @staticmethod
    async def assign_to_complaint(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        workflow_id: Optional[uuid.UUID],
        *,
        actor_id: uuid.UUID,
    ) -> tuple[Complaint, Workflow]:
        complaint = await db.get(Complaint, complaint_id)
        if complaint is None:
            raise NotFoundException("Complaint", complaint_id)

        if workflow_id is not None:
            workflow = await WorkflowService.get_workflow(db, workflow_id)
        else:
            workflow = await ComplaintService.template_for_type(db, complaint.complaint_type)
            if workflow is None:
                raise ValidationException(
                    {"workflow_id": [f"No active template for {complaint.complaint_type}."]}
                )

        previous = complaint.workflow_id
        complaint.workflow_id = workflow.id
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.workflow_assigned,
            complaint_id=complaint.id,
            user_id=actor_id,
            previous_value=previous,
            new_value=workflow.id,
            reason=f"Workflow '{workflow.name}' assigned",
        )
        return complaint, workflow


# ═════════════════════════════════════════════════════════════════════
# Workflow tasks
# ═════════════════════════════════════════════════════════════════════


class TaskService:
    """Task generation, assignment and the task lifecycle."""

    # ── Reads ─────────────────────────────────────────────────────────

    @staticmethod
    async def get_task(db: AsyncSession, task_id: uuid.UUID) -> WorkflowTask:
        result = await db.execute(
            select(WorkflowTask)
            .options(selectinload(WorkflowTask.assignee), selectinload(WorkflowTask.complaint))
            .where(WorkflowTask.id == task_id)
            .execution_options(populate_existing=True)
        )
        task = result.scalars().first()
        if task is None:
            raise NotFoundException("Workflow task", task_id)
        return task

    @staticmethod
    async def list_tasks(
        db: AsyncSession,
        params: PaginationParams,
        *,
        complaint_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> tuple[list[WorkflowTask], PaginationMeta]:
        query = (
            select(WorkflowTask)
            .options(selectinload(WorkflowTask.assignee))
            .order_by(WorkflowTask.created_at.desc(), WorkflowTask.sequence)
        )
        if complaint_id is not None:
            query = query.where(WorkflowTask.complaint_id == complaint_id)
        if assigned_to is not None:
            query = query.where(WorkflowTask.assigned_to == assigned_to)
        if status is not None:
            query = query.where(WorkflowTask.status == status)
        return await paginate(db, query, params, model=WorkflowTask)

    @staticmethod
    async def tasks_for_complaint(db: AsyncSession, complaint_id: uuid.UUID) -> list[WorkflowTask]:
        result = await db.execute(
            select(WorkflowTask)
            .options(selectinload(WorkflowTask.assignee))
            .where(WorkflowTask.complaint_id == complaint_id)
            .order_by(WorkflowTask.sequence)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ── Assignment ────────────────────────────────────────────────────

    @staticmethod
    async def resolve_assignee(
        db: AsyncSession,
        task_type: str,
        fallback_role: Optional[str],
    ) -> tuple[Optional[str], Optional[User]]:
        """Pick ``(role, user)`` for a task.

        task type → action id → roles holding it → first active user with one
        of them. Falls back to the node's own role.
        """
        action_id = catalog.map_task_type_to_action_id(task_type)
        roles = await PermissionService.get_roles_for_action(db, action_id) if action_id else []
        if roles:
            users = await UserService.users_with_roles(db, roles)
            if users:
                user = users[0]
                role = next((r for r in roles if user.has_role(r)), roles[0])
                return role, user
        if fallback_role:
            users = await UserService.users_with_roles(db, [fallback_role])
            return fallback_role, (users[0] if users else None)
        return (roles[0] if roles else None), None

    @staticmethod
    async def _activate(db: AsyncSession, task: WorkflowTask, complaint: Complaint) -> None:
        role, user = await TaskService.resolve_assignee(db, task.task_type, task.assigned_role)
        task.assigned_role = role if user is not None else (task.assigned_role or role)
        task.assigned_to = user.id if user else None
        task.activated_at = _now()
        await db.flush()
        if user is not None:
            await notify.notify_task_assigned(db, task, complaint, user)
        else:
            logger.warning(
                "No active user for task %s (%s) on %s",
                task.task_name, task.task_type, complaint.complaint_id,
            )

    # ── Generation ────────────────────────────────────────────────────

    @staticmethod
    async def create_tasks_for_complaint(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID],
    ) -> list[WorkflowTask]:
        """Turn the complaint's workflow graph into tasks; only the first is activated."""
        complaint = await db.get(Complaint, complaint_id)
        if complaint is None:
            raise NotFoundException("Complaint", complaint_id)
        if complaint.workflow_id is None:
            template = await ComplaintService.template_for_type(db, complaint.complaint_type)
            if template is None:
                raise ValidationException(
                    {"workflow_id": ["Complaint has no workflow and no template exists."]}
                )
            complaint.workflow_id = template.id
        if await TaskService.tasks_for_complaint(db, complaint.id):
            raise ValidationException(
                {"complaint_id": ["Workflow tasks already exist for this complaint."]}
            )

        workflow = await WorkflowService.get_workflow(db, complaint.workflow_id)
        plan = WorkflowGraph.from_data(workflow.workflow_data).plan()
        planned = [step for step in plan if isinstance(step, PlannedTask)]
        if not planned:
            raise ValidationException({"workflow_data": ["Workflow has no task nodes."]})

        today = date.today()
        tasks: list[WorkflowTask] = []
        for sequence, step in enumerate(planned, start=1):
            task = WorkflowTask(
                complaint_id=complaint.id,
                workflow_id=workflow.id,
                node_id=step.node_id,
                sequence=sequence,
                task_name=step.task_name,
                task_type=step.task_type,
                assigned_role=step.assigned_role,
                status=TaskStatus.pending.value,
                priority=step.priority or complaint.priority,
                due_date=today + timedelta(days=step.due_in_days) if step.due_in_days else None,
            )
            db.add(task)
            tasks.append(task)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.task_created,
            complaint_id=complaint.id,
            user_id=actor_id,
            new_value=[t.task_name for t in tasks],
            reason=f"{len(tasks)} task(s) created from workflow '{workflow.name}'",
        )

        await TaskService._run_notifications(db, complaint, plan, after_node=None)
        await TaskService._activate(db, tasks[0], complaint)
        return await TaskService.tasks_for_complaint(db, complaint.id)

    @staticmethod
    async def _run_notifications(
        db: AsyncSession,
        complaint: Complaint,
        plan: list,
        *,
        after_node: Optional[str],
    ) -> None:
        for step in notifications_between(plan, after_node):
            await TaskService._send_node_notification(db, complaint, step)

    @staticmethod
    async def _send_node_notification(
        db: AsyncSession, complaint: Complaint, step: PlannedNotification,
    ) -> bool:
        """Deliver one designer notification node; failures are logged."""
        config = step.config
        variables = template_variables(complaint)

        if step.channel in ("sms", "whatsapp"):
            text = channels.substitute_variables(
                config.get("messageTemplate")
                or "ORCAA Alert: Your complaint {{complaintId}} has been received. Status: {{status}}",
                variables,
            )
            send = channels.send_sms if step.channel == "sms" else channels.send_whatsapp
            return await send(complaint.complainant_phone, text)

        recipient_type = config.get("recipientType", "complainant")
        email: Optional[str] = complaint.complainant_email
        name: Optional[str] = complaint.complainant_name
        if recipient_type == "assigned_staff":
            assignee = await db.get(User, complaint.assigned_to) if complaint.assigned_to else None
            email = assignee.email if assignee else None
            name = assignee.display_name if assignee else None
        elif recipient_type == "role_based":
            roles = await PermissionService.get_roles_for_action(
                db, config.get("actionId") or "initial_inspection",
            )
            users = await UserService.users_with_roles(db, roles)
            email = users[0].email if users else None
            name = users[0].display_name if users else None
        elif recipient_type == "custom":
            email = config.get("customEmail")
            name = config.get("customName") or "Recipient"

        if not email:
            logger.info("Notification node %s skipped: no recipient", step.node_id)
            return False
        subject = channels.substitute_variables(
            config.get("emailSubject") or "ORCAA Complaint Notification - {{complaintId}}",
            variables,
        )
        body = channels.substitute_variables(
            config.get("emailTemplate")
            or "Your complaint {{complaintId}} has been received and is being processed.",
            variables,
        )
        return await channels.send_email(email, subject, body, to_name=name)

    # ── Lifecycle ─────────────────────────────────────────────────────

    @staticmethod
    async def ensure_can_act(db: AsyncSession, task: WorkflowTask, user: User) -> None:
        """Assignee, holders of the task's action, or admins."""
        if user.is_admin or task.assigned_to == user.id:
            return
        action_id = catalog.map_task_type_to_action_id(task.task_type)
        if action_id and await PermissionService.user_has_action(db, user.roles or [], action_id):
            return
        if not action_id and task.assigned_role and user.has_role(task.assigned_role):
            return
        raise ForbiddenException("You are not allowed to act on this task.")

    @staticmethod
    def _ensure_open(task: WorkflowTask, *, allow_forwarded: bool = False) -> None:
        allowed = _OPEN + [TaskStatus.forwarded.value] if allow_forwarded else _OPEN
        if task.status not in allowed:
            raise ValidationException({"status": [f"Task is already {task.status}."]})
        if task.activated_at is None:
            raise ValidationException({"status": ["Task is not active yet."]})

    @staticmethod
    async def update_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        body: WorkflowTaskUpdate,
        *,
        actor: User,
    ) -> WorkflowTask:
        """Record observations and an inspection result."""
        task = await TaskService.get_task(db, task_id)
        await TaskService.ensure_can_act(db, task, actor)
        TaskService._ensure_open(task)
        previous = {"status": task.status, "inspection_status": task.inspection_status}

        task.observations = body.observations
        task.inspection_status = body.inspection_status.value
        if body.priority is not None:
            task.priority = body.priority.value
        if body.due_date is not None:
            task.due_date = body.due_date

        if body.inspection_status == InspectionStatus.forward:
            task.status = TaskStatus.forwarded.value
            task.forward_email = str(body.forward_email)
            task.forward_reason = body.forward_reason
        elif body.inspection_status == InspectionStatus.rejected:
            task.status = TaskStatus.rejected.value
        elif body.inspection_status == InspectionStatus.approved:
            task.status = TaskStatus.completed.value
            task.completed_by = actor.id
            task.completed_at = _now()
        else:
            task.status = TaskStatus.in_progress.value
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.task_updated,
            complaint_id=task.complaint_id,
            entity_type="workflow_task",
            entity_id=task.id,
            user_id=actor.id,
            previous_value=previous,
            new_value={"status": task.status, "inspection_status": task.inspection_status},
            reason=f"Task '{task.task_name}' updated: {body.inspection_status.value}",
        )

        if task.status == TaskStatus.forwarded.value:
            ctx = templates.complaint_context(task.complaint, task_name=task.task_name)
            subject, text = templates.render(
                templates.ACTION_REQUIRED_SUBJECT, templates.ACTION_REQUIRED_BODY, ctx,
            )
            if body.forward_reason:
                text += f"\nReason: {body.forward_reason}\n"
            await channels.send_email(task.forward_email, subject, text)
        elif task.status == TaskStatus.completed.value:
            await TaskService._advance(db, task, actor)
        return await TaskService.get_task(db, task.id)

    @staticmethod
    async def complete_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        completion_notes: str,
        *,
        actor: User,
    ) -> WorkflowTask:
        task = await TaskService.get_task(db, task_id)
        await TaskService.ensure_can_act(db, task, actor)
        TaskService._ensure_open(task)
        return await TaskService._finish(
            db, task, TaskStatus.completed, actor, notes=completion_notes,
            reason=f"Task '{task.task_name}' completed",
        )

    @staticmethod
    async def approve_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        notes: Optional[str],
        *,
        actor: User,
    ) -> WorkflowTask:
        task = await TaskService.get_task(db, task_id)
        await TaskService.ensure_can_act(db, task, actor)
        TaskService._ensure_open(task, allow_forwarded=True)
        task.inspection_status = InspectionStatus.approved.value
        return await TaskService._finish(
            db, task, TaskStatus.approved, actor, notes=notes,
            reason=f"Task '{task.task_name}' approved",
        )

    @staticmethod
    async def reject_task(
        db: AsyncSession,
        task_id: uuid.UUID,
        reason: str,
        *,
        actor: User,
    ) -> WorkflowTask:
        task = await TaskService.get_task(db, task_id)
        await TaskService.ensure_can_act(db, task, actor)
        TaskService._ensure_open(task, allow_forwarded=True)
        previous = task.status
        task.status = TaskStatus.rejected.value
        task.inspection_status = InspectionStatus.rejected.value
        task.completion_notes = reason
        task.completed_by = actor.id
        task.completed_at = _now()
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.task_updated,
            complaint_id=task.complaint_id,
            entity_type="workflow_task",
            entity_id=task.id,
            user_id=actor.id,
            previous_value={"status": previous},
            new_value={"status": task.status},
            reason=f"Task '{task.task_name}' rejected: {reason}",
        )
        return await TaskService.get_task(db, task.id)

    @staticmethod
    async def _finish(
        db: AsyncSession,
        task: WorkflowTask,
        status: TaskStatus,
        actor: User,
        *,
        notes: Optional[str],
        reason: str,
    ) -> WorkflowTask:
        previous = task.status
        task.status = status.value
        if notes:
            task.completion_notes = notes
        task.completed_by = actor.id
        task.completed_at = _now()
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.task_completed,
            complaint_id=task.complaint_id,
            entity_type="workflow_task",
            entity_id=task.id,
            user_id=actor.id,
            previous_value={"status": previous},
            new_value={"status": task.status},
            reason=reason,
        )
        await TaskService._advance(db, task, actor)
        return await TaskService.get_task(db, task.id)

    @staticmethod
    async def _advance(db: AsyncSession, task: WorkflowTask, actor: User) -> None:
        """Activate the next waiting task and move the complaint one stage forward."""
        complaint = await db.get(Complaint, task.complaint_id)
        if complaint is None:
            return

        if task.workflow_id is not None and task.node_id:
            workflow = await db.get(Workflow, task.workflow_id)
            if workflow is not None:
                plan = WorkflowGraph.from_data(workflow.workflow_data).plan()
                await TaskService._run_notifications(db, complaint, plan, after_node=task.node_id)

        result = await db.execute(
            select(WorkflowTask)
            .where(
                WorkflowTask.complaint_id == task.complaint_id,
                WorkflowTask.sequence > task.sequence,
                WorkflowTask.activated_at.is_(None),
                WorkflowTask.status == TaskStatus.pending.value,
            )
            .order_by(WorkflowTask.sequence)
            .limit(1)
        )
        next_task = result.scalars().first()
        if next_task is not None:
            await TaskService._activate(db, next_task, complaint)

        following = await StageService.next_stage_or_none(db, complaint.status)
        if following is not None:
            await ComplaintService.set_status(
                db,
                complaint.id,
                ComplaintStatus(following.name),
                actor_id=actor.id,
                reason=f"Advanced by task '{task.task_name}'",
            )
