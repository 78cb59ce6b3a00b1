"""Workflow endpoints: stages, designer workflows, tasks, and complaint ↔ workflow wiring."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orcaa.auth.dependencies import get_current_user, require_action
from orcaa.common.constants import ComplaintStatus, TaskStatus
from orcaa.common.pagination import PaginationParams
from orcaa.database import get_db
from orcaa.users.models import User
from orcaa.workflow.schemas import (
    AssignWorkflowRequest,
    NextStageOut,
    SetTemplateRequest,
    TaskApproveRequest,
    TaskCompleteRequest,
    TaskRejectRequest,
    WorkflowAssignmentOut,
    WorkflowCreate,
    WorkflowOut,
    WorkflowStageCreate,
    WorkflowStageOut,
    WorkflowStageUpdate,
    WorkflowTaskListResponse,
    WorkflowTaskOut,
    WorkflowTaskUpdate,
    WorkflowUpdate,
)
from orcaa.workflow.service import StageService, TaskService, WorkflowService

stages_router = APIRouter(prefix="", tags=["workflow"])
workflows_router = APIRouter(prefix="", tags=["workflow"])
tasks_router = APIRouter(prefix="", tags=["workflow-tasks"])
complaint_workflow_router = APIRouter(prefix="", tags=["workflow"])

_designer = require_action("workflow_designer")


# ── /api/workflow-stages ────────────────────────────────────────────

@stages_router.get("", response_model=list[WorkflowStageOut])
async def list_stages(
    include_inactive: bool = Query(True),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await StageService.list_stages(db, include_inactive=include_inactive)


@stages_router.get("/next/{status}", response_model=NextStageOut)
async def next_stage(
    status: ComplaintStatus,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The stage that follows *status* (``null`` at the end of the chain)."""
    stage = await StageService.next_stage(db, status.value)
    return NextStageOut(
        current=status.value,
        next_stage=stage.name if stage else None,
        stage=WorkflowStageOut.model_validate(stage) if stage else None,
    )


@stages_router.post("", response_model=WorkflowStageOut, status_code=201)
async def create_stage(
    body: WorkflowStageCreate,
    user: User = Depends(_designer),
    db: AsyncSession = Depends(get_db),
):
    return await StageService.create_stage(db, body)


@stages_router.put("/{stage_id}", response_model=WorkflowStageOut)
async def update_stage(
    stage_id: uuid.UUID,
    body: WorkflowStageUpdate,
    user: User = Depends(_designer),
    db: AsyncSession = Depends(get_db),
):
    return await StageService.update_stage(db, stage_id, body)


# ── /api/workflows ──────────────────────────────────────────────────

@workflows_router.get("", response_model=list[WorkflowOut])
async def list_workflows(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService.list_workflows(db)


@workflows_router.get("/templates", response_model=list[WorkflowOut])
async def list_templates(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService.list_templates(db)


@workflows_router.get("/{workflow_id}", response_model=WorkflowOut)
async def get_workflow(
    workflow_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService.get_workflow(db, workflow_id)


@workflows_router.post("", response_model=WorkflowOut, status_code=201)
async def create_workflow(
    body: WorkflowCreate,
    user: User = Depends(_designer),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService.create_workflow(db, body, actor_id=user.id)


@workflows_router.put("/{workflow_id}", response_model=WorkflowOut)
async def update_workflow(
    workflow_id: uuid.UUID,
    body: WorkflowUpdate,
    user: User = Depends(_designer),
    db: AsyncSession = Depends(get_db),
):
    return await WorkflowService.update_workflow(db, workflow_id, body)


@workflows_router.delete("/{workflow_id}", status_code=204)
async def delete_workflow(
    workflow_id: uuid.UUID,
    user: User = Depends(_designer),
    db: AsyncSession = Depends(get_db),
):
    await WorkflowService.delete_workflow(db, workflow_id)


@workflows_router.post("/{workflow_id}/set-template", response_model=WorkflowOut)
async def set_template(
    workflow_id: uuid.UUID,
    body: SetTemplateRequest,
    user: User = Depends(_designer),
    db: AsyncSession = Depends(get_db),
):
    """Make this workflow the single template for ``complaint_type``."""
    return await WorkflowService.set_template(db, workflow_id, body.complaint_type.value)


# ── /api/workflow-tasks ─────────────────────────────────────────────

@tasks_router.get("", response_model=WorkflowTaskListResponse)
async def list_tasks(
    complaint_id: Optional[uuid.UUID] = Query(None),
    assigned_to: Optional[uuid.UUID] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    mine: bool = Query(False, description="Only tasks assigned to the caller"),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await TaskService.list_tasks(
        db,
        pagination,
        complaint_id=complaint_id,
        assigned_to=user.id if mine else assigned_to,
        status=status.value if status else None,
    )
    return WorkflowTaskListResponse(
        data=[WorkflowTaskOut.model_validate(t) for t in rows], meta=meta,
    )


@tasks_router.get("/{task_id}", response_model=WorkflowTaskOut)
async def get_task(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TaskService.get_task(db, task_id)


@tasks_router.put("/{task_id}", response_model=WorkflowTaskOut)
async def update_task(
    task_id: uuid.UUID,
    body: WorkflowTaskUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record observations and an inspection result (approve / reject / forward)."""
    return await TaskService.update_task(db, task_id, body, actor=user)


@tasks_router.post("/{task_id}/complete", response_model=WorkflowTaskOut)
async def complete_task(
    task_id: uuid.UUID,
    body: TaskCompleteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TaskService.complete_task(db, task_id, body.completion_notes, actor=user)


@tasks_router.post("/{task_id}/approve", response_model=WorkflowTaskOut)
async def approve_task(
    task_id: uuid.UUID,
    body: TaskApproveRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TaskService.approve_task(db, task_id, body.notes, actor=user)


@tasks_router.post("/{task_id}/reject", response_model=WorkflowTaskOut)
async def reject_task(
    task_id: uuid.UUID,
    body: TaskRejectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TaskService.reject_task(db, task_id, body.reason, actor=user)


# ── /api/complaints/{id}/... ────────────────────────────────────────

@complaint_workflow_router.post(
    "/{complaint_id}/assign-workflow", response_model=WorkflowAssignmentOut,
)
async def assign_workflow(
    complaint_id: uuid.UUID,
    body: AssignWorkflowRequest,
    user: User = Depends(require_action("assign_complaints")),
    db: AsyncSession = Depends(get_db),
):
    complaint, workflow = await WorkflowService.assign_to_complaint(
        db, complaint_id, body.workflow_id, actor_id=user.id,
    )
    return WorkflowAssignmentOut(
        complaint_id=complaint.id, workflow_id=workflow.id, workflow_name=workflow.name,
    )


@complaint_workflow_router.post(
    "/{complaint_id}/create-workflow-tasks",
    response_model=list[WorkflowTaskOut],
    status_code=201,
)
async def create_workflow_tasks(
    complaint_id: uuid.UUID,
    user: User = Depends(require_action("assign_complaints")),
    db: AsyncSession = Depends(get_db),
):
    """Generate tasks from the complaint's workflow; the first one is activated."""
    return await TaskService.create_tasks_for_complaint(db, complaint_id, actor_id=user.id)


@complaint_workflow_router.get(
    "/{complaint_id}/workflow-tasks", response_model=list[WorkflowTaskOut],
)
async def complaint_tasks(
    complaint_id: uuid.UUID,
    user: User = Depends(require_action("view_complaints")),
    db: AsyncSession = Depends(get_db),
):
    return await TaskService.tasks_for_complaint(db, complaint_id)
