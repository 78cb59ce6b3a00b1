"""Workflow stage, definition and task schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from orcaa.common.constants import ComplaintStatus, ComplaintType, InspectionStatus, Priority, TaskStatus
from orcaa.common.pagination import PaginationMeta
from orcaa.users.schemas import UserBrief


# ═════════════════════════════════════════════════════════════════════
# Stages
# ═════════════════════════════════════════════════════════════════════


class WorkflowStageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    display_name: str
    assigned_role: str
    next_stage: Optional[str] = None
    order: int
    sms_notification: bool
    is_active: bool


class WorkflowStageCreate(BaseModel):
    name: ComplaintStatus
    display_name: str = Field(..., min_length=1, max_length=100)
    assigned_role: str = Field(..., min_length=1, max_length=50)
    next_stage: Optional[ComplaintStatus] = None
    order: int = Field(0, ge=0)
    sms_notification: bool = False

    @model_validator(mode="after")
    def check_next_stage(self) -> "WorkflowStageCreate":
        if self.next_stage is not None and self.next_stage == self.name:
            raise ValueError("next_stage cannot be the stage itself")
        return self


class WorkflowStageUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    assigned_role: Optional[str] = Field(None, min_length=1, max_length=50)
    next_stage: Optional[ComplaintStatus] = None
    order: Optional[int] = Field(None, ge=0)
    sms_notification: Optional[bool] = None
    is_active: Optional[bool] = None


class NextStageOut(BaseModel):
    current: str
    next_stage: Optional[str] = None
    stage: Optional[WorkflowStageOut] = None


# ═════════════════════════════════════════════════════════════════════
# Workflow definitions
# ═════════════════════════════════════════════════════════════════════


class WorkflowGraphData(BaseModel):
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)


class WorkflowCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    complaint_type: Optional[ComplaintType] = None
    workflow_data: WorkflowGraphData = Field(default_factory=WorkflowGraphData)
    is_template: bool = False
    is_active: bool = True


class WorkflowUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    complaint_type: Optional[ComplaintType] = None
    workflow_data: Optional[WorkflowGraphData] = None
    is_active: Optional[bool] = None


class SetTemplateRequest(BaseModel):
    complaint_type: ComplaintType


class WorkflowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    complaint_type: Optional[str] = None
    workflow_data: dict[str, Any]
    is_template: bool
    is_active: bool
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class AssignWorkflowRequest(BaseModel):
    """``workflow_id=None`` picks the active template for the complaint's type."""

    workflow_id: Optional[uuid.UUID] = None


class WorkflowAssignmentOut(BaseModel):
    complaint_id: uuid.UUID
    workflow_id: uuid.UUID
    workflow_name: str


# ═════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════


class WorkflowTaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    complaint_id: uuid.UUID
    workflow_id: Optional[uuid.UUID] = None
    node_id: Optional[str] = None
    sequence: int
    task_name: str
    task_type: str
    assigned_role: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    assignee: Optional[UserBrief] = None
    status: TaskStatus
    priority: Priority
    due_date: Optional[date] = None
    activated_at: Optional[datetime] = None
    is_active: bool
    observations: Optional[str] = None
    inspection_status: Optional[InspectionStatus] = None
    forward_email: Optional[str] = None
    forward_reason: Optional[str] = None
    completion_notes: Optional[str] = None
    completed_by: Optional[uuid.UUID] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class WorkflowTaskListResponse(BaseModel):
    data: list[WorkflowTaskOut]
    meta: PaginationMeta


class WorkflowTaskUpdate(BaseModel):
    """Inspection result recorded against a task."""

    observations: str = Field(..., min_length=1)
    inspection_status: InspectionStatus
    forward_email: Optional[EmailStr] = None
    forward_reason: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None

    @field_validator("observations")
    @classmethod
    def strip_observations(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Observations are required")
        return v.strip()

    @model_validator(mode="after")
    def check_forward(self) -> "WorkflowTaskUpdate":
        if self.inspection_status == InspectionStatus.forward and not self.forward_email:
            raise ValueError("forward_email is required when inspection status is 'forward'")
        return self


class TaskCompleteRequest(BaseModel):
    completion_notes: str = Field(..., min_length=1)


class TaskApproveRequest(BaseModel):
    notes: Optional[str] = None


class TaskRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)
