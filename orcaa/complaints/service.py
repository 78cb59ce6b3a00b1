"""Complaint service layer: intake, case handling, reporting."""

from __future__ import annotations

import calendar
import logging
import os
import uuid
from collections import Counter
from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import UploadFile
from sqlalchemy import String, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orcaa.common.audit import create_audit_entry, snapshot
from orcaa.common.constants import (
    ALLOWED_ATTACHMENT_TYPES,
    COMPLAINT_ID_PREFIX,
    COUNTIES,
    DEMOLITION_PROBLEM_TYPE,
    IN_PROGRESS_STATUSES,
    PROBLEM_TYPES,
    RESOLVED_STATUSES,
    AuditAction,
    ComplaintStatus,
    ComplaintType,
    Priority,
)
from orcaa.common.exceptions import NotFoundException, ValidationException
from orcaa.common.filters import apply_filters, apply_search
from orcaa.common.pagination import PaginationMeta, PaginationParams, paginate
from orcaa.complaints.models import Attachment, Complaint, WorkDescription
from orcaa.complaints.schemas import (
    AirQualityComplaintCreate,
    ComplaintAnalytics,
    ComplaintFilterOptions,
    ComplaintStatistics,
    ComplaintUpdate,
    DemolitionNoticeCreate,
    FilterOption,
    MonthlyCount,
    WorkDescriptionCreate,
)
from orcaa.config import settings
from orcaa.notifications import service as notify
from orcaa.notifications import templates
from orcaa.notifications.channels import substitute_variables
from orcaa.users.models import User
from orcaa.users.schemas import UserBrief
from orcaa.users.service import UserService
from orcaa.workflow.models import Workflow, WorkflowStage

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ("complaint_id", "source_name", "complainant_email", "source_address")

_DETAIL_OPTIONS = (
    selectinload(Complaint.attachments),
    selectinload(Complaint.work_descriptions),
    selectinload(Complaint.assignee),
)


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


def _check_merged(complaint: Complaint, data: dict[str, Any]) -> None:
    """Intake form rules applied to the stored complaint with *data* laid over it."""
    merged = {field: data.get(field, getattr(complaint, field)) for field in (
        "problem_types", "other_description", "project_start_date", "project_completion_date",
    )}
    errors: dict[str, list[str]] = {}
    start, end = merged["project_start_date"], merged["project_completion_date"]
    if start is not None and end is not None and end < start:
        errors["project_completion_date"] = ["Completion date must not precede the start date."]
    if "other" in (merged["problem_types"] or []) and not (merged["other_description"] or "").strip():
        errors["other_description"] = ["Required when problem type 'other' is selected."]
    if errors:
        raise ValidationException(errors)


class ComplaintService:
    """Business logic for complaints."""

    # ── Intake ────────────────────────────────────────────────────────

    @staticmethod
    async def generate_complaint_id(db: AsyncSession, complaint_type: ComplaintType) -> str:
        """Next ``PREFIX-YYYY-NNN`` identifier for *complaint_type* in the current year."""
        prefix = f"{COMPLAINT_ID_PREFIX[complaint_type]}-{datetime.now(timezone.utc).year}-"
        result = await db.execute(
            select(Complaint.complaint_id).where(Complaint.complaint_id.like(f"{prefix}%"))
        )
        highest = 0
        for (existing,) in result.all():
            suffix = existing.removeprefix(prefix)
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:03d}"

    @staticmethod
    async def create_air_quality(
        db: AsyncSession,
        body: AirQualityComplaintCreate,
        *,
        ip_address: Optional[str] = None,
    ) -> Complaint:
        data = body.model_dump()
        data["complainant_email"] = str(data["complainant_email"])
        if body.is_anonymous:
            data["complainant_first_name"] = None
            data["complainant_last_name"] = None
        complaint = Complaint(complaint_type=ComplaintType.AIR_QUALITY.value, **data)
        return await ComplaintService._submit(db, complaint, ip_address)

    @staticmethod
    async def create_demolition(
        db: AsyncSession,
        body: DemolitionNoticeCreate,
        *,
        ip_address: Optional[str] = None,
    ) -> Complaint:
        data = body.model_dump()
        owner_email = str(data.pop("property_owner_email"))
        first, _, last = body.property_owner_name.strip().partition(" ")
        complaint = Complaint(
            complaint_type=ComplaintType.DEMOLITION_NOTICE.value,
            problem_types=[DEMOLITION_PROBLEM_TYPE],
            property_owner_email=owner_email,
            # The property owner files the notice
            complainant_first_name=first,
            complainant_last_name=last or None,
            complainant_email=owner_email,
            complainant_phone=body.property_owner_phone,
            complainant_address=body.property_owner_address,
            source_address=body.work_site_address,
            source_city=body.work_site_city,
            **data,
        )
        return await ComplaintService._submit(db, complaint, ip_address)

    @staticmethod
    async def _submit(
        db: AsyncSession,
        complaint: Complaint,
        ip_address: Optional[str],
    ) -> Complaint:
        complaint_type = ComplaintType(complaint.complaint_type)
        complaint.complaint_id = await ComplaintService.generate_complaint_id(db, complaint_type)
        complaint.status = ComplaintStatus.initiated.value
        complaint.priority = Priority.normal.value

        template = await ComplaintService.template_for_type(db, complaint_type)
        complaint.workflow_id = template.id if template else None

        db.add(complaint)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.created,
            complaint_id=complaint.id,
            new_value=snapshot(complaint),
            reason="Initial complaint submission",
            ip_address=ip_address,
        )
        logger.info("Complaint %s submitted", complaint.complaint_id)

        await notify.notify_complaint_received(complaint)
        await ComplaintService._alert_initial_stage(db, complaint)
        return await ComplaintService.get_complaint(db, complaint.id)

    @staticmethod
    async def template_for_type(
        db: AsyncSession, complaint_type: ComplaintType | str,
    ) -> Optional[Workflow]:
        result = await db.execute(
            select(Workflow).where(
                Workflow.complaint_type == _value(complaint_type),
                Workflow.is_template.is_(True),
                Workflow.is_active.is_(True),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _alert_initial_stage(db: AsyncSession, complaint: Complaint) -> None:
        """SMS the holders of the ``initiated`` stage role when that stage has SMS on."""
        result = await db.execute(
            select(WorkflowStage).where(WorkflowStage.name == ComplaintStatus.initiated.value)
        )
        stage = result.scalars().first()
        if stage is None or not stage.sms_notification:
            return
        message = substitute_variables(
            templates.NEW_COMPLAINT_SMS, templates.complaint_context(complaint),
        )
        for user in await UserService.users_with_roles(db, [stage.assigned_role]):
            await notify.alert_user(user, message)

    # ── Attachments ───────────────────────────────────────────────────

    @staticmethod
    async def save_attachment(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        file: UploadFile,
    ) -> Attachment:
        complaint = await db.get(Complaint, complaint_id)
        if complaint is None:
            raise NotFoundException("Complaint", complaint_id)

        if file.content_type not in ALLOWED_ATTACHMENT_TYPES:
            raise ValidationException(
                {"file": [f"File type '{file.content_type}' is not allowed."]}
            )
        contents = await file.read()
        if len(contents) > settings.max_upload_bytes:
            raise ValidationException(
                {"file": [f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB} MB."]}
            )

        os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
        # UUID-only stored name; the original name is kept in the row
        ext = os.path.splitext(file.filename or "")[1].lower()
        stored_name = f"{uuid.uuid4().hex}{ext}"
        with open(os.path.join(settings.UPLOAD_DIR, stored_name), "wb") as fh:
            fh.write(contents)

        attachment = Attachment(
            complaint_id=complaint.id,
            filename=stored_name,
            original_name=os.path.basename(file.filename or stored_name),
            mime_type=file.content_type,
            size=len(contents),
            url=f"/uploads/{stored_name}",
        )
        db.add(attachment)
        await db.flush()
        return attachment

    # ── Reads ─────────────────────────────────────────────────────────

    @staticmethod
    async def get_complaint(db: AsyncSession, complaint_id: uuid.UUID) -> Complaint:
        result = await db.execute(
            select(Complaint)
            .options(*_DETAIL_OPTIONS)
            .where(Complaint.id == complaint_id)
            .execution_options(populate_existing=True)
        )
        complaint = result.scalars().first()
        if complaint is None:
            raise NotFoundException("Complaint", complaint_id)
        return complaint

    @staticmethod
    async def get_by_tracking_number(db: AsyncSession, tracking_number: str) -> Complaint:
        result = await db.execute(
            select(Complaint).where(Complaint.complaint_id == tracking_number.strip().upper())
        )
        complaint = result.scalars().first()
        if complaint is None:
            raise NotFoundException("Complaint", tracking_number)
        return complaint

    @staticmethod
    async def list_complaints(
        db: AsyncSession,
        params: PaginationParams,
        *,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        complaint_type: Optional[str] = None,
        problem_type: Optional[str] = None,
        assigned_to: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
    ) -> tuple[list[Complaint], PaginationMeta]:
        """Filtered complaint list, newest first."""
        query = select(Complaint).order_by(Complaint.created_at.desc())
        query = apply_filters(query, Complaint, {
            "status": status,
            "priority": priority,
            "complaint_type": complaint_type,
            "assigned_to": assigned_to,
            "created_at__from": (
                datetime.combine(date_from, datetime.min.time(), tzinfo=timezone.utc)
                if date_from else None
            ),
            "created_at__to": (
                datetime.combine(date_to, datetime.max.time(), tzinfo=timezone.utc)
                if date_to else None
            ),
        })
        if problem_type:
            # JSON list rendered as text matches on both PostgreSQL and SQLite
            query = query.where(cast(Complaint.problem_types, String).like(f'%"{problem_type}"%'))
        query = apply_search(query, Complaint, search, SEARCH_COLUMNS)
        return await paginate(db, query, params, model=Complaint)

    @staticmethod
    async def valid_complaint_ids(db: AsyncSession) -> list[str]:
        result = await db.execute(
            select(Complaint.complaint_id).order_by(Complaint.created_at.desc())
        )
        return [row[0] for row in result.all()]

    # ── Writes ────────────────────────────────────────────────────────

    @staticmethod
    async def update_complaint(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        body: ComplaintUpdate,
        *,
        actor_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> Complaint:
        complaint = await ComplaintService.get_complaint(db, complaint_id)
        before = snapshot(complaint)
        data = body.model_dump(exclude_unset=True)
        _check_merged(complaint, data)

        changed: list[str] = []
        for field, value in data.items():
            value = _value(value)
            if field == "complainant_email" and value is not None:
                value = str(value)
            if getattr(complaint, field) != value:
                setattr(complaint, field, value)
                changed.append(field)

        if not changed:
            return complaint

        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.updated,
            complaint_id=complaint.id,
            user_id=actor_id,
            previous_value=before,
            new_value=snapshot(complaint),
            reason=f"Updated fields: {', '.join(changed)}",
            ip_address=ip_address,
        )
        return await ComplaintService.get_complaint(db, complaint.id)

    @staticmethod
    async def set_status(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        status: ComplaintStatus,
        *,
        actor_id: Optional[uuid.UUID],
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        send_notifications: bool = True,
    ) -> Complaint:
        """Write a new status directly. Any known status is accepted."""
        complaint = await ComplaintService.get_complaint(db, complaint_id)
        previous = complaint.status
        complaint.status = status.value
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.status_changed,
            complaint_id=complaint.id,
            user_id=actor_id,
            previous_value=previous,
            new_value=status.value,
            reason=reason or f"Status changed from {previous} to {status.value}",
            ip_address=ip_address,
        )
        if status == ComplaintStatus.closed:
            await create_audit_entry(
                db,
                action=AuditAction.closed,
                complaint_id=complaint.id,
                user_id=actor_id,
                previous_value=previous,
                new_value=status.value,
                reason=reason or "Complaint closed",
                ip_address=ip_address,
            )
        logger.info("Complaint %s: %s -> %s", complaint.complaint_id, previous, status.value)

        if send_notifications:
            await notify.notify_status_change(complaint, complaint.assignee)
        return await ComplaintService.get_complaint(db, complaint.id)

    @staticmethod
    async def assign(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        assignee_id: Optional[uuid.UUID],
        *,
        actor_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> Complaint:
        complaint = await ComplaintService.get_complaint(db, complaint_id)
        assignee: Optional[User] = None
        if assignee_id is not None:
            assignee = await UserService.get_user(db, assignee_id)
            if not assignee.is_active:
                raise ValidationException({"assigned_to": ["User is inactive."]})

        previous = complaint.assigned_to
        complaint.assigned_to = assignee_id
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.assigned,
            complaint_id=complaint.id,
            user_id=actor_id,
            previous_value=previous,
            new_value=assignee_id,
            reason=(
                f"Complaint assigned to {assignee.display_name}" if assignee
                else "Assignment cleared"
            ),
            ip_address=ip_address,
        )
        if assignee is not None:
            await notify.notify_complaint_assigned(db, complaint, assignee)
        return await ComplaintService.get_complaint(db, complaint.id)

    # ── Work descriptions ─────────────────────────────────────────────

    @staticmethod
    async def add_work_description(
        db: AsyncSession,
        complaint_id: uuid.UUID,
        body: WorkDescriptionCreate,
        *,
        actor_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> WorkDescription:
        complaint = await db.get(Complaint, complaint_id)
        if complaint is None:
            raise NotFoundException("Complaint", complaint_id)

        entry = WorkDescription(
            complaint_id=complaint.id,
            description=body.description,
            user_id=actor_id,
            status=_value(body.status),
        )
        db.add(entry)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.work_description_added,
            complaint_id=complaint.id,
            user_id=actor_id,
            new_value=body.description,
            reason="Work description added",
            ip_address=ip_address,
        )
        return entry

    @staticmethod
    async def list_work_descriptions(
        db: AsyncSession, complaint_id: uuid.UUID,
    ) -> list[WorkDescription]:
        if await db.get(Complaint, complaint_id) is None:
            raise NotFoundException("Complaint", complaint_id)
        result = await db.execute(
            select(WorkDescription)
            .where(WorkDescription.complaint_id == complaint_id)
            .order_by(WorkDescription.created_at.desc())
        )
        return list(result.scalars().all())

    # ── Reporting ─────────────────────────────────────────────────────

    @staticmethod
    async def statistics(db: AsyncSession) -> ComplaintStatistics:
        async def _count(*conditions) -> int:
            q = select(func.count()).select_from(Complaint)
            if conditions:
                q = q.where(*conditions)
            return (await db.execute(q)).scalar_one()

        return ComplaintStatistics(
            total=await _count(),
            in_progress=await _count(
                Complaint.status.in_([s.value for s in IN_PROGRESS_STATUSES])
            ),
            resolved=await _count(Complaint.status.in_([s.value for s in RESOLVED_STATUSES])),
            urgent=await _count(Complaint.priority == Priority.urgent.value),
        )

    @staticmethod
    async def analytics(db: AsyncSession, today: Optional[date] = None) -> ComplaintAnalytics:
        """Breakdowns by status, type, priority, problem type and month."""
        today = today or datetime.now(timezone.utc).date()
        result = await db.execute(
            select(
                Complaint.status,
                Complaint.complaint_type,
                Complaint.priority,
                Complaint.problem_types,
                Complaint.created_at,
            )
        )
        rows = result.all()

        by_status: Counter[str] = Counter({s.value: 0 for s in ComplaintStatus})
        by_type: Counter[str] = Counter({t.value: 0 for t in ComplaintType})
        by_priority: Counter[str] = Counter({p.value: 0 for p in Priority})
        by_problem: Counter[str] = Counter()
        months: dict[tuple[int, int], list[str]] = {}
        for status, ctype, priority, problem_types, created_at in rows:
            by_status[status] += 1
            by_type[ctype] += 1
            by_priority[priority] += 1
            by_problem.update(problem_types or [])
            months.setdefault((created_at.year, created_at.month), []).append(status)

        def _month(year: int, month: int, label: str) -> MonthlyCount:
            statuses = months.get((year, month), [])
            return MonthlyCount(
                month=label,
                total=len(statuses),
                in_progress=sum(s in {x.value for x in IN_PROGRESS_STATUSES} for s in statuses),
                resolved=sum(s in {x.value for x in RESOLVED_STATUSES} for s in statuses),
            )

        monthly = [
            _month(today.year, m, calendar.month_name[m]) for m in range(1, today.month + 1)
        ]
        last_12: list[MonthlyCount] = []
        for offset in range(11, -1, -1):
            index = today.year * 12 + (today.month - 1) - offset
            year, month = divmod(index, 12)
            last_12.append(_month(year, month + 1, f"{calendar.month_abbr[month + 1]} {year}"))

        return ComplaintAnalytics(
            by_status=dict(by_status),
            by_type=dict(by_type),
            by_priority=dict(by_priority),
            by_problem_type=dict(by_problem),
            monthly=monthly,
            last_12_months=last_12,
        )

    @staticmethod
    async def filter_options(db: AsyncSession) -> ComplaintFilterOptions:
        def _options(items) -> list[FilterOption]:
            return [FilterOption(value=v, label=label) for v, label in items]

        def _label(value: str) -> str:
            return value.replace("_", " ").title()

        result = await db.execute(
            select(User)
            .where(User.is_active.is_(True))
            .order_by(User.last_name, User.first_name, User.email)
        )
        return ComplaintFilterOptions(
            statuses=_options((s.value, _label(s.value)) for s in ComplaintStatus),
            priorities=_options((p.value, _label(p.value)) for p in Priority),
            complaint_types=_options((t.value, _label(t.value)) for t in ComplaintType),
            problem_types=_options(
                list(PROBLEM_TYPES.items()) + [(DEMOLITION_PROBLEM_TYPE, "Demolition")]
            ),
            counties=_options(COUNTIES.items()),
            assignees=[UserBrief.model_validate(u) for u in result.scalars().all()],
        )
