"""Common module: shared utilities for the ORCAA service."""

from orcaa.common.audit import AuditTrail, create_audit_entry, snapshot
from orcaa.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TIMEZONE,
    AuditAction,
    ComplaintStatus,
    ComplaintType,
    InspectionStatus,
    NotificationType,
    Priority,
    RequestStatus,
    TaskStatus,
    TaskType,
    UserRole,
)
from orcaa.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from orcaa.common.filters import apply_filters, apply_search
from orcaa.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "snapshot",
    # Constants / Enums
    "AuditAction",
    "ComplaintStatus",
    "ComplaintType",
    "InspectionStatus",
    "NotificationType",
    "Priority",
    "RequestStatus",
    "TaskStatus",
    "TaskType",
    "UserRole",
    "DATE_FORMAT",
    "TIMEZONE",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
