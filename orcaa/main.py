"""ORCAA Complaints: FastAPI Application Factory."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from orcaa.audit.router import router as audit_router
from orcaa.auth.router import router as auth_router
from orcaa.common.exceptions import register_exception_handlers
from orcaa.common.rate_limit import limiter
from orcaa.complaints.router import ids_router as complaint_ids_router
from orcaa.complaints.router import router as complaints_router
from orcaa.config import settings
from orcaa.database import engine
from orcaa.inbox.router import router as inbox_router
from orcaa.leave.router import router as leave_router
from orcaa.notifications.router import router as notifications_router
from orcaa.overtime.router import router as overtime_router
from orcaa.permissions.router import router as permissions_router
from orcaa.timesheets.router import activities_router, list_values_router
from orcaa.timesheets.router import router as timesheets_router
from orcaa.users.router import roles_router, users_router
from orcaa.workflow.router import (
    complaint_workflow_router,
    stages_router,
    tasks_router,
    workflows_router,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("ORCAA API starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="ORCAA Complaints",
        description="Olympic Region Clean Air Agency: complaint intake and case management",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api", tags=["auth"])
    app.include_router(users_router, prefix="/api/users", tags=["users"])
    app.include_router(roles_router, prefix="/api/roles", tags=["roles"])
    app.include_router(permissions_router, prefix="/api/role-action-mappings", tags=["permissions"])
    app.include_router(complaints_router, prefix="/api/complaints", tags=["complaints"])
    app.include_router(complaint_workflow_router, prefix="/api/complaints", tags=["workflow"])
    app.include_router(complaint_ids_router, prefix="/api", tags=["complaints"])
    app.include_router(stages_router, prefix="/api/workflow-stages", tags=["workflow"])
    app.include_router(workflows_router, prefix="/api/workflows", tags=["workflow"])
    app.include_router(tasks_router, prefix="/api/workflow-tasks", tags=["workflow-tasks"])
    app.include_router(timesheets_router, prefix="/api/timesheets", tags=["timesheets"])
    app.include_router(activities_router, prefix="/api/timesheet-activities", tags=["timesheets"])
    app.include_router(list_values_router, prefix="/api/list-values", tags=["list-values"])
    app.include_router(leave_router, prefix="/api/leave-requests", tags=["leave"])
    app.include_router(overtime_router, prefix="/api/overtime-requests", tags=["overtime"])
    app.include_router(inbox_router, prefix="/api/inbox", tags=["inbox"])
    app.include_router(notifications_router, prefix="/api/notifications", tags=["notifications"])
    app.include_router(audit_router, prefix="/api/audit-trail", tags=["audit"])

    # Uploaded attachments
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

    return app


app = create_app()
