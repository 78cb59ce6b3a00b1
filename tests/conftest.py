"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from orcaa.auth.models import UserSession
from orcaa.auth.service import create_access_token, hash_token
from orcaa.common.constants import UserRole
from orcaa.config import settings
from orcaa.database import Base, get_db
from orcaa.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import orcaa.common.audit  # noqa: F401
import orcaa.complaints.models  # noqa: F401
import orcaa.leave.models  # noqa: F401
import orcaa.notifications.models  # noqa: F401
import orcaa.overtime.models  # noqa: F401
import orcaa.permissions.models  # noqa: F401
import orcaa.timesheets.models  # noqa: F401
import orcaa.users.models  # noqa: F401
import orcaa.workflow.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT ────────────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from orcaa.common.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def _upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

_sequence = {"n": 0}


async def make_user(
    db: AsyncSession,
    *,
    roles: list[str],
    email: str | None = None,
    first_name: str = "Test",
    last_name: str = "User",
    is_active: bool = True,
    **extra,
):
    """Insert a user. ``created_at`` increases per call so role lookups are ordered."""
    from orcaa.users.models import User

    _sequence["n"] += 1
    user = User(
        id=uuid.uuid4(),
        email=email or f"user{_sequence['n']}-{uuid.uuid4().hex[:6]}@orcaa.org",
        first_name=first_name,
        last_name=last_name,
        roles=roles,
        is_active=is_active,
        created_at=datetime.now(timezone.utc) + timedelta(seconds=_sequence["n"]),
        updated_at=datetime.now(timezone.utc),
        **extra,
    )
    db.add(user)
    await db.flush()
    await db.commit()
    return user


async def make_headers(db: AsyncSession, user) -> dict[str, str]:
    """Bearer headers backed by a persisted session."""
    token, _ = create_access_token(user)
    db.add(UserSession(
        id=uuid.uuid4(),
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        is_revoked=False,
        created_at=datetime.now(timezone.utc),
    ))
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_factory(db) -> Callable:
    async def _make(*roles: UserRole | str, **kwargs):
        names = [getattr(r, "value", r) for r in roles] or [UserRole.field_staff.value]
        return await make_user(db, roles=names, **kwargs)

    return _make


@pytest.fixture
def headers_for(db) -> Callable:
    async def _headers(user) -> dict[str, str]:
        return await make_headers(db, user)

    return _headers


@pytest.fixture
async def admin(user_factory):
    return await user_factory(UserRole.admin, first_name="Ada", last_name="Admin")


@pytest.fixture
async def supervisor(user_factory):
    return await user_factory(UserRole.supervisor, first_name="Sam", last_name="Supervisor")


@pytest.fixture
async def field_staff(user_factory):
    return await user_factory(
        UserRole.field_staff, first_name="Fay", last_name="Field", mobile_number="+13605550101",
    )


@pytest.fixture
async def approver(user_factory):
    return await user_factory(UserRole.approver, first_name="Abe", last_name="Approver")


@pytest.fixture
async def admin_headers(headers_for, admin) -> dict[str, str]:
    return await headers_for(admin)


@pytest.fixture
async def supervisor_headers(headers_for, supervisor) -> dict[str, str]:
    return await headers_for(supervisor)


@pytest.fixture
async def field_headers(headers_for, field_staff) -> dict[str, str]:
    return await headers_for(field_staff)


@pytest.fixture
async def approver_headers(headers_for, approver) -> dict[str, str]:
    return await headers_for(approver)


# ── Domain fixtures ─────────────────────────────────────────────────

DEFAULT_STAGES = [
    ("initiated", "Initiated", "supervisor", "inspection", 1),
    ("inspection", "Inspection", "field_staff", "work_in_progress", 2),
    ("work_in_progress", "Work In Progress", "field_staff", "work_completed", 3),
    ("work_completed", "Work Completed", "supervisor", "reviewed", 4),
    ("reviewed", "Reviewed", "approver", "approved", 5),
    ("approved", "Approved", "admin", "closed", 6),
    ("closed", "Closed", "admin", None, 7),
]


@pytest.fixture
async def stages(db):
    """The default status progression."""
    from orcaa.workflow.models import WorkflowStage

    rows = [
        WorkflowStage(
            name=name, display_name=display, assigned_role=role, next_stage=nxt, order=order,
        )
        for name, display, role, nxt, order in DEFAULT_STAGES
    ]
    db.add_all(rows)
    await db.commit()
    return rows


def air_quality_payload(**overrides) -> dict:
    payload = {
        "is_anonymous": False,
        "complainant_first_name": "Jane",
        "complainant_last_name": "Doe",
        "complainant_email": "jane.doe@example.com",
        "complainant_phone": "+13605550199",
        "source_name": "Mill",
        "source_address": "100 Harbor Way",
        "source_city": "Aberdeen",
        "problem_types": ["smoke", "odor"],
        "last_occurred": "This morning",
    }
    payload.update(overrides)
    return payload


def workflow_graph(*labels: str, assigned_role: str | None = None) -> dict:
    """Linear start → labels… → end graph."""
    nodes = [{"id": "start", "type": "start", "data": {"label": "Start"}}]
    for i, label in enumerate(labels, start=1):
        data = {"label": label}
        if assigned_role:
            data["assignedRole"] = assigned_role
        nodes.append({"id": f"n{i}", "type": "task", "data": data})
    nodes.append({"id": "end", "type": "end", "data": {"label": "End"}})
    edges = [
        {"id": f"e{i}", "source": a["id"], "target": b["id"]}
        for i, (a, b) in enumerate(zip(nodes, nodes[1:]))
    ]
    return {"nodes": nodes, "edges": edges}


@pytest.fixture
async def submitted_complaint(client) -> dict:
    """A public air-quality complaint submitted through the API."""
    resp = await client.post("/api/complaints", json=air_quality_payload())
    assert resp.status_code == 201, resp.text
    return resp.json()
