"""001 – Initial schema: all tables, indexes, seed data.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000-07:00
"""

import json

from alembic import op

from orcaa.common.constants import (
    DEFAULT_ROLES as ROLES,
    DEFAULT_TIMESHEET_ACTIVITIES as TIMESHEET_ACTIVITIES,
    DEFAULT_WORKFLOW_STAGES as WORKFLOW_STAGES,
    TIMESHEET_ACTIVITY_LIST,
)
from orcaa.permissions.catalog import ACTION_CATEGORIES

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _q(value: str | None) -> str:
    if value is None:
        return "NULL"
    return "'" + value.replace("'", "''") + "'"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id                            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            external_id                   VARCHAR(255) UNIQUE,
            email                         VARCHAR(255) NOT NULL UNIQUE,
            first_name                    VARCHAR(100),
            last_name                     VARCHAR(100),
            profile_image_url             VARCHAR(500),
            roles                         JSONB NOT NULL DEFAULT '["field_staff"]',
            phone                         VARCHAR(30),
            mobile_number                 VARCHAR(30),
            whatsapp_number               VARCHAR(30),
            enable_sms_notifications      BOOLEAN DEFAULT TRUE,
            enable_whatsapp_notifications BOOLEAN DEFAULT TRUE,
            is_active                     BOOLEAN DEFAULT TRUE,
            created_at                    TIMESTAMPTZ DEFAULT NOW(),
            updated_at                    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. roles ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE roles (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name         VARCHAR(50)  NOT NULL UNIQUE,
            display_name VARCHAR(100) NOT NULL,
            description  TEXT,
            permissions  JSONB NOT NULL DEFAULT '[]',
            is_active    BOOLEAN DEFAULT TRUE,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id            UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash         VARCHAR(128) NOT NULL,
            refresh_token_hash VARCHAR(128),
            ip_address         INET,
            user_agent         TEXT,
            expires_at         TIMESTAMPTZ NOT NULL,
            is_revoked         BOOLEAN DEFAULT FALSE,
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions(token_hash)")
    op.execute("CREATE INDEX ix_user_sessions_refresh_token_hash ON user_sessions(refresh_token_hash)")

    # ── 4. role_action_mappings ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE role_action_mappings (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            role_name          VARCHAR(50)  NOT NULL,
            action_id          VARCHAR(100) NOT NULL,
            action_name        VARCHAR(200) NOT NULL,
            action_category    VARCHAR(100) NOT NULL,
            action_description TEXT,
            has_permission     BOOLEAN DEFAULT TRUE,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_role_action UNIQUE (role_name, action_id)
        )
    """)
    op.execute("CREATE INDEX ix_role_action_mappings_action_id ON role_action_mappings(action_id)")

    # ── 5. workflow_stages ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE workflow_stages (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name             VARCHAR(30)  NOT NULL UNIQUE,
            display_name     VARCHAR(100) NOT NULL,
            assigned_role    VARCHAR(50)  NOT NULL,
            next_stage       VARCHAR(30),
            "order"          INTEGER NOT NULL DEFAULT 0,
            sms_notification BOOLEAN DEFAULT FALSE,
            is_active        BOOLEAN DEFAULT TRUE,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. workflows ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE workflows (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name           VARCHAR(200) NOT NULL,
            description    TEXT,
            complaint_type VARCHAR(30),
            workflow_data  JSONB NOT NULL DEFAULT '{"nodes": [], "edges": []}',
            is_template    BOOLEAN DEFAULT FALSE,
            is_active      BOOLEAN DEFAULT TRUE,
            created_by     UUID REFERENCES users(id),
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 7. complaints ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE complaints (
            id                           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            complaint_id                 VARCHAR(20) NOT NULL UNIQUE,
            complaint_type               VARCHAR(30) NOT NULL DEFAULT 'AIR_QUALITY',

            is_anonymous                 BOOLEAN DEFAULT FALSE,
            complainant_first_name       VARCHAR(100),
            complainant_last_name        VARCHAR(100),
            complainant_email            VARCHAR(255) NOT NULL,
            complainant_address          VARCHAR(255),
            complainant_city             VARCHAR(100),
            complainant_state            VARCHAR(50),
            complainant_zip_code         VARCHAR(10),
            complainant_phone            VARCHAR(30),

            source_name                  VARCHAR(50),
            source_address               VARCHAR(255),
            source_city                  VARCHAR(100),
            problem_types                JSONB NOT NULL DEFAULT '[]',
            other_description            TEXT,
            last_occurred                VARCHAR(100),
            previous_contact             BOOLEAN DEFAULT FALSE,

            status                       VARCHAR(30) NOT NULL DEFAULT 'initiated',
            priority                     VARCHAR(20) NOT NULL DEFAULT 'normal',
            assigned_to                  UUID REFERENCES users(id),
            workflow_id                  UUID REFERENCES workflows(id),

            property_owner_name          VARCHAR(200),
            property_owner_address       VARCHAR(255),
            property_owner_city          VARCHAR(100),
            property_owner_state         VARCHAR(50),
            property_owner_zip           VARCHAR(10),
            property_owner_phone         VARCHAR(30),
            property_owner_email         VARCHAR(255),
            work_site_address            VARCHAR(255),
            work_site_city               VARCHAR(100),
            work_site_zip                VARCHAR(10),
            work_site_county             VARCHAR(50),
            is_primary_residence         BOOLEAN,
            asbestos_to_be_removed       BOOLEAN,
            asbestos_notification_number VARCHAR(50),
            project_start_date           DATE,
            project_completion_date      DATE,
            asbestos_square_feet         NUMERIC(10,2),
            asbestos_linear_feet         NUMERIC(10,2),
            asbestos_contractor_name     VARCHAR(200),
            is_neshap_project            BOOLEAN,
            problem_description          TEXT,

            created_at                   TIMESTAMPTZ DEFAULT NOW(),
            updated_at                   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_complaints_status ON complaints(status)")
    op.execute("CREATE INDEX ix_complaints_assigned_to ON complaints(assigned_to)")
    op.execute("CREATE INDEX ix_complaints_created_at ON complaints(created_at)")

    # ── 8. attachments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attachments (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            complaint_id  UUID NOT NULL REFERENCES complaints(id) ON DELETE CASCADE,
            filename      VARCHAR(255) NOT NULL,
            original_name VARCHAR(255) NOT NULL,
            mime_type     VARCHAR(100) NOT NULL,
            size          INTEGER NOT NULL,
            url           VARCHAR(500) NOT NULL,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 9. work_descriptions ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE work_descriptions (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            complaint_id UUID NOT NULL REFERENCES complaints(id) ON DELETE CASCADE,
            description  TEXT NOT NULL,
            user_id      UUID REFERENCES users(id),
            status       VARCHAR(30),
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 10. workflow_tasks ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE workflow_tasks (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            complaint_id      UUID NOT NULL REFERENCES complaints(id) ON DELETE CASCADE,
            workflow_id       UUID REFERENCES workflows(id) ON DELETE SET NULL,
            node_id           VARCHAR(100),
            sequence          INTEGER NOT NULL DEFAULT 0,
            task_name         VARCHAR(200) NOT NULL,
            task_type         VARCHAR(50)  NOT NULL,
            assigned_role     VARCHAR(50),
            assigned_to       UUID REFERENCES users(id),
            status            VARCHAR(30) NOT NULL DEFAULT 'pending',
            priority          VARCHAR(20) NOT NULL DEFAULT 'normal',
            due_date          DATE,
            activated_at      TIMESTAMPTZ,
            observations      TEXT,
            inspection_status VARCHAR(20),
            forward_email     VARCHAR(255),
            forward_reason    TEXT,
            completion_notes  TEXT,
            completed_by      UUID REFERENCES users(id),
            completed_at      TIMESTAMPTZ,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_workflow_tasks_complaint ON workflow_tasks(complaint_id, sequence)")
    op.execute("CREATE INDEX ix_workflow_tasks_assigned_to ON workflow_tasks(assigned_to)")

    # ── 11. list_values ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE list_values (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            list_value_type VARCHAR(100) NOT NULL,
            code            VARCHAR(100) NOT NULL,
            descr           VARCHAR(255) NOT NULL,
            "order"         INTEGER NOT NULL DEFAULT 0,
            value           VARCHAR(255),
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_list_value_type_code UNIQUE (list_value_type, code)
        )
    """)

    # ── 12. timesheets ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE timesheets (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id          UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            date             DATE NOT NULL,
            activity         VARCHAR(100) NOT NULL,
            comments         TEXT,
            business_work_id VARCHAR(50),
            time_in_hours    NUMERIC(4,2) NOT NULL
                             CHECK (time_in_hours >= 0.25 AND time_in_hours <= 24),
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_timesheets_user_date ON timesheets(user_id, date)")

    # ── 13. leave_requests ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id          UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            leave_type       VARCHAR(50) NOT NULL,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            reason           TEXT NOT NULL,
            status           VARCHAR(20) NOT NULL DEFAULT 'pending',
            approved_by      UUID REFERENCES users(id),
            approved_at      TIMESTAMPTZ,
            rejection_reason TEXT,
            forwarded_to     UUID REFERENCES users(id),
            forward_comments TEXT,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_leave_requests_user_status ON leave_requests(user_id, status)")

    # ── 14. overtime_requests ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE overtime_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id             UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            date                DATE NOT NULL,
            hours               NUMERIC(4,2) NOT NULL CHECK (hours >= 0.1 AND hours <= 12),
            project_description TEXT NOT NULL,
            justification       TEXT NOT NULL,
            status              VARCHAR(20) NOT NULL DEFAULT 'pending',
            approved_by         UUID REFERENCES users(id),
            approved_at         TIMESTAMPTZ,
            rejection_reason    TEXT,
            forwarded_to        UUID REFERENCES users(id),
            forward_comments    TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_overtime_requests_user_status ON overtime_requests(user_id, status)")

    # ── 15. notifications ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type         VARCHAR(30) NOT NULL DEFAULT 'info',
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            action_url   VARCHAR(500),
            entity_type  VARCHAR(50),
            entity_id    UUID,
            is_read      BOOLEAN DEFAULT FALSE,
            read_at      TIMESTAMPTZ,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_notifications_recipient_read ON notifications(recipient_id, is_read)")

    # ── 16. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            complaint_id   UUID REFERENCES complaints(id) ON DELETE CASCADE,
            entity_type    VARCHAR(50) NOT NULL DEFAULT 'complaint',
            entity_id      UUID,
            action         VARCHAR(50) NOT NULL,
            previous_value JSONB,
            new_value      JSONB,
            user_id        UUID REFERENCES users(id),
            reason         TEXT,
            ip_address     INET,
            timestamp      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_complaint_id ON audit_trail(complaint_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_timestamp ON audit_trail(timestamp)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")

    # ── Seed: roles ───────────────────────────────────────────────────────
    for name, display, description in ROLES:
        op.execute(
            f"INSERT INTO roles (name, display_name, description) "
            f"VALUES ({_q(name)}, {_q(display)}, {_q(description)})"
        )

    # ── Seed: workflow stages ─────────────────────────────────────────────
    for name, display, role, nxt, order, sms in WORKFLOW_STAGES:
        op.execute(
            f'INSERT INTO workflow_stages (name, display_name, assigned_role, next_stage, "order", sms_notification) '
            f"VALUES ({_q(name)}, {_q(display)}, {_q(role)}, {_q(nxt)}, {order}, {'TRUE' if sms else 'FALSE'})"
        )

    # ── Seed: role-action mappings (one row per role per action) ──────────
    for category, actions in ACTION_CATEGORIES.items():
        for action in actions:
            granted = {r.value for r in action.required_roles}
            for role, _, _ in ROLES:
                op.execute(
                    "INSERT INTO role_action_mappings "
                    "(role_name, action_id, action_name, action_category, action_description, has_permission) "
                    f"VALUES ({_q(role)}, {_q(action.id)}, {_q(action.name)}, {_q(category)}, "
                    f"{_q(action.description)}, {'TRUE' if role in granted else 'FALSE'})"
                )

    # ── Seed: list values ─────────────────────────────────────────────────
    for order, (code, descr) in enumerate(TIMESHEET_ACTIVITIES, start=1):
        op.execute(
            'INSERT INTO list_values (list_value_type, code, descr, "order") '
            f"VALUES ({_q(TIMESHEET_ACTIVITY_LIST)}, {_q(code)}, {_q(descr)}, {order})"
        )
    op.execute(
        "UPDATE roles SET permissions = "
        + _q(json.dumps([a.id for actions in ACTION_CATEGORIES.values() for a in actions]))
        + "::jsonb WHERE name = 'admin'"
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in (
        "audit_trail",
        "notifications",
        "overtime_requests",
        "leave_requests",
        "timesheets",
        "list_values",
        "workflow_tasks",
        "work_descriptions",
        "attachments",
        "complaints",
        "workflows",
        "workflow_stages",
        "role_action_mappings",
        "user_sessions",
        "roles",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
