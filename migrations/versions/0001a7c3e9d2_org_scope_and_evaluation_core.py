"""org_scope_and_evaluation_core

Creates the organizational scope and evaluator assignment tables:
  - departments / divisions / coordinations / teams — org hierarchy
  - profiles / user_roles                           — identities and role labels
  - events / evaluation_queue                       — field actions and evaluator queue
  - pending_registrations                           — self-registrations awaiting review
  - notifications                                   — in-app notifications
  - scheduled_jobs                                  — batch job registry and run history

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 0001a7c3e9d2
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '0001a7c3e9d2'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    # ── Org hierarchy ─────────────────────────────────────────────────────
    if "departments" not in existing:
        op.create_table(
            "departments",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            _ts("created_at"),
        )
    if "divisions" not in existing:
        op.create_table(
            "divisions",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("department_id", sa.String(length=32),
                      sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
            _ts("created_at"),
        )
        op.create_index("ix_divisions_department_id", "divisions", ["department_id"])
    if "coordinations" not in existing:
        op.create_table(
            "coordinations",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("division_id", sa.String(length=32),
                      sa.ForeignKey("divisions.id", ondelete="SET NULL"), nullable=True),
            _ts("created_at"),
        )
        op.create_index("ix_coordinations_division_id", "coordinations", ["division_id"])
    if "teams" not in existing:
        op.create_table(
            "teams",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("coord_id", sa.String(length=32),
                      sa.ForeignKey("coordinations.id", ondelete="SET NULL"), nullable=True),
            _ts("created_at"),
        )
        op.create_index("ix_teams_coord_id", "teams", ["coord_id"])

    # ── Identities ────────────────────────────────────────────────────────
    if "profiles" not in existing:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("name", sa.String(length=200)),
            sa.Column("email", sa.String(length=200), nullable=False, unique=True),
            sa.Column("matricula", sa.String(length=50)),
            sa.Column("team_id", sa.String(length=32),
                      sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True),
            sa.Column("coord_id", sa.String(length=32), nullable=True),
            sa.Column("division_id", sa.String(length=32), nullable=True),
            sa.Column("department_id", sa.String(length=32), nullable=True),
            sa.Column("sigla_area", sa.String(length=64)),
            sa.Column("operational_base", sa.String(length=64)),
            sa.Column("is_leader", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("studio_access", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("created_at"),
            _ts("updated_at"),
        )
        op.create_index("ix_profiles_team_id", "profiles", ["team_id"])
        op.create_index("ix_profiles_coord_id", "profiles", ["coord_id"])
        op.create_index("ix_profiles_division_id", "profiles", ["division_id"])
    if "user_roles" not in existing:
        op.create_table(
            "user_roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(length=36),
                      sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("role", sa.String(length=50), nullable=False),
            _ts("assigned_at"),
            sa.UniqueConstraint("user_id", "role", name="uq_user_role"),
        )
        op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    # ── Evaluation ────────────────────────────────────────────────────────
    if "events" not in existing:
        op.create_table(
            "events",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("user_id", sa.String(length=36),
                      sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("team_id", sa.String(length=32),
                      sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True),
            sa.Column("status", sa.String(length=40), nullable=False, server_default="submitted"),
            sa.Column("assigned_evaluator_id", sa.String(length=36),
                      sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
        )
        op.create_index("ix_events_user_id", "events", ["user_id"])
        op.create_index("ix_events_assigned_evaluator_id", "events", ["assigned_evaluator_id"])
        op.create_index("ix_events_pending", "events", ["status", "assigned_evaluator_id", "created_at"])
    if "evaluation_queue" not in existing:
        op.create_table(
            "evaluation_queue",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("event_id", sa.String(length=36),
                      sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
            sa.Column("assigned_to", sa.String(length=36),
                      sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            _ts("assigned_at"),
            _ts("completed_at"),
            sa.Column("is_cross_evaluation", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.UniqueConstraint("event_id", "assigned_to", name="uq_evaluation_queue_event_evaluator"),
        )
        op.create_index("ix_evaluation_queue_event_id", "evaluation_queue", ["event_id"])
        op.create_index("ix_evaluation_queue_open", "evaluation_queue", ["assigned_to", "completed_at"])

    # ── Registrations ─────────────────────────────────────────────────────
    if "pending_registrations" not in existing:
        op.create_table(
            "pending_registrations",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("matricula", sa.String(length=50)),
            sa.Column("sigla_area", sa.String(length=64), nullable=False),
            sa.Column("operational_base", sa.String(length=64)),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("reviewed_by", sa.String(length=36),
                      sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
            _ts("reviewed_at"),
            sa.Column("review_notes", sa.Text()),
            _ts("created_at"),
        )
        op.create_index("ix_pending_registrations_email", "pending_registrations", ["email"])
        op.create_index("ix_pending_registrations_sigla_area", "pending_registrations", ["sigla_area"])
        op.create_index("ix_pending_registrations_status", "pending_registrations", ["status"])

    # ── Notifications ─────────────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("recipient_id", sa.String(length=36),
                      sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text()),
            sa.Column("category", sa.String(length=30)),
            sa.Column("entity_type", sa.String(length=30)),
            sa.Column("entity_id", sa.String(length=36)),
            sa.Column("is_read", sa.Boolean(), server_default=sa.false()),
            _ts("read_at"),
            _ts("created_at"),
        )
        op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])

    # ── Batch jobs ────────────────────────────────────────────────────────
    if "scheduled_jobs" not in existing:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("job_name", sa.String(length=100), nullable=False, unique=True),
            sa.Column("description", sa.String(length=500)),
            sa.Column("status", sa.String(length=20)),
            sa.Column("is_enabled", sa.Boolean(), server_default=sa.true()),
            _ts("last_run_at"),
            sa.Column("last_run_status", sa.String(length=20)),
            sa.Column("last_run_duration_ms", sa.Integer()),
            sa.Column("last_run_result", sa.JSON()),
            sa.Column("run_count", sa.Integer(), server_default="0"),
            sa.Column("error_count", sa.Integer(), server_default="0"),
            sa.Column("last_error", sa.Text()),
            _ts("created_at"),
            _ts("updated_at"),
        )


def downgrade():
    for table in (
        "scheduled_jobs",
        "notifications",
        "pending_registrations",
        "evaluation_queue",
        "events",
        "user_roles",
        "profiles",
        "teams",
        "coordinations",
        "divisions",
        "departments",
    ):
        op.drop_table(table)
