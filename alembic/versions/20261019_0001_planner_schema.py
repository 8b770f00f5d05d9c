"""planner schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


project_type = postgresql.ENUM("customer", "internal", "absence", name="project_type", create_type=False)
app_user_role = postgresql.ENUM("admin", "member", name="app_user_role", create_type=False)
history_action = postgresql.ENUM("create", "update", "delete", "bulk", name="history_action", create_type=False)


def upgrade() -> None:
    project_type.create(op.get_bind(), checkfirst=True)
    app_user_role.create(op.get_bind(), checkfirst=True)
    history_action.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "calendars",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hours_per_week", sa.Numeric(5, 2), nullable=False, server_default=sa.text("40.00")),
    )

    op.create_table(
        "calendar_holidays",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("calendar_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("calendars.id"), nullable=False),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_calendar_holidays_calendar_date", "calendar_holidays", ["calendar_id", "holiday_date"])

    op.create_table(
        "customers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("probability", sa.Integer(), nullable=True),
        sa.Column("type", project_type, nullable=False, server_default="customer"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.CheckConstraint(
            "probability IS NULL OR (probability >= 0 AND probability <= 100)",
            name="ck_projects_probability_percent",
        ),
    )
    op.create_index("ix_projects_customer_id", "projects", ["customer_id"])

    op.create_table(
        "consultants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("calendar_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("calendars.id"), nullable=True),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("teams.id"), nullable=True),
        sa.Column("is_external", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("work_percentage", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("overhead_percentage", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.CheckConstraint(
            "work_percentage >= 0 AND work_percentage <= 100",
            name="ck_consultants_work_percentage",
        ),
        sa.CheckConstraint(
            "overhead_percentage >= 0 AND overhead_percentage <= 100",
            name="ck_consultants_overhead_percentage",
        ),
    )
    op.create_index("ix_consultants_team_id", "consultants", ["team_id"])

    op.create_table(
        "allocations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("consultant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("consultants.id"), nullable=True),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("week", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("hours >= 0", name="ck_allocations_hours_non_negative"),
        sa.CheckConstraint("week >= 1 AND week <= 53", name="ck_allocations_iso_week"),
    )
    op.create_index("ix_allocations_year_week", "allocations", ["year", "week"])
    op.create_index("ix_allocations_consultant_id", "allocations", ["consultant_id"])
    op.create_index("ix_allocations_project_id", "allocations", ["project_id"])

    op.create_table(
        "allocation_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("allocation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", history_action, nullable=False),
        sa.Column("changed_by_email", sa.String(length=320), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
    )
    op.create_index("ix_allocation_history_changed_at", "allocation_history", ["changed_at"])
    op.create_index("ix_allocation_history_allocation_id", "allocation_history", ["allocation_id"])

    op.create_table(
        "app_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", app_user_role, nullable=False, server_default="member"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("app_users")
    op.drop_index("ix_allocation_history_allocation_id", table_name="allocation_history")
    op.drop_index("ix_allocation_history_changed_at", table_name="allocation_history")
    op.drop_table("allocation_history")
    op.drop_index("ix_allocations_project_id", table_name="allocations")
    op.drop_index("ix_allocations_consultant_id", table_name="allocations")
    op.drop_index("ix_allocations_year_week", table_name="allocations")
    op.drop_table("allocations")
    op.drop_index("ix_consultants_team_id", table_name="consultants")
    op.drop_table("consultants")
    op.drop_index("ix_projects_customer_id", table_name="projects")
    op.drop_table("projects")
    op.drop_table("customers")
    op.drop_index("ix_calendar_holidays_calendar_date", table_name="calendar_holidays")
    op.drop_table("calendar_holidays")
    op.drop_table("calendars")
    op.drop_table("roles")
    op.drop_table("teams")

    history_action.drop(op.get_bind(), checkfirst=True)
    app_user_role.drop(op.get_bind(), checkfirst=True)
    project_type.drop(op.get_bind(), checkfirst=True)
