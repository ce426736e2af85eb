"""create capacity engine schema

Revision ID: 4b1e2c9d7a10
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "4b1e2c9d7a10"
down_revision = None
branch_labels = None
depends_on = None

_ALLOCATION_TYPE = sa.Enum("HARD", "SOFT", "GHOST", name="allocationtype")
_BOOKING_SOURCE = sa.Enum("MANUAL", "JIRA", "GITHUB", "AI", name="bookingsource")
_UNITS_TYPE = sa.Enum("PERCENT", "HOURS", name="unitstype")
_SEVERITY = sa.Enum("LOW", "MEDIUM", "HIGH", "CRITICAL", name="conflictseverity")


def upgrade() -> None:
    op.create_table(
        "resources",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=True),
        sa.Column("workspace_id", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "resource_allocations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("resource_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=True),
        sa.Column("organization_id", sa.String(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("allocation_percentage", sa.Float(), nullable=False),
        sa.Column("hours_per_day", sa.Float(), nullable=False, server_default="8"),
        sa.Column("type", _ALLOCATION_TYPE, nullable=False, server_default="SOFT"),
        sa.Column("booking_source", _BOOKING_SOURCE, nullable=False, server_default="MANUAL"),
        sa.Column("units_type", _UNITS_TYPE, nullable=False, server_default="PERCENT"),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["resource_id"], ["resources.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_resource_allocations_resource_range",
        "resource_allocations",
        ["resource_id", "start_date", "end_date"],
    )
    op.create_index("idx_resource_allocations_project", "resource_allocations", ["project_id"])

    op.create_table(
        "capacity_calendar_entries",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=True),
        sa.Column("workspace_id", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("capacity_hours", sa.Float(), nullable=False, server_default="8"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "user_id", "date", name="ux_capacity_workspace_user_date"),
    )
    op.create_index("idx_capacity_user_date", "capacity_calendar_entries", ["user_id", "date"])

    op.create_table(
        "resource_conflicts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("resource_id", sa.String(), nullable=False),
        sa.Column("conflict_date", sa.Date(), nullable=False),
        sa.Column("total_allocation", sa.Float(), nullable=False),
        sa.Column("capacity_percent", sa.Float(), nullable=False, server_default="100"),
        sa.Column("affected_projects_json", sa.Text(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("severity", _SEVERITY, nullable=False),
        sa.Column("severity_rank", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("detected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by_user_id", sa.String(), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_resource_conflicts_resource_date",
        "resource_conflicts",
        ["resource_id", "conflict_date"],
    )
    op.create_index(
        "ux_resource_conflicts_open_day",
        "resource_conflicts",
        ["resource_id", "conflict_date"],
        unique=True,
        sqlite_where=sa.text("resolved = 0"),
        postgresql_where=sa.text("resolved = false"),
    )
    op.create_index(
        "idx_resource_conflicts_open",
        "resource_conflicts",
        ["resolved", "severity_rank"],
    )

    op.create_table(
        "organization_capacity_settings",
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("severity_low_max", sa.Float(), nullable=True),
        sa.Column("severity_medium_max", sa.Float(), nullable=True),
        sa.Column("severity_high_max", sa.Float(), nullable=True),
        sa.Column("soft_weight", sa.Float(), nullable=True),
        sa.Column("ghost_weight", sa.Float(), nullable=True),
        sa.Column("hard_cap_percent", sa.Float(), nullable=True),
        sa.Column("require_justification_above", sa.Float(), nullable=True),
        sa.Column("justification_required_types", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("organization_id"),
    )

    op.create_table(
        "resource_locks",
        sa.Column("resource_key", sa.String(), nullable=False),
        sa.Column("owner_token", sa.String(), nullable=False),
        sa.Column("acquired_at", sa.Float(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("resource_key"),
    )


def downgrade() -> None:
    op.drop_table("resource_locks")
    op.drop_table("organization_capacity_settings")
    op.drop_index("idx_resource_conflicts_open", table_name="resource_conflicts")
    op.drop_index("ux_resource_conflicts_open_day", table_name="resource_conflicts")
    op.drop_index("idx_resource_conflicts_resource_date", table_name="resource_conflicts")
    op.drop_table("resource_conflicts")
    op.drop_index("idx_capacity_user_date", table_name="capacity_calendar_entries")
    op.drop_table("capacity_calendar_entries")
    op.drop_index("idx_resource_allocations_project", table_name="resource_allocations")
    op.drop_index("idx_resource_allocations_resource_range", table_name="resource_allocations")
    op.drop_table("resource_allocations")
    op.drop_table("resources")
    _SEVERITY.drop(op.get_bind(), checkfirst=True)
    _UNITS_TYPE.drop(op.get_bind(), checkfirst=True)
    _BOOKING_SOURCE.drop(op.get_bind(), checkfirst=True)
    _ALLOCATION_TYPE.drop(op.get_bind(), checkfirst=True)
