"""Initial schema — assignment rules, territories, load, history, cursors.

Revision ID: 001
Revises: None
Create Date: 2025-01-18
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("updated_by", UUID(as_uuid=True), nullable=True),
    ]


def upgrade() -> None:
    # Assignment rules
    op.create_table(
        "assignment_rules",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("rule_type", sa.String(50), nullable=False),
        sa.Column("target_model", sa.String(100), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("conditions", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("assignment_config", JSONB, nullable=False),
        sa.Column("assign_to_type", sa.String(50), nullable=False, server_default="user"),
        sa.Column("max_assignments_per_user", sa.Integer, nullable=False, server_default="0"),
        sa.Column("assignment_window_start", sa.Time, nullable=True),
        sa.Column("assignment_window_end", sa.Time, nullable=True),
        sa.Column("active_days", ARRAY(sa.Integer), nullable=False, server_default="{}"),
        *_audit_columns(),
        sa.CheckConstraint(
            "rule_type IN ('round_robin', 'weighted', 'territory', 'custom')",
            name="ck_assignment_rules_rule_type",
        ),
        sa.CheckConstraint(
            "assign_to_type IN ('user', 'team')", name="ck_assignment_rules_assign_to_type"
        ),
    )
    op.create_index("idx_assignment_rules_organization", "assignment_rules", ["organization_id"])
    op.create_index("idx_assignment_rules_target_model", "assignment_rules", ["target_model"])
    op.create_index(
        "idx_assignment_rules_active",
        "assignment_rules",
        ["is_active"],
        postgresql_where=sa.text("is_active = true"),
    )
    op.create_index("idx_assignment_rules_priority", "assignment_rules", ["priority"])
    op.create_index(
        "idx_assignment_rules_conditions", "assignment_rules", ["conditions"], postgresql_using="gin"
    )

    # Territories
    op.create_table(
        "territories",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("territory_type", sa.String(50), nullable=False),
        sa.Column("conditions", JSONB, nullable=False),
        sa.Column("assigned_users", ARRAY(UUID(as_uuid=True)), nullable=False, server_default="{}"),
        sa.Column("assigned_teams", ARRAY(UUID(as_uuid=True)), nullable=False, server_default="{}"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        *_audit_columns(),
        sa.UniqueConstraint("organization_id", "name", name="uq_territories_org_name"),
    )
    op.create_index("idx_territories_organization", "territories", ["organization_id"])
    op.create_index(
        "idx_territories_active",
        "territories",
        ["is_active"],
        postgresql_where=sa.text("is_active = true"),
    )
    op.create_index(
        "idx_territories_conditions", "territories", ["conditions"], postgresql_using="gin"
    )

    # Per-user load
    op.create_table(
        "user_assignment_load",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("target_model", sa.String(100), nullable=False),
        sa.Column("active_assignments", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_assignments", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_capacity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("weight", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("unavailable_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "organization_id", "user_id", "target_model", name="uq_user_assignment_load_key"
        ),
    )
    op.create_index("idx_user_assignment_load_user", "user_assignment_load", ["user_id"])
    op.create_index(
        "idx_user_assignment_load_organization", "user_assignment_load", ["organization_id"]
    )
    op.create_index("idx_user_assignment_load_model", "user_assignment_load", ["target_model"])
    op.create_index(
        "idx_user_assignment_load_available",
        "user_assignment_load",
        ["is_available"],
        postgresql_where=sa.text("is_available = true"),
    )

    # Assignment history
    op.create_table(
        "assignment_history",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "rule_id",
            UUID(as_uuid=True),
            sa.ForeignKey("assignment_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("rule_name", sa.String(200), nullable=True),
        sa.Column("target_model", sa.String(100), nullable=False),
        sa.Column("target_id", UUID(as_uuid=True), nullable=False),
        sa.Column("target_name", sa.String(255), nullable=True),
        sa.Column("assigned_to_type", sa.String(50), nullable=False, server_default="user"),
        sa.Column("assigned_to_id", UUID(as_uuid=True), nullable=False),
        sa.Column("assigned_to_name", sa.String(255), nullable=True),
        sa.Column("previous_assigned_to_id", UUID(as_uuid=True), nullable=True),
        sa.Column("previous_assigned_to_name", sa.String(255), nullable=True),
        sa.Column("assignment_reason", sa.String(100), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("assigned_by", UUID(as_uuid=True), nullable=True),
    )
    op.create_index("idx_assignment_history_organization", "assignment_history", ["organization_id"])
    op.create_index("idx_assignment_history_rule", "assignment_history", ["rule_id"])
    op.create_index(
        "idx_assignment_history_target", "assignment_history", ["target_model", "target_id"]
    )
    op.create_index("idx_assignment_history_assigned_to", "assignment_history", ["assigned_to_id"])
    op.create_index("idx_assignment_history_date", "assignment_history", ["assigned_at"])

    # Round Robin State
    op.create_table(
        "round_robin_state",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rr_key", sa.String(500), unique=True, nullable=False),
        sa.Column("counter", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("round_robin_state")
    op.drop_table("assignment_history")
    op.drop_table("user_assignment_load")
    op.drop_table("territories")
    op.drop_table("assignment_rules")
