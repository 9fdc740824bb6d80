"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

import uuid
from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from assignment_engine.adapters.persistence.database import Base


class AssignmentRuleModel(Base):
    __tablename__ = "assignment_rules"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rule_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_model: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    conditions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    assignment_config: Mapped[dict] = mapped_column(JSONB, nullable=False)
    assign_to_type: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    max_assignments_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assignment_window_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    assignment_window_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    active_days: Mapped[list[int]] = mapped_column(ARRAY(Integer), nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    __table_args__ = (
        Index("idx_assignment_rules_organization", "organization_id"),
        Index("idx_assignment_rules_target_model", "target_model"),
        Index(
            "idx_assignment_rules_active",
            "is_active",
            postgresql_where=text("is_active = true"),
        ),
        Index("idx_assignment_rules_priority", "priority"),
        Index("idx_assignment_rules_conditions", "conditions", postgresql_using="gin"),
    )


class TerritoryModel(Base):
    __tablename__ = "territories"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    territory_type: Mapped[str] = mapped_column(String(50), nullable=False)
    conditions: Mapped[list] = mapped_column(JSONB, nullable=False)
    assigned_users: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=list
    )
    assigned_teams: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=list
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_territories_org_name"),
        Index("idx_territories_organization", "organization_id"),
        Index("idx_territories_active", "is_active", postgresql_where=text("is_active = true")),
        Index("idx_territories_conditions", "conditions", postgresql_using="gin"),
    )


class UserAssignmentLoadModel(Base):
    __tablename__ = "user_assignment_load"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    target_model: Mapped[str] = mapped_column(String(100), nullable=False)
    active_assignments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_assignments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    unavailable_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "user_id", "target_model", name="uq_user_assignment_load_key"
        ),
        Index("idx_user_assignment_load_user", "user_id"),
        Index("idx_user_assignment_load_organization", "organization_id"),
        Index("idx_user_assignment_load_model", "target_model"),
        Index(
            "idx_user_assignment_load_available",
            "is_available",
            postgresql_where=text("is_available = true"),
        ),
    )


class AssignmentHistoryModel(Base):
    __tablename__ = "assignment_history"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    rule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assignment_rules.id", ondelete="SET NULL"), nullable=True
    )
    rule_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    target_model: Mapped[str] = mapped_column(String(100), nullable=False)
    target_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    target_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to_type: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    assigned_to_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    assigned_to_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    previous_assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    previous_assigned_to_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assignment_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    __table_args__ = (
        Index("idx_assignment_history_organization", "organization_id"),
        Index("idx_assignment_history_rule", "rule_id"),
        Index("idx_assignment_history_target", "target_model", "target_id"),
        Index("idx_assignment_history_assigned_to", "assigned_to_id"),
        Index("idx_assignment_history_date", "assigned_at"),
    )


class RoundRobinStateModel(Base):
    __tablename__ = "round_robin_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rr_key: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
