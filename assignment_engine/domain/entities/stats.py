"""Reporting rows for assignment load and rule effectiveness."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class UserAssignmentStats:
    user_id: UUID
    user_name: str | None
    target_model: str
    active_assignments: int
    total_assignments: int
    last_assigned_at: datetime | None
    weight: int
    is_available: bool
    assignments_today: int


@dataclass(frozen=True)
class RuleEffectiveness:
    rule_id: UUID
    rule_name: str
    rule_type: str
    target_model: str
    is_active: bool
    total_assignments: int
    assignments_today: int
    assignments_this_week: int
    last_used_at: datetime | None
    unique_assignees: int
