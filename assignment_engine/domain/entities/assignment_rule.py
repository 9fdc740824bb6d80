"""AssignmentRule entity — one organization-configured routing policy."""

from dataclasses import dataclass, field
from datetime import datetime, time
from uuid import UUID

from assignment_engine.domain.value_objects.assignment_config import AssignmentConfig
from assignment_engine.domain.value_objects.condition import Condition
from assignment_engine.domain.value_objects.enums import AssignToType, RuleType, TargetModel


@dataclass
class AssignmentRule:
    id: UUID
    organization_id: UUID
    name: str
    rule_type: RuleType
    target_model: TargetModel
    assignment_config: AssignmentConfig
    description: str = ""
    priority: int = 0
    is_active: bool = True
    conditions: list[Condition] = field(default_factory=list)
    assign_to_type: AssignToType = AssignToType.USER
    max_assignments_per_user: int = 0  # 0 = unlimited
    assignment_window_start: time | None = None
    assignment_window_end: time | None = None
    active_days: frozenset[int] = field(default_factory=frozenset)  # ISO weekdays, empty = all
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: UUID | None = None
    updated_by: UUID | None = None

    def is_within_window(self, now: datetime) -> bool:
        """Half-open ``[start, end)`` time-of-day check.

        When start is later than end the window wraps past midnight
        (e.g. 22:00–06:00). Equal bounds make an empty window; rule
        creation rejects them.
        """
        start, end = self.assignment_window_start, self.assignment_window_end
        t = now.time().replace(tzinfo=None)
        if start is None and end is None:
            return True
        if start is None:
            return t < end
        if end is None:
            return t >= start
        if start <= end:
            return start <= t < end
        return t >= start or t < end

    def is_active_on(self, now: datetime) -> bool:
        return not self.active_days or now.isoweekday() in self.active_days

    def sort_key(self) -> tuple[int, str]:
        """Canonical ordering: higher priority first, then lowest id."""
        return (-self.priority, str(self.id))
