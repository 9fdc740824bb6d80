"""UserAssignmentLoad — per (organization, user, target model) counters."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from assignment_engine.domain.value_objects.enums import TargetModel


@dataclass
class UserAssignmentLoad:
    organization_id: UUID
    user_id: UUID
    target_model: TargetModel
    active_assignments: int = 0
    total_assignments: int = 0
    last_assigned_at: datetime | None = None
    max_capacity: int = 0  # 0 = unlimited
    weight: int = 1
    is_available: bool = True
    unavailable_until: datetime | None = None
    updated_at: datetime | None = None

    def is_available_at(self, now: datetime) -> bool:
        if not self.is_available:
            return False
        return self.unavailable_until is None or now >= self.unavailable_until

    def effective_capacity(self, rule_cap: int = 0) -> int:
        """Smallest non-zero cap of the load row and the rule; 0 = unlimited."""
        caps = [c for c in (self.max_capacity, rule_cap) if c > 0]
        return min(caps) if caps else 0

    def is_at_capacity(self, rule_cap: int = 0) -> bool:
        cap = self.effective_capacity(rule_cap)
        return cap > 0 and self.active_assignments >= cap

    def record_assignment(self, now: datetime) -> None:
        self.active_assignments += 1
        self.total_assignments += 1
        self.last_assigned_at = now
        self.updated_at = now

    def release(self, now: datetime) -> None:
        self.active_assignments = max(self.active_assignments - 1, 0)
        self.updated_at = now
