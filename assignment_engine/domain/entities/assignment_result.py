"""AssignmentResult — transient value returned to the caller."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class AssignmentResult:
    target_id: UUID
    assigned_to_id: UUID
    assigned_to_name: str | None
    reason: str
    changed: bool
    rule_id: UUID | None = None
    history_id: UUID | None = None
