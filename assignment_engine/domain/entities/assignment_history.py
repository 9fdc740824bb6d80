"""AssignmentHistory — immutable audit record of one ownership change."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from assignment_engine.domain.value_objects.enums import AssignToType, TargetModel


@dataclass(frozen=True)
class AssignmentHistory:
    id: UUID
    organization_id: UUID
    target_model: TargetModel
    target_id: UUID
    assigned_to_id: UUID
    assignment_reason: str
    assigned_at: datetime
    assigned_to_type: AssignToType = AssignToType.USER
    assigned_to_name: str | None = None
    rule_id: UUID | None = None
    rule_name: str | None = None
    target_name: str | None = None
    previous_assigned_to_id: UUID | None = None
    previous_assigned_to_name: str | None = None
    metadata: dict = field(default_factory=dict)
    assigned_by: UUID | None = None
