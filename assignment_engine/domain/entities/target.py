"""TargetRecord — the slice of a lead/contact/opportunity the engine reads."""

from dataclasses import dataclass
from uuid import UUID

from assignment_engine.domain.value_objects.enums import TargetModel


@dataclass
class TargetRecord:
    id: UUID
    target_model: TargetModel
    name: str | None = None
    assigned_to: UUID | None = None
