"""Territory entity — a named region with an attached pool of assignees."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from assignment_engine.domain.value_objects.condition import Condition, matches_all
from assignment_engine.domain.value_objects.enums import TerritoryType


@dataclass
class Territory:
    id: UUID
    organization_id: UUID
    name: str
    territory_type: TerritoryType = TerritoryType.GEOGRAPHIC
    description: str = ""
    conditions: list[Condition] = field(default_factory=list)
    assigned_users: list[UUID] = field(default_factory=list)
    assigned_teams: list[UUID] = field(default_factory=list)
    priority: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: UUID | None = None
    updated_by: UUID | None = None

    def covers(self, attributes: Mapping[str, Any]) -> bool:
        # A territory without conditions would swallow every entity
        return bool(self.conditions) and matches_all(self.conditions, attributes)

    def sort_key(self) -> tuple[int, str]:
        return (-self.priority, str(self.id))
