"""Port interface for assignment rule persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.value_objects.enums import TargetModel


class RuleRepository(ABC):
    @abstractmethod
    async def save(self, rule: AssignmentRule) -> AssignmentRule:
        ...

    @abstractmethod
    async def update(self, rule: AssignmentRule) -> AssignmentRule:
        ...

    @abstractmethod
    async def get_by_id(self, organization_id: UUID, rule_id: UUID) -> AssignmentRule | None:
        ...

    @abstractmethod
    async def delete(self, organization_id: UUID, rule_id: UUID) -> bool:
        """Delete a rule. Returns False if it did not exist."""
        ...

    @abstractmethod
    async def list(
        self,
        organization_id: UUID,
        target_model: TargetModel | None = None,
        active_only: bool = False,
    ) -> list[AssignmentRule]:
        """Rules ordered by priority DESC, then id ASC."""
        ...
