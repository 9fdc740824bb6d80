"""Port interface for the append-only assignment history."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from assignment_engine.domain.entities.assignment_history import AssignmentHistory
from assignment_engine.domain.entities.stats import RuleEffectiveness
from assignment_engine.domain.value_objects.enums import TargetModel


class HistoryRepository(ABC):
    @abstractmethod
    async def append(self, history: AssignmentHistory) -> AssignmentHistory:
        ...

    @abstractmethod
    async def list(
        self,
        organization_id: UUID,
        target_model: TargetModel | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AssignmentHistory]:
        """History rows ordered by assigned_at DESC."""
        ...

    @abstractmethod
    async def assignments_since(
        self,
        organization_id: UUID,
        target_model: TargetModel | None,
        since: datetime,
    ) -> dict[UUID, int]:
        """Count of history rows per assignee since *since*."""
        ...

    @abstractmethod
    async def rule_effectiveness(
        self, organization_id: UUID, now: datetime
    ) -> list[RuleEffectiveness]:
        """Per-rule usage figures ordered by total_assignments DESC."""
        ...
