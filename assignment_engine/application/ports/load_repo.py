"""Port interface for per-user assignment load persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.value_objects.enums import TargetModel


class LoadRepository(ABC):
    @abstractmethod
    async def get(
        self,
        organization_id: UUID,
        user_id: UUID,
        target_model: TargetModel,
        for_update: bool = False,
    ) -> UserAssignmentLoad:
        """Return the stored load, or an unsaved default (weight=1, available).

        With *for_update* the row is locked until the transaction ends (and
        created first if missing) so read-modify-write cycles cannot interleave
        across sessions. A plain read never writes.
        """
        ...

    @abstractmethod
    async def upsert(self, load: UserAssignmentLoad) -> UserAssignmentLoad:
        """Insert or fully replace the row keyed by (organization, user, target_model)."""
        ...

    @abstractmethod
    async def list(
        self, organization_id: UUID, target_model: TargetModel | None = None
    ) -> list[UserAssignmentLoad]:
        """Loads ordered by active_assignments DESC."""
        ...
