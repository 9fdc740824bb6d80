"""Port interface for the external lead/contact/opportunity store."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from assignment_engine.domain.entities.target import TargetRecord
from assignment_engine.domain.value_objects.enums import TargetModel


class TargetRepository(ABC):
    @abstractmethod
    async def get(
        self,
        organization_id: UUID,
        target_model: TargetModel,
        target_id: UUID,
        for_update: bool = False,
    ) -> TargetRecord | None:
        """With *for_update*, row-lock the target until the transaction ends."""
        ...

    @abstractmethod
    async def set_owner(
        self,
        organization_id: UUID,
        target_model: TargetModel,
        target_id: UUID,
        user_id: UUID,
        now: datetime,
    ) -> None:
        """Write ``assigned_to`` and ``updated_at`` on the target row."""
        ...
