"""Port interface for territory persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from assignment_engine.domain.entities.territory import Territory


class TerritoryRepository(ABC):
    @abstractmethod
    async def save(self, territory: Territory) -> Territory:
        ...

    @abstractmethod
    async def update(self, territory: Territory) -> Territory:
        ...

    @abstractmethod
    async def get_by_id(self, organization_id: UUID, territory_id: UUID) -> Territory | None:
        ...

    @abstractmethod
    async def delete(self, organization_id: UUID, territory_id: UUID) -> bool:
        ...

    @abstractmethod
    async def list(self, organization_id: UUID, active_only: bool = False) -> list[Territory]:
        """Territories ordered by priority DESC, then id ASC."""
        ...
