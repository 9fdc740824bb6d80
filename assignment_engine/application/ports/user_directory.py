"""Port interface for read-only user lookups."""

from abc import ABC, abstractmethod
from uuid import UUID


class UserDirectory(ABC):
    @abstractmethod
    async def get_display_name(self, user_id: UUID) -> str | None:
        ...
