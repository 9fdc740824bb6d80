"""LoadTracker — serialized read-modify-write of per-user assignment load."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from assignment_engine.application.locks import USER_LOCKS, KeyedLock
from assignment_engine.application.ports.load_repo import LoadRepository
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.errors import ConcurrentUpdateConflict
from assignment_engine.domain.value_objects.enums import TargetModel

logger = logging.getLogger(__name__)


class LoadTracker:
    """Every mutation runs under the per-user lock and a locked row read.

    Callers own the transaction: nothing here commits.
    """

    def __init__(self, load_repo: LoadRepository, user_locks: KeyedLock | None = None):
        self._loads = load_repo
        self._locks = user_locks if user_locks is not None else USER_LOCKS

    async def get(
        self, organization_id: UUID, user_id: UUID, target_model: TargetModel
    ) -> UserAssignmentLoad:
        return await self._loads.get(organization_id, user_id, target_model)

    async def record_assignment(
        self,
        organization_id: UUID,
        user_id: UUID,
        target_model: TargetModel,
        now: datetime,
        capacity_cap: int | None = None,
    ) -> UserAssignmentLoad:
        """Increment active/total counters for *user_id*.

        Args:
            capacity_cap: when given, the rule's per-user cap; the fresh read
                is re-checked against it and the increment refused if the
                user filled up since the resolver looked.

        Raises:
            ConcurrentUpdateConflict: if the re-check fails.
        """
        async with self._locks.hold((organization_id, user_id, target_model)):
            load = await self._loads.get(organization_id, user_id, target_model, for_update=True)
            if capacity_cap is not None and load.is_at_capacity(capacity_cap):
                raise ConcurrentUpdateConflict(
                    f"User {user_id} reached capacity "
                    f"({load.active_assignments}/{load.effective_capacity(capacity_cap)}) "
                    "before the assignment was written"
                )
            load.record_assignment(now)
            return await self._loads.upsert(load)

    async def release(
        self, organization_id: UUID, user_id: UUID, target_model: TargetModel, now: datetime
    ) -> UserAssignmentLoad:
        """Decrement active assignments (floored at 0)."""
        async with self._locks.hold((organization_id, user_id, target_model)):
            load = await self._loads.get(organization_id, user_id, target_model, for_update=True)
            load.release(now)
            return await self._loads.upsert(load)

    async def set_availability(
        self,
        organization_id: UUID,
        user_id: UUID,
        target_model: TargetModel,
        now: datetime,
        is_available: bool | None = None,
        unavailable_until: datetime | None = None,
        max_capacity: int | None = None,
        weight: int | None = None,
    ) -> UserAssignmentLoad:
        """Update availability, capacity and weight; ``None`` leaves a field as is."""
        async with self._locks.hold((organization_id, user_id, target_model)):
            load = await self._loads.get(organization_id, user_id, target_model, for_update=True)
            if is_available is not None:
                load.is_available = is_available
                if is_available:
                    load.unavailable_until = None
            if unavailable_until is not None:
                load.unavailable_until = unavailable_until
            if max_capacity is not None:
                load.max_capacity = max_capacity
            if weight is not None:
                load.weight = weight
            load.updated_at = now
            logger.info(
                "Load %s/%s updated: available=%s until=%s cap=%d weight=%d",
                user_id, target_model.value, load.is_available,
                load.unavailable_until, load.max_capacity, load.weight,
            )
            return await self._loads.upsert(load)

    async def list(
        self, organization_id: UUID, target_model: TargetModel | None = None
    ) -> list[UserAssignmentLoad]:
        return await self._loads.list(organization_id, target_model)
