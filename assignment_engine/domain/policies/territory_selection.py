"""TerritorySelectionPolicy — find the covering territory and pick a user."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from assignment_engine.domain.entities.territory import Territory
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.errors import NoEligibleAssignee, NoTerritoryMatch


def match_territory(
    territories: Iterable[Territory],
    attributes: Mapping[str, Any],
    names: Iterable[str] = (),
) -> Territory:
    """First active territory (by priority desc, then id) covering the entity.

    Args:
        territories: candidate territories of the organization.
        attributes: entity attributes.
        names: optional restriction to these territory names.

    Raises:
        NoTerritoryMatch: if no territory covers the entity.
    """
    allowed = set(names)
    candidates = sorted(
        (t for t in territories if t.is_active and (not allowed or t.name in allowed)),
        key=Territory.sort_key,
    )
    for territory in candidates:
        if territory.covers(attributes):
            return territory
    raise NoTerritoryMatch("No active territory covers the entity")


class TerritoryUserPicker(ABC):
    """Chooses a user from a matched territory's pool."""

    name: str = ""

    @abstractmethod
    def pick(
        self,
        territory: Territory,
        loads: Mapping[UUID, UserAssignmentLoad],
        now: datetime,
    ) -> UUID:
        ...


class FirstAssignableUser(TerritoryUserPicker):
    """Head of ``assigned_users``. Ignores availability and capacity."""

    name = "first_assignable_user"

    def pick(self, territory, loads, now):
        if not territory.assigned_users:
            raise NoEligibleAssignee(f"Territory {territory.name!r} has no assigned users")
        return territory.assigned_users[0]


class LoadAwareUser(TerritoryUserPicker):
    """Available user with the fewest active assignments; list order breaks ties."""

    name = "load_aware_user"

    def pick(self, territory, loads, now):
        best: tuple[int, int] | None = None
        chosen: UUID | None = None
        for position, user_id in enumerate(territory.assigned_users):
            load = loads[user_id]
            if not load.is_available_at(now) or load.is_at_capacity():
                continue
            key = (load.active_assignments, position)
            if best is None or key < best:
                best, chosen = key, user_id
        if chosen is None:
            raise NoEligibleAssignee(f"No available user in territory {territory.name!r}")
        return chosen


def build_user_picker(name: str) -> TerritoryUserPicker:
    """Map the ``TERRITORY_USER_PICKER`` setting to a picker instance."""
    if name == "load_aware":
        return LoadAwareUser()
    if name == "first":
        return FirstAssignableUser()
    raise ValueError(f"Unknown territory user picker: {name!r}")
