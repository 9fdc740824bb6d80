"""AssigneeResolver — turn a matched rule into a concrete user."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from assignment_engine.application.ports.load_repo import LoadRepository
from assignment_engine.application.ports.round_robin_repo import RoundRobinRepository
from assignment_engine.application.ports.territory_repo import TerritoryRepository
from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.errors import (
    InvalidRuleConfiguration,
    NoEligibleAssignee,
    RuleTypeNotImplemented,
)
from assignment_engine.domain.policies.round_robin import pick_next
from assignment_engine.domain.policies.territory_selection import (
    FirstAssignableUser,
    TerritoryUserPicker,
    match_territory,
)
from assignment_engine.domain.policies.weighted import pick_weighted
from assignment_engine.domain.value_objects.assignment_config import (
    CustomConfig,
    RoundRobinConfig,
    TerritoryConfig,
    WeightedConfig,
)

logger = logging.getLogger(__name__)


def rr_key(rule_id: UUID) -> str:
    return f"rule:{rule_id}"


@dataclass(frozen=True)
class Selection:
    """Outcome of a resolution."""

    user_id: UUID
    strategy: str
    capacity_cap: int | None  # None = executor must not re-check capacity
    metadata: dict[str, Any] = field(default_factory=dict)


class AssigneeResolver:
    """Strategy dispatch on ``rule_type``.

    Must be called while the caller holds the rule's lock: the round-robin
    cursor read and advance are only linearizable under it.
    """

    def __init__(
        self,
        load_repo: LoadRepository,
        territory_repo: TerritoryRepository,
        rr_repo: RoundRobinRepository,
        rng: random.Random | None = None,
        user_picker: TerritoryUserPicker | None = None,
    ):
        self._loads = load_repo
        self._territories = territory_repo
        self._rr = rr_repo
        self._rng = rng or random.Random()
        self._picker = user_picker or FirstAssignableUser()

    async def resolve(
        self,
        rule: AssignmentRule,
        attributes: Mapping[str, Any],
        now: datetime,
    ) -> Selection:
        config = rule.assignment_config
        if config.rule_type != rule.rule_type:
            raise InvalidRuleConfiguration(
                f"Rule {rule.id} is {rule.rule_type.value} but carries a "
                f"{config.rule_type.value} config"
            )

        if isinstance(config, RoundRobinConfig):
            selection = await self._round_robin(rule, config, now)
        elif isinstance(config, WeightedConfig):
            selection = await self._weighted(rule, config, now)
        elif isinstance(config, TerritoryConfig):
            selection = await self._territory(rule, config, attributes, now)
        elif isinstance(config, CustomConfig):
            raise RuleTypeNotImplemented(
                f"Rule {rule.name!r}: custom assignment rules are not implemented"
            )
        else:
            raise InvalidRuleConfiguration(f"Unsupported config for rule {rule.id}")

        logger.info(
            "Rule %s (%s) selected user %s",
            rule.name, selection.strategy, selection.user_id,
        )
        return selection

    # ─── Strategies ──────────────────────────────────────────────────

    async def _round_robin(
        self, rule: AssignmentRule, config: RoundRobinConfig, now: datetime
    ) -> Selection:
        key = rr_key(rule.id)
        counter = await self._rr.get_counter(key)
        loads = await self._loads_for(rule, config.users)

        chosen, steps = pick_next(
            config.users,
            counter,
            lambda u: self._is_eligible(loads[u], rule, now),
        )
        await self._rr.advance_counter(key, steps)

        return Selection(
            user_id=chosen,
            strategy=rule.rule_type.value,
            capacity_cap=rule.max_assignments_per_user,
            metadata={"cursor": counter, "skipped": steps - 1},
        )

    async def _weighted(
        self, rule: AssignmentRule, config: WeightedConfig, now: datetime
    ) -> Selection:
        loads = await self._loads_for(rule, [e.user_id for e in config.assignments])

        pool = []
        for entry in config.assignments:
            load = loads[entry.user_id]
            if not self._is_eligible(load, rule, now):
                continue
            weight = entry.weight if entry.weight is not None else load.weight
            pool.append((entry.user_id, weight))

        if not pool:
            raise NoEligibleAssignee(
                f"Rule {rule.name!r}: every weighted user is unavailable or at capacity"
            )
        chosen = pick_weighted(pool, self._rng)

        return Selection(
            user_id=chosen,
            strategy=rule.rule_type.value,
            capacity_cap=rule.max_assignments_per_user,
            metadata={
                "pool_size": len(pool),
                "total_weight": sum(w for _, w in pool if w > 0),
            },
        )

    async def _territory(
        self,
        rule: AssignmentRule,
        config: TerritoryConfig,
        attributes: Mapping[str, Any],
        now: datetime,
    ) -> Selection:
        territories = await self._territories.list(rule.organization_id, active_only=True)
        territory = match_territory(territories, attributes, config.territories)
        loads = await self._loads_for(rule, territory.assigned_users)
        chosen = self._picker.pick(territory, loads, now)

        # Capacity is not enforced on the territory path
        return Selection(
            user_id=chosen,
            strategy=rule.rule_type.value,
            capacity_cap=None,
            metadata={
                "territory_id": str(territory.id),
                "territory_name": territory.name,
                "picker": self._picker.name,
            },
        )

    # ─── Helpers ─────────────────────────────────────────────────────

    async def _loads_for(
        self, rule: AssignmentRule, user_ids: Iterable[UUID]
    ) -> dict[UUID, UserAssignmentLoad]:
        loads: dict[UUID, UserAssignmentLoad] = {}
        for user_id in user_ids:
            if user_id not in loads:
                loads[user_id] = await self._loads.get(
                    rule.organization_id, user_id, rule.target_model
                )
        return loads

    @staticmethod
    def _is_eligible(load: UserAssignmentLoad, rule: AssignmentRule, now: datetime) -> bool:
        return load.is_available_at(now) and not load.is_at_capacity(rule.max_assignments_per_user)
