"""RuleAdminUseCase — rule/territory CRUD and assignment reporting."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, time
from typing import Any
from uuid import UUID

from assignment_engine.application.ports.history_repo import HistoryRepository
from assignment_engine.application.ports.load_repo import LoadRepository
from assignment_engine.application.ports.rule_repo import RuleRepository
from assignment_engine.application.ports.territory_repo import TerritoryRepository
from assignment_engine.application.ports.unit_of_work import UnitOfWork
from assignment_engine.application.ports.user_directory import UserDirectory
from assignment_engine.application.use_cases.assign_target import utc_now
from assignment_engine.domain.entities.assignment_history import AssignmentHistory
from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.entities.stats import RuleEffectiveness, UserAssignmentStats
from assignment_engine.domain.entities.territory import Territory
from assignment_engine.domain.errors import (
    InvalidRuleConfiguration,
    RuleNotFound,
    TerritoryNotFound,
)
from assignment_engine.domain.value_objects.assignment_config import (
    dump_assignment_config,
    parse_assignment_config,
)
from assignment_engine.domain.value_objects.condition import parse_conditions
from assignment_engine.domain.value_objects.enums import (
    AssignToType,
    RuleType,
    TargetModel,
    TerritoryType,
)

logger = logging.getLogger(__name__)

RULE_FIELDS = frozenset({
    "name", "description", "rule_type", "target_model", "priority", "is_active",
    "conditions", "assignment_config", "assign_to_type", "max_assignments_per_user",
    "assignment_window_start", "assignment_window_end", "active_days",
})

TERRITORY_FIELDS = frozenset({
    "name", "description", "territory_type", "conditions", "assigned_users",
    "assigned_teams", "priority", "is_active",
})


def _enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidRuleConfiguration(f"Unknown {label}: {value!r}") from e


def _time(value: Any) -> time | None:
    if value is None or isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError as e:
        raise InvalidRuleConfiguration(f"Invalid time of day: {value!r}") from e


def _active_days(value: Any) -> frozenset[int]:
    days = frozenset(int(d) for d in (value or ()))
    if any(d < 1 or d > 7 for d in days):
        raise InvalidRuleConfiguration("active_days must be ISO weekdays 1..7")
    return days


def _non_negative(value: Any, label: str) -> int:
    value = int(value)
    if value < 0:
        raise InvalidRuleConfiguration(f"{label} must be >= 0")
    return value


def build_rule(organization_id: UUID, data: Mapping[str, Any], rule_id: UUID | None = None) -> AssignmentRule:
    """Validate raw rule fields and build the entity.

    ``assignment_config`` may be a raw mapping; it is decoded into the
    variant required by ``rule_type``.
    """
    if not data.get("name"):
        raise InvalidRuleConfiguration("Rule name is required")
    rule_type = _enum(RuleType, data.get("rule_type"), "rule type")
    config = data.get("assignment_config")
    if isinstance(config, Mapping) or config is None:
        config = parse_assignment_config(rule_type, config)
    elif config.rule_type != rule_type:
        raise InvalidRuleConfiguration("assignment_config does not match rule_type")

    window_start = _time(data.get("assignment_window_start"))
    window_end = _time(data.get("assignment_window_end"))
    if window_start is not None and window_start == window_end:
        raise InvalidRuleConfiguration(
            "assignment window start and end are equal; the rule could never match"
        )

    return AssignmentRule(
        id=rule_id or uuid.uuid4(),
        organization_id=organization_id,
        name=str(data["name"]),
        description=data.get("description") or "",
        rule_type=rule_type,
        target_model=_enum(TargetModel, data.get("target_model"), "target model"),
        assignment_config=config,
        priority=_non_negative(data.get("priority", 0), "priority"),
        is_active=bool(data.get("is_active", True)),
        conditions=parse_conditions(data.get("conditions")),
        assign_to_type=_enum(AssignToType, data.get("assign_to_type", "user"), "assign_to_type"),
        max_assignments_per_user=_non_negative(
            data.get("max_assignments_per_user", 0), "max_assignments_per_user"
        ),
        assignment_window_start=window_start,
        assignment_window_end=window_end,
        active_days=_active_days(data.get("active_days")),
    )


def _rule_as_dict(rule: AssignmentRule) -> dict[str, Any]:
    return {
        "name": rule.name,
        "description": rule.description,
        "rule_type": rule.rule_type,
        "target_model": rule.target_model,
        "priority": rule.priority,
        "is_active": rule.is_active,
        "conditions": rule.conditions,
        "assignment_config": dump_assignment_config(rule.assignment_config),
        "assign_to_type": rule.assign_to_type,
        "max_assignments_per_user": rule.max_assignments_per_user,
        "assignment_window_start": rule.assignment_window_start,
        "assignment_window_end": rule.assignment_window_end,
        "active_days": rule.active_days,
    }


def build_territory(
    organization_id: UUID, data: Mapping[str, Any], territory_id: UUID | None = None
) -> Territory:
    if not data.get("name"):
        raise InvalidRuleConfiguration("Territory name is required")
    conditions = parse_conditions(data.get("conditions"))
    if not conditions:
        raise InvalidRuleConfiguration("Territory needs at least one condition")
    return Territory(
        id=territory_id or uuid.uuid4(),
        organization_id=organization_id,
        name=str(data["name"]),
        description=data.get("description") or "",
        territory_type=_enum(
            TerritoryType, data.get("territory_type", "geographic"), "territory type"
        ),
        conditions=conditions,
        assigned_users=[UUID(str(u)) for u in data.get("assigned_users") or ()],
        assigned_teams=[UUID(str(t)) for t in data.get("assigned_teams") or ()],
        priority=_non_negative(data.get("priority", 0), "priority"),
        is_active=bool(data.get("is_active", True)),
    )


class RuleAdminUseCase:
    """Thin administrative surface over the rule and territory stores."""

    def __init__(
        self,
        rule_repo: RuleRepository,
        territory_repo: TerritoryRepository,
        history_repo: HistoryRepository,
        load_repo: LoadRepository,
        user_directory: UserDirectory,
        unit_of_work: UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._rules = rule_repo
        self._territories = territory_repo
        self._history = history_repo
        self._loads = load_repo
        self._users = user_directory
        self._uow = unit_of_work
        self._clock = clock

    # ─── Rules ───────────────────────────────────────────────────────

    async def create_rule(
        self, organization_id: UUID, data: Mapping[str, Any], created_by: UUID | None = None
    ) -> AssignmentRule:
        rule = build_rule(organization_id, data)
        now = self._clock()
        rule.created_at = rule.updated_at = now
        rule.created_by = rule.updated_by = created_by
        saved = await self._committed(self._rules.save(rule))
        logger.info("Created %s rule %s for %s", saved.rule_type.value, saved.name, saved.target_model.value)
        return saved

    async def get_rule(self, organization_id: UUID, rule_id: UUID) -> AssignmentRule:
        rule = await self._rules.get_by_id(organization_id, rule_id)
        if rule is None:
            raise RuleNotFound(f"Assignment rule {rule_id} not found")
        return rule

    async def update_rule(
        self,
        organization_id: UUID,
        rule_id: UUID,
        changes: Mapping[str, Any],
        updated_by: UUID | None = None,
    ) -> AssignmentRule:
        """Partial update; unknown keys are rejected, the result is revalidated."""
        unknown = set(changes) - RULE_FIELDS
        if unknown:
            raise InvalidRuleConfiguration(f"Unknown rule fields: {sorted(unknown)}")

        existing = await self.get_rule(organization_id, rule_id)
        merged = _rule_as_dict(existing)
        merged.update(changes)
        rule = build_rule(organization_id, merged, rule_id=existing.id)
        rule.created_at, rule.created_by = existing.created_at, existing.created_by
        rule.updated_at, rule.updated_by = self._clock(), updated_by
        return await self._committed(self._rules.update(rule))

    async def delete_rule(self, organization_id: UUID, rule_id: UUID) -> None:
        if not await self._committed(self._rules.delete(organization_id, rule_id)):
            raise RuleNotFound(f"Assignment rule {rule_id} not found")
        logger.info("Deleted assignment rule %s", rule_id)

    async def list_rules(
        self,
        organization_id: UUID,
        target_model: TargetModel | str | None = None,
        active_only: bool = False,
    ) -> list[AssignmentRule]:
        model = _enum(TargetModel, target_model, "target model") if target_model else None
        return await self._rules.list(organization_id, model, active_only)

    # ─── Territories ─────────────────────────────────────────────────

    async def create_territory(
        self, organization_id: UUID, data: Mapping[str, Any], created_by: UUID | None = None
    ) -> Territory:
        territory = build_territory(organization_id, data)
        await self._ensure_unique_name(organization_id, territory)
        now = self._clock()
        territory.created_at = territory.updated_at = now
        territory.created_by = territory.updated_by = created_by
        return await self._committed(self._territories.save(territory))

    async def get_territory(self, organization_id: UUID, territory_id: UUID) -> Territory:
        territory = await self._territories.get_by_id(organization_id, territory_id)
        if territory is None:
            raise TerritoryNotFound(f"Territory {territory_id} not found")
        return territory

    async def update_territory(
        self,
        organization_id: UUID,
        territory_id: UUID,
        changes: Mapping[str, Any],
        updated_by: UUID | None = None,
    ) -> Territory:
        unknown = set(changes) - TERRITORY_FIELDS
        if unknown:
            raise InvalidRuleConfiguration(f"Unknown territory fields: {sorted(unknown)}")

        existing = await self.get_territory(organization_id, territory_id)
        merged: dict[str, Any] = {
            "name": existing.name,
            "description": existing.description,
            "territory_type": existing.territory_type,
            "conditions": existing.conditions,
            "assigned_users": existing.assigned_users,
            "assigned_teams": existing.assigned_teams,
            "priority": existing.priority,
            "is_active": existing.is_active,
        }
        merged.update(changes)
        territory = build_territory(organization_id, merged, territory_id=existing.id)
        if territory.name != existing.name:
            await self._ensure_unique_name(organization_id, territory)
        territory.created_at, territory.created_by = existing.created_at, existing.created_by
        territory.updated_at, territory.updated_by = self._clock(), updated_by
        return await self._committed(self._territories.update(territory))

    async def delete_territory(self, organization_id: UUID, territory_id: UUID) -> None:
        if not await self._committed(self._territories.delete(organization_id, territory_id)):
            raise TerritoryNotFound(f"Territory {territory_id} not found")

    async def list_territories(
        self, organization_id: UUID, active_only: bool = False
    ) -> list[Territory]:
        return await self._territories.list(organization_id, active_only)

    # ─── Reporting ───────────────────────────────────────────────────

    async def history(
        self,
        organization_id: UUID,
        target_model: TargetModel | str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AssignmentHistory]:
        model = _enum(TargetModel, target_model, "target model") if target_model else None
        return await self._history.list(organization_id, model, since, limit)

    async def user_stats(
        self, organization_id: UUID, target_model: TargetModel | str | None = None
    ) -> list[UserAssignmentStats]:
        """Load rows enriched with display names and today's assignment count."""
        model = _enum(TargetModel, target_model, "target model") if target_model else None
        now = self._clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        loads = await self._loads.list(organization_id, model)
        today = await self._history.assignments_since(organization_id, model, start_of_day)

        stats = []
        for load in loads:
            stats.append(
                UserAssignmentStats(
                    user_id=load.user_id,
                    user_name=await self._users.get_display_name(load.user_id),
                    target_model=load.target_model.value,
                    active_assignments=load.active_assignments,
                    total_assignments=load.total_assignments,
                    last_assigned_at=load.last_assigned_at,
                    weight=load.weight,
                    is_available=load.is_available_at(now),
                    assignments_today=today.get(load.user_id, 0),
                )
            )
        return stats

    async def rule_effectiveness(self, organization_id: UUID) -> list[RuleEffectiveness]:
        return await self._history.rule_effectiveness(organization_id, self._clock())

    # ─── Helpers ─────────────────────────────────────────────────────

    async def _ensure_unique_name(self, organization_id: UUID, territory: Territory) -> None:
        for other in await self._territories.list(organization_id):
            if other.name == territory.name and other.id != territory.id:
                raise InvalidRuleConfiguration(f"Territory name {territory.name!r} already exists")

    async def _committed(self, aw):
        try:
            result = await aw
            await self._uow.commit()
        except Exception:
            await self._uow.rollback()
            raise
        return result

