"""Assignment config — one variant per rule type.

The persisted ``assignment_config`` JSON blob is decoded into exactly one of
these variants at the repository boundary, using ``rule_type`` as the
discriminator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union
from uuid import UUID

from assignment_engine.domain.errors import InvalidRuleConfiguration
from assignment_engine.domain.value_objects.enums import RuleType


@dataclass(frozen=True)
class RoundRobinConfig:
    users: tuple[UUID, ...]

    rule_type = RuleType.ROUND_ROBIN


@dataclass(frozen=True)
class WeightedEntry:
    user_id: UUID
    weight: int | None = None  # None = fall back to the user's load weight


@dataclass(frozen=True)
class WeightedConfig:
    assignments: tuple[WeightedEntry, ...]

    rule_type = RuleType.WEIGHTED


@dataclass(frozen=True)
class TerritoryConfig:
    territories: tuple[str, ...] = ()  # empty = every active territory

    rule_type = RuleType.TERRITORY


@dataclass(frozen=True)
class CustomConfig:
    logic: str = ""
    params: dict[str, Any] = field(default_factory=dict)

    rule_type = RuleType.CUSTOM


AssignmentConfig = Union[RoundRobinConfig, WeightedConfig, TerritoryConfig, CustomConfig]


def _uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise InvalidRuleConfiguration(f"Invalid user id in assignment config: {value!r}") from e


def parse_assignment_config(rule_type: RuleType | str, raw: Mapping[str, Any] | None) -> AssignmentConfig:
    """Decode a persisted config blob into the variant matching *rule_type*.

    Raises:
        InvalidRuleConfiguration: when the blob does not have the shape the
            rule type requires.
    """
    try:
        rule_type = RuleType(rule_type)
    except ValueError as e:
        raise InvalidRuleConfiguration(f"Unknown rule type: {rule_type!r}") from e
    raw = dict(raw or {})

    if rule_type == RuleType.ROUND_ROBIN:
        users = raw.get("users")
        if not isinstance(users, list):
            raise InvalidRuleConfiguration("round_robin config requires a 'users' list")
        # 'current_index' from legacy blobs is ignored: the cursor lives in round_robin_state
        return RoundRobinConfig(users=tuple(_uuid(u) for u in users))

    if rule_type == RuleType.WEIGHTED:
        entries = raw.get("assignments")
        if not isinstance(entries, list):
            raise InvalidRuleConfiguration("weighted config requires an 'assignments' list")
        parsed = []
        for entry in entries:
            if not isinstance(entry, Mapping) or "user_id" not in entry:
                raise InvalidRuleConfiguration("weighted entries need a 'user_id'")
            weight = entry.get("weight")
            if weight is not None and (not isinstance(weight, int) or weight < 0):
                raise InvalidRuleConfiguration(f"Invalid weight: {weight!r}")
            parsed.append(WeightedEntry(user_id=_uuid(entry["user_id"]), weight=weight))
        return WeightedConfig(assignments=tuple(parsed))

    if rule_type == RuleType.TERRITORY:
        names = raw.get("territories", [])
        if not isinstance(names, list):
            raise InvalidRuleConfiguration("territory config 'territories' must be a list")
        # Legacy blobs embed territory objects; only their names are used
        return TerritoryConfig(
            territories=tuple(n["name"] if isinstance(n, Mapping) else str(n) for n in names)
        )

    params = raw.get("params") or {}
    if not isinstance(params, Mapping):
        raise InvalidRuleConfiguration("custom config 'params' must be an object")
    return CustomConfig(logic=str(raw.get("logic", "")), params=dict(params))


def dump_assignment_config(config: AssignmentConfig) -> dict[str, Any]:
    """Encode a config variant back to its JSON-serialisable form."""
    if isinstance(config, RoundRobinConfig):
        return {"users": [str(u) for u in config.users]}
    if isinstance(config, WeightedConfig):
        return {
            "assignments": [
                {"user_id": str(e.user_id), "weight": e.weight} for e in config.assignments
            ]
        }
    if isinstance(config, TerritoryConfig):
        return {"territories": list(config.territories)}
    return {"logic": config.logic, "params": dict(config.params)}
