"""RuleMatchingPolicy — select the single winning rule for an entity."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.errors import NoMatchingRule
from assignment_engine.domain.value_objects.condition import matches_all


def rule_applies(rule: AssignmentRule, attributes: Mapping[str, Any], now: datetime) -> bool:
    return (
        rule.is_active
        and matches_all(rule.conditions, attributes)
        and rule.is_within_window(now)
        and rule.is_active_on(now)
    )


def match_rule(
    rules: Iterable[AssignmentRule],
    attributes: Mapping[str, Any],
    now: datetime,
) -> AssignmentRule:
    """Return the highest-priority active rule that applies at *now*.

    Higher ``priority`` wins; ties go to the lowest rule id so the choice is
    deterministic regardless of the order *rules* arrive in.

    Raises:
        NoMatchingRule: if no rule survives filtering.
    """
    survivors = [r for r in rules if rule_applies(r, attributes, now)]
    if not survivors:
        raise NoMatchingRule("No active assignment rule matches the entity")
    return min(survivors, key=AssignmentRule.sort_key)
