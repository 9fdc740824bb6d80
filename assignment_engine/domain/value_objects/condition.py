"""Condition value object — a single ``{field, operator, value}`` predicate."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from assignment_engine.domain.errors import InvalidRuleConfiguration

_MISSING = object()

# Canonical operator name for every accepted spelling
OPERATOR_ALIASES: dict[str, str] = {
    "=": "eq",
    "==": "eq",
    "eq": "eq",
    "equals": "eq",
    "!=": "neq",
    "neq": "neq",
    "not_equals": "neq",
    "in": "in",
    "not_in": "not_in",
    "contains": "contains",
    "starts_with": "starts_with",
    "ends_with": "ends_with",
    ">": "gt",
    "gt": "gt",
    ">=": "gte",
    "gte": "gte",
    "<": "lt",
    "lt": "lt",
    "<=": "lte",
    "lte": "lte",
    "exists": "exists",
    "not_exists": "not_exists",
}


_SEQUENCES = (list, tuple, set, frozenset)


def _norm(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    if isinstance(value, _SEQUENCES):
        return [_norm(v) for v in value]
    return value


def _as_list(value: Any) -> list:
    if isinstance(value, _SEQUENCES):
        return list(value)
    return [value]


def _equals(actual: Any, expected: Any) -> bool:
    # A multi-valued attribute equals a scalar when any element does
    if isinstance(actual, _SEQUENCES) and not isinstance(expected, _SEQUENCES):
        return any(_norm(a) == _norm(expected) for a in actual)
    return _norm(actual) == _norm(expected)


def _member(actual: Any, values: Any) -> bool:
    # Lists, not sets: attribute values may be unhashable
    candidates = [_norm(v) for v in _as_list(values)]
    if isinstance(actual, _SEQUENCES):
        return any(_norm(a) in candidates for a in actual)
    return _norm(actual) in candidates


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any = None

    def __post_init__(self) -> None:
        if not self.field:
            raise InvalidRuleConfiguration("Condition field must not be empty")
        if self.operator not in OPERATOR_ALIASES:
            raise InvalidRuleConfiguration(
                f"Unsupported condition operator: {self.operator!r}"
            )

    @property
    def canonical_operator(self) -> str:
        return OPERATOR_ALIASES[self.operator]

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        """Evaluate the predicate against an entity's attribute mapping.

        A missing attribute fails every operator except ``neq``, ``not_in``
        and ``not_exists``. Equality-style comparisons on strings are
        case-insensitive.
        """
        op = self.canonical_operator
        actual = attributes.get(self.field, _MISSING)

        if op == "exists":
            return actual is not _MISSING and actual is not None
        if op == "not_exists":
            return actual is _MISSING or actual is None
        if actual is _MISSING or actual is None:
            return op in ("neq", "not_in")

        if op == "eq":
            return _equals(actual, self.value)
        if op == "neq":
            return not _equals(actual, self.value)
        if op == "in":
            return _member(actual, self.value)
        if op == "not_in":
            return not _member(actual, self.value)
        if op == "contains":
            if isinstance(actual, str):
                return _norm(self.value) in _norm(actual)
            return _norm(self.value) in [_norm(v) for v in _as_list(actual)]
        if op == "starts_with":
            return str(_norm(actual)).startswith(str(_norm(self.value)))
        if op == "ends_with":
            return str(_norm(actual)).endswith(str(_norm(self.value)))

        # Ordering operators: incomparable types simply do not match
        try:
            if op == "gt":
                return actual > self.value
            if op == "gte":
                return actual >= self.value
            if op == "lt":
                return actual < self.value
            if op == "lte":
                return actual <= self.value
        except TypeError:
            return False
        return False

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Condition":
        try:
            return cls(field=raw["field"], operator=raw.get("operator", "="), value=raw.get("value"))
        except KeyError as e:
            raise InvalidRuleConfiguration(f"Condition is missing key {e}") from e


def matches_all(conditions: list[Condition], attributes: Mapping[str, Any]) -> bool:
    """Conditions are ANDed; an empty list always matches."""
    return all(c.matches(attributes) for c in conditions)


def parse_conditions(raw: Any) -> list[Condition]:
    """Build a condition list from its persisted form.

    Accepts the list form ``[{"field", "operator", "value"}, ...]`` or the
    mapping shorthand ``{"country": "USA", "state": ["CA", "OR"]}`` where a
    scalar means equality and a list means membership.
    """
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [
            Condition(field=k, operator="in" if isinstance(v, (list, tuple)) else "=", value=v)
            for k, v in raw.items()
        ]
    if isinstance(raw, (list, tuple)):
        return [c if isinstance(c, Condition) else Condition.from_dict(c) for c in raw]
    raise InvalidRuleConfiguration(f"Conditions must be a list or mapping, got {type(raw).__name__}")
