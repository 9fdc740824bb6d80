"""Tests for domain enums."""

from assignment_engine.domain.value_objects.enums import (
    AssignmentReason,
    RuleType,
    TargetModel,
    TerritoryType,
)


def test_rule_types():
    assert {t.value for t in RuleType} == {"round_robin", "weighted", "territory", "custom"}


def test_target_models_are_table_names():
    assert {m.value for m in TargetModel} == {"leads", "contacts", "opportunities"}


def test_reason_values():
    assert AssignmentReason.AUTO.value == "auto_assignment"
    assert AssignmentReason.ALREADY_ASSIGNED.value == "already_assigned"


def test_enums_compare_to_strings():
    assert TerritoryType("geographic") is TerritoryType.GEOGRAPHIC
    assert TargetModel.LEADS == "leads"
