"""Tests for TerritorySelectionPolicy."""

import uuid
from datetime import datetime, timezone

import pytest

from assignment_engine.domain.entities.territory import Territory
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.errors import NoEligibleAssignee, NoTerritoryMatch
from assignment_engine.domain.policies.territory_selection import (
    FirstAssignableUser,
    LoadAwareUser,
    build_user_picker,
    match_territory,
)
from assignment_engine.domain.value_objects.condition import parse_conditions
from assignment_engine.domain.value_objects.enums import TargetModel

ORG = uuid.uuid4()
NOW = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
U1, U2, U3 = (uuid.UUID(int=i) for i in (1, 2, 3))


def _territory(name: str, conditions, priority: int = 0, users=(), **fields) -> Territory:
    return Territory(
        id=uuid.uuid4(),
        organization_id=ORG,
        name=name,
        conditions=parse_conditions(conditions),
        assigned_users=list(users),
        priority=priority,
        **fields,
    )


def _load(user_id, **fields) -> UserAssignmentLoad:
    return UserAssignmentLoad(
        organization_id=ORG, user_id=user_id, target_model=TargetModel.LEADS, **fields
    )


def test_first_covering_territory_by_priority():
    west = _territory("West", {"state": ["CA", "OR"]}, priority=1)
    usa = _territory("USA", {"country": "USA"}, priority=5)
    attrs = {"country": "USA", "state": "CA"}
    assert match_territory([west, usa], attrs) is usa


def test_name_restriction():
    west = _territory("West", {"state": ["CA"]}, priority=1)
    usa = _territory("USA", {"country": "USA"}, priority=5)
    attrs = {"country": "USA", "state": "CA"}
    assert match_territory([west, usa], attrs, names=["West"]) is west


def test_inactive_territory_ignored():
    usa = _territory("USA", {"country": "USA"}, is_active=False)
    with pytest.raises(NoTerritoryMatch):
        match_territory([usa], {"country": "USA"})


def test_territory_without_conditions_never_matches():
    catch_all = _territory("All", [])
    with pytest.raises(NoTerritoryMatch):
        match_territory([catch_all], {"country": "USA"})


def test_no_covering_territory():
    with pytest.raises(NoTerritoryMatch):
        match_territory([_territory("EU", {"country": "France"})], {"country": "USA"})


def test_first_assignable_user_ignores_load():
    t = _territory("USA", {"country": "USA"}, users=[U1, U2])
    loads = {U1: _load(U1, is_available=False, max_capacity=1, active_assignments=5), U2: _load(U2)}
    assert FirstAssignableUser().pick(t, loads, NOW) == U1


def test_first_assignable_user_empty_pool():
    t = _territory("USA", {"country": "USA"})
    with pytest.raises(NoEligibleAssignee):
        FirstAssignableUser().pick(t, {}, NOW)


def test_load_aware_user_picks_least_loaded_available():
    t = _territory("USA", {"country": "USA"}, users=[U1, U2, U3])
    loads = {
        U1: _load(U1, active_assignments=1),
        U2: _load(U2, active_assignments=0, is_available=False),
        U3: _load(U3, active_assignments=0),
    }
    assert LoadAwareUser().pick(t, loads, NOW) == U3


def test_load_aware_user_tie_keeps_list_order():
    t = _territory("USA", {"country": "USA"}, users=[U2, U1])
    loads = {U1: _load(U1), U2: _load(U2)}
    assert LoadAwareUser().pick(t, loads, NOW) == U2


def test_load_aware_user_nobody_available():
    t = _territory("USA", {"country": "USA"}, users=[U1])
    loads = {U1: _load(U1, max_capacity=2, active_assignments=2)}
    with pytest.raises(NoEligibleAssignee):
        LoadAwareUser().pick(t, loads, NOW)


def test_build_user_picker():
    assert isinstance(build_user_picker("first"), FirstAssignableUser)
    assert isinstance(build_user_picker("load_aware"), LoadAwareUser)
    with pytest.raises(ValueError):
        build_user_picker("random")
