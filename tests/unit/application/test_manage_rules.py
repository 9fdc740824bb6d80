"""Tests for RuleAdminUseCase: rule/territory CRUD and reporting."""

from __future__ import annotations

import uuid
from datetime import time, timedelta

import pytest

from assignment_engine.domain.errors import (
    InvalidRuleConfiguration,
    RuleNotFound,
    TerritoryNotFound,
)
from assignment_engine.domain.value_objects.assignment_config import (
    RoundRobinConfig,
    WeightedConfig,
)
from assignment_engine.domain.value_objects.enums import RuleType, TargetModel

from fakes import NOW, ORG, build_admin, build_engine, make_rule


def _rule_data(users, **overrides):
    data = {
        "name": "US leads",
        "rule_type": "round_robin",
        "target_model": "leads",
        "priority": 10,
        "conditions": [{"field": "country", "operator": "=", "value": "USA"}],
        "assignment_config": {"users": [str(u) for u in users]},
    }
    data.update(overrides)
    return data


# ─── Rules ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_rule_parses_and_stamps(store):
    a = store.add_user("Alice")
    creator = uuid.uuid4()

    rule = await build_admin(store).create_rule(
        ORG,
        _rule_data([a], assignment_window_start="09:00", assignment_window_end="17:00",
                   active_days=[1, 2, 3, 4, 5]),
        created_by=creator,
    )

    assert rule.rule_type == RuleType.ROUND_ROBIN
    assert rule.assignment_config == RoundRobinConfig(users=(a,))
    assert rule.assignment_window_start == time(9)
    assert rule.active_days == frozenset({1, 2, 3, 4, 5})
    assert rule.created_at == NOW
    assert rule.created_by == creator
    assert rule.id in store.state.rules
    assert store.commits == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": ""},
        {"rule_type": "lottery"},
        {"target_model": "accounts"},
        {"priority": -1},
        {"active_days": [0]},
        {"assignment_window_start": "25:00"},
        {"assignment_window_start": "09:00", "assignment_window_end": "09:00"},
        {"assignment_config": {"assignments": []}},
        {"conditions": [{"field": "country", "operator": "~=", "value": "USA"}]},
    ],
)
@pytest.mark.asyncio
async def test_create_rule_rejects_invalid_input(store, overrides):
    a = store.add_user("Alice")

    with pytest.raises(InvalidRuleConfiguration):
        await build_admin(store).create_rule(ORG, _rule_data([a], **overrides))
    assert store.state.rules == {}


@pytest.mark.asyncio
async def test_update_rule_merges_partial_changes(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    admin = build_admin(store)
    rule = await admin.create_rule(ORG, _rule_data([a]))

    updated = await admin.update_rule(ORG, rule.id, {"priority": 50, "is_active": False})

    assert updated.priority == 50
    assert updated.is_active is False
    assert updated.name == "US leads"
    assert updated.assignment_config == RoundRobinConfig(users=(a,))
    assert updated.created_at == rule.created_at

    switched = await admin.update_rule(
        ORG, rule.id,
        {"rule_type": "weighted", "assignment_config": {"assignments": [{"user_id": str(b), "weight": 2}]}},
    )
    assert isinstance(switched.assignment_config, WeightedConfig)
    assert store.state.rules[rule.id].rule_type == RuleType.WEIGHTED


@pytest.mark.asyncio
async def test_update_rule_rejects_unknown_fields(store):
    a = store.add_user("Alice")
    admin = build_admin(store)
    rule = await admin.create_rule(ORG, _rule_data([a]))

    with pytest.raises(InvalidRuleConfiguration):
        await admin.update_rule(ORG, rule.id, {"current_index": 3})


@pytest.mark.asyncio
async def test_rule_lookups_are_scoped_to_organization(store):
    a = store.add_user("Alice")
    admin = build_admin(store)
    rule = await admin.create_rule(ORG, _rule_data([a]))

    with pytest.raises(RuleNotFound):
        await admin.get_rule(uuid.uuid4(), rule.id)
    with pytest.raises(RuleNotFound):
        await admin.delete_rule(uuid.uuid4(), rule.id)


@pytest.mark.asyncio
async def test_delete_rule(store):
    a = store.add_user("Alice")
    admin = build_admin(store)
    rule = await admin.create_rule(ORG, _rule_data([a]))

    await admin.delete_rule(ORG, rule.id)

    assert store.state.rules == {}
    with pytest.raises(RuleNotFound):
        await admin.delete_rule(ORG, rule.id)


@pytest.mark.asyncio
async def test_list_rules_orders_by_priority_and_filters(store):
    a = store.add_user("Alice")
    low = store.add_rule(make_rule(RoundRobinConfig(users=(a,)), name="low", priority=1))
    high = store.add_rule(make_rule(RoundRobinConfig(users=(a,)), name="high", priority=9))
    store.add_rule(
        make_rule(RoundRobinConfig(users=(a,)), name="off", priority=5, is_active=False)
    )
    store.add_rule(
        make_rule(RoundRobinConfig(users=(a,)), name="contacts", target_model=TargetModel.CONTACTS)
    )
    admin = build_admin(store)

    active_leads = await admin.list_rules(ORG, "leads", active_only=True)
    everything = await admin.list_rules(ORG)

    assert [r.id for r in active_leads] == [high.id, low.id]
    assert len(everything) == 4


# ─── Territories ────────────────────────────────────────────────────


def _territory_data(users, **overrides):
    data = {
        "name": "West",
        "territory_type": "geographic",
        "conditions": {"state": ["CA", "OR"]},
        "assigned_users": [str(u) for u in users],
        "priority": 3,
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_territory_requires_conditions(store):
    with pytest.raises(InvalidRuleConfiguration):
        await build_admin(store).create_territory(ORG, _territory_data([], conditions=[]))


@pytest.mark.asyncio
async def test_territory_names_are_unique_per_organization(store):
    a = store.add_user("Alice")
    admin = build_admin(store)
    await admin.create_territory(ORG, _territory_data([a]))

    with pytest.raises(InvalidRuleConfiguration):
        await admin.create_territory(ORG, _territory_data([a]))

    east = await admin.create_territory(ORG, _territory_data([a], name="East"))
    with pytest.raises(InvalidRuleConfiguration):
        await admin.update_territory(ORG, east.id, {"name": "West"})


@pytest.mark.asyncio
async def test_update_and_delete_territory(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    admin = build_admin(store)
    territory = await admin.create_territory(ORG, _territory_data([a]))

    updated = await admin.update_territory(ORG, territory.id, {"assigned_users": [str(b)]})

    assert updated.assigned_users == [b]
    assert updated.covers({"state": "ca"})

    await admin.delete_territory(ORG, territory.id)
    with pytest.raises(TerritoryNotFound):
        await admin.get_territory(ORG, territory.id)


# ─── Reporting ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reporting_reflects_assignments(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    rule = store.add_rule(make_rule(RoundRobinConfig(users=(a, b)), name="RR"))
    store.add_rule(make_rule(RoundRobinConfig(users=(a,)), name="unused", priority=-1))
    for _ in range(3):
        lead = store.add_target()
        await build_engine(store).resolve_assignment(ORG, TargetModel.LEADS, lead, {})
    admin = build_admin(store)

    stats = {s.user_id: s for s in await admin.user_stats(ORG, "leads")}
    assert stats[a].user_name == "Alice"
    assert stats[a].assignments_today == 2
    assert stats[b].assignments_today == 1
    assert stats[a].active_assignments == 2

    effectiveness = await admin.rule_effectiveness(ORG)
    assert effectiveness[0].rule_id == rule.id
    assert effectiveness[0].total_assignments == 3
    assert effectiveness[0].unique_assignees == 2
    assert effectiveness[0].last_used_at == NOW
    assert effectiveness[1].total_assignments == 0

    history = await admin.history(ORG, limit=2)
    assert len(history) == 2
    assert all(h.rule_name == "RR" for h in history)


@pytest.mark.asyncio
async def test_user_stats_ignore_yesterdays_assignments(store):
    a = store.add_user("Alice")
    store.add_rule(make_rule(RoundRobinConfig(users=(a,))))
    lead = store.add_target()
    await build_engine(store).resolve_assignment(ORG, TargetModel.LEADS, lead, {})

    tomorrow = build_admin(store, clock=lambda: NOW + timedelta(days=1))
    [stat] = await tomorrow.user_stats(ORG)

    assert stat.assignments_today == 0
    assert stat.total_assignments == 1
