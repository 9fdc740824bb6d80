"""Tests for AssignmentEngine end to end with in-memory fakes."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import time

import pytest

from assignment_engine.application.locks import KeyedLock
from assignment_engine.application.use_cases.resolve_assignee import rr_key
from assignment_engine.domain.errors import (
    AssignmentTimeout,
    ConcurrentUpdateConflict,
    NoMatchingRule,
    PersistenceFailure,
    TargetNotFound,
)
from assignment_engine.domain.value_objects.assignment_config import (
    RoundRobinConfig,
    WeightedConfig,
    WeightedEntry,
)
from assignment_engine.domain.value_objects.condition import Condition
from assignment_engine.domain.value_objects.enums import TargetModel

from fakes import (
    ORG,
    FakeHistoryRepo,
    FakeLoadRepo,
    FakeTargetRepo,
    build_engine,
    make_rule,
)

LEADS = TargetModel.LEADS


# ─── Failure-injecting fakes ────────────────────────────────────────


class FailingHistoryRepo(FakeHistoryRepo):
    async def append(self, history):
        raise PersistenceFailure("history insert failed")


class SlowTargetRepo(FakeTargetRepo):
    async def get(self, organization_id, target_model, target_id, for_update=False):
        await asyncio.sleep(1)
        return await super().get(organization_id, target_model, target_id, for_update)


class RacingLoadRepo(FakeLoadRepo):
    """Pretends another writer filled the user's slot before the locked read."""

    def __init__(self, store, races: int):
        super().__init__(store)
        self.races = races

    async def get(self, organization_id, user_id, target_model, for_update=False):
        load = await super().get(organization_id, user_id, target_model, for_update)
        if for_update and self.races > 0:
            self.races -= 1
            load.active_assignments = 1
        return load


# ─── Happy paths ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_highest_priority_rule_routes_and_is_recorded(store):
    a, b, c = store.add_user("Alice"), store.add_user("Bob"), store.add_user("Carol")
    r = store.add_rule(make_rule(RoundRobinConfig(users=(a, b)), name="R", priority=10))
    store.add_rule(
        make_rule(WeightedConfig(assignments=(WeightedEntry(c, 1),)), name="R2", priority=5)
    )
    lead = store.add_target(name="Acme")

    result = await build_engine(store).resolve_assignment(ORG, "leads", lead, {"country": "USA"})

    assert result.changed is True
    assert result.assigned_to_id == a
    assert result.assigned_to_name == "Alice"
    assert result.reason == "auto_assignment"
    assert result.rule_id == r.id
    assert store.owner_of(lead) == a

    [history] = store.state.history
    assert history.rule_name == "R"
    assert history.target_name == "Acme"
    assert history.assigned_to_name == "Alice"
    assert history.previous_assigned_to_id is None
    assert history.metadata["strategy"] == "round_robin"
    assert history.id == result.history_id

    load = store.load_of(a)
    assert (load.active_assignments, load.total_assignments) == (1, 1)
    assert store.commits == 1


@pytest.mark.asyncio
async def test_priority_swap_changes_winner(store):
    a, c = store.add_user("Alice"), store.add_user("Carol")
    store.add_rule(make_rule(RoundRobinConfig(users=(a,)), name="R", priority=10))
    store.add_rule(
        make_rule(WeightedConfig(assignments=(WeightedEntry(c, 1),)), name="R2", priority=20)
    )
    lead = store.add_target()

    result = await build_engine(store).resolve_assignment(ORG, LEADS, lead, {})

    assert result.assigned_to_id == c
    assert store.state.history[0].rule_name == "R2"


@pytest.mark.asyncio
async def test_reassignment_releases_previous_owner(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    store.set_load(a, active_assignments=1, total_assignments=1)
    store.add_rule(make_rule(RoundRobinConfig(users=(b,)), name="R"))
    lead = store.add_target(assigned_to=a)

    result = await build_engine(store).resolve_assignment(ORG, LEADS, lead, {})

    assert result.reason == "reassignment"
    assert store.owner_of(lead) == b
    assert store.load_of(a).active_assignments == 0
    assert store.load_of(b).active_assignments == 1
    history = store.state.history[0]
    assert history.previous_assigned_to_id == a
    assert history.previous_assigned_to_name == "Alice"


@pytest.mark.asyncio
async def test_resolving_to_current_owner_is_noop_but_advances_cursor(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    rule = store.add_rule(make_rule(RoundRobinConfig(users=(a, b))))
    lead = store.add_target(assigned_to=a)

    result = await build_engine(store).resolve_assignment(ORG, LEADS, lead, {})

    assert result.changed is False
    assert result.reason == "already_assigned"
    assert result.history_id is None
    assert store.state.history == []
    assert store.load_of(a) is None
    assert store.state.counters[rr_key(rule.id)] == 1
    assert store.commits == 1


@pytest.mark.asyncio
async def test_explicit_assignment_is_idempotent(store):
    a = store.add_user("Alice")
    lead = store.add_target()
    engine = build_engine(store)

    first = await engine.assign_explicitly(ORG, LEADS, lead, a)
    second = await engine.assign_explicitly(ORG, LEADS, lead, a)

    assert first.changed is True
    assert first.reason == "manual"
    assert second.changed is False
    assert second.reason == "already_assigned"
    assert len(store.state.history) == 1
    assert store.state.history[0].rule_id is None
    assert store.state.history[0].metadata == {"manual": True}
    assert store.load_of(a).active_assignments == 1


@pytest.mark.asyncio
async def test_explicit_assignment_bypasses_rules(store):
    a = store.add_user("Alice")
    contact = store.add_target(TargetModel.CONTACTS, name="Jane")

    result = await build_engine(store).assign_explicitly(
        ORG, "contacts", contact, a, reason="transfer"
    )

    assert result.reason == "transfer"
    assert store.owner_of(contact, TargetModel.CONTACTS) == a


# ─── Failures ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_no_matching_rule(store):
    a = store.add_user("Alice")
    store.add_rule(
        make_rule(
            RoundRobinConfig(users=(a,)),
            assignment_window_start=time(9),
            assignment_window_end=time(10),
        )
    )
    lead = store.add_target()

    with pytest.raises(NoMatchingRule):
        await build_engine(store).resolve_assignment(ORG, LEADS, lead, {})
    assert store.owner_of(lead) is None
    assert store.commits == 0


@pytest.mark.asyncio
async def test_rules_for_other_models_do_not_apply(store):
    a = store.add_user("Alice")
    store.add_rule(make_rule(RoundRobinConfig(users=(a,)), target_model=TargetModel.CONTACTS))
    lead = store.add_target()

    with pytest.raises(NoMatchingRule):
        await build_engine(store).resolve_assignment(ORG, LEADS, lead, {})


@pytest.mark.asyncio
async def test_unknown_target(store):
    a = store.add_user("Alice")
    store.add_rule(make_rule(RoundRobinConfig(users=(a,))))

    with pytest.raises(TargetNotFound):
        await build_engine(store).resolve_assignment(ORG, LEADS, ORG, {})
    assert store.rollbacks == 1


@pytest.mark.asyncio
async def test_failure_mid_execution_rolls_back_everything(store):
    a = store.add_user("Alice")
    rule = store.add_rule(make_rule(RoundRobinConfig(users=(a,))))
    lead = store.add_target()
    engine = build_engine(store, history_repo=FailingHistoryRepo(store))

    with pytest.raises(PersistenceFailure):
        await engine.resolve_assignment(ORG, LEADS, lead, {})

    assert store.owner_of(lead) is None
    assert store.state.counters.get(rr_key(rule.id), 0) == 0
    assert store.load_of(a) is None
    assert (store.commits, store.rollbacks) == (0, 1)


@pytest.mark.asyncio
async def test_timeout_aborts_before_commit(store):
    a = store.add_user("Alice")
    store.add_rule(make_rule(RoundRobinConfig(users=(a,))))
    lead = store.add_target()
    engine = build_engine(store, target_repo=SlowTargetRepo(store))

    with pytest.raises(AssignmentTimeout):
        await engine.resolve_assignment(ORG, LEADS, lead, {}, timeout=0.05)

    assert store.owner_of(lead) is None
    assert (store.commits, store.rollbacks) == (0, 1)


@pytest.mark.asyncio
async def test_conflict_is_retried_with_fresh_resolution(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    rule = store.add_rule(make_rule(RoundRobinConfig(users=(a, b)), max_assignments_per_user=1))
    lead = store.add_target()
    engine = build_engine(store, load_repo=RacingLoadRepo(store, races=1))

    result = await engine.resolve_assignment(ORG, LEADS, lead, {})

    assert result.assigned_to_id == a
    assert store.rollbacks == 1
    assert store.commits == 1
    assert store.state.history[0].metadata["attempt"] == 2
    # The rolled-back attempt did not consume a turn
    assert store.state.counters[rr_key(rule.id)] == 1


@pytest.mark.asyncio
async def test_conflict_surfaces_after_retries(store):
    a = store.add_user("Alice")
    store.add_rule(make_rule(RoundRobinConfig(users=(a,)), max_assignments_per_user=1))
    lead = store.add_target()
    engine = build_engine(store, load_repo=RacingLoadRepo(store, races=10), retry_attempts=3)

    with pytest.raises(ConcurrentUpdateConflict):
        await engine.resolve_assignment(ORG, LEADS, lead, {})

    assert store.rollbacks == 3
    assert store.state.history == []
    assert store.owner_of(lead) is None


# ─── Concurrency ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_concurrent_resolutions_are_evenly_distributed(store):
    users = tuple(store.add_user(f"U{i}") for i in range(5))
    store.add_rule(
        make_rule(RoundRobinConfig(users=users), conditions=[Condition("source", "=", "web")])
    )
    leads = [store.add_target(name=f"lead-{i}") for i in range(100)]
    rule_locks, user_locks = KeyedLock(), KeyedLock()

    results = await asyncio.gather(
        *(
            build_engine(store, rule_locks=rule_locks, user_locks=user_locks).resolve_assignment(
                ORG, LEADS, lead, {"source": "web"}
            )
            for lead in leads
        )
    )

    counts = Counter(r.assigned_to_id for r in results)
    assert set(counts.values()) == {20}
    assert all(store.load_of(u).active_assignments == 20 for u in users)
    assert len(store.state.history) == 100
    assert len(rule_locks) == 0
    assert len(user_locks) == 0


class LockOrderLoadRepo(FakeLoadRepo):
    def __init__(self, store):
        super().__init__(store)
        self.locked = []

    async def get(self, organization_id, user_id, target_model, for_update=False):
        if for_update:
            self.locked.append(user_id)
        return await super().get(organization_id, user_id, target_model, for_update)


@pytest.mark.asyncio
async def test_concurrent_explicit_assignments_of_one_target_keep_loads_consistent(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    lead = store.add_target()

    first, second = await asyncio.gather(
        build_engine(store).assign_explicitly(ORG, LEADS, lead, a),
        build_engine(store).assign_explicitly(ORG, LEADS, lead, b),
    )

    assert first.changed and second.changed
    assert store.owner_of(lead) == b
    assert store.load_of(a).active_assignments + store.load_of(b).active_assignments == 1
    assert store.load_of(b).active_assignments == 1
    assert [h.previous_assigned_to_id for h in store.state.history] == [None, a]


@pytest.mark.asyncio
async def test_reassignment_locks_load_rows_in_user_id_order(store):
    a, b = store.add_user("Alice"), store.add_user("Bob")
    lead_a, lead_b = store.add_target(assigned_to=a), store.add_target(assigned_to=b)
    loads = LockOrderLoadRepo(store)
    engine = build_engine(store, load_repo=loads)

    await engine.assign_explicitly(ORG, LEADS, lead_a, b)
    await engine.assign_explicitly(ORG, LEADS, lead_b, a)

    expected = sorted([a, b], key=str)
    assert loads.locked == expected + expected


@pytest.mark.asyncio
async def test_list_valued_attributes_route_normally(store):
    a = store.add_user("Alice")
    store.add_rule(
        make_rule(RoundRobinConfig(users=(a,)), conditions=[Condition("tags", "in", ["vip", "hot"])])
    )
    lead = store.add_target()

    result = await build_engine(store).resolve_assignment(ORG, LEADS, lead, {"tags": ["vip"]})

    assert result.assigned_to_id == a
