"""Tests for RoundRobinPolicy."""

import uuid

import pytest

from assignment_engine.domain.errors import NoEligibleAssignee
from assignment_engine.domain.policies.round_robin import pick_next

A, B, C = (uuid.UUID(int=i) for i in (1, 2, 3))


def _everyone(_user):
    return True


def test_pick_single_candidate():
    chosen, steps = pick_next([A], 0, _everyone)
    assert chosen == A
    assert steps == 1


def test_pick_three_candidates_cycles():
    users = [A, B, C]
    picked = []
    counter = 0
    for _ in range(6):
        chosen, steps = pick_next(users, counter, _everyone)
        picked.append(chosen)
        counter += steps
    assert picked == [A, B, C, A, B, C]


def test_skipped_user_loses_turn():
    """B unavailable → A, C, A, C with no catch-up when B returns."""
    users = [A, B, C]
    counter = 0
    picked = []
    for _ in range(4):
        chosen, steps = pick_next(users, counter, lambda u: u != B)
        picked.append(chosen)
        counter += steps
    assert picked == [A, C, A, C]

    # B is back: rotation resumes from the stored cursor
    chosen, _ = pick_next(users, counter, _everyone)
    assert chosen == A
    chosen, _ = pick_next(users, counter + 1, _everyone)
    assert chosen == B


def test_steps_cover_skipped_positions():
    chosen, steps = pick_next([A, B, C], 0, lambda u: u == C)
    assert chosen == C
    assert steps == 3


def test_counter_wraps_around():
    chosen, steps = pick_next([A, B], 1001, _everyone)
    assert chosen == B
    assert steps == 1


def test_pick_empty_raises():
    with pytest.raises(NoEligibleAssignee, match="no users configured"):
        pick_next([], 0, _everyone)


def test_nobody_eligible_raises():
    with pytest.raises(NoEligibleAssignee):
        pick_next([A, B], 0, lambda u: False)
