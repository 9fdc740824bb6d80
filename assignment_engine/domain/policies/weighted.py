"""WeightedPolicy — weighted random pick over the eligible pool."""

from __future__ import annotations

import random
from collections.abc import Sequence
from uuid import UUID

from assignment_engine.domain.errors import NoEligibleAssignee


def pick_weighted(
    candidates: Sequence[tuple[UUID, int]],
    rng: random.Random | None = None,
) -> UUID:
    """Pick one user with probability proportional to its weight.

    Draw ``r`` uniformly in ``[0, total)`` and walk the cumulative
    distribution; the first user whose running total exceeds ``r`` wins.
    Candidates must already be filtered for availability and capacity.
    Zero or negative weights never win.

    Raises:
        NoEligibleAssignee: if no candidate has a positive weight.
    """
    pool = [(user_id, weight) for user_id, weight in candidates if weight > 0]
    total = sum(weight for _, weight in pool)
    if not pool or total <= 0:
        raise NoEligibleAssignee("No eligible users with positive weight")

    r = (rng or random).uniform(0, total)
    cumulative = 0
    for user_id, weight in pool:
        cumulative += weight
        if r < cumulative:
            return user_id
    # uniform() may return the upper bound itself
    return pool[-1][0]
