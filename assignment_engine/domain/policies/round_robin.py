"""RoundRobinPolicy — deterministic rotation over a rule's user list."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from uuid import UUID

from assignment_engine.domain.errors import NoEligibleAssignee


def pick_next(
    users: Sequence[UUID],
    counter: int,
    is_eligible: Callable[[UUID], bool],
) -> tuple[UUID, int]:
    """Pick the next eligible user in rotation order.

    1. Start at index *counter mod len(users)*.
    2. Probe forward at most ``len(users)`` positions, skipping users for
       which *is_eligible* is false.
    3. Return the chosen user and how far the stored counter must advance
       (``offset + 1``), so the next reader starts right after the chosen
       user. Skipped users lose their missed turns; there is no catch-up.

    Args:
        users: the rule's ordered rotation list.
        counter: current (monotonic) cursor value.
        is_eligible: availability/capacity predicate.

    Returns:
        (chosen_user, steps_to_advance)

    Raises:
        NoEligibleAssignee: if the list is empty or nobody is eligible.
    """
    if not users:
        raise NoEligibleAssignee("Round-robin rule has no users configured")

    size = len(users)
    start = counter % size
    for offset in range(size):
        candidate = users[(start + offset) % size]
        if is_eligible(candidate):
            return candidate, offset + 1

    raise NoEligibleAssignee(f"All {size} round-robin users are unavailable or at capacity")
