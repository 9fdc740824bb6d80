"""Tests for domain entities."""

import uuid
from datetime import datetime, timedelta, timezone

from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.value_objects.enums import TargetModel

NOW = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


def _load(**fields) -> UserAssignmentLoad:
    return UserAssignmentLoad(
        organization_id=uuid.uuid4(), user_id=uuid.uuid4(), target_model=TargetModel.LEADS, **fields
    )


def test_load_defaults():
    load = _load()
    assert load.weight == 1
    assert load.is_available_at(NOW)
    assert not load.is_at_capacity()


def test_unavailable_until_expires():
    load = _load(unavailable_until=NOW + timedelta(hours=1))
    assert not load.is_available_at(NOW)
    assert load.is_available_at(NOW + timedelta(hours=1))


def test_unavailable_flag_wins():
    assert not _load(is_available=False).is_available_at(NOW)


def test_effective_capacity_is_smallest_nonzero():
    assert _load(max_capacity=10).effective_capacity(3) == 3
    assert _load(max_capacity=2).effective_capacity(5) == 2
    assert _load(max_capacity=0).effective_capacity(4) == 4
    assert _load(max_capacity=0).effective_capacity(0) == 0


def test_at_capacity():
    assert _load(active_assignments=3).is_at_capacity(3)
    assert not _load(active_assignments=2).is_at_capacity(3)
    assert not _load(active_assignments=100).is_at_capacity(0)


def test_record_and_release():
    load = _load()
    load.record_assignment(NOW)
    load.record_assignment(NOW)
    assert (load.active_assignments, load.total_assignments) == (2, 2)
    assert load.last_assigned_at == NOW

    load.release(NOW)
    load.release(NOW)
    load.release(NOW)
    assert load.active_assignments == 0
    assert load.total_assignments == 2
