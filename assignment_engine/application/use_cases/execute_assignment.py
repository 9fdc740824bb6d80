"""AssignmentExecutor — stage the owner change, history row and load update."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any
from uuid import UUID

from assignment_engine.application.ports.history_repo import HistoryRepository
from assignment_engine.application.ports.target_repo import TargetRepository
from assignment_engine.application.ports.user_directory import UserDirectory
from assignment_engine.application.use_cases.track_load import LoadTracker
from assignment_engine.domain.entities.assignment_history import AssignmentHistory
from assignment_engine.domain.entities.assignment_result import AssignmentResult
from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.entities.target import TargetRecord
from assignment_engine.domain.value_objects.enums import AssignmentReason, AssignToType

logger = logging.getLogger(__name__)


class AssignmentExecutor:
    """Performs the three writes of one assignment inside the caller's transaction.

    Nothing is committed here; the engine commits or rolls back the unit of
    work as a whole, so a failure at any step leaves no partial ownership
    change behind.
    """

    def __init__(
        self,
        target_repo: TargetRepository,
        history_repo: HistoryRepository,
        load_tracker: LoadTracker,
        user_directory: UserDirectory,
    ):
        self._targets = target_repo
        self._history = history_repo
        self._load = load_tracker
        self._users = user_directory

    async def execute(
        self,
        organization_id: UUID,
        target: TargetRecord,
        user_id: UUID,
        reason: str,
        now: datetime,
        rule: AssignmentRule | None = None,
        assigned_by: UUID | None = None,
        metadata: dict[str, Any] | None = None,
        capacity_cap: int | None = None,
    ) -> AssignmentResult:
        """Assign *target* to *user_id*.

        A target already owned by *user_id* is a no-op: no history row, no
        load change, ``changed=False``.

        Steps:
        1. Update the target's owner and ``updated_at``.
        2. Append an AssignmentHistory row (rule snapshot, previous/new owner).
        3. Increment the new owner's load (re-checking *capacity_cap*) and
           release one active assignment from the previous owner, locking
           the two load rows in user-id order.
        """
        assigned_name = await self._users.get_display_name(user_id)
        previous = target.assigned_to

        if previous == user_id:
            logger.info(
                "%s %s already assigned to %s, nothing to do",
                target.target_model.value, target.id, user_id,
            )
            return AssignmentResult(
                target_id=target.id,
                assigned_to_id=user_id,
                assigned_to_name=assigned_name,
                reason=AssignmentReason.ALREADY_ASSIGNED.value,
                changed=False,
                rule_id=rule.id if rule else None,
            )

        previous_name = await self._users.get_display_name(previous) if previous else None

        # Step 1: owner
        await self._targets.set_owner(organization_id, target.target_model, target.id, user_id, now)

        # Step 2: audit trail
        history = await self._history.append(
            AssignmentHistory(
                id=uuid.uuid4(),
                organization_id=organization_id,
                rule_id=rule.id if rule else None,
                rule_name=rule.name if rule else None,
                target_model=target.target_model,
                target_id=target.id,
                target_name=target.name,
                assigned_to_type=rule.assign_to_type if rule else AssignToType.USER,
                assigned_to_id=user_id,
                assigned_to_name=assigned_name,
                previous_assigned_to_id=previous,
                previous_assigned_to_name=previous_name,
                assignment_reason=reason,
                metadata=dict(metadata or {}),
                assigned_at=now,
                assigned_by=assigned_by,
            )
        )

        # Step 3: load counters, row locks taken in user-id order
        touched = [user_id] if previous is None else sorted([user_id, previous], key=str)
        for uid in touched:
            if uid == user_id:
                await self._load.record_assignment(
                    organization_id, user_id, target.target_model, now, capacity_cap=capacity_cap
                )
            else:
                await self._load.release(organization_id, previous, target.target_model, now)

        logger.info(
            "%s %s → %s (%s, rule=%s)",
            target.target_model.value, target.id, assigned_name or user_id,
            reason, rule.name if rule else "-",
        )
        return AssignmentResult(
            target_id=target.id,
            assigned_to_id=user_id,
            assigned_to_name=assigned_name,
            reason=reason,
            changed=True,
            rule_id=rule.id if rule else None,
            history_id=history.id,
        )
