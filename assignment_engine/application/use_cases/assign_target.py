"""AssignmentEngine — match → resolve → execute → commit, per request."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import UUID

from assignment_engine.application.locks import RULE_LOCKS, TARGET_LOCKS, KeyedLock
from assignment_engine.application.ports.rule_repo import RuleRepository
from assignment_engine.application.ports.target_repo import TargetRepository
from assignment_engine.application.ports.unit_of_work import UnitOfWork
from assignment_engine.application.use_cases.execute_assignment import AssignmentExecutor
from assignment_engine.application.use_cases.resolve_assignee import AssigneeResolver
from assignment_engine.application.use_cases.track_load import LoadTracker
from assignment_engine.domain.entities.assignment_result import AssignmentResult
from assignment_engine.domain.entities.target import TargetRecord
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.errors import (
    AssignmentError,
    AssignmentTimeout,
    ConcurrentUpdateConflict,
    TargetNotFound,
)
from assignment_engine.domain.policies.rule_matching import match_rule
from assignment_engine.domain.value_objects.enums import AssignmentReason, TargetModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentEngine:
    """Public surface of the assignment engine.

    One instance wraps one unit of work (one database session). Engines
    built for concurrent requests share the process-wide lock registries,
    which makes round-robin advancement linearizable per rule and ownership
    changes linearizable per target. Locks are always taken in the order
    rule, target, user.
    """

    def __init__(
        self,
        rule_repo: RuleRepository,
        target_repo: TargetRepository,
        resolver: AssigneeResolver,
        executor: AssignmentExecutor,
        load_tracker: LoadTracker,
        unit_of_work: UnitOfWork,
        rule_locks: KeyedLock | None = None,
        target_locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utc_now,
        timeout: float | None = None,
        retry_attempts: int = 3,
    ):
        self._rules = rule_repo
        self._targets = target_repo
        self._resolver = resolver
        self._executor = executor
        self._load = load_tracker
        self._uow = unit_of_work
        self._rule_locks = rule_locks if rule_locks is not None else RULE_LOCKS
        self._target_locks = target_locks if target_locks is not None else TARGET_LOCKS
        self._clock = clock
        self._timeout = timeout
        self._retry_attempts = max(retry_attempts, 1)

    # ─── Public operations ───────────────────────────────────────────

    async def resolve_assignment(
        self,
        organization_id: UUID,
        target_model: TargetModel | str,
        target_id: UUID,
        entity_attributes: Mapping[str, Any],
        assigned_by: UUID | None = None,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> AssignmentResult:
        """Route *target_id* to an owner using the organization's rules.

        Retries the resolution (not the caller's business transaction) on
        ConcurrentUpdateConflict, up to ``retry_attempts`` attempts.

        Raises:
            NoMatchingRule, NoEligibleAssignee, NoTerritoryMatch,
            RuleTypeNotImplemented, TargetNotFound, PersistenceFailure,
            ConcurrentUpdateConflict, AssignmentTimeout.
        """
        target_model = TargetModel(target_model)
        deadline = self._deadline(timeout)

        for attempt in range(1, self._retry_attempts + 1):
            try:
                return await self._resolve_once(
                    organization_id, target_model, target_id,
                    entity_attributes, assigned_by, now, deadline, attempt,
                )
            except ConcurrentUpdateConflict as e:
                if attempt >= self._retry_attempts:
                    logger.warning(
                        "%s %s: giving up after %d conflicting attempts",
                        target_model.value, target_id, attempt,
                    )
                    raise
                logger.warning(
                    "%s %s: %s, retrying resolution (attempt %d/%d)",
                    target_model.value, target_id, e, attempt + 1, self._retry_attempts,
                )
        raise AssertionError("unreachable")

    async def assign_explicitly(
        self,
        organization_id: UUID,
        target_model: TargetModel | str,
        target_id: UUID,
        user_id: UUID,
        reason: str = AssignmentReason.MANUAL.value,
        assigned_by: UUID | None = None,
        timeout: float | None = None,
    ) -> AssignmentResult:
        """Manual (re)assignment that bypasses rule matching.

        Still writes history and updates load. Repeating the call for the
        current owner is a no-op returning ``changed=False``.
        """
        target_model = TargetModel(target_model)
        deadline = self._deadline(timeout)
        now = self._clock()

        async def stage() -> AssignmentResult:
            target = await self._load_target(organization_id, target_model, target_id)
            return await self._executor.execute(
                organization_id, target, user_id, reason, now,
                assigned_by=assigned_by, metadata={"manual": True},
            )

        async with self._target_locks.hold((organization_id, target_model, target_id)):
            return await self._transact(stage, deadline)

    async def release_assignment(
        self,
        organization_id: UUID,
        target_model: TargetModel | str,
        user_id: UUID,
    ) -> UserAssignmentLoad:
        """Drop one active assignment from *user_id* (entity closed/converted)."""
        target_model = TargetModel(target_model)
        now = self._clock()

        async def stage() -> UserAssignmentLoad:
            return await self._load.release(organization_id, user_id, target_model, now)

        return await self._transact(stage, self._deadline(None))

    async def update_load(
        self,
        organization_id: UUID,
        target_model: TargetModel | str,
        user_id: UUID,
        **changes: Any,
    ) -> UserAssignmentLoad:
        """Change availability, capacity or weight of a user's load row."""
        target_model = TargetModel(target_model)
        now = self._clock()

        async def stage() -> UserAssignmentLoad:
            return await self._load.set_availability(
                organization_id, user_id, target_model, now, **changes
            )

        return await self._transact(stage, self._deadline(None))

    # ─── Internals ───────────────────────────────────────────────────

    async def _resolve_once(
        self,
        organization_id: UUID,
        target_model: TargetModel,
        target_id: UUID,
        attributes: Mapping[str, Any],
        assigned_by: UUID | None,
        now: datetime | None,
        deadline: float | None,
        attempt: int,
    ) -> AssignmentResult:
        now = now or self._clock()
        rules = await self._within(
            self._rules.list(organization_id, target_model, active_only=True), deadline
        )
        try:
            rule = match_rule(rules, attributes, now)
        except AssignmentError:
            logger.warning(
                "%s %s: no rule matched among %d active rules",
                target_model.value, target_id, len(rules),
            )
            raise
        logger.info("%s %s matched rule %s (priority %d)", target_model.value, target_id, rule.name, rule.priority)

        async def stage() -> AssignmentResult:
            target = await self._load_target(organization_id, target_model, target_id)
            selection = await self._resolver.resolve(rule, attributes, now)
            reason = (
                AssignmentReason.AUTO if target.assigned_to is None
                else AssignmentReason.REASSIGNMENT
            )
            return await self._executor.execute(
                organization_id, target, selection.user_id, reason.value, now,
                rule=rule,
                assigned_by=assigned_by,
                metadata={"strategy": selection.strategy, "attempt": attempt, **selection.metadata},
                capacity_cap=selection.capacity_cap,
            )

        async with self._rule_locks.hold(rule.id):
            async with self._target_locks.hold((organization_id, target_model, target_id)):
                return await self._transact(stage, deadline)

    async def _transact(self, stage: Callable[[], Awaitable[T]], deadline: float | None) -> T:
        """Run *stage* under the deadline, then commit; roll back on any failure."""
        try:
            result = await self._within(stage(), deadline)
            await self._uow.commit()
        except AssignmentTimeout:
            await self._uow.rollback()
            logger.warning("Assignment aborted: deadline exceeded before commit")
            raise
        except Exception:
            await self._uow.rollback()
            raise
        return result

    async def _load_target(
        self, organization_id: UUID, target_model: TargetModel, target_id: UUID
    ) -> TargetRecord:
        target = await self._targets.get(organization_id, target_model, target_id, for_update=True)
        if target is None:
            raise TargetNotFound(f"{target_model.value} {target_id} not found")
        return target

    def _deadline(self, timeout: float | None) -> float | None:
        timeout = timeout if timeout is not None else self._timeout
        if not timeout:
            return None
        return asyncio.get_running_loop().time() + timeout

    @staticmethod
    async def _within(aw: Awaitable[T], deadline: float | None) -> T:
        if deadline is None:
            return await aw
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            return await asyncio.wait_for(aw, timeout=max(remaining, 0))
        except asyncio.TimeoutError:
            raise AssignmentTimeout("Assignment deadline exceeded") from None
