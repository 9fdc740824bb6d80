"""SQLAlchemy repository implementations."""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import column, delete, desc, distinct, func, select, table, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.adapters.persistence.models import (
    AssignmentHistoryModel,
    AssignmentRuleModel,
    RoundRobinStateModel,
    TerritoryModel,
    UserAssignmentLoadModel,
)
from assignment_engine.application.ports.history_repo import HistoryRepository
from assignment_engine.application.ports.load_repo import LoadRepository
from assignment_engine.application.ports.round_robin_repo import RoundRobinRepository
from assignment_engine.application.ports.rule_repo import RuleRepository
from assignment_engine.application.ports.target_repo import TargetRepository
from assignment_engine.application.ports.territory_repo import TerritoryRepository
from assignment_engine.application.ports.unit_of_work import UnitOfWork
from assignment_engine.application.ports.user_directory import UserDirectory
from assignment_engine.domain.entities.assignment_history import AssignmentHistory
from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.entities.stats import RuleEffectiveness
from assignment_engine.domain.entities.target import TargetRecord
from assignment_engine.domain.entities.territory import Territory
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.errors import PersistenceFailure
from assignment_engine.domain.value_objects.assignment_config import (
    dump_assignment_config,
    parse_assignment_config,
)
from assignment_engine.domain.value_objects.condition import parse_conditions
from assignment_engine.domain.value_objects.enums import (
    AssignToType,
    RuleType,
    TargetModel,
    TerritoryType,
)

logger = logging.getLogger(__name__)


def _translate_errors(fn):
    """Re-raise driver/ORM errors as PersistenceFailure."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.exception("%s failed", fn.__qualname__)
            raise PersistenceFailure(f"{fn.__qualname__}: {e}") from e

    return wrapper


# ─── Mappers ─────────────────────────────────────────────────────────


def _rule_to_domain(m: AssignmentRuleModel) -> AssignmentRule:
    rule_type = RuleType(m.rule_type)
    return AssignmentRule(
        id=m.id,
        organization_id=m.organization_id,
        name=m.name,
        description=m.description or "",
        rule_type=rule_type,
        target_model=TargetModel(m.target_model),
        assignment_config=parse_assignment_config(rule_type, m.assignment_config),
        priority=m.priority,
        is_active=m.is_active,
        conditions=parse_conditions(m.conditions),
        assign_to_type=AssignToType(m.assign_to_type),
        max_assignments_per_user=m.max_assignments_per_user,
        assignment_window_start=m.assignment_window_start,
        assignment_window_end=m.assignment_window_end,
        active_days=frozenset(m.active_days or ()),
        created_at=m.created_at,
        updated_at=m.updated_at,
        created_by=m.created_by,
        updated_by=m.updated_by,
    )


def _rule_columns(rule: AssignmentRule) -> dict:
    return dict(
        name=rule.name,
        description=rule.description,
        rule_type=rule.rule_type.value,
        target_model=rule.target_model.value,
        priority=rule.priority,
        is_active=rule.is_active,
        conditions=[c.to_dict() for c in rule.conditions],
        assignment_config=dump_assignment_config(rule.assignment_config),
        assign_to_type=rule.assign_to_type.value,
        max_assignments_per_user=rule.max_assignments_per_user,
        assignment_window_start=rule.assignment_window_start,
        assignment_window_end=rule.assignment_window_end,
        active_days=sorted(rule.active_days),
        updated_by=rule.updated_by,
    )


def _territory_to_domain(m: TerritoryModel) -> Territory:
    return Territory(
        id=m.id,
        organization_id=m.organization_id,
        name=m.name,
        description=m.description or "",
        territory_type=TerritoryType(m.territory_type),
        conditions=parse_conditions(m.conditions),
        assigned_users=list(m.assigned_users or []),
        assigned_teams=list(m.assigned_teams or []),
        priority=m.priority,
        is_active=m.is_active,
        created_at=m.created_at,
        updated_at=m.updated_at,
        created_by=m.created_by,
        updated_by=m.updated_by,
    )


def _territory_columns(territory: Territory) -> dict:
    return dict(
        name=territory.name,
        description=territory.description,
        territory_type=territory.territory_type.value,
        conditions=[c.to_dict() for c in territory.conditions],
        assigned_users=list(territory.assigned_users),
        assigned_teams=list(territory.assigned_teams),
        priority=territory.priority,
        is_active=territory.is_active,
        updated_by=territory.updated_by,
    )


def _load_to_domain(m: UserAssignmentLoadModel) -> UserAssignmentLoad:
    return UserAssignmentLoad(
        organization_id=m.organization_id,
        user_id=m.user_id,
        target_model=TargetModel(m.target_model),
        active_assignments=m.active_assignments,
        total_assignments=m.total_assignments,
        last_assigned_at=m.last_assigned_at,
        max_capacity=m.max_capacity,
        weight=m.weight,
        is_available=m.is_available,
        unavailable_until=m.unavailable_until,
        updated_at=m.updated_at,
    )


def _history_to_domain(m: AssignmentHistoryModel) -> AssignmentHistory:
    return AssignmentHistory(
        id=m.id,
        organization_id=m.organization_id,
        rule_id=m.rule_id,
        rule_name=m.rule_name,
        target_model=TargetModel(m.target_model),
        target_id=m.target_id,
        target_name=m.target_name,
        assigned_to_type=AssignToType(m.assigned_to_type),
        assigned_to_id=m.assigned_to_id,
        assigned_to_name=m.assigned_to_name,
        previous_assigned_to_id=m.previous_assigned_to_id,
        previous_assigned_to_name=m.previous_assigned_to_name,
        assignment_reason=m.assignment_reason or "",
        metadata=dict(m.extra or {}),
        assigned_at=m.assigned_at,
        assigned_by=m.assigned_by,
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlRuleRepository(RuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def save(self, rule: AssignmentRule) -> AssignmentRule:
        m = AssignmentRuleModel(
            id=rule.id,
            organization_id=rule.organization_id,
            created_by=rule.created_by,
            **_rule_columns(rule),
        )
        self._s.add(m)
        await self._s.flush()
        await self._s.refresh(m)
        return _rule_to_domain(m)

    @_translate_errors
    async def update(self, rule: AssignmentRule) -> AssignmentRule:
        await self._s.execute(
            update(AssignmentRuleModel)
            .where(
                AssignmentRuleModel.id == rule.id,
                AssignmentRuleModel.organization_id == rule.organization_id,
            )
            .values(**_rule_columns(rule), updated_at=func.now())
        )
        await self._s.flush()
        return await self.get_by_id(rule.organization_id, rule.id)

    @_translate_errors
    async def get_by_id(self, organization_id: UUID, rule_id: UUID) -> AssignmentRule | None:
        result = await self._s.execute(
            select(AssignmentRuleModel)
            .where(
                AssignmentRuleModel.id == rule_id,
                AssignmentRuleModel.organization_id == organization_id,
            )
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _rule_to_domain(m) if m else None

    @_translate_errors
    async def delete(self, organization_id: UUID, rule_id: UUID) -> bool:
        result = await self._s.execute(
            delete(AssignmentRuleModel).where(
                AssignmentRuleModel.id == rule_id,
                AssignmentRuleModel.organization_id == organization_id,
            )
        )
        await self._s.flush()
        return result.rowcount > 0

    @_translate_errors
    async def list(
        self,
        organization_id: UUID,
        target_model: TargetModel | None = None,
        active_only: bool = False,
    ) -> list[AssignmentRule]:
        stmt = select(AssignmentRuleModel).where(
            AssignmentRuleModel.organization_id == organization_id
        )
        if target_model is not None:
            stmt = stmt.where(AssignmentRuleModel.target_model == target_model.value)
        if active_only:
            stmt = stmt.where(AssignmentRuleModel.is_active.is_(True))
        result = await self._s.execute(
            stmt.order_by(AssignmentRuleModel.priority.desc(), AssignmentRuleModel.id)
        )
        return [_rule_to_domain(m) for m in result.scalars()]


class SqlTerritoryRepository(TerritoryRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def save(self, territory: Territory) -> Territory:
        m = TerritoryModel(
            id=territory.id,
            organization_id=territory.organization_id,
            created_by=territory.created_by,
            **_territory_columns(territory),
        )
        self._s.add(m)
        await self._s.flush()
        await self._s.refresh(m)
        return _territory_to_domain(m)

    @_translate_errors
    async def update(self, territory: Territory) -> Territory:
        await self._s.execute(
            update(TerritoryModel)
            .where(
                TerritoryModel.id == territory.id,
                TerritoryModel.organization_id == territory.organization_id,
            )
            .values(**_territory_columns(territory), updated_at=func.now())
        )
        await self._s.flush()
        return await self.get_by_id(territory.organization_id, territory.id)

    @_translate_errors
    async def get_by_id(self, organization_id: UUID, territory_id: UUID) -> Territory | None:
        result = await self._s.execute(
            select(TerritoryModel)
            .where(
                TerritoryModel.id == territory_id,
                TerritoryModel.organization_id == organization_id,
            )
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _territory_to_domain(m) if m else None

    @_translate_errors
    async def delete(self, organization_id: UUID, territory_id: UUID) -> bool:
        result = await self._s.execute(
            delete(TerritoryModel).where(
                TerritoryModel.id == territory_id,
                TerritoryModel.organization_id == organization_id,
            )
        )
        await self._s.flush()
        return result.rowcount > 0

    @_translate_errors
    async def list(self, organization_id: UUID, active_only: bool = False) -> list[Territory]:
        stmt = select(TerritoryModel).where(TerritoryModel.organization_id == organization_id)
        if active_only:
            stmt = stmt.where(TerritoryModel.is_active.is_(True))
        result = await self._s.execute(
            stmt.order_by(TerritoryModel.priority.desc(), TerritoryModel.id)
        )
        return [_territory_to_domain(m) for m in result.scalars()]


class SqlLoadRepository(LoadRepository):
    _KEY = ["organization_id", "user_id", "target_model"]

    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def get(
        self,
        organization_id: UUID,
        user_id: UUID,
        target_model: TargetModel,
        for_update: bool = False,
    ) -> UserAssignmentLoad:
        if for_update:
            # Materialize the row so there is something to lock
            await self._s.execute(
                pg_insert(UserAssignmentLoadModel)
                .values(
                    organization_id=organization_id,
                    user_id=user_id,
                    target_model=target_model.value,
                )
                .on_conflict_do_nothing(index_elements=self._KEY)
            )

        stmt = (
            select(UserAssignmentLoadModel)
            .where(
                UserAssignmentLoadModel.organization_id == organization_id,
                UserAssignmentLoadModel.user_id == user_id,
                UserAssignmentLoadModel.target_model == target_model.value,
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._s.execute(stmt)
        m = result.scalar_one_or_none()
        if m is None:
            return UserAssignmentLoad(
                organization_id=organization_id, user_id=user_id, target_model=target_model
            )
        return _load_to_domain(m)

    @_translate_errors
    async def upsert(self, load: UserAssignmentLoad) -> UserAssignmentLoad:
        values = dict(
            active_assignments=load.active_assignments,
            total_assignments=load.total_assignments,
            last_assigned_at=load.last_assigned_at,
            max_capacity=load.max_capacity,
            weight=load.weight,
            is_available=load.is_available,
            unavailable_until=load.unavailable_until,
            updated_at=load.updated_at or func.now(),
        )
        stmt = pg_insert(UserAssignmentLoadModel).values(
            organization_id=load.organization_id,
            user_id=load.user_id,
            target_model=load.target_model.value,
            **values,
        )
        await self._s.execute(
            stmt.on_conflict_do_update(index_elements=self._KEY, set_=values)
        )
        await self._s.flush()
        return load

    @_translate_errors
    async def list(
        self, organization_id: UUID, target_model: TargetModel | None = None
    ) -> list[UserAssignmentLoad]:
        stmt = select(UserAssignmentLoadModel).where(
            UserAssignmentLoadModel.organization_id == organization_id
        )
        if target_model is not None:
            stmt = stmt.where(UserAssignmentLoadModel.target_model == target_model.value)
        result = await self._s.execute(
            stmt.order_by(
                UserAssignmentLoadModel.active_assignments.desc(),
                UserAssignmentLoadModel.user_id,
            ).execution_options(populate_existing=True)
        )
        return [_load_to_domain(m) for m in result.scalars()]


class SqlHistoryRepository(HistoryRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def append(self, history: AssignmentHistory) -> AssignmentHistory:
        m = AssignmentHistoryModel(
            id=history.id,
            organization_id=history.organization_id,
            rule_id=history.rule_id,
            rule_name=history.rule_name,
            target_model=history.target_model.value,
            target_id=history.target_id,
            target_name=history.target_name,
            assigned_to_type=history.assigned_to_type.value,
            assigned_to_id=history.assigned_to_id,
            assigned_to_name=history.assigned_to_name,
            previous_assigned_to_id=history.previous_assigned_to_id,
            previous_assigned_to_name=history.previous_assigned_to_name,
            assignment_reason=history.assignment_reason,
            extra=history.metadata,
            assigned_at=history.assigned_at,
            assigned_by=history.assigned_by,
        )
        self._s.add(m)
        await self._s.flush()
        return history

    @_translate_errors
    async def list(
        self,
        organization_id: UUID,
        target_model: TargetModel | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AssignmentHistory]:
        stmt = select(AssignmentHistoryModel).where(
            AssignmentHistoryModel.organization_id == organization_id
        )
        if target_model is not None:
            stmt = stmt.where(AssignmentHistoryModel.target_model == target_model.value)
        if since is not None:
            stmt = stmt.where(AssignmentHistoryModel.assigned_at >= since)
        result = await self._s.execute(
            stmt.order_by(AssignmentHistoryModel.assigned_at.desc()).limit(limit)
        )
        return [_history_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def assignments_since(
        self,
        organization_id: UUID,
        target_model: TargetModel | None,
        since: datetime,
    ) -> dict[UUID, int]:
        h = AssignmentHistoryModel
        stmt = (
            select(h.assigned_to_id, func.count(h.id))
            .where(h.organization_id == organization_id, h.assigned_at >= since)
            .group_by(h.assigned_to_id)
        )
        if target_model is not None:
            stmt = stmt.where(h.target_model == target_model.value)
        result = await self._s.execute(stmt)
        return {user_id: count for user_id, count in result.all()}

    @_translate_errors
    async def rule_effectiveness(
        self, organization_id: UUID, now: datetime
    ) -> list[RuleEffectiveness]:
        r, h = AssignmentRuleModel, AssignmentHistoryModel
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)

        total = func.count(h.id).label("total_assignments")
        stmt = (
            select(
                r.id,
                r.name,
                r.rule_type,
                r.target_model,
                r.is_active,
                total,
                func.count(h.id).filter(h.assigned_at >= start_of_day),
                func.count(h.id).filter(h.assigned_at >= week_ago),
                func.max(h.assigned_at),
                func.count(distinct(h.assigned_to_id)),
            )
            .outerjoin(h, h.rule_id == r.id)
            .where(r.organization_id == organization_id)
            .group_by(r.id)
            .order_by(desc(total), r.id)
        )
        result = await self._s.execute(stmt)
        return [
            RuleEffectiveness(
                rule_id=row[0],
                rule_name=row[1],
                rule_type=row[2],
                target_model=row[3],
                is_active=row[4],
                total_assignments=row[5],
                assignments_today=row[6],
                assignments_this_week=row[7],
                last_used_at=row[8],
                unique_assignees=row[9],
            )
            for row in result.all()
        ]


class SqlRoundRobinRepository(RoundRobinRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def get_counter(self, rr_key: str) -> int:
        await self._s.execute(
            pg_insert(RoundRobinStateModel)
            .values(rr_key=rr_key, counter=0)
            .on_conflict_do_nothing(index_elements=["rr_key"])
        )
        result = await self._s.execute(
            select(RoundRobinStateModel.counter)
            .where(RoundRobinStateModel.rr_key == rr_key)
            .with_for_update()
        )
        return result.scalar_one()

    @_translate_errors
    async def advance_counter(self, rr_key: str, steps: int = 1) -> int:
        result = await self._s.execute(
            update(RoundRobinStateModel)
            .where(RoundRobinStateModel.rr_key == rr_key)
            .values(counter=RoundRobinStateModel.counter + steps, updated_at=func.now())
            .returning(RoundRobinStateModel.counter)
        )
        new_value = result.scalar_one_or_none()
        if new_value is None:
            await self._s.execute(
                pg_insert(RoundRobinStateModel).values(rr_key=rr_key, counter=steps)
            )
            return 0
        return new_value - steps


# Externally owned entity tables, addressed through Core only
_TARGET_TABLES = {
    model: table(
        model.value,
        column("id"),
        column("organization_id"),
        column("name"),
        column("assigned_to"),
        column("updated_at"),
    )
    for model in TargetModel
}

_USERS = table("users", column("id"), column("name"))


class SqlTargetRepository(TargetRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def get(
        self,
        organization_id: UUID,
        target_model: TargetModel,
        target_id: UUID,
        for_update: bool = False,
    ) -> TargetRecord | None:
        t = _TARGET_TABLES[target_model]
        stmt = select(t.c.id, t.c.name, t.c.assigned_to).where(
            t.c.id == target_id, t.c.organization_id == organization_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._s.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return TargetRecord(
            id=row.id, target_model=target_model, name=row.name, assigned_to=row.assigned_to
        )

    @_translate_errors
    async def set_owner(
        self,
        organization_id: UUID,
        target_model: TargetModel,
        target_id: UUID,
        user_id: UUID,
        now: datetime,
    ) -> None:
        t = _TARGET_TABLES[target_model]
        await self._s.execute(
            update(t)
            .where(t.c.id == target_id, t.c.organization_id == organization_id)
            .values(assigned_to=user_id, updated_at=now)
        )


class SqlUserDirectory(UserDirectory):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def get_display_name(self, user_id: UUID) -> str | None:
        result = await self._s.execute(select(_USERS.c.name).where(_USERS.c.id == user_id))
        return result.scalar_one_or_none()


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def commit(self) -> None:
        await self._s.commit()

    async def rollback(self) -> None:
        await self._s.rollback()
