"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.adapters.persistence.database import get_session
from assignment_engine.adapters.persistence.repositories import (
    SqlHistoryRepository,
    SqlLoadRepository,
    SqlRoundRobinRepository,
    SqlRuleRepository,
    SqlTargetRepository,
    SqlTerritoryRepository,
    SqlUnitOfWork,
    SqlUserDirectory,
)
from assignment_engine.application.use_cases.assign_target import AssignmentEngine
from assignment_engine.application.use_cases.execute_assignment import AssignmentExecutor
from assignment_engine.application.use_cases.manage_rules import RuleAdminUseCase
from assignment_engine.application.use_cases.resolve_assignee import AssigneeResolver
from assignment_engine.application.use_cases.track_load import LoadTracker
from assignment_engine.config import settings
from assignment_engine.domain.policies.territory_selection import build_user_picker

# Re-export session dependency
get_db_session = get_session

# Stateless, shared across requests
_user_picker = build_user_picker(settings.territory_user_picker)


def get_assignment_engine(session: AsyncSession = Depends(get_session)) -> AssignmentEngine:
    load_repo = SqlLoadRepository(session)
    load_tracker = LoadTracker(load_repo)
    user_directory = SqlUserDirectory(session)
    return AssignmentEngine(
        rule_repo=SqlRuleRepository(session),
        target_repo=SqlTargetRepository(session),
        resolver=AssigneeResolver(
            load_repo=load_repo,
            territory_repo=SqlTerritoryRepository(session),
            rr_repo=SqlRoundRobinRepository(session),
            user_picker=_user_picker,
        ),
        executor=AssignmentExecutor(
            target_repo=SqlTargetRepository(session),
            history_repo=SqlHistoryRepository(session),
            load_tracker=load_tracker,
            user_directory=user_directory,
        ),
        load_tracker=load_tracker,
        unit_of_work=SqlUnitOfWork(session),
        timeout=settings.resolve_timeout,
        retry_attempts=settings.conflict_retry_attempts,
    )


def get_rule_admin_uc(session: AsyncSession = Depends(get_session)) -> RuleAdminUseCase:
    return RuleAdminUseCase(
        rule_repo=SqlRuleRepository(session),
        territory_repo=SqlTerritoryRepository(session),
        history_repo=SqlHistoryRepository(session),
        load_repo=SqlLoadRepository(session),
        user_directory=SqlUserDirectory(session),
        unit_of_work=SqlUnitOfWork(session),
    )
