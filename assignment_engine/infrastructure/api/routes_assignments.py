"""Assignment endpoints — resolve, explicit assign, history and stats."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from assignment_engine.application.use_cases.assign_target import AssignmentEngine
from assignment_engine.application.use_cases.manage_rules import RuleAdminUseCase
from assignment_engine.domain.entities.assignment_history import AssignmentHistory
from assignment_engine.domain.entities.assignment_result import AssignmentResult
from assignment_engine.domain.value_objects.enums import TargetModel
from assignment_engine.infrastructure.api.dependencies import (
    get_assignment_engine,
    get_rule_admin_uc,
)

router = APIRouter(prefix="/organizations/{organization_id}/assignments", tags=["assignments"])


class ResolveRequest(BaseModel):
    attributes: dict[str, Any] = {}
    assigned_by: UUID | None = None


class AssignRequest(BaseModel):
    user_id: UUID
    reason: str = "manual"
    assigned_by: UUID | None = None


# Static paths first so they are not captured by /{target_model}/...


@router.get("/history")
async def assignment_history(
    organization_id: UUID,
    target_model: TargetModel | None = None,
    since: datetime | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    rows = await admin.history(organization_id, target_model, since, limit)
    return {"total": len(rows), "history": [_serialize_history(h) for h in rows]}


@router.get("/stats/users")
async def user_stats(
    organization_id: UUID,
    target_model: TargetModel | None = None,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    stats = await admin.user_stats(organization_id, target_model)
    return {
        "users": [
            {
                "user_id": str(s.user_id),
                "user_name": s.user_name,
                "target_model": s.target_model,
                "active_assignments": s.active_assignments,
                "total_assignments": s.total_assignments,
                "assignments_today": s.assignments_today,
                "last_assigned_at": s.last_assigned_at.isoformat() if s.last_assigned_at else None,
                "weight": s.weight,
                "is_available": s.is_available,
            }
            for s in stats
        ]
    }


@router.get("/stats/rules")
async def rule_stats(
    organization_id: UUID,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    rows = await admin.rule_effectiveness(organization_id)
    return {
        "rules": [
            {
                "rule_id": str(r.rule_id),
                "rule_name": r.rule_name,
                "rule_type": r.rule_type,
                "target_model": r.target_model,
                "is_active": r.is_active,
                "total_assignments": r.total_assignments,
                "assignments_today": r.assignments_today,
                "assignments_this_week": r.assignments_this_week,
                "last_used_at": r.last_used_at.isoformat() if r.last_used_at else None,
                "unique_assignees": r.unique_assignees,
            }
            for r in rows
        ]
    }


@router.post("/{target_model}/{target_id}/resolve")
async def resolve_assignment(
    organization_id: UUID,
    target_model: TargetModel,
    target_id: UUID,
    body: ResolveRequest,
    engine: AssignmentEngine = Depends(get_assignment_engine),
):
    """Route the entity through the organization's assignment rules."""
    result = await engine.resolve_assignment(
        organization_id, target_model, target_id, body.attributes, assigned_by=body.assigned_by
    )
    return _serialize_result(result)


@router.post("/{target_model}/{target_id}/assign")
async def assign_explicitly(
    organization_id: UUID,
    target_model: TargetModel,
    target_id: UUID,
    body: AssignRequest,
    engine: AssignmentEngine = Depends(get_assignment_engine),
):
    result = await engine.assign_explicitly(
        organization_id, target_model, target_id, body.user_id,
        reason=body.reason, assigned_by=body.assigned_by,
    )
    return _serialize_result(result)


def _serialize_result(r: AssignmentResult) -> dict:
    return {
        "target_id": str(r.target_id),
        "assigned_to_id": str(r.assigned_to_id),
        "assigned_to_name": r.assigned_to_name,
        "reason": r.reason,
        "changed": r.changed,
        "rule_id": str(r.rule_id) if r.rule_id else None,
        "history_id": str(r.history_id) if r.history_id else None,
    }


def _serialize_history(h: AssignmentHistory) -> dict:
    return {
        "id": str(h.id),
        "rule_id": str(h.rule_id) if h.rule_id else None,
        "rule_name": h.rule_name,
        "target_model": h.target_model.value,
        "target_id": str(h.target_id),
        "target_name": h.target_name,
        "assigned_to_type": h.assigned_to_type.value,
        "assigned_to_id": str(h.assigned_to_id),
        "assigned_to_name": h.assigned_to_name,
        "previous_assigned_to_id": (
            str(h.previous_assigned_to_id) if h.previous_assigned_to_id else None
        ),
        "previous_assigned_to_name": h.previous_assigned_to_name,
        "assignment_reason": h.assignment_reason,
        "metadata": h.metadata,
        "assigned_at": h.assigned_at.isoformat(),
        "assigned_by": str(h.assigned_by) if h.assigned_by else None,
    }
