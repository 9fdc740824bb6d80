"""Assignment rule endpoints — CRUD per organization."""

from __future__ import annotations

from datetime import time
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from assignment_engine.application.use_cases.manage_rules import RuleAdminUseCase
from assignment_engine.domain.entities.assignment_rule import AssignmentRule
from assignment_engine.domain.value_objects.assignment_config import dump_assignment_config
from assignment_engine.infrastructure.api.dependencies import get_rule_admin_uc

router = APIRouter(
    prefix="/organizations/{organization_id}/assignment-rules", tags=["assignment-rules"]
)


class RuleCreate(BaseModel):
    name: str
    rule_type: str
    target_model: str
    assignment_config: dict[str, Any]
    description: str = ""
    priority: int = 0
    is_active: bool = True
    conditions: list[dict[str, Any]] | dict[str, Any] = []
    assign_to_type: str = "user"
    max_assignments_per_user: int = 0
    assignment_window_start: time | None = None
    assignment_window_end: time | None = None
    active_days: list[int] = []
    created_by: UUID | None = None


class RuleUpdate(BaseModel):
    name: str | None = None
    rule_type: str | None = None
    target_model: str | None = None
    assignment_config: dict[str, Any] | None = None
    description: str | None = None
    priority: int | None = None
    is_active: bool | None = None
    conditions: list[dict[str, Any]] | dict[str, Any] | None = None
    assign_to_type: str | None = None
    max_assignments_per_user: int | None = None
    assignment_window_start: time | None = None
    assignment_window_end: time | None = None
    active_days: list[int] | None = None
    updated_by: UUID | None = None


@router.post("", status_code=201)
async def create_rule(
    organization_id: UUID,
    body: RuleCreate,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    rule = await admin.create_rule(
        organization_id, body.model_dump(exclude={"created_by"}), created_by=body.created_by
    )
    return _serialize_rule(rule)


@router.get("")
async def list_rules(
    organization_id: UUID,
    target_model: str | None = None,
    active_only: bool = False,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    rules = await admin.list_rules(organization_id, target_model, active_only)
    return {"total": len(rules), "rules": [_serialize_rule(r) for r in rules]}


@router.get("/{rule_id}")
async def get_rule(
    organization_id: UUID,
    rule_id: UUID,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    return _serialize_rule(await admin.get_rule(organization_id, rule_id))


@router.patch("/{rule_id}")
async def update_rule(
    organization_id: UUID,
    rule_id: UUID,
    body: RuleUpdate,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    """Partial update: only the fields present in the body change."""
    changes = body.model_dump(exclude_unset=True, exclude={"updated_by"})
    rule = await admin.update_rule(organization_id, rule_id, changes, updated_by=body.updated_by)
    return _serialize_rule(rule)


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(
    organization_id: UUID,
    rule_id: UUID,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    await admin.delete_rule(organization_id, rule_id)
    return Response(status_code=204)


def _serialize_rule(r: AssignmentRule) -> dict:
    return {
        "id": str(r.id),
        "organization_id": str(r.organization_id),
        "name": r.name,
        "description": r.description,
        "rule_type": r.rule_type.value,
        "target_model": r.target_model.value,
        "priority": r.priority,
        "is_active": r.is_active,
        "conditions": [c.to_dict() for c in r.conditions],
        "assignment_config": dump_assignment_config(r.assignment_config),
        "assign_to_type": r.assign_to_type.value,
        "max_assignments_per_user": r.max_assignments_per_user,
        "assignment_window_start": (
            r.assignment_window_start.isoformat() if r.assignment_window_start else None
        ),
        "assignment_window_end": (
            r.assignment_window_end.isoformat() if r.assignment_window_end else None
        ),
        "active_days": sorted(r.active_days),
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }
