"""Territory endpoints — CRUD per organization."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from assignment_engine.application.use_cases.manage_rules import RuleAdminUseCase
from assignment_engine.domain.entities.territory import Territory
from assignment_engine.infrastructure.api.dependencies import get_rule_admin_uc

router = APIRouter(prefix="/organizations/{organization_id}/territories", tags=["territories"])


class TerritoryCreate(BaseModel):
    name: str
    conditions: list[dict[str, Any]] | dict[str, Any]
    territory_type: str = "geographic"
    description: str = ""
    assigned_users: list[UUID] = []
    assigned_teams: list[UUID] = []
    priority: int = 0
    is_active: bool = True
    created_by: UUID | None = None


class TerritoryUpdate(BaseModel):
    name: str | None = None
    conditions: list[dict[str, Any]] | dict[str, Any] | None = None
    territory_type: str | None = None
    description: str | None = None
    assigned_users: list[UUID] | None = None
    assigned_teams: list[UUID] | None = None
    priority: int | None = None
    is_active: bool | None = None
    updated_by: UUID | None = None


@router.post("", status_code=201)
async def create_territory(
    organization_id: UUID,
    body: TerritoryCreate,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    territory = await admin.create_territory(
        organization_id, body.model_dump(exclude={"created_by"}), created_by=body.created_by
    )
    return _serialize_territory(territory)


@router.get("")
async def list_territories(
    organization_id: UUID,
    active_only: bool = False,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    territories = await admin.list_territories(organization_id, active_only)
    return {
        "total": len(territories),
        "territories": [_serialize_territory(t) for t in territories],
    }


@router.get("/{territory_id}")
async def get_territory(
    organization_id: UUID,
    territory_id: UUID,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    return _serialize_territory(await admin.get_territory(organization_id, territory_id))


@router.patch("/{territory_id}")
async def update_territory(
    organization_id: UUID,
    territory_id: UUID,
    body: TerritoryUpdate,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    changes = body.model_dump(exclude_unset=True, exclude={"updated_by"})
    territory = await admin.update_territory(
        organization_id, territory_id, changes, updated_by=body.updated_by
    )
    return _serialize_territory(territory)


@router.delete("/{territory_id}", status_code=204)
async def delete_territory(
    organization_id: UUID,
    territory_id: UUID,
    admin: RuleAdminUseCase = Depends(get_rule_admin_uc),
):
    await admin.delete_territory(organization_id, territory_id)
    return Response(status_code=204)


def _serialize_territory(t: Territory) -> dict:
    return {
        "id": str(t.id),
        "organization_id": str(t.organization_id),
        "name": t.name,
        "description": t.description,
        "territory_type": t.territory_type.value,
        "conditions": [c.to_dict() for c in t.conditions],
        "assigned_users": [str(u) for u in t.assigned_users],
        "assigned_teams": [str(u) for u in t.assigned_teams],
        "priority": t.priority,
        "is_active": t.is_active,
    }
