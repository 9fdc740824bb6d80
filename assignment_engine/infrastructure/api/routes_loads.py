"""User load endpoints — availability, capacity, weight and release."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from assignment_engine.application.use_cases.assign_target import AssignmentEngine
from assignment_engine.domain.entities.user_load import UserAssignmentLoad
from assignment_engine.domain.value_objects.enums import TargetModel
from assignment_engine.infrastructure.api.dependencies import get_assignment_engine

router = APIRouter(prefix="/organizations/{organization_id}/loads", tags=["loads"])


class LoadUpdate(BaseModel):
    is_available: bool | None = None
    unavailable_until: datetime | None = None
    max_capacity: int | None = Field(default=None, ge=0)
    weight: int | None = Field(default=None, ge=0)


@router.put("/{target_model}/{user_id}")
async def update_load(
    organization_id: UUID,
    target_model: TargetModel,
    user_id: UUID,
    body: LoadUpdate,
    engine: AssignmentEngine = Depends(get_assignment_engine),
):
    load = await engine.update_load(
        organization_id, target_model, user_id, **body.model_dump(exclude_unset=True)
    )
    return _serialize_load(load)


@router.post("/{target_model}/{user_id}/release")
async def release_assignment(
    organization_id: UUID,
    target_model: TargetModel,
    user_id: UUID,
    engine: AssignmentEngine = Depends(get_assignment_engine),
):
    """Drop one active assignment (the entity was closed or converted)."""
    load = await engine.release_assignment(organization_id, target_model, user_id)
    return _serialize_load(load)


def _serialize_load(load: UserAssignmentLoad) -> dict:
    return {
        "user_id": str(load.user_id),
        "target_model": load.target_model.value,
        "active_assignments": load.active_assignments,
        "total_assignments": load.total_assignments,
        "last_assigned_at": load.last_assigned_at.isoformat() if load.last_assigned_at else None,
        "max_capacity": load.max_capacity,
        "weight": load.weight,
        "is_available": load.is_available,
        "unavailable_until": (
            load.unavailable_until.isoformat() if load.unavailable_until else None
        ),
    }
