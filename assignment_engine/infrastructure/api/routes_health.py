"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assignment_engine.adapters.persistence.database import get_session

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """Report database reachability and the applied schema revision.

    ``degraded`` means the API is up but assignments cannot be persisted.
    """
    revision = None
    try:
        revision = (
            await session.execute(text("SELECT version_num FROM alembic_version"))
        ).scalar_one_or_none()
        database = "connected" if revision else "unmigrated"
    except (SQLAlchemyError, OSError) as e:
        database = f"error: {e}"

    return {
        "status": "ok" if database == "connected" else "degraded",
        "database": database,
        "schema_revision": revision,
        "service": "Assignment Engine",
    }
