"""Assignment Engine — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from assignment_engine.adapters.persistence.database import engine
from assignment_engine.config import settings
from assignment_engine.infrastructure.api.errors import register_error_handlers
from assignment_engine.infrastructure.api.routes_assignments import router as assignments_router
from assignment_engine.infrastructure.api.routes_health import router as health_router
from assignment_engine.infrastructure.api.routes_loads import router as loads_router
from assignment_engine.infrastructure.api.routes_rules import router as rules_router
from assignment_engine.infrastructure.api.routes_territories import router as territories_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Assignment Engine",
        description="Rule-based routing of leads, contacts and opportunities to owners",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(rules_router, prefix="/api")
    app.include_router(territories_router, prefix="/api")
    app.include_router(assignments_router, prefix="/api")
    app.include_router(loads_router, prefix="/api")

    return app


app = create_app()
