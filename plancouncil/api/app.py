"""
Application Factory

`create_app(settings)` builds the HTTP surface over the planning
components. Components are created in the lifespan, one set per app, so
tests can run isolated apps side by side with their own settings.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plancouncil.api.middleware import ErrorHandlingMiddleware, TracingMiddleware
from plancouncil.config import Settings, get_settings
from plancouncil.observability import configure_logging
from plancouncil.planning import (
    ContextLimits,
    OutputAccumulator,
    PlanPersister,
    PlanRunner,
    StepCoordinator,
    create_store,
    default_registry,
)

logger = logging.getLogger(__name__)


def build_components(settings: Settings) -> dict[str, Any]:
    """Wire the planning components for a settings instance."""
    planner = settings.planner

    store = create_store(planner, settings.redis)
    accumulator = OutputAccumulator(store)
    persister = PlanPersister(planner.daily_dir)
    coordinator = StepCoordinator(
        default_registry(),
        accumulator,
        persister,
        limits=ContextLimits(
            intermediate=planner.intermediate_context_limit,
            synthesis=planner.synthesis_context_limit,
            code=planner.code_context_limit,
        ),
    )

    return {
        "store": store,
        "accumulator": accumulator,
        "persister": persister,
        "coordinator": coordinator,
        "runner": PlanRunner(),
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
    """Configure logging, wire components into app.state, close the store on exit."""
    settings: Settings = app.state.settings

    configure_logging(
        level=settings.observability.log_level,
        log_format=settings.observability.log_format,
    )

    state = build_components(settings)
    app.state.components = state

    logger.info(
        f"{settings.app_name} v{settings.app_version} started "
        f"(store={settings.planner.store_backend}, devlog={settings.planner.devlog_path})"
    )

    yield state

    # Shutdown: release store connections
    await state["store"].close()


def create_app(settings: Settings | None = None, **kwargs: Any) -> FastAPI:
    """
    Build the plan-council API.

    Args:
        settings: Configuration; the environment-derived settings when omitted
        **kwargs: Passed through to FastAPI
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Multi-model planning council coordinator",
        debug=settings.debug,
        lifespan=lifespan,
        **kwargs,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(TracingMiddleware)

    from plancouncil.api.routes import health, planner, plans

    app.include_router(health.router, tags=["health"])
    app.include_router(planner.router, prefix=settings.api_prefix, tags=["planner"])
    app.include_router(plans.router, prefix=settings.api_prefix, tags=["plans"])

    return app


# Module-level ASGI application
app = create_app()
