"""
FastAPI Dependencies

Dependency injection for API routes.

Components are built once in the application lifespan and read from
``app.state.components`` here, so routes never construct them.
"""

from typing import Any

from fastapi import Depends, HTTPException, Request

from plancouncil.config import Settings
from plancouncil.planning import PlanPersister, PlanRunner, StepCoordinator


async def get_components(request: Request) -> dict[str, Any]:
    """Get application components from state."""
    return getattr(request.app.state, "components", {})


async def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    return request.app.state.settings


async def get_coordinator(
    components: dict[str, Any] = Depends(get_components),
) -> StepCoordinator:
    """Get the step coordinator."""
    if "coordinator" not in components:
        raise HTTPException(status_code=503, detail="Coordinator not available")
    value = components["coordinator"]
    assert isinstance(value, StepCoordinator)
    return value


async def get_runner(
    components: dict[str, Any] = Depends(get_components),
) -> PlanRunner:
    """Get the plan runner."""
    if "runner" not in components:
        raise HTTPException(status_code=503, detail="Plan runner not available")
    value = components["runner"]
    assert isinstance(value, PlanRunner)
    return value


async def get_persister(
    components: dict[str, Any] = Depends(get_components),
) -> PlanPersister:
    """Get the plan persister."""
    if "persister" not in components:
        raise HTTPException(status_code=503, detail="Plan persister not available")
    value = components["persister"]
    assert isinstance(value, PlanPersister)
    return value
