"""
Liveness and readiness checks.
"""

from typing import Any

from fastapi import APIRouter, Depends

from plancouncil.api.dependencies import get_components

router = APIRouter()

REQUIRED_COMPONENTS = ("store", "coordinator", "runner", "persister")


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Process is up."""
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(
    components: dict[str, Any] = Depends(get_components),
) -> dict[str, Any]:
    """Readiness check: all planning components are wired."""
    missing = [name for name in REQUIRED_COMPONENTS if name not in components]
    if missing:
        return {"status": "not_ready", "missing": missing}
    return {"status": "ready", "store": type(components["store"]).__name__}


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """Event loop is responsive."""
    return {"status": "alive"}
