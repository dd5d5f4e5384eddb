"""
Plan Listing Routes
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from plancouncil.api.dependencies import get_app_settings, get_persister
from plancouncil.config import Settings
from plancouncil.core.types import PlanSummary
from plancouncil.planning import PlanPersister

router = APIRouter()


class PlanListResponse(BaseModel):
    """Recent plan artifacts."""

    plans: list[PlanSummary]
    total: int
    days: int
    directory: str


@router.get("/plans", response_model=PlanListResponse)
async def list_plans(
    days: int | None = Query(default=None, ge=1, le=365),
    persister: PlanPersister = Depends(get_persister),
    settings: Settings = Depends(get_app_settings),
) -> PlanListResponse:
    """List plans modified within the last ``days`` days."""
    window = days or settings.planner.recent_plan_days
    plans = persister.list_recent_plans(window)
    return PlanListResponse(
        plans=plans,
        total=len(plans),
        days=window,
        directory=str(persister.daily_dir),
    )
