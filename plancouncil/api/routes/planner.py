"""
Planner Routes

The plan maker (coordinator) and plan runner endpoints. Both return the
structured response plus a rendered markdown view of it.
"""

from fastapi import APIRouter, Depends

from plancouncil.api.dependencies import get_coordinator, get_runner
from plancouncil.core.types import (
    CoordinatorCall,
    CoordinatorResponse,
    RunnerCall,
    RunnerResponse,
)
from plancouncil.planning import PlanRunner, StepCoordinator
from plancouncil.planning.formatting import (
    render_coordinator_response,
    render_runner_response,
)

router = APIRouter(prefix="/planner")

PREVIEW_LENGTH = 200


class MakerResponse(CoordinatorResponse):
    """Coordinator response with its markdown rendering."""

    rendered: str


class RunnerRequest(RunnerCall):
    """Runner call; ``strict`` turns an unparseable plan into a 422."""

    strict: bool = False


class RunnerResult(RunnerResponse):
    """Runner response with its markdown rendering."""

    rendered: str


@router.post("/maker", response_model=MakerResponse)
async def plan_maker(
    call: CoordinatorCall,
    coordinator: StepCoordinator = Depends(get_coordinator),
) -> MakerResponse:
    """Advance the planning workflow by one step."""
    response = await coordinator.advance(call)
    return MakerResponse(
        **response.model_dump(),
        rendered=render_coordinator_response(response),
    )


@router.post("/runner", response_model=RunnerResult)
async def plan_runner(
    request: RunnerRequest,
    runner: PlanRunner = Depends(get_runner),
) -> RunnerResult:
    """Parse a finished plan and guide or verify its execution."""
    call = RunnerCall(**request.model_dump(exclude={"strict"}))
    response = runner.handle(call, strict=request.strict)
    return RunnerResult(
        **response.model_dump(),
        rendered=render_runner_response(
            response,
            completed=call.completed,
            plan_preview=call.plan[:PREVIEW_LENGTH],
        ),
    )
