"""
Core Types and Data Structures

Request/response models shared by the coordinator, the runner and the API.
These are intentionally simple and serializable.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class CoordinatorMode(str, Enum):
    """How a coordinator call relates to the run."""

    START = "start"
    CONTINUE = "continue"


class RunnerMode(str, Enum):
    """Plan runner modes."""

    START = "start"
    STEP = "step"
    VERIFY = "verify"


class FeatureFlags(BaseModel):
    """
    Per-call overrides for conditional workflow steps.

    True force-includes, False force-excludes, None falls back to
    keyword detection over the task and context.
    """

    ux: bool | None = None
    responsive: bool | None = None
    debate: bool | None = None


class CoordinatorCall(BaseModel):
    """One invocation of the plan coordinator."""

    task: str = Field(..., min_length=1)
    context: str = ""
    code_context: str = ""
    answers: str = ""
    issue_file: str | None = None
    mode: CoordinatorMode = CoordinatorMode.START
    step: int | None = None  # 1-based; defaults to 1 in continue mode
    prior: dict[str, str] = Field(default_factory=dict)
    flags: FeatureFlags = Field(default_factory=FeatureFlags)
    devlog: bool = True


class NextAction(BaseModel):
    """Capability invocation the caller should perform next."""

    capability: str
    parameters: dict[str, Any]
    max_output_budget: int
    description: str


class DevlogHint(BaseModel):
    """Structured hint for a devlog tool invocation."""

    tool: str
    params: dict[str, Any]
    description: str | None = None


class DistilledContext(BaseModel):
    """Working memory derived from the task and prior step outputs."""

    task: str
    constraints: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    open_questions: list[str] = Field(default_factory=list)
    size_estimate: int = 0  # approximate tokens


class CoordinatorResponse(BaseModel):
    """What the coordinator returns for each call."""

    phase: str
    step: int
    total_steps: int
    progress: str  # e.g. "2/7 (29%)"
    next_action: NextAction | None = None
    devlog_hint: DevlogHint | None = None
    is_complete: bool = False
    result: str | None = None
    artifact_path: str | None = None
    rationale: str | None = None
    step_id: str | None = None
    working_memory: DistilledContext | None = None
    error: str | None = None


class ParsedStep(BaseModel):
    """One step extracted from a finished plan."""

    number: int
    title: str
    details: str = ""


class CheckpointKind(str, Enum):
    """Verification category attached to a checkpoint."""

    PROGRESS_REVIEW = "progress_review"
    DECOMPOSE_REMAINING = "decompose_remaining"
    FINAL_REVIEW = "final_review"


class PlanCheckpoint(BaseModel):
    """A fixed progress point at which verification is requested."""

    step: int
    percent: str  # "50%", "80%", "100%"
    kind: CheckpointKind


class PlanParseResult(BaseModel):
    """Outcome of parsing a plan document."""

    steps: list[ParsedStep] = Field(default_factory=list)
    strategy: str | None = None
    parsed: bool = False

    @property
    def total(self) -> int:
        return len(self.steps)


class VerificationInstruction(BaseModel):
    """Instruction for an out-of-band verification action."""

    title: str
    capability: str
    prompt: str


class RunnerCall(BaseModel):
    """One invocation of the plan runner."""

    plan: str
    mode: RunnerMode = RunnerMode.START
    step_num: int | None = None
    checkpoint: str | None = None  # "50%", "80%", "100%"
    code: str | None = None
    completed: list[int] = Field(default_factory=list)
    devlog: bool = True
    ux: bool = False
    responsive: bool = False


class RunnerResponse(BaseModel):
    """What the plan runner returns for each call."""

    mode: RunnerMode
    total_steps: int
    parse: PlanParseResult
    checkpoints: list[PlanCheckpoint] = Field(default_factory=list)
    step: ParsedStep | None = None
    progress: str | None = None
    checkpoint: PlanCheckpoint | None = None
    primary: VerificationInstruction | None = None
    extras: list[VerificationInstruction] = Field(default_factory=list)
    completed_titles: list[str] = Field(default_factory=list)
    remaining_titles: list[str] = Field(default_factory=list)
    next_call: str | None = None
    devlog_hint: DevlogHint | None = None
    error: str | None = None


class PlanSummary(BaseModel):
    """A plan artifact found on disk."""

    filename: str
    path: str
    task: str
    status: str | None = None
    modified_at: str
