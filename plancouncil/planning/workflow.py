"""
Workflow Model

Ordered step definitions for the planning council and the registry that
computes the active (frozen) workflow for a run.

Design decisions:
- Steps are immutable values; parameter builders are pure functions of
  StepInputs so the same inputs always yield the same parameters
- Conditional steps are filtered by predicates over task, context and
  explicit FeatureFlags (no module-level override state)
- Registration order is workflow order
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from plancouncil.core.exceptions import DuplicateStepError
from plancouncil.core.types import FeatureFlags
from plancouncil.planning.distiller import (
    CODE_CONTEXT_LIMIT,
    PRIOR_CONTEXT_LIMIT_INTERMEDIATE,
    PRIOR_CONTEXT_LIMIT_SYNTHESIS,
    extract_summary,
    truncate_smart,
)

Condition = Callable[[str, str, FeatureFlags], bool]


# ============================================================
# Capability budgets
# ============================================================

DEFAULT_OUTPUT_BUDGET = 2000

CAPABILITY_BUDGETS: dict[str, int] = {
    # Search: summaries, not full dumps
    "grok_search": 3000,
    "openai_search": 3000,
    "gemini_search": 3000,
    # Analysis: focused findings
    "qwen_coder": 2500,
    "minimax_code": 2500,
    "kimi_thinking": 2500,
    # Decomposition: structured subtasks
    "kimi_decompose": 3000,
    # Critique and synthesis
    "openai_reason": 3000,
    "qwen_reason": 3000,
    "gemini_analyze_text": 3000,
}


def get_max_output_budget(capability: str) -> int:
    """Maximum output budget for a capability, 2000 when unknown."""
    return CAPABILITY_BUDGETS.get(capability, DEFAULT_OUTPUT_BUDGET)


# ============================================================
# Task slug
# ============================================================

MAX_SLUG_LENGTH = 40
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def task_slug(task: str) -> str:
    """
    Normalize a task into a filesystem-safe key.

    Lowercase, runs of non-alphanumerics collapsed to ``-``, edge dashes
    stripped, capped at 40 characters.
    """
    slug = _NON_ALNUM_RE.sub("-", task.lower()).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].strip("-")
    return slug or "untitled"


# ============================================================
# Step conditions
# ============================================================

_UX_RE = re.compile(
    r"\bux\b|\bui\b|user experience|frontend|front-end|usability|accessibility|design system"
)
_RESPONSIVE_RE = re.compile(
    r"\bresponsive\b|mobile|tablet|breakpoint|media quer|touch target|viewport|screen size"
)


def is_ux_task(task: str, context: str, flags: FeatureFlags) -> bool:
    if flags.ux is not None:
        return flags.ux
    return bool(_UX_RE.search(f"{task} {context}".lower()))


def is_responsive_task(task: str, context: str, flags: FeatureFlags) -> bool:
    if flags.responsive is not None:
        return flags.responsive
    return bool(_RESPONSIVE_RE.search(f"{task} {context}".lower()))


def is_debate_enabled(task: str, context: str, flags: FeatureFlags) -> bool:
    # Debate is opt-in only
    return bool(flags.debate)


# ============================================================
# Step inputs
# ============================================================

@dataclass(frozen=True)
class ContextLimits:
    """Character budgets applied when building step parameters."""

    intermediate: int = PRIOR_CONTEXT_LIMIT_INTERMEDIATE
    synthesis: int = PRIOR_CONTEXT_LIMIT_SYNTHESIS
    code: int = CODE_CONTEXT_LIMIT


@dataclass
class StepInputs:
    """
    Everything a parameter builder may read.

    Built once per coordinator call. ``prior`` is the effective prior
    (longest known output per step id). ``synthesis`` is set for steps
    flagged ``is_synthesis`` and raises the default distillation budget.
    """

    task: str
    context: str = ""
    code_context: str = ""
    answers: str = ""
    prior: dict[str, str] = field(default_factory=dict)
    today: date = field(default_factory=date.today)
    limits: ContextLimits = field(default_factory=ContextLimits)
    working_memory: str = ""
    synthesis: bool = False

    def has(self, key: str) -> bool:
        return bool(self.prior.get(key))

    def summary(self, key: str) -> str:
        """Intermediate-sized distilled output for ``key`` ("" when absent)."""
        return extract_summary(self.prior.get(key), self.limits.intermediate)

    @property
    def prior_limit(self) -> int:
        return self.limits.synthesis if self.synthesis else self.limits.intermediate

    def distilled(self, key: str) -> str:
        """Distilled output for ``key`` within ``prior_limit``, ``N/A`` when absent."""
        raw = self.prior.get(key)
        if not raw:
            return "N/A"
        return extract_summary(raw, self.prior_limit)

    def full(self, key: str) -> str:
        """Synthesis-sized truncation of the full output ("" when absent)."""
        return truncate_smart(self.prior.get(key), self.limits.synthesis)

    def code(self) -> str:
        return truncate_smart(self.code_context, self.limits.code)


# ============================================================
# Workflow step
# ============================================================

@dataclass(frozen=True)
class WorkflowStep:
    """
    One capability invocation in the planning workflow.

    ``rationale`` explains why the step exists and what it contributes;
    it is surfaced to the caller alongside the next action.
    """

    id: str
    phase: str
    capability: str
    build_params: Callable[[StepInputs], dict[str, Any]]
    description: str
    rationale: str = ""
    condition: Condition | None = None
    is_synthesis: bool = False
    devlog_type: str | None = None  # "progress" | "note"

    def is_active(self, task: str, context: str, flags: FeatureFlags) -> bool:
        return self.condition is None or self.condition(task, context, flags)

    @property
    def max_output_budget(self) -> int:
        return get_max_output_budget(self.capability)


class WorkflowRegistry:
    """
    Ordered collection of workflow steps.

    Usage:
        registry = WorkflowRegistry()
        registry.register(search_step)
        workflow = registry.active_workflow(task, context, flags)
    """

    def __init__(self, steps: list[WorkflowStep] | None = None):
        self._steps: dict[str, WorkflowStep] = {}
        for step in steps or []:
            self.register(step)

    def register(self, step: WorkflowStep) -> WorkflowStep:
        """Append a step. Step ids must be unique."""
        if step.id in self._steps:
            raise DuplicateStepError(step.id)
        self._steps[step.id] = step
        return step

    def get(self, step_id: str) -> WorkflowStep | None:
        return self._steps.get(step_id)

    def all_steps(self) -> list[WorkflowStep]:
        return list(self._steps.values())

    def active_workflow(
        self,
        task: str,
        context: str = "",
        flags: FeatureFlags | None = None,
    ) -> list[WorkflowStep]:
        """
        Steps whose condition holds for this run, in registration order.

        Deterministic for a given (task, context, flags), which is what
        keeps the workflow frozen across calls of the same run.
        """
        flags = flags or FeatureFlags()
        return [step for step in self._steps.values() if step.is_active(task, context, flags)]

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps
