"""
Planning Module

The council workflow: context distillation, output accumulation, the
step coordinator, plan artifacts and the plan runner.
"""

from plancouncil.planning.accumulator import (
    FileOutputStore,
    InMemoryOutputStore,
    OutputAccumulator,
    OutputStore,
    RedisOutputStore,
    create_store,
)
from plancouncil.planning.coordinator import StepCoordinator, effective_prior, read_issue_file
from plancouncil.planning.distiller import (
    DISTILL_SUFFIX,
    distill_context,
    extract_summary,
    truncate_smart,
)
from plancouncil.planning.persister import PlanPersister, parse_scores
from plancouncil.planning.runner import PlanRunner, compute_checkpoints, parse_plan_steps
from plancouncil.planning.steps import DEFAULT_STEPS, default_registry
from plancouncil.planning.workflow import (
    ContextLimits,
    StepInputs,
    WorkflowRegistry,
    WorkflowStep,
    get_max_output_budget,
    task_slug,
)

__all__ = [
    # Accumulator
    "FileOutputStore",
    "InMemoryOutputStore",
    "OutputAccumulator",
    "OutputStore",
    "RedisOutputStore",
    "create_store",
    # Coordinator
    "StepCoordinator",
    "effective_prior",
    "read_issue_file",
    # Distiller
    "DISTILL_SUFFIX",
    "distill_context",
    "extract_summary",
    "truncate_smart",
    # Persister
    "PlanPersister",
    "parse_scores",
    # Runner
    "PlanRunner",
    "compute_checkpoints",
    "parse_plan_steps",
    # Workflow
    "ContextLimits",
    "DEFAULT_STEPS",
    "StepInputs",
    "WorkflowRegistry",
    "WorkflowStep",
    "default_registry",
    "get_max_output_budget",
    "task_slug",
]
