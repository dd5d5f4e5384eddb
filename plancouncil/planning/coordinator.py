"""
Step Coordinator

Drives the council workflow one capability call at a time. Each call is a
function of (task, context, mode, step, prior, flags) plus the
accumulator's contents, and returns either the next action or the
assembled result.

States:
    START (mode=start)          → workflow frozen, artifact created, step 1
    STEP_k (continue, 1≤k≤N)    → step k-1 recorded, artifact rewritten, step k
    COMPLETE (continue, k>N)    → artifact finalized, cache cleared

The coordinator never invokes capabilities itself; the caller does and
reports outputs back through ``prior``.
"""

import logging
from collections.abc import Callable
from datetime import date
from pathlib import Path

from plancouncil.core.types import (
    CoordinatorCall,
    CoordinatorMode,
    CoordinatorResponse,
    DevlogHint,
    NextAction,
)
from plancouncil.observability.logging import log_context
from plancouncil.planning.accumulator import OutputAccumulator
from plancouncil.planning.distiller import distill_context, format_working_memory
from plancouncil.planning.formatting import progress_label
from plancouncil.planning.persister import (
    PlanPersister,
    build_final_sections,
    final_plan_text,
    parse_scores,
)
from plancouncil.planning.workflow import (
    ContextLimits,
    StepInputs,
    WorkflowRegistry,
    WorkflowStep,
    task_slug,
)

logger = logging.getLogger(__name__)

DEVLOG_TOOL = "devlog_session_log"
COMPLETE_PHASE = "Complete"


def read_issue_file(context: str, issue_file: str | None, base_dir: Path | None = None) -> str:
    """
    Append an issue file's content to the context.

    Relative paths resolve against ``base_dir`` (the working directory by
    default). A missing or unreadable file adds a warning line instead.
    """
    if not issue_file:
        return context

    path = Path(issue_file)
    if not path.is_absolute():
        path = (base_dir or Path.cwd()) / path

    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning(f"Issue file not found: {path}")
        addition = f"[Warning: Issue file not found: {issue_file}]"
    except OSError as e:
        logger.warning(f"Failed to read issue file {path}: {e}")
        addition = f"[Warning: Issue file could not be read: {issue_file}]"
    else:
        logger.info(f"Loaded issue file: {path} ({len(content)} chars)")
        addition = f"--- ISSUE FILE: {issue_file} ---\n{content}"

    return f"{context}\n\n{addition}" if context else addition


def effective_prior(prior: dict[str, str], cached: dict[str, str]) -> dict[str, str]:
    """Per key, the longer of the caller's value and the cached value."""
    merged = dict(cached)
    for key, value in prior.items():
        if value is None:
            continue
        if len(value) > len(merged.get(key, "")):
            merged[key] = value
    return merged


class StepCoordinator:
    """
    The planning state machine.

    Usage:
        coordinator = StepCoordinator(default_registry(), accumulator, persister)
        response = await coordinator.advance(CoordinatorCall(task="Add auth"))
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        accumulator: OutputAccumulator,
        persister: PlanPersister,
        *,
        limits: ContextLimits | None = None,
        today: Callable[[], date] = date.today,
        base_dir: Path | None = None,
    ):
        self._registry = registry
        self._accumulator = accumulator
        self._persister = persister
        self._limits = limits or ContextLimits()
        self._today = today
        self._base_dir = base_dir

    @property
    def registry(self) -> WorkflowRegistry:
        return self._registry

    def workflow_for(self, call: CoordinatorCall, context: str) -> list[WorkflowStep]:
        return self._registry.active_workflow(call.task, context, call.flags)

    async def advance(self, call: CoordinatorCall) -> CoordinatorResponse:
        """Process one coordinator call."""
        context = read_issue_file(call.context, call.issue_file, self._base_dir)
        workflow = self.workflow_for(call, context)
        total = len(workflow)

        if call.mode == CoordinatorMode.START:
            index = 0
        else:
            index = (call.step if call.step is not None else 1) - 1

        with log_context(task_slug=task_slug(call.task), mode=call.mode.value, step=index + 1):
            if index < 0:
                logger.warning(f"Requested step {index + 1} does not exist")
                return CoordinatorResponse(
                    phase="Not Found",
                    step=index + 1,
                    total_steps=total,
                    progress=progress_label(0, total),
                    error=f"Step {index + 1} not found. Workflow has {total} steps.",
                )

            if call.mode == CoordinatorMode.START:
                await self._begin(call, workflow)
                cached: dict[str, str] = {}
            else:
                cached = await self._record_previous(call, workflow, index)

            if index >= total:
                return await self._complete(call, workflow, cached)

            return self._next_step(call, context, workflow, index, cached)

    async def _begin(self, call: CoordinatorCall, workflow: list[WorkflowStep]) -> None:
        # A new run must not inherit outputs from an abandoned one
        await self._accumulator.clear(call.task)
        self._persister.release(call.task)

        if call.devlog:
            path = self._persister.save_incremental(call.task, workflow, {}, 0)
            if path is not None:
                logger.info(f"Plan artifact created: {path}")

        logger.info(f"Workflow frozen with {len(workflow)} steps: {[s.id for s in workflow]}")

    async def _record_previous(
        self,
        call: CoordinatorCall,
        workflow: list[WorkflowStep],
        index: int,
    ) -> dict[str, str]:
        """Accumulate the step that just finished and refresh the artifact."""
        if index == 0 or not workflow:
            return await self._accumulator.load(call.task)

        finished = workflow[min(index, len(workflow)) - 1]
        cached = await self._accumulator.record(call.task, finished.id, call.prior)
        logger.info(
            f"Accumulated {finished.id}: {len(call.prior.get(finished.id, ''))} chars "
            f"(cached: {len(cached.get(finished.id, ''))} chars)"
        )

        if call.devlog and index < len(workflow):
            self._persister.save_incremental(call.task, workflow, cached, index)

        return cached

    def _next_step(
        self,
        call: CoordinatorCall,
        context: str,
        workflow: list[WorkflowStep],
        index: int,
        cached: dict[str, str],
    ) -> CoordinatorResponse:
        step = workflow[index]
        prior = effective_prior(call.prior, cached)
        memory = distill_context(call.task, context, prior)

        inputs = StepInputs(
            task=call.task,
            context=context,
            code_context=call.code_context,
            answers=call.answers,
            prior=prior,
            today=self._today(),
            limits=self._limits,
            working_memory=format_working_memory(memory) if prior else "",
            synthesis=step.is_synthesis,
        )

        devlog_hint = None
        if call.devlog and step.devlog_type:
            devlog_hint = DevlogHint(
                tool=DEVLOG_TOOL,
                params={"entry": f"{step.phase}: {step.description}", "type": step.devlog_type},
                description=f"Log {step.phase.lower()} phase",
            )

        artifact_path = self._persister.path_for(call.task)

        return CoordinatorResponse(
            phase=step.phase,
            step=index + 1,
            total_steps=len(workflow),
            progress=progress_label(index + 1, len(workflow)),
            next_action=NextAction(
                capability=step.capability,
                parameters=step.build_params(inputs),
                max_output_budget=step.max_output_budget,
                description=step.description,
            ),
            devlog_hint=devlog_hint,
            artifact_path=str(artifact_path) if artifact_path else None,
            rationale=step.rationale,
            step_id=step.id,
            working_memory=memory,
        )

    async def _complete(
        self,
        call: CoordinatorCall,
        workflow: list[WorkflowStep],
        cached: dict[str, str],
    ) -> CoordinatorResponse:
        total = len(workflow)

        if workflow:
            last = workflow[-1]
            if call.prior.get(last.id):
                cached = await self._accumulator.record(call.task, last.id, call.prior)

        # The cache is the fidelity source; the caller fills steps it lacks
        outputs = effective_prior(call.prior, cached)
        sections = build_final_sections(workflow, outputs)
        scores = parse_scores("\n".join(outputs.values()))

        await self._accumulator.clear(call.task)

        path = self._persister.save_final(call.task, workflow, outputs, scores or None)

        plan = final_plan_text(outputs)
        result = plan
        if path is not None:
            result = (
                f"{plan}\n\n---\n📁 Full plan saved: `{path}`\n"
                f"Includes all analysis from {len(sections)} steps.\n\n"
                f"To execute it, pass the file content to the runner with mode \"start\"."
            )

        devlog_hint = None
        if call.devlog:
            saved = " (saved to devlog)" if path is not None else ""
            devlog_hint = DevlogHint(
                tool=DEVLOG_TOOL,
                params={"entry": f"Plan complete: {call.task[:80]}{saved}", "type": "progress"},
                description="Log plan completion",
            )

        logger.info(f"Plan complete with {len(sections)} sections, scores={scores}")

        return CoordinatorResponse(
            phase=COMPLETE_PHASE,
            step=total,
            total_steps=total,
            progress=progress_label(total, total),
            is_complete=True,
            result=result,
            artifact_path=str(path) if path is not None else None,
            devlog_hint=devlog_hint,
        )
