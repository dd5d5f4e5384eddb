"""
Plan Runner

Parses a finished plan into steps and guides execution through it, with
verification requested at fixed checkpoints (50%, 80%, 100%).

Design decisions:
- Parsing is an ordered chain of independent strategies; the first one
  finding at least two steps wins, with a header-split fallback
- Checkpoint positions use integer ceiling arithmetic
- Stateless: completed step numbers are supplied on every call
"""

import logging
import re
from abc import ABC, abstractmethod

from plancouncil.core.exceptions import PlanParseError
from plancouncil.core.types import (
    CheckpointKind,
    DevlogHint,
    ParsedStep,
    PlanCheckpoint,
    PlanParseResult,
    RunnerCall,
    RunnerMode,
    RunnerResponse,
    VerificationInstruction,
)
from plancouncil.planning.formatting import progress_label

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100
MAX_DETAILS_LENGTH = 500
MIN_STRATEGY_MATCHES = 2

PROGRESS_CODE_LIMIT = 1500
FINAL_CODE_LIMIT = 2000
REMAINING_DETAILS_LIMIT = 100


def _make_step(number: int, title: str, details: str) -> ParsedStep:
    return ParsedStep(
        number=number,
        title=title.strip()[:MAX_TITLE_LENGTH],
        details=details.strip()[:MAX_DETAILS_LENGTH],
    )


# ============================================================
# Parse strategies
# ============================================================

class ParseStrategy(ABC):
    """One way of recognizing steps in a plan document."""

    name: str = "base"

    @abstractmethod
    def parse(self, plan: str) -> list[ParsedStep]:
        """Return the steps found (possibly none)."""
        pass


class RegexParseStrategy(ParseStrategy):
    """Strategy driven by a pattern with ``title`` and ``details`` groups."""

    pattern: re.Pattern

    def parse(self, plan: str) -> list[ParsedStep]:
        steps: list[ParsedStep] = []
        for match in self.pattern.finditer(plan):
            title = match.group("title").strip()
            if not title:
                continue
            steps.append(_make_step(len(steps) + 1, title, match.group("details") or ""))
        return steps


class StepHeaderStrategy(RegexParseStrategy):
    """``### Step 1: title`` or ``### Task 1: title`` headers."""

    name = "step_headers"
    pattern = re.compile(
        r"^#{2,4}\s*(?:Step|Task)\s*\d+[:.\s]+(?P<title>[^\n]+)"
        r"(?P<details>[\s\S]*?)(?=^#{2,4}\s*(?:Step|Task)\s*\d+|^#{1,2}\s|\Z)",
        re.IGNORECASE | re.MULTILINE,
    )


class NumberedListStrategy(RegexParseStrategy):
    """Top-level numbered list items (``1. title``)."""

    name = "numbered_list"
    pattern = re.compile(
        r"^\s*\d+\.\s*(?P<title>[^\n]+)(?P<details>[\s\S]*?)(?=^\s*\d+\.|\Z)",
        re.MULTILINE,
    )


class StepPrefixStrategy(RegexParseStrategy):
    """Plain ``Step 1: title`` lines."""

    name = "step_prefix"
    pattern = re.compile(
        r"^Step\s*\d+[:\s]+(?P<title>[^\n]+)(?P<details>[\s\S]*?)(?=^Step\s*\d+|\Z)",
        re.IGNORECASE | re.MULTILINE,
    )


class HeaderSplitStrategy(ParseStrategy):
    """
    Fallback: every markdown section header (levels 1-3) is a step.

    Level-1 headers naming the plan itself (``# Rollout Plan``) are taken
    as the document title and skipped, unless they are the only headers.
    """

    name = "header_split"
    _header = re.compile(r"^(?P<level>#{1,3})\s+(?P<title>[^\n]+)$", re.MULTILINE)
    _plan_title = re.compile(r"\bplan\b", re.IGNORECASE)

    def _is_document_title(self, match: re.Match) -> bool:
        return len(match.group("level")) == 1 and bool(self._plan_title.search(match.group("title")))

    def parse(self, plan: str) -> list[ParsedStep]:
        headers = [m for m in self._header.finditer(plan) if m.group("title").strip()]
        sections = [m for m in headers if not self._is_document_title(m)] or headers

        steps: list[ParsedStep] = []
        for match in sections:
            following = [m.start() for m in headers if m.start() > match.start()]
            end = following[0] if following else len(plan)
            steps.append(_make_step(len(steps) + 1, match.group("title"), plan[match.end():end]))
        return steps


DEFAULT_STRATEGIES: list[ParseStrategy] = [
    StepHeaderStrategy(),
    NumberedListStrategy(),
    StepPrefixStrategy(),
]

FALLBACK_STRATEGY: ParseStrategy = HeaderSplitStrategy()


def parse_plan_steps(
    plan: str,
    strategies: list[ParseStrategy] | None = None,
    strict: bool = False,
) -> PlanParseResult:
    """
    Parse a plan into ordered steps.

    Raises:
        PlanParseError: If ``strict`` and no steps were found
    """
    for strategy in strategies or DEFAULT_STRATEGIES:
        steps = strategy.parse(plan)
        if len(steps) >= MIN_STRATEGY_MATCHES:
            return PlanParseResult(steps=steps, strategy=strategy.name, parsed=True)

    steps = FALLBACK_STRATEGY.parse(plan)
    if steps:
        return PlanParseResult(steps=steps, strategy=FALLBACK_STRATEGY.name, parsed=True)

    if strict:
        raise PlanParseError(
            "Could not parse steps from plan",
            context={"preview": plan[:200]},
        )
    return PlanParseResult()


# ============================================================
# Checkpoints
# ============================================================

def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def compute_checkpoints(total: int) -> list[PlanCheckpoint]:
    """
    Checkpoints for a plan of ``total`` steps.

    50% and 80% land on ceil(total/2) and ceil(4*total/5). When they
    coincide only the 50% review is kept. 100% is always the last step,
    so on short plans it can share a step with an earlier checkpoint.
    """
    if total <= 0:
        return []

    halfway = _ceil_div(total, 2)
    eighty = _ceil_div(4 * total, 5)

    checkpoints = [PlanCheckpoint(step=halfway, percent="50%", kind=CheckpointKind.PROGRESS_REVIEW)]
    if eighty != halfway:
        checkpoints.append(
            PlanCheckpoint(step=eighty, percent="80%", kind=CheckpointKind.DECOMPOSE_REMAINING)
        )
    checkpoints.append(PlanCheckpoint(step=total, percent="100%", kind=CheckpointKind.FINAL_REVIEW))
    return checkpoints


_LABEL_KINDS = {
    "50%": CheckpointKind.PROGRESS_REVIEW,
    "80%": CheckpointKind.DECOMPOSE_REMAINING,
    "100%": CheckpointKind.FINAL_REVIEW,
}


def checkpoint_for_label(label: str, total: int) -> PlanCheckpoint | None:
    """Resolve a ``50%``/``80%``/``100%`` label to its checkpoint."""
    kind = _LABEL_KINDS.get(label)
    if kind is None:
        return None
    step = {
        CheckpointKind.PROGRESS_REVIEW: _ceil_div(total, 2),
        CheckpointKind.DECOMPOSE_REMAINING: _ceil_div(4 * total, 5),
        CheckpointKind.FINAL_REVIEW: total,
    }[kind]
    return PlanCheckpoint(step=step, percent=label, kind=kind)


# ============================================================
# Verification prompts
# ============================================================

def _numbered(titles: list[str]) -> str:
    return "\n".join(f"{i}. {title}" for i, title in enumerate(titles, 1))


def progress_review(
    completed: list[ParsedStep],
    remaining: list[ParsedStep],
    code: str | None,
) -> VerificationInstruction:
    parts = [
        "50% Progress Check:",
        "",
        "COMPLETED STEPS:",
        _numbered([s.title for s in completed]),
        "",
        "REMAINING STEPS:",
        _numbered([s.title for s in remaining]),
    ]
    if code:
        parts += ["", f"CODE SNAPSHOT:\n{code[:PROGRESS_CODE_LIMIT]}"]
    parts += [
        "",
        "Questions:",
        "1. Are the completed steps implemented correctly?",
        "2. Are there issues to address before continuing?",
        "3. Should the remaining steps be adjusted?",
    ]
    return VerificationInstruction(
        title="Progress review",
        capability="qwen_reason",
        prompt="\n".join(parts),
    )


def decompose_remaining(
    completed: list[ParsedStep],
    remaining: list[ParsedStep],
) -> VerificationInstruction:
    lines = []
    for i, step in enumerate(remaining, 1):
        detail = f": {step.details[:REMAINING_DETAILS_LIMIT]}" if step.details else ""
        lines.append(f"{i}. {step.title}{detail}")

    prompt = "\n".join(
        [
            "task: Complete the remaining implementation steps of the current plan",
            "context:",
            "Remaining steps:",
            *lines,
            "",
            f"Completed: {', '.join(s.title for s in completed)}",
            "depth: 3",
            "outputFormat: dependencies",
        ]
    )
    return VerificationInstruction(
        title="Decompose remaining work into granular subtasks",
        capability="kimi_decompose",
        prompt=prompt,
    )


def final_review(
    steps: list[ParsedStep],
    completed_numbers: list[int],
    code: str | None,
) -> VerificationInstruction:
    parts = [
        "100% Final Review:",
        "",
        "ALL STEPS:",
        "\n".join(
            f"{s.number}. {s.title} {'✅' if s.number in completed_numbers else '❌'}" for s in steps
        ),
    ]
    if code:
        parts += ["", f"FINAL CODE:\n{code[:FINAL_CODE_LIMIT]}"]
    parts += [
        "",
        "Provide:",
        "1. A score out of 10 for each of: quality, completeness, security, performance",
        "2. Any issues found",
        "3. Verdict: APPROVED or NEEDS_REVISION",
    ]
    return VerificationInstruction(
        title="Final review",
        capability="gemini_analyze_text",
        prompt="\n".join(parts),
    )


def ux_instructions(label: str) -> list[VerificationInstruction]:
    return [
        VerificationInstruction(
            title="UX flow analysis",
            capability="kimi_thinking",
            prompt=(
                f"Trace the user journey for the {label} implementation. Check initial state, "
                "interactions, error states, empty states, loading states and keyboard/screen "
                "reader access."
            ),
        ),
        VerificationInstruction(
            title="UX scoring",
            capability="gemini_analyze_text",
            prompt=(
                "Score /10: Usability, Accessibility (WCAG 2.1 AA), Interaction Design, "
                "Consistency, Performance UX. List the top 3 UX blockers."
            ),
        ),
    ]


def responsive_instruction() -> VerificationInstruction:
    return VerificationInstruction(
        title="Responsiveness review",
        capability="gemini_analyze_text",
        prompt="\n".join(
            [
                "Review the implementation for responsive design:",
                "1. BREAKPOINTS: mobile (<=640px), tablet (641-1024px), desktop (>1024px) handled?",
                "2. TOUCH TARGETS: at least 44x44px for interactive elements?",
                "3. LAYOUT: content reflows without horizontal scroll?",
                "4. TYPOGRAPHY: readable sizes and line lengths on mobile?",
                "5. NAVIGATION: collapses or adapts on small screens?",
                "6. IMAGES/MEDIA: responsive sources, aspect ratios kept?",
                "7. FORMS: usable on mobile with appropriate input types?",
                "Score each /10 and list specific breakpoint issues.",
            ]
        ),
    )


# ============================================================
# Runner
# ============================================================

def _call(**kwargs: object) -> str:
    args = ", ".join(f"{key}: {value}" for key, value in kwargs.items())
    return f"planner_runner({{ plan, {args} }})"


class PlanRunner:
    """
    Step-by-step execution guide for a finished plan.

    Usage:
        runner = PlanRunner()
        response = runner.handle(RunnerCall(plan=text, mode=RunnerMode.START))
    """

    def __init__(self, strategies: list[ParseStrategy] | None = None):
        self._strategies = strategies

    def parse(self, plan: str, strict: bool = False) -> PlanParseResult:
        return parse_plan_steps(plan, self._strategies, strict=strict)

    def handle(self, call: RunnerCall, strict: bool = False) -> RunnerResponse:
        """
        Dispatch a runner call by mode.

        Raises:
            PlanParseError: If ``strict`` and the plan has no recognizable steps
        """
        parsed = self.parse(call.plan, strict=strict)
        checkpoints = compute_checkpoints(parsed.total)
        logger.debug(f"Parsed {parsed.total} steps with strategy {parsed.strategy}")

        if call.mode == RunnerMode.STEP:
            return self._step(call, parsed, checkpoints)
        if call.mode == RunnerMode.VERIFY:
            return self._verify(call, parsed, checkpoints)
        return self._start(call, parsed, checkpoints)

    def _start(
        self,
        call: RunnerCall,
        parsed: PlanParseResult,
        checkpoints: list[PlanCheckpoint],
    ) -> RunnerResponse:
        response = RunnerResponse(
            mode=RunnerMode.START,
            total_steps=parsed.total,
            parse=parsed,
            checkpoints=checkpoints,
        )
        if not parsed.parsed:
            return response

        if call.devlog:
            first = parsed.steps[0].title[:40] if parsed.steps else "Implementation"
            response.devlog_hint = DevlogHint(
                tool="devlog_plan_create",
                params={"title": first, "items": [s.title for s in parsed.steps[:10]]},
                description="Create a devlog plan checklist",
            )
        response.next_call = _call(mode='"step"', stepNum=1)
        return response

    def _step(
        self,
        call: RunnerCall,
        parsed: PlanParseResult,
        checkpoints: list[PlanCheckpoint],
    ) -> RunnerResponse:
        number = call.step_num or 0
        response = RunnerResponse(
            mode=RunnerMode.STEP,
            total_steps=parsed.total,
            parse=parsed,
            checkpoints=checkpoints,
        )

        if not 1 <= number <= parsed.total:
            response.error = f"Step {number} not found. Plan has {parsed.total} steps."
            return response

        response.step = parsed.steps[number - 1]
        response.progress = progress_label(number, parsed.total)

        # Reminders only for the intermediate checkpoints; the final one
        # is signalled through next_call
        for checkpoint in checkpoints:
            if checkpoint.step == number and checkpoint.kind != CheckpointKind.FINAL_REVIEW:
                response.checkpoint = checkpoint
                break

        done = sorted(set(call.completed) | {number})
        done_list = "[" + ", ".join(str(n) for n in done) + "]"
        if number < parsed.total:
            response.next_call = _call(mode='"step"', stepNum=number + 1, completed=done_list)
        else:
            response.next_call = _call(
                mode='"verify"', checkpoint='"100%"', completed=done_list, code='"..."'
            )
        return response

    def _verify(
        self,
        call: RunnerCall,
        parsed: PlanParseResult,
        checkpoints: list[PlanCheckpoint],
    ) -> RunnerResponse:
        response = RunnerResponse(
            mode=RunnerMode.VERIFY,
            total_steps=parsed.total,
            parse=parsed,
            checkpoints=checkpoints,
        )

        checkpoint = checkpoint_for_label(call.checkpoint or "", parsed.total)
        if checkpoint is None:
            response.error = f"Unknown checkpoint: {call.checkpoint}. Use 50%, 80% or 100%."
            return response
        response.checkpoint = checkpoint

        completed = [s for s in parsed.steps if s.number in call.completed]
        remaining = [s for s in parsed.steps if s.number not in call.completed]
        response.progress = progress_label(len(completed), parsed.total)
        response.completed_titles = [s.title for s in completed]
        if checkpoint.kind != CheckpointKind.FINAL_REVIEW:
            response.remaining_titles = [s.title for s in remaining]

        if checkpoint.kind == CheckpointKind.PROGRESS_REVIEW:
            response.primary = progress_review(completed, remaining, call.code)
        elif checkpoint.kind == CheckpointKind.DECOMPOSE_REMAINING:
            response.primary = decompose_remaining(completed, remaining)
        else:
            response.primary = final_review(parsed.steps, call.completed, call.code)

        if call.ux:
            response.extras.extend(ux_instructions(checkpoint.percent))
        if call.responsive:
            response.extras.append(responsive_instruction())

        if call.devlog:
            response.devlog_hint = DevlogHint(
                tool="devlog_session_log",
                params={
                    "entry": f"{checkpoint.percent} checkpoint - {len(completed)}/{parsed.total} steps",
                    "type": "progress",
                },
            )

        if checkpoint.kind == CheckpointKind.FINAL_REVIEW:
            response.next_call = "If APPROVED: done. If NEEDS_REVISION: address feedback and re-verify."
        else:
            done_list = "[" + ", ".join(str(n) for n in sorted(call.completed)) + "]"
            response.next_call = "After verification, continue: " + _call(
                mode='"step"', stepNum=len(call.completed) + 1, completed=done_list
            )
        return response
