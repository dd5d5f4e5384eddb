"""
Default Council Steps

The planning council's step definitions, in workflow order:

    Search → Analysis → Decomposition → [Debate] → Critique
           → [UX Review] → [Responsive Review] → Judgment

Bracketed phases are conditional. Intermediate prompts end with
DISTILL_SUFFIX so later steps can travel on the summary block alone.
"""

from typing import Any

from plancouncil.planning.distiller import DISTILL_SUFFIX
from plancouncil.planning.workflow import (
    StepInputs,
    WorkflowRegistry,
    WorkflowStep,
    is_debate_enabled,
    is_responsive_task,
    is_ux_task,
)


def _lines(*parts: str) -> str:
    """Join non-empty prompt parts with newlines."""
    return "\n".join(part for part in parts if part)


def _optional(label: str, value: str, sep: str = "\n") -> str:
    return f"{label}{sep}{value}" if value else ""


def _date_label(inputs: StepInputs) -> str:
    return f"{inputs.today:%B} {inputs.today.day}, {inputs.today.year}"


# ============================================================
# Phase 1: Search
# ============================================================

def _search_params(inputs: StepInputs) -> dict[str, Any]:
    base = inputs.task
    if inputs.answers:
        base = f"{inputs.task}\n\nUser clarifications:\n{inputs.answers}"
    return {
        "query": f"{base} best practices as of {_date_label(inputs)}",
        "maxResults": 10,
    }


# ============================================================
# Phase 2: Analysis + Decomposition
# ============================================================

def _analyze_qwen_params(inputs: StepInputs) -> dict[str, Any]:
    if inputs.code_context:
        instructions = _lines(
            "ACTUAL CODE TO REVIEW:",
            inputs.code(),
            "",
            "Review this code and provide:",
            "1. Quality score /10 (readability, structure, patterns)",
            "2. Security score /10 (vulnerabilities, input validation)",
            "3. Performance score /10 (complexity, bottlenecks)",
            "4. Specific issues with line references",
            "5. Implementation approach for the task",
        )
    else:
        instructions = "Assess feasibility and propose an implementation approach."

    params: dict[str, Any] = {"task": "review" if inputs.code_context else "analyze"}
    if inputs.code_context:
        params["code"] = inputs.code_context
    params["requirements"] = _lines(
        f"Task: {inputs.task}",
        _optional("Context: ", inputs.context, sep=""),
        _optional("User Clarifications:", inputs.answers),
        _optional("Research:", inputs.summary("search")),
        instructions,
    ) + DISTILL_SUFFIX
    return params


def _analyze_kimi_params(inputs: StepInputs) -> dict[str, Any]:
    if inputs.code_context:
        instructions = _lines(
            "ACTUAL CODE:",
            inputs.code(),
            "",
            "Trace the execution flow and provide:",
            "1. Current code flow (what happens now)",
            "2. Required changes, step by step",
            "3. Files to modify with line ranges",
            "4. Order of changes (dependencies)",
        )
    else:
        instructions = "Reason step by step about how to implement this."

    return {
        "problem": _lines(
            f"Task: {inputs.task}",
            _optional("Context: ", inputs.context, sep=""),
            _optional("Research:", inputs.summary("search")),
            instructions,
        ) + DISTILL_SUFFIX,
        "approach": "systematic",
    }


def _decompose_params(inputs: StepInputs) -> dict[str, Any]:
    task = inputs.task
    if inputs.answers:
        task = f"{inputs.task}\n\nUser clarifications:\n{inputs.answers}"
    context = "\n\n".join(
        part
        for part in (
            inputs.context,
            _optional("Research:", inputs.summary("search")),
            _optional("Code Analysis:", inputs.summary("analyze_qwen")),
            _optional("Step-by-step Analysis:", inputs.summary("analyze_kimi")),
        )
        if part
    )
    return {
        "task": task,
        "context": context,
        "depth": 3,
        "outputFormat": "dependencies",
    }


# ============================================================
# Phase 2b: Debate (opt-in)
# ============================================================

def _debate_pro_params(inputs: StepInputs) -> dict[str, Any]:
    return {
        "query": _lines(
            "You are the ADVOCATE. Make the case FOR this implementation approach.",
            "",
            f"TASK: {inputs.task}",
            _optional("CONTEXT: ", inputs.context, sep=""),
            "",
            f"QWEN'S ANALYSIS: {inputs.distilled('analyze_qwen')}",
            f"KIMI'S ANALYSIS: {inputs.distilled('analyze_kimi')}",
            "",
            "Give the TOP 5 reasons this approach is right:",
            "1. Why the architecture fits",
            "2. Why the complexity is justified",
            "3. Best-case outcomes",
            "4. How it handles scale and edge cases",
            "5. Why the alternatives are worse",
            "",
            "Main points only, 3-4 sentences each.",
        ) + DISTILL_SUFFIX,
        "mode": "analytical",
    }


def _debate_con_params(inputs: StepInputs) -> dict[str, Any]:
    return {
        "text": _lines(
            "You are the CRITIC. Argue AGAINST the approach, then reconcile both sides.",
            "",
            f"TASK: {inputs.task}",
            _optional("CONTEXT: ", inputs.context, sep=""),
            "",
            "ARGUMENTS FOR (Grok):",
            inputs.distilled("debate_pro"),
            "",
            f"QWEN'S ANALYSIS: {inputs.distilled('analyze_qwen')}",
            "",
            "PART 1 - AGAINST (top 5 risks):",
            "1. Design weaknesses",
            "2. Hidden complexity or tech debt",
            "3. Scalability and performance risks",
            "4. Security or reliability concerns",
            "5. Alternatives not considered",
            "",
            "PART 2 - SYNTHESIS (3-5 key tensions):",
            "For each tension state the PRO view, the CON view and what the PLAN must address.",
        ) + DISTILL_SUFFIX,
        "type": "general",
    }


# ============================================================
# Phase 3: Critique
# ============================================================

def _critique_params(inputs: StepInputs) -> dict[str, Any]:
    has_code = bool(inputs.code_context)
    has_debate = inputs.has("debate_con")
    return {
        "query": _lines(
            "PRE-MORTEM + CRITIQUE: assume this implementation FAILED in production "
            "three months from now and work backward to the causes.",
            "",
            f"TASK: {inputs.task}",
            _optional("USER CLARIFICATIONS:", inputs.answers),
            "",
            f"QWEN ANALYSIS: {inputs.distilled('analyze_qwen')}",
            f"KIMI ANALYSIS: {inputs.distilled('analyze_kimi')}",
            _optional("DEBATE SYNTHESIS (tensions to address):", inputs.summary("debate_con")),
            _optional("ACTUAL CODE BEING MODIFIED:", inputs.code() if has_code else ""),
            "",
            "Brainstorm 5-7 specific failure causes and rank them by likelihood. Then list:",
            "1. The 3 most likely failure causes with early warning signs",
            "2. Considerations the analyses missed",
            "3. Security vulnerabilities" + (" (check the actual code)" if has_code else ""),
            "4. Performance issues" + (" (check complexity)" if has_code else ""),
            "5. Uncovered edge cases",
            "6. Unresolved tensions from the debate" if has_debate else "",
            "7. A mitigation for each failure cause",
            "8. A score /10 for the proposed approach",
        ) + DISTILL_SUFFIX,
        "mode": "analytical",
    }


# ============================================================
# Phase 3b-d: UX + Responsive (conditional)
# ============================================================

def _ux_analyze_params(inputs: StepInputs) -> dict[str, Any]:
    return {
        "problem": _lines(
            "UX/FRONTEND ANALYSIS for this implementation:",
            "",
            f"TASK: {inputs.task}",
            _optional("CONTEXT: ", inputs.context, sep=""),
            "",
            "TECHNICAL ANALYSES:",
            f"- Code Review: {inputs.distilled('analyze_qwen')}",
            f"- Critique: {inputs.distilled('critique')}",
            _optional("ACTUAL CODE:", inputs.code() if inputs.code_context else ""),
            "",
            "Trace the user journey step by step:",
            "1. Initial state: what does the user see first?",
            "2. Affordances: what can they interact with?",
            "3. State transitions on each interaction",
            "4. Error states",
            "5. Empty states",
            "6. Overflow and pagination",
            "7. Keyboard-only and screen reader use",
            "",
            "For each step name friction points, missing states and accessibility gaps.",
        ) + DISTILL_SUFFIX,
        "approach": "systematic",
        "maxSteps": 4,
    }


def _ux_judge_params(inputs: StepInputs) -> dict[str, Any]:
    return {
        "text": _lines(
            "UX FINAL JUDGMENT: turn the findings into a scored assessment.",
            "",
            f"TASK: {inputs.task}",
            _optional("CONTEXT: ", inputs.context, sep=""),
            "",
            "UX FLOW ANALYSIS (Kimi):",
            inputs.distilled("ux_analyze"),
            "",
            "TECHNICAL CRITIQUE (GPT):",
            inputs.distilled("critique"),
            "",
            "Score each dimension /10 with specific findings:",
            "1. USABILITY",
            "2. ACCESSIBILITY (WCAG 2.1 AA, keyboard, screen readers, contrast)",
            "3. INTERACTION DESIGN (loading, error, empty, success states)",
            "4. CONSISTENCY with the design system",
            "5. RESPONSIVENESS across breakpoints",
            "6. PERCEIVED PERFORMANCE",
            "7. EDGE CASES (0 items, 1000+ items, long text, RTL, offline)",
            "",
            "Provide:",
            "- UX SCORE: X/10",
            "- TOP 3 UX REQUIREMENTS the plan must include",
            "- BLOCKERS that would prevent shipping",
        ) + DISTILL_SUFFIX,
        "type": "general",
    }


def _responsive_params(inputs: StepInputs) -> dict[str, Any]:
    return {
        "problem": _lines(
            "RESPONSIVE DESIGN ASSESSMENT:",
            "",
            f"TASK: {inputs.task}",
            _optional("CONTEXT: ", inputs.context, sep=""),
            _optional("CODE:", inputs.code() if inputs.code_context else ""),
            _optional("UX FINDINGS:", inputs.full("ux_judge")),
            "",
            "Evaluate each breakpoint:",
            "",
            "MOBILE (<=640px): layout stacking, touch targets >=44x44px, "
            "base font >=16px, collapsed navigation, input types",
            "TABLET (641-1024px): columns, orientation, hover states for trackpads",
            "DESKTOP (>1024px): max content width, whitespace, multi-panel layouts",
            "CROSS-CUTTING: responsive images, overflow, prefers-reduced-motion, CLS and LCP",
            "",
            "Score each breakpoint /10 and list specific issues.",
        ) + DISTILL_SUFFIX,
        "approach": "systematic",
        "maxSteps": 4,
    }


# ============================================================
# Phase 4: Judgment
# ============================================================

def _judge_draft_params(inputs: StepInputs) -> dict[str, Any]:
    critique = inputs.full("critique") or "N/A"
    return {
        "problem": _lines(
            "Synthesize a coherent implementation plan:",
            "",
            f"TASK: {inputs.task}",
            _optional("USER REQUIREMENTS:", inputs.answers),
            _optional("WORKING MEMORY:", inputs.working_memory),
            "",
            "ANALYSES:",
            f"- Qwen: {inputs.distilled('analyze_qwen')}",
            f"- Kimi: {inputs.distilled('analyze_kimi')}",
            _optional("TASK DECOMPOSITION (subtasks + dependencies):", inputs.full("decompose_kimi")),
            "",
            "CRITIQUE (holes found):",
            critique,
            _optional("DEBATE SYNTHESIS (key tensions):", inputs.summary("debate_con")),
            _optional("UX ASSESSMENT:", inputs.full("ux_judge")),
            _optional("RESPONSIVE ASSESSMENT:", inputs.full("responsive_judge")),
            "Note: the analyses were run against actual code." if inputs.code_context else "",
            "",
            "Produce a structured plan that addresses every concern.",
            "Order steps by the dependencies in the decomposition." if inputs.has("decompose_kimi") else "",
            "Resolve each debate tension explicitly." if inputs.has("debate_con") else "",
            "Include the UX requirements and accessibility criteria." if inputs.has("ux_judge") else "",
            "Include breakpoint specifications." if inputs.has("responsive_judge") else "",
            "Include an overall confidence score /10.",
        ),
        "approach": "logical",
    }


def _judge_final_params(inputs: StepInputs) -> dict[str, Any]:
    scores = ["   - Code Quality: X/10", "   - Security: X/10", "   - Performance: X/10"]
    if inputs.has("ux_judge"):
        scores.append("   - UX/Accessibility: X/10")
    if inputs.has("responsive_judge"):
        scores.append("   - Responsiveness: X/10")
    scores += ["   - Confidence: X/10", "   - Overall: X/10"]

    return {
        "text": _lines(
            "Write the FINAL implementation plan as BITE-SIZED STEPS.",
            "",
            f"TASK: {inputs.task}",
            _optional("CONTEXT: ", inputs.context, sep=""),
            _optional("USER REQUIREMENTS:", inputs.answers),
            _optional("WORKING MEMORY:", inputs.working_memory),
            "",
            "DRAFT PLAN (Qwen):",
            inputs.prior.get("judge_draft") or "N/A",
            "",
            "PRE-MORTEM + CRITIQUE (GPT):",
            inputs.full("critique") or "N/A",
            _optional("TASK DECOMPOSITION (subtasks + dependencies):", inputs.full("decompose_kimi")),
            _optional("UX ASSESSMENT:", inputs.full("ux_judge")),
            _optional("RESPONSIVE ASSESSMENT:", inputs.full("responsive_judge")),
            "Note: all analysis was run against the provided code." if inputs.code_context else "",
            "",
            "OUTPUT FORMAT (each task takes 2-5 minutes):",
            "",
            "### Task N: [Component Name]",
            "**Files:** Create: path/to/file | Modify: path/to/file:lines | Test: path/to/test",
            "**Step 1:** Write the failing test (show the test code)",
            "**Step 2:** Run it and confirm it fails (exact command and expected output)",
            "**Step 3:** Write the minimal implementation (show the code)",
            "**Step 4:** Run the test and confirm it passes (exact command)",
            "**Step 5:** Commit (exact git command and message)",
            "",
            "REQUIREMENTS:",
            "1. Exact file paths for every change",
            "2. Test first: fail, implement, pass, commit",
            "3. Complete code in every step",
            "4. Exact commands with expected output",
            "5. Checkpoints at 50%, 80% and 100%",
            "6. A mitigation for every pre-mortem failure cause",
            "7. Tasks ordered from simplest to hardest",
            "",
            "**QUALITY ASSESSMENT (at the end):**",
            *scores,
        ),
        "type": "general",
    }


# ============================================================
# Registry
# ============================================================

DEFAULT_STEPS: list[WorkflowStep] = [
    WorkflowStep(
        id="search",
        phase="Search",
        capability="grok_search",
        build_params=_search_params,
        description="Search for relevant information + best practices",
        rationale=(
            "Ground truth first. Current best practices and existing solutions "
            "anchor the plan in reality before any model analysis starts."
        ),
        devlog_type="progress",
    ),
    WorkflowStep(
        id="analyze_qwen",
        phase="Analysis",
        capability="qwen_coder",
        build_params=_analyze_qwen_params,
        description="Analyze code feasibility + quality (Qwen)",
        rationale=(
            "Technical feasibility: APIs, dependencies and data structures. "
            "With code provided it scores the actual implementation."
        ),
    ),
    WorkflowStep(
        id="analyze_kimi",
        phase="Analysis",
        capability="kimi_thinking",
        build_params=_analyze_kimi_params,
        description="Step-by-step reasoning (Kimi)",
        rationale=(
            "Methodical reasoning that orders the work. With code provided it "
            "traces execution paths to the exact sequence of changes."
        ),
    ),
    WorkflowStep(
        id="decompose_kimi",
        phase="Decomposition",
        capability="kimi_decompose",
        build_params=_decompose_params,
        description="Task decomposition with dependencies (Kimi)",
        rationale=(
            "Breaks the task into subtasks with ids, dependencies and acceptance "
            "criteria. The dependency graph orders the synthesized plan."
        ),
        devlog_type="progress",
    ),
    WorkflowStep(
        id="debate_pro",
        phase="Debate",
        capability="grok_reason",
        build_params=_debate_pro_params,
        description="Argue FOR the approach (Grok)",
        rationale="Advocate side of a structured debate: strongest arguments for the approach.",
        condition=is_debate_enabled,
    ),
    WorkflowStep(
        id="debate_con",
        phase="Debate",
        capability="gemini_analyze_text",
        build_params=_debate_con_params,
        description="Argue AGAINST + synthesize tensions (Gemini)",
        rationale=(
            "Critic side of the debate, then the tensions between both sides "
            "that the final plan must resolve."
        ),
        condition=is_debate_enabled,
        devlog_type="progress",
    ),
    WorkflowStep(
        id="critique",
        phase="Critique",
        capability="openai_reason",
        build_params=_critique_params,
        description="Find holes and gaps (GPT)",
        rationale=(
            "Pre-mortem: assume the implementation failed in production and "
            "work backward to the causes and their mitigations."
        ),
        devlog_type="progress",
    ),
    WorkflowStep(
        id="ux_analyze",
        phase="UX Review",
        capability="kimi_thinking",
        build_params=_ux_analyze_params,
        description="UX flow analysis (Kimi)",
        rationale=(
            "Traces what the user sees, clicks and waits for to catch loading, "
            "error and empty states that code review misses."
        ),
        condition=is_ux_task,
    ),
    WorkflowStep(
        id="ux_judge",
        phase="UX Review",
        capability="gemini_analyze_text",
        build_params=_ux_judge_params,
        description="UX scoring + requirements (Gemini)",
        rationale="Turns the UX flow analysis into scored criteria and concrete requirements.",
        condition=is_ux_task,
        devlog_type="progress",
    ),
    WorkflowStep(
        id="responsive_judge",
        phase="Responsive Review",
        capability="kimi_thinking",
        build_params=_responsive_params,
        description="Responsive design assessment (Kimi)",
        rationale="Breakpoint by breakpoint review of layout, touch targets and reflow.",
        condition=is_responsive_task,
        devlog_type="progress",
    ),
    WorkflowStep(
        id="judge_draft",
        phase="Judgment",
        capability="qwen_reason",
        build_params=_judge_draft_params,
        description="Draft plan synthesis (Qwen)",
        rationale=(
            "First synthesis pass: merges feasibility, ordered steps and the "
            "critique into one coherent draft."
        ),
        is_synthesis=True,
    ),
    WorkflowStep(
        id="judge_final",
        phase="Judgment",
        capability="gemini_analyze_text",
        build_params=_judge_final_params,
        description="Final plan in bite-sized TDD steps (Gemini)",
        rationale=(
            "Final arbiter. Sees every analysis plus the draft and emits an "
            "executable plan of small test-first tasks with commit points."
        ),
        devlog_type="progress",
        is_synthesis=True,
    ),
]


def default_registry() -> WorkflowRegistry:
    """Registry holding the default council steps."""
    return WorkflowRegistry(DEFAULT_STEPS)
