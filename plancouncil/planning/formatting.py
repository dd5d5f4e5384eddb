"""
Response Formatting

Markdown rendering of coordinator and runner responses for callers that
display them directly. The structured responses remain the contract;
rendering is presentation only.
"""

import math

from plancouncil.core.types import (
    CheckpointKind,
    CoordinatorResponse,
    RunnerMode,
    RunnerResponse,
)

BAR_WIDTH = 10
BAR_FILLED = "█"
BAR_EMPTY = "░"


def percent(done: int, total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if total <= 0:
        return 0
    return math.floor(done * 100 / total + 0.5)


def progress_label(done: int, total: int) -> str:
    """``k/N (p%)``"""
    return f"{done}/{total} ({percent(done, total)}%)"


def progress_bar(done: int, total: int) -> str:
    """Ten-cell text progress bar."""
    filled = math.floor(done / total * BAR_WIDTH + 0.5) if total > 0 else 0
    filled = max(0, min(BAR_WIDTH, filled))
    return BAR_FILLED * filled + BAR_EMPTY * (BAR_WIDTH - filled)


def _format_list(numbers: list[int]) -> str:
    return ", ".join(str(n) for n in numbers)


# ============================================================
# Coordinator
# ============================================================

def render_coordinator_response(response: CoordinatorResponse) -> str:
    """Render a coordinator response with the exact next call to make."""
    if response.error:
        return f"⚠️ {response.error}"

    lines = [
        f"## {progress_bar(response.step, response.total_steps)} "
        f"Step {response.step}/{response.total_steps} · {response.phase}",
        "",
    ]

    if response.is_complete:
        lines.append("# ✅ Plan Complete")
        lines.append("")
        lines.append(response.result or "")
        if response.devlog_hint:
            lines.append("")
            lines.append(
                f"📝 Devlog: {response.devlog_hint.tool} → "
                f"\"{response.devlog_hint.params.get('entry', '')}\""
            )
        return "\n".join(lines)

    if response.rationale:
        lines.append("### 💭 Why This Step")
        lines.append("")
        lines.append(response.rationale)
        lines.append("")

    action = response.next_action
    lines.append("---")
    if action is not None:
        lines.append(f"Next → {action.capability} · {action.description}")

    if response.devlog_hint:
        lines.append(f"📝 {response.devlog_hint.params.get('entry', '')}")

    if response.artifact_path:
        lines.append(f"📄 Live plan: {response.artifact_path}")

    step_id = response.step_id or "result"
    capability = action.capability if action else "the capability"
    lines.append("")
    lines.append(
        f"▶ Execute {capability}, then call the maker with "
        f"mode=\"continue\", step={response.step + 1}, prior={{...prior, {step_id}: FULL_RESULT}}"
    )
    lines.append(f"IMPORTANT: Pass the COMPLETE output as {step_id}. Do NOT summarize.")

    return "\n".join(lines)


# ============================================================
# Runner
# ============================================================

def _render_runner_start(response: RunnerResponse, completed: list[int], plan_preview: str) -> list[str]:
    lines = [f"## 📋 Plan Parsed - {response.total_steps} Steps", ""]

    if not response.parse.parsed:
        lines.append("⚠️ Could not parse steps from plan. Expected numbered steps or ### headers.")
        lines.append("")
        lines.append("Raw plan preview:")
        lines.append(f"> {plan_preview}...")
        return lines

    lines.append("| # | Step | Status |")
    lines.append("|---|------|--------|")
    for step in response.parse.steps:
        status = "✅" if step.number in completed else "⏳"
        lines.append(f"| {step.number} | {step.title} | {status} |")
    lines.append("")

    if response.checkpoints:
        marks = ", ".join(f"{cp.percent} after step {cp.step}" for cp in response.checkpoints)
        lines.append(f"Checkpoints: {marks}")
        lines.append("")

    if response.devlog_hint:
        lines.append("### 📝 Devlog Hint")
        lines.append("")
        lines.append(f"{response.devlog_hint.tool}: {response.devlog_hint.params}")
        lines.append("")

    lines.append("---")
    if response.next_call:
        lines.append(f"▶ Start with: `{response.next_call}`")
    return lines


def _render_runner_step(response: RunnerResponse, completed: list[int]) -> list[str]:
    step = response.step
    if step is None:
        return []

    lines = [
        f"## {progress_bar(step.number, response.total_steps)} "
        f"Step {step.number}/{response.total_steps} ({percent(step.number, response.total_steps)}%)",
        "",
        f"### 🎯 {step.title}",
        "",
    ]
    if step.details:
        lines.append(step.details)
        lines.append("")

    if completed:
        lines.append(f"✅ Completed: {_format_list(completed)}")
        lines.append("")

    if response.checkpoint is not None:
        lines.append("---")
        if response.checkpoint.kind == CheckpointKind.DECOMPOSE_REMAINING:
            lines.append(f"⚡ {response.checkpoint.percent} CHECKPOINT - After this step, decompose remaining work")
        else:
            lines.append(f"⚡ {response.checkpoint.percent} CHECKPOINT - After this step, run verification")

    lines.append("---")
    if response.next_call:
        lines.append(f"▶ Next: `{response.next_call}`")
    return lines


def _render_runner_verify(response: RunnerResponse, completed: list[int]) -> list[str]:
    checkpoint = response.checkpoint
    label = checkpoint.percent if checkpoint else "?"
    lines = [
        f"## 🔍 {label} Checkpoint Verification",
        "",
        f"Progress: {len(completed)}/{response.total_steps} steps complete",
        "",
    ]

    if response.completed_titles:
        lines.append("✅ Completed:")
        lines.extend(f"- {title}" for title in response.completed_titles)
        lines.append("")

    if response.remaining_titles:
        lines.append("⏳ Remaining:")
        lines.extend(f"- {title}" for title in response.remaining_titles)
        lines.append("")

    if response.primary is not None:
        lines.append("### 💭 Verification")
        lines.append("")
        lines.append(f"Run **{response.primary.capability}**: {response.primary.title}")
        lines.append("")
        lines.append("<details><summary>Full prompt</summary>")
        lines.append("")
        lines.append(response.primary.prompt)
        lines.append("")
        lines.append("</details>")

    for extra in response.extras:
        lines.append("")
        lines.append(f"### {extra.title}")
        lines.append("")
        lines.append(f"Run {extra.capability}:")
        lines.append("")
        lines.append(extra.prompt)

    if response.devlog_hint:
        lines.append("")
        lines.append(f"📝 Devlog: {response.devlog_hint.tool} → \"{response.devlog_hint.params.get('entry', '')}\"")

    lines.append("")
    lines.append("---")
    if response.next_call:
        lines.append(f"▶ {response.next_call}")
    return lines


def render_runner_response(
    response: RunnerResponse,
    completed: list[int] | None = None,
    plan_preview: str = "",
) -> str:
    """Render a runner response for display."""
    completed = completed or []
    if response.error:
        return f"⚠️ {response.error}"

    if response.mode == RunnerMode.START:
        lines = _render_runner_start(response, completed, plan_preview)
    elif response.mode == RunnerMode.STEP:
        lines = _render_runner_step(response, completed)
    else:
        lines = _render_runner_verify(response, completed)
    return "\n".join(lines)
