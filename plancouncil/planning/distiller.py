"""
Context Distiller

Bounds the size of context handed to later workflow steps regardless of
how verbose the upstream capabilities were.

Two budget tiers:
- INTERMEDIATE: step-to-step handoff of distilled findings
- SYNTHESIS: drafting/judging steps that need more accumulated context

Steps ask the capability to close with a delimited summary block; when
present that block is what travels forward, otherwise the full output is
truncated at a natural boundary.
"""

import math
import re

from plancouncil.core.types import DistilledContext


PRIOR_CONTEXT_LIMIT_INTERMEDIATE = 2500  # ~625 tokens
PRIOR_CONTEXT_LIMIT_SYNTHESIS = 6000  # ~1500 tokens
CODE_CONTEXT_LIMIT = 8000  # ~2k tokens

SUMMARY_START = "---SUMMARY---"
SUMMARY_END = "---END SUMMARY---"
MIN_SUMMARY_LENGTH = 50

TRUNCATED_PARAGRAPH = "\n\n[…truncated]"
TRUNCATED_SENTENCE = " […truncated]"
TRUNCATED_LINE = "\n[…truncated]"
TRUNCATED_HARD = "…"

# Boundary cuts are only taken past this fraction of the limit
BOUNDARY_RATIO = 0.7

DISTILL_SUFFIX = f"""

At the END of your response, add this summary block (the pipeline extracts it for the next step):

{SUMMARY_START}
FINDINGS: [3-5 bullet points of key findings]
CONCERNS: [top concerns or risks, if any]
RECOMMENDATION: [one-sentence recommendation]
CONFIDENCE: [high/medium/low]
{SUMMARY_END}"""

_SUMMARY_RE = re.compile(
    re.escape(SUMMARY_START) + r"\s*([\s\S]*?)\s*" + re.escape(SUMMARY_END)
)


def truncate_smart(text: str | None, limit: int) -> str:
    """
    Truncate at a paragraph, sentence or line boundary, never mid-word
    when a boundary exists past 70% of the limit.

    Text within the limit is returned unchanged.
    """
    if not text:
        return ""
    if len(text) <= limit:
        return text

    truncated = text[:limit]
    threshold = limit * BOUNDARY_RATIO

    last_paragraph = truncated.rfind("\n\n")
    if last_paragraph > threshold:
        return truncated[:last_paragraph] + TRUNCATED_PARAGRAPH

    last_sentence = truncated.rfind(". ")
    if last_sentence > threshold:
        return truncated[: last_sentence + 1] + TRUNCATED_SENTENCE

    last_newline = truncated.rfind("\n")
    if last_newline > threshold:
        return truncated[:last_newline] + TRUNCATED_LINE

    return truncated + TRUNCATED_HARD


def find_summary_block(output: str | None) -> str | None:
    """Return the trimmed summary block if present and substantial."""
    if not output:
        return None
    match = _SUMMARY_RE.search(output)
    if match:
        summary = match.group(1).strip()
        if len(summary) >= MIN_SUMMARY_LENGTH:
            return summary
    return None


def extract_summary(output: str | None, limit: int) -> str:
    """
    Extract the distilled summary from a step's output.

    Falls back to truncating the full output if no summary block is found.
    """
    if not output:
        return ""

    summary = find_summary_block(output)
    if summary is not None:
        return truncate_smart(summary, limit)

    return truncate_smart(output, limit)


# ============================================================
# Working memory
# ============================================================

_CODE_FENCE_RE = re.compile(r"```[\s\S]*?```")
_LONG_INLINE_CODE_RE = re.compile(r"`[^`]{50,}`")

_CONSTRAINT_RE = re.compile(
    r"\b(must|should|never|always|required?|requirements?|cannot|can't|without|only|no more than|at least|at most|limit)\b",
    re.IGNORECASE,
)
_INSIGHT_RE = re.compile(
    r"\b(found|discovered|identified|key|important|significant|result|shows?|reveals?|findings?)\b",
    re.IGNORECASE,
)
_DECISION_RE = re.compile(
    r"\b(recommend(?:ation|ed)?|conclude|decided?|decision|chosen?|selected?|prefer|go with|approach)\b",
    re.IGNORECASE,
)
_OPEN_QUESTION_RE = re.compile(
    r"(\?\s*$|\b(unclear|unknown|open question|tbd|to be determined|needs? clarification)\b)",
    re.IGNORECASE,
)

MAX_ITEM_LENGTH = 200
MAX_CONSTRAINTS = 5
MAX_INSIGHTS = 5
MAX_DECISIONS = 3
MAX_OPEN_QUESTIONS = 3


def strip_code_blocks(text: str) -> str:
    """Replace fenced and long inline code with a short marker."""
    result = _CODE_FENCE_RE.sub("[code omitted]", text)
    result = _LONG_INLINE_CODE_RE.sub("[code omitted]", result)
    return result.strip()


def estimate_tokens(text: str) -> int:
    """Rough token estimate (1 token ≈ 4 chars)."""
    return math.ceil(len(text) / 4)


def _clean_line(line: str) -> str:
    return line.strip().lstrip("-*•#>").strip()[:MAX_ITEM_LENGTH]


def _collect(lines: list[str], pattern: re.Pattern, limit: int, seen: set[str]) -> list[str]:
    items: list[str] = []
    for line in lines:
        if len(items) >= limit:
            break
        if line in seen or not pattern.search(line):
            continue
        seen.add(line)
        items.append(line)
    return items


def distill_context(task: str, context: str, prior: dict[str, str]) -> DistilledContext:
    """
    Build working memory from the task, free-text context and prior outputs.

    Prior outputs are read through their summary blocks when present.
    Each line lands in at most one section; order follows the prior map.
    """
    constraint_lines = [
        _clean_line(line)
        for line in f"{task}\n{context}".splitlines()
        if len(line.strip()) > 10
    ]
    constraints = [line for line in constraint_lines if _CONSTRAINT_RE.search(line)]

    output_lines: list[str] = []
    for output in prior.values():
        if not output:
            continue
        source = find_summary_block(output) or output
        for line in strip_code_blocks(source).splitlines():
            cleaned = _clean_line(line)
            if len(cleaned) > 10:
                output_lines.append(cleaned)

    seen: set[str] = set()
    open_questions = _collect(output_lines, _OPEN_QUESTION_RE, MAX_OPEN_QUESTIONS, seen)
    decisions = _collect(output_lines, _DECISION_RE, MAX_DECISIONS, seen)
    insights = _collect(output_lines, _INSIGHT_RE, MAX_INSIGHTS, seen)

    distilled = DistilledContext(
        task=task,
        constraints=constraints[:MAX_CONSTRAINTS],
        insights=insights,
        decisions=decisions,
        open_questions=open_questions,
    )
    distilled.size_estimate = estimate_tokens(format_working_memory(distilled))
    return distilled


def format_working_memory(distilled: DistilledContext) -> str:
    """Render working memory as a compact prompt section."""
    sections = [f"TASK: {distilled.task}"]
    for title, items in (
        ("CONSTRAINTS", distilled.constraints),
        ("INSIGHTS", distilled.insights),
        ("DECISIONS", distilled.decisions),
        ("OPEN QUESTIONS", distilled.open_questions),
    ):
        if items:
            sections.append(title + ":\n" + "\n".join(f"- {item}" for item in items))
    return "\n\n".join(sections)
