"""
Plan Persister

Writes one markdown artifact per run under ``<devlog>/daily/`` so an
external viewer can follow progress. The same path is reused for every
incremental write and replaced with the final plan at completion.

Artifacts carry YAML front matter (status, phases, capabilities, scores)
followed by the plan body.
"""

import logging
import re
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import yaml

from plancouncil.core.types import PlanSummary
from plancouncil.planning.formatting import percent
from plancouncil.planning.workflow import WorkflowStep, task_slug

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in-progress"
STATUS_PENDING = "pending"

NO_FINAL_PLAN = "No final plan generated"

# Outputs shorter than this are treated as placeholders
MIN_SECTION_LENGTH = 20

PLAN_MARKER = "-plan-"

_PLAN_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-\d{2}h\d{2}m-\w+-plan-")

_SCORE_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("codeQuality", re.compile(r"code\s*quality[:\s]*(\d+)\s*/\s*10", re.IGNORECASE)),
    ("security", re.compile(r"security[:\s]*(\d+)\s*/\s*10", re.IGNORECASE)),
    ("performance", re.compile(r"performance[:\s]*(\d+)\s*/\s*10", re.IGNORECASE)),
    ("confidence", re.compile(r"confidence[:\s]*(\d+)\s*/\s*10", re.IGNORECASE)),
    ("overall", re.compile(r"overall[:\s]*(\d+)\s*/\s*10", re.IGNORECASE)),
]


def parse_scores(text: str) -> dict[str, int]:
    """
    Extract ``name: N/10`` quality scores from plan text.

    The first match per score wins; absent scores are omitted.
    """
    scores: dict[str, int] = {}
    for name, pattern in _SCORE_PATTERNS:
        match = pattern.search(text)
        if match:
            scores[name] = int(match.group(1))
    return scores


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _heading(step: WorkflowStep) -> str:
    return f"{step.phase}: {step.description}"


def build_incremental_body(
    workflow: list[WorkflowStep],
    accumulated: dict[str, str],
    completed: int,
) -> str:
    """In-progress body: status line, completed outputs, remaining checklist."""
    total = len(workflow)
    sections = [f"Status: IN PROGRESS - {completed}/{total} steps ({percent(completed, total)}%)\n"]

    for step in workflow[:completed]:
        content = accumulated.get(step.id, "")
        if len(content) > MIN_SECTION_LENGTH:
            sections.append(f"## {_heading(step)}\n\n{content}")
        else:
            sections.append(f"## {_heading(step)}\n\n(awaiting output)")

    if completed < total:
        sections.append("\n---\n\n## Remaining Steps\n")
        for step in workflow[completed:]:
            sections.append(f"- [ ] {_heading(step)}")

    return "\n".join(sections)


def build_final_sections(workflow: list[WorkflowStep], outputs: dict[str, str]) -> list[str]:
    """Per-step sections in workflow order, then any keys outside the workflow."""
    sections: list[str] = []
    order = [step.id for step in workflow]

    for step in workflow:
        content = outputs.get(step.id, "")
        if len(content) < MIN_SECTION_LENGTH:
            continue
        sections.append(f"## {_heading(step)}\n\n{content}")

    for key, content in outputs.items():
        if key in order or not content or len(content) < MIN_SECTION_LENGTH:
            continue
        sections.append(f"## {key}\n\n{content}")

    return sections


def final_plan_text(outputs: dict[str, str]) -> str:
    """The synthesized plan: final judgment, then the draft, then a placeholder."""
    return outputs.get("judge_final") or outputs.get("judge_draft") or NO_FINAL_PLAN


def build_final_body(workflow: list[WorkflowStep], outputs: dict[str, str]) -> str:
    """Final body: synthesized plan followed by the full analysis."""
    return "\n".join(
        [
            final_plan_text(outputs),
            "",
            "---",
            "",
            "# Full Analysis",
            "",
            *build_final_sections(workflow, outputs),
        ]
    )


def task_from_filename(filename: str) -> str:
    """Recover a readable task name from an artifact filename."""
    name = _PLAN_PREFIX_RE.sub("", filename)
    if name.endswith(".md"):
        name = name[: -len(".md")]
    return name.replace("-", " ")


def read_front_matter(path: Path) -> dict[str, Any]:
    """Parse an artifact's YAML front matter (empty when absent or malformed)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}

    if not text.startswith("---"):
        return {}
    parts = text.split("\n---", 1)
    if len(parts) < 2:
        return {}

    try:
        data = yaml.safe_load(parts[0][3:])
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


class PlanPersister:
    """
    Writes and tracks plan artifacts.

    Holds the only in-process state of a run: the task slug → artifact
    path table, released when the run completes. Losing it (process
    restart) only means the next write starts a new file.
    """

    def __init__(
        self,
        daily_dir: Path | str,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._daily_dir = Path(daily_dir)
        self._clock = clock
        self._paths: dict[str, Path] = {}

    @property
    def daily_dir(self) -> Path:
        return self._daily_dir

    def filename_for(self, task: str, now: datetime | None = None) -> str:
        """``YYYY-MM-DD-HHhMMm-<weekday>-plan-<slug>.md``"""
        now = now or self._clock()
        weekday = now.strftime("%A").lower()
        return f"{now:%Y-%m-%d-%Hh%Mm}-{weekday}{PLAN_MARKER}{task_slug(task)}.md"

    def path_for(self, task: str) -> Path | None:
        """Artifact path of the run in progress for this task, if any."""
        return self._paths.get(task_slug(task))

    def release(self, task: str) -> None:
        self._paths.pop(task_slug(task), None)

    def render(
        self,
        task: str,
        body: str,
        *,
        phases: list[str],
        capabilities: list[str],
        scores: dict[str, int] | None = None,
        status: str = STATUS_IN_PROGRESS,
        now: datetime | None = None,
    ) -> str:
        """Render front matter, title and body into the artifact text."""
        now = now or self._clock()
        front_matter: dict[str, Any] = {
            "title": f"Plan: {task}",
            "date": now.isoformat(),
            "status": STATUS_IN_PROGRESS if status == STATUS_IN_PROGRESS else STATUS_PENDING,
            "type": "plan",
            "docType": "plan",
            "planStatus": status,
        }
        if phases:
            front_matter["planPhases"] = _unique(phases)
        if capabilities:
            front_matter["planToolsUsed"] = _unique(capabilities)
        if scores:
            front_matter["planScores"] = dict(scores)
        front_matter["tags"] = {"type": "plan", "focus": task[:60]}

        header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
        return f"---\n{header}---\n\n# Plan: {task}\n\n{body}"

    def save(
        self,
        task: str,
        body: str,
        *,
        phases: list[str],
        capabilities: list[str],
        scores: dict[str, int] | None = None,
        status: str = STATUS_IN_PROGRESS,
    ) -> Path | None:
        """
        Write the artifact, reusing the run's existing path when known.

        Returns the path written, or None when the write failed.
        """
        slug = task_slug(task)
        now = self._clock()
        path = self._paths.get(slug) or self._daily_dir / self.filename_for(task, now)

        content = self.render(
            task,
            body,
            phases=phases,
            capabilities=capabilities,
            scores=scores,
            status=status,
            now=now,
        )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write plan artifact {path}: {e}")
            return None

        self._paths[slug] = path
        return path

    def save_incremental(
        self,
        task: str,
        workflow: list[WorkflowStep],
        accumulated: dict[str, str],
        completed: int,
    ) -> Path | None:
        """Write the in-progress artifact after ``completed`` steps."""
        body = build_incremental_body(workflow, accumulated, completed)
        path = self.save(
            task,
            body,
            phases=[step.phase for step in workflow],
            capabilities=[step.capability for step in workflow[:completed]],
            status=STATUS_IN_PROGRESS,
        )
        if path is not None:
            logger.info(f"Plan artifact updated: {path} (step {completed}/{len(workflow)})")
        return path

    def save_final(
        self,
        task: str,
        workflow: list[WorkflowStep],
        outputs: dict[str, str],
        scores: dict[str, int] | None = None,
    ) -> Path | None:
        """Write the completed artifact and release the run's path."""
        body = build_final_body(workflow, outputs)
        path = self.save(
            task,
            body,
            phases=[step.phase for step in workflow],
            capabilities=[step.capability for step in workflow],
            scores=scores,
            status=STATUS_PENDING,
        )
        self.release(task)
        if path is not None:
            logger.info(f"Plan saved: {path} ({len(body)} chars)")
        return path

    def list_recent_plans(self, days: int = 7) -> list[PlanSummary]:
        """Plan artifacts modified within ``days``, newest first."""
        if not self._daily_dir.is_dir():
            return []

        cutoff = self._clock() - timedelta(days=days)
        found: list[tuple[datetime, Path]] = []
        for path in self._daily_dir.iterdir():
            if path.suffix != ".md" or PLAN_MARKER not in path.name:
                continue
            try:
                modified = datetime.fromtimestamp(path.stat().st_mtime)
            except OSError:
                continue
            if modified >= cutoff:
                found.append((modified, path))

        found.sort(key=lambda item: item[0], reverse=True)

        return [
            PlanSummary(
                filename=path.name,
                path=str(path),
                task=task_from_filename(path.name),
                status=read_front_matter(path).get("planStatus"),
                modified_at=modified.isoformat(),
            )
            for modified, path in found
        ]
