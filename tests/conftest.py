"""
Test Configuration

Shared fixtures and test utilities.
"""

from datetime import date, datetime
from pathlib import Path

import pytest

from plancouncil.config import PlannerSettings, Settings
from plancouncil.planning import (
    InMemoryOutputStore,
    OutputAccumulator,
    PlanPersister,
    StepCoordinator,
    default_registry,
)

# Wednesday
FIXED_NOW = datetime(2026, 1, 28, 16, 30)
FIXED_TODAY = date(2026, 1, 28)

DARK_MODE_TASK = "Add dark mode toggle"
DARK_MODE_STEPS = [
    "search",
    "analyze_qwen",
    "analyze_kimi",
    "decompose_kimi",
    "critique",
    "judge_draft",
    "judge_final",
]


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def devlog_dir(tmp_path: Path) -> Path:
    return tmp_path / "devlog"


@pytest.fixture
def planner_settings(tmp_path: Path, devlog_dir: Path) -> PlannerSettings:
    """Planner settings rooted in a temporary directory."""
    return PlannerSettings(
        store_backend="memory",
        cache_dir=tmp_path / ".plan-cache",
        devlog_path=devlog_dir,
    )


@pytest.fixture
def settings(planner_settings: PlannerSettings) -> Settings:
    """Application settings for tests."""
    return Settings(planner=planner_settings, environment="development")


@pytest.fixture
def memory_store() -> InMemoryOutputStore:
    return InMemoryOutputStore()


@pytest.fixture
def accumulator(memory_store: InMemoryOutputStore) -> OutputAccumulator:
    return OutputAccumulator(memory_store)


@pytest.fixture
def persister(devlog_dir: Path, fixed_now: datetime) -> PlanPersister:
    """Persister with a frozen clock."""
    return PlanPersister(devlog_dir / "daily", clock=lambda: fixed_now)


@pytest.fixture
def coordinator(
    accumulator: OutputAccumulator,
    persister: PlanPersister,
    tmp_path: Path,
) -> StepCoordinator:
    """Coordinator over the default workflow with deterministic dates."""
    return StepCoordinator(
        default_registry(),
        accumulator,
        persister,
        today=lambda: FIXED_TODAY,
        base_dir=tmp_path,
    )


@pytest.fixture
def sample_outputs() -> dict[str, str]:
    """Realistic step outputs for the dark mode workflow."""
    return {
        "search": (
            "Found that CSS custom properties are the standard approach for theming. "
            "prefers-color-scheme should seed the initial value."
        ),
        "analyze_qwen": (
            "Feasible with a ThemeProvider and CSS variables.\n"
            "---SUMMARY---\n"
            "FINDINGS: CSS variables with a data-theme attribute on the root element\n"
            "RECOMMENDATION: persist the choice in localStorage\n"
            "CONFIDENCE: high\n"
            "---END SUMMARY---"
        ),
        "analyze_kimi": "1. Define tokens\n2. Add provider\n3. Add toggle component\n4. Persist preference",
        "decompose_kimi": "T1 tokens -> T2 provider -> T3 toggle -> T4 persistence (depends on T2)",
        "critique": (
            "Pre-mortem: flash of incorrect theme on load is the most likely failure. "
            "Security: 9/10. Performance: 8/10."
        ),
        "judge_draft": "Draft plan: tokens, provider, toggle, persistence. Confidence: 8/10",
        "judge_final": (
            "### Task 1: Theme tokens\nDefine CSS variables.\n\n"
            "### Task 2: Theme provider\nWrap the app.\n\n"
            "### Task 3: Toggle\nAdd the switch.\n\n"
            "**QUALITY ASSESSMENT:**\n"
            "   - Code Quality: 8/10\n"
            "   - Overall: 9/10"
        ),
    }


@pytest.fixture
def dark_mode_task() -> str:
    return DARK_MODE_TASK


@pytest.fixture
def dark_mode_steps() -> list[str]:
    return list(DARK_MODE_STEPS)


@pytest.fixture
def today() -> date:
    return FIXED_TODAY
