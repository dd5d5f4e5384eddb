"""
Tests for the workflow registry and default council steps.
"""

from datetime import date

import pytest

from plancouncil.core.exceptions import DuplicateStepError
from plancouncil.core.types import FeatureFlags
from plancouncil.planning.distiller import SUMMARY_START
from plancouncil.planning.steps import DEFAULT_STEPS, default_registry
from plancouncil.planning.workflow import (
    ContextLimits,
    StepInputs,
    WorkflowRegistry,
    WorkflowStep,
    get_max_output_budget,
    is_responsive_task,
    is_ux_task,
    task_slug,
)


def _ids(steps: list[WorkflowStep]) -> list[str]:
    return [step.id for step in steps]


class TestRegistry:
    """Tests for step registration and workflow computation."""

    def test_default_order(self):
        assert _ids(default_registry().all_steps()) == [
            "search",
            "analyze_qwen",
            "analyze_kimi",
            "decompose_kimi",
            "debate_pro",
            "debate_con",
            "critique",
            "ux_analyze",
            "ux_judge",
            "responsive_judge",
            "judge_draft",
            "judge_final",
        ]

    def test_plain_task_workflow(self, dark_mode_task, dark_mode_steps):
        workflow = default_registry().active_workflow(dark_mode_task)
        assert _ids(workflow) == dark_mode_steps

    def test_ux_keywords_add_ux_steps(self):
        workflow = default_registry().active_workflow("Improve frontend accessibility")
        ids = _ids(workflow)
        assert ids.index("ux_analyze") == ids.index("critique") + 1
        assert "ux_judge" in ids
        assert "responsive_judge" not in ids

    def test_responsive_keywords_add_responsive_step(self):
        workflow = default_registry().active_workflow("Make the dashboard work on mobile")
        assert "responsive_judge" in _ids(workflow)

    def test_context_participates_in_detection(self):
        workflow = default_registry().active_workflow("Refactor settings", "Check tablet breakpoints")
        assert "responsive_judge" in _ids(workflow)

    def test_flags_force_exclude(self):
        workflow = default_registry().active_workflow(
            "Improve frontend accessibility", flags=FeatureFlags(ux=False)
        )
        assert "ux_analyze" not in _ids(workflow)

    def test_flags_force_include(self, dark_mode_task):
        workflow = default_registry().active_workflow(
            dark_mode_task, flags=FeatureFlags(ux=True, responsive=True, debate=True)
        )
        assert len(workflow) == len(DEFAULT_STEPS)

    def test_debate_is_opt_in(self, dark_mode_task):
        registry = default_registry()
        assert "debate_pro" not in _ids(registry.active_workflow(dark_mode_task))

        ids = _ids(registry.active_workflow(dark_mode_task, flags=FeatureFlags(debate=True)))
        assert ids[4:6] == ["debate_pro", "debate_con"]
        assert ids[6] == "critique"

    def test_duplicate_step_rejected(self):
        registry = WorkflowRegistry(DEFAULT_STEPS[:1])
        with pytest.raises(DuplicateStepError) as exc_info:
            registry.register(DEFAULT_STEPS[0])
        assert exc_info.value.step_id == "search"
        assert exc_info.value.code == "DUPLICATE_STEP"

    def test_contains_and_len(self):
        registry = default_registry()
        assert "critique" in registry
        assert "unknown" not in registry
        assert len(registry) == 12


class TestPredicates:
    """Tests for keyword detection."""

    @pytest.mark.parametrize(
        "task",
        ["Redesign the UI", "Improve UX of checkout", "Build a design system", "Fix front-end bug"],
    )
    def test_ux_detected(self, task):
        assert is_ux_task(task, "", FeatureFlags())

    def test_ux_word_boundaries(self):
        assert not is_ux_task("Build a linux daemon", "", FeatureFlags())
        assert not is_ux_task("Add a GUIDE page", "", FeatureFlags())

    @pytest.mark.parametrize("task", ["Responsive grid", "Fix viewport units", "Touch target sizes"])
    def test_responsive_detected(self, task):
        assert is_responsive_task(task, "", FeatureFlags())


class TestBudgetsAndSlug:
    """Tests for capability budgets and task slugs."""

    @pytest.mark.parametrize(
        "capability,budget",
        [
            ("grok_search", 3000),
            ("gemini_search", 3000),
            ("qwen_coder", 2500),
            ("kimi_thinking", 2500),
            ("kimi_decompose", 3000),
            ("openai_reason", 3000),
            ("gemini_analyze_text", 3000),
            ("grok_reason", 2000),
            ("unknown_tool", 2000),
        ],
    )
    def test_budgets(self, capability, budget):
        assert get_max_output_budget(capability) == budget

    def test_step_budget_follows_capability(self):
        assert default_registry().get("search").max_output_budget == 3000

    def test_slug(self):
        assert task_slug("Add Dark Mode Toggle!") == "add-dark-mode-toggle"
        assert task_slug("  --Fix   bug #42--  ") == "fix-bug-42"

    def test_slug_empty(self):
        assert task_slug("!!!") == "untitled"

    def test_slug_capped(self):
        slug = task_slug("implement " + "very long task name " * 10)
        assert len(slug) <= 40
        assert not slug.endswith("-")


class TestStepParameters:
    """Tests for the default steps' parameter builders."""

    def _inputs(self, **kwargs) -> StepInputs:
        defaults = {"task": "Add dark mode toggle", "today": date(2026, 1, 28)}
        defaults.update(kwargs)
        return StepInputs(**defaults)

    def test_search_query_includes_date(self):
        params = default_registry().get("search").build_params(self._inputs())
        assert params["query"] == "Add dark mode toggle best practices as of January 28, 2026"
        assert params["maxResults"] == 10

    def test_search_query_includes_answers(self):
        params = default_registry().get("search").build_params(self._inputs(answers="Use CSS vars"))
        assert "User clarifications:\nUse CSS vars" in params["query"]

    def test_builders_are_deterministic(self, sample_outputs):
        registry = default_registry()
        for step in registry.all_steps():
            first = step.build_params(self._inputs(prior=dict(sample_outputs), context="ctx"))
            second = step.build_params(self._inputs(prior=dict(sample_outputs), context="ctx"))
            assert first == second, step.id

    def test_analysis_without_code(self):
        params = default_registry().get("analyze_qwen").build_params(self._inputs())
        assert params["task"] == "analyze"
        assert "code" not in params
        assert SUMMARY_START in params["requirements"]

    def test_analysis_with_code(self):
        code = "def toggle():\n    pass\n"
        params = default_registry().get("analyze_qwen").build_params(self._inputs(code_context=code))
        assert params["task"] == "review"
        assert params["code"] == code
        assert "ACTUAL CODE TO REVIEW" in params["requirements"]

    def test_code_context_truncated(self):
        code = "x = 1\n" * 5000
        inputs = self._inputs(code_context=code, limits=ContextLimits(code=500))
        params = default_registry().get("analyze_kimi").build_params(inputs)
        assert len(params["problem"]) < 2000

    def test_missing_prior_reads_as_na(self):
        params = default_registry().get("critique").build_params(self._inputs())
        assert "QWEN ANALYSIS: N/A" in params["query"]

    def test_prior_summary_used(self, sample_outputs):
        params = default_registry().get("critique").build_params(self._inputs(prior=sample_outputs))
        assert "persist the choice in localStorage" in params["query"]
        assert "Feasible with a ThemeProvider" not in params["query"]

    def test_decompose_context(self, sample_outputs):
        params = default_registry().get("decompose_kimi").build_params(self._inputs(prior=sample_outputs))
        assert params["depth"] == 3
        assert params["outputFormat"] == "dependencies"
        assert params["context"].startswith("Research:")

    def test_final_judgment_scores(self, sample_outputs):
        registry = default_registry()
        plain = registry.get("judge_final").build_params(self._inputs(prior=sample_outputs))
        assert "### Task N:" in plain["text"]
        assert "UX/Accessibility" not in plain["text"]

        with_ux = dict(sample_outputs, ux_judge="UX score 7/10 with gaps in focus handling")
        ux = registry.get("judge_final").build_params(self._inputs(prior=with_ux))
        assert "UX/Accessibility: X/10" in ux["text"]

    def test_working_memory_reaches_synthesis(self):
        inputs = self._inputs(working_memory="TASK: Add dark mode toggle")
        params = default_registry().get("judge_draft").build_params(inputs)
        assert "WORKING MEMORY:\nTASK: Add dark mode toggle" in params["problem"]

    def test_synthesis_inputs_get_larger_budget(self):
        analysis = "Theme tokens belong on the root element. " * 400
        prior = {"analyze_qwen": analysis}

        intermediate = self._inputs(prior=prior)
        synthesis = self._inputs(prior=prior, synthesis=True)

        assert intermediate.prior_limit == ContextLimits().intermediate
        assert synthesis.prior_limit == ContextLimits().synthesis
        assert len(intermediate.distilled("analyze_qwen")) <= ContextLimits().intermediate + 20
        assert len(synthesis.distilled("analyze_qwen")) > ContextLimits().intermediate + 20

    def test_only_judgment_steps_are_synthesis(self):
        synthesis = [step.id for step in default_registry().all_steps() if step.is_synthesis]
        assert synthesis == ["judge_draft", "judge_final"]
