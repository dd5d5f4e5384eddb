"""
Tests for the step coordinator state machine.
"""

from pathlib import Path

import pytest

from plancouncil.core.types import CoordinatorCall, CoordinatorMode, FeatureFlags
from plancouncil.planning.coordinator import DEVLOG_TOOL, effective_prior, read_issue_file
from plancouncil.planning.persister import NO_FINAL_PLAN, read_front_matter

LONG_SEARCH = "Found that CSS custom properties are the standard approach. " * 20


def _start(task: str, **kwargs) -> CoordinatorCall:
    return CoordinatorCall(task=task, mode=CoordinatorMode.START, **kwargs)


def _continue(task: str, step: int, prior: dict[str, str], **kwargs) -> CoordinatorCall:
    return CoordinatorCall(task=task, mode=CoordinatorMode.CONTINUE, step=step, prior=prior, **kwargs)


async def _run_to_completion(coordinator, task, steps, outputs):
    await coordinator.advance(_start(task))
    response = None
    for k in range(2, len(steps) + 2):
        prior = {step_id: outputs[step_id] for step_id in steps[: k - 1]}
        response = await coordinator.advance(_continue(task, k, prior))
    return response


class TestHelpers:
    """Tests for issue-file loading and prior merging."""

    def test_issue_file_appended(self, tmp_path):
        (tmp_path / "issue.md").write_text("Users report glare at night", encoding="utf-8")
        context = read_issue_file("Existing context", "issue.md", tmp_path)
        assert context == "Existing context\n\n--- ISSUE FILE: issue.md ---\nUsers report glare at night"

    def test_missing_issue_file_warns_inline(self, tmp_path):
        context = read_issue_file("", "missing.md", tmp_path)
        assert context == "[Warning: Issue file not found: missing.md]"

    def test_no_issue_file(self):
        assert read_issue_file("ctx", None) == "ctx"

    def test_effective_prior_prefers_longer(self):
        merged = effective_prior(
            {"search": "short", "critique": "caller critique"},
            {"search": "much longer cached search", "analyze_qwen": "cached"},
        )
        assert merged == {
            "search": "much longer cached search",
            "critique": "caller critique",
            "analyze_qwen": "cached",
        }


class TestStart:
    """Tests for the START state."""

    @pytest.mark.asyncio
    async def test_first_step(self, coordinator, dark_mode_task):
        response = await coordinator.advance(_start(dark_mode_task))

        assert response.step == 1
        assert response.total_steps == 7
        assert response.progress == "1/7 (14%)"
        assert response.phase == "Search"
        assert response.step_id == "search"
        assert response.next_action.capability == "grok_search"
        assert response.next_action.max_output_budget == 3000
        assert dark_mode_task in response.next_action.parameters["query"]
        assert "January 28, 2026" in response.next_action.parameters["query"]
        assert response.rationale
        assert not response.is_complete

    @pytest.mark.asyncio
    async def test_creates_artifact(self, coordinator, dark_mode_task, devlog_dir):
        response = await coordinator.advance(_start(dark_mode_task))

        path = devlog_dir / "daily" / "2026-01-28-16h30m-wednesday-plan-add-dark-mode-toggle.md"
        assert response.artifact_path == str(path)
        assert read_front_matter(path)["status"] == "in-progress"
        assert "Status: IN PROGRESS - 0/7 steps (0%)" in path.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_devlog_disabled_writes_nothing(self, coordinator, dark_mode_task, devlog_dir):
        response = await coordinator.advance(_start(dark_mode_task, devlog=False))
        assert response.artifact_path is None
        assert response.devlog_hint is None
        assert not devlog_dir.exists()

    @pytest.mark.asyncio
    async def test_devlog_hint_for_logged_steps(self, coordinator, dark_mode_task):
        response = await coordinator.advance(_start(dark_mode_task))
        assert response.devlog_hint.tool == DEVLOG_TOOL
        assert response.devlog_hint.params == {
            "entry": "Search: Search for relevant information + best practices",
            "type": "progress",
        }

    @pytest.mark.asyncio
    async def test_start_clears_stale_cache(self, coordinator, accumulator, dark_mode_task):
        await accumulator.record(dark_mode_task, "search", {"search": "abandoned run output"})
        await coordinator.advance(_start(dark_mode_task))
        assert await accumulator.load(dark_mode_task) == {}

    @pytest.mark.asyncio
    async def test_issue_file_changes_workflow(self, coordinator, tmp_path):
        (tmp_path / "ISSUE-12.md").write_text("The frontend settings page needs a theme switch", encoding="utf-8")
        response = await coordinator.advance(_start("Add theme switch", issue_file="ISSUE-12.md"))
        assert response.total_steps == 9

    @pytest.mark.asyncio
    async def test_flags_change_workflow(self, coordinator, dark_mode_task):
        flags = FeatureFlags(ux=True, responsive=True, debate=True)
        response = await coordinator.advance(_start(dark_mode_task, flags=flags))
        assert response.total_steps == 12


class TestContinue:
    """Tests for STEP_k transitions."""

    @pytest.mark.asyncio
    async def test_first_write_is_exact(self, coordinator, accumulator, dark_mode_task):
        await coordinator.advance(_start(dark_mode_task))
        response = await coordinator.advance(_continue(dark_mode_task, 2, {"search": LONG_SEARCH}))

        assert await accumulator.load(dark_mode_task) == {"search": LONG_SEARCH}
        assert response.step == 2
        assert response.progress == "2/7 (29%)"
        assert response.next_action.capability == "qwen_coder"
        assert response.devlog_hint is None

    @pytest.mark.asyncio
    async def test_shortened_prior_does_not_lose_output(self, coordinator, accumulator, dark_mode_task):
        await coordinator.advance(_start(dark_mode_task))
        await coordinator.advance(_continue(dark_mode_task, 2, {"search": LONG_SEARCH}))
        response = await coordinator.advance(
            _continue(
                dark_mode_task,
                3,
                {"search": "CSS vars.", "analyze_qwen": "Feasible with a provider and tokens."},
            )
        )

        cached = await accumulator.load(dark_mode_task)
        assert cached["search"] == LONG_SEARCH
        assert LONG_SEARCH.strip() in response.next_action.parameters["problem"]

    @pytest.mark.asyncio
    async def test_only_finished_step_recorded(self, coordinator, accumulator, dark_mode_task):
        await coordinator.advance(_start(dark_mode_task))
        await coordinator.advance(
            _continue(dark_mode_task, 2, {"search": LONG_SEARCH, "critique": "premature critique"})
        )
        assert set(await accumulator.load(dark_mode_task)) == {"search"}

    @pytest.mark.asyncio
    async def test_artifact_rewritten(self, coordinator, dark_mode_task):
        await coordinator.advance(_start(dark_mode_task))
        response = await coordinator.advance(_continue(dark_mode_task, 2, {"search": LONG_SEARCH}))

        with open(response.artifact_path, encoding="utf-8") as f:
            text = f.read()
        assert "Status: IN PROGRESS - 1/7 steps (14%)" in text
        assert LONG_SEARCH in text

    @pytest.mark.asyncio
    async def test_deterministic_parameters(self, coordinator, dark_mode_task, sample_outputs):
        await coordinator.advance(_start(dark_mode_task))
        prior = {key: sample_outputs[key] for key in ("search", "analyze_qwen", "analyze_kimi")}

        first = await coordinator.advance(_continue(dark_mode_task, 4, prior))
        second = await coordinator.advance(_continue(dark_mode_task, 4, prior))

        assert first.next_action.parameters == second.next_action.parameters

    @pytest.mark.asyncio
    async def test_working_memory_attached(self, coordinator, dark_mode_task, sample_outputs):
        await coordinator.advance(_start(dark_mode_task))
        response = await coordinator.advance(
            _continue(dark_mode_task, 2, {"search": sample_outputs["search"]})
        )
        assert response.working_memory.task == dark_mode_task
        assert response.working_memory.decisions == [sample_outputs["search"]]

    @pytest.mark.asyncio
    async def test_synthesis_step_sees_more_prior_context(self, coordinator, dark_mode_task, sample_outputs):
        filler = "Theme tokens belong on the root element. "
        detail = "Contrast ratios fail on the disabled toggle state."
        analysis = filler * 80 + detail + " " + filler * 40
        prior = dict(sample_outputs, analyze_qwen=analysis)
        for later in ("critique", "judge_draft", "judge_final"):
            prior.pop(later)

        critique = await coordinator.advance(_continue(dark_mode_task, 5, prior))
        draft = await coordinator.advance(_continue(dark_mode_task, 6, prior))

        assert critique.step_id == "critique"
        assert draft.step_id == "judge_draft"
        assert detail not in critique.next_action.parameters["query"]
        assert detail in draft.next_action.parameters["problem"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", [0, -3])
    async def test_invalid_step(self, coordinator, dark_mode_task, step):
        response = await coordinator.advance(_continue(dark_mode_task, step, {}))
        assert response.error == f"Step {step} not found. Workflow has 7 steps."
        assert response.next_action is None
        assert not response.is_complete

    @pytest.mark.asyncio
    async def test_continue_defaults_to_first_step(self, coordinator, dark_mode_task):
        call = CoordinatorCall(task=dark_mode_task, mode=CoordinatorMode.CONTINUE)
        response = await coordinator.advance(call)
        assert response.step == 1
        assert response.step_id == "search"


class TestComplete:
    """Tests for the COMPLETE state."""

    @pytest.mark.asyncio
    async def test_full_run(
        self,
        coordinator,
        accumulator,
        dark_mode_task,
        dark_mode_steps,
        sample_outputs,
    ):
        response = await _run_to_completion(coordinator, dark_mode_task, dark_mode_steps, sample_outputs)

        assert response.is_complete
        assert response.phase == "Complete"
        assert response.step == 7
        assert response.progress == "7/7 (100%)"
        assert response.result.startswith(sample_outputs["judge_final"])
        assert "📁 Full plan saved" in response.result
        assert "Includes all analysis from 7 steps." in response.result
        assert await accumulator.load(dark_mode_task) == {}

    @pytest.mark.asyncio
    async def test_final_artifact(self, coordinator, dark_mode_task, dark_mode_steps, sample_outputs):
        response = await _run_to_completion(coordinator, dark_mode_task, dark_mode_steps, sample_outputs)

        meta = read_front_matter(Path(response.artifact_path))
        assert meta["status"] == "pending"
        assert meta["planScores"] == {
            "codeQuality": 8,
            "security": 9,
            "performance": 8,
            "confidence": 8,
            "overall": 9,
        }
        assert response.devlog_hint.params["entry"] == f"Plan complete: {dark_mode_task} (saved to devlog)"

    @pytest.mark.asyncio
    async def test_completion_path_released(
        self, coordinator, persister, dark_mode_task, dark_mode_steps, sample_outputs
    ):
        await _run_to_completion(coordinator, dark_mode_task, dark_mode_steps, sample_outputs)
        assert persister.path_for(dark_mode_task) is None

    @pytest.mark.asyncio
    async def test_cache_is_fidelity_source(self, coordinator, dark_mode_task, dark_mode_steps, sample_outputs):
        await coordinator.advance(_start(dark_mode_task))
        await coordinator.advance(_continue(dark_mode_task, 2, {"search": LONG_SEARCH}))

        prior = dict(sample_outputs, search="CSS vars.")
        response = await coordinator.advance(_continue(dark_mode_task, 8, prior))

        with open(response.artifact_path, encoding="utf-8") as f:
            text = f.read()
        assert LONG_SEARCH in text

    @pytest.mark.asyncio
    async def test_prior_fills_steps_missing_from_cache(
        self, coordinator, accumulator, dark_mode_task, sample_outputs
    ):
        await coordinator.advance(_start(dark_mode_task))
        await coordinator.advance(_continue(dark_mode_task, 2, {"search": LONG_SEARCH}))
        assert set(await accumulator.load(dark_mode_task)) == {"search"}

        prior = dict(sample_outputs, search="CSS vars.")
        response = await coordinator.advance(_continue(dark_mode_task, 8, prior))

        with open(response.artifact_path, encoding="utf-8") as f:
            text = f.read()
        assert LONG_SEARCH in text
        assert "CSS vars." not in text
        assert sample_outputs["analyze_kimi"] in text
        assert sample_outputs["critique"] in text
        assert response.result.startswith(sample_outputs["judge_final"])

    @pytest.mark.asyncio
    async def test_falls_back_to_prior_without_cache(self, coordinator, dark_mode_task):
        draft = "Draft plan: tokens, provider and toggle with persistence"
        response = await coordinator.advance(_continue(dark_mode_task, 8, {"judge_draft": draft}))
        assert response.is_complete
        assert response.result.startswith(draft)

    @pytest.mark.asyncio
    async def test_completes_with_empty_prior(self, coordinator, dark_mode_task):
        response = await coordinator.advance(_continue(dark_mode_task, 8, {}))
        assert response.is_complete
        assert response.result.startswith(NO_FINAL_PLAN)

    @pytest.mark.asyncio
    async def test_step_beyond_end_completes(self, coordinator, dark_mode_task, sample_outputs):
        response = await coordinator.advance(_continue(dark_mode_task, 42, dict(sample_outputs)))
        assert response.is_complete
        assert response.result.startswith(sample_outputs["judge_final"])
