"""
Unit tests for the test run orchestrator.
"""

import asyncio
import json

import pytest

from aiqa.core.types import RunStatus, Step, StepStatus, TestResult
from aiqa.error_handling.exceptions import ActionFailed, ActionTimeout, SessionError
from aiqa.execution.orchestrator import (
    TestRunOrchestrator,
    derive_status,
    load_steps,
    load_test_plan,
)

from fakes import FakeDriver


@pytest.fixture
def orchestrator(driver, settings):
    return TestRunOrchestrator(settings=settings, driver_factory=lambda video_dir: driver)


def assert_counts_consistent(result: TestResult) -> None:
    assert result.finalized
    assert result.passed_steps + result.failed_steps + result.skipped_steps == result.total_steps
    assert result.total_steps == len(result.steps)


class TestLoadSteps:
    """Tests for step loading."""

    def test_load_from_dicts(self):
        steps = load_steps([
            {"action": "navigate", "target": "https://x.test"},
            {"action": "CLICK", "target": "Log In", "stepNumber": 7, "id": "s7"},
        ])

        assert [s.step_number for s in steps] == [1, 7]
        assert steps[1].action == "click"
        assert steps[1].step_id == "s7"
        assert steps[0].step_id.startswith("step_1_")

    def test_load_named_plan_from_file(self, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(json.dumps({
            "name": "Login flow",
            "steps": [{"stepNumber": 1, "action": "navigate", "target": "https://x.test"}],
        }))

        name, steps = load_test_plan(path)

        assert name == "Login flow"
        assert len(steps) == 1

    def test_load_bare_list_from_file(self, tmp_path):
        path = tmp_path / "steps.json"
        path.write_text(json.dumps([{"action": "wait", "data": 500}]))

        name, steps = load_test_plan(str(path))

        assert name is None
        assert steps[0].data == "500"


class TestTestRunOrchestrator:
    """Tests for TestRunOrchestrator."""

    @pytest.mark.asyncio
    async def test_all_steps_pass(self, orchestrator, driver):
        steps = [
            Step(step_number=1, action="navigate", target="https://x.test/login"),
            Step(step_number=2, action="type", target="Email address", data="a@x.test"),
            Step(step_number=3, action="click", target="the login button"),
        ]

        result = await orchestrator.execute(steps, name="Login")

        assert result.status == RunStatus.PASSED
        assert result.name == "Login"
        assert result.passed_steps == 3
        assert result.planned_steps == 3
        assert result.error is None
        assert driver.started and driver.stopped
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_missing_element_scenario(self, orchestrator, driver):
        """Navigate passes, verify on a missing element fails after one retry."""
        driver.failures["wait_for_selector"] = ActionTimeout(
            "wait timed out", action="wait", locator="#missing", timeout_ms=10000
        )
        steps = [
            Step(step_number=1, action="navigate", target="https://x.test"),
            Step(
                step_number=2,
                action="verify",
                target="#missing",
                assertion="element visible",
                retries=1,
                description="Missing element is shown",
            ),
        ]

        result = await orchestrator.execute(steps)

        assert result.passed_steps == 1
        assert result.failed_steps == 1
        assert result.status == RunStatus.FAILED
        assert result.first_failed_step == 2
        assert result.error == "Test failed at step 2: Missing element is shown"

        failed = result.steps[1]
        assert failed.attempts == 2
        assert failed.screenshot_path is not None
        assert steps[1].step_id in failed.screenshot_path
        assert failed.screenshot_path.endswith(".png")
        assert result.screenshots == [failed.screenshot_path]
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_optional_failure_only_is_partial(self, orchestrator, driver):
        driver.failures["click"] = ActionFailed("covered", action="click")
        steps = [
            Step(step_number=1, action="click", target="#cookie-banner", optional=True, retries=0),
        ]

        result = await orchestrator.execute(steps)

        assert result.status == RunStatus.PARTIAL
        assert result.failed_steps == 1
        assert result.error is None
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_optional_failure_does_not_stop_run(self, orchestrator, driver):
        driver.failures["click"] = [ActionFailed("covered", action="click")]
        steps = [
            Step(step_number=1, action="click", target="#cookie-banner", optional=True, retries=0),
            Step(step_number=2, action="navigate", target="https://x.test"),
        ]

        result = await orchestrator.execute(steps)

        assert result.status == RunStatus.PARTIAL
        assert [s.status for s in result.steps] == [StepStatus.FAILED, StepStatus.PASSED]

    @pytest.mark.asyncio
    async def test_stops_after_required_failure(self, orchestrator, driver):
        driver.failures["click"] = ActionFailed("covered", action="click")
        steps = [
            Step(step_number=1, action="click", target="#a", retries=0),
            Step(step_number=2, action="navigate", target="https://x.test"),
        ]

        result = await orchestrator.execute(steps)

        assert result.status == RunStatus.FAILED
        assert len(result.steps) == 1
        assert result.planned_steps == 2
        assert driver.count("navigate") == 0
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_continue_on_failure(self, driver, settings):
        driver.failures["click"] = ActionFailed("covered", action="click")
        keep_going = settings.model_copy(update={"continue_on_failure": True})
        orchestrator = TestRunOrchestrator(
            settings=keep_going, driver_factory=lambda video_dir: driver
        )
        steps = [
            Step(step_number=1, action="click", target="#a", retries=0),
            Step(step_number=2, action="navigate", target="https://x.test"),
        ]

        result = await orchestrator.execute(steps)

        assert result.status == RunStatus.FAILED
        assert result.passed_steps == 1
        assert result.failed_steps == 1
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_skip_remaining_on_abort(self, driver, settings):
        driver.failures["click"] = ActionFailed("covered", action="click")
        skipping = settings.model_copy(update={"skip_remaining_on_abort": True})
        orchestrator = TestRunOrchestrator(
            settings=skipping, driver_factory=lambda video_dir: driver
        )
        steps = [
            Step(step_number=1, action="click", target="#a", retries=0),
            Step(step_number=2, action="navigate", target="https://x.test"),
            Step(step_number=3, action="press", data="Enter"),
        ]

        result = await orchestrator.execute(steps)

        assert result.status == RunStatus.FAILED
        assert result.skipped_steps == 2
        assert [s.status for s in result.steps] == [
            StepStatus.FAILED,
            StepStatus.SKIPPED,
            StepStatus.SKIPPED,
        ]
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_session_error(self, settings):
        driver = FakeDriver()
        driver.failures["start"] = SessionError("Executable doesn't exist", browser="chromium")
        orchestrator = TestRunOrchestrator(
            settings=settings, driver_factory=lambda video_dir: driver
        )

        result = await orchestrator.execute(
            [Step(step_number=1, action="navigate", target="https://x.test")]
        )

        assert result.status == RunStatus.ERROR
        assert result.error == "Executable doesn't exist"
        assert result.total_steps == 0
        assert driver.stopped
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_session_lost_mid_run_is_error(self, orchestrator, driver):
        driver.failures["navigate"] = SessionError("Browser not started", browser="chromium")
        steps = [
            Step(step_number=1, action="navigate", target="https://x.test"),
            Step(step_number=2, action="click", target="#a"),
        ]

        result = await orchestrator.execute(steps)

        assert result.status == RunStatus.ERROR
        assert result.error == "Browser not started"
        assert driver.count("navigate") == 1
        assert driver.count("click") == 0
        assert driver.count("save_screenshot") == 0
        assert result.steps[0].attempts == 1
        assert result.steps[0].error_type == "SessionError"
        assert driver.stopped
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_cancelled_run_is_error(self, orchestrator, driver):
        event = asyncio.Event()
        event.set()

        result = await orchestrator.execute(
            [Step(step_number=1, action="navigate", target="https://x.test")],
            cancel_event=event,
        )

        assert result.status == RunStatus.ERROR
        assert result.error == "Test run cancelled"
        assert driver.count("navigate") == 0
        assert driver.stopped
        assert_counts_consistent(result)

    @pytest.mark.asyncio
    async def test_empty_plan_passes(self, orchestrator):
        result = await orchestrator.execute([])

        assert result.status == RunStatus.PASSED
        assert result.total_steps == 0

    @pytest.mark.asyncio
    async def test_results_saved(self, driver, settings):
        saving = settings.model_copy(update={"save_results": True})
        orchestrator = TestRunOrchestrator(
            settings=saving, driver_factory=lambda video_dir: driver
        )

        result = await orchestrator.execute(
            [Step(step_number=1, action="navigate", target="https://x.test")]
        )

        saved = saving.results_dir / f"results_{result.test_id}.json"
        latest = saving.results_dir / "latest_results.json"
        assert saved.exists() and latest.exists()
        data = json.loads(saved.read_text())
        assert data["status"] == "passed"
        assert data["steps"][0]["status"] == "passed"


class TestDeriveStatus:
    """Tests for the run verdict."""

    def test_error_is_preserved(self):
        assert derive_status(TestResult(status=RunStatus.ERROR)) == RunStatus.ERROR

    def test_partial_when_some_skipped(self):
        result = TestResult(total_steps=2, passed_steps=1, skipped_steps=1)
        assert derive_status(result) == RunStatus.PARTIAL
