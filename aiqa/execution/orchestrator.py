"""
Test run orchestrator.

Owns one browser session per run, feeds steps to the StepExecutor in order,
applies the stop-on-failure policy and derives the final verdict.
"""

import asyncio
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from aiqa.browser.driver import PlaywrightDriver
from aiqa.config.settings import Settings, get_settings
from aiqa.core.interfaces import BrowserDriver, ElementOracle
from aiqa.core.types import RunStatus, Step, StepResult, StepStatus, TestResult
from aiqa.error_handling.exceptions import AIQAError, RunCancelled, SessionError
from aiqa.error_handling.recovery import FixedBackoffStrategy, RetryPolicy
from aiqa.execution.artifacts import ArtifactCapture
from aiqa.execution.performer import ActionPerformer
from aiqa.execution.step_executor import StepExecutor
from aiqa.models.openai_client import OpenAIClient
from aiqa.monitoring.logger import get_logger, log_run_event
from aiqa.resolution.oracle import OpenAIElementOracle
from aiqa.resolution.resolver import ElementResolver
from aiqa.security.sanitizer import DataSanitizer

StepSource = Union[str, Path, Sequence[Union[Step, Dict[str, Any]]]]
DriverFactory = Callable[[Optional[Path]], BrowserDriver]


def load_test_plan(source: StepSource) -> Tuple[Optional[str], List[Step]]:
    """
    Load a named step list.

    Args:
        source: JSON file path, or a sequence of Steps / step dicts. A file may
            hold a bare list or an object with "name" and "steps".

    Returns:
        Tuple of (plan name or None, steps)
    """
    name = None
    if isinstance(source, (str, Path)):
        with open(source, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            name = data.get("name")
            data = data.get("steps", [])
    else:
        data = source

    steps = []
    for position, item in enumerate(data, start=1):
        if isinstance(item, Step):
            steps.append(item)
            continue
        item = dict(item)
        if "step_number" not in item and "stepNumber" not in item:
            item["step_number"] = position
        steps.append(Step.model_validate(item))
    return name, steps


def load_steps(source: StepSource) -> List[Step]:
    """Load steps from a JSON file or a sequence."""
    return load_test_plan(source)[1]


def derive_status(result: TestResult) -> RunStatus:
    """Verdict of a run from its step results."""
    if result.status == RunStatus.ERROR:
        return RunStatus.ERROR
    if any(s.status == StepStatus.FAILED and not s.optional for s in result.steps):
        return RunStatus.FAILED
    if result.passed_steps == result.total_steps:
        return RunStatus.PASSED
    return RunStatus.PARTIAL


class TestRunOrchestrator:
    """Executes an ordered list of steps and produces a TestResult."""

    __test__ = False

    def __init__(
        self,
        settings: Optional[Settings] = None,
        driver_factory: Optional[DriverFactory] = None,
        oracle: Optional[ElementOracle] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> None:
        """
        Args:
            settings: Settings override
            driver_factory: Builds the session for a run from its video dir
            oracle: AI-matching fallback; built from settings when omitted
            policy: Timeout and retry policy override
        """
        self.settings = settings or get_settings()
        self.logger = get_logger("aiqa.execution.orchestrator")
        self.driver_factory = driver_factory or self._default_driver
        self.oracle = oracle if oracle is not None else self._default_oracle()
        self.policy = policy or RetryPolicy(
            default_timeout_ms=self.settings.step_timeout,
            default_retries=self.settings.default_step_retries,
            strategy=FixedBackoffStrategy(self.settings.retry_backoff_ms),
        )

    def _default_driver(self, video_dir: Optional[Path]) -> BrowserDriver:
        return PlaywrightDriver(
            browser_type=self.settings.browser_type,
            headless=self.settings.browser_headless,
            viewport_width=self.settings.browser_viewport_width,
            viewport_height=self.settings.browser_viewport_height,
            timeout=self.settings.browser_timeout,
            slow_mo=self.settings.browser_slow_mo,
            video_dir=video_dir,
        )

    def _default_oracle(self) -> Optional[ElementOracle]:
        if not self.settings.oracle_enabled:
            return None
        if not self.settings.openai_api_key:
            self.logger.info("No OpenAI API key configured; element oracle disabled")
            return None
        client = OpenAIClient(
            model=self.settings.openai_model,
            api_key=self.settings.openai_api_key,
            max_retries=self.settings.openai_max_retries,
            request_timeout=float(self.settings.openai_request_timeout_seconds),
        )
        return OpenAIElementOracle(
            client,
            temperature=self.settings.openai_temperature,
            max_tokens=self.settings.openai_max_tokens,
        )

    async def execute(
        self,
        steps: StepSource,
        name: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        timeout_seconds: Optional[float] = None,
    ) -> TestResult:
        """
        Run the steps in order against a fresh browser session.

        Args:
            steps: Steps, step dicts or a JSON file path
            name: Test name
            cancel_event: Set by the caller to stop the run
            timeout_seconds: Run deadline

        Returns:
            The finalized TestResult
        """
        plan_name, step_list = load_test_plan(steps)
        result = TestResult(
            name=name or plan_name or "Untitled test",
            planned_steps=len(step_list),
        )
        logger = get_logger("aiqa.execution.orchestrator", test_id=result.test_id)
        log_run_event("test_started", result)

        deadline = time.monotonic() + timeout_seconds if timeout_seconds else None
        artifacts_root = Path(self.settings.artifacts_dir)
        video_dir = (
            artifacts_root / result.test_id / "videos"
            if self.settings.video_on_failure
            else None
        )

        driver = self.driver_factory(video_dir)
        artifacts = ArtifactCapture(
            driver,
            result.test_id,
            artifacts_root,
            full_page=self.settings.full_page_screenshots,
        )
        executor = StepExecutor(
            driver,
            resolver=ElementResolver(driver, self.oracle, self.settings),
            performer=ActionPerformer(driver),
            artifacts=artifacts,
            policy=self.policy,
            settings=self.settings,
            cancel_event=cancel_event,
            deadline=deadline,
            test_id=result.test_id,
        )

        try:
            async with driver:
                await self._run_steps(step_list, executor, result)
        except AIQAError as e:
            logger.error(
                f"Test execution error: {e.message}",
                extra={"error_code": e.error_code},
            )
            result.status = RunStatus.ERROR
            result.error = e.message

        if video_dir is not None:
            result.videos = await artifacts.collect_videos()

        self._finalize(result)

        log_run_event("test_completed", result)

        if self.settings.save_results:
            self.save_results(result)
        return result

    async def _run_steps(
        self, steps: List[Step], executor: StepExecutor, result: TestResult
    ) -> None:
        stopped_at = None

        for position, step in enumerate(steps):
            if executor.cancelled():
                result.status = RunStatus.ERROR
                result.error = RunCancelled("Test run cancelled").message
                stopped_at = position
                break

            step_result = await executor.run(step)
            self._record(result, step_result)

            if step_result.status != StepStatus.FAILED:
                continue

            if step_result.error_type in (RunCancelled.__name__, SessionError.__name__):
                result.status = RunStatus.ERROR
                result.error = step_result.error_message
                stopped_at = position + 1
                break

            if not step.optional:
                if result.error is None:
                    result.error = (
                        f"Test failed at step {step.step_number}: "
                        f"{step.description or step.action}"
                    )
                if not self.settings.continue_on_failure:
                    stopped_at = position + 1
                    break

        if stopped_at is not None and self.settings.skip_remaining_on_abort:
            for step in steps[stopped_at:]:
                skipped = StepResult(
                    step_id=step.step_id,
                    step_number=step.step_number,
                    description=step.description,
                    action=step.action,
                    target=step.target,
                    optional=step.optional,
                )
                skipped.finish(StepStatus.SKIPPED)
                self._record(result, skipped)

    @staticmethod
    def _record(result: TestResult, step_result: StepResult) -> None:
        result.steps.append(step_result)
        result.total_steps += 1
        if step_result.status == StepStatus.PASSED:
            result.passed_steps += 1
        elif step_result.status == StepStatus.FAILED:
            result.failed_steps += 1
            if result.first_failed_step is None:
                result.first_failed_step = step_result.step_number
        else:
            result.skipped_steps += 1
        if step_result.screenshot_path:
            result.screenshots.append(step_result.screenshot_path)

    @staticmethod
    def _finalize(result: TestResult) -> None:
        result.status = derive_status(result)
        result.completed_at = datetime.now(timezone.utc)
        result.duration_ms = int(
            (result.completed_at - result.started_at).total_seconds() * 1000
        )

    def save_results(self, result: TestResult) -> Optional[Path]:
        """Persist results as results_<test_id>.json and latest_results.json."""
        results_dir = Path(self.settings.results_dir)
        payload = result.model_dump(mode="json")
        if self.settings.sanitize_logs:
            payload = DataSanitizer().sanitize_dict(payload)
        text = json.dumps(payload, indent=2)

        path = results_dir / f"results_{result.test_id}.json"
        try:
            results_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
            (results_dir / "latest_results.json").write_text(text, encoding="utf-8")
        except OSError as e:
            self.logger.error(f"Failed to save results: {e}")
            return None

        self.logger.info(f"Results saved: {path}")
        return path
