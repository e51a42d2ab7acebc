"""
Step executor: bounded retry loop around resolution and one action.

Every step-level failure is contained here and recorded on the StepResult;
only asyncio cancellation propagates to the caller.
"""

import asyncio
import time
from typing import Optional

from aiqa.config.settings import Settings, get_settings
from aiqa.core.interfaces import ArtifactCollector, BrowserDriver
from aiqa.core.types import Step, StepResult, StepStatus
from aiqa.error_handling.exceptions import (
    AIQAError,
    RunCancelled,
    SessionError,
    UnsupportedAction,
)
from aiqa.error_handling.recovery import FixedBackoffStrategy, RetryPolicy
from aiqa.execution.performer import ActionPerformer, requires_element
from aiqa.monitoring.logger import get_logger, log_step_event
from aiqa.resolution.resolver import ElementResolver

# Errors that end the whole run, not just the step
RUN_FATAL_ERRORS = (RunCancelled, SessionError)


class StepExecutor:
    """Runs single steps against one browser session."""

    def __init__(
        self,
        driver: BrowserDriver,
        resolver: Optional[ElementResolver] = None,
        performer: Optional[ActionPerformer] = None,
        artifacts: Optional[ArtifactCollector] = None,
        policy: Optional[RetryPolicy] = None,
        settings: Optional[Settings] = None,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
        test_id: str = "",
    ) -> None:
        """
        Args:
            driver: Browser session shared by resolver and performer
            resolver: Element resolver (defaults to one without an oracle)
            performer: Action performer (defaults to one on the driver)
            artifacts: Failure evidence collector; None disables capture
            policy: Timeout and retry policy (defaults from settings)
            settings: Settings override
            cancel_event: Set by the caller to stop the run
            deadline: time.monotonic() value after which the run is cancelled
            test_id: Owning test run, for log context
        """
        self.settings = settings or get_settings()
        self.driver = driver
        self.resolver = resolver or ElementResolver(driver, settings=self.settings)
        self.performer = performer or ActionPerformer(driver)
        self.artifacts = artifacts
        self.policy = policy or RetryPolicy(
            default_timeout_ms=self.settings.step_timeout,
            default_retries=self.settings.default_step_retries,
            strategy=FixedBackoffStrategy(self.settings.retry_backoff_ms),
        )
        self.cancel_event = cancel_event
        self.deadline = deadline
        self.test_id = test_id
        self.logger = get_logger("aiqa.execution.step_executor", test_id=test_id)

    def cancelled(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RunCancelled("Test run cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise RunCancelled("Test run deadline exceeded")

    async def run(self, step: Step) -> StepResult:
        """Execute a step with its retry budget and return its result."""
        result = StepResult(
            step_id=step.step_id,
            step_number=step.step_number,
            description=step.description,
            action=step.action,
            target=step.target,
            optional=step.optional,
        )
        context = self.policy.new_context(step)
        timeout_ms = self.policy.timeout_for(step)

        self.logger.info(
            f"Step {step.step_number}: {step.description or step.action}",
            extra={"step_id": step.step_id, "action": step.action},
        )
        log_step_event("step_started", self.test_id, result)

        while True:
            try:
                self._check_cancelled()
                attempt = context.begin_attempt()
                result.attempts = attempt
                if attempt > 1:
                    self.logger.info(
                        f"Retry {attempt - 1}/{context.max_attempts - 1}",
                        extra={"step_id": step.step_id, "attempt": attempt},
                    )
                await self._attempt(step, result, timeout_ms)
                result.error_message = None
                result.error_type = None
                result.finish(StepStatus.PASSED)
                break
            except AIQAError as e:
                self._record_failure(result, context, e)
            except Exception as e:
                self.logger.error(
                    "Unexpected error executing step",
                    extra={"step_id": step.step_id},
                    exc_info=True,
                )
                self._record_failure(result, context, e)

            if isinstance(context.last_error, RUN_FATAL_ERRORS):
                break
            if not self.policy.strategy.should_retry(context):
                break
            await self._backoff(self.policy.strategy.get_delay_ms(context.attempt_number))

        if result.status != StepStatus.PASSED:
            result.finish(StepStatus.FAILED)
            self.logger.warning(
                f"Giving up on {context.operation_name} after {result.attempts} attempt(s)",
                extra={
                    "step_id": step.step_id,
                    "error": result.error_message,
                    "elapsed_ms": int(context.elapsed_time.total_seconds() * 1000),
                },
            )
            if self._should_capture(context.last_error):
                result.screenshot_path = await self.artifacts.capture(
                    step.step_id, "failure"
                )

        log_step_event("step_completed", self.test_id, result)
        return result

    async def _attempt(self, step: Step, result: StepResult, timeout_ms: int) -> None:
        if step.action_type is None:
            raise UnsupportedAction(step.action)

        locator = None
        if requires_element(step):
            resolution = await self.resolver.resolve(step.target, step.action_type)
            result.resolution = resolution
            locator = resolution.locator

        await self.performer.perform(step, locator, timeout_ms)

    def _record_failure(self, result: StepResult, context, error: Exception) -> None:
        context.record_failure(error)
        result.error_message = getattr(error, "message", None) or str(error)
        result.error_type = type(error).__name__
        self.logger.warning(
            f"Attempt {context.attempt_number} failed: {result.error_message}",
            extra={
                "step_id": result.step_id,
                "attempt": context.attempt_number,
                "error_type": result.error_type,
            },
        )

    def _should_capture(self, error: Optional[Exception]) -> bool:
        if self.artifacts is None or not self.settings.screenshot_on_failure:
            return False
        return not isinstance(error, RUN_FATAL_ERRORS)

    async def _backoff(self, delay_ms: int) -> None:
        """Sleep between attempts, waking early on cancellation."""
        if delay_ms <= 0:
            return
        if self.cancel_event is None:
            await asyncio.sleep(delay_ms / 1000)
            return
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            pass
