"""
Retry strategies and per-action execution policy.

The step executor owns the retry loop; this module decides how long each
action may take, how many attempts a step gets and how long to wait between
them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from aiqa.core.types import ActionType, Step

from .exceptions import NonRetryableError


# Action budgets in milliseconds; None falls back to the configured default.
DEFAULT_ACTION_TIMEOUTS_MS: Dict[ActionType, Optional[int]] = {
    ActionType.NAVIGATE: 30000,
    ActionType.WAIT: 10000,
    ActionType.VERIFY: 10000,
    ActionType.CLICK: 5000,
    ActionType.TYPE: 5000,
    ActionType.HOVER: None,
    ActionType.SELECT: None,
    ActionType.PRESS: None,
}

# Timing-sensitive actions get one retry more than the default budget.
EXTRA_RETRY_ACTIONS = {ActionType.WAIT, ActionType.VERIFY}


@dataclass
class RecoveryContext:
    """Attempt bookkeeping for one step."""
    operation_name: str
    max_attempts: int
    attempt_number: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    errors: List[Exception] = field(default_factory=list)

    @property
    def elapsed_time(self) -> timedelta:
        """Get elapsed time since the first attempt started."""
        return datetime.now(timezone.utc) - self.start_time

    @property
    def last_error(self) -> Optional[Exception]:
        return self.errors[-1] if self.errors else None

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempt_number, 0)

    def begin_attempt(self) -> int:
        """Start the next attempt and return its 1-based number."""
        self.attempt_number += 1
        return self.attempt_number

    def record_failure(self, error: Exception) -> None:
        self.errors.append(error)


class RetryStrategy(ABC):
    """Abstract base class for retry strategies."""

    @abstractmethod
    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay in milliseconds before the attempt after `attempt`."""
        pass

    def should_retry(self, context: RecoveryContext) -> bool:
        """Retry while attempts remain and the last error allows it."""
        if isinstance(context.last_error, NonRetryableError):
            return False
        return context.attempts_remaining > 0


class FixedBackoffStrategy(RetryStrategy):
    """Constant wait between attempts."""

    def __init__(self, delay_ms: int = 1000):
        self.delay_ms = delay_ms

    def get_delay_ms(self, attempt: int) -> int:
        return self.delay_ms


class RetryPolicy:
    """Resolves the effective timeout and retry budget of a step."""

    def __init__(
        self,
        default_timeout_ms: int = 10000,
        default_retries: int = 2,
        strategy: Optional[RetryStrategy] = None,
        action_timeouts: Optional[Dict[ActionType, Optional[int]]] = None,
    ):
        self.default_timeout_ms = default_timeout_ms
        self.default_retries = default_retries
        self.strategy = strategy or FixedBackoffStrategy()
        self.action_timeouts = dict(DEFAULT_ACTION_TIMEOUTS_MS)
        if action_timeouts:
            self.action_timeouts.update(action_timeouts)

    def timeout_for(self, step: Step) -> int:
        """Step override first, then the per-action default."""
        if step.timeout_ms is not None:
            return step.timeout_ms
        action_type = step.action_type
        if action_type is None:
            return self.default_timeout_ms
        budget = self.action_timeouts.get(action_type)
        return budget if budget is not None else self.default_timeout_ms

    def retries_for(self, step: Step) -> int:
        if step.retries is not None:
            return step.retries
        if step.action_type in EXTRA_RETRY_ACTIONS:
            return self.default_retries + 1
        return self.default_retries

    def new_context(self, step: Step) -> RecoveryContext:
        return RecoveryContext(
            operation_name=f"step {step.step_number} ({step.action})",
            max_attempts=self.retries_for(step) + 1,
        )
