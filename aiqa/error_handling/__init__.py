"""
Error handling and retry policy for AIQA.

This module provides the exception taxonomy used by the step execution engine
and the strategies that time its retries.
"""

from .exceptions import (
    AIQAError,
    ActionError,
    ActionFailed,
    ActionTimeout,
    NonRetryableError,
    OracleUnavailable,
    ResolutionNotFound,
    RetryableError,
    RunCancelled,
    SessionError,
    UnsupportedAction,
)

from .recovery import (
    DEFAULT_ACTION_TIMEOUTS_MS,
    FixedBackoffStrategy,
    RecoveryContext,
    RetryPolicy,
    RetryStrategy,
)

__all__ = [
    # Exceptions
    "AIQAError",
    "ActionError",
    "ActionFailed",
    "ActionTimeout",
    "NonRetryableError",
    "OracleUnavailable",
    "ResolutionNotFound",
    "RetryableError",
    "RunCancelled",
    "SessionError",
    "UnsupportedAction",

    # Recovery
    "DEFAULT_ACTION_TIMEOUTS_MS",
    "FixedBackoffStrategy",
    "RecoveryContext",
    "RetryPolicy",
    "RetryStrategy",
]
