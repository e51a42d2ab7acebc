"""
Custom exception hierarchy for AIQA error handling.

Step-level errors are retryable or not; every one of them is contained by the
step executor and turned into a failed StepResult. Only session-level errors
and cancellation reach the orchestrator.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class AIQAError(Exception):
    """Base exception for all AIQA errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class RetryableError(AIQAError):
    """Base class for errors that the step budget may retry."""
    pass


class NonRetryableError(AIQAError):
    """Base class for errors that retrying cannot change."""
    pass


class ResolutionNotFound(RetryableError):
    """No resolution strategy produced a usable locator."""

    def __init__(
        self,
        message: str,
        description: str,
        action: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.description = description
        self.action = action
        self.details.update({
            "description": description,
            "action": action
        })


class ActionError(RetryableError):
    """Base for failures raised while a browser action runs."""

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        locator: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.action = action
        self.locator = locator
        self.details.update({
            "action": action,
            "locator": locator
        })


class ActionTimeout(ActionError):
    """The action exceeded its time budget."""

    def __init__(
        self,
        message: str,
        timeout_ms: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.timeout_ms = timeout_ms
        self.details["timeout_ms"] = timeout_ms


class ActionFailed(ActionError):
    """The action executed but the browser or DOM rejected it."""
    pass


class UnsupportedAction(NonRetryableError):
    """The step names an action kind outside the closed set."""

    def __init__(self, action: str, **kwargs):
        super().__init__(f"Unsupported action type: {action}", **kwargs)
        self.action = action
        self.details["action"] = action


class OracleUnavailable(AIQAError):
    """The AI-matching oracle failed to produce a usable answer."""

    def __init__(
        self,
        message: str,
        raw_response: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.raw_response = raw_response
        if raw_response is not None:
            self.details["raw_response"] = raw_response[:200]


class RunCancelled(NonRetryableError):
    """The caller cancelled the run or its deadline passed."""
    pass


class SessionError(NonRetryableError):
    """The browser session could not be started or used; fatal to the run."""

    def __init__(
        self,
        message: str,
        browser: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.browser = browser
        self.details["browser"] = browser
