"""
Monitoring module exports.
"""

from aiqa.monitoring.logger import (
    ContextLogAdapter,
    JSONFormatter,
    SanitizingHandler,
    get_logger,
    log_duration,
    log_run_event,
    log_step_event,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_step_event",
    "log_run_event",
    "log_duration",
    "ContextLogAdapter",
    "JSONFormatter",
    "SanitizingHandler",
]
