"""
Logging for the AIQA engine.

Everything under the ``aiqa`` logger goes to the console through rich (text)
or JSONFormatter (json), and optionally to a log file. Step payloads carry
credentials, so every handler sanitizes. Step and run outcomes are emitted as
structured events on ``aiqa.events``; browser timings go to
``aiqa.performance``.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler

from aiqa.config.settings import Settings, get_settings
from aiqa.core.types import StepResult, TestResult
from aiqa.security.sanitizer import DataSanitizer

ENGINE_LOGGER = "aiqa"
EVENT_LOGGER = "aiqa.events"
PERFORMANCE_LOGGER = "aiqa.performance"

# Record extras copied into JSON output
CONTEXT_FIELDS = (
    "event_type",
    "test_id",
    "test_name",
    "step_id",
    "step_number",
    "action",
    "attempt",
    "attempts",
    "status",
    "error_type",
    "strategy",
    "confidence",
    "locator",
    "duration_ms",
    "elapsed_ms",
    "passed",
    "failed",
    "skipped",
    "total",
    "metric_name",
    "value",
    "unit",
    "url",
    "element_count",
)

# Third-party loggers capped at WARNING
QUIET_LOGGERS = ("openai", "httpx", "asyncio")

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the engine's context fields."""

    def __init__(self, sanitize: bool = True):
        super().__init__()
        self.sanitizer = DataSanitizer() if sanitize else None

    def format(self, record: logging.LogRecord) -> str:
        if self.sanitizer:
            record = self.sanitizer.sanitize_log_record(record)

        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field_name in CONTEXT_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_data[field_name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.sanitizer:
            log_data = self.sanitizer.sanitize_dict(log_data)
        return json.dumps(log_data, default=str)


class SanitizingHandler(logging.Handler):
    """Redacts a record before handing it to the wrapped handler."""

    def __init__(self, handler: logging.Handler, sanitizer: Optional[DataSanitizer] = None):
        super().__init__(handler.level)
        self.handler = handler
        self.sanitizer = sanitizer or DataSanitizer()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.handler.emit(self.sanitizer.sanitize_log_record(record))
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.handler.flush()

    def close(self) -> None:
        self.handler.close()
        super().close()


class ContextLogAdapter(logging.LoggerAdapter):
    """Attaches fixed context (test id) to every record."""

    def process(
        self, msg: str, kwargs: Dict[str, Any]
    ) -> tuple[str, Dict[str, Any]]:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def _console_handler(log_format: str, sanitize: bool, level: int) -> logging.Handler:
    if log_format == "json":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter(sanitize=sanitize))
        handler.setLevel(level)
        return handler

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    handler.setLevel(level)
    return SanitizingHandler(handler) if sanitize else handler


def _file_handler(path: str, log_format: str, sanitize: bool, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    if log_format == "json":
        handler.setFormatter(JSONFormatter(sanitize=sanitize))
        return handler

    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return SanitizingHandler(handler) if sanitize else handler


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the engine logger from settings.

    Args:
        settings: Settings to read log_level, log_format, log_file and
            sanitize_logs from (defaults to the cached settings)

    Returns:
        The configured ``aiqa`` logger
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)

    engine_logger = logging.getLogger(ENGINE_LOGGER)
    for handler in engine_logger.handlers[:]:
        engine_logger.removeHandler(handler)
        handler.close()

    engine_logger.addHandler(
        _console_handler(settings.log_format, settings.sanitize_logs, level)
    )
    if settings.log_file:
        engine_logger.addHandler(
            _file_handler(settings.log_file, settings.log_format, settings.sanitize_logs, level)
        )
    engine_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    engine_logger.debug(f"Logging configured ({settings.log_level}, {settings.log_format})")
    return engine_logger


def get_logger(name: str, **context: Any) -> logging.Logger:
    """
    Get a logger, wrapped in a ContextLogAdapter when context is given.

    Args:
        name: Logger name
        **context: Extras attached to every record (test_id, ...)
    """
    logger = logging.getLogger(name)

    if context:
        return ContextLogAdapter(logger, context)

    return logger


def log_step_event(event_type: str, test_id: str, step: StepResult) -> None:
    """Emit a structured step event with its outcome and resolution."""
    extra: Dict[str, Any] = {
        "event_type": event_type,
        "test_id": test_id,
        "step_id": step.step_id,
        "step_number": step.step_number,
        "action": step.action,
        "status": step.status.value,
        "attempts": step.attempts,
        "duration_ms": step.duration_ms,
        "error_type": step.error_type,
    }
    if step.resolution is not None:
        extra["strategy"] = step.resolution.strategy.value
        extra["confidence"] = step.resolution.confidence.value
        extra["locator"] = step.resolution.locator

    logging.getLogger(EVENT_LOGGER).info(
        f"Step {step.step_number} {event_type}: {step.status.value}", extra=extra
    )


def log_run_event(event_type: str, result: TestResult) -> None:
    """Emit a structured run event with the step counters."""
    logging.getLogger(EVENT_LOGGER).info(
        f"Test {event_type}: {result.name} ({result.status.value})",
        extra={
            "event_type": event_type,
            "test_id": result.test_id,
            "test_name": result.name,
            "status": result.status.value,
            "passed": result.passed_steps,
            "failed": result.failed_steps,
            "skipped": result.skipped_steps,
            "total": result.total_steps,
            "duration_ms": result.duration_ms,
        },
    )


@contextmanager
def log_duration(metric_name: str, **context: Any) -> Iterator[Dict[str, Any]]:
    """
    Time a browser operation and log it on success.

    The yielded dict is logged with the metric, so callers can add fields
    that are only known once the operation has finished.
    """
    started = time.perf_counter()
    yield context
    elapsed_ms = (time.perf_counter() - started) * 1000
    logging.getLogger(PERFORMANCE_LOGGER).debug(
        f"{metric_name} took {elapsed_ms:.1f}ms",
        extra={"metric_name": metric_name, "value": elapsed_ms, "unit": "ms", **context},
    )
