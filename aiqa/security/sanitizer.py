"""
Data sanitization for sensitive information in logs and results.

Test steps routinely carry credentials and personal data in their payloads,
so every log line and persisted result passes through this sanitizer.
"""

import hashlib
import logging
import re
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    MASK = auto()          # Replace with asterisks
    HASH = auto()          # Replace with hash
    PARTIAL = auto()       # Show partial (first/last few chars)
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.MASK
    placeholder: str = "[REDACTED]"
    partial_chars: int = 4  # For PARTIAL method
    enabled: bool = True

    def matches(self, text: str) -> List[re.Match]:
        """Find all matches in text."""
        if not self.enabled:
            return []
        return list(self.pattern.finditer(text))


# Keys whose values are redacted wholesale regardless of content
SENSITIVE_KEYS = ("password", "passwd", "secret", "token", "api_key", "apikey", "authorization")


class DataSanitizer:
    """Sanitizer for protecting sensitive data."""

    def __init__(self):
        """Initialize with default patterns."""
        self.patterns: List[SensitiveDataPattern] = [
            SensitiveDataPattern(
                name="api_key_sk_format",
                pattern=re.compile(r'\bsk[-_][a-zA-Z0-9_-]{8,}\b'),
            ),
            SensitiveDataPattern(
                name="api_key_prefix",
                pattern=re.compile(
                    r'(api[_-]?key|apikey|api_secret|access[_-]?token)\s*[:=]\s*["\']?([^"\'\s]+)["\']?',
                    re.IGNORECASE,
                ),
                redaction_method=RedactionMethod.PLACEHOLDER,
            ),
            SensitiveDataPattern(
                name="bearer_token",
                pattern=re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE),
                redaction_method=RedactionMethod.PLACEHOLDER,
                placeholder="Bearer [REDACTED]",
            ),
            SensitiveDataPattern(
                name="password_field",
                pattern=re.compile(
                    r'(password|passwd|pwd)\s*[:=]\s*["\']?([^"\'\s]+)["\']?',
                    re.IGNORECASE,
                ),
                redaction_method=RedactionMethod.PLACEHOLDER,
                placeholder="[PASSWORD]",
            ),
            SensitiveDataPattern(
                name="jwt_token",
                pattern=re.compile(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'),
                redaction_method=RedactionMethod.HASH,
            ),
            SensitiveDataPattern(
                name="credit_card",
                pattern=re.compile(r'\b(?:\d{4}[\s-]?){3}\d{4}\b'),
                redaction_method=RedactionMethod.PARTIAL,
            ),
            SensitiveDataPattern(
                name="email",
                pattern=re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
                redaction_method=RedactionMethod.PARTIAL,
                partial_chars=3,
            ),
        ]

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        """Add a custom pattern."""
        self.patterns.append(pattern)

    def sanitize_string(self, text: str) -> str:
        """
        Sanitize a string using all enabled patterns.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            # Process from the end so earlier spans keep their offsets
            for match in reversed(pattern.matches(result)):
                result = self._apply_redaction(result, match, pattern)
        return result

    def _apply_redaction(
        self,
        text: str,
        match: re.Match,
        pattern: SensitiveDataPattern
    ) -> str:
        """Apply redaction based on method."""
        start, end = match.span()
        matched_text = match.group()

        if pattern.redaction_method == RedactionMethod.MASK:
            replacement = "*" * len(matched_text)

        elif pattern.redaction_method == RedactionMethod.HASH:
            hash_val = hashlib.sha256(matched_text.encode()).hexdigest()[:8]
            replacement = f"[HASH:{hash_val}]"

        elif pattern.redaction_method == RedactionMethod.PARTIAL:
            if len(matched_text) > pattern.partial_chars * 2:
                replacement = (
                    matched_text[:pattern.partial_chars] +
                    "*" * (len(matched_text) - pattern.partial_chars * 2) +
                    matched_text[-pattern.partial_chars:]
                )
            else:
                replacement = "*" * len(matched_text)

        else:  # PLACEHOLDER
            replacement = pattern.placeholder

        return text[:start] + replacement + text[end:]

    def sanitize_dict(
        self,
        data: Dict[str, Any],
        max_depth: int = 10
    ) -> Dict[str, Any]:
        """
        Sanitize a dictionary recursively.

        Args:
            data: Dictionary to sanitize
            max_depth: Maximum recursion depth

        Returns:
            Sanitized dictionary (copy)
        """
        if max_depth <= 0:
            logger.warning("Max recursion depth reached in sanitize_dict")
            return data

        result = deepcopy(data)

        def _sanitize_value(value: Any, key: Optional[str] = None) -> Any:
            if isinstance(value, str):
                if key and any(k in key.lower() for k in SENSITIVE_KEYS):
                    return "[REDACTED]"
                return self.sanitize_string(value)
            if isinstance(value, dict):
                return self.sanitize_dict(value, max_depth - 1)
            if isinstance(value, list):
                return [_sanitize_value(item) for item in value]
            return value

        for key, value in result.items():
            result[key] = _sanitize_value(value, str(key))

        return result

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """
        Sanitize a log record in place.

        Args:
            record: Log record to sanitize

        Returns:
            Sanitized log record
        """
        if hasattr(record, 'msg'):
            record.msg = self.sanitize_string(str(record.msg))

        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = self.sanitize_dict(record.args)
            else:
                record.args = tuple(
                    self.sanitize_string(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return record
