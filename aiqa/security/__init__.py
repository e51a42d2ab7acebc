"""
Security module exports.
"""

from aiqa.security.sanitizer import (
    DataSanitizer,
    RedactionMethod,
    SensitiveDataPattern,
)

__all__ = [
    "DataSanitizer",
    "RedactionMethod",
    "SensitiveDataPattern",
]
