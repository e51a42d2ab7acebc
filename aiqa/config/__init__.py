"""
Configuration module exports.
"""

from aiqa.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
