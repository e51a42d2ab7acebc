"""
AI model client exports.
"""

from aiqa.models.openai_client import OpenAIClient

__all__ = ["OpenAIClient"]
