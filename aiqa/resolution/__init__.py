"""
Element resolution exports.
"""

from aiqa.resolution.cascade import (
    generate_selector,
    is_structural_locator,
    relevant_candidates,
    resolve_in_snapshot,
)
from aiqa.resolution.oracle import (
    OpenAIElementOracle,
    build_prompt,
    parse_oracle_response,
)
from aiqa.resolution.resolver import ElementResolver

__all__ = [
    "ElementResolver",
    "OpenAIElementOracle",
    "build_prompt",
    "generate_selector",
    "is_structural_locator",
    "parse_oracle_response",
    "relevant_candidates",
    "resolve_in_snapshot",
]
