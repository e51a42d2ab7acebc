"""
AI-matching oracle backed by the OpenAI client.

The model's answer is untrusted input: every transport failure and every
response that does not parse into a valid 1-based candidate index is raised
as OracleUnavailable.
"""

import json
import re
from typing import Any, Dict, Optional, Sequence, Union

import openai
from pydantic import ValidationError

from aiqa.config.settings import get_settings
from aiqa.core.interfaces import ElementOracle
from aiqa.core.types import ConfidenceLevel, ElementInfo, OracleMatch
from aiqa.error_handling.exceptions import OracleUnavailable
from aiqa.models.openai_client import OpenAIClient
from aiqa.monitoring.logger import get_logger

SYSTEM_PROMPT = "You are a web automation expert. Output only valid JSON."

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

logger = get_logger(__name__)


def _describe_candidate(position: int, element: ElementInfo) -> str:
    lines = [f"{position}. {element.tag.upper()}", f'   Text: "{element.text}"']
    if element.placeholder:
        lines.append(f'   Placeholder: "{element.placeholder}"')
    if element.aria_label:
        lines.append(f'   Aria-Label: "{element.aria_label}"')
    if element.value:
        lines.append(f'   Value: "{element.value}"')
    return "\n".join(lines)


def build_prompt(
    candidates: Sequence[ElementInfo],
    description: str,
    action: str,
    page_context: Dict[str, Any],
) -> str:
    """Render the element-matching prompt for a bounded candidate list."""
    count = len(candidates)
    listing = "\n\n".join(
        _describe_candidate(position, element)
        for position, element in enumerate(candidates, start=1)
    )
    return f"""Find the best matching element on this page.

PAGE CONTEXT:
- URL: {page_context.get("url", "")}
- Title: {page_context.get("title", "")}

USER WANTS TO: {action} "{description}"

AVAILABLE ELEMENTS (in order of appearance):
{listing}

TASK:
Identify which element number (1-{count}) best matches the description "{description}".

OUTPUT FORMAT (JSON only):
{{
  "elementIndex": <number 1-{count}>,
  "confidence": "<high|medium|low>",
  "reasoning": "<brief explanation why this element matches>"
}}"""


def parse_oracle_response(
    response: Union[str, Dict[str, Any]], candidate_count: int
) -> OracleMatch:
    """
    Parse and validate an oracle answer.

    Args:
        response: Raw model text (optionally fenced) or an already parsed dict
        candidate_count: Number of candidates that were offered

    Returns:
        Validated OracleMatch

    Raises:
        OracleUnavailable: If the answer is malformed or out of range
    """
    raw = response if isinstance(response, str) else json.dumps(response)

    if isinstance(response, str):
        text = _FENCE.sub("", response.strip()).strip()
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise OracleUnavailable(
                f"Oracle returned invalid JSON: {e}", raw_response=raw, cause=e
            ) from e
    else:
        parsed = response

    if not isinstance(parsed, dict):
        raise OracleUnavailable("Oracle response is not an object", raw_response=raw)
    if "error" in parsed and "elementIndex" not in parsed:
        raise OracleUnavailable(
            f"Oracle response unusable: {parsed['error']}", raw_response=raw
        )

    index = parsed.get("elementIndex")
    # bool is an int subclass; "1" and 1.0 are rejected as well
    if isinstance(index, bool) or not isinstance(index, int):
        raise OracleUnavailable(
            f"Oracle returned a non-integer index: {index!r}", raw_response=raw
        )
    if not 1 <= index <= candidate_count:
        raise OracleUnavailable(
            f"Oracle index {index} outside 1-{candidate_count}", raw_response=raw
        )

    confidence = str(parsed.get("confidence") or "medium").lower()
    if confidence not in {level.value for level in ConfidenceLevel}:
        confidence = ConfidenceLevel.MEDIUM.value

    try:
        return OracleMatch(
            index=index,
            confidence=confidence,
            rationale=parsed.get("reasoning") or "AI matched element",
        )
    except ValidationError as e:
        raise OracleUnavailable(
            f"Oracle response failed validation: {e}", raw_response=raw, cause=e
        ) from e


class OpenAIElementOracle(ElementOracle):
    """ElementOracle that asks an OpenAI chat model to pick a candidate."""

    def __init__(
        self,
        client: Optional[OpenAIClient] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.client = client or OpenAIClient()
        self.temperature = (
            settings.openai_temperature if temperature is None else temperature
        )
        self.max_tokens = max_tokens or settings.openai_max_tokens

    async def match(
        self,
        candidates: Sequence[ElementInfo],
        description: str,
        action: str,
        page_context: Dict[str, Any],
    ) -> OracleMatch:
        if not candidates:
            raise OracleUnavailable("No candidates to offer the oracle")

        prompt = build_prompt(candidates, description, action, page_context)
        logger.debug(
            "Querying element oracle",
            extra={"action": action, "candidates": len(candidates)},
        )

        try:
            response = await self.client.call(
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                system_prompt=SYSTEM_PROMPT,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise OracleUnavailable(f"Oracle request failed: {e}", cause=e) from e

        return parse_oracle_response(response.get("content", ""), len(candidates))
