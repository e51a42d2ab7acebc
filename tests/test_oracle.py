"""
Unit tests for the AI-matching oracle.
"""

from unittest.mock import AsyncMock, Mock

import httpx
import openai
import pytest

from aiqa.core.types import ConfidenceLevel
from aiqa.error_handling.exceptions import OracleUnavailable
from aiqa.resolution.oracle import (
    OpenAIElementOracle,
    build_prompt,
    parse_oracle_response,
)

from fakes import button, text_input


class TestParseOracleResponse:
    """Tests for strict response parsing."""

    def test_plain_json(self):
        match = parse_oracle_response(
            '{"elementIndex": 2, "confidence": "high", "reasoning": "Text matches"}', 3
        )

        assert match.index == 2
        assert match.confidence == ConfidenceLevel.HIGH
        assert match.rationale == "Text matches"

    def test_fenced_json(self):
        raw = '```json\n{"elementIndex": 1, "confidence": "low", "reasoning": "guess"}\n```'

        match = parse_oracle_response(raw, 1)

        assert match.index == 1
        assert match.confidence == ConfidenceLevel.LOW

    def test_parsed_dict(self):
        match = parse_oracle_response({"elementIndex": 3}, 3)

        assert match.index == 3
        assert match.confidence == ConfidenceLevel.MEDIUM
        assert match.rationale == "AI matched element"

    def test_unknown_confidence_defaults_to_medium(self):
        match = parse_oracle_response({"elementIndex": 1, "confidence": "certain"}, 1)
        assert match.confidence == ConfidenceLevel.MEDIUM

    @pytest.mark.parametrize("index", [0, 4, -1])
    def test_out_of_range_index_rejected(self, index):
        with pytest.raises(OracleUnavailable, match="outside 1-3"):
            parse_oracle_response({"elementIndex": index}, 3)

    @pytest.mark.parametrize("index", ["2", 1.0, True, None])
    def test_non_integer_index_rejected(self, index):
        with pytest.raises(OracleUnavailable, match="non-integer"):
            parse_oracle_response({"elementIndex": index}, 3)

    def test_invalid_json_rejected(self):
        with pytest.raises(OracleUnavailable, match="invalid JSON") as exc_info:
            parse_oracle_response("The second button looks right", 3)

        assert exc_info.value.raw_response == "The second button looks right"

    def test_non_object_rejected(self):
        with pytest.raises(OracleUnavailable, match="not an object"):
            parse_oracle_response("[1, 2]", 3)

    def test_client_parse_error_rejected(self):
        with pytest.raises(OracleUnavailable, match="unusable"):
            parse_oracle_response({"error": "Invalid JSON response", "raw": "??"}, 3)


class TestBuildPrompt:
    """Tests for prompt rendering."""

    def test_prompt_lists_candidates_in_order(self):
        candidates = [
            button("Cancel"),
            text_input(placeholder="Email address", aria_label="Email"),
        ]

        prompt = build_prompt(
            candidates,
            "email field",
            "type",
            {"url": "https://x.test/login", "title": "Sign in"},
        )

        assert "URL: https://x.test/login" in prompt
        assert "Title: Sign in" in prompt
        assert 'USER WANTS TO: type "email field"' in prompt
        assert prompt.index("1. BUTTON") < prompt.index("2. INPUT")
        assert 'Placeholder: "Email address"' in prompt
        assert 'Aria-Label: "Email"' in prompt
        assert "(1-2)" in prompt


class TestOpenAIElementOracle:
    """Tests for the OpenAI-backed oracle."""

    @pytest.fixture
    def client(self):
        client = Mock()
        client.call = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_match_returns_parsed_answer(self, client):
        client.call.return_value = {
            "content": {"elementIndex": 2, "confidence": "high", "reasoning": "Log In"},
        }
        oracle = OpenAIElementOracle(client=client, temperature=0.3, max_tokens=500)

        match = await oracle.match(
            [button("Cancel"), button("Log In")],
            "sign in",
            "click",
            {"url": "https://x.test", "title": "Home"},
        )

        assert match.index == 2
        assert match.confidence == ConfidenceLevel.HIGH
        kwargs = client.call.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_transport_error_raises_unavailable(self, client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client.call.side_effect = openai.APIConnectionError(request=request)
        oracle = OpenAIElementOracle(client=client)

        with pytest.raises(OracleUnavailable, match="request failed"):
            await oracle.match([button("Go")], "go", "click", {})

    @pytest.mark.asyncio
    async def test_empty_candidates_raise_unavailable(self, client):
        oracle = OpenAIElementOracle(client=client)

        with pytest.raises(OracleUnavailable):
            await oracle.match([], "go", "click", {})

        client.call.assert_not_called()
