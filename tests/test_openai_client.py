"""Tests for the OpenAI chat completion wrapper."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from aiqa.models.openai_client import OpenAIClient


def fake_response(content: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content),
                finish_reason="stop",
            )
        ],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30, total_tokens=150),
        model="gpt-4o-mini",
    )


@pytest.fixture
def client() -> OpenAIClient:
    client = OpenAIClient(model="gpt-4o-mini", api_key="test-key", max_retries=0)
    client.client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock()))
    )
    return client


def test_missing_api_key_rejected(monkeypatch) -> None:
    monkeypatch.setattr(
        "aiqa.models.openai_client.get_settings",
        lambda: SimpleNamespace(
            openai_model="gpt-4o-mini",
            openai_max_retries=2,
            openai_api_key="",
            openai_request_timeout_seconds=30,
        ),
    )

    with pytest.raises(ValueError, match="OpenAI API key not provided"):
        OpenAIClient()


@pytest.mark.asyncio
async def test_json_response_parsed(client: OpenAIClient) -> None:
    create = client.client.chat.completions.create
    create.return_value = fake_response('{"elementIndex": 2}')

    response = await client.call(
        [{"role": "user", "content": "pick one"}],
        temperature=0.3,
        max_tokens=500,
        system_prompt="You match elements.",
        response_format={"type": "json_object"},
    )

    assert response["content"] == {"elementIndex": 2}
    assert response["usage"]["total_tokens"] == 150
    assert response["finish_reason"] == "stop"

    kwargs = create.call_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "You match elements."}
    assert kwargs["max_completion_tokens"] == 500
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_invalid_json_kept_as_raw(client: OpenAIClient) -> None:
    client.client.chat.completions.create.return_value = fake_response("second button")

    response = await client.call(
        [{"role": "user", "content": "pick one"}],
        response_format={"type": "json_object"},
    )

    assert response["content"] == {"error": "Invalid JSON response", "raw": "second button"}


@pytest.mark.asyncio
async def test_plain_text_response(client: OpenAIClient) -> None:
    client.client.chat.completions.create.return_value = fake_response("hello")

    response = await client.call([{"role": "user", "content": "hi"}])

    assert response["content"] == "hello"
    assert "max_completion_tokens" not in client.client.chat.completions.create.call_args.kwargs


@pytest.mark.asyncio
async def test_empty_choices(client: OpenAIClient) -> None:
    response = fake_response("")
    response.choices = []
    client.client.chat.completions.create.return_value = response

    result = await client.call(
        [{"role": "user", "content": "pick one"}],
        response_format={"type": "json_object"},
    )

    assert result["content"] == {"error": "Invalid JSON response", "raw": ""}
    assert result["finish_reason"] is None
