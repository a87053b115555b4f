"""
Tests for universal <-> provider request/response transformers.
"""
import pytest

from lunaxcode.llm.errors import AIProviderError
from lunaxcode.llm.providers import PROVIDERS
from lunaxcode.llm.transformers import (
    build_request_body,
    parse_response_body,
    to_anthropic,
    to_google,
    to_openai,
)
from lunaxcode.schemas.ai import AIProxyRequest, ChatMessage
from tests.fakes import ANTHROPIC_KEY, anthropic_reply, google_reply, openai_reply


def _request(provider="openai", model="gpt-4o-mini", **kwargs) -> AIProxyRequest:
    return AIProxyRequest(
        provider=provider,
        model=model,
        api_key="key",
        messages=[
            ChatMessage(role="system", content="Be brief."),
            ChatMessage(role="user", content="Hello"),
            ChatMessage(role="assistant", content="Hi"),
        ],
        **kwargs,
    )


def test_openai_body_keeps_messages_and_defaults():
    body = to_openai(_request(), PROVIDERS["openai"])

    assert body["model"] == "gpt-4o-mini"
    assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant"]
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 4000


def test_anthropic_body_moves_system_prompt_out_of_messages():
    body = to_anthropic(_request("anthropic", "claude-3-haiku-20240307", max_tokens=50), PROVIDERS["anthropic"])

    assert body["system"] == "Be brief."
    assert [m["role"] for m in body["messages"]] == ["user", "assistant"]
    assert body["max_tokens"] == 50


def test_google_body_folds_messages_into_one_prompt():
    body = to_google(_request("google", "gemini-1.5-flash", temperature=0.2), PROVIDERS["google"])

    text = body["contents"][0]["parts"][0]["text"]
    assert text == "System: Be brief.\n\nUser: Hello\n\nAssistant: Hi"
    assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 8000}


def test_build_request_body_dispatches_by_wire():
    assert "contents" in build_request_body(_request("google"), PROVIDERS["google"])
    assert "messages" in build_request_body(_request("groq"), PROVIDERS["groq"])


def test_parse_openai_response():
    response = parse_response_body(openai_reply("OK", 5, 1), PROVIDERS["deepseek"], "deepseek-chat")

    assert response.text == "OK"
    assert response.provider == "deepseek"
    assert response.usage.total_tokens == 6
    assert response.finish_reason == "stop"


def test_parse_anthropic_response_sums_tokens():
    response = parse_response_body(anthropic_reply("Hello"), PROVIDERS["anthropic"], "claude-3-haiku-20240307")

    assert response.text == "Hello"
    assert response.usage.prompt_tokens == 10
    assert response.usage.total_tokens == 15
    assert response.finish_reason == "end_turn"


def test_parse_google_response_uses_requested_model():
    response = parse_response_body(google_reply("Hi"), PROVIDERS["google"], "gemini-1.5-pro")

    assert response.text == "Hi"
    assert response.model == "gemini-1.5-pro"
    assert response.finish_reason == "stop"
    assert response.usage.completion_tokens == 3


def test_google_response_without_usage_metadata():
    payload = google_reply("Hi")
    del payload["usageMetadata"]

    response = parse_response_body(payload, PROVIDERS["google"], "gemini-1.5-flash")
    assert response.usage.total_tokens == 0


@pytest.mark.parametrize("provider,payload", [
    ("openai", {"choices": []}),
    ("anthropic", {"content": []}),
    ("google", {"promptFeedback": {"blockReason": "SAFETY"}}),
])
def test_unexpected_shape_raises_provider_error(provider, payload):
    with pytest.raises(AIProviderError) as exc:
        parse_response_body(payload, PROVIDERS[provider], "model")

    assert exc.value.code == "PROVIDER_ERROR"
    assert exc.value.status_code == 502
    assert exc.value.provider == provider


def test_anthropic_key_passes_format_check():
    from lunaxcode.llm.providers import validate_api_key_format

    assert validate_api_key_format("anthropic", ANTHROPIC_KEY)
    assert not validate_api_key_format("anthropic", "sk-short")
