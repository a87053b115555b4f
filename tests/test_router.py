"""
Tests for the provider router: reply parsing, caller selection and error mapping.
"""
import json

import httpx
import pytest

from lunaxcode.llm.callers import DirectCaller, ProxiedCaller, select_caller
from lunaxcode.llm.errors import AIProviderError, GenerationInputError, MalformedResponseError
from lunaxcode.llm.router import (
    ProviderRouter,
    clean_enhanced_text,
    parse_suggestions_response,
    parse_tasks_response,
)
from lunaxcode.schemas.ai import GenerateData
from lunaxcode.services.usage_service import AIConfig
from tests.fakes import (
    ANTHROPIC_KEY,
    GOOGLE_KEY,
    OPENAI_KEY,
    RecordingTransport,
    anthropic_reply,
    google_reply,
    openai_reply,
    reply_with,
)


# ============================================
# Reply parsing
# ============================================

def test_parse_tasks_strips_fences_and_fills_defaults():
    text = '```json\n[{"title": "Setup", "priority": "urgent"}, {"description": "Build API", "section": "Backend", "priority": "high", "estimatedHours": 6, "dependencies": [0], "order": 7}]\n```'

    tasks = parse_tasks_response(text)

    assert len(tasks) == 2
    first, second = tasks
    assert first.title == "Setup"
    assert first.description == "No description provided"
    assert first.section == "General"
    assert first.priority == "medium"
    assert first.estimated_hours == 4
    assert first.dependencies == "[]"
    assert first.order == 1
    assert second.title == "Task 2"
    assert second.priority == "high"
    assert second.estimated_hours == 6
    assert second.dependencies == "[0]"
    assert second.order == 7


def test_parse_tasks_finds_array_inside_prose():
    tasks = parse_tasks_response('Here you go:\n[{"title": "Deploy"}]\nGood luck!')
    assert [t.title for t in tasks] == ["Deploy"]


def test_parse_tasks_without_array():
    with pytest.raises(MalformedResponseError, match="Invalid response format from AI"):
        parse_tasks_response("I cannot help with that.")


def test_parse_tasks_with_empty_array():
    with pytest.raises(MalformedResponseError, match="Invalid tasks format from AI"):
        parse_tasks_response("[]")


@pytest.mark.parametrize("hours,order", [('"NaN"', '"inf"'), ('"-Infinity"', "1e999"), ("null", '"third"')])
def test_parse_tasks_ignores_non_finite_numbers(hours, order):
    tasks = parse_tasks_response(f'[{{"title": "Setup", "estimatedHours": {hours}, "order": {order}}}]')

    assert tasks[0].estimated_hours == 4
    assert tasks[0].order == 1
    json.dumps(tasks[0].model_dump(by_alias=True), allow_nan=False)


def test_parse_tasks_coerces_non_string_fields():
    tasks = parse_tasks_response('[{"title": 5, "description": ["a"], "section": true}, {"title": "  "}]')

    first, second = tasks
    assert first.title == "5"
    assert first.description == "No description provided"
    assert first.section == "True"
    assert second.title == "Task 2"


def test_parse_suggestions_keeps_three():
    suggestions = parse_suggestions_response('["a", "b", "c", "d"]')
    assert suggestions == ["a", "b", "c"]


def test_parse_suggestions_empty():
    with pytest.raises(MalformedResponseError, match="No suggestions generated"):
        parse_suggestions_response("```json\n[]\n```")


def test_clean_enhanced_text():
    assert clean_enhanced_text('```\n"I need an online store."\n```') == "I need an online store."
    assert clean_enhanced_text("'Plain text'") == "Plain text"


# ============================================
# Caller selection
# ============================================

def test_select_caller_uses_proxy_only_for_providers_that_need_it():
    assert isinstance(select_caller("anthropic", "https://portal.example.com"), ProxiedCaller)
    assert isinstance(select_caller("anthropic", None), DirectCaller)
    assert isinstance(select_caller("openai", "https://portal.example.com"), DirectCaller)


def test_select_caller_rejects_unknown_provider():
    with pytest.raises(AIProviderError) as exc:
        select_caller("cohere")
    assert exc.value.code == "INVALID_REQUEST"
    assert exc.value.status_code == 400


# ============================================
# Operations
# ============================================

def test_generate_prd_with_openai():
    transport = reply_with(openai_reply("# PRD\n\nContent"))
    router = ProviderRouter(http_client=transport.client())

    prd = router.generate_prd("Landing Page", "Promote a bakery", {"target_audience": "families"},
                              "openai", "gpt-4o-mini", OPENAI_KEY)

    assert prd == "# PRD\n\nContent"
    request = transport.last
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["authorization"] == f"Bearer {OPENAI_KEY}"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o-mini"
    assert body["temperature"] == 0.7
    assert "Promote a bakery" in body["messages"][0]["content"]


def test_missing_input_fails_before_any_request():
    transport = reply_with(openai_reply("unused"))
    router = ProviderRouter(http_client=transport.client())

    with pytest.raises(GenerationInputError, match="Service name and description are required"):
        router.generate_prd("", "desc", None, "openai", "gpt-4o-mini", OPENAI_KEY)
    with pytest.raises(GenerationInputError, match="PRD is required"):
        router.generate_tasks("", "openai", "gpt-4o-mini", OPENAI_KEY)
    with pytest.raises(GenerationInputError, match="Current description is required"):
        router.enhance_description("Website", "", "openai", "gpt-4o-mini", OPENAI_KEY)

    assert transport.requests == []


def test_anthropic_called_directly_without_proxy_url():
    transport = reply_with(anthropic_reply('["One", "Two"]'))
    router = ProviderRouter(http_client=transport.client())

    suggestions = router.suggest_descriptions("Website", None, "anthropic", "claude-3-haiku-20240307", ANTHROPIC_KEY)

    assert suggestions == ["One", "Two"]
    request = transport.last
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == ANTHROPIC_KEY
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert json.loads(request.content)["temperature"] == 0.8


def test_anthropic_forwarded_to_proxy_when_proxy_url_set():
    proxied = {
        "text": "Enhanced",
        "usage": {"promptTokens": 4, "completionTokens": 2, "totalTokens": 6},
        "model": "claude-3-haiku-20240307",
        "provider": "anthropic",
        "finishReason": "end_turn",
    }
    transport = reply_with(proxied)
    router = ProviderRouter(proxy_url="https://portal.example.com/", http_client=transport.client())

    text = router.enhance_description("Website", "need a site", "anthropic", "claude-3-haiku-20240307", ANTHROPIC_KEY)

    assert text == "Enhanced"
    request = transport.last
    assert str(request.url) == "https://portal.example.com/ai/proxy"
    body = json.loads(request.content)
    assert body["provider"] == "anthropic"
    assert body["apiKey"] == ANTHROPIC_KEY
    assert body["messages"][0]["role"] == "user"


def test_proxy_error_body_is_preserved():
    transport = reply_with(
        {"error": "Invalid API key for anthropic", "code": "INVALID_API_KEY", "provider": "anthropic"},
        status_code=401,
    )
    router = ProviderRouter(proxy_url="https://portal.example.com", http_client=transport.client())

    with pytest.raises(AIProviderError) as exc:
        router.chat("anthropic", "claude-3-haiku-20240307", ANTHROPIC_KEY, "Hi")

    assert exc.value.code == "INVALID_API_KEY"
    assert exc.value.status_code == 401


def test_google_sends_key_as_query_parameter():
    transport = reply_with(google_reply("Better description"))
    router = ProviderRouter(http_client=transport.client())

    reply = router.chat("google", "gemini-1.5-flash", GOOGLE_KEY, "Hello")

    assert reply.text == "Better description"
    request = transport.last
    assert request.url.path == "/v1/models/gemini-1.5-flash:generateContent"
    assert request.url.params["key"] == GOOGLE_KEY
    assert "authorization" not in request.headers


def test_run_returns_tasks_as_camel_case_dicts():
    transport = reply_with(openai_reply('[{"title": "Setup", "estimatedHours": 2}]', 100, 50))
    router = ProviderRouter(http_client=transport.client())
    config = AIConfig(provider="openai", model="gpt-4o-mini", api_key=OPENAI_KEY, max_generations_per_user=3)

    outcome = router.run("tasks", GenerateData(prd="# PRD"), config)

    assert outcome.result[0]["title"] == "Setup"
    assert outcome.result[0]["estimatedHours"] == 2
    assert outcome.usage.total_tokens == 150
    assert outcome.provider == "openai"


@pytest.mark.parametrize("provider,model,key", [
    ("openai", "gpt-4o-mini", OPENAI_KEY),
    ("google", "gemini-1.5-flash", GOOGLE_KEY),
])
def test_unauthorized_maps_to_invalid_api_key(provider, model, key):
    transport = reply_with({"error": {"message": "Incorrect API key provided"}}, status_code=401)
    router = ProviderRouter(http_client=transport.client())

    with pytest.raises(AIProviderError) as exc:
        router.chat(provider, model, key, "Hi")

    assert exc.value.code == "INVALID_API_KEY"
    assert exc.value.provider == provider


def test_rate_limit_maps_to_rate_limit_exceeded():
    transport = reply_with({"error": {"message": "Slow down"}}, status_code=429)
    router = ProviderRouter(http_client=transport.client())

    with pytest.raises(AIProviderError) as exc:
        router.chat("anthropic", "claude-3-haiku-20240307", ANTHROPIC_KEY, "Hi")

    assert exc.value.code == "RATE_LIMIT_EXCEEDED"
    assert exc.value.status_code == 429


def test_network_failure_maps_to_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    router = ProviderRouter(http_client=RecordingTransport(refuse).client())

    with pytest.raises(AIProviderError) as exc:
        router.chat("google", "gemini-1.5-flash", GOOGLE_KEY, "Hi")

    assert exc.value.code == "NETWORK_ERROR"


def test_test_connection_reports_success_and_failure():
    ok = ProviderRouter(http_client=reply_with(openai_reply("OK")).client())
    result = ok.test_connection("openai", "gpt-4o-mini", OPENAI_KEY)
    assert result["success"] is True
    assert result["latency"] >= 0

    bad = ProviderRouter(http_client=reply_with({"error": "bad key"}, status_code=403).client())
    result = bad.test_connection("google", "gemini-1.5-flash", GOOGLE_KEY)
    assert result == {"success": False, "message": "Invalid API key for google", "latency": None}
