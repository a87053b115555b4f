"""
Tests for POST /ai/proxy and POST /ai/validate.
"""
import json

import pytest

from lunaxcode.core.dependencies import get_direct_caller, get_rate_limiter
from lunaxcode.core.rate_limit import SlidingWindowRateLimiter
from lunaxcode.llm.callers import DirectCaller
from lunaxcode.llm.errors import AIProviderError
from tests.fakes import ANTHROPIC_KEY, GOOGLE_KEY, OPENAI_KEY, anthropic_reply, openai_reply, reply_with


def _proxy_body(**overrides):
    body = {
        "provider": "anthropic",
        "model": "claude-3-haiku-20240307",
        "apiKey": ANTHROPIC_KEY,
        "messages": [
            {"role": "system", "content": "Answer briefly."},
            {"role": "user", "content": "Hello"},
        ],
        "temperature": 0.5,
        "maxTokens": 100,
    }
    body.update(overrides)
    return body


def _use_upstream(app, transport):
    app.dependency_overrides[get_direct_caller] = lambda: DirectCaller(http_client=transport.client())


@pytest.fixture
def upstream(app):
    transport = reply_with(anthropic_reply("Hi there"))
    _use_upstream(app, transport)
    return transport


def test_proxy_forwards_and_normalizes(client, upstream):
    response = client.post("/ai/proxy", json=_proxy_body())

    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "Hi there"
    assert body["provider"] == "anthropic"
    assert body["usage"] == {"promptTokens": 10, "completionTokens": 5, "totalTokens": 15}
    assert body["finishReason"] == "end_turn"
    assert body["metadata"]["duration"] >= 0
    assert "timestamp" in body["metadata"]

    sent = json.loads(upstream.last.content)
    assert sent["system"] == "Answer briefly."
    assert sent["max_tokens"] == 100
    assert sent["temperature"] == 0.5


def test_proxy_requires_body(client, upstream):
    response = client.post("/ai/proxy")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.parametrize("overrides,message", [
    ({"provider": "cohere"}, "Unsupported provider"),
    ({"model": ""}, "Model is required"),
    ({"messages": []}, "Messages array is required"),
    ({"messages": [{"role": "tool", "content": "x"}]}, "valid role"),
    ({"messages": [{"role": "user", "content": 5}]}, "content as a string"),
    ({"temperature": 3}, "Temperature must be"),
    ({"maxTokens": 0}, "maxTokens must be"),
])
def test_proxy_rejects_invalid_requests(client, upstream, overrides, message):
    response = client.post("/ai/proxy", json=_proxy_body(**overrides))

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "INVALID_REQUEST"
    assert message in body["error"]
    assert upstream.requests == []


def test_proxy_rejects_malformed_key(client, upstream):
    response = client.post("/ai/proxy", json=_proxy_body(apiKey="sk-not-anthropic"))

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_API_KEY"
    assert upstream.requests == []


def test_proxy_passes_upstream_errors_through(client, app):
    _use_upstream(app, reply_with({"error": {"message": "invalid x-api-key"}}, status_code=401))

    response = client.post("/ai/proxy", json=_proxy_body())

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "INVALID_API_KEY"
    assert body["provider"] == "anthropic"


def test_proxy_rate_limit(client, app, upstream):
    limiter = SlidingWindowRateLimiter(per_minute=2, per_hour=100)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    assert client.post("/ai/proxy", json=_proxy_body()).status_code == 200
    assert client.post("/ai/proxy", json=_proxy_body()).status_code == 200
    response = client.post("/ai/proxy", json=_proxy_body())

    assert response.status_code == 429
    body = response.json()
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["details"].startswith("Retry-After: ")
    assert len(upstream.requests) == 2


def test_rate_limiter_window_slides():
    now = [0.0]
    limiter = SlidingWindowRateLimiter(per_minute=1, per_hour=2, clock=lambda: now[0])

    limiter.check("1.2.3.4")
    limiter.check("5.6.7.8")
    now[0] = 61.0
    limiter.check("1.2.3.4")
    now[0] = 130.0

    with pytest.raises(AIProviderError) as exc:
        limiter.check("1.2.3.4")
    assert exc.value.code == "RATE_LIMIT_EXCEEDED"
    assert exc.value.details == "Retry-After: 3470s"

    now[0] = 3700.0
    limiter.cleanup()
    assert limiter.tracked_ips == 0
    limiter.check("1.2.3.4")


def test_rate_limiter_forgets_idle_ips_while_checking():
    now = [0.0]
    limiter = SlidingWindowRateLimiter(per_minute=5, per_hour=10, clock=lambda: now[0])

    for n in range(500):
        limiter.check(f"10.0.{n // 256}.{n % 256}")
    assert limiter.tracked_ips == 500

    now[0] = 120.0
    limiter.check("10.9.9.9")
    assert limiter.tracked_ips == 501

    now[0] = 10 * 3600.0
    limiter.check("192.168.0.1")
    assert limiter.tracked_ips == 1


# ============================================
# Key validation
# ============================================

def test_validate_rejects_bad_format_without_calling(client, upstream):
    response = client.post("/ai/validate", json={"provider": "google", "apiKey": "not-a-key"})

    assert response.status_code == 200
    assert response.json() == {"valid": False, "provider": "google", "error": "Invalid API key format"}
    assert upstream.requests == []


def test_validate_valid_key(client, app):
    transport = reply_with(openai_reply("Hi"))
    _use_upstream(app, transport)

    response = client.post("/ai/validate", json={"provider": "openai", "apiKey": OPENAI_KEY})

    assert response.json() == {"valid": True, "provider": "openai"}
    sent = json.loads(transport.last.content)
    assert sent["model"] == "gpt-4o-mini"
    assert sent["max_tokens"] == 10


def test_validate_key_rejected_upstream(client, app):
    _use_upstream(app, reply_with({"error": {"message": "API key not valid"}}, status_code=400))
    response = client.post("/ai/validate", json={"provider": "google", "apiKey": GOOGLE_KEY})
    assert response.json()["valid"] is False

    _use_upstream(app, reply_with({"error": {"message": "API key not valid"}}, status_code=403))
    response = client.post("/ai/validate", json={"provider": "google", "apiKey": GOOGLE_KEY})
    assert response.json() == {"valid": False, "provider": "google", "error": "Invalid API key"}


def test_validate_requires_provider_and_key(client, upstream):
    response = client.post("/ai/validate", json={"provider": "openai"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"
