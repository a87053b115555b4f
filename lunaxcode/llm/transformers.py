"""
Request/response transformers between the universal chat format and each
provider wire format.
"""
import logging
from typing import Any, Callable, Dict

from lunaxcode.llm.errors import AIProviderError
from lunaxcode.llm.providers import (
    ProviderSpec,
    WIRE_ANTHROPIC,
    WIRE_GOOGLE,
    WIRE_OPENAI,
)
from lunaxcode.schemas.ai import AIProxyRequest, AIProxyResponse, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7

_ROLE_PREFIXES = {"system": "System: ", "user": "User: ", "assistant": "Assistant: "}


def _temperature(request: AIProxyRequest) -> float:
    return request.temperature if request.temperature is not None else DEFAULT_TEMPERATURE


def _max_tokens(request: AIProxyRequest, spec: ProviderSpec) -> int:
    return request.max_tokens if request.max_tokens is not None else spec.default_max_tokens


# ============================================
# Universal -> provider
# ============================================

def to_openai(request: AIProxyRequest, spec: ProviderSpec) -> Dict[str, Any]:
    """Chat-completions body, shared by openai, deepseek, groq and together."""
    return {
        "model": request.model,
        "messages": [{"role": m.role, "content": m.content} for m in request.messages],
        "temperature": _temperature(request),
        "max_tokens": _max_tokens(request, spec),
    }


def to_anthropic(request: AIProxyRequest, spec: ProviderSpec) -> Dict[str, Any]:
    """Messages API body. The system prompt travels in its own field."""
    system = next((m.content for m in request.messages if m.role == "system"), None)
    body = {
        "model": request.model,
        "messages": [
            {"role": "assistant" if m.role == "assistant" else "user", "content": m.content}
            for m in request.messages
            if m.role != "system"
        ],
        "max_tokens": _max_tokens(request, spec),
        "temperature": _temperature(request),
    }
    if system:
        body["system"] = system
    return body


def to_google(request: AIProxyRequest, spec: ProviderSpec) -> Dict[str, Any]:
    """generateContent body. All messages are folded into one prompt."""
    prompt = "\n\n".join(
        _ROLE_PREFIXES.get(m.role, "User: ") + m.content for m in request.messages
    )
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": _temperature(request),
            "maxOutputTokens": _max_tokens(request, spec),
        },
    }


# ============================================
# Provider -> universal
# ============================================

def from_openai(payload: Dict[str, Any], provider: str, model: str) -> AIProxyResponse:
    choice = payload["choices"][0]
    usage = payload.get("usage") or {}
    return AIProxyResponse(
        text=choice["message"]["content"] or "",
        usage=TokenUsage(
            prompt_tokens=usage.get("prompt_tokens") or 0,
            completion_tokens=usage.get("completion_tokens") or 0,
            total_tokens=usage.get("total_tokens") or 0,
        ),
        model=payload.get("model") or model,
        provider=provider,
        finish_reason=choice.get("finish_reason"),
    )


def from_anthropic(payload: Dict[str, Any], provider: str, model: str) -> AIProxyResponse:
    usage = payload.get("usage") or {}
    input_tokens = usage.get("input_tokens") or 0
    output_tokens = usage.get("output_tokens") or 0
    return AIProxyResponse(
        text=payload["content"][0]["text"],
        usage=TokenUsage(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        ),
        model=payload.get("model") or model,
        provider=provider,
        finish_reason=payload.get("stop_reason"),
    )


def from_google(payload: Dict[str, Any], provider: str, model: str) -> AIProxyResponse:
    candidate = payload["candidates"][0]
    usage = payload.get("usageMetadata") or {}
    finish_reason = candidate.get("finishReason")
    return AIProxyResponse(
        text=candidate["content"]["parts"][0]["text"],
        usage=TokenUsage(
            prompt_tokens=usage.get("promptTokenCount") or 0,
            completion_tokens=usage.get("candidatesTokenCount") or 0,
            total_tokens=usage.get("totalTokenCount") or 0,
        ),
        model=model,
        provider=provider,
        finish_reason=finish_reason.lower() if finish_reason else "stop",
    )


REQUEST_TRANSFORMERS: Dict[str, Callable[[AIProxyRequest, ProviderSpec], Dict[str, Any]]] = {
    WIRE_OPENAI: to_openai,
    WIRE_ANTHROPIC: to_anthropic,
    WIRE_GOOGLE: to_google,
}

RESPONSE_TRANSFORMERS: Dict[str, Callable[[Dict[str, Any], str, str], AIProxyResponse]] = {
    WIRE_OPENAI: from_openai,
    WIRE_ANTHROPIC: from_anthropic,
    WIRE_GOOGLE: from_google,
}


def build_request_body(request: AIProxyRequest, spec: ProviderSpec) -> Dict[str, Any]:
    return REQUEST_TRANSFORMERS[spec.wire](request, spec)


def parse_response_body(payload: Any, spec: ProviderSpec, model: str) -> AIProxyResponse:
    """
    Normalize a provider's JSON reply.

    Raises:
        AIProviderError: PROVIDER_ERROR when the reply lacks the expected text payload
    """
    try:
        return RESPONSE_TRANSFORMERS[spec.wire](payload, spec.id, model)
    except (KeyError, IndexError, TypeError) as e:
        logger.error(f"Unexpected {spec.id} response shape: {type(e).__name__}: {e}")
        raise AIProviderError(
            "PROVIDER_ERROR",
            f"Unexpected response format from {spec.id}",
            502,
            spec.id,
        )
