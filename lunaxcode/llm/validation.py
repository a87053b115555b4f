"""
Validation of raw universal chat requests arriving at the proxy endpoint.
"""
from typing import Any

from lunaxcode.llm.errors import AIProviderError
from lunaxcode.llm.providers import (
    get_supported_providers,
    is_supported_provider,
    validate_api_key_format,
)
from lunaxcode.schemas.ai import AIProxyRequest, ChatMessage, MESSAGE_ROLES

MAX_TOKENS_CEILING = 100000


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_proxy_request(body: Any) -> AIProxyRequest:
    """
    Validate a raw JSON body and build an AIProxyRequest from it.

    Raises:
        AIProviderError: INVALID_REQUEST (400) or INVALID_API_KEY (401)
    """
    if not body or not isinstance(body, dict):
        raise AIProviderError("INVALID_REQUEST", "Request body is required", 400)

    provider = body.get("provider")
    if not provider:
        raise AIProviderError("INVALID_REQUEST", "Provider is required", 400)
    if not is_supported_provider(provider):
        raise AIProviderError(
            "INVALID_REQUEST",
            f"Unsupported provider: {provider}. Supported providers: {', '.join(get_supported_providers())}",
            400,
        )

    model = body.get("model")
    if not model or not isinstance(model, str):
        raise AIProviderError("INVALID_REQUEST", "Model is required and must be a string", 400)

    api_key = body.get("apiKey")
    if not api_key or not isinstance(api_key, str):
        raise AIProviderError("INVALID_REQUEST", "API key is required", 400, provider)
    if not validate_api_key_format(provider, api_key):
        raise AIProviderError("INVALID_API_KEY", f"Invalid API key format for {provider}", 401, provider)

    messages = body.get("messages")
    if not messages or not isinstance(messages, list):
        raise AIProviderError("INVALID_REQUEST", "Messages array is required and must not be empty", 400)
    for msg in messages:
        if not isinstance(msg, dict) or msg.get("role") not in MESSAGE_ROLES:
            raise AIProviderError(
                "INVALID_REQUEST",
                "Each message must have a valid role (system, user, or assistant)",
                400,
            )
        if not msg.get("content") or not isinstance(msg["content"], str):
            raise AIProviderError("INVALID_REQUEST", "Each message must have content as a string", 400)

    temperature = body.get("temperature")
    if temperature is not None and (not _is_number(temperature) or not 0 <= temperature <= 2):
        raise AIProviderError("INVALID_REQUEST", "Temperature must be a number between 0 and 2", 400)

    max_tokens = body.get("maxTokens")
    if max_tokens is not None and (not _is_number(max_tokens) or not 1 <= max_tokens <= MAX_TOKENS_CEILING):
        raise AIProviderError("INVALID_REQUEST", "maxTokens must be a number between 1 and 100000", 400)

    return AIProxyRequest(
        provider=provider,
        model=model,
        api_key=api_key,
        messages=[ChatMessage(role=m["role"], content=m["content"]) for m in messages],
        temperature=temperature,
        max_tokens=int(max_tokens) if max_tokens is not None else None,
    )
