"""
Error types for AI provider calls.

Upstream failures are normalized into AIProviderError so route handlers can
render one error shape regardless of which provider failed.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

# INVALID_API_KEY | RATE_LIMIT_EXCEEDED | PROVIDER_ERROR | TIMEOUT |
# INVALID_REQUEST | NETWORK_ERROR | UNKNOWN_ERROR
_KEY_PATTERNS = [
    (re.compile(r"sk-[A-Za-z0-9_-]{16,}"), "sk-***"),
    (re.compile(r"AIza[A-Za-z0-9_-]{20,}"), "AIza***"),
    (re.compile(r"gsk_[A-Za-z0-9]{16,}"), "gsk_***"),
    (re.compile(r"([?&]key=)[^&\s'\"]+"), r"\1***"),
]


class AIProviderError(Exception):
    """Raised when a provider (or the proxy in front of it) rejects or fails a request."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        provider: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.provider = provider
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "provider": self.provider,
            "details": self.details,
        }


class GenerationInputError(ValueError):
    """Required input for a generation operation is missing."""


class MalformedResponseError(ValueError):
    """Provider text does not contain the expected JSON structure."""


def sanitize_error_message(message: str) -> str:
    """Remove anything that looks like an API key from an error message."""
    sanitized = message or "Unknown error"
    for pattern, replacement in _KEY_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def handle_transport_error(error: Exception, provider: str) -> AIProviderError:
    """Convert an httpx transport failure into AIProviderError."""
    if isinstance(error, httpx.TimeoutException):
        return AIProviderError("TIMEOUT", f"Request to {provider} timed out", 504, provider)
    if isinstance(error, httpx.TransportError):
        return AIProviderError("NETWORK_ERROR", f"Network error connecting to {provider}", 503, provider)
    return AIProviderError(
        "PROVIDER_ERROR",
        f"Failed to connect to {provider}: {sanitize_error_message(str(error))}",
        503,
        provider,
    )


def _extract_error_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, str):
        return error
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if payload.get("message"):
        return payload["message"]
    return None


def map_http_error(status_code: int, message: Optional[str], provider: str) -> AIProviderError:
    """Map an upstream HTTP status onto an AIProviderError code."""
    message = sanitize_error_message(message or "Unknown error")
    if status_code in (401, 403):
        return AIProviderError("INVALID_API_KEY", f"Invalid API key for {provider}", status_code, provider, message)
    if status_code == 429:
        return AIProviderError("RATE_LIMIT_EXCEEDED", f"Rate limit exceeded for {provider}", status_code, provider, message)
    if status_code >= 500:
        return AIProviderError("PROVIDER_ERROR", f"{provider} server error: {message}", status_code, provider)
    return AIProviderError("PROVIDER_ERROR", message, status_code, provider)


def handle_http_error(response: httpx.Response, provider: str) -> AIProviderError:
    """Build an AIProviderError from a non-2xx provider response."""
    try:
        message = _extract_error_message(response.json())
    except ValueError:
        message = None
    return map_http_error(response.status_code, message or response.reason_phrase, provider)


def to_sse_event(error: AIProviderError) -> str:
    """Render an error that happens after a stream has started as an SSE `error` event."""
    return f"event: error\ndata: {json.dumps(error.to_dict())}\n\n"
