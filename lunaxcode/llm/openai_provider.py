"""
OpenAI-compatible provider implementation (openai, deepseek, groq, together).
"""
import logging
from typing import Iterator, Optional

import httpx
from openai import OpenAI, APIConnectionError, APIError, APIStatusError, APITimeoutError

from lunaxcode.llm.errors import AIProviderError, map_http_error, sanitize_error_message, to_sse_event
from lunaxcode.llm.providers import ProviderSpec
from lunaxcode.llm.transformers import build_request_body, parse_response_body
from lunaxcode.schemas.ai import AIProxyRequest, AIProxyResponse

logger = logging.getLogger(__name__)

SSE_DONE = "data: [DONE]\n\n"


class OpenAICompatibleProvider:
    """Chat-completions client built on the official OpenAI SDK."""

    def __init__(self, spec: ProviderSpec, api_key: str, http_client: Optional[httpx.Client] = None):
        self.spec = spec
        # max_retries=0: failures surface to the caller unchanged
        self.client = OpenAI(
            api_key=api_key,
            base_url=spec.base_url,
            timeout=spec.timeout,
            max_retries=0,
            http_client=http_client,
        )

    def _provider_error(self, error: APIError) -> AIProviderError:
        if isinstance(error, APIStatusError):
            logger.warning(f"{self.spec.id} API error: {error.status_code}")
            return map_http_error(error.status_code, error.message, self.spec.id)
        if isinstance(error, APITimeoutError):
            logger.warning(f"{self.spec.id} request timed out")
            return AIProviderError("TIMEOUT", f"Request to {self.spec.id} timed out", 504, self.spec.id)
        if isinstance(error, APIConnectionError):
            logger.warning(f"{self.spec.id} connection error: {sanitize_error_message(str(error))}")
            return AIProviderError("NETWORK_ERROR", f"Network error connecting to {self.spec.id}", 503, self.spec.id)
        logger.warning(f"{self.spec.id} error: {sanitize_error_message(str(error))}")
        return AIProviderError("PROVIDER_ERROR", sanitize_error_message(str(error)), 502, self.spec.id)

    def chat(self, request: AIProxyRequest) -> AIProxyResponse:
        """Generate a chat completion."""
        body = build_request_body(request, self.spec)
        try:
            completion = self.client.chat.completions.create(**body)
        except APIError as e:
            raise self._provider_error(e)

        return parse_response_body(completion.model_dump(), self.spec, request.model)

    def stream(self, request: AIProxyRequest) -> Iterator[str]:
        """
        Open a streaming completion and return its chunks as SSE lines.

        The upstream request is sent before this returns, so HTTP errors are
        raised here rather than from the iterator.
        """
        body = build_request_body(request, self.spec)
        try:
            chunks = self.client.chat.completions.create(**body, stream=True)
        except APIError as e:
            raise self._provider_error(e)
        return self._relay(chunks)

    def _relay(self, chunks) -> Iterator[str]:
        try:
            for chunk in chunks:
                yield f"data: {chunk.model_dump_json(exclude_unset=True)}\n\n"
            yield SSE_DONE
        except APIError as e:
            yield to_sse_event(self._provider_error(e))
        finally:
            chunks.close()
