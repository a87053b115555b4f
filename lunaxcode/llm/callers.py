"""
Caller strategies: reach the provider directly, or through the same-origin
proxy endpoint when the provider blocks cross-origin calls.
"""
import logging
from typing import Iterator, Optional

import httpx

from lunaxcode.llm.errors import (
    AIProviderError,
    handle_http_error,
    handle_transport_error,
    to_sse_event,
)
from lunaxcode.llm.openai_provider import OpenAICompatibleProvider
from lunaxcode.llm.provider import ChatCaller
from lunaxcode.llm.providers import (
    WIRE_ANTHROPIC,
    WIRE_OPENAI,
    build_api_url,
    build_headers,
    build_query_params,
    get_provider,
)
from lunaxcode.llm.transformers import build_request_body, parse_response_body
from lunaxcode.schemas.ai import AIProxyRequest, AIProxyResponse

logger = logging.getLogger(__name__)

PROXY_PATH = "/ai/proxy"
PROXY_TIMEOUT = 60.0


class DirectCaller(ChatCaller):
    """Calls the provider's API from this process."""

    def __init__(self, http_client: Optional[httpx.Client] = None):
        self.http_client = http_client

    def call(self, request: AIProxyRequest) -> AIProxyResponse:
        spec = get_provider(request.provider)
        logger.info(f"Calling {spec.id} directly (model={request.model})")

        if spec.wire == WIRE_OPENAI:
            provider = OpenAICompatibleProvider(spec, request.api_key, http_client=self.http_client)
            return provider.chat(request)

        url = build_api_url(spec, request.model)
        try:
            if self.http_client is not None:
                response = self._post(self.http_client, url, spec, request)
            else:
                with httpx.Client(timeout=spec.timeout) as client:
                    response = self._post(client, url, spec, request)
        except httpx.HTTPError as e:
            logger.warning(f"{spec.id} transport error: {type(e).__name__}")
            raise handle_transport_error(e, spec.id)

        if not response.is_success:
            logger.warning(f"{spec.id} API error: {response.status_code}")
            raise handle_http_error(response, spec.id)

        try:
            payload = response.json()
        except ValueError:
            raise AIProviderError("PROVIDER_ERROR", f"Invalid JSON from {spec.id}", 502, spec.id)
        return parse_response_body(payload, spec, request.model)

    def stream(self, request: AIProxyRequest) -> Iterator[str]:
        """
        Open a streaming call and return the provider's server-sent events.

        Upstream and transport errors before the first byte are raised as
        AIProviderError; later failures end the stream with an `error` event.
        """
        spec = get_provider(request.provider)
        logger.info(f"Streaming from {spec.id} directly (model={request.model})")

        if spec.wire == WIRE_OPENAI:
            provider = OpenAICompatibleProvider(spec, request.api_key, http_client=self.http_client)
            return provider.stream(request)

        body = build_request_body(request, spec)
        if spec.wire == WIRE_ANTHROPIC:
            body["stream"] = True

        owned = self.http_client is None
        client = httpx.Client(timeout=spec.timeout) if owned else self.http_client
        upstream = client.build_request(
            "POST",
            build_api_url(spec, request.model, stream=True),
            json=body,
            headers=build_headers(spec, request.api_key),
            params=build_query_params(spec, request.api_key, stream=True),
            timeout=spec.timeout,
        )
        try:
            response = client.send(upstream, stream=True)
        except httpx.HTTPError as e:
            logger.warning(f"{spec.id} transport error: {type(e).__name__}")
            if owned:
                client.close()
            raise handle_transport_error(e, spec.id)

        if not response.is_success:
            response.read()
            response.close()
            if owned:
                client.close()
            logger.warning(f"{spec.id} API error: {response.status_code}")
            raise handle_http_error(response, spec.id)

        return self._relay(response, client if owned else None, spec.id)

    @staticmethod
    def _relay(response: httpx.Response, owned_client: Optional[httpx.Client], provider: str) -> Iterator[str]:
        try:
            for chunk in response.iter_text():
                yield chunk
        except httpx.HTTPError as e:
            logger.warning(f"{provider} stream interrupted: {type(e).__name__}")
            yield to_sse_event(handle_transport_error(e, provider))
        finally:
            response.close()
            if owned_client is not None:
                owned_client.close()

    @staticmethod
    def _post(client: httpx.Client, url: str, spec, request: AIProxyRequest) -> httpx.Response:
        return client.post(
            url,
            json=build_request_body(request, spec),
            headers=build_headers(spec, request.api_key),
            params=build_query_params(spec, request.api_key),
            timeout=spec.timeout,
        )


class ProxiedCaller(ChatCaller):
    """Forwards the universal request to the proxy endpoint, which calls the provider."""

    def __init__(self, proxy_url: str, http_client: Optional[httpx.Client] = None):
        self.proxy_url = proxy_url.rstrip("/")
        self.http_client = http_client

    def call(self, request: AIProxyRequest) -> AIProxyResponse:
        url = f"{self.proxy_url}{PROXY_PATH}"
        body = request.model_dump(by_alias=True, exclude_none=True)
        logger.info(f"Forwarding {request.provider} request to proxy")

        try:
            if self.http_client is not None:
                response = self.http_client.post(url, json=body, timeout=PROXY_TIMEOUT)
            else:
                with httpx.Client(timeout=PROXY_TIMEOUT) as client:
                    response = client.post(url, json=body)
        except httpx.HTTPError as e:
            raise handle_transport_error(e, request.provider)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success:
            if isinstance(payload, dict) and payload.get("code"):
                raise AIProviderError(
                    payload["code"],
                    payload.get("error") or "Proxy request failed",
                    response.status_code,
                    payload.get("provider") or request.provider,
                    payload.get("details"),
                )
            raise handle_http_error(response, request.provider)

        if not isinstance(payload, dict):
            raise AIProviderError("PROVIDER_ERROR", "Invalid JSON from proxy", 502, request.provider)
        return AIProxyResponse.model_validate(payload)


def select_caller(
    provider: str,
    proxy_url: Optional[str] = None,
    http_client: Optional[httpx.Client] = None,
) -> ChatCaller:
    """Pick the proxy when the provider requires it and a proxy URL is known."""
    spec = get_provider(provider)
    if spec.requires_proxy and proxy_url:
        return ProxiedCaller(proxy_url, http_client=http_client)
    return DirectCaller(http_client=http_client)
