"""
Caller interface for dispatching universal chat requests.
"""
from abc import ABC, abstractmethod

from lunaxcode.schemas.ai import AIProxyRequest, AIProxyResponse


class ChatCaller(ABC):
    """Abstract base class for the ways a chat request can reach a provider."""

    @abstractmethod
    def call(self, request: AIProxyRequest) -> AIProxyResponse:
        """
        Execute a chat request.

        Args:
            request: Universal request (provider, model, key, messages)

        Returns:
            AIProxyResponse with text, token usage and finish reason

        Raises:
            AIProviderError: on upstream, transport or format failure
        """
        pass
