"""
Provider router for PRD, task and description generation.

Builds the prompt for a logical operation, hands it to the caller that can
reach the selected provider, and normalizes the reply into plain text, a
task list or a list of suggestions.
"""
import json
import logging
import math
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from lunaxcode.llm import prompts
from lunaxcode.llm.callers import select_caller
from lunaxcode.llm.errors import AIProviderError, GenerationInputError, MalformedResponseError
from lunaxcode.schemas.ai import (
    AIProxyRequest,
    AIProxyResponse,
    ChatMessage,
    GenerateData,
    GeneratedTask,
    TokenUsage,
)

logger = logging.getLogger(__name__)

VALID_PRIORITIES = ("low", "medium", "high")
MAX_SUGGESTIONS = 3

_FENCE_JSON = re.compile(r"```json\s*")
_FENCE = re.compile(r"```\s*")
_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")


@dataclass
class GenerationResult:
    """Normalized outcome of one generation."""
    result: Any
    usage: TokenUsage = field(default_factory=TokenUsage)
    provider: str = ""
    model: str = ""


# ============================================
# Response parsing
# ============================================

def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", _FENCE_JSON.sub("", text or "")).strip()


def _extract_json_array(text: str) -> Any:
    cleaned = strip_code_fences(text)
    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start == -1 or end <= start:
        raise MalformedResponseError("Invalid response format from AI")
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError:
        raise MalformedResponseError("Invalid response format from AI")


def _as_number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # NaN and infinity cannot be rendered as JSON or cast to int
    if not math.isfinite(number):
        return default
    return number or default


def _as_text(value: Any, default: str) -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    return str(value).strip() or default


def parse_tasks_response(text: str) -> List[GeneratedTask]:
    """
    Parse the model's reply into tasks, filling missing fields with defaults.

    Raises:
        MalformedResponseError: no JSON array, or the array is empty
    """
    tasks = _extract_json_array(text)
    if not isinstance(tasks, list) or not tasks:
        raise MalformedResponseError("Invalid tasks format from AI")

    parsed = []
    for index, item in enumerate(tasks):
        task = item if isinstance(item, dict) else {}
        priority = task.get("priority")
        parsed.append(GeneratedTask(
            title=_as_text(task.get("title"), f"Task {index + 1}"),
            description=_as_text(task.get("description"), "No description provided"),
            section=_as_text(task.get("section"), "General"),
            priority=priority if priority in VALID_PRIORITIES else "medium",
            estimated_hours=_as_number(task.get("estimatedHours"), 4),
            dependencies=json.dumps(task.get("dependencies") or [], separators=(",", ":")),
            order=int(_as_number(task.get("order"), index + 1)),
        ))
    return parsed


def parse_suggestions_response(text: str) -> List[str]:
    """
    Parse up to three description suggestions from the model's reply.

    Raises:
        MalformedResponseError: no JSON array, or the array is empty
    """
    suggestions = _extract_json_array(text)
    if not isinstance(suggestions, list) or not suggestions:
        raise MalformedResponseError("No suggestions generated")
    return [str(s) for s in suggestions[:MAX_SUGGESTIONS]]


def clean_enhanced_text(text: str) -> str:
    """Drop code fences and surrounding quotes from an enhanced description."""
    return _SURROUNDING_QUOTES.sub("", strip_code_fences(text)).strip()


# ============================================
# Router
# ============================================

class ProviderRouter:
    """
    Dispatches generation operations to the selected provider.

    Args:
        proxy_url: Base URL of the proxy endpoint. Only set in client context;
            on the server every provider is called directly.
        http_client: Optional shared httpx client (tests inject a MockTransport)
    """

    def __init__(self, proxy_url: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        self.proxy_url = proxy_url
        self.http_client = http_client

    def chat(
        self,
        provider: str,
        model: str,
        api_key: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AIProxyResponse:
        """Send a single user prompt and return the normalized reply."""
        request = AIProxyRequest(
            provider=provider,
            model=model,
            api_key=api_key,
            messages=[ChatMessage(role="user", content=prompt)],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        caller = select_caller(provider, self.proxy_url, self.http_client)
        return caller.call(request)

    # Each operation returns (value, reply) so run() can report token usage.

    def _prd(self, service_name, description, question_answers, provider, model, api_key):
        if not service_name or not description:
            raise GenerationInputError("Service name and description are required for PRD generation")
        prompt = prompts.build_prd_prompt(service_name, description, question_answers)
        reply = self.chat(provider, model, api_key, prompt)
        return reply.text, reply

    def _tasks(self, prd, provider, model, api_key):
        if not prd:
            raise GenerationInputError("PRD is required for task generation")
        reply = self.chat(provider, model, api_key, prompts.build_tasks_prompt(prd))
        return parse_tasks_response(reply.text), reply

    def _suggestions(self, service_type, current_description, provider, model, api_key):
        prompt = prompts.build_suggestions_prompt(service_type, current_description)
        reply = self.chat(provider, model, api_key, prompt, temperature=0.8)
        return parse_suggestions_response(reply.text), reply

    def _enhance(self, service_type, current_description, provider, model, api_key):
        if not current_description:
            raise GenerationInputError("Current description is required for enhancement")
        prompt = prompts.build_enhance_prompt(service_type, current_description)
        reply = self.chat(provider, model, api_key, prompt, temperature=0.8)
        return clean_enhanced_text(reply.text), reply

    def generate_prd(
        self,
        service_name: str,
        description: str,
        question_answers: Optional[Dict[str, Any]],
        provider: str,
        model: str,
        api_key: str,
    ) -> str:
        """Draft a PRD in Markdown."""
        return self._prd(service_name, description, question_answers, provider, model, api_key)[0]

    def generate_tasks(self, prd: str, provider: str, model: str, api_key: str) -> List[GeneratedTask]:
        """Draft a development task list from a PRD."""
        return self._tasks(prd, provider, model, api_key)[0]

    def suggest_descriptions(
        self,
        service_type: Optional[str],
        current_description: Optional[str],
        provider: str,
        model: str,
        api_key: str,
    ) -> List[str]:
        return self._suggestions(service_type, current_description, provider, model, api_key)[0]

    def enhance_description(
        self,
        service_type: Optional[str],
        current_description: str,
        provider: str,
        model: str,
        api_key: str,
    ) -> str:
        return self._enhance(service_type, current_description, provider, model, api_key)[0]

    def run(self, generation_type: str, data: GenerateData, config) -> GenerationResult:
        """
        Execute a generation by type with the resolved provider config.

        Task lists are returned as camelCase dicts, ready for JSON responses.
        """
        creds = (config.provider, config.model, config.api_key)

        if generation_type == "prd":
            value, reply = self._prd(data.service_name, data.description, data.question_answers, *creds)
        elif generation_type == "tasks":
            tasks, reply = self._tasks(data.prd, *creds)
            value = [t.model_dump(by_alias=True) for t in tasks]
        elif generation_type == "description_suggestion":
            value, reply = self._suggestions(data.service_type, data.current_description, *creds)
        elif generation_type == "description_enhance":
            value, reply = self._enhance(data.service_type, data.current_description, *creds)
        else:
            raise GenerationInputError(f"Unsupported generation type: {generation_type}")

        return GenerationResult(result=value, usage=reply.usage, provider=reply.provider, model=reply.model)

    def test_connection(self, provider: str, model: str, api_key: str) -> Dict[str, Any]:
        """Send a trivial prompt and report whether the provider answered."""
        started = time.perf_counter()
        try:
            self.chat(provider, model, api_key, prompts.TEST_PROMPT, max_tokens=10)
        except AIProviderError as e:
            logger.info(f"Connection test failed for {provider}: {e.code}")
            return {"success": False, "message": e.message, "latency": None}

        latency = int((time.perf_counter() - started) * 1000)
        return {
            "success": True,
            "message": f"Connection successful! Response received in {latency}ms",
            "latency": latency,
        }
