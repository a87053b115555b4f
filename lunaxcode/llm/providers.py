"""
Static provider catalog for AI generation.

Single source of truth for every supported provider: where its API lives,
which wire format it speaks, how it authenticates, and whether it must be
reached through the same-origin proxy.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from lunaxcode.llm.errors import AIProviderError

logger = logging.getLogger(__name__)

# Wire formats
WIRE_OPENAI = "openai"        # chat-completions: messages in, choices[] out
WIRE_ANTHROPIC = "anthropic"  # messages API: content[] out
WIRE_GOOGLE = "google"        # generateContent: candidates[] out

# Authentication styles
AUTH_BEARER = "bearer"
AUTH_X_API_KEY = "x-api-key"
AUTH_QUERY_KEY = "query"


@dataclass(frozen=True)
class ProviderSpec:
    """Capabilities and endpoints of one upstream provider."""
    id: str
    name: str
    description: str
    wire: str
    base_url: str
    auth: str
    default_model: str
    models: Tuple[str, ...]
    docs_url: str
    requires_proxy: bool = False
    key_prefix: Optional[str] = None
    key_pattern: Optional[str] = None
    default_max_tokens: int = 4000
    timeout: float = 30.0
    extra_headers: Dict[str, str] = field(default_factory=dict)


PROVIDERS: Dict[str, ProviderSpec] = {
    "openai": ProviderSpec(
        id="openai",
        name="OpenAI",
        description="GPT-4o, GPT-4 Turbo, GPT-3.5",
        wire=WIRE_OPENAI,
        base_url="https://api.openai.com/v1",
        auth=AUTH_BEARER,
        default_model="gpt-4o-mini",
        models=("gpt-4o-mini", "gpt-4o", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"),
        docs_url="https://platform.openai.com/api-keys",
        key_prefix="sk-",
        key_pattern=r"^sk-[A-Za-z0-9_-]{32,}$",
    ),
    "anthropic": ProviderSpec(
        id="anthropic",
        name="Anthropic Claude",
        description="Claude 3.5 Sonnet, Opus, Haiku",
        wire=WIRE_ANTHROPIC,
        base_url="https://api.anthropic.com/v1/messages",
        auth=AUTH_X_API_KEY,
        default_model="claude-3-haiku-20240307",
        models=(
            "claude-3-haiku-20240307",
            "claude-3-sonnet-20240229",
            "claude-3-opus-20240229",
            "claude-3-5-sonnet-20241022",
        ),
        docs_url="https://console.anthropic.com/settings/keys",
        requires_proxy=True,  # no permissive CORS headers
        key_prefix="sk-ant-",
        key_pattern=r"^sk-ant-[A-Za-z0-9_-]{32,}$",
        extra_headers={"anthropic-version": "2023-06-01"},
    ),
    "google": ProviderSpec(
        id="google",
        name="Google Gemini",
        description="Gemini 2.5 Pro/Flash, 1.5 Pro/Flash",
        wire=WIRE_GOOGLE,
        base_url="https://generativelanguage.googleapis.com/v1/models",
        auth=AUTH_QUERY_KEY,
        default_model="gemini-1.5-flash",
        models=(
            "gemini-1.5-flash",
            "gemini-1.5-pro",
            "gemini-2.0-flash-exp",
            "gemini-2.5-flash",
            "gemini-2.5-flash-lite",
            "gemini-2.5-pro",
        ),
        docs_url="https://aistudio.google.com/app/apikey",
        key_prefix="AIza",
        key_pattern=r"^AIza[A-Za-z0-9_-]{35}$",
        default_max_tokens=8000,
    ),
    "deepseek": ProviderSpec(
        id="deepseek",
        name="DeepSeek",
        description="DeepSeek Chat, Coder",
        wire=WIRE_OPENAI,
        base_url="https://api.deepseek.com/v1",
        auth=AUTH_BEARER,
        default_model="deepseek-chat",
        models=("deepseek-chat", "deepseek-coder"),
        docs_url="https://platform.deepseek.com/api-keys",
        key_prefix="sk-",
        key_pattern=r"^sk-[A-Za-z0-9]{32,}$",
    ),
    "groq": ProviderSpec(
        id="groq",
        name="Groq",
        description="Ultra-fast inference",
        wire=WIRE_OPENAI,
        base_url="https://api.groq.com/openai/v1",
        auth=AUTH_BEARER,
        default_model="llama-3.3-70b-versatile",
        models=("llama-3.3-70b-versatile", "llama-3.1-70b-versatile", "mixtral-8x7b-32768", "gemma2-9b-it"),
        docs_url="https://console.groq.com/keys",
        key_prefix="gsk_",
        key_pattern=r"^gsk_[A-Za-z0-9]{52}$",
    ),
    "together": ProviderSpec(
        id="together",
        name="Together AI",
        description="Multiple open-source models",
        wire=WIRE_OPENAI,
        base_url="https://api.together.xyz/v1",
        auth=AUTH_BEARER,
        default_model="meta-llama/Llama-3.3-70B-Instruct-Turbo",
        models=(
            "meta-llama/Llama-3.3-70B-Instruct-Turbo",
            "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
            "mistralai/Mixtral-8x7B-Instruct-v0.1",
        ),
        docs_url="https://api.together.xyz/settings/api-keys",
        key_pattern=r"^[a-f0-9]{64}$",
    ),
}


def is_supported_provider(provider: Optional[str]) -> bool:
    """Check if provider is in the catalog."""
    return bool(provider) and provider in PROVIDERS


def get_supported_providers() -> List[str]:
    return list(PROVIDERS.keys())


def get_provider(provider: str) -> ProviderSpec:
    """
    Get the catalog entry for a provider.

    Raises:
        AIProviderError: INVALID_REQUEST for providers not in the catalog
    """
    spec = PROVIDERS.get(provider)
    if spec is None:
        raise AIProviderError(
            "INVALID_REQUEST",
            f"Unsupported provider: {provider}. Supported providers: {', '.join(PROVIDERS)}",
            400,
        )
    return spec


def get_default_model(provider: str) -> str:
    spec = PROVIDERS.get(provider)
    return spec.default_model if spec else ""


def validate_api_key_format(provider: str, api_key: str) -> bool:
    """
    Validate API key format.

    Only checks the shape of the key, not whether the provider accepts it.
    """
    if not api_key:
        return False
    spec = PROVIDERS.get(provider)
    if spec is None or not spec.key_pattern:
        return len(api_key) > 0
    return re.match(spec.key_pattern, api_key) is not None


def build_api_url(spec: ProviderSpec, model: str, stream: bool = False) -> str:
    """Build the full endpoint URL for a provider and model."""
    if spec.wire == WIRE_GOOGLE:
        method = "streamGenerateContent" if stream else "generateContent"
        return f"{spec.base_url}/{model}:{method}"
    if spec.wire == WIRE_OPENAI:
        return f"{spec.base_url}/chat/completions"
    return spec.base_url


def build_headers(spec: ProviderSpec, api_key: str) -> Dict[str, str]:
    """Build request headers, including the provider's auth header."""
    headers = {"Content-Type": "application/json", **spec.extra_headers}
    if spec.auth == AUTH_BEARER:
        headers["Authorization"] = f"Bearer {api_key}"
    elif spec.auth == AUTH_X_API_KEY:
        headers["x-api-key"] = api_key
    # AUTH_QUERY_KEY: key travels as the `key` query parameter
    return headers


def build_query_params(spec: ProviderSpec, api_key: str, stream: bool = False) -> Optional[Dict[str, str]]:
    params = {}
    if spec.auth == AUTH_QUERY_KEY:
        params["key"] = api_key
    if stream and spec.wire == WIRE_GOOGLE:
        # server-sent events instead of one JSON array
        params["alt"] = "sse"
    return params or None


def provider_catalog() -> Dict[str, Dict]:
    """Public description of supported providers for the admin UI."""
    return {
        spec.id: {
            "name": spec.name,
            "description": spec.description,
            "defaultModel": spec.default_model,
            "models": list(spec.models),
            "keyPrefix": spec.key_prefix,
            "docsUrl": spec.docs_url,
            "requiresProxy": spec.requires_proxy,
        }
        for spec in PROVIDERS.values()
    }
