"""
AI endpoints: quota-gated generation, same-origin proxy (plain and streaming)
and key validation.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse

from lunaxcode.core.auth_dependency import CurrentUser, get_current_user_obj
from lunaxcode.core.dependencies import (
    get_direct_caller,
    get_provider_router,
    get_rate_limiter,
    get_storage,
)
from lunaxcode.core.errors import APIError
from lunaxcode.core.logging_config import sanitize_log_data
from lunaxcode.core.rate_limit import SlidingWindowRateLimiter
from lunaxcode.llm.callers import DirectCaller
from lunaxcode.llm.errors import AIProviderError, sanitize_error_message
from lunaxcode.llm.providers import get_default_model, is_supported_provider, validate_api_key_format
from lunaxcode.llm.router import ProviderRouter
from lunaxcode.llm.validation import validate_proxy_request
from lunaxcode.schemas.ai import (
    AIProxyRequest,
    ChatMessage,
    GENERATION_TYPES,
    GenerateRequest,
    ValidateKeyRequest,
    ValidateKeyResponse,
)
from lunaxcode.services.storage import Storage
from lunaxcode.services.usage_service import can_user_generate, log_ai_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])

NOT_CONFIGURED_ERROR = "AI generation is not configured. Please contact the administrator to set up AI providers."


def _admin_usage(used: int) -> dict:
    return {"used": used, "limit": "unlimited", "remaining": "unlimited"}


# ============================================
# Generation
# ============================================

@router.post("/generate")
def generate(
    payload: GenerateRequest,
    user: CurrentUser = Depends(get_current_user_obj),
    storage: Storage = Depends(get_storage),
    provider_router: ProviderRouter = Depends(get_provider_router),
):
    """
    Run one generation with the administrator's active provider.

    Order is fixed: admission check, provider call, usage log. Every attempt
    that reaches the provider is logged, success or not.
    """
    if payload.type not in GENERATION_TYPES:
        raise APIError(400, "INVALID_TYPE", "Invalid generation type", validTypes=GENERATION_TYPES)

    admission = can_user_generate(storage, user.id, payload.type)
    config = admission.config
    usage = admission.usage

    if config is None:
        raise APIError(503, "NOT_CONFIGURED", NOT_CONFIGURED_ERROR)

    if not admission.allowed:
        logger.info(f"Generation limit reached for user {user.id} ({usage.used}/{usage.limit})")
        raise APIError(
            429,
            "LIMIT_REACHED",
            usage.message,
            usage={"used": usage.used, "limit": usage.limit, "remaining": usage.remaining},
        )

    try:
        generated = provider_router.run(payload.type, payload.data, config)
    except Exception as e:
        message = sanitize_error_message(str(e)) or "AI generation failed"
        rate_limited = isinstance(e, AIProviderError) and e.code == "RATE_LIMIT_EXCEEDED"
        logger.error(f"AI generation failed for user {user.id} ({payload.type}, {config.provider}): {message}",
                     exc_info=not isinstance(e, (AIProviderError, ValueError)))
        log_ai_usage(
            storage,
            user_id=user.id,
            project_id=payload.project_id,
            generation_type=payload.type,
            provider=config.provider,
            model=config.model,
            status="rate_limited" if rate_limited else "error",
            error_message=message,
        )
        raise APIError(500, "GENERATION_FAILED", message)

    log_ai_usage(
        storage,
        user_id=user.id,
        project_id=payload.project_id,
        generation_type=payload.type,
        provider=config.provider,
        model=config.model,
        status="success",
        prompt_tokens=generated.usage.prompt_tokens,
        completion_tokens=generated.usage.completion_tokens,
        total_tokens=generated.usage.total_tokens,
    )
    logger.info(f"AI generation succeeded for user {user.id} ({payload.type}, {config.provider})")

    if admission.is_admin:
        reported = _admin_usage(usage.used + 1)
    else:
        reported = {
            "used": usage.used + 1,
            "limit": usage.limit,
            "remaining": max(0, usage.remaining - 1),
        }

    return {
        "success": True,
        "result": generated.result,
        "usage": reported,
        "isAdmin": admission.is_admin,
    }


@router.get("/generate")
def generation_status(
    user: CurrentUser = Depends(get_current_user_obj),
    storage: Storage = Depends(get_storage),
):
    """Report whether AI is configured and how much quota the caller has left."""
    admission = can_user_generate(storage, user.id)
    usage = admission.usage

    if admission.is_admin:
        reported = {**_admin_usage(usage.used), "allowed": True}
    else:
        reported = usage.to_dict()

    return {
        "configured": admission.config is not None,
        "isAdmin": admission.is_admin,
        "usage": reported,
    }


# ============================================
# Proxy
# ============================================

@router.post("/proxy")
def proxy(
    request: Request,
    body: Any = Body(None),
    caller: DirectCaller = Depends(get_direct_caller),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    """
    Forward a universal chat request to its provider from the server.

    Used for providers that cannot be called from the browser.
    """
    started = time.perf_counter()
    limiter.enforce(request)
    proxy_request = validate_proxy_request(body)

    logger.info(f"Proxying request to {proxy_request.provider} (model={proxy_request.model})")
    options = {k: v for k, v in body.items() if k != "messages"}
    logger.debug(f"Proxy options: {sanitize_log_data(options)}")
    response = caller.call(proxy_request)

    return {
        **response.model_dump(by_alias=True),
        "metadata": {
            "duration": int((time.perf_counter() - started) * 1000),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/stream")
def stream(
    request: Request,
    body: Any = Body(None),
    caller: DirectCaller = Depends(get_direct_caller),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    """
    Same checks as /ai/proxy, but relays the provider's reply as server-sent events.

    Errors before the upstream reply starts use the JSON error body.
    """
    limiter.enforce(request)
    proxy_request = validate_proxy_request(body)

    logger.info(f"Streaming request to {proxy_request.provider} "
                f"(model={proxy_request.model}, messages={len(proxy_request.messages)})")
    events = caller.stream(proxy_request)

    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ============================================
# Key validation
# ============================================

@router.post("/validate", response_model=ValidateKeyResponse, response_model_exclude_none=True)
def validate_key(
    request: Request,
    payload: ValidateKeyRequest,
    caller: DirectCaller = Depends(get_direct_caller),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    """Check a key's format, then confirm it with a minimal provider call."""
    limiter.enforce(request)

    if not payload.provider or not payload.api_key:
        raise AIProviderError("INVALID_REQUEST", "Provider and apiKey are required", 400)
    if not is_supported_provider(payload.provider):
        raise AIProviderError("INVALID_REQUEST", f"Unsupported provider: {payload.provider}", 400)

    provider = payload.provider
    if not validate_api_key_format(provider, payload.api_key):
        return ValidateKeyResponse(valid=False, provider=provider, error="Invalid API key format")

    try:
        caller.call(AIProxyRequest(
            provider=provider,
            model=get_default_model(provider),
            messages=[ChatMessage(role="user", content="Hello")],
            api_key=payload.api_key,
            max_tokens=10,
        ))
    except AIProviderError as e:
        logger.info(f"Key validation failed for {provider}: {e.code}")
        if e.code == "INVALID_API_KEY":
            message = "Invalid API key"
        elif e.code == "RATE_LIMIT_EXCEEDED":
            message = "Rate limit exceeded - key appears valid but is rate limited"
        else:
            message = e.message
        return ValidateKeyResponse(valid=False, provider=provider, error=message)

    return ValidateKeyResponse(valid=True, provider=provider)
