"""
Usage gate for AI generation.

Resolves the administrator's active provider setting, decides whether a user
may generate, and appends every attempt to the usage log. Counts are re-read
from storage on every check; nothing is cached between requests.

Two concurrent requests from the same user can both pass the check before
either is logged, so the ceiling is a soft cap.
"""
import logging
from dataclasses import dataclass, asdict
from math import ceil
from typing import Any, Dict, List, Optional

from lunaxcode.core.config import DEFAULT_MAX_GENERATIONS_PER_USER
from lunaxcode.llm.errors import sanitize_error_message
from lunaxcode.services.storage import Storage, UsageRecord

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "AI generation is not configured. Please contact the administrator."
ADMIN_MESSAGE = "Admin users have unlimited AI generations."
LIMIT_REACHED_MESSAGE = "You have reached your AI generation limit. Please contact the administrator for more."


@dataclass
class AIConfig:
    """Active provider setting with the default ceiling applied."""
    provider: str
    model: str
    api_key: str
    max_generations_per_user: int


@dataclass
class UsageCheckResult:
    allowed: bool
    used: int
    limit: int
    remaining: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GenerationAdmission:
    allowed: bool
    config: Optional[AIConfig]
    usage: UsageCheckResult
    is_admin: bool


def get_active_ai_config(storage: Storage) -> Optional[AIConfig]:
    """Return the active provider setting, or None when nothing is configured."""
    setting = storage.get_active_setting()
    if setting is None:
        return None
    limit = setting.max_generations_per_user
    return AIConfig(
        provider=setting.provider,
        model=setting.model,
        api_key=setting.api_key,
        max_generations_per_user=limit if limit is not None else DEFAULT_MAX_GENERATIONS_PER_USER,
    )


def is_user_admin(storage: Storage, user_id: str) -> bool:
    return storage.get_user_role(user_id) == "admin"


def _remaining_message(remaining: int) -> str:
    return f"You have {remaining} AI generation{'' if remaining == 1 else 's'} remaining."


def check_user_usage_limit(storage: Storage, user_id: str, config: Optional[AIConfig] = None) -> UsageCheckResult:
    """
    Compare a user's successful generations with the active ceiling.

    Only `success` entries count; failed and rate-limited attempts are free.
    """
    if config is None:
        config = get_active_ai_config(storage)
    if config is None:
        return UsageCheckResult(allowed=False, used=0, limit=0, remaining=0, message=NOT_CONFIGURED_MESSAGE)

    limit = config.max_generations_per_user
    used = storage.count_usage(user_id=user_id, status="success")
    remaining = max(0, limit - used)
    allowed = used < limit

    return UsageCheckResult(
        allowed=allowed,
        used=used,
        limit=limit,
        remaining=remaining,
        message=_remaining_message(remaining) if allowed else LIMIT_REACHED_MESSAGE,
    )


def can_user_generate(storage: Storage, user_id: str, generation_type: Optional[str] = None) -> GenerationAdmission:
    """
    Decide whether user_id may run a generation now.

    Args:
        storage: Storage backend
        user_id: Caller's user id (or email when no user row exists)
        generation_type: Reserved for per-type ceilings; not used for counting

    Returns:
        GenerationAdmission. config is None when no provider is active, in
        which case nobody is admitted, admins included.
    """
    config = get_active_ai_config(storage)
    admin = is_user_admin(storage, user_id)
    usage = check_user_usage_limit(storage, user_id, config)

    if config is None:
        return GenerationAdmission(allowed=False, config=None, usage=usage, is_admin=admin)

    if admin:
        usage.allowed = True
        usage.message = ADMIN_MESSAGE
        return GenerationAdmission(allowed=True, config=config, usage=usage, is_admin=True)

    return GenerationAdmission(allowed=usage.allowed, config=config, usage=usage, is_admin=False)


def log_ai_usage(
    storage: Storage,
    user_id: str,
    generation_type: str,
    provider: str,
    model: str,
    status: str,
    project_id: Optional[int] = None,
    prompt_tokens: Optional[int] = None,
    completion_tokens: Optional[int] = None,
    total_tokens: Optional[int] = None,
    error_message: Optional[str] = None,
) -> Optional[UsageRecord]:
    """
    Append one attempt to the usage log.

    A storage failure is logged and swallowed so the generation response
    still reaches the user.
    """
    entry = UsageRecord(
        user_id=user_id,
        project_id=project_id,
        generation_type=generation_type,
        provider=provider,
        model=model,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        status=status,
        error_message=sanitize_error_message(error_message) if error_message else None,
    )
    try:
        return storage.append_usage(entry)
    except Exception as e:
        logger.error(f"Error logging AI usage for user {user_id}: {e}", exc_info=True)
        return None


def get_user_usage_history(storage: Storage, user_id: str, limit: int = 10) -> List[UsageRecord]:
    """Most recent attempts by one user, newest first."""
    return storage.list_usage(user_id=user_id, limit=limit)


# ============================================
# Admin statistics
# ============================================

def _effective_limit(storage: Storage) -> int:
    config = get_active_ai_config(storage)
    return config.max_generations_per_user if config else DEFAULT_MAX_GENERATIONS_PER_USER


def serialize_usage(entry: UsageRecord) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "projectId": entry.project_id,
        "generationType": entry.generation_type,
        "provider": entry.provider,
        "model": entry.model,
        "promptTokens": entry.prompt_tokens,
        "completionTokens": entry.completion_tokens,
        "totalTokens": entry.total_tokens,
        "status": entry.status,
        "errorMessage": entry.error_message,
        "createdAt": entry.created_at.isoformat() if entry.created_at else None,
    }


def get_usage_summary(storage: Storage, recent: int = 20) -> Dict[str, Any]:
    """Totals, per-type success counts and the most recent attempts."""
    total = storage.count_usage()
    successful = storage.count_usage(status="success")
    return {
        "summary": {
            "totalGenerations": total,
            "successfulGenerations": successful,
            "failedGenerations": total - successful,
            "uniqueUsers": storage.count_distinct_users(),
            "maxGenerationsPerUser": _effective_limit(storage),
        },
        "usageByType": [
            {"type": generation_type, "count": count}
            for generation_type, count in storage.count_usage_by_type("success").items()
        ],
        "recentLogs": [serialize_usage(e) for e in storage.list_usage(limit=recent)],
    }


def get_user_usage_breakdown(storage: Storage) -> Dict[str, Any]:
    """Successful generations per user, with remaining quota."""
    limit = _effective_limit(storage)
    counts = storage.count_success_by_user()
    users = storage.get_users(counts.keys())

    rows = []
    for user_id, total in counts.items():
        user = users.get(user_id)
        role = user.role if user else "client"
        admin = role == "admin"
        rows.append({
            "userId": user_id,
            "name": user.name if user else "Unknown",
            "email": user.email if user else "Unknown",
            "role": role,
            "totalGenerations": total,
            "remaining": "unlimited" if admin else max(0, limit - total),
            "limit": "unlimited" if admin else limit,
        })
    return {"users": rows, "maxGenerationsPerUser": limit}


def get_usage_logs(storage: Storage, page: int = 1, limit: int = 50) -> Dict[str, Any]:
    """One page of the usage log, newest first."""
    page = max(1, page)
    limit = max(1, limit)
    total = storage.count_usage()
    logs = storage.list_usage(limit=limit, offset=(page - 1) * limit)
    return {
        "logs": [serialize_usage(e) for e in logs],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": ceil(total / limit),
        },
    }
