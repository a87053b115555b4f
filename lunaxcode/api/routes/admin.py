"""
Admin endpoints: provider settings and AI usage statistics.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query

from lunaxcode.core.auth_dependency import CurrentUser, require_admin
from lunaxcode.core.dependencies import get_storage
from lunaxcode.core.errors import APIError
from lunaxcode.schemas.admin import AISettingPatch, AISettingRequest
from lunaxcode.services import ai_settings_service
from lunaxcode.services.storage import Storage
from lunaxcode.services.usage_service import (
    get_usage_logs,
    get_usage_summary,
    get_user_usage_breakdown,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================
# AI settings
# ============================================

@router.get("/ai-settings")
def list_settings(
    admin: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """List provider settings (keys masked) and the supported providers."""
    return ai_settings_service.list_ai_settings(storage)


@router.post("/ai-settings")
def save_setting(
    payload: AISettingRequest,
    admin: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return ai_settings_service.save_ai_setting(
        storage,
        provider=payload.provider,
        api_key=payload.api_key,
        model=payload.model,
        max_generations_per_user=payload.max_generations_per_user,
        is_active=payload.is_active,
        created_by=admin.id,
    )


@router.patch("/ai-settings")
def patch_setting(
    payload: AISettingPatch,
    admin: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return ai_settings_service.update_ai_setting(
        storage,
        provider=payload.provider,
        is_active=payload.is_active,
        max_generations_per_user=payload.max_generations_per_user,
    )


@router.delete("/ai-settings")
def delete_setting(
    provider: Optional[str] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return ai_settings_service.delete_ai_setting(storage, provider)


# ============================================
# Usage statistics
# ============================================

@router.get("/ai-usage")
def ai_usage(
    view: str = Query("summary"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    admin: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """Usage statistics: `summary`, per-user `users`, or paginated `logs`."""
    if view == "summary":
        return get_usage_summary(storage)
    if view == "users":
        return get_user_usage_breakdown(storage)
    if view == "logs":
        return get_usage_logs(storage, page=page, limit=limit)
    raise APIError(400, "INVALID_VIEW", "Invalid view parameter")
