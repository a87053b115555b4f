"""
Administration of provider settings (credentials, model, per-user ceiling).
"""
import logging
from typing import Any, Dict, Optional

from lunaxcode.core.config import DEFAULT_MAX_GENERATIONS_PER_USER
from lunaxcode.core.errors import APIError
from lunaxcode.core.logging_config import mask_api_key
from lunaxcode.llm.providers import PROVIDERS, get_supported_providers, provider_catalog
from lunaxcode.services.storage import SettingRecord, Storage

logger = logging.getLogger(__name__)

MIN_GENERATIONS_PER_USER = 1


def serialize_setting(setting: SettingRecord) -> Dict[str, Any]:
    """Public view of a setting. The API key is always masked."""
    spec = PROVIDERS.get(setting.provider)
    return {
        "id": setting.id,
        "provider": setting.provider,
        "providerName": spec.name if spec else setting.provider,
        "apiKey": mask_api_key(setting.api_key),
        "model": setting.model,
        "maxGenerationsPerUser": setting.max_generations_per_user,
        "isActive": setting.is_active,
        "createdBy": setting.created_by,
        "createdAt": setting.created_at.isoformat() if setting.created_at else None,
        "updatedAt": setting.updated_at.isoformat() if setting.updated_at else None,
    }


def list_ai_settings(storage: Storage) -> Dict[str, Any]:
    return {
        "settings": [serialize_setting(s) for s in storage.list_settings()],
        "supportedProviders": provider_catalog(),
    }


def save_ai_setting(
    storage: Storage,
    provider: Optional[str],
    api_key: Optional[str],
    model: Optional[str] = None,
    max_generations_per_user: Optional[int] = None,
    is_active: Optional[bool] = None,
    created_by: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create or replace the setting for a provider.

    Raises:
        APIError: 400 on missing fields, unsupported provider, wrong key
            prefix or a model the provider does not offer
    """
    if not provider or not api_key:
        raise APIError(400, "INVALID_REQUEST", "Provider and API key are required")

    spec = PROVIDERS.get(provider)
    if spec is None:
        raise APIError(400, "INVALID_PROVIDER", "Invalid provider", supportedProviders=get_supported_providers())

    if spec.key_prefix and not api_key.startswith(spec.key_prefix):
        raise APIError(
            400,
            "INVALID_API_KEY",
            f'Invalid API key format for {spec.name}. Expected key to start with "{spec.key_prefix}"',
        )

    if model and model not in spec.models:
        raise APIError(400, "INVALID_MODEL", f"Invalid model for {spec.name}", validModels=list(spec.models))

    existed = storage.get_setting(provider) is not None
    limit = max_generations_per_user if max_generations_per_user is not None else DEFAULT_MAX_GENERATIONS_PER_USER
    saved = storage.save_setting(SettingRecord(
        provider=provider,
        api_key=api_key,
        model=model or spec.default_model,
        max_generations_per_user=max(MIN_GENERATIONS_PER_USER, limit),
        is_active=True if is_active is None else is_active,
        created_by=created_by,
    ))

    action = "updated" if existed else "created"
    logger.info(f"AI setting {action}: provider={provider} model={saved.model} active={saved.is_active}")
    return {
        "success": True,
        "message": f"{spec.name} settings {action}",
        "setting": serialize_setting(saved),
    }


def update_ai_setting(
    storage: Storage,
    provider: Optional[str],
    is_active: Optional[bool] = None,
    max_generations_per_user: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Toggle a provider or change its ceiling (floored at 1).

    Raises:
        APIError: 400 without a provider, 404 when the provider has no setting
    """
    if not provider:
        raise APIError(400, "INVALID_REQUEST", "Provider is required")

    limit = None
    if max_generations_per_user is not None:
        limit = max(MIN_GENERATIONS_PER_USER, max_generations_per_user)

    updated = storage.update_setting(provider, is_active=is_active, max_generations_per_user=limit)
    if updated is None:
        raise APIError(404, "NOT_FOUND", f"No settings found for {provider}")

    logger.info(f"AI setting patched: provider={provider} active={updated.is_active} limit={updated.max_generations_per_user}")
    return {
        "success": True,
        "message": f"{provider} settings updated",
        "setting": serialize_setting(updated),
    }


def delete_ai_setting(storage: Storage, provider: Optional[str]) -> Dict[str, Any]:
    if not provider:
        raise APIError(400, "INVALID_REQUEST", "Provider parameter required")
    if not storage.delete_setting(provider):
        raise APIError(404, "NOT_FOUND", f"No settings found for {provider}")
    logger.info(f"AI setting removed: provider={provider}")
    return {"success": True, "message": f"{provider} settings removed"}

