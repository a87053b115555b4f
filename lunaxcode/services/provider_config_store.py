"""
File-backed store for client-side provider configuration.

The document is versioned JSON. Data in the old single-provider layout is
converted once by migrate_legacy_config (see scripts/migrate_provider_config.py);
load() never guesses at legacy keys.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from lunaxcode.core.logging_config import mask_api_key
from lunaxcode.llm.providers import get_provider
from lunaxcode.schemas.provider_config import (
    CONFIG_VERSION,
    ClientProviderConfig,
    ProviderConfigDocument,
)

logger = logging.getLogger(__name__)

LEGACY_KEYS = ("ai_provider", "ai_api_key", "ai_model")


class ProviderConfigStore:
    """Reads and writes a ProviderConfigDocument at a fixed path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> ProviderConfigDocument:
        """
        Load the document, or an empty one when the file does not exist yet.

        Raises:
            ValueError: file is not valid JSON or has an unsupported version
        """
        if not self.path.exists():
            return ProviderConfigDocument()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            document = ProviderConfigDocument.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Invalid provider configuration in {self.path}: {e}")
        if document.version != CONFIG_VERSION:
            raise ValueError(
                f"Unsupported provider configuration version {document.version} in {self.path}"
            )
        return document

    def save(self, document: ProviderConfigDocument) -> ProviderConfigDocument:
        document.last_updated = datetime.now(timezone.utc).isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(document.model_dump(by_alias=True), indent=2),
            encoding="utf-8",
        )
        return document

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Cleared provider configuration at {self.path}")

    def update_provider(
        self,
        provider: str,
        api_key: str,
        model: Optional[str] = None,
        test_status: Optional[str] = None,
        test_error: Optional[str] = None,
    ) -> ProviderConfigDocument:
        """Add or replace a provider. The first configured provider becomes the default."""
        spec = get_provider(provider)
        document = self.load()
        document.providers[provider] = ClientProviderConfig(
            api_key=api_key,
            model=model or spec.default_model,
            last_tested=datetime.now(timezone.utc).isoformat() if test_status else None,
            test_status=test_status,
            test_error=test_error,
        )
        if document.default_provider is None:
            document.default_provider = provider
        return self.save(document)

    def remove_provider(self, provider: str) -> ProviderConfigDocument:
        """Remove a provider, re-picking the default when it was the default."""
        document = self.load()
        document.providers.pop(provider, None)
        if document.default_provider == provider:
            document.default_provider = next(iter(document.providers), None)
        return self.save(document)

    def set_default_provider(self, provider: str) -> ProviderConfigDocument:
        """
        Raises:
            ValueError: provider is not configured
        """
        document = self.load()
        if provider not in document.providers:
            raise ValueError(f"Provider {provider} is not configured")
        document.default_provider = provider
        return self.save(document)

    def configured_providers(self) -> List[str]:
        return [pid for pid, cfg in self.load().providers.items() if cfg.api_key]

    def get_default_provider_config(self) -> Optional[Tuple[str, ClientProviderConfig]]:
        document = self.load()
        if not document.default_provider:
            return None
        config = document.providers.get(document.default_provider)
        return (document.default_provider, config) if config else None

    def export(self) -> str:
        """JSON backup with every API key masked."""
        data = self.load().model_dump(by_alias=True)
        for provider in data["providers"].values():
            provider["apiKey"] = mask_api_key(provider["apiKey"])
        return json.dumps(data, indent=2)


def has_legacy_config(legacy: Dict[str, Any]) -> bool:
    return any(legacy.get(key) is not None for key in LEGACY_KEYS)


def migrate_legacy_config(store: ProviderConfigStore, legacy: Dict[str, Any]) -> ProviderConfigDocument:
    """
    Convert single-provider settings (`ai_provider`, `ai_api_key`, `ai_model`)
    into the versioned document and save it.

    Providers already in the document are kept; the legacy provider becomes
    the default.

    Raises:
        ValueError: legacy data is incomplete
    """
    provider = legacy.get("ai_provider")
    api_key = legacy.get("ai_api_key")
    model = legacy.get("ai_model")
    if not (provider and api_key and model):
        raise ValueError("Legacy configuration needs ai_provider, ai_api_key and ai_model")

    document = store.load()
    document.providers[provider] = ClientProviderConfig(api_key=api_key, model=model)
    document.default_provider = provider
    store.save(document)

    logger.info(f"Migrated legacy AI config: {provider} is now configured")
    return document
