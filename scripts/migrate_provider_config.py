"""
One-time conversion of legacy single-provider AI settings into the
versioned provider configuration document.

The legacy file is a JSON object with `ai_provider`, `ai_api_key` and
`ai_model` keys.

Run: python -m scripts.migrate_provider_config <legacy.json> <config.json>
"""
import json
import logging
import sys

from lunaxcode.services.provider_config_store import (
    ProviderConfigStore,
    has_legacy_config,
    migrate_legacy_config,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def migrate(legacy_path: str, config_path: str) -> bool:
    """Migrate legacy settings; returns False when there is nothing to migrate."""
    with open(legacy_path, encoding="utf-8") as f:
        legacy = json.load(f)

    if not has_legacy_config(legacy):
        logger.info(f"No legacy AI settings found in {legacy_path}")
        return False

    store = ProviderConfigStore(config_path)
    document = migrate_legacy_config(store, legacy)
    logger.info(f"Wrote {config_path} (default provider: {document.default_provider})")
    return True


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python -m scripts.migrate_provider_config <legacy.json> <config.json>")
        sys.exit(2)

    try:
        migrated = migrate(sys.argv[1], sys.argv[2])
    except (OSError, ValueError) as e:
        print(f"\n[ERROR] Migration failed: {e}")
        sys.exit(1)

    if migrated:
        print(f"\n[SUCCESS] Provider configuration written to {sys.argv[2]}")
