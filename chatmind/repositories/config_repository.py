from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from chatmind.constants import (
    AI_API_KEY_ENV,
    AI_CONFIG_FILE,
    DEFAULT_AI_PROVIDERS,
    LOCAL_CHAT_ROOT,
    SYNC_CONFIG_FILE,
)
from chatmind.models import SyncSettings

logger = logging.getLogger(__name__)


def default_ai_config() -> dict[str, Any]:
    return {
        "default_provider": "openai",
        "providers": copy.deepcopy(DEFAULT_AI_PROVIDERS),
    }


class ConfigRepository:
    def __init__(self, root: str = LOCAL_CHAT_ROOT):
        self.root = root
        if root == LOCAL_CHAT_ROOT:
            self.ai_config_file = AI_CONFIG_FILE
            self.sync_config_file = SYNC_CONFIG_FILE
        else:
            self.ai_config_file = os.path.join(root, os.path.basename(AI_CONFIG_FILE))
            self.sync_config_file = os.path.join(
                root, os.path.basename(SYNC_CONFIG_FILE)
            )

    def load_ai_config(self, default: dict[str, Any] | None = None) -> dict[str, Any]:
        merged = default if default is not None else default_ai_config()
        loaded = self._read_json(self.ai_config_file, "AI config")
        if loaded is not None:
            providers = loaded.get("providers", {})
            if not isinstance(providers, dict):
                providers = {}
            for provider_name in merged["providers"]:
                existing = providers.get(provider_name, {})
                if isinstance(existing, dict):
                    merged["providers"][provider_name].update(
                        {
                            key: str(value)
                            for key, value in existing.items()
                            if key in ("api_key", "model", "base_url")
                        }
                    )
            default_provider = str(loaded.get("default_provider", "")).strip().lower()
            if default_provider in merged["providers"]:
                merged["default_provider"] = default_provider

        env_key = os.environ.get(AI_API_KEY_ENV, "").strip()
        if env_key:
            merged["providers"][merged["default_provider"]]["api_key"] = env_key
        return merged

    def save_ai_config(self, payload: dict[str, Any]) -> None:
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(self.ai_config_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as exc:
            logger.warning("Failed saving AI config: %s", exc)

    def load_sync_settings(self) -> SyncSettings:
        loaded = self._read_json(self.sync_config_file, "sync config")
        if loaded is None:
            return SyncSettings()
        try:
            return SyncSettings.model_validate(loaded)
        except ValidationError as exc:
            logger.warning(
                "Invalid sync config in %s, using defaults: %s",
                self.sync_config_file,
                exc,
            )
            return SyncSettings()

    def _read_json(self, file_name: str, label: str) -> dict[str, Any] | None:
        path = Path(file_name)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load %s from %s: %s", label, file_name, exc)
            return None
        if not isinstance(loaded, dict):
            logger.warning("Ignoring %s in %s: expected an object", label, file_name)
            return None
        return loaded
