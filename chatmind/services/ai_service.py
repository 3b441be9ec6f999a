from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from threading import Event, Thread
from typing import Any

from chatmind.constants import (
    AI_AUTH_FALLBACK_TEXT,
    AI_EMPTY_RESPONSE_TEXT,
    AI_GENERIC_FALLBACK_TEXT,
    AI_MAX_TOKENS,
    AI_NETWORK_FALLBACK_TEXT,
    AI_PROBE_MAX_TOKENS,
    AI_PROBE_PROMPT,
    AI_PROBE_TIMEOUT_SECONDS,
    AI_PROVIDER_HISTORY_LIMIT,
    AI_REQUEST_TIMEOUT_SECONDS,
    AI_SYSTEM_PROMPT_TEMPLATE,
    AI_TEMPERATURE,
    AI_TIMEOUT_FALLBACK_TEXT,
)
from chatmind.errors import AIUnavailableError
from chatmind.models import AIProviderConfig, HistoryTurn
from chatmind.providers import ProviderClient, post_json_request

logger = logging.getLogger(__name__)


class AIResponder:
    """Turns room history into one assistant reply.

    ``generate`` never raises: provider failures, timeouts and missing
    configuration come back as a displayable fallback text.
    """

    def __init__(
        self,
        ai_config: dict[str, Any],
        provider_clients: Mapping[str, ProviderClient],
        post_json: Callable[..., dict[str, Any]] = post_json_request,
        request_timeout_seconds: float = AI_REQUEST_TIMEOUT_SECONDS,
        probe_timeout_seconds: float = AI_PROBE_TIMEOUT_SECONDS,
        save_config: Callable[[dict[str, Any]], None] | None = None,
    ):
        self.ai_config = ai_config
        self.provider_clients = provider_clients
        self.post_json = post_json
        self.request_timeout_seconds = request_timeout_seconds
        self.probe_timeout_seconds = probe_timeout_seconds
        self.save_config = save_config

    def resolve_provider_config(self) -> AIProviderConfig:
        providers = self.ai_config.get("providers", {})
        provider = str(self.ai_config.get("default_provider", "openai")).lower()
        if provider not in self.provider_clients:
            raise AIUnavailableError(f"Unknown AI provider '{provider}'.")
        provider_data = providers.get(provider, {}) if isinstance(providers, dict) else {}
        if not isinstance(provider_data, dict):
            provider_data = {}
        api_key = str(provider_data.get("api_key", "")).strip()
        model = str(provider_data.get("model", "")).strip()
        if not api_key:
            raise AIUnavailableError(f"Provider '{provider}' is missing an API key.")
        if not model:
            raise AIUnavailableError(f"Provider '{provider}' is missing a model.")
        return AIProviderConfig(
            provider=provider,
            api_key=api_key,
            model=model,
            base_url=str(provider_data.get("base_url", "")).strip(),
        )

    def set_provider_value(self, provider: str, key: str, value: str) -> None:
        provider = provider.strip().lower()
        if provider not in self.provider_clients:
            raise AIUnavailableError(f"Unknown AI provider '{provider}'.")
        if key not in ("api_key", "model", "base_url"):
            raise ValueError(f"Unsupported provider setting '{key}'.")
        providers = self.ai_config.setdefault("providers", {})
        provider_cfg = providers.setdefault(provider, {})
        if not isinstance(provider_cfg, dict):
            provider_cfg = {}
            providers[provider] = provider_cfg
        provider_cfg[key] = value.strip()
        self._persist_config()

    def set_default_provider(self, provider: str) -> None:
        provider = provider.strip().lower()
        if provider not in self.provider_clients:
            raise AIUnavailableError(f"Unknown AI provider '{provider}'.")
        self.ai_config["default_provider"] = provider
        self._persist_config()

    def build_messages(
        self, history: Sequence[HistoryTurn], room_label: str
    ) -> list[dict[str, str]]:
        messages = [
            {
                "role": "system",
                "content": AI_SYSTEM_PROMPT_TEMPLATE.format(room=room_label),
            }
        ]
        recent = list(history)[-AI_PROVIDER_HISTORY_LIMIT:]
        messages.extend(turn.to_dict() for turn in recent)
        return messages

    def generate(self, history: Sequence[HistoryTurn], room_label: str) -> str:
        try:
            config = self.resolve_provider_config()
            answer = self._call_provider_interruptible(
                config,
                self.build_messages(history, room_label),
                max_tokens=AI_MAX_TOKENS,
                timeout_seconds=self.request_timeout_seconds,
            )
        except Exception as exc:
            logger.warning("AI generation failed: %s", exc)
            return self.fallback_text_for(exc)
        return answer or AI_EMPTY_RESPONSE_TEXT

    def probe(self) -> bool:
        try:
            config = self.resolve_provider_config()
            answer = self._call_provider_interruptible(
                config,
                [{"role": "user", "content": AI_PROBE_PROMPT}],
                max_tokens=AI_PROBE_MAX_TOKENS,
                timeout_seconds=self.probe_timeout_seconds,
            )
        except Exception as exc:
            logger.warning("AI connectivity probe failed: %s", exc)
            return False
        return bool(answer)

    def check_status(self) -> tuple[bool, str]:
        try:
            config = self.resolve_provider_config()
        except AIUnavailableError as exc:
            return False, str(exc)
        if self.probe():
            return True, f"AI service is working ({config.provider}/{config.model})."
        return False, f"AI service is not responding ({config.provider}/{config.model})."

    def fallback_text_for(self, exc: BaseException) -> str:
        if isinstance(exc, TimeoutError):
            return AI_TIMEOUT_FALLBACK_TEXT
        text = str(exc).lower()
        if "timed out" in text or "timeout" in text:
            return AI_TIMEOUT_FALLBACK_TEXT
        if "http 401" in text or "unauthorized" in text:
            return AI_AUTH_FALLBACK_TEXT
        if "network" in text or "connection" in text:
            return AI_NETWORK_FALLBACK_TEXT
        return AI_GENERIC_FALLBACK_TEXT

    def _persist_config(self) -> None:
        if self.save_config is not None:
            self.save_config(self.ai_config)

    def _call_provider_interruptible(
        self,
        config: AIProviderConfig,
        messages: list[dict[str, str]],
        *,
        max_tokens: int,
        timeout_seconds: float,
    ) -> str:
        client = self.provider_clients[config.provider]
        result: dict[str, Any] = {}
        finished = Event()

        def worker() -> None:
            try:
                result["answer"] = client.generate(
                    api_key=config.api_key,
                    model=config.model,
                    messages=messages,
                    post_json_request=self.post_json,
                    base_url=config.base_url,
                    max_tokens=max_tokens,
                    temperature=AI_TEMPERATURE,
                    timeout=timeout_seconds,
                )
            except Exception as exc:
                result["error"] = exc
            finally:
                finished.set()

        Thread(target=worker, name="ai-provider-call", daemon=True).start()
        if not finished.wait(timeout_seconds):
            raise TimeoutError(
                f"AI provider did not answer within {timeout_seconds:g}s."
            )
        error = result.get("error")
        if error is not None:
            raise error
        return str(result.get("answer") or "").strip()
