from typing import Any, Protocol


class ProviderClient(Protocol):
    def generate(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict[str, str]],
        post_json_request: Any,
        base_url: str = "",
        max_tokens: int = 300,
        temperature: float = 0.7,
        timeout: float = 20.0,
    ) -> str:
        pass
