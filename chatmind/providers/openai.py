from typing import Any

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """Chat-completions client for any OpenAI-compatible endpoint."""

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
        url = f"{(base_url or DEFAULT_BASE_URL).rstrip('/')}/chat/completions"
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": 1,
            "messages": messages,
        }
        headers = {"Authorization": f"Bearer {api_key}"}
        data = post_json_request(url, headers, payload, timeout)
        choices = data.get("choices", [])
        if not isinstance(choices, list) or not choices:
            raise RuntimeError("OpenAI returned no choices.")
        first = choices[0]
        if not isinstance(first, dict):
            raise RuntimeError("OpenAI response format was invalid.")
        message = first.get("message", {})
        if not isinstance(message, dict):
            raise RuntimeError("OpenAI response message missing.")
        return str(message.get("content") or "").strip()
