from typing import Any

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def to_gemini_contents(
    messages: list[dict[str, str]],
) -> tuple[str, list[dict[str, Any]]]:
    system_parts: list[str] = []
    contents: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role", "user")
        text = message.get("content", "")
        if role == "system":
            system_parts.append(text)
            continue
        contents.append(
            {
                "role": "model" if role == "assistant" else "user",
                "parts": [{"text": text}],
            }
        )
    return "\n\n".join(system_parts), contents


class GeminiClient:
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
        root = (base_url or DEFAULT_BASE_URL).rstrip("/")
        url = f"{root}/models/{model}:generateContent"
        system_text, contents = to_gemini_contents(messages)
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
            },
        }
        if system_text:
            payload["systemInstruction"] = {"parts": [{"text": system_text}]}
        data = post_json_request(url, {"x-goog-api-key": api_key}, payload, timeout)
        candidates = data.get("candidates", [])
        if not isinstance(candidates, list) or not candidates:
            raise RuntimeError("Gemini returned no candidates.")
        first = candidates[0]
        if not isinstance(first, dict):
            raise RuntimeError("Gemini response format was invalid.")
        content = first.get("content", {})
        if not isinstance(content, dict):
            raise RuntimeError("Gemini response content missing.")
        parts = content.get("parts", [])
        if not isinstance(parts, list):
            raise RuntimeError("Gemini response parts missing.")
        for part in parts:
            if isinstance(part, dict):
                text = str(part.get("text", "")).strip()
                if text:
                    return text
        return ""
