from chatmind.providers.base import ProviderClient
from chatmind.providers.gemini import GeminiClient
from chatmind.providers.openai import OpenAIClient
from chatmind.providers.transport import post_json_request

__all__ = ["ProviderClient", "GeminiClient", "OpenAIClient", "post_json_request"]
