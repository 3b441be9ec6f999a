import os

LOCAL_CHAT_ROOT = ".chatmind"
AI_CONFIG_FILE = os.path.join(LOCAL_CHAT_ROOT, "ai_config.json")
SYNC_CONFIG_FILE = os.path.join(LOCAL_CHAT_ROOT, "sync_config.json")
AI_API_KEY_ENV = "CHATMIND_AI_API_KEY"

AI_USER_ID = "00000000-0000-0000-0000-000000000000"
AI_USER_NAME = "AI Assistant"
AI_USER_COLOR = "#8B5CF6"
AI_MENTION_TOKEN = "@ai"
AI_OPTION_ID = "ai"

PROVISIONAL_ID_PREFIX = "temp_"
ROOM_ID_PREFIX = "room_"

UNKNOWN_USER_NAME = "Unknown User"
UNKNOWN_USER_COLOR = "#6B7280"
DEFAULT_PARTICIPANT_COLOR = "#6B7280"

MESSAGE_LOAD_LIMIT = 100
PRESENCE_REFRESH_INTERVAL_SECONDS = 60.0
PRESENCE_WINDOW_SECONDS = 10 * 60
AI_PENDING_TIMEOUT_SECONDS = 25.0
AI_REPLY_DELAY_SECONDS = 1.5
AI_CONTEXT_WINDOW = 10
AI_REQUEST_TIMEOUT_SECONDS = 20.0
AI_PROBE_TIMEOUT_SECONDS = 8.0
AI_PROVIDER_HISTORY_LIMIT = 5
AI_MAX_TOKENS = 300
AI_PROBE_MAX_TOKENS = 50
AI_TEMPERATURE = 0.7
REPLY_EXCERPT_LIMIT = 50

QUESTION_KEYWORDS = (
    "how",
    "what",
    "why",
    "when",
    "where",
    "can you",
    "could you",
    "help",
)

AI_SYSTEM_PROMPT_TEMPLATE = (
    "You are an AI assistant in ChatMind, a collaborative chat platform. "
    'You\'re participating in a room called "{room}".\n\n'
    "INSTRUCTIONS:\n"
    "- Be helpful, collaborative, and concise (keep responses under 200 words)\n"
    '- Stay focused on topics related to this room: "{room}"\n'
    "- Use a friendly, professional tone\n"
    "- Help facilitate productive discussions and decision-making\n"
    "- When users mention @AI, respond directly to their request\n"
    "- If asked about unrelated topics, politely redirect them back to the "
    "room's purpose"
)
AI_PROBE_PROMPT = "Hello, can you respond with 'AI service is working'?"

AI_EMPTY_RESPONSE_TEXT = (
    "I apologize, but I couldn't generate a response at this time."
)
AI_TIMEOUT_FALLBACK_TEXT = (
    "I'm taking a bit longer than usual to respond. Let me try to help you "
    "quickly - could you please rephrase your question?"
)
AI_NETWORK_FALLBACK_TEXT = (
    "I'm having network connectivity issues right now. Please try mentioning "
    "@AI again in a moment!"
)
AI_AUTH_FALLBACK_TEXT = (
    "I'm having authentication issues with my AI service. Please try again "
    "later or contact support if this persists."
)
AI_GENERIC_FALLBACK_TEXT = (
    "I'm having trouble connecting to my AI service right now. Please try "
    "mentioning @AI again in a moment, or feel free to continue your "
    "conversation - I'll be back soon!"
)
AI_UNAVAILABLE_TEXT = (
    "I'm having trouble connecting to my AI service right now. Please try "
    "mentioning @AI again in a moment!"
)
AI_PERSIST_FALLBACK_TEXT = (
    "I'm having trouble responding right now. Please try mentioning @AI again!"
)
AI_ERROR_FALLBACK_TEXT = (
    "I'm having trouble connecting right now. Please try mentioning @AI again "
    "in a moment!"
)

PROFILE_COLORS = [
    "#6E56CF",
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#98D8C8",
    "#FF8A80",
    "#82B1FF",
    "#B39DDB",
    "#81C784",
]

DEFAULT_AI_PROVIDERS = {
    "openai": {
        "api_key": "",
        "model": "klusterai/Meta-Llama-3.1-8B-Instruct-Turbo",
        "base_url": "https://api.kluster.ai/v1",
    },
    "gemini": {
        "api_key": "",
        "model": "gemini-2.5-flash",
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
    },
}
