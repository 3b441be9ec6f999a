"""Reply-target selection and AI context building for an AI turn.

``find_reply_target`` scans the whole room history while the model only
sees the last ``AI_CONTEXT_WINDOW`` messages, so the quoted target can be a
message the model never received. Callers rely on that behavior as is.
"""

from __future__ import annotations

from collections.abc import Sequence

from chatmind.constants import AI_CONTEXT_WINDOW, QUESTION_KEYWORDS, REPLY_EXCERPT_LIMIT
from chatmind.mentions import contains_ai_mention
from chatmind.models import HistoryTurn, Message, ReplyContext


def looks_like_question(content: str) -> bool:
    if "?" in content:
        return True
    lowered = content.lower()
    return any(keyword in lowered for keyword in QUESTION_KEYWORDS)


def find_reply_target(
    trigger_content: str, history: Sequence[Message]
) -> Message | None:
    """Pick the earlier message the AI reply should quote.

    ``history`` holds the room messages that precede the triggering message,
    oldest first.
    """
    mentions_ai = contains_ai_mention(trigger_content)
    for message in reversed(history):
        if message.is_ai:
            continue
        if mentions_ai:
            return message
        if looks_like_question(message.content):
            return message

    for message in reversed(history):
        if not message.is_ai:
            return message
    return None


def truncate_excerpt(text: str, limit: int = REPLY_EXCERPT_LIMIT) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def build_reply_context(message: Message) -> ReplyContext:
    return ReplyContext(
        user_id=message.user_id,
        user_name=message.user_name,
        content=truncate_excerpt(message.content),
    )


def build_history(
    messages: Sequence[Message], window: int = AI_CONTEXT_WINDOW
) -> list[HistoryTurn]:
    durable = [message for message in messages if not message.is_provisional]
    return [
        HistoryTurn(
            role="assistant" if message.is_ai else "user",
            content=f"{message.user_name}: {message.content}",
        )
        for message in durable[-window:]
    ]
