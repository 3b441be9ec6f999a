"""Detection of an in-progress ``@mention`` at the input cursor.

The detector only looks at text: it finds the active ``@`` trigger, extracts
the query typed after it and filters the mention candidates (the AI entry,
unless muted, followed by the room's participants).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, Field

from chatmind.constants import AI_MENTION_TOKEN, AI_OPTION_ID, AI_USER_NAME
from chatmind.models import Participant

_WHITESPACE_RE = re.compile(r"\s+")


class MentionOption(BaseModel):
    id: str
    name: str
    kind: Literal["user", "ai"]
    color: str | None = None


class MentionMatch(BaseModel):
    start: int
    query: str
    options: list[MentionOption] = Field(default_factory=list)


def contains_ai_mention(content: str) -> bool:
    return AI_MENTION_TOKEN in content.lower()


def find_mention_start(text: str, cursor: int) -> int:
    cursor = max(0, min(cursor, len(text)))
    for index in range(cursor - 1, -1, -1):
        char = text[index]
        if char == "@":
            if index == 0 or text[index - 1].isspace():
                return index
            continue
        if char.isspace():
            return -1
    return -1


def build_mention_options(
    participants: Iterable[Participant], ai_muted: bool
) -> list[MentionOption]:
    options: list[MentionOption] = []
    if not ai_muted:
        options.append(MentionOption(id=AI_OPTION_ID, name=AI_USER_NAME, kind="ai"))
    for participant in participants:
        options.append(
            MentionOption(
                id=participant.id,
                name=participant.name,
                kind="user",
                color=participant.color,
            )
        )
    return options


def filter_mention_options(
    options: list[MentionOption], query: str
) -> list[MentionOption]:
    lowered = query.strip().lower()
    if not lowered:
        return list(options)
    matches: list[MentionOption] = []
    for option in options:
        name = option.name.lower()
        compact = _WHITESPACE_RE.sub("", name)
        if (
            lowered in name
            or lowered in compact
            or name.startswith(lowered)
            or compact.startswith(lowered)
        ):
            matches.append(option)
    return matches


def detect_mention(
    text: str,
    cursor: int,
    participants: Iterable[Participant] = (),
    ai_muted: bool = False,
) -> MentionMatch | None:
    start = find_mention_start(text, cursor)
    if start == -1:
        return None
    cursor = max(0, min(cursor, len(text)))
    query = text[start + 1 : cursor]
    if any(char.isspace() for char in query):
        return None
    options = filter_mention_options(
        build_mention_options(participants, ai_muted), query
    )
    return MentionMatch(start=start, query=query, options=options)


def mention_text_for(option: MentionOption) -> str:
    if option.kind == "ai":
        return "@AI "
    return f"@{_WHITESPACE_RE.sub('', option.name.lower())} "


def select_mention(
    text: str, cursor: int, match: MentionMatch, option: MentionOption
) -> tuple[str, int]:
    """Replace the active ``@query`` with the chosen option.

    Returns the new text and the cursor position just after the inserted
    mention.
    """
    cursor = max(0, min(cursor, len(text)))
    inserted = mention_text_for(option)
    new_text = text[: match.start] + inserted + text[cursor:]
    return new_text, match.start + len(inserted)
