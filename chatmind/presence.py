from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from chatmind.constants import PRESENCE_WINDOW_SECONDS
from chatmind.models import Message, Participant, utcnow


def is_online(
    last_activity: datetime | None,
    now: datetime | None = None,
    window_seconds: float = PRESENCE_WINDOW_SECONDS,
) -> bool:
    """Online iff the last non-AI message falls inside the recency window."""
    if last_activity is None:
        return False
    now = now or utcnow()
    return last_activity > now - timedelta(seconds=window_seconds)


def last_activity_by_user(messages: Iterable[Message]) -> dict[str, datetime]:
    latest: dict[str, datetime] = {}
    for message in messages:
        if message.is_ai or message.is_provisional:
            continue
        seen = latest.get(message.user_id)
        if seen is None or message.timestamp > seen:
            latest[message.user_id] = message.timestamp
    return latest


def annotate_presence(
    participants: Iterable[Participant],
    messages: Iterable[Message],
    now: datetime | None = None,
    window_seconds: float = PRESENCE_WINDOW_SECONDS,
) -> list[Participant]:
    """Recompute presence from message history.

    ``last_seen`` becomes the latest message time, or stays at whatever the
    participant already carried (its join time) when it never posted. Online
    participants sort first, then most recently seen.
    """
    now = now or utcnow()
    activity = last_activity_by_user(messages)
    annotated: list[Participant] = []
    for participant in participants:
        last_message_at = activity.get(participant.id)
        annotated.append(
            participant.model_copy(
                update={
                    "is_online": is_online(last_message_at, now, window_seconds),
                    "last_seen": last_message_at or participant.last_seen,
                }
            )
        )
    floor = datetime.min.replace(tzinfo=now.tzinfo)
    annotated.sort(
        key=lambda p: (p.is_online, p.last_seen or floor),
        reverse=True,
    )
    return annotated


def online_count(participants: Iterable[Participant]) -> int:
    return sum(1 for participant in participants if participant.is_online)
