from datetime import datetime, timedelta, timezone

from chatmind.models import Message, Participant
from chatmind.presence import (
    annotate_presence,
    is_online,
    last_activity_by_user,
    online_count,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(message_id: str, user_id: str, minutes_ago: float, **kwargs) -> Message:
    return Message(
        id=message_id,
        room_id="r",
        user_id=user_id,
        content="x",
        timestamp=NOW - timedelta(minutes=minutes_ago),
        **kwargs,
    )


def test_presence_window_boundary():
    assert is_online(NOW - timedelta(minutes=10, seconds=1), NOW) is False
    assert is_online(NOW - timedelta(minutes=9), NOW) is True
    assert is_online(NOW - timedelta(minutes=10), NOW) is False
    assert is_online(None, NOW) is False


def test_last_activity_ignores_ai_and_provisional_messages():
    messages = [
        _message("m1", "alice", 30),
        _message("m2", "alice", 1, is_ai=True),
        _message("temp_1", "alice", 0),
        _message("m3", "bob", 5),
    ]
    activity = last_activity_by_user(messages)
    assert activity == {
        "alice": NOW - timedelta(minutes=30),
        "bob": NOW - timedelta(minutes=5),
    }


def test_annotate_presence_sorts_online_first_then_recency():
    joined_at = NOW - timedelta(hours=2)
    participants = [
        Participant(id="carol", name="Carol", last_seen=joined_at),
        Participant(id="alice", name="Alice", last_seen=joined_at),
        Participant(id="bob", name="Bob", last_seen=joined_at),
    ]
    messages = [_message("m1", "alice", 30), _message("m2", "bob", 2)]

    annotated = annotate_presence(participants, messages, NOW)

    assert [p.id for p in annotated] == ["bob", "alice", "carol"]
    assert [p.is_online for p in annotated] == [True, False, False]
    assert annotated[2].last_seen == joined_at
    assert online_count(annotated) == 1


def test_custom_window():
    assert is_online(NOW - timedelta(seconds=90), NOW, window_seconds=60) is False
