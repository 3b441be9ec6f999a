from datetime import datetime, timedelta, timezone

from chatmind.models import Message
from chatmind.reply_target import (
    build_history,
    build_reply_context,
    find_reply_target,
    looks_like_question,
    truncate_excerpt,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _history(*entries: tuple[str, str, bool]) -> list[Message]:
    return [
        Message(
            id=f"m{index}",
            room_id="r",
            user_id=user_id,
            user_name=user_id,
            content=content,
            is_ai=is_ai,
            timestamp=T0 + timedelta(seconds=index),
        )
        for index, (user_id, content, is_ai) in enumerate(entries)
    ]


def test_ai_mention_targets_most_recent_non_ai_message():
    history = _history(
        ("userA", "what's the plan?", False),
        ("userB", "not sure", False),
    )
    target = find_reply_target("@AI can you help?", history)
    assert target is not None
    assert target.user_id == "userB"
    assert target.content == "not sure"


def test_ai_mention_skips_ai_messages():
    history = _history(
        ("userA", "deploy today", False),
        ("ai", "Sure thing", True),
    )
    target = find_reply_target("@ai thoughts?", history)
    assert target is not None and target.id == "m0"


def test_without_mention_prefers_latest_question():
    history = _history(
        ("userA", "How do we ship this", False),
        ("userB", "ok", False),
        ("userC", "fine", False),
    )
    target = find_reply_target("continue", history)
    assert target is not None and target.id == "m0"


def test_question_outside_model_window_is_still_selected():
    entries = [("userA", "why is the build red?", False)]
    entries += [("userB", f"note {i}", False) for i in range(15)]
    history = _history(*entries)
    target = find_reply_target("continue", history)
    assert target is not None and target.id == "m0"
    assert len(build_history(history)) == 10


def test_falls_back_to_latest_non_ai_message():
    history = _history(("userA", "ok", False), ("userB", "fine", False), ("ai", "?", True))
    target = find_reply_target("continue", history)
    assert target is not None and target.id == "m1"


def test_no_target_without_human_messages():
    assert find_reply_target("@ai hi", []) is None
    assert find_reply_target("@ai hi", _history(("ai", "hello?", True))) is None


def test_looks_like_question():
    assert looks_like_question("is it done?")
    assert looks_like_question("Could you check")
    assert not looks_like_question("done")


def test_reply_context_excerpt_is_truncated():
    long_text = "x" * 60
    assert truncate_excerpt(long_text) == "x" * 50 + "..."
    assert truncate_excerpt("short") == "short"
    message = _history(("userA", long_text, False))[0]
    context = build_reply_context(message)
    assert context.to_dict() == {
        "userId": "userA",
        "userName": "userA",
        "content": "x" * 50 + "...",
    }


def test_build_history_maps_roles_and_skips_provisional():
    history = _history(("alice", "hi", False), ("ai", "hello", True))
    history.append(
        Message(id="temp_1", room_id="r", user_id="alice", user_name="alice", content="draft")
    )
    turns = build_history(history)
    assert [turn.to_dict() for turn in turns] == [
        {"role": "user", "content": "alice: hi"},
        {"role": "assistant", "content": "ai: hello"},
    ]
