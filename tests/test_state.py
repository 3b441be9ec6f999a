from datetime import datetime, timedelta, timezone

import pytest

from chatmind.models import Message, Participant, Room, RoomSettings
from chatmind.state import (
    AIPendingCleared,
    AIPendingStarted,
    LocalSendConfirmed,
    LocalSendFailed,
    LocalSendStarted,
    ParticipantsReplaced,
    RemoteMessageArrived,
    RoomAction,
    RoomCleared,
    RoomLoaded,
    SessionState,
    SettingsReplaced,
    reduce,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(message_id: str, content: str = "hello", seconds: int = 0, **kwargs) -> Message:
    values = {
        "id": message_id,
        "room_id": "room_1",
        "user_id": "alice",
        "user_name": "Alice",
        "content": content,
        "timestamp": T0 + timedelta(seconds=seconds),
    }
    values.update(kwargs)
    return Message(**values)


def _joined(*messages: Message) -> SessionState:
    room = Room(
        id="room_1",
        name="Planning",
        messages=list(messages),
        settings=RoomSettings(room_id="room_1"),
    )
    return reduce(SessionState(), RoomLoaded(room=room))


def _ids(state: SessionState) -> list[str]:
    assert state.room is not None
    return [message.id for message in state.room.messages]


def test_confirm_then_remote_arrival_keeps_single_copy() -> None:
    provisional = _message("temp_1", seconds=5)
    durable = _message("m1", seconds=6)
    state = reduce(_joined(), LocalSendStarted(message=provisional))

    state = reduce(state, LocalSendConfirmed(provisional_id="temp_1", message=durable))
    state = reduce(state, RemoteMessageArrived(message=durable))

    assert _ids(state) == ["m1"]
    assert state.pending_ids == frozenset()


def test_remote_arrival_then_confirm_keeps_single_copy() -> None:
    provisional = _message("temp_1", seconds=5)
    durable = _message("m1", seconds=6)
    state = reduce(_joined(), LocalSendStarted(message=provisional))

    state = reduce(state, RemoteMessageArrived(message=durable))
    assert _ids(state) == ["m1"]
    state = reduce(state, LocalSendConfirmed(provisional_id="temp_1", message=durable))

    assert _ids(state) == ["m1"]
    assert state.pending_ids == frozenset()


def test_confirm_replaces_provisional_in_place() -> None:
    earlier = _message("m0", "first", seconds=1, user_id="bob", user_name="Bob")
    provisional = _message("temp_1", seconds=5)
    state = reduce(_joined(earlier), LocalSendStarted(message=provisional))
    later = _message("m2", "after", seconds=3, user_id="bob", user_name="Bob")
    state = reduce(state, RemoteMessageArrived(message=later))

    state = reduce(
        state,
        LocalSendConfirmed(provisional_id="temp_1", message=_message("m1", seconds=9)),
    )

    assert _ids(state) == ["m0", "m2", "m1"]


def test_failed_send_rolls_back_provisional() -> None:
    state = reduce(_joined(), LocalSendStarted(message=_message("temp_1")))

    state = reduce(state, LocalSendFailed(room_id="room_1", provisional_id="temp_1"))

    assert _ids(state) == []
    assert state.pending_ids == frozenset()
    assert reduce(state, LocalSendFailed(room_id="room_1", provisional_id="temp_1")) is state


def test_remote_messages_are_inserted_by_timestamp() -> None:
    state = _joined(_message("m1", seconds=1), _message("m3", seconds=3))

    state = reduce(state, RemoteMessageArrived(message=_message("m2", seconds=2)))
    state = reduce(state, RemoteMessageArrived(message=_message("m4", seconds=3)))

    assert _ids(state) == ["m1", "m2", "m3", "m4"]


def test_duplicate_remote_message_is_noop() -> None:
    state = _joined(_message("m1"))

    assert reduce(state, RemoteMessageArrived(message=_message("m1"))) is state


def test_ai_message_does_not_replace_matching_user_provisional() -> None:
    provisional = _message("temp_1", "@ai hi")
    state = reduce(_joined(), LocalSendStarted(message=provisional))
    ai_message = _message("m9", "@ai hi", seconds=2, is_ai=True)

    state = reduce(state, RemoteMessageArrived(message=ai_message))

    assert _ids(state) == ["temp_1", "m9"]
    assert state.pending_ids == frozenset({"temp_1"})


def test_actions_for_other_rooms_are_ignored() -> None:
    state = _joined()
    other = _message("m1", room_id="room_2")

    assert reduce(state, RemoteMessageArrived(message=other)) is state
    assert reduce(state, LocalSendStarted(message=other)) is state
    assert reduce(state, AIPendingStarted(room_id="room_2", started_at=1.0)) is state
    assert reduce(SessionState(), RemoteMessageArrived(message=other)) == SessionState()


def test_room_actions_without_joined_room_leave_state_untouched() -> None:
    empty = SessionState()
    message = _message("m1")
    actions: list[RoomAction] = [
        LocalSendStarted(message=message),
        LocalSendConfirmed(provisional_id="temp_1", message=message),
        LocalSendFailed(room_id="room_1", provisional_id="temp_1"),
        RemoteMessageArrived(message=message),
        ParticipantsReplaced(room_id="room_1", participants=[]),
        SettingsReplaced(settings=RoomSettings(room_id="room_1")),
        AIPendingStarted(room_id="room_1", started_at=1.0),
        AIPendingCleared(),
    ]

    for action in actions:
        assert reduce(empty, action) is empty


def test_ai_message_clears_pending_flag() -> None:
    state = reduce(_joined(), AIPendingStarted(room_id="room_1", started_at=10.0))
    assert state.ai_pending is True
    assert state.ai_started_at == 10.0

    state = reduce(
        state, RemoteMessageArrived(message=_message("m1", user_id="ai", is_ai=True))
    )

    assert state.ai_pending is False
    assert state.ai_started_at is None
    assert reduce(state, AIPendingCleared()) is state


def test_settings_snapshot_applied_twice_is_noop() -> None:
    muted = RoomSettings(room_id="room_1", is_ai_muted=True, ai_muted_by="bob")
    state = reduce(_joined(), SettingsReplaced(settings=muted))

    assert state.room is not None and state.room.is_ai_muted
    assert reduce(state, SettingsReplaced(settings=muted)) is state


def test_participants_replaced_wholesale() -> None:
    people = [Participant(id="alice", name="Alice"), Participant(id="bob", name="Bob")]
    state = reduce(_joined(), ParticipantsReplaced(room_id="room_1", participants=people))

    assert state.room is not None
    assert [p.id for p in state.room.participants] == ["alice", "bob"]
    assert (
        reduce(state, ParticipantsReplaced(room_id="room_1", participants=people))
        is state
    )


def test_room_cleared_resets_everything() -> None:
    state = reduce(_joined(), AIPendingStarted(room_id="room_1", started_at=1.0))

    state = reduce(state, RoomCleared())

    assert state == SessionState()
    assert reduce(state, RoomCleared()) is state


def test_unknown_action_raises() -> None:
    class Unknown(RoomAction):
        pass

    with pytest.raises(TypeError):
        reduce(SessionState(), Unknown())
