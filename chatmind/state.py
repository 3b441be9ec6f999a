"""Room session state and the reducer that owns every transition of it.

All mutation of the joined room flows through ``reduce(state, action)``.
Both reconciliation paths for a sent message (the direct storage response
and the change-event echo) are idempotent here, so whichever lands first
establishes the durable message and the second is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from pydantic import BaseModel, ConfigDict

from chatmind.models import Message, Participant, Room, RoomSettings


@dataclass(frozen=True)
class SessionState:
    room: Room | None = None
    pending_ids: frozenset[str] = field(default_factory=frozenset)
    ai_pending: bool = False
    ai_started_at: float | None = None

    @property
    def is_joined(self) -> bool:
        return self.room is not None

    @property
    def room_id(self) -> str | None:
        return self.room.id if self.room is not None else None


class RoomAction(BaseModel):
    model_config = ConfigDict(frozen=True)


class RoomLoaded(RoomAction):
    room: Room


class RoomCleared(RoomAction):
    pass


class LocalSendStarted(RoomAction):
    message: Message


class LocalSendConfirmed(RoomAction):
    provisional_id: str
    message: Message


class LocalSendFailed(RoomAction):
    room_id: str
    provisional_id: str


class RemoteMessageArrived(RoomAction):
    message: Message


class ParticipantsReplaced(RoomAction):
    room_id: str
    participants: list[Participant]


class SettingsReplaced(RoomAction):
    settings: RoomSettings


class AIPendingStarted(RoomAction):
    room_id: str
    started_at: float


class AIPendingCleared(RoomAction):
    pass


def _insert_in_order(messages: list[Message], message: Message) -> list[Message]:
    index = len(messages)
    while index > 0 and messages[index - 1].timestamp > message.timestamp:
        index -= 1
    return messages[:index] + [message] + messages[index:]


def _index_of(messages: list[Message], message_id: str) -> int:
    for index, message in enumerate(messages):
        if message.id == message_id:
            return index
    return -1


def _matching_pending_index(
    room: Room, pending_ids: frozenset[str], message: Message
) -> int:
    if message.is_ai:
        return -1
    for index, candidate in enumerate(room.messages):
        if (
            candidate.id in pending_ids
            and candidate.user_id == message.user_id
            and candidate.content == message.content
        ):
            return index
    return -1


def _with_messages(
    state: SessionState,
    room: Room,
    messages: list[Message],
    pending_ids: frozenset[str],
) -> SessionState:
    room = room.model_copy(update={"messages": messages})
    return replace(state, room=room, pending_ids=pending_ids)


def _current_room(state: SessionState, room_id: str) -> Room | None:
    if state.room is None or state.room.id != room_id:
        return None
    return state.room


def _apply_remote_message(state: SessionState, message: Message) -> SessionState:
    room = _current_room(state, message.room_id)
    if room is None:
        return state
    if message.is_ai and state.ai_pending:
        state = replace(state, ai_pending=False, ai_started_at=None)
    messages = room.messages
    if _index_of(messages, message.id) != -1:
        return state

    pending_index = _matching_pending_index(room, state.pending_ids, message)
    if pending_index != -1:
        provisional_id = messages[pending_index].id
        updated = list(messages)
        updated[pending_index] = message
        return _with_messages(
            state, room, updated, state.pending_ids - {provisional_id}
        )
    return _with_messages(
        state, room, _insert_in_order(messages, message), state.pending_ids
    )


def _apply_send_confirmed(
    state: SessionState, provisional_id: str, message: Message
) -> SessionState:
    room = _current_room(state, message.room_id)
    if room is None:
        return state
    messages = room.messages
    pending_ids = state.pending_ids - {provisional_id}
    provisional_index = _index_of(messages, provisional_id)

    if _index_of(messages, message.id) != -1:
        if provisional_index == -1:
            if pending_ids == state.pending_ids:
                return state
            return replace(state, pending_ids=pending_ids)
        updated = messages[:provisional_index] + messages[provisional_index + 1 :]
        return _with_messages(state, room, updated, pending_ids)

    if provisional_index != -1:
        updated = list(messages)
        updated[provisional_index] = message
        return _with_messages(state, room, updated, pending_ids)
    return _with_messages(
        state, room, _insert_in_order(messages, message), pending_ids
    )


def _apply_send_failed(
    state: SessionState, room_id: str, provisional_id: str
) -> SessionState:
    room = _current_room(state, room_id)
    if room is None:
        return state
    messages = room.messages
    index = _index_of(messages, provisional_id)
    pending_ids = state.pending_ids - {provisional_id}
    if index == -1:
        if pending_ids == state.pending_ids:
            return state
        return replace(state, pending_ids=pending_ids)
    return _with_messages(
        state, room, messages[:index] + messages[index + 1 :], pending_ids
    )


def _apply_local_send(state: SessionState, message: Message) -> SessionState:
    room = _current_room(state, message.room_id)
    if room is None or _index_of(room.messages, message.id) != -1:
        return state
    return _with_messages(
        state, room, room.messages + [message], state.pending_ids | {message.id}
    )


def reduce(state: SessionState, action: RoomAction) -> SessionState:
    if isinstance(action, RoomLoaded):
        return SessionState(room=action.room)
    if isinstance(action, RoomCleared):
        if state == SessionState():
            return state
        return SessionState()
    if isinstance(action, LocalSendStarted):
        return _apply_local_send(state, action.message)
    if isinstance(action, LocalSendConfirmed):
        return _apply_send_confirmed(state, action.provisional_id, action.message)
    if isinstance(action, LocalSendFailed):
        return _apply_send_failed(state, action.room_id, action.provisional_id)
    if isinstance(action, RemoteMessageArrived):
        return _apply_remote_message(state, action.message)
    if isinstance(action, ParticipantsReplaced):
        room = _current_room(state, action.room_id)
        if room is None or room.participants == action.participants:
            return state
        room = room.model_copy(update={"participants": list(action.participants)})
        return replace(state, room=room)
    if isinstance(action, SettingsReplaced):
        room = _current_room(state, action.settings.room_id)
        if room is None or room.settings == action.settings:
            return state
        room = room.model_copy(update={"settings": action.settings})
        return replace(state, room=room)
    if isinstance(action, AIPendingStarted):
        if _current_room(state, action.room_id) is None:
            return state
        return replace(state, ai_pending=True, ai_started_at=action.started_at)
    if isinstance(action, AIPendingCleared):
        if not state.ai_pending:
            return state
        return replace(state, ai_pending=False, ai_started_at=None)
    raise TypeError(f"Unsupported room action {type(action).__name__}")
