"""Session-scoped synchronizer for the joined room.

The synchronizer owns the only copy of the current ``SessionState``. Local
operations (send, toggle, join, leave) and change events delivered through
the ``EventBus`` are all turned into reducer actions and applied under one
lock. Storage calls are never made while that lock is held.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from contextlib import ExitStack
from threading import Event, RLock

from pydantic import ValidationError

from chatmind.constants import PROVISIONAL_ID_PREFIX, ROOM_ID_PREFIX
from chatmind.errors import (
    ChatMindError,
    MalformedEventPayloadError,
    NotAuthenticatedError,
    PersistenceError,
    RoomNotFoundError,
)
from chatmind.event_bus import EventBus
from chatmind.events import (
    ChangeEvent,
    MessageInsertedEvent,
    ParticipantJoinedEvent,
    SettingsChangedEvent,
    Topic,
)
from chatmind.mentions import contains_ai_mention
from chatmind.models import (
    Message,
    Participant,
    Room,
    RoomSettings,
    SyncSettings,
    User,
    utcnow,
)
from chatmind.repositories.interfaces import StorageGatewayProtocol
from chatmind.services.ai_turn_service import AITurnService
from chatmind.services.directory_service import fetch_room
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
from chatmind.timers import DeadlineTimer, PeriodicTask

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


def generate_room_id() -> str:
    return f"{ROOM_ID_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def generate_provisional_id() -> str:
    return f"{PROVISIONAL_ID_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def message_from_event(event: ChangeEvent) -> Message:
    try:
        return Message.from_row(event.payload)
    except (KeyError, ValidationError) as exc:
        raise MalformedEventPayloadError(str(exc)) from exc


class RoomSynchronizer:
    def __init__(
        self,
        gateway: StorageGatewayProtocol,
        event_bus: EventBus,
        ai_turns: AITurnService,
        settings: SyncSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.event_bus = event_bus
        self.ai_turns = ai_turns
        self.settings = settings or SyncSettings()
        self.clock = clock

        self._lock = RLock()
        self._state = SessionState()
        self._user: User | None = None
        self._joins: dict[str, Event] = {}
        self._buffers: dict[str, list[ChangeEvent]] = {}
        self._room_resources: ExitStack | None = None
        self._ai_timer: DeadlineTimer | None = None
        self._listeners: list[StateListener] = []
        self._bus_attached = False

        self._attach_bus()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def current_room(self) -> Room | None:
        return self.state.room

    @property
    def is_ai_pending(self) -> bool:
        return self.state.ai_pending

    @property
    def user(self) -> User | None:
        return self._user

    def bind_user(self, user: User | None) -> None:
        self._user = user

    def add_listener(self, listener: StateListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def ai_status_text(self) -> str:
        state = self.state
        if not state.ai_pending or state.room is None:
            return "AI is idle."
        elapsed = int(max(0, self.clock() - (state.ai_started_at or self.clock())))
        return f"AI is responding in #{state.room.name} (elapsed={elapsed}s)."

    def join_room(self, room_id: str) -> bool:
        """Join ``room_id`` and make it current.

        A concurrent call for a room that is already being joined waits for
        that join instead of fetching or subscribing a second time.
        """
        user = self._require_user()
        with self._lock:
            if self._state.room_id == room_id:
                return True
            in_flight = self._joins.get(room_id)
            if in_flight is None:
                self._joins[room_id] = Event()
        if in_flight is not None:
            logger.debug("Join already in flight for room %s", room_id)
            in_flight.wait()
            return self.state.room_id == room_id

        try:
            self.gateway.join_room(room_id, user.id)
            room_row = self.gateway.get_room(room_id)
            if room_row is None:
                raise RoomNotFoundError(room_id)
            self._open_room(
                room_id,
                lambda: fetch_room(self.gateway, room_row, self.settings.message_limit),
            )
        finally:
            with self._lock:
                finished = self._joins.pop(room_id)
            finished.set()
        logger.info("Joined room %s as %s", room_id, user.id)
        return True

    def create_room(self, name: str) -> Room:
        user = self._require_user()
        name = name.strip()
        if not name:
            raise ValueError("Room name must not be empty.")
        room_id = generate_room_id()

        def persist() -> Room:
            self.gateway.create_room(room_id, name, user.id)
            return Room(
                id=room_id,
                name=name,
                participants=[Participant.from_user(user, is_online=True)],
                settings=RoomSettings(room_id=room_id),
            )

        room = self._open_room(room_id, persist)
        logger.info("Created room %s (%s)", room_id, name)
        return room

    def send_message(self, content: str) -> Message:
        user = self._require_user()
        content = content.strip()
        if not content:
            raise ValueError("Message content must not be empty.")
        room = self._require_room()

        provisional = Message(
            id=generate_provisional_id(),
            room_id=room.id,
            user_id=user.id,
            user_name=user.name,
            user_color=user.color,
            content=content,
            timestamp=utcnow(),
        )
        self._apply(LocalSendStarted(message=provisional))
        try:
            row = self.gateway.insert_user_message(
                room.id, user.id, user.name, user.color, content
            )
            durable = Message.from_row(row)
        except Exception as exc:
            self._apply(LocalSendFailed(room_id=room.id, provisional_id=provisional.id))
            logger.warning("Failed to send message in room %s: %s", room.id, exc)
            if isinstance(exc, ChatMindError):
                raise
            raise PersistenceError(f"Failed to send message: {exc}") from exc
        self._apply(LocalSendConfirmed(provisional_id=provisional.id, message=durable))

        if contains_ai_mention(content):
            self._maybe_start_ai_turn(durable)
        return durable

    def toggle_ai_mute(self) -> RoomSettings:
        user = self._require_user()
        room = self._require_room()
        try:
            row = self.gateway.toggle_ai_mute(room.id, user.id)
        except ChatMindError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Failed to toggle AI mute: {exc}") from exc
        settings = RoomSettings.from_row(room.id, row)
        self._apply(SettingsReplaced(settings=settings))
        return settings

    def leave_room(self) -> None:
        with self._lock:
            room_id = self._state.room_id
            if room_id is None and self._room_resources is None:
                return
            self._release_room_resources()
        self._apply(RoomCleared())
        logger.info("Left room %s", room_id)

    def open(self) -> None:
        """Attach to the event bus and start its dispatch loop."""
        self._attach_bus()
        self.event_bus.start()
        logger.debug("Room synchronizer opened")

    def close(self) -> None:
        self.leave_room()
        self._detach_bus()
        self.event_bus.stop()

    def refresh_participants(self) -> bool:
        room_id = self.state.room_id
        if room_id is None:
            return False
        try:
            rows = self.gateway.get_participants_with_presence(room_id)
            participants = [Participant.from_row(row) for row in rows]
        except Exception as exc:
            logger.warning("Failed to reload participants for room %s: %s", room_id, exc)
            return False
        self._apply(ParticipantsReplaced(room_id=room_id, participants=participants))
        return True

    def refresh_settings(self) -> bool:
        room_id = self.state.room_id
        if room_id is None:
            return False
        try:
            settings = RoomSettings.from_row(
                room_id, self.gateway.get_room_settings(room_id)
            )
        except Exception as exc:
            logger.warning("Failed to reload settings for room %s: %s", room_id, exc)
            return False
        self._apply(SettingsReplaced(settings=settings))
        return True

    def handle_message_event(self, event: MessageInsertedEvent) -> None:
        if event.room_id != self.state.room_id:
            return
        try:
            message = message_from_event(event)
        except MalformedEventPayloadError as exc:
            logger.warning("Dropping malformed message event in room %s: %s", event.room_id, exc)
            return
        self._apply(RemoteMessageArrived(message=message))
        if message.is_ai:
            self._cancel_ai_timer()
        self.refresh_participants()

    def handle_participant_event(self, event: ParticipantJoinedEvent) -> None:
        if event.room_id != self.state.room_id:
            return
        self.refresh_participants()

    def handle_settings_event(self, event: SettingsChangedEvent) -> None:
        if event.room_id != self.state.room_id:
            return
        self.refresh_settings()

    def _open_room(self, room_id: str, load: Callable[[], Room]) -> Room:
        with self._lock:
            self._buffers[room_id] = []
        resources = ExitStack()
        try:
            for topic in Topic:
                handle = self.gateway.subscribe(topic, room_id, self._deliver)
                resources.callback(self.gateway.unsubscribe, handle)
            room = load()
        except BaseException:
            with self._lock:
                self._buffers.pop(room_id, None)
            resources.close()
            raise

        presence = PeriodicTask(
            self.settings.presence_refresh_seconds,
            self.refresh_participants,
            name=f"presence-{room_id}",
        )
        resources.callback(presence.cancel)
        with self._lock:
            self._release_room_resources()
            self._room_resources = resources
            self._apply(RoomLoaded(room=room))
            for event in self._buffers.pop(room_id, []):
                self.event_bus.publish(event)
        presence.start()
        return room

    def _deliver(self, event: ChangeEvent) -> None:
        with self._lock:
            buffer = self._buffers.get(event.room_id)
            if buffer is not None:
                buffer.append(event)
                return
        self.event_bus.publish(event, critical=event.topic == Topic.MESSAGES)

    def _attach_bus(self) -> None:
        with self._lock:
            if self._bus_attached:
                return
            self._bus_attached = True
        self.event_bus.subscribe(MessageInsertedEvent, self.handle_message_event)
        self.event_bus.subscribe(ParticipantJoinedEvent, self.handle_participant_event)
        self.event_bus.subscribe(SettingsChangedEvent, self.handle_settings_event)

    def _detach_bus(self) -> None:
        with self._lock:
            if not self._bus_attached:
                return
            self._bus_attached = False
        self.event_bus.unsubscribe(MessageInsertedEvent, self.handle_message_event)
        self.event_bus.unsubscribe(ParticipantJoinedEvent, self.handle_participant_event)
        self.event_bus.unsubscribe(SettingsChangedEvent, self.handle_settings_event)

    def _release_room_resources(self) -> None:
        self._cancel_ai_timer()
        resources, self._room_resources = self._room_resources, None
        if resources is not None:
            resources.close()

    def _maybe_start_ai_turn(self, trigger: Message) -> None:
        with self._lock:
            room = self._state.room
            if room is None or room.id != trigger.room_id:
                return
            if room.is_ai_muted:
                logger.debug("AI is muted in room %s; ignoring mention", room.id)
                return
            self._cancel_ai_timer()
            self._apply(AIPendingStarted(room_id=room.id, started_at=self.clock()))
            self._ai_timer = DeadlineTimer(
                self.settings.ai_pending_timeout_seconds,
                lambda: self._on_ai_timeout(room.id),
                name=f"ai-pending-{room.id}",
            ).start()
        self.ai_turns.trigger(
            trigger,
            lambda: self.current_room,
            lambda: self._clear_ai_pending(room.id),
        )

    def _on_ai_timeout(self, room_id: str) -> None:
        logger.warning("AI reply in room %s timed out; clearing busy state", room_id)
        self._clear_ai_pending(room_id)

    def _clear_ai_pending(self, room_id: str) -> None:
        with self._lock:
            if self._state.room_id != room_id:
                return
            self._cancel_ai_timer()
            self._apply(AIPendingCleared())

    def _cancel_ai_timer(self) -> None:
        with self._lock:
            timer, self._ai_timer = self._ai_timer, None
        if timer is not None:
            timer.cancel()

    def _apply(self, action: RoomAction) -> SessionState:
        with self._lock:
            previous = self._state
            self._state = reduce(previous, action)
            current = self._state
            listeners = list(self._listeners) if current is not previous else []
        for listener in listeners:
            try:
                listener(current)
            except Exception:
                logger.exception("Room state listener failed")
        return current

    def _require_user(self) -> User:
        if self._user is None:
            raise NotAuthenticatedError("Sign in before using rooms.")
        return self._user

    def _require_room(self) -> Room:
        room = self.state.room
        if room is None:
            raise ChatMindError("Join a room first.")
        return room
