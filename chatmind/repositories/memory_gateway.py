"""Process-local storage gateway.

Implements the hosted store's contract in memory: the room, membership and
settings rows, the join/create/toggle procedures with their error cases, and
a change-event stream per topic and room. Events are pushed to subscriber
sinks after the write is committed and before the call returns.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from threading import RLock
from typing import Any
from uuid import uuid4

from chatmind.constants import AI_USER_ID, AI_USER_NAME
from chatmind.errors import (
    NotAParticipantError,
    PersistenceError,
    RoomNotFoundError,
    UserNotFoundError,
)
from chatmind.events import EVENT_TYPES_BY_TOPIC, ChangeEvent, Topic
from chatmind.models import Message, Participant, User, utcnow
from chatmind.presence import annotate_presence
from chatmind.repositories.interfaces import EventSink, Row, SubscriptionHandle

logger = logging.getLogger(__name__)


class InMemoryStorageGateway:
    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        presence_window_seconds: float | None = None,
    ):
        self._clock = clock
        self._presence_window_seconds = presence_window_seconds
        self._lock = RLock()
        self.profiles: dict[str, User] = {}
        self.rooms: dict[str, Row] = {}
        self.memberships: dict[str, dict[str, datetime]] = defaultdict(dict)
        self.settings: dict[str, Row] = {}
        self.messages: dict[str, list[Row]] = defaultdict(list)
        self._subscriptions: dict[str, tuple[SubscriptionHandle, EventSink]] = {}

    def create_profile_if_absent(self, user_id: str, name: str, color: str) -> User:
        with self._lock:
            existing = self.profiles.get(user_id)
            if existing is not None:
                return existing
            profile = User(id=user_id, name=name, color=color)
            self.profiles[user_id] = profile
            return profile

    def create_room(self, room_id: str, name: str, creator_id: str) -> None:
        now = self._clock()
        with self._lock:
            if creator_id not in self.profiles:
                raise UserNotFoundError(creator_id)
            if room_id in self.rooms:
                raise PersistenceError(f"Failed to create room: '{room_id}' exists.")
            self.rooms[room_id] = {
                "id": room_id,
                "name": name,
                "created_by": creator_id,
                "created_at": now,
            }
            self.memberships[room_id][creator_id] = now
            self.settings[room_id] = self._default_settings(room_id)
            settings_row = dict(self.settings[room_id])
        self._emit(Topic.PARTICIPANTS, room_id, {"room_id": room_id, "user_id": creator_id})
        self._emit(Topic.SETTINGS, room_id, settings_row, operation="INSERT")

    def join_room(self, room_id: str, user_id: str) -> None:
        with self._lock:
            if user_id not in self.profiles:
                raise UserNotFoundError(user_id)
            if room_id not in self.rooms:
                raise RoomNotFoundError(room_id)
            members = self.memberships[room_id]
            if user_id in members:
                return
            members[user_id] = self._clock()
        self._emit(Topic.PARTICIPANTS, room_id, {"room_id": room_id, "user_id": user_id})

    def get_room(self, room_id: str) -> Row | None:
        with self._lock:
            room = self.rooms.get(room_id)
            return dict(room) if room is not None else None

    def list_rooms_for_user(self, user_id: str) -> list[Row]:
        with self._lock:
            rows = [
                dict(self.rooms[room_id])
                for room_id, members in self.memberships.items()
                if user_id in members and room_id in self.rooms
            ]
        rows.sort(key=lambda row: row["created_at"])
        return rows

    def get_participants_with_presence(self, room_id: str) -> list[Row]:
        with self._lock:
            members = dict(self.memberships.get(room_id, {}))
            participants = []
            for user_id, joined_at in members.items():
                profile = self.profiles.get(user_id)
                if profile is None:
                    continue
                participants.append(
                    Participant(
                        id=user_id,
                        name=profile.name,
                        color=profile.color,
                        last_seen=joined_at,
                    )
                )
            history = [Message.from_row(row) for row in self.messages.get(room_id, [])]
        kwargs: dict[str, Any] = {}
        if self._presence_window_seconds is not None:
            kwargs["window_seconds"] = self._presence_window_seconds
        annotated = annotate_presence(participants, history, self._clock(), **kwargs)
        return [
            {
                "user_id": participant.id,
                "name": participant.name,
                "color": participant.color,
                "is_online": participant.is_online,
                "last_seen": participant.last_seen,
            }
            for participant in annotated
        ]

    def get_room_settings(self, room_id: str) -> Row:
        with self._lock:
            settings = self.settings.get(room_id)
            if settings is None:
                return self._default_settings(room_id)
            return self._settings_row(settings)

    def toggle_ai_mute(self, room_id: str, user_id: str) -> Row:
        now = self._clock()
        with self._lock:
            if user_id not in self.memberships.get(room_id, {}):
                raise NotAParticipantError(room_id, user_id)
            current = self.settings.get(room_id) or self._default_settings(room_id)
            muted = not bool(current.get("is_ai_muted", False))
            self.settings[room_id] = {
                "room_id": room_id,
                "is_ai_muted": muted,
                "ai_muted_by": user_id if muted else None,
                "ai_muted_at": now if muted else None,
            }
            row = self._settings_row(self.settings[room_id])
        self._emit(Topic.SETTINGS, room_id, dict(row), operation="UPDATE")
        return row

    def get_messages(self, room_id: str, limit: int) -> list[Row]:
        with self._lock:
            rows = self.messages.get(room_id, [])
            recent = rows[-limit:] if limit > 0 else []
            return [dict(row) for row in recent]

    def insert_user_message(
        self,
        room_id: str,
        user_id: str,
        user_name: str,
        user_color: str,
        content: str,
    ) -> Row:
        with self._lock:
            if room_id not in self.rooms:
                raise PersistenceError(f"Room '{room_id}' does not exist.")
            if user_id not in self.memberships.get(room_id, {}):
                raise PersistenceError(
                    f"User '{user_id}' may not post in room '{room_id}'."
                )
            row = self._append_message(
                room_id=room_id,
                user_id=user_id,
                user_name=user_name,
                user_color=user_color,
                content=content,
                is_ai=False,
                replying_to=None,
            )
        self._emit(Topic.MESSAGES, room_id, dict(row))
        return row

    def insert_ai_message(
        self,
        room_id: str,
        content: str,
        author_name: str = AI_USER_NAME,
        author_color: str = "",
        replying_to: Row | None = None,
    ) -> Row:
        with self._lock:
            if room_id not in self.rooms:
                raise PersistenceError(
                    f"Failed to insert AI message: room '{room_id}' does not exist."
                )
            row = self._append_message(
                room_id=room_id,
                user_id=AI_USER_ID,
                user_name=author_name,
                user_color=author_color,
                content=content,
                is_ai=True,
                replying_to=replying_to,
            )
        self._emit(Topic.MESSAGES, room_id, dict(row))
        return row

    def subscribe(
        self, topic: Topic, room_id: str, sink: EventSink
    ) -> SubscriptionHandle:
        handle = SubscriptionHandle(id=uuid4().hex, topic=topic, room_id=room_id)
        with self._lock:
            self._subscriptions[handle.id] = (handle, sink)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        with self._lock:
            self._subscriptions.pop(handle.id, None)

    def subscription_count(self, room_id: str | None = None) -> int:
        with self._lock:
            return sum(
                1
                for handle, _ in self._subscriptions.values()
                if room_id is None or handle.room_id == room_id
            )

    def _append_message(self, **values: Any) -> Row:
        row = {"id": uuid4().hex, "created_at": self._clock(), **values}
        self.messages[values["room_id"]].append(row)
        return dict(row)

    def _default_settings(self, room_id: str) -> Row:
        return {
            "room_id": room_id,
            "is_ai_muted": False,
            "ai_muted_by": None,
            "ai_muted_at": None,
        }

    def _settings_row(self, settings: Row) -> Row:
        row = dict(settings)
        muted_by = row.get("ai_muted_by")
        profile = self.profiles.get(muted_by) if muted_by else None
        row["ai_muted_by_name"] = profile.name if profile else None
        return row

    def _emit(
        self,
        topic: Topic,
        room_id: str,
        payload: Row,
        operation: str = "INSERT",
    ) -> None:
        with self._lock:
            targets = [
                sink
                for handle, sink in self._subscriptions.values()
                if handle.topic == topic and handle.room_id == room_id
            ]
        event_type = EVENT_TYPES_BY_TOPIC[topic]
        for sink in targets:
            event: ChangeEvent = event_type(
                room_id=room_id, payload=dict(payload), operation=operation
            )
            try:
                sink(event)
            except Exception:
                logger.exception(
                    "Change event sink failed topic=%s room=%s", topic.value, room_id
                )
