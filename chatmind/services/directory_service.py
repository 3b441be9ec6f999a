from __future__ import annotations

import logging
from threading import Lock
from typing import Any

from chatmind.models import Message, Participant, Room, RoomSettings, SyncSettings
from chatmind.repositories.interfaces import StorageGatewayProtocol

logger = logging.getLogger(__name__)


def fetch_room(
    gateway: StorageGatewayProtocol, room_row: dict[str, Any], message_limit: int
) -> Room:
    """Load participants, settings and recent messages for one room row."""
    room_id = str(room_row["id"])
    participants = [
        Participant.from_row(row)
        for row in gateway.get_participants_with_presence(room_id)
    ]
    settings = RoomSettings.from_row(room_id, gateway.get_room_settings(room_id))
    messages = [Message.from_row(row) for row in gateway.get_messages(room_id, message_limit)]
    room = Room(
        id=room_id,
        name=str(room_row.get("name") or room_id),
        participants=participants,
        messages=messages,
        settings=settings,
    )
    if room_row.get("created_at"):
        room = room.model_copy(update={"created_at": room_row["created_at"]})
    return room


class RoomDirectory:
    """The signed-in user's rooms, each loaded independently."""

    def __init__(
        self, gateway: StorageGatewayProtocol, settings: SyncSettings | None = None
    ):
        self.gateway = gateway
        self.settings = settings or SyncSettings()
        self._rooms: list[Room] = []
        self._lock = Lock()

    @property
    def rooms(self) -> list[Room]:
        with self._lock:
            return list(self._rooms)

    def load_rooms(self, user_id: str) -> list[Room]:
        loaded: list[Room] = []
        for row in self.gateway.list_rooms_for_user(user_id):
            try:
                loaded.append(fetch_room(self.gateway, row, self.settings.message_limit))
            except Exception as exc:
                room_id = str(row.get("id", ""))
                logger.warning("Failed to load details for room %s: %s", room_id, exc)
                loaded.append(
                    Room(
                        id=room_id,
                        name=str(row.get("name") or room_id),
                        settings=RoomSettings(room_id=room_id),
                    )
                )
        with self._lock:
            self._rooms = loaded
        return list(loaded)

    def remember(self, room: Room) -> None:
        with self._lock:
            for index, existing in enumerate(self._rooms):
                if existing.id == room.id:
                    self._rooms[index] = room
                    return
            self._rooms.append(room)

    def get(self, room_id: str) -> Room | None:
        with self._lock:
            for room in self._rooms:
                if room.id == room_id:
                    return room
        return None

    def clear(self) -> None:
        with self._lock:
            self._rooms = []
