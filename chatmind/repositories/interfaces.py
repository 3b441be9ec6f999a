from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from chatmind.events import ChangeEvent, Topic
from chatmind.models import SyncSettings, User

EventSink = Callable[[ChangeEvent], Any]
Row = dict[str, Any]


@dataclass(frozen=True)
class SubscriptionHandle:
    id: str
    topic: Topic
    room_id: str


class StorageGatewayProtocol(Protocol):
    """Request/response calls and change-event streams of the hosted store.

    Rows are plain dicts shaped like the store's columns. Failures raise
    ``RoomNotFoundError``, ``UserNotFoundError``, ``NotAParticipantError`` or
    ``PersistenceError``.
    """

    def create_profile_if_absent(self, user_id: str, name: str, color: str) -> User:
        pass

    def create_room(self, room_id: str, name: str, creator_id: str) -> None:
        pass

    def join_room(self, room_id: str, user_id: str) -> None:
        pass

    def get_room(self, room_id: str) -> Row | None:
        pass

    def list_rooms_for_user(self, user_id: str) -> list[Row]:
        pass

    def get_participants_with_presence(self, room_id: str) -> list[Row]:
        pass

    def get_room_settings(self, room_id: str) -> Row:
        pass

    def toggle_ai_mute(self, room_id: str, user_id: str) -> Row:
        pass

    def get_messages(self, room_id: str, limit: int) -> list[Row]:
        pass

    def insert_user_message(
        self,
        room_id: str,
        user_id: str,
        user_name: str,
        user_color: str,
        content: str,
    ) -> Row:
        pass

    def insert_ai_message(
        self,
        room_id: str,
        content: str,
        author_name: str,
        author_color: str,
        replying_to: Row | None = None,
    ) -> Row:
        pass

    def subscribe(
        self, topic: Topic, room_id: str, sink: EventSink
    ) -> SubscriptionHandle:
        pass

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        pass


class ConfigRepositoryProtocol(Protocol):
    def load_ai_config(self, default: dict[str, Any]) -> dict[str, Any]:
        pass

    def save_ai_config(self, payload: dict[str, Any]) -> None:
        pass

    def load_sync_settings(self) -> SyncSettings:
        pass
