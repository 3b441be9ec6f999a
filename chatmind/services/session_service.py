from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence

from chatmind.constants import PROFILE_COLORS
from chatmind.errors import NotAuthenticatedError
from chatmind.mentions import MentionMatch, detect_mention
from chatmind.models import Message, Room, RoomSettings, User
from chatmind.repositories.interfaces import StorageGatewayProtocol
from chatmind.services.directory_service import RoomDirectory
from chatmind.services.room_service import RoomSynchronizer

logger = logging.getLogger(__name__)


class SessionService:
    """The signed-in user's session: identity, room list and current room."""

    def __init__(
        self,
        gateway: StorageGatewayProtocol,
        synchronizer: RoomSynchronizer,
        directory: RoomDirectory,
        palette: Sequence[str] = tuple(PROFILE_COLORS),
        choose_color: Callable[[Sequence[str]], str] = random.choice,
    ):
        self.gateway = gateway
        self.synchronizer = synchronizer
        self.directory = directory
        self.palette = palette
        self.choose_color = choose_color
        self.user: User | None = None

    def sign_in(self, user_id: str, display_name: str) -> User:
        display_name = display_name.strip() or user_id
        profile = self.gateway.create_profile_if_absent(
            user_id, display_name, self.choose_color(self.palette)
        )
        self.user = profile
        self.synchronizer.open()
        self.synchronizer.bind_user(profile)
        self.directory.load_rooms(profile.id)
        logger.info("Signed in as %s (%s)", profile.name, profile.id)
        return profile

    def sign_out(self) -> None:
        if self.user is None:
            return
        self.synchronizer.close()
        self.synchronizer.bind_user(None)
        self.directory.clear()
        logger.info("Signed out %s", self.user.id)
        self.user = None

    def join_room(self, room_id: str) -> bool:
        self._require_user()
        joined = self.synchronizer.join_room(room_id)
        room = self.synchronizer.current_room
        if joined and room is not None:
            self.directory.remember(room)
        return joined

    def create_room(self, name: str) -> Room:
        self._require_user()
        room = self.synchronizer.create_room(name)
        self.directory.remember(room)
        return room

    def send_message(self, content: str) -> Message:
        return self.synchronizer.send_message(content)

    def toggle_ai_mute(self) -> RoomSettings:
        return self.synchronizer.toggle_ai_mute()

    def leave_room(self) -> None:
        self.synchronizer.leave_room()

    def detect_mention(self, text: str, cursor: int) -> MentionMatch | None:
        room = self.synchronizer.current_room
        if room is None:
            return detect_mention(text, cursor)
        others = [p for p in room.participants if self.user is None or p.id != self.user.id]
        return detect_mention(text, cursor, others, room.is_ai_muted)

    def _require_user(self) -> User:
        if self.user is None:
            raise NotAuthenticatedError("Sign in first.")
        return self.user
