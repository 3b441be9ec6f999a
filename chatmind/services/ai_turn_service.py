"""One AI turn in a room: probe, build context, generate, persist.

Every path ends either with an AI-authored message in the room or with
``clear_pending`` having been called, so the room never stays marked as
waiting on the assistant because of a failure here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from threading import Thread
from typing import Any

from chatmind.constants import (
    AI_ERROR_FALLBACK_TEXT,
    AI_PERSIST_FALLBACK_TEXT,
    AI_UNAVAILABLE_TEXT,
    AI_USER_COLOR,
    AI_USER_NAME,
)
from chatmind.models import Message, Room, SyncSettings
from chatmind.reply_target import build_history, build_reply_context, find_reply_target
from chatmind.repositories.interfaces import StorageGatewayProtocol
from chatmind.services.ai_service import AIResponder

logger = logging.getLogger(__name__)


def start_daemon_thread(target: Callable[..., Any], *args: Any) -> None:
    Thread(target=target, args=args, name="ai-turn", daemon=True).start()


class AITurnService:
    def __init__(
        self,
        gateway: StorageGatewayProtocol,
        responder: AIResponder,
        settings: SyncSettings | None = None,
        start_thread: Callable[..., None] = start_daemon_thread,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.responder = responder
        self.settings = settings or SyncSettings()
        self.start_thread = start_thread
        self.sleep = sleep

    def trigger(
        self,
        trigger: Message,
        read_room: Callable[[], Room | None],
        clear_pending: Callable[[], None],
    ) -> None:
        self.start_thread(self.run_turn, trigger, read_room, clear_pending)

    def run_turn(
        self,
        trigger: Message,
        read_room: Callable[[], Room | None],
        clear_pending: Callable[[], None],
    ) -> Message | None:
        """Answer ``trigger`` using the room as it stands once the delay and
        connectivity check are over, so messages posted meanwhile are seen.
        """
        room_id = trigger.room_id
        if self.settings.ai_reply_delay_seconds > 0:
            self.sleep(self.settings.ai_reply_delay_seconds)
        try:
            if not self.responder.probe():
                clear_pending()
                return self._insert_fallback(room_id, AI_UNAVAILABLE_TEXT, clear_pending)

            room = read_room()
            if room is None or room.id != room_id:
                logger.info("Room %s left before the AI turn; answering without context", room_id)
                durable: list[Message] = []
                label = room_id
            else:
                durable = [m for m in room.messages if not m.is_provisional]
                label = room.name
            history = build_history(durable, self.settings.ai_context_window)
            answer = self.responder.generate(history, label)
            target = find_reply_target(
                trigger.content, self._messages_before(durable, trigger)
            )
            replying_to = build_reply_context(target).to_dict() if target else None
            try:
                row = self.gateway.insert_ai_message(
                    room_id, answer, AI_USER_NAME, AI_USER_COLOR, replying_to
                )
            except Exception as exc:
                logger.warning("Failed to store AI reply in room %s: %s", room_id, exc)
                return self._insert_fallback(
                    room_id, AI_PERSIST_FALLBACK_TEXT, clear_pending
                )
            return Message.from_row(row)
        except Exception:
            logger.exception("AI turn failed in room %s", room_id)
            clear_pending()
            return self._insert_fallback(room_id, AI_ERROR_FALLBACK_TEXT, clear_pending)

    def _messages_before(self, messages: list[Message], trigger: Message) -> list[Message]:
        for index, message in enumerate(messages):
            if message.id == trigger.id:
                return messages[:index]
        return messages

    def _insert_fallback(
        self, room_id: str, text: str, clear_pending: Callable[[], None]
    ) -> Message | None:
        try:
            row = self.gateway.insert_ai_message(
                room_id, text, AI_USER_NAME, AI_USER_COLOR
            )
        except Exception as exc:
            logger.error("Failed to store AI fallback in room %s: %s", room_id, exc)
            clear_pending()
            return None
        return Message.from_row(row)
