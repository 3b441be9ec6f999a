from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field


class Topic(str, Enum):
    MESSAGES = "messages"
    PARTICIPANTS = "participants"
    SETTINGS = "settings"


class ChangeEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: uuid4().hex)
    ts: str = Field(
        default_factory=lambda: datetime.now().isoformat(timespec="seconds")
    )
    topic: Topic
    room_id: str
    source: str = "gateway"
    operation: str = "INSERT"
    payload: dict[str, Any] = Field(default_factory=dict)
    critical: bool = False
    retry_count: int = 0


class MessageInsertedEvent(ChangeEvent):
    topic: Literal[Topic.MESSAGES] = Topic.MESSAGES


class ParticipantJoinedEvent(ChangeEvent):
    topic: Literal[Topic.PARTICIPANTS] = Topic.PARTICIPANTS


class SettingsChangedEvent(ChangeEvent):
    topic: Literal[Topic.SETTINGS] = Topic.SETTINGS
    operation: str = "UPDATE"


EVENT_TYPES_BY_TOPIC: dict[Topic, type[ChangeEvent]] = {
    Topic.MESSAGES: MessageInsertedEvent,
    Topic.PARTICIPANTS: ParticipantJoinedEvent,
    Topic.SETTINGS: SettingsChangedEvent,
}
