import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from chatmind.constants import (
    AI_CONTEXT_WINDOW,
    AI_PENDING_TIMEOUT_SECONDS,
    AI_PROBE_TIMEOUT_SECONDS,
    AI_REPLY_DELAY_SECONDS,
    AI_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_PARTICIPANT_COLOR,
    MESSAGE_LOAD_LIMIT,
    PRESENCE_REFRESH_INTERVAL_SECONDS,
    PRESENCE_WINDOW_SECONDS,
    PROVISIONAL_ID_PREFIX,
    UNKNOWN_USER_COLOR,
    UNKNOWN_USER_NAME,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def is_provisional_id(message_id: str) -> bool:
    return message_id.startswith(PROVISIONAL_ID_PREFIX)


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: str = DEFAULT_PARTICIPANT_COLOR


class Participant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = UNKNOWN_USER_NAME
    color: str = DEFAULT_PARTICIPANT_COLOR
    is_online: bool = False
    last_seen: datetime | None = None

    @field_validator("last_seen")
    @classmethod
    def normalize_last_seen(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @classmethod
    def from_user(cls, user: User, *, is_online: bool = True) -> "Participant":
        return cls(id=user.id, name=user.name, color=user.color, is_online=is_online)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Participant":
        return cls(
            id=str(row.get("user_id", "")),
            name=row.get("name") or UNKNOWN_USER_NAME,
            color=row.get("color") or DEFAULT_PARTICIPANT_COLOR,
            is_online=bool(row.get("is_online", False)),
            last_seen=row.get("last_seen"),
        )


class ReplyContext(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str = Field(
        validation_alias=AliasChoices("user_id", "userId"),
        serialization_alias="userId",
    )
    user_name: str = Field(
        validation_alias=AliasChoices("user_name", "userName"),
        serialization_alias="userName",
    )
    content: str = Field(
        validation_alias=AliasChoices("content", "content_excerpt", "contentExcerpt"),
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_reply_context(raw: Any) -> ReplyContext | None:
    """Decode a reply-context column that may be structured data or JSON text.

    Anything undecodable is treated as absent so the surrounding message
    still applies.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, ReplyContext):
        return raw
    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Failed to parse replying_to payload: %r", raw[:120])
            return None
    if not isinstance(data, dict):
        logger.warning("Ignoring replying_to payload of type %s", type(data).__name__)
        return None
    try:
        return ReplyContext.model_validate(data)
    except ValidationError as exc:
        logger.warning("Invalid replying_to payload: %s", exc)
        return None


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    room_id: str
    user_id: str
    user_name: str = UNKNOWN_USER_NAME
    user_color: str = UNKNOWN_USER_COLOR
    content: str = ""
    is_ai: bool = False
    timestamp: datetime = Field(default_factory=utcnow)
    replying_to: ReplyContext | None = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_aware(value) or value

    @property
    def is_provisional(self) -> bool:
        return is_provisional_id(self.id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Message":
        created_at = row.get("created_at") or utcnow()
        return cls(
            id=str(row["id"]),
            room_id=str(row.get("room_id", "")),
            user_id=str(row.get("user_id") or "unknown"),
            user_name=row.get("user_name") or UNKNOWN_USER_NAME,
            user_color=row.get("user_color") or UNKNOWN_USER_COLOR,
            content=row.get("content") or "",
            is_ai=bool(row.get("is_ai", False)),
            timestamp=created_at,
            replying_to=parse_reply_context(row.get("replying_to")),
        )


class RoomSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    room_id: str
    is_ai_muted: bool = False
    ai_muted_by: str | None = None
    ai_muted_by_name: str | None = None
    ai_muted_at: datetime | None = None

    @classmethod
    def from_row(cls, room_id: str, row: dict[str, Any] | None) -> "RoomSettings":
        row = row or {}
        return cls(
            room_id=room_id,
            is_ai_muted=bool(row.get("is_ai_muted", False)),
            ai_muted_by=row.get("ai_muted_by"),
            ai_muted_by_name=row.get("ai_muted_by_name"),
            ai_muted_at=row.get("ai_muted_at"),
        )


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    participants: list[Participant] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    settings: RoomSettings

    @property
    def is_ai_muted(self) -> bool:
        return self.settings.is_ai_muted


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return self.model_dump()


class AIProviderConfig(BaseModel):
    provider: str
    api_key: str
    model: str
    base_url: str = ""


class SyncSettings(BaseModel):
    message_limit: int = Field(default=MESSAGE_LOAD_LIMIT, gt=0, le=MESSAGE_LOAD_LIMIT)
    presence_refresh_seconds: float = Field(
        default=PRESENCE_REFRESH_INTERVAL_SECONDS, gt=0
    )
    presence_window_seconds: float = Field(default=PRESENCE_WINDOW_SECONDS, gt=0)
    ai_pending_timeout_seconds: float = Field(default=AI_PENDING_TIMEOUT_SECONDS, gt=0)
    ai_reply_delay_seconds: float = Field(default=AI_REPLY_DELAY_SECONDS, ge=0)
    ai_context_window: int = Field(default=AI_CONTEXT_WINDOW, gt=0)
    ai_request_timeout_seconds: float = Field(default=AI_REQUEST_TIMEOUT_SECONDS, gt=0)
    ai_probe_timeout_seconds: float = Field(default=AI_PROBE_TIMEOUT_SECONDS, gt=0)
