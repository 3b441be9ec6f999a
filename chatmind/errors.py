class ChatMindError(Exception):
    """Base class for failures surfaced by the room session layer."""


class NotAuthenticatedError(ChatMindError):
    pass


class RoomNotFoundError(ChatMindError):
    def __init__(self, room_id: str):
        super().__init__(f"Room '{room_id}' not found.")
        self.room_id = room_id


class UserNotFoundError(ChatMindError):
    def __init__(self, user_id: str):
        super().__init__(f"User profile '{user_id}' not found.")
        self.user_id = user_id


class NotAParticipantError(ChatMindError):
    def __init__(self, room_id: str, user_id: str):
        super().__init__(f"User '{user_id}' is not a participant in room '{room_id}'.")
        self.room_id = room_id
        self.user_id = user_id


class PersistenceError(ChatMindError):
    """A storage call failed; local optimistic state has been rolled back."""


class AIUnavailableError(ChatMindError):
    pass


class MalformedEventPayloadError(ChatMindError):
    pass
