from chatmind.services.ai_service import AIResponder
from chatmind.services.ai_turn_service import AITurnService
from chatmind.services.directory_service import RoomDirectory
from chatmind.services.room_service import RoomSynchronizer
from chatmind.services.session_service import SessionService

__all__ = [
    "AIResponder",
    "AITurnService",
    "RoomDirectory",
    "RoomSynchronizer",
    "SessionService",
]
