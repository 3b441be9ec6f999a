from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from chatmind.event_bus import EventBus
from chatmind.models import SyncSettings
from chatmind.repositories.memory_gateway import InMemoryStorageGateway
from chatmind.services.ai_turn_service import AITurnService
from chatmind.services.room_service import RoomSynchronizer

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class SteppingClock:
    def __init__(self, start: datetime = BASE_TIME, step_seconds: float = 1.0):
        self.now = start
        self.step = timedelta(seconds=step_seconds)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


def run_inline(target, *args):
    target(*args)


def make_responder(answer: str = "Here is a plan.", probe_ok: bool = True):
    calls = {"probe": 0, "generate": []}

    def probe() -> bool:
        calls["probe"] += 1
        return probe_ok

    def generate(history, room_label):
        calls["generate"].append((list(history), room_label))
        return answer

    return SimpleNamespace(probe=probe, generate=generate, calls=calls)


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def gateway(clock):
    store = InMemoryStorageGateway(clock=clock)
    store.create_profile_if_absent("alice", "Alice", "#FF6B6B")
    store.create_profile_if_absent("bob", "Bob", "#4ECDC4")
    return store


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def responder():
    return make_responder()


@pytest.fixture
def settings():
    return SyncSettings(ai_reply_delay_seconds=0)


@pytest.fixture
def synchronizer(gateway, bus, responder, settings):
    ai_turns = AITurnService(gateway, responder, settings, start_thread=run_inline)
    sync = RoomSynchronizer(gateway, bus, ai_turns, settings)
    sync.bind_user(gateway.profiles["alice"])
    yield sync
    sync.close()
