import time
from threading import Event

from chatmind.event_bus import EventBus
from chatmind.events import MessageInsertedEvent, SettingsChangedEvent


def test_critical_event_retries_handler_and_delivers() -> None:
    bus = EventBus(critical_handler_retries=1)
    done = Event()
    calls = {"count": 0}

    def flaky_handler(event: MessageInsertedEvent) -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("transient failure")
        assert event.payload["content"] == "hello"
        done.set()

    bus.subscribe(MessageInsertedEvent, flaky_handler)
    bus.start()
    try:
        ok = bus.publish(
            MessageInsertedEvent(room_id="r", payload={"content": "hello"}),
            critical=True,
        )
        assert ok is True
        assert done.wait(timeout=1.0)
    finally:
        bus.stop()

    metrics = bus.snapshot_metrics()
    assert calls["count"] == 2
    assert metrics.retried >= 1
    assert metrics.delivered >= 1
    assert metrics.handler_failures >= 1


def test_non_critical_handler_failure_does_not_retry() -> None:
    bus = EventBus(critical_handler_retries=1)
    done = Event()
    calls = {"count": 0}

    def always_fails(_event: MessageInsertedEvent) -> None:
        calls["count"] += 1
        done.set()
        raise RuntimeError("fail")

    bus.subscribe(MessageInsertedEvent, always_fails)
    bus.start()
    try:
        ok = bus.publish(MessageInsertedEvent(room_id="r"))
        assert ok is True
        assert done.wait(timeout=1.0)
        time.sleep(0.05)
    finally:
        bus.stop()

    metrics = bus.snapshot_metrics()
    assert calls["count"] == 1
    assert metrics.retried == 0
    assert metrics.handler_failures == 1


def test_failing_handler_does_not_block_later_events(caplog) -> None:
    bus = EventBus()
    seen: list[str] = []

    def handler(event: MessageInsertedEvent) -> None:
        if event.payload.get("bad"):
            raise ValueError("boom")
        seen.append(event.payload["id"])

    bus.subscribe(MessageInsertedEvent, handler)
    bus.publish(MessageInsertedEvent(room_id="r", payload={"bad": True}))
    bus.publish(MessageInsertedEvent(room_id="r", payload={"id": "m2"}))

    assert bus.run_pending() == 2
    assert seen == ["m2"]
    assert "Change event handler failed" in caplog.text


def test_handlers_only_receive_their_event_type() -> None:
    bus = EventBus()
    settings_events: list[SettingsChangedEvent] = []
    bus.subscribe(SettingsChangedEvent, settings_events.append)

    bus.publish(MessageInsertedEvent(room_id="r"))
    bus.publish(SettingsChangedEvent(room_id="r"))
    bus.run_pending()

    assert len(settings_events) == 1
    assert settings_events[0].operation == "UPDATE"


def test_publish_drops_when_queue_is_full() -> None:
    bus = EventBus(maxsize=1, publish_timeout_seconds=0.01, critical_publish_retries=1)
    assert bus.publish(MessageInsertedEvent(room_id="r")) is True
    assert bus.publish(MessageInsertedEvent(room_id="r"), critical=True) is False

    metrics = bus.snapshot_metrics()
    assert metrics.dropped == 1
    assert metrics.queue_full == 2
    assert bus.pending_count() == 1


def test_unsubscribe_stops_delivery() -> None:
    bus = EventBus()
    received: list[MessageInsertedEvent] = []
    bus.subscribe(MessageInsertedEvent, received.append)
    bus.unsubscribe(MessageInsertedEvent, received.append)

    bus.publish(MessageInsertedEvent(room_id="r"))
    bus.run_pending()

    assert received == []
