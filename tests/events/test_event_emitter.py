"""
Tests for the event emitter.

Covers subscription styles, priority ordering, and the guarantee that a
failing listener never breaks the emitting operation.
"""

import threading
from unittest.mock import MagicMock

from cardtable.events import EngineEventType, EventEmitter, EventPriority


def test_on_with_string_event_type():
    """Subscribing by name and unsubscribing again."""
    emitter = EventEmitter()
    callback = MagicMock()

    unsubscribe = emitter.on("test_event", callback)
    test_data = {"value": "test"}
    emitter.emit("test_event", test_data)
    callback.assert_called_once_with(test_data)

    unsubscribe()
    emitter.emit("test_event", {"value": "test2"})
    assert callback.call_count == 1


def test_enum_and_name_are_interchangeable():
    emitter = EventEmitter()
    callback = MagicMock()

    emitter.on(EngineEventType.CARD_DRAWN, callback)
    emitter.emit("CARD_DRAWN", {"card": "A of ♠"})
    emitter.emit(EngineEventType.CARD_DRAWN, {"card": "2 of ♠"})

    assert callback.call_count == 2


def test_once_subscription():
    emitter = EventEmitter()
    callback = MagicMock()

    emitter.once("test_event", callback)
    emitter.emit("test_event", {"id": 1})
    emitter.emit("test_event", {"id": 2})

    callback.assert_called_once()
    assert callback.call_args[0][0]["id"] == 1


def test_on_any_subscription():
    emitter = EventEmitter()
    callback = MagicMock()

    unsubscribe = emitter.on_any(callback)
    emitter.emit("event1", {"id": 1})
    emitter.emit(EngineEventType.TURN_CHANGED, {"id": 2})

    assert callback.call_count == 2
    event_type, event_data = callback.call_args_list[0][0][0]
    assert event_type == "event1"
    assert event_data["id"] == 1
    assert callback.call_args_list[1][0][0][0] == "TURN_CHANGED"

    unsubscribe()
    emitter.emit("event3", {"id": 3})
    assert callback.call_count == 2


def test_emitter_priority():
    """Handlers run highest priority first."""
    emitter = EventEmitter()
    call_order = []

    emitter.on("test_event", lambda data: call_order.append("normal"), EventPriority.NORMAL)
    emitter.on("test_event", lambda data: call_order.append("low"), EventPriority.LOW)
    emitter.on("test_event", lambda data: call_order.append("critical"), EventPriority.CRITICAL)
    emitter.on("test_event", lambda data: call_order.append("high"), EventPriority.HIGH)
    emitter.on("test_event", lambda data: call_order.append("normal2"), EventPriority.NORMAL)

    emitter.emit("test_event", {})

    assert call_order == ["critical", "high", "normal", "normal2", "low"]


def test_remove_all_listeners():
    emitter = EventEmitter()
    callback1 = MagicMock()
    callback2 = MagicMock()

    emitter.on("event1", callback1)
    emitter.on(EngineEventType.GAME_CREATED, callback2)

    emitter.remove_all_listeners("event1")
    emitter.emit("event1", {"id": 1})
    emitter.emit(EngineEventType.GAME_CREATED, {"id": 2})
    callback1.assert_not_called()
    callback2.assert_called_once()

    emitter.remove_all_listeners()
    callback2.reset_mock()
    emitter.emit(EngineEventType.GAME_CREATED, {"id": 3})
    callback2.assert_not_called()


def test_emit_exceptions_are_caught(caplog):
    emitter = EventEmitter()

    def callback_raises_exception(data):
        raise ValueError("Test exception")

    callback_after = MagicMock()
    emitter.on("test_event", callback_raises_exception)
    emitter.on("test_event", callback_after)

    emitter.emit("test_event", {})

    callback_after.assert_called_once()
    assert "Error in event handler for test_event" in caplog.text


def test_listener_may_subscribe_during_emit():
    emitter = EventEmitter()
    late = MagicMock()

    emitter.once("test_event", lambda data: emitter.on("test_event", late))
    emitter.emit("test_event", {"id": 1})
    late.assert_not_called()

    emitter.emit("test_event", {"id": 2})
    late.assert_called_once_with({"id": 2})


def test_thread_safety():
    emitter = EventEmitter()
    count = {"value": 0}
    lock = threading.Lock()

    def increment_counter(data):
        with lock:
            count["value"] += 1

    emitter.on("test_event", increment_counter)

    threads = [
        threading.Thread(target=lambda: emitter.emit("test_event", {})) for _ in range(10)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert count["value"] == 10
