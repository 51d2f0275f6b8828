"""
Event system for the cardtable server.

Game sessions and invitations announce state changes through an
`EventEmitter`. Listeners (the websocket transport, audit logging, tests)
subscribe with a priority; a failing listener is logged and never breaks the
operation that emitted the event.
"""

from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, Union
import logging
import threading

logger = logging.getLogger("cardtable.events")


class EventPriority(Enum):
    """Priority levels for event handlers."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class EngineEventType(Enum):
    """
    Event types emitted by the session and invitation components.
    """

    # Session lifecycle
    GAME_CREATED = "game_created"
    GAME_FINISHED = "game_finished"
    GAME_REMOVED = "game_removed"

    # Player events
    PLAYER_JOINED = "player_joined"
    CARD_DRAWN = "card_drawn"
    ACE_CHANGED = "ace_changed"
    PLAYER_STOOD = "player_stood"
    PLAYER_BUSTED = "player_busted"
    TURN_CHANGED = "turn_changed"

    # Invitation events
    INVITATION_CREATED = "invitation_created"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"
    INVITATION_EXPIRED = "invitation_expired"


class EventEmitter:
    """
    Thread-safe event emitter.

    Features:
    - Supports event subscription with priorities
    - Allows once-only subscriptions
    - Supports subscribing to all events with event type filtering in handler
    - Handlers run outside the listener lock
    """

    def __init__(self):
        """Initialize the event emitter."""
        self._listeners = defaultdict(list)
        self._global_listeners = []
        self._listener_lock = threading.RLock()

    @staticmethod
    def _insert_by_priority(handlers: list, handler: dict) -> None:
        # Higher priorities first, ties keep subscription order.
        for i, existing in enumerate(handlers):
            if existing["priority"] < handler["priority"]:
                handlers.insert(i, handler)
                return
        handlers.append(handler)

    @staticmethod
    def _remove_callback(handlers: list, callback: Callable) -> None:
        for i, existing in enumerate(handlers):
            if existing["callback"] == callback:
                handlers.pop(i)
                return

    def on(
        self,
        event_type: Union[str, Enum],
        callback: Callable,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to subscribe to (string or enum)
            callback: Function to call when event occurs, signature: fn(event_data)
            priority: Priority level for this handler

        Returns:
            Unsubscribe function that can be called to remove this subscription
        """
        if isinstance(event_type, Enum):
            event_type = event_type.name

        handler = {"callback": callback, "priority": priority.value}
        with self._listener_lock:
            self._insert_by_priority(self._listeners[event_type], handler)

        def unsubscribe():
            with self._listener_lock:
                self._remove_callback(self._listeners[event_type], callback)

        return unsubscribe

    def once(
        self,
        event_type: Union[str, Enum],
        callback: Callable,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> Callable:
        """
        Subscribe to an event type for a single occurrence.

        Returns:
            Unsubscribe function that can be called to remove this subscription
        """
        unsubscribe_ref = []

        def one_time_handler(event_data):
            try:
                callback(event_data)
            finally:
                if unsubscribe_ref:
                    unsubscribe_ref[0]()

        unsubscribe_ref.append(self.on(event_type, one_time_handler, priority))
        return unsubscribe_ref[0]

    def on_any(
        self, callback: Callable, priority: EventPriority = EventPriority.NORMAL
    ) -> Callable:
        """
        Subscribe to all events.

        Args:
            callback: Function to call for any event, signature: fn((event_type, event_data))
            priority: Priority level for this handler

        Returns:
            Unsubscribe function that can be called to remove this subscription
        """
        handler = {"callback": callback, "priority": priority.value}
        with self._listener_lock:
            self._insert_by_priority(self._global_listeners, handler)

        def unsubscribe():
            with self._listener_lock:
                self._remove_callback(self._global_listeners, callback)

        return unsubscribe

    def emit(self, event_type: Union[str, Enum], data: Dict[str, Any]) -> None:
        """
        Emit an event to all registered listeners.

        Args:
            event_type: The type of event to emit
            data: The data to include with the event
        """
        if isinstance(event_type, Enum):
            event_type = event_type.name

        handlers_to_call = []
        with self._listener_lock:
            for handler in self._listeners.get(event_type, []):
                handlers_to_call.append((handler["callback"], data))
            for handler in self._global_listeners:
                handlers_to_call.append((handler["callback"], (event_type, data)))

        # Call handlers outside of the lock to avoid deadlocks
        for callback, args in handlers_to_call:
            try:
                callback(args)
            except Exception as e:
                logger.error(
                    f"Error in event handler for {event_type}: {e}", exc_info=True
                )

    def remove_all_listeners(self, event_type: Union[str, Enum, None] = None) -> None:
        """
        Remove all listeners for a specific event type or all events.

        Args:
            event_type: Optional event type. If None, removes all listeners for all events.
        """
        with self._listener_lock:
            if event_type is None:
                self._listeners.clear()
                self._global_listeners.clear()
            else:
                if isinstance(event_type, Enum):
                    event_type = event_type.name
                self._listeners[event_type].clear()
