"""Event emitter implementation using Observer Pattern."""
from typing import Dict, List, Callable, Optional

from ...logging import get_logger


class EventEmitter:
    """
    Event emitter using Observer Pattern.

    Listeners are observers only: an exception raised by one is logged
    and does not interrupt the emitting upload.
    """

    def __init__(self, logger_name: str = 'drivepush.events'):
        """Initializes event emitter."""
        self._events: Dict[str, List[Callable]] = {}
        self._logger = get_logger(logger_name)

    def on(self, event: str, callback: Callable) -> 'EventEmitter':
        """Registers an event handler."""
        self._events.setdefault(event, []).append(callback)
        return self

    def emit(self, event: str, *args, **kwargs) -> None:
        """Emits an event."""
        for callback in list(self._events.get(event, ())):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                self._logger.warning(f"Listener for '{event}' failed: {e}")

    def off(self, event: str, callback: Optional[Callable] = None) -> 'EventEmitter':
        """Removes an event handler."""
        if event not in self._events:
            return self

        if callback is None:
            del self._events[event]
        else:
            self._events[event] = [cb for cb in self._events[event] if cb != callback]

        return self

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, ()))
