"""EventBus - change notification between the engine and its observers

Rules:
- the bus instance is owned by the caller and injected, never global
- propagation depth is limited to MAX_DEPTH
- within one emit chain, the same source may not re-emit the same event type
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Any, Set
from collections import defaultdict

from companion_engine.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # max nested emits within one chain


@dataclass
class GameEvent:
    """Event payload container

    Args:
        event_type: event type (see EventTypes)
        data: event data (ids plus, for companion events, the updated Companion)
        source: name of the emitting service
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    # set by the bus
    _depth: int = field(default=0, repr=False)


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """Synchronous event bus

    Usage:
        bus = EventBus()
        bus.subscribe("companion_updated", widget.refresh)
        bus.emit(GameEvent(event_type="companion_updated", data={...}, source="companion_service"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0
        self._emitted_in_chain: Set[str] = set()  # "source:event_type"

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)
        logger.debug(f"EventBus subscribe: {event_type} -> {handler.__qualname__}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers only log a warning."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(
                    f"EventBus unsubscribe: {event_type} -> {handler.__qualname__}"
                )
            except ValueError:
                logger.warning(
                    f"Handler not registered: {event_type} -> {handler.__qualname__}"
                )

    def emit(self, event: GameEvent) -> None:
        """Emit an event and call its handlers synchronously.

        Guards:
        1. events beyond MAX_DEPTH are dropped
        2. a repeated source:event_type inside one chain is dropped

        The chain ends when the outermost emit returns, so consecutive
        top-level emits of the same event are always delivered.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                f"EventBus depth exceeded ({MAX_DEPTH}): "
                f"{event.source}:{event.event_type} dropped"
            )
            return

        chain_key = f"{event.source}:{event.event_type}"
        if chain_key in self._emitted_in_chain:
            logger.warning(f"EventBus duplicate event blocked: {chain_key}")
            return

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug(f"EventBus: no subscribers for {event.event_type}")
            return

        self._emitted_in_chain.add(chain_key)
        event._depth = self._current_depth

        logger.debug(
            f"EventBus dispatch: {event.event_type} (source={event.source}, "
            f"depth={self._current_depth}, handlers={len(handlers)})"
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        f"EventBus handler error: {handler.__qualname__} "
                        f"(event={event.event_type})"
                    )
        finally:
            self._current_depth -= 1
            if self._current_depth == 0:
                self._emitted_in_chain.clear()

    def clear(self) -> None:
        """Drop every subscription (tests)."""
        self._handlers.clear()
        self._emitted_in_chain.clear()
        self._current_depth = 0

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers"""
        return sum(len(h) for h in self._handlers.values())
