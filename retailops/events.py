"""
Domain events for sales and inventory changes.

Provides a simple publish/subscribe bus that decouples the sale processor and
inventory ledger from their consumers (notifications, reporting refresh, etc.).

Usage:
    from retailops.events import EventBus, SaleEvent

    bus = EventBus()

    @bus.on(SaleEvent.SALE_RECORDED)
    async def handle_sale(data: dict):
        print(f"Order {data['order_id']} recorded")

    await bus.emit(SaleEvent.SALE_RECORDED, {"order_id": 1001})
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional

from retailops.observability import get_logger, get_correlation_id

logger = get_logger(__name__)

EventHandler = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]


class SaleEvent(Enum):
    """Events emitted by the sale processor, ledger and alerting engine."""

    SALE_RECORDED = "sale.recorded"
    SALE_REJECTED = "sale.rejected"
    STOCK_RESTOCKED = "inventory.restocked"
    LOW_STOCK_DETECTED = "alerts.low_stock"


@dataclass
class EventMetadata:
    """Metadata attached to every event."""

    timestamp: datetime = field(default_factory=datetime.now)
    correlation_id: Optional[str] = field(default_factory=get_correlation_id)
    source: str = "retailops"


@dataclass
class Event:
    """Wrapper for event data with metadata."""

    type: SaleEvent
    data: Dict[str, Any]
    metadata: EventMetadata = field(default_factory=EventMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.type.value,
            "data": self.data,
            "metadata": {
                "timestamp": self.metadata.timestamp.isoformat(),
                "correlation_id": self.metadata.correlation_id,
                "source": self.metadata.source,
            },
        }


class EventBus:
    """
    Async event bus.

    Handlers for one event run concurrently; a failing handler is logged
    and does not affect the others or the emitter.
    """

    def __init__(self, max_history: int = 100):
        self._handlers: Dict[SaleEvent, List[EventHandler]] = {}
        self._wildcard_handlers: List[EventHandler] = []
        self._history: List[Event] = []
        self._max_history = max_history

    def on(
        self, event_type: Optional[SaleEvent] = None
    ) -> Callable[[EventHandler], EventHandler]:
        """
        Decorator to register an event handler.

        Args:
            event_type: Event type to subscribe to, or None for all events
        """

        def decorator(handler: EventHandler) -> EventHandler:
            self.subscribe(event_type, handler)
            return handler

        return decorator

    def subscribe(self, event_type: Optional[SaleEvent], handler: EventHandler) -> None:
        if event_type is None:
            self._wildcard_handlers.append(handler)
            logger.debug(f"Registered wildcard handler: {handler.__name__}")
        else:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug(f"Registered handler {handler.__name__} for {event_type.value}")

    def unsubscribe(self, event_type: Optional[SaleEvent], handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event.

        Returns:
            True if handler was found and removed
        """
        handlers = self._wildcard_handlers if event_type is None else self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    async def emit(
        self,
        event_type: SaleEvent,
        data: Optional[Dict[str, Any]] = None,
        source: str = "retailops",
    ) -> Event:
        """
        Emit an event to all subscribed handlers.

        Returns:
            The emitted Event object
        """
        event = Event(
            type=event_type,
            data=data or {},
            metadata=EventMetadata(source=source),
        )

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = list(self._handlers.get(event_type, []))
        handlers.extend(self._wildcard_handlers)

        if not handlers:
            return event

        results = await asyncio.gather(
            *[handler(event.data) for handler in handlers],
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Handler {handler.__name__} failed for {event_type.value}: {result}",
                    extra={"event": event.to_dict()},
                )

        return event

    def get_history(
        self, event_type: Optional[SaleEvent] = None, limit: int = 20
    ) -> List[Dict[str, Any]]:
        """Get recent event history, optionally filtered by type."""
        history = self._history
        if event_type:
            history = [e for e in history if e.type == event_type]
        return [e.to_dict() for e in history[-limit:]]

    def clear_handlers(self) -> None:
        """Remove all handlers (useful for testing)."""
        self._handlers.clear()
        self._wildcard_handlers.clear()

    def clear_history(self) -> None:
        self._history.clear()


# Global event bus instance
events = EventBus()
