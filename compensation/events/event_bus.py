# compensation/events/event_bus.py
"""
Event bus for decoupled communication between components.
"""
from typing import Dict, List, Callable, Any
import logging
import asyncio

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple in-process event bus.
    Handler failures are logged and never reach the emitter.
    """

    _instance = None
    _handlers: Dict[str, List[Callable]] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._handlers = {}
        return cls._instance

    def subscribe(self, eventName: str, handler: Callable):
        """Subscribe handler to event."""
        if eventName not in self._handlers:
            self._handlers[eventName] = []

        self._handlers[eventName].append(handler)
        logger.debug(f"Handler {handler.__name__} subscribed to {eventName}")

    async def emit(self, eventName: str, data: Dict[str, Any]):
        """Emit event to all subscribers."""
        if eventName not in self._handlers:
            return

        logger.debug(f"Emitting event {eventName} with data: {data}")

        for handler in list(self._handlers[eventName]):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(data)
                else:
                    handler(data)
            except Exception as e:
                logger.error(f"Error in handler {handler.__name__} for event {eventName}: {e}")

    def clear(self):
        """Clear all event handlers."""
        self._handlers.clear()


# Global event bus instance
eventBus = EventBus()


class CompensationEvents:
    """Standard compensation events."""

    PURCHASE_CREDITED = "purchase.credited"
    REFUND_CREDITED = "refund.credited"
    USER_ACTIVATED = "user.activated"

    USER_PLACED = "tree.user_placed"
    VOLUME_PROPAGATED = "volume.propagated"
    RSP_PROPAGATED = "rsp.propagated"

    PAYOUT_COMPLETED = "payout.completed"
    MONTHLY_STATS_CLEANED = "monthly_stats.cleaned"

    STAR_UPGRADED = "star.upgraded"
