"""
Event bus for invoicing domain events.

Synchronous in-process pub/sub. Handlers execute immediately in the same
thread as the publisher. Handler errors are logged but never propagate: the
primary operation (unit of work + audit) has already committed.
"""

import logging
from typing import Callable, Dict, List

from core.events import InvoicingEvent

logger = logging.getLogger(__name__)


class EventBus:
    """
    In-process event bus for invoicing domain events.

    Subscribe by event class or class name, publish by event instance.
    Handlers are called synchronously in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    @staticmethod
    def _key(event_type: str | type) -> str:
        return event_type if isinstance(event_type, str) else event_type.__name__

    def subscribe(self, event_type: str | type, callback: Callable):
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event class (or its name, e.g. 'InvoicePaid')
            callback: Function to call when event is published
        """
        self._subscribers.setdefault(self._key(event_type), []).append(callback)

    def unsubscribe(self, event_type: str | type, callback: Callable) -> bool:
        """Remove a subscription. Returns False if it was not registered."""
        callbacks = self._subscribers.get(self._key(event_type), [])
        if callback not in callbacks:
            return False
        callbacks.remove(callback)
        return True

    def publish(self, event: InvoicingEvent):
        """
        Publish an event to all subscribers of that type.

        Handler errors are logged with the event id and swallowed.
        """
        event_type = event.__class__.__name__

        for callback in self._subscribers.get(event_type, []):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                )
