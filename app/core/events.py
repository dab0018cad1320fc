# app/core/events.py
import logging
import threading
import uuid
from collections import defaultdict
from typing import Any, Callable, Literal

from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

OrderEventType = Literal[
    "ORDER_CREATED",
    "ORDER_UPDATED",
    "ORDER_STATUS_CHANGED",
    "ORDER_DELETED",
]


class OrderEvent(SQLModel):
    """
    Payload pushed to kitchen displays. `order` is the JSON-ready order view.
    """

    type: OrderEventType
    tenant_id: uuid.UUID
    order_id: uuid.UUID
    order: dict[str, Any] | None = None


Subscriber = Callable[[OrderEvent], None]


class OrderEventBroadcaster:
    """
    In-process, tenant-scoped fan-out of order events.

    Delivery is at-most-once and best-effort: a subscriber that raises is
    logged and skipped, and emitting never fails the caller. Subscribers
    are called on the emitting thread and must not block.
    """

    def __init__(self):
        self._subscribers: dict[uuid.UUID, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, tenant_id: uuid.UUID, callback: Subscriber) -> Callable[[], None]:
        """
        Register `callback` for one tenant. Returns the matching unsubscribe.
        """
        with self._lock:
            self._subscribers[tenant_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                subscribers = self._subscribers.get(tenant_id)
                if subscribers and callback in subscribers:
                    subscribers.remove(callback)
                if not subscribers:
                    self._subscribers.pop(tenant_id, None)

        return unsubscribe

    def subscriber_count(self, tenant_id: uuid.UUID) -> int:
        with self._lock:
            return len(self._subscribers.get(tenant_id, ()))

    def emit(self, event: OrderEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event.tenant_id, ()))

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Order event subscriber failed for %s", event.type)


order_events = OrderEventBroadcaster()
