"""In-process event bus.

The engine publishes device events here and collaborators (the WebSocket
stream, bridging code) subscribe to them. Nothing is persisted: an event
reaches the subscribers registered at publish time and is then gone.

Subscribers are called in registration order. Plain callables run inline;
coroutine callbacks are scheduled on the running loop in the same order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from uuid import uuid4

logger = logging.getLogger(__name__)

# Type alias for subscriber callbacks
EventCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


@dataclass
class Subscription:
    """Represents an active event subscription."""

    id: str = field(default_factory=lambda: uuid4().hex)
    event_types: list[str] = field(default_factory=list)
    callback: EventCallback | None = None


class EventBus:
    """Ordered, in-memory pub/sub bus."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._seq = 0

    @property
    def last_seq(self) -> int:
        return self._seq

    def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        source_id: str | None = None,
    ) -> int:
        """Deliver an event to matching subscribers. Returns its sequence number."""
        self._seq += 1
        event = {
            "seq": self._seq,
            "event_type": event_type,
            "payload": payload,
            "source_id": source_id,
        }

        for sub in list(self._subscriptions):
            if "*" not in sub.event_types and event_type not in sub.event_types:
                continue
            if sub.callback is None:
                continue
            try:
                result = sub.callback(event)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result)
            except Exception:
                logger.exception("Error delivering event to subscription %s", sub.id)

        return self._seq

    def subscribe(
        self,
        event_types: list[str],
        callback: EventCallback,
    ) -> Subscription:
        """Register a callback for the given event types.

        Use ``["*"]`` to subscribe to all events.

        Returns a ``Subscription`` that can be passed to ``unsubscribe()``.
        """
        sub = Subscription(event_types=event_types, callback=callback)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        self._subscriptions = [
            s for s in self._subscriptions if s.id != subscription.id
        ]

    def clear(self) -> None:
        """Drop every subscription."""
        self._subscriptions = []

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)
