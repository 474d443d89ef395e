from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    """Generic event container for broadcasting within the engine.

    Attributes:
        name: Event type/name string, typically from EventType.
        payload: Arbitrary payload associated with the event.
    """

    name: str
    payload: Any = None


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`.

    Disposing the handle removes the registration. Disposing twice is a no-op.
    """

    def __init__(self, bus: "EventBus", event_name: str, handler: Handler) -> None:
        self._bus = bus
        self.event_name = event_name
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            logger.debug("Subscription to '%s' already disposed", self.event_name)
            return
        self._active = False
        self._bus._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self._active else "disposed"
        return f"<Subscription {self.event_name!r} {_handler_name(self.handler)} {state}>"


class EventBus:
    """A lightweight publish/subscribe event bus.

    Each (event name, handler) pair can be registered at most once: subscribing
    an already registered handler returns the live handle instead of adding a
    second registration. Handlers run synchronously, in subscription order.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, Dict[Handler, Subscription]] = {}

    def subscribe(self, event_name: str, handler: Handler) -> Subscription:
        """Subscribe a handler for a given event name.

        Args:
            event_name: The event name to listen for.
            handler: A function accepting a single Event argument.

        Returns:
            The subscription handle; call ``unsubscribe()`` on it to detach.
        """
        if not callable(handler):
            raise TypeError("handler must be callable")
        handlers = self._subs.setdefault(event_name, {})
        existing = handlers.get(handler)
        if existing is not None:
            logger.debug("Handler %s already subscribed to '%s'", _handler_name(handler), event_name)
            return existing
        sub = Subscription(self, event_name, handler)
        handlers[handler] = sub
        logger.debug("Subscribed %s to '%s'", _handler_name(handler), event_name)
        return sub

    def is_subscribed(self, event_name: str, handler: Handler) -> bool:
        return handler in self._subs.get(event_name, {})

    def subscriber_count(self, event_name: str) -> int:
        return len(self._subs.get(event_name, {}))

    def publish(self, event_name: str, payload: Any = None) -> None:
        """Publish an event to all registered subscribers.

        Exceptions raised by a handler are logged and do not stop the others.
        """
        event = Event(name=event_name, payload=payload)
        handlers: List[Handler] = list(self._subs.get(event_name, {}))
        logger.debug("Publishing event '%s' to %d subscribers", event_name, len(handlers))
        for handler in handlers:
            if handler not in self._subs.get(event_name, {}):
                # Detached by an earlier handler during this publish
                continue
            try:
                handler(event)
            except Exception:  # noqa: BLE001 - one bad listener must not break the loop
                logger.exception("Unhandled exception in event subscriber for '%s'", event_name)

    def _remove(self, sub: Subscription) -> None:
        handlers = self._subs.get(sub.event_name)
        if handlers and handlers.get(sub.handler) is sub:
            del handlers[sub.handler]
            if not handlers:
                del self._subs[sub.event_name]
            logger.debug("Unsubscribed %s from '%s'", _handler_name(sub.handler), sub.event_name)


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)
