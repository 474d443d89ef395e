from .event_bus import Event, EventBus, Subscription
from .types import EventType

__all__ = [
    "Event",
    "EventBus",
    "EventType",
    "Subscription",
]
