"""Event distribution between the connector, pipeline and consumers."""

from .bus import Event, EventBus, EventChannel, EventTopic, LOSSY_TOPICS

__all__ = [
    "Event",
    "EventBus",
    "EventChannel",
    "EventTopic",
    "LOSSY_TOPICS",
]
