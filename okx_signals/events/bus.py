"""
Event Bus - Single-producer, multi-consumer event distribution.

Delivery:
- Synchronous handlers (``subscribe``) are called in registration order,
  inside the publisher's call. The core pipeline (aggregator, signal engine)
  is wired this way so a bar is fully processed before the next frame is read.
- Async channels (``open_channel``) receive events in publish order through
  an in-memory queue, for consumers that run in their own task.

Backpressure:
- Lossy topics (ticks, candle updates, clock skew warnings) are dropped for a
  channel once ``maxsize`` of them are pending there.
- Bars, signals and connection state changes are never dropped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set


logger = logging.getLogger(__name__)


class EventTopic(str, Enum):
    """Topics published on the bus."""
    TICK = "tick"
    CANDLE_UPDATE = "candle_update"
    BAR_CLOSED = "bar_closed"
    SIGNAL = "signal"
    CLOCK_SKEW = "clock_skew"
    CONNECTION_STATE = "connection_state"


LOSSY_TOPICS = frozenset({
    EventTopic.TICK,
    EventTopic.CANDLE_UPDATE,
    EventTopic.CLOCK_SKEW,
})


@dataclass(frozen=True)
class Event:
    """Envelope for everything published on the bus."""
    topic: EventTopic
    payload: Any
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Any], None]


class EventChannel:
    """
    Async consumer endpoint fed by the bus.

    ``get()`` returns the next Event, or None once the channel is closed and
    drained.
    """

    def __init__(self, topics: Set[EventTopic], maxsize: int):
        self.topics = topics
        self.maxsize = maxsize
        self.dropped = 0
        self._queue: "asyncio.Queue[Optional[Event]]" = asyncio.Queue()
        self._lossy_pending = 0
        self._closed = False

    def offer(self, event: Event) -> bool:
        """Enqueue event; returns False if it was dropped."""
        if self._closed:
            return False

        if event.topic in LOSSY_TOPICS:
            if self._lossy_pending >= self.maxsize:
                self.dropped += 1
                if self.dropped == 1 or self.dropped % 1000 == 0:
                    logger.warning(
                        "Slow consumer, dropping %s events (dropped=%d, maxsize=%d)",
                        event.topic.value, self.dropped, self.maxsize
                    )
                return False
            self._lossy_pending += 1

        self._queue.put_nowait(event)
        return True

    async def get(self) -> Optional[Event]:
        if self._closed and self._queue.empty():
            return None
        event = await self._queue.get()
        if event is not None and event.topic in LOSSY_TOPICS:
            self._lossy_pending -= 1
        return event

    def close(self) -> None:
        """Stop accepting events and wake up a waiting consumer."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventBus:
    """Typed publish/subscribe hub."""

    def __init__(self):
        self._handlers: Dict[EventTopic, List[Handler]] = {topic: [] for topic in EventTopic}
        self._channels: List[EventChannel] = []

    def subscribe(self, topic: EventTopic, handler: Handler) -> None:
        """
        Register a synchronous handler for a topic.

        Args:
            topic: Topic to listen on
            handler: Called with the event payload
        """
        self._handlers[topic].append(handler)

    def unsubscribe(self, topic: EventTopic, handler: Handler) -> None:
        if handler in self._handlers[topic]:
            self._handlers[topic].remove(handler)

    def open_channel(self, *topics: EventTopic, maxsize: int = 1000) -> EventChannel:
        """
        Open an async channel receiving the given topics.

        Must be called from within a running event loop's thread.
        """
        if not topics:
            raise ValueError("open_channel requires at least one topic")
        channel = EventChannel(set(topics), maxsize)
        self._channels.append(channel)
        return channel

    def close_channels(self) -> None:
        for channel in self._channels:
            channel.close()
        self._channels.clear()

    def publish(self, topic: EventTopic, payload: Any) -> None:
        """
        Deliver payload to all handlers and channels of the topic.

        A failing handler is logged and does not stop delivery to the others.
        """
        for handler in list(self._handlers[topic]):
            try:
                handler(payload)
            except Exception as e:
                logger.error("Event handler error on %s: %s", topic.value, e, exc_info=True)

        if self._channels:
            event = Event(topic=topic, payload=payload)
            for channel in self._channels:
                if topic in channel.topics:
                    channel.offer(event)
