import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from loguru import logger

from timeblock_pro.schema import ActiveBlockSnapshot, TimerSession


@dataclass(frozen=True)
class BlockStarted:
    snapshot: ActiveBlockSnapshot
    at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class BlockEnded:
    snapshot: ActiveBlockSnapshot
    at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TimerCompleted:
    session: TimerSession | None
    at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class DataChanged:
    at: datetime = field(default_factory=datetime.now)


Handler = Callable[[Any], None]


class Subscription:
    """Handle returned by ``EventBus.subscribe``; closing it unsubscribes."""

    def __init__(self, bus: "EventBus", event_type: type, handler: Handler):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self.closed = False

    def close(self):
        if not self.closed:
            self._bus._unsubscribe(self)
            self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class EventBus:
    """Synchronous publish/subscribe channel keyed by event class."""

    def __init__(self):
        self._handlers: dict[type, list[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: type, handler: Handler) -> Subscription:
        sub = Subscription(self, event_type, handler)
        with self._lock:
            self._handlers[event_type].append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription):
        with self._lock:
            subs = self._handlers.get(sub.event_type, [])
            if sub in subs:
                subs.remove(sub)

    def publish(self, event: Any):
        with self._lock:
            subs = list(self._handlers.get(type(event), []))
        for sub in subs:
            try:
                sub.handler(event)
            except Exception as e:
                logger.exception(f"Handler for {type(event).__name__} failed: {e}")
