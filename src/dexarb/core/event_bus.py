"""
Internal event bus for decoupled communication.

Carries side-channel notifications (diagnoses, retries, completed
cycles) from the pipeline to observers such as the diagnostics
aggregator, without either side holding a reference to the other.
"""

import inspect
import logging
from collections import Counter, defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Generic, TypeVar

from dexarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class EventType(Enum):
    """System event types."""

    # Resilience events
    ERROR_DIAGNOSED = auto()
    RETRY_SCHEDULED = auto()
    OPERATION_SUCCEEDED = auto()

    # Pipeline events
    SOURCE_FAILED = auto()
    CYCLE_COMPLETE = auto()
    OPPORTUNITY_FOUND = auto()


T = TypeVar("T")


@dataclass
class Event(Generic[T]):
    """Generic event with typed payload."""

    type: EventType
    payload: T
    timestamp_ms: int = field(default_factory=get_timestamp_ms)
    source: str = ""


EventHandler = Callable[[Event[Any]], Awaitable[None]]
SyncEventHandler = Callable[[Event[Any]], None]


@dataclass(slots=True, frozen=True)
class Subscription:
    """One registered handler."""

    handler: EventHandler | SyncEventHandler
    priority: int
    is_async: bool

    @property
    def sort_key(self) -> tuple[int, bool]:
        # Higher priority first; sync before async at equal priority
        return (-self.priority, self.is_async)


class EventBus:
    """
    Publish/subscribe bus for internal messaging.

    Features:
    - Async and sync handlers in one priority-ordered list per event type
    - Error isolation per handler
    - Per-type publish counts
    """

    def __init__(self) -> None:
        self._subscriptions: dict[EventType, list[Subscription]] = defaultdict(list)
        self._published: Counter[EventType] = Counter()

    def _add(self, event_type: EventType, subscription: Subscription) -> None:
        subscriptions = self._subscriptions[event_type]
        subscriptions.append(subscription)
        subscriptions.sort(key=lambda s: s.sort_key)

    def subscribe(
        self,
        event_type: EventType,
        handler: EventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe an async handler to an event type.

        Args:
            event_type: Event type to handle.
            handler: Coroutine function taking the event.
            priority: Higher runs earlier.

        Raises:
            TypeError: If the handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"async handler expected for {event_type.name}, got {handler!r}")
        self._add(event_type, Subscription(handler, priority, is_async=True))

    def subscribe_sync(
        self,
        event_type: EventType,
        handler: SyncEventHandler,
        priority: int = 0,
    ) -> None:
        """Subscribe a plain callable; it runs inline during publish."""
        self._add(event_type, Subscription(handler, priority, is_async=False))

    def unsubscribe(
        self,
        event_type: EventType,
        handler: EventHandler | SyncEventHandler,
    ) -> bool:
        """
        Remove the first subscription of a handler.

        Returns:
            True if handler was found and removed.
        """
        subscriptions = self._subscriptions[event_type]
        for i, subscription in enumerate(subscriptions):
            if subscription.handler is handler:
                del subscriptions[i]
                return True
        return False

    async def publish(self, event: Event[Any]) -> None:
        """Deliver an event to every subscriber in priority order."""
        self._published[event.type] += 1

        for subscription in list(self._subscriptions[event.type]):
            try:
                if subscription.is_async:
                    await subscription.handler(event)  # type: ignore[misc]
                else:
                    subscription.handler(event)
            except Exception as e:
                logger.error(f"Handler {subscription.handler!r} failed on {event.type.name}: {e}")

    def publish_sync(self, event: Event[Any]) -> None:
        """
        Deliver an event to sync subscribers only.

        Used from code paths that must not yield to the event loop.
        """
        self._published[event.type] += 1

        for subscription in list(self._subscriptions[event.type]):
            if subscription.is_async:
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(f"Handler {subscription.handler!r} failed on {event.type.name}: {e}")

    def clear(self, event_type: EventType | None = None) -> None:
        """Drop the subscriptions of one event type, or of all types."""
        if event_type is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(event_type, None)

    def handler_count(self, event_type: EventType) -> int:
        return len(self._subscriptions[event_type])

    def published_count(self, event_type: EventType) -> int:
        """Number of events of a type published so far."""
        return self._published[event_type]
