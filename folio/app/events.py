"""
Application Event Contracts
===========================
Typed events and a subscription bus for catalog, draft and publish signals.

Components register interest in an EventType; nothing patches rendered
output directly. A storage change or a published draft means "re-run the
merge", which the controller does before emitting CATALOG_CHANGED.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """High-level event categories."""

    CATALOG_CHANGED = "catalog_changed"
    DRAFT_PUBLISHED = "draft_published"
    STORAGE_CHANGED = "storage_changed"
    PUBLISH_STATE = "publish_state"
    LOG = "log"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class StorageChangedEvent:
    """The draft store behind `key` was rewritten, here or by another process."""

    event_type: EventType
    timestamp: str
    key: str


@dataclass(frozen=True)
class DraftPublishedEvent:
    """A local draft finished publishing; carries its book record."""

    event_type: EventType
    timestamp: str
    book: dict


@dataclass(frozen=True)
class CatalogChangedEvent:
    """The merged catalog was recomputed."""

    event_type: EventType
    timestamp: str
    entries: tuple


@dataclass(frozen=True)
class PublishStateEvent:
    """State transition of one publish step."""

    event_type: EventType
    timestamp: str
    path: str
    state: str
    message: str = ""


@dataclass(frozen=True)
class LogEvent:
    """Log message emitted for UI surfaces."""

    event_type: EventType
    timestamp: str
    level: str
    message: str


AppEvent = Union[StorageChangedEvent, DraftPublishedEvent, CatalogChangedEvent, PublishStateEvent, LogEvent]
Subscriber = Callable[[AppEvent], Optional[Awaitable[Any]]]


def make_storage_changed_event(key: str) -> StorageChangedEvent:
    return StorageChangedEvent(event_type=EventType.STORAGE_CHANGED, timestamp=_now_iso(), key=key)


def make_draft_published_event(book: dict) -> DraftPublishedEvent:
    return DraftPublishedEvent(event_type=EventType.DRAFT_PUBLISHED, timestamp=_now_iso(), book=dict(book))


def make_catalog_changed_event(entries: list[dict]) -> CatalogChangedEvent:
    return CatalogChangedEvent(event_type=EventType.CATALOG_CHANGED, timestamp=_now_iso(), entries=tuple(entries))


def make_publish_state_event(path: str, state: str, message: str = "") -> PublishStateEvent:
    """Create a normalized publish state event."""
    return PublishStateEvent(
        event_type=EventType.PUBLISH_STATE,
        timestamp=_now_iso(),
        path=path,
        state=str(state).lower(),
        message=message,
    )


def make_log_event(message: str, level: str = "info") -> LogEvent:
    """Create a normalized log event."""
    return LogEvent(
        event_type=EventType.LOG,
        timestamp=_now_iso(),
        level=level.lower(),
        message=message,
    )


class EventBus:
    """
    In-process publish/subscribe hub.

    Subscribers may be plain callables or coroutine functions; emit()
    awaits them in registration order.
    """

    def __init__(self):
        self._subscribers: dict[EventType, list[Subscriber]] = {}

    def subscribe(self, event_type: EventType, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for one event type.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers.get(event_type, []))

    async def emit(self, event: AppEvent) -> None:
        """Deliver an event to every subscriber of its type."""
        for callback in list(self._subscribers.get(event.event_type, [])):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {event.event_type.value}")

    def clear(self) -> None:
        self._subscribers.clear()
