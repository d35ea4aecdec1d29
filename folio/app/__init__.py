"""
Application Module
==================
Configuration and event contracts shared by the controller and surfaces.

The controller lives in folio.app.controller and is imported from there,
since it depends on the storage and publish layers that use these events.
"""

from .config import AppConfig
from .events import (
    AppEvent,
    CatalogChangedEvent,
    DraftPublishedEvent,
    EventBus,
    EventType,
    LogEvent,
    PublishStateEvent,
    StorageChangedEvent,
)

__all__ = [
    "AppConfig",
    "AppEvent",
    "EventBus",
    "EventType",
    "CatalogChangedEvent",
    "DraftPublishedEvent",
    "LogEvent",
    "PublishStateEvent",
    "StorageChangedEvent",
]
