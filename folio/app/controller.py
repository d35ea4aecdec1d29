"""
Application Controller
======================
Central controller for Folio business logic.

The renderer reads the merged catalog from here and sends every write
(create, edit, delete, reorder, export, publish) through here; it never
mutates merged records directly.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from folio.app.config import AppConfig
from folio.app.events import (
    AppEvent,
    EventBus,
    EventType,
    make_catalog_changed_event,
    make_draft_published_event,
)
from folio.catalog.merger import CatalogMerger
from folio.catalog.sources import content_store_source, url_source
from folio.errors import NotFoundError, ValidationError
from folio.publish.session import PublishSession
from folio.publish.synchronizer import PublishOutcome, PublishReport, PublishSynchronizer, content_path
from folio.remote.base import IContentStore
from folio.storage.export import BookArchive
from folio.storage.json_repo import JSONDraftRepository
from folio.storage.models import Book, CatalogEntry, Chapter
from folio.storage.repository import IDraftRepository


logger = logging.getLogger(__name__)


class AppController:
    """
    Central controller for the editor and publisher.

    Responsibilities:
        - Draft management (books, chapters, covers, export)
        - Merged catalog for the renderer
        - Publish sessions and publishing
        - Re-running the merge on storage and publish signals
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        drafts: Optional[IDraftRepository] = None,
        store: Optional[IContentStore] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Initialize controller.

        Args:
            config: Application configuration
            drafts: Draft store (defaults to the JSON file under data_dir)
            store: Content store to publish to (defaults to one built by the session)
            events: Event bus shared with the renderer
        """
        self.config = config or AppConfig()
        self.events = events or EventBus()
        self.drafts = drafts or JSONDraftRepository(
            self.config.drafts_path,
            events=self.events,
            storage_key=self.config.storage_key,
        )
        self._store_override = store
        self.session: Optional[PublishSession] = None
        self.last_catalog: list[dict] = []
        self._watch_stop: Optional[asyncio.Event] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._unsubscribers: list = []

    # ==================== Session ====================

    def open_session(self, token: Optional[str] = None) -> PublishSession:
        """Start a publishing session, replacing any open one."""
        if self.session is not None and self.session.is_active:
            logger.debug("Replacing open publish session")
        self.session = PublishSession(self.config, token=token, store=self._store_override)
        return self.session

    async def close_session(self) -> None:
        """Disconnect: clear the token and release the store."""
        if self.session is not None:
            await self.session.close()
        self.session = None

    def _active_session(self) -> PublishSession:
        if self.session is None or not self.session.is_active:
            return self.open_session()
        return self.session

    def _synchronizer(self) -> PublishSynchronizer:
        return PublishSynchronizer(self._active_session().store, self.config, events=self.events)

    # ==================== Catalog ====================

    def _remote_source(self):
        if self.config.catalog_url:
            return url_source(self.config.catalog_url, timeout=self.config.request_timeout)
        if self._store_override is not None or self.config.has_remote:
            session = self._active_session()
            return content_store_source(session.store, self.config.catalog_path)
        return None

    async def get_merged_catalog(self) -> list[dict]:
        """Ordered sequence of book-like records for the renderer."""
        merger = CatalogMerger(self.drafts, fetch_remote=self._remote_source())
        self.last_catalog = await merger.get_merged_catalog()
        return self.last_catalog

    async def refresh_catalog(self) -> list[dict]:
        """Re-run the merge and announce the result."""
        catalog = await self.get_merged_catalog()
        await self.events.emit(make_catalog_changed_event(catalog))
        return catalog

    async def _on_catalog_input_changed(self, event: AppEvent) -> None:
        logger.debug(f"{event.event_type.value}: re-running catalog merge")
        await self.refresh_catalog()

    async def start_watching(self, interval: float = 1.0) -> None:
        """Watch the draft store for writes made by other processes."""
        if self._watch_task is not None or not isinstance(self.drafts, JSONDraftRepository):
            return
        self._watch_stop = asyncio.Event()
        self._watch_task = asyncio.create_task(self.drafts.watch_storage(interval, self._watch_stop))

    async def stop_watching(self) -> None:
        if self._watch_task is None:
            return
        self._watch_stop.set()
        await self._watch_task
        self._watch_task = None
        self._watch_stop = None

    # ==================== Drafts ====================

    async def list_drafts(self) -> list[Book]:
        return await self.drafts.list_books()

    async def get_draft(self, book_id: str) -> Book:
        book = await self.drafts.get_book(book_id)
        if book is None:
            raise NotFoundError("book", book_id)
        return book

    async def create_book(self, title: str = "Untitled", author: str = "") -> Book:
        book = await self.drafts.create_book(title=title, author=author)
        if self.session is not None:
            self.session.select(book.id)
        return book

    async def update_book(self, book_id: str, **fields) -> Book:
        return await self.drafts.update_book(book_id, **fields)

    async def delete_book(self, book_id: str) -> bool:
        deleted = await self.drafts.delete_book(book_id)
        if self.session is not None and self.session.selected_book_id == book_id:
            self.session.select(None)
        return deleted

    async def set_cover(self, book_id: str, cover_file: Path) -> Book:
        cover_file = Path(cover_file)
        if not cover_file.is_file():
            raise ValidationError("cover file not found", path=str(cover_file))
        return await self.drafts.set_cover(book_id, cover_file.read_bytes(), cover_file.name)

    async def add_chapter(self, book_id: str, title: str, content: str = "") -> Chapter:
        return await self.drafts.add_chapter(book_id, title, content)

    async def update_chapter(self, book_id: str, chapter_id: str, **fields) -> Chapter:
        return await self.drafts.update_chapter(book_id, chapter_id, **fields)

    async def delete_chapter(self, book_id: str, chapter_id: str) -> None:
        await self.drafts.delete_chapter(book_id, chapter_id)

    async def move_chapter(self, book_id: str, from_index: int, to_index: int) -> bool:
        return await self.drafts.move_chapter(book_id, from_index, to_index)

    async def export_book(self, book_id: str, output_dir: Optional[Path] = None) -> tuple[BookArchive, Optional[Path]]:
        """
        Export a draft; also writes the zip when output_dir is given.

        Returns:
            (archive, zip path or None)
        """
        archive = await self.drafts.export_book(book_id)
        written = archive.write_zip(output_dir) if output_dir is not None else None
        return archive, written

    # ==================== Publishing ====================

    async def publish(self, book_id: str, update_catalog: bool = True) -> PublishReport:
        """
        Publish a draft and mark it published locally once its content is live.

        The published flag is set before the documents are built, so the
        pushed `updated` stamp matches the stored draft; it is cleared
        again if the content never lands.
        """
        book = await self.get_draft(book_id)
        self._active_session().select(book_id)
        synchronizer = self._synchronizer()

        newly_published = not book.published
        if newly_published:
            book = await self.drafts.update_book(book_id, published=True)
        report = await synchronizer.publish_book(book, update_catalog=update_catalog)

        if report.content_published:
            await self.events.emit(make_draft_published_event(book.to_record()))
        else:
            if newly_published:
                await self.drafts.update_book(book_id, published=False)
            failure = report.failure
            logger.error(f"Publishing {book_id} failed: {failure.describe() if failure else 'unknown'}")
        return report

    async def repair_catalog(self, book_id: str) -> PublishOutcome:
        """Re-run only the catalog step for an already published book."""
        book = await self.get_draft(book_id)
        entry = CatalogEntry.from_book(book, content_path(self.config, book))
        return await self._synchronizer().update_catalog(entry, title=book.title)

    async def catalog_lists(self, book_id: str) -> bool:
        """Whether the remote catalog references this book's content."""
        book = await self.get_draft(book_id)
        return await self._synchronizer().catalog_has_entry(content_path(self.config, book))

    # ==================== Lifecycle ====================

    async def start(self, watch_interval: Optional[float] = None) -> list[dict]:
        """
        Begin serving a renderer: re-merge on storage and publish signals.

        Args:
            watch_interval: Poll interval for writes by other processes, None to skip

        Returns:
            The initial merged catalog
        """
        if not self._unsubscribers:
            self._unsubscribers = [
                self.events.subscribe(EventType.STORAGE_CHANGED, self._on_catalog_input_changed),
                self.events.subscribe(EventType.DRAFT_PUBLISHED, self._on_catalog_input_changed),
            ]
        if watch_interval is not None:
            await self.start_watching(watch_interval)
        return await self.refresh_catalog()

    async def cleanup(self) -> None:
        """Stop watchers, close the session, drop subscriptions."""
        await self.stop_watching()
        await self.close_session()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
