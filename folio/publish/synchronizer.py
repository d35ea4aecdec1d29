"""
Publish Synchronizer
====================
Pushes local books to the remote content store and keeps the catalog
index consistent, under optimistic concurrency.

Each file is published by one step:

    IDLE -> READING -> WRITING -> DONE
                  \\          \\-> FAILED
                   \\-> FAILED

READING fetches the current version token (a missing file means
"create"). WRITING sends the new bytes with that token. A stale token
fails the step with a ConflictError; nothing is retried, the caller
re-reads and resubmits. Publishing a book runs cover, content and catalog
steps in order. The steps are not atomic together: content can land
without its catalog entry, which update_catalog() repairs on its own.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from folio.app.config import AppConfig
from folio.app.events import EventBus, make_publish_state_event
from folio.catalog.sources import parse_catalog
from folio.errors import FolioError, PublishTimeoutError, describe_failure
from folio.remote.base import IContentStore, RemoteFile, WriteResult
from folio.storage.export import safe_filename
from folio.storage.models import Book, CatalogEntry


logger = logging.getLogger(__name__)

T = TypeVar("T")


class PublishState(str, Enum):
    """Publish step lifecycle states."""
    IDLE = "idle"
    READING = "reading"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PublishOutcome:
    """Result of publishing one file."""
    path: str
    state: PublishState = PublishState.IDLE
    version_token: Optional[str] = None
    created: bool = False
    unchanged: bool = False
    error: Optional[FolioError] = None
    history: list[PublishState] = field(default_factory=lambda: [PublishState.IDLE])

    @property
    def ok(self) -> bool:
        return self.state == PublishState.DONE

    def describe(self) -> str:
        if self.ok:
            if self.unchanged:
                return f"{self.path}: already up to date"
            return f"{self.path}: {'created' if self.created else 'updated'}"
        if self.error is not None:
            return f"{self.path}: {describe_failure(self.error)}"
        return f"{self.path}: {self.state.value}"


@dataclass
class PublishReport:
    """Outcomes of the cover, content and catalog steps of one book."""
    book_id: str
    content_path: str
    cover: Optional[PublishOutcome] = None
    content: Optional[PublishOutcome] = None
    catalog: Optional[PublishOutcome] = None
    catalog_requested: bool = True

    @property
    def outcomes(self) -> list[PublishOutcome]:
        return [o for o in (self.cover, self.content, self.catalog) if o is not None]

    @property
    def content_published(self) -> bool:
        return self.content is not None and self.content.ok

    @property
    def needs_catalog_repair(self) -> bool:
        """Content is live but the catalog does not reference it yet."""
        if not self.content_published or not self.catalog_requested:
            return False
        return self.catalog is None or not self.catalog.ok

    @property
    def ok(self) -> bool:
        if not self.content_published:
            return False
        return all(o.ok for o in self.outcomes)

    @property
    def failure(self) -> Optional[PublishOutcome]:
        return next((o for o in self.outcomes if not o.ok), None)


def content_path(config: AppConfig, book: Book) -> str:
    return f"{config.content_dir}/{safe_filename(book.id)}.json"


def cover_path(config: AppConfig, book: Book) -> Optional[str]:
    if book.cover is None:
        return None
    return f"{config.content_dir}/{safe_filename(book.id)}/{safe_filename(book.cover.filename, 'cover.jpg')}"


def book_document(book: Book, cover: Optional[str] = None) -> bytes:
    """Published JSON document for a book, UTF-8 encoded."""
    document = {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "structure": book.structure.value,
        "cover": cover,
        "updated": book.updated_at.isoformat(),
        "chapters": [chapter.to_dict() for chapter in book.chapters],
    }
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def serialize_catalog(entries: list) -> bytes:
    return (json.dumps(entries, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def upsert_entry(entries: list, entry: CatalogEntry) -> list:
    """Replace the entry with the same path, or append it."""
    merged = []
    replaced = False
    for item in entries:
        if isinstance(item, Mapping) and item.get("path") == entry.path:
            if not replaced:
                merged.append(entry.to_dict())
                replaced = True
            continue
        merged.append(item)
    if not replaced:
        merged.append(entry.to_dict())
    return merged


class PublishSynchronizer:
    """
    Runs publish steps against a content store.

    Writes are never retried and never cancelled once submitted; a
    configured publish_timeout only stops waiting for them.
    """

    def __init__(self, store: IContentStore, config: AppConfig, events: Optional[EventBus] = None):
        self.store = store
        self.config = config
        self.events = events
        self._inflight: set[asyncio.Future] = set()

    # ==================== Step machinery ====================

    async def _transition(self, outcome: PublishOutcome, state: PublishState, message: str = "") -> None:
        outcome.state = state
        outcome.history.append(state)
        logger.debug(f"{outcome.path}: {state.value} {message}".rstrip())
        if self.events is not None:
            await self.events.emit(make_publish_state_event(outcome.path, state.value, message))

    async def _bounded_read(self, read: Awaitable[T], path: str) -> T:
        timeout = self.config.publish_timeout
        if timeout is None:
            return await read
        try:
            return await asyncio.wait_for(read, timeout)
        except asyncio.TimeoutError:
            raise PublishTimeoutError(timeout, path=path)

    async def _bounded_write(self, write: Awaitable[WriteResult], path: str) -> WriteResult:
        task = asyncio.ensure_future(write)
        self._inflight.add(task)
        task.add_done_callback(self._write_finished)
        timeout = self.config.publish_timeout
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{path}: write still running after {timeout:g}s, no longer waiting")
            raise PublishTimeoutError(timeout, path=path)

    def _write_finished(self, task: asyncio.Future) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Write task ended with {error!r}")

    async def drain(self) -> None:
        """Wait for writes that outlived their timeout."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run_step(
        self,
        path: str,
        build: Callable[[Optional[RemoteFile]], Optional[bytes]],
        message: str,
    ) -> PublishOutcome:
        """
        One read-modify-write cycle.

        build() receives the current file (None if absent) and returns the
        bytes to write, or None when the file is already up to date.
        """
        outcome = PublishOutcome(path=path)
        try:
            await self._transition(outcome, PublishState.READING)
            current = await self._bounded_read(self.store.read_file(path), path)
            data = build(current)

            if data is None and current is not None:
                outcome.version_token = current.version_token
                outcome.unchanged = True
                await self._transition(outcome, PublishState.DONE, "unchanged")
                return outcome

            expected = current.version_token if current is not None else None
            await self._transition(outcome, PublishState.WRITING, "update" if expected else "create")
            result = await self._bounded_write(
                self.store.write_file(path, data, message, expected_token=expected),
                path,
            )
            outcome.version_token = result.version_token
            outcome.created = expected is None
            await self._transition(outcome, PublishState.DONE)
            logger.info(f"Published {path}")
        except asyncio.CancelledError:
            outcome.state = PublishState.FAILED
            outcome.history.append(PublishState.FAILED)
            raise
        except FolioError as exc:
            outcome.error = exc
            await self._transition(outcome, PublishState.FAILED, exc.kind)
            logger.error(f"Publishing {path} failed: {exc}")
        return outcome

    # ==================== Public operations ====================

    async def publish_file(self, path: str, content: bytes, message: str) -> PublishOutcome:
        """Create or update one file with the given bytes."""

        def build(current: Optional[RemoteFile]) -> Optional[bytes]:
            if current is not None and current.content == content:
                return None
            return content

        return await self._run_step(path, build, message)

    async def update_catalog(self, entry: CatalogEntry, title: Optional[str] = None) -> PublishOutcome:
        """
        Upsert one entry in the catalog index.

        A missing catalog is created. Re-submitting the same entry is a
        no-op, so this is safe to re-run after a partial publish.
        """
        path = self.config.catalog_path

        def build(current: Optional[RemoteFile]) -> Optional[bytes]:
            entries = [] if current is None else parse_catalog(current.content, path=path)
            data = serialize_catalog(upsert_entry(entries, entry))
            if current is not None and data == current.content:
                return None
            return data

        message = self.config.catalog_message.format(title=title or entry.title or entry.path)
        return await self._run_step(path, build, message)

    async def catalog_has_entry(self, path: str) -> bool:
        """Whether the remote catalog references the given content path."""
        remote_file = await self._bounded_read(self.store.read_file(self.config.catalog_path), self.config.catalog_path)
        if remote_file is None:
            return False
        entries = parse_catalog(remote_file.content, path=self.config.catalog_path)
        return any(isinstance(e, Mapping) and e.get("path") == path for e in entries)

    async def publish_book(self, book: Book, update_catalog: bool = True) -> PublishReport:
        """
        Publish cover, content document and catalog entry, stopping at
        the first failed step.
        """
        report = PublishReport(
            book_id=book.id,
            content_path=content_path(self.config, book),
            catalog_requested=update_catalog,
        )
        message = self.config.commit_message.format(title=book.title or book.id)

        cover = cover_path(self.config, book)
        if cover is not None:
            report.cover = await self.publish_file(cover, book.cover.data, message)
            if not report.cover.ok:
                return report

        report.content = await self.publish_file(report.content_path, book_document(book, cover), message)
        if not report.content.ok or not update_catalog:
            return report

        entry = CatalogEntry.from_book(book, report.content_path)
        report.catalog = await self.update_catalog(entry, title=book.title)
        if report.needs_catalog_repair:
            logger.warning(f"{report.content_path} is live without a catalog entry; re-run the catalog update")
        return report
