"""
JSON Draft Repository
=====================
Concrete implementation of IDraftRepository backed by one JSON file.

The whole collection is read, modified and rewritten on every call under
an asyncio lock, so every operation sees a consistent snapshot. Writes go
to a temporary sibling first and are renamed into place, so a failed write
never leaves a half-overwritten store behind.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Callable, Optional, TypeVar

import aiofiles

from folio.app.events import EventBus, make_storage_changed_event
from folio.errors import NotFoundError, SerializationError, ValidationError
from folio.storage.export import BookArchive, export_book
from folio.storage.models import Book, BookStructure, Chapter, Cover, utc_now
from folio.storage.repository import IDraftRepository


logger = logging.getLogger(__name__)

T = TypeVar("T")

BOOK_FIELDS = {"title", "author", "structure", "published"}
CHAPTER_FIELDS = {"title", "content"}


def _new_id(prefix: str, taken: set[str]) -> str:
    while True:
        candidate = f"{prefix}-{uuid.uuid4().hex[:12]}"
        if candidate not in taken:
            return candidate


class JSONDraftRepository(IDraftRepository):
    """
    Local draft store persisted as a JSON array of books.

    Malformed or unparseable files load as an empty collection; the
    editor keeps working on corrupt storage.
    """

    def __init__(
        self,
        path: Path | str,
        events: Optional[EventBus] = None,
        storage_key: Optional[str] = None,
    ):
        """
        Initialize the repository.

        Args:
            path: JSON file holding the collection
            events: Bus notified with STORAGE_CHANGED after each write
            storage_key: Key carried by change events (defaults to the file stem)
        """
        self.path = Path(path)
        self.storage_key = storage_key or self.path.stem
        self._events = events
        self._lock = asyncio.Lock()
        self._last_stamp = self._stamp()

    # ==================== Persistence ====================

    def _stamp(self) -> Optional[tuple[int, int]]:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    async def _load(self) -> list[Book]:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise SerializationError("could not read drafts", details=str(exc), path=str(self.path)) from exc

        if not raw.strip():
            return []

        try:
            records = json.loads(raw)
        except ValueError as exc:
            logger.warning(f"Draft store {self.path} is not valid JSON, treating as empty: {exc}")
            return []
        if not isinstance(records, list):
            logger.warning(f"Draft store {self.path} does not hold a list, treating as empty")
            return []

        books = []
        for record in records:
            try:
                books.append(Book.from_dict(record))
            except (ValidationError, ValueError, TypeError, AttributeError) as exc:
                logger.warning(f"Skipping malformed draft record in {self.path}: {exc}")
        return books

    async def _save(self, books: list[Book]) -> None:
        try:
            payload = json.dumps([book.to_dict() for book in books], ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise SerializationError("could not serialize drafts", details=str(exc), path=str(self.path)) from exc

        temp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
                await f.flush()
            os.replace(temp_path, self.path)
        except OSError as exc:
            if temp_path.exists():
                temp_path.unlink()
            raise SerializationError("could not write drafts", details=str(exc), path=str(self.path)) from exc

        self._last_stamp = self._stamp()
        logger.debug(f"Saved {len(books)} draft(s) to {self.path}")

    async def _read(self, reader: Callable[[list[Book]], T]) -> T:
        async with self._lock:
            return reader(await self._load())

    async def _mutate(self, mutation: Callable[[list[Book]], tuple[T, bool]]) -> T:
        """
        Run a read-modify-write cycle over the whole collection.

        The mutation returns (result, changed); unchanged collections are
        not rewritten.
        """
        async with self._lock:
            books = await self._load()
            result, changed = mutation(books)
            if changed:
                await self._save(books)
        if changed:
            await self._notify()
        return result

    async def _notify(self) -> None:
        if self._events is not None:
            await self._events.emit(make_storage_changed_event(self.storage_key))

    async def poll_external_change(self) -> bool:
        """
        Detect a write made by another process since our last look.

        Returns:
            True if a change was seen (and STORAGE_CHANGED emitted)
        """
        stamp = self._stamp()
        if stamp == self._last_stamp:
            return False
        self._last_stamp = stamp
        logger.debug(f"External change detected on {self.path}")
        await self._notify()
        return True

    async def watch_storage(self, interval: float = 1.0, stop: Optional[asyncio.Event] = None) -> None:
        """Poll for external writes until stop is set or the task is cancelled."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.poll_external_change()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    # ==================== Lookup helpers ====================

    @staticmethod
    def _require_book(books: list[Book], book_id: str) -> Book:
        for book in books:
            if book.id == book_id:
                return book
        raise NotFoundError("book", book_id)

    @staticmethod
    def _require_chapter(book: Book, chapter_id: str) -> Chapter:
        chapter = book.find_chapter(chapter_id)
        if chapter is None:
            raise NotFoundError("chapter", chapter_id)
        return chapter

    # ==================== Book Operations ====================

    async def list_books(self) -> list[Book]:
        return await self._read(lambda books: books)

    async def get_book(self, book_id: str) -> Optional[Book]:
        def find(books: list[Book]) -> Optional[Book]:
            return next((b for b in books if b.id == book_id), None)
        return await self._read(find)

    async def create_book(self, title: str = "Untitled", author: str = "") -> Book:
        def create(books: list[Book]) -> tuple[Book, bool]:
            now = utc_now()
            book = Book(
                id=_new_id("bk", {b.id for b in books}),
                title=title.strip() or "Untitled",
                author=author.strip(),
                created_at=now,
                updated_at=now,
            )
            books.insert(0, book)
            return book, True

        book = await self._mutate(create)
        logger.info(f"Created draft {book.id}")
        return book

    async def update_book(self, book_id: str, **fields) -> Book:
        unknown = set(fields) - BOOK_FIELDS
        if unknown:
            raise ValidationError("unknown book fields", details=", ".join(sorted(unknown)))

        changes = {}
        if "title" in fields:
            changes["title"] = str(fields["title"] or "").strip()
        if "author" in fields:
            changes["author"] = str(fields["author"] or "").strip()
        if "structure" in fields:
            try:
                changes["structure"] = BookStructure(fields["structure"])
            except ValueError:
                raise ValidationError(f"unknown structure {fields['structure']!r}")
        if "published" in fields:
            if not isinstance(fields["published"], bool):
                raise ValidationError("published must be a boolean")
            changes["published"] = fields["published"]

        def update(books: list[Book]) -> tuple[Book, bool]:
            book = self._require_book(books, book_id)
            for name, value in changes.items():
                setattr(book, name, value)
            book.touch()
            return book, True

        return await self._mutate(update)

    async def delete_book(self, book_id: str) -> bool:
        def delete(books: list[Book]) -> tuple[bool, bool]:
            remaining = [b for b in books if b.id != book_id]
            if len(remaining) == len(books):
                return False, False
            books[:] = remaining
            return True, True

        deleted = await self._mutate(delete)
        if deleted:
            logger.info(f"Deleted draft {book_id}")
        return deleted

    async def set_cover(self, book_id: str, data: bytes, filename: str) -> Book:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ValidationError("cover data must be bytes")
        cover = Cover.from_upload(bytes(data), filename or "cover.jpg")

        def apply(books: list[Book]) -> tuple[Book, bool]:
            book = self._require_book(books, book_id)
            book.cover = cover
            book.touch()
            return book, True

        return await self._mutate(apply)

    async def remove_cover(self, book_id: str) -> Book:
        def apply(books: list[Book]) -> tuple[Book, bool]:
            book = self._require_book(books, book_id)
            if book.cover is None:
                return book, False
            book.cover = None
            book.touch()
            return book, True

        return await self._mutate(apply)

    # ==================== Chapter Operations ====================

    async def add_chapter(self, book_id: str, title: str, content: str = "") -> Chapter:
        title = (title or "").strip()
        if not title:
            raise ValidationError("chapter title is required")

        def add(books: list[Book]) -> tuple[Chapter, bool]:
            book = self._require_book(books, book_id)
            chapter = Chapter(
                id=_new_id("ch", {c.id for c in book.chapters}),
                title=title,
                content=content or "",
            )
            book.chapters.append(chapter)
            book.touch()
            return chapter, True

        return await self._mutate(add)

    async def update_chapter(self, book_id: str, chapter_id: str, **fields) -> Chapter:
        unknown = set(fields) - CHAPTER_FIELDS
        if unknown:
            raise ValidationError("unknown chapter fields", details=", ".join(sorted(unknown)))
        if "title" in fields and not str(fields["title"] or "").strip():
            raise ValidationError("chapter title is required")

        def update(books: list[Book]) -> tuple[Chapter, bool]:
            book = self._require_book(books, book_id)
            chapter = self._require_chapter(book, chapter_id)
            if "title" in fields:
                chapter.title = str(fields["title"]).strip()
            if "content" in fields:
                chapter.content = str(fields["content"] or "")
            book.touch()
            return chapter, True

        return await self._mutate(update)

    async def delete_chapter(self, book_id: str, chapter_id: str) -> None:
        def delete(books: list[Book]) -> tuple[None, bool]:
            book = self._require_book(books, book_id)
            chapter = self._require_chapter(book, chapter_id)
            book.chapters.remove(chapter)
            book.touch()
            return None, True

        await self._mutate(delete)

    async def move_chapter(self, book_id: str, from_index: int, to_index: int) -> bool:
        def move(books: list[Book]) -> tuple[bool, bool]:
            book = self._require_book(books, book_id)
            count = len(book.chapters)
            if not (0 <= to_index < count and 0 <= from_index < count) or from_index == to_index:
                return False, False
            chapter = book.chapters.pop(from_index)
            book.chapters.insert(to_index, chapter)
            book.touch()
            return True, True

        return await self._mutate(move)

    # ==================== Export ====================

    async def export_book(self, book_id: str) -> BookArchive:
        book = await self.get_book(book_id)
        if book is None:
            raise NotFoundError("book", book_id)
        return export_book(book)
