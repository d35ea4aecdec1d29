"""
Repository Pattern Interface
============================
Abstract base class for local draft storage operations.
Enables swapping storage backends (JSON file, browser-like key/value, etc.)
"""

from abc import ABC, abstractmethod
from typing import Optional

from folio.storage.export import BookArchive
from folio.storage.models import Book, Chapter


class IDraftRepository(ABC):
    """
    Abstract repository interface for the local draft store.

    Every write persists the whole collection; implementations never
    expose a half-written state.

    Implementations:
        - JSONDraftRepository: single JSON file per device (current)
    """

    # ==================== Book Operations ====================

    @abstractmethod
    async def list_books(self) -> list[Book]:
        """
        List all books, most recently created first.

        Returns:
            Books in collection order
        """
        pass

    @abstractmethod
    async def get_book(self, book_id: str) -> Optional[Book]:
        """
        Get a book by ID.

        Args:
            book_id: Book identifier

        Returns:
            Book if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_book(self, title: str = "Untitled", author: str = "") -> Book:
        """
        Create a book at the front of the collection.

        Args:
            title: Initial title
            author: Initial author

        Returns:
            Created book with assigned ID and timestamps
        """
        pass

    @abstractmethod
    async def update_book(self, book_id: str, **fields) -> Book:
        """
        Update book fields and refresh updated_at.

        Args:
            book_id: Book to update
            **fields: title, author, structure, published

        Returns:
            Updated book

        Raises:
            NotFoundError: book_id is unknown
            ValidationError: unknown field or bad value
        """
        pass

    @abstractmethod
    async def delete_book(self, book_id: str) -> bool:
        """
        Delete a book, its chapters and its cover.

        Args:
            book_id: Book to delete

        Returns:
            True if deleted, False if it was already absent
        """
        pass

    @abstractmethod
    async def set_cover(self, book_id: str, data: bytes, filename: str) -> Book:
        """
        Replace the cover blob.

        Args:
            book_id: Book to update
            data: Any binary content
            filename: Original filename of the blob

        Returns:
            Updated book
        """
        pass

    @abstractmethod
    async def remove_cover(self, book_id: str) -> Book:
        """Drop the cover blob."""
        pass

    # ==================== Chapter Operations ====================

    @abstractmethod
    async def add_chapter(self, book_id: str, title: str, content: str = "") -> Chapter:
        """
        Append a chapter to the end of the book.

        Args:
            book_id: Parent book
            title: Chapter title, must be non-empty after trimming
            content: Initial body

        Returns:
            Created chapter
        """
        pass

    @abstractmethod
    async def update_chapter(self, book_id: str, chapter_id: str, **fields) -> Chapter:
        """
        Update chapter title and/or content.

        Raises:
            NotFoundError: either id is unknown
        """
        pass

    @abstractmethod
    async def delete_chapter(self, book_id: str, chapter_id: str) -> None:
        """
        Remove a chapter, keeping the order of the rest.

        Raises:
            NotFoundError: either id is unknown
        """
        pass

    @abstractmethod
    async def move_chapter(self, book_id: str, from_index: int, to_index: int) -> bool:
        """
        Move a chapter with list-splice semantics.

        Args:
            book_id: Parent book
            from_index: Current position
            to_index: Target position

        Returns:
            True if the order changed, False for an out-of-range no-op
        """
        pass

    # ==================== Export ====================

    @abstractmethod
    async def export_book(self, book_id: str) -> BookArchive:
        """
        Bundle a book into a manifest plus one file per chapter.

        Args:
            book_id: Book to export

        Returns:
            Archive ready to be zipped
        """
        pass
