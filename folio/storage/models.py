"""
Storage Models
==============
Dataclasses for draft books, chapters, covers and published catalog entries.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from folio.errors import ValidationError


logger = logging.getLogger(__name__)


_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?:;[^,]*)?;base64,(?P<payload>.*)$", re.DOTALL)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return utc_now()
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _safe_timestamp(value: Any, book_id: str) -> datetime:
    try:
        return _parse_timestamp(value)
    except (ValueError, TypeError):
        logger.warning(f"Unreadable timestamp {value!r} on {book_id}, using now")
        return utc_now()


class BookStructure(str, Enum):
    """How a book's content is organised for rendering."""
    FLAT = "flat"
    CHAPTERS = "chapters"


@dataclass
class Cover:
    """Opaque cover blob owned by exactly one book."""
    filename: str
    data: bytes
    media_type: str = "application/octet-stream"

    @classmethod
    def from_upload(cls, data: bytes, filename: str) -> "Cover":
        media_type, _ = mimetypes.guess_type(filename)
        return cls(
            filename=filename,
            data=bytes(data),
            media_type=media_type or "application/octet-stream",
        )

    def to_data_url(self) -> str:
        """Storage-safe text form of the blob."""
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{payload}"

    @classmethod
    def from_data_url(cls, filename: str, data_url: str) -> "Cover":
        match = _DATA_URL_RE.match(data_url or "")
        if not match:
            raise ValidationError("cover is not a base64 data URL", details=filename)
        return cls(
            filename=filename,
            data=base64.b64decode(match.group("payload")),
            media_type=match.group("mime") or "application/octet-stream",
        )

    def to_dict(self) -> dict:
        return {"name": self.filename, "dataUrl": self.to_data_url()}

    @classmethod
    def from_dict(cls, data: dict) -> "Cover":
        return cls.from_data_url(data.get("name") or "cover.jpg", data.get("dataUrl", ""))


@dataclass
class Chapter:
    """A chapter; its position in the parent book is its only ordering key."""
    id: str
    title: str
    content: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Chapter":
        if not data.get("id"):
            raise ValidationError("chapter record has no id")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
        )


@dataclass
class Book:
    """Draft or published book with embedded chapter content."""
    id: str
    title: str = "Untitled"
    author: str = ""
    cover: Optional[Cover] = None
    chapters: list[Chapter] = field(default_factory=list)
    structure: BookStructure = BookStructure.CHAPTERS
    published: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def touch(self) -> None:
        """Refresh updated_at after a mutation."""
        self.updated_at = utc_now()

    def find_chapter(self, chapter_id: str) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    def to_dict(self) -> dict:
        """Full persisted form, cover included."""
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "cover": self.cover.to_dict() if self.cover else None,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "structure": self.structure.value,
            "published": self.published,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Book":
        """
        Rebuild a stored book.

        Only a missing id rejects the record. A bad cover, structure tag,
        chapter or timestamp is dropped or defaulted with a warning so the
        rest of the book survives the next save.
        """
        if not isinstance(data, dict) or not data.get("id"):
            raise ValidationError("book record has no id")
        book_id = str(data["id"])

        cover = None
        if isinstance(data.get("cover"), dict):
            try:
                cover = Cover.from_dict(data["cover"])
            except (ValidationError, ValueError, TypeError) as exc:
                logger.warning(f"Dropping unreadable cover of {book_id}: {exc}")

        structure = BookStructure.CHAPTERS
        if data.get("structure"):
            try:
                structure = BookStructure(data["structure"])
            except (ValueError, TypeError):
                logger.warning(f"Unknown structure {data['structure']!r} on {book_id}, using chapters")

        chapters = []
        for record in data.get("chapters") or []:
            try:
                chapters.append(Chapter.from_dict(record))
            except (ValidationError, AttributeError) as exc:
                logger.warning(f"Skipping malformed chapter in {book_id}: {exc}")

        return cls(
            id=book_id,
            title=str(data.get("title") or ""),
            author=str(data.get("author") or ""),
            cover=cover,
            chapters=chapters,
            structure=structure,
            published=data.get("published") is True,
            created_at=_safe_timestamp(data.get("created_at"), book_id),
            updated_at=_safe_timestamp(data.get("updated_at"), book_id),
        )

    def to_record(self) -> dict:
        """Book-like record handed to the catalog merger and renderer."""
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "structure": self.structure.value,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "cover": self.cover.filename if self.cover else None,
            "published": self.published,
            "updated": self.updated_at.isoformat(),
        }


@dataclass
class CatalogEntry:
    """Flattened published-book record that references content by path."""
    path: str
    title: str = ""
    author: str = ""
    updated: str = ""
    id: Optional[str] = None

    @classmethod
    def from_book(cls, book: Book, path: str) -> "CatalogEntry":
        return cls(
            path=path,
            title=book.title,
            author=book.author,
            updated=book.updated_at.isoformat(),
            id=book.id,
        )

    def to_dict(self) -> dict:
        data = {
            "path": self.path,
            "title": self.title,
            "author": self.author,
            "updated": self.updated,
        }
        if self.id:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogEntry":
        if not isinstance(data, dict) or not data.get("path"):
            raise ValidationError("catalog entry has no path")
        return cls(
            path=str(data["path"]),
            title=str(data.get("title") or ""),
            author=str(data.get("author") or ""),
            updated=str(data.get("updated") or ""),
            id=data.get("id"),
        )
