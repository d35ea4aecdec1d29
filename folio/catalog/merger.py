"""
Catalog Merger
==============
Combines the remotely published catalog with locally published drafts
into the single ordered list the renderer displays.

Merge rules:
    - every record gets an identity key: id, then slug, then title,
      then a hash of the whole record
    - remote records go in first, local ones second, so local wins
    - output is sorted case-insensitively by title, untitled first
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from folio.storage.repository import IDraftRepository


logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 400
CONTENT_CHAPTER_TITLE = "Content"

RemoteSource = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ChapterView:
    """One row in a chapter-based book's chapter list."""
    title: str
    excerpt: str


def identity_key(record: Mapping) -> str:
    """Merge key for a record; never empty, even for malformed records."""
    for name in ("id", "slug", "title"):
        value = record.get(name)
        if value:
            return str(value)
    canonical = json.dumps(record, sort_keys=True, default=str, ensure_ascii=False)
    return "sha1:" + hashlib.sha1(canonical.encode("utf-8")).hexdigest()


def _title_sort_key(record: Mapping) -> str:
    return str(record.get("title") or "").casefold()


def merge_catalogs(remote: Iterable[Any], local: Iterable[Mapping]) -> list[dict]:
    """
    Merge remote and local records, local winning on key collisions.

    Args:
        remote: Records from the remote catalog (may contain junk)
        local: Locally published book records

    Returns:
        De-duplicated records sorted by title
    """
    by_key: dict[str, dict] = {}

    for record in remote or []:
        if not isinstance(record, Mapping):
            logger.warning(f"Dropping non-object catalog record: {record!r:.80}")
            continue
        by_key[identity_key(record)] = dict(record)

    for record in local or []:
        by_key[identity_key(record)] = dict(record)

    return sorted(by_key.values(), key=_title_sort_key)


def is_chapter_based(record: Mapping) -> bool:
    """
    Decide whether a record renders as a list of chapters.

    True for a non-empty chapters list, a `chapters` structure tag, or an
    explicit empty chapters list next to legacy raw content.
    """
    chapters = record.get("chapters")
    if isinstance(chapters, list) and chapters:
        return True
    if record.get("structure") == "chapters":
        return True
    content = record.get("content")
    return isinstance(chapters, list) and isinstance(content, str) and bool(content)


def chapter_views(record: Mapping) -> list[ChapterView]:
    """Chapter rows for a chapter-based record."""
    chapters = record.get("chapters")
    chapters = chapters if isinstance(chapters, list) else []

    if not chapters:
        content = record.get("content")
        if isinstance(content, str) and content:
            return [ChapterView(title=CONTENT_CHAPTER_TITLE, excerpt=content[:EXCERPT_LENGTH])]
        return []

    views = []
    for index, chapter in enumerate(chapters):
        chapter = chapter if isinstance(chapter, Mapping) else {}
        views.append(ChapterView(
            title=str(chapter.get("title") or f"Chapter {index + 1}"),
            excerpt=str(chapter.get("excerpt") or chapter.get("content") or ""),
        ))
    return views


def project_for_render(record: Mapping) -> dict:
    """Record plus the renderer's chapter-based decision and chapter rows."""
    projected = dict(record)
    projected["chapter_based"] = is_chapter_based(record)
    projected["chapter_views"] = chapter_views(record) if projected["chapter_based"] else []
    return projected


class CatalogMerger:
    """
    Produces the merged catalog from a remote source and the draft store.

    Remote failures degrade to a local-only view; they never propagate.
    """

    def __init__(self, drafts: IDraftRepository, fetch_remote: Optional[RemoteSource] = None):
        """
        Args:
            drafts: Local draft store
            fetch_remote: Zero-arg coroutine returning the remote record list
        """
        self.drafts = drafts
        self.fetch_remote = fetch_remote

    async def _remote_records(self) -> list:
        if self.fetch_remote is None:
            return []
        try:
            records = await self.fetch_remote()
        except Exception as exc:
            logger.warning(f"Remote catalog unavailable, showing local books only: {exc}")
            return []
        if not isinstance(records, list):
            logger.warning("Remote catalog is not a list, showing local books only")
            return []
        return records

    async def _local_records(self) -> list[dict]:
        books = await self.drafts.list_books()
        return [book.to_record() for book in books if book.published]

    async def get_merged_catalog(self) -> list[dict]:
        """Ordered, de-duplicated records for the renderer."""
        remote = await self._remote_records()
        local = await self._local_records()
        merged = merge_catalogs(remote, local)
        logger.debug(f"Merged catalog: {len(remote)} remote + {len(local)} local -> {len(merged)}")
        return merged
