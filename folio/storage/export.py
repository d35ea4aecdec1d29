"""
Book Export
===========
Bundles a draft book into a folder of markdown chapters, a manifest
and the cover blob, optionally packed as a zip archive.
"""

from __future__ import annotations

import io
import json
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from folio.storage.models import Book


MANIFEST_NAME = "book.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


def safe_filename(name: str, fallback: str = "file") -> str:
    """
    Replace every character outside [A-Za-z0-9_.-] with an underscore.

    Args:
        name: Original name
        fallback: Used when name is empty or only dots

    Returns:
        Filesystem and URL safe name
    """
    safe = _UNSAFE_CHARS.sub("_", name or "")
    if not safe.strip("."):
        return fallback
    return safe


def chapter_filename(index: int, title: str) -> str:
    """Two-digit 1-based prefix, sanitized title, markdown extension."""
    return f"{index + 1:02d}-{safe_filename(title, 'chapter')}.md"


@dataclass
class ArchiveFile:
    """One file inside an exported book folder."""
    name: str
    data: bytes


@dataclass
class BookArchive:
    """Exported book: a folder holding the manifest, chapters and cover."""
    folder: str
    archive_name: str
    manifest: dict
    files: list[ArchiveFile] = field(default_factory=list)

    def names(self) -> list[str]:
        return [f.name for f in self.files]

    def to_zip_bytes(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for archive_file in self.files:
                zf.writestr(f"{self.folder}/{archive_file.name}", archive_file.data)
        return buffer.getvalue()

    def write_zip(self, directory: Path) -> Path:
        """
        Write the archive into directory.

        Returns:
            Path of the written zip file
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.archive_name
        target.write_bytes(self.to_zip_bytes())
        return target


def export_book(book: Book) -> BookArchive:
    """
    Build the export bundle for a book.

    The manifest lists chapters in their current order; chapter files
    are numbered from 01 so they sort in reading order.
    """
    entries = []
    files = []
    for index, chapter in enumerate(book.chapters):
        filename = chapter_filename(index, chapter.title)
        entries.append({"filename": filename, "title": chapter.title})
        body = chapter.content or f"# {chapter.title}\n\n"
        files.append(ArchiveFile(name=filename, data=body.encode("utf-8")))

    manifest = {"title": book.title, "author": book.author, "chapters": entries}
    manifest_bytes = json.dumps(manifest, indent=2, ensure_ascii=False).encode("utf-8")
    files.insert(0, ArchiveFile(name=MANIFEST_NAME, data=manifest_bytes))

    if book.cover is not None:
        files.insert(1, ArchiveFile(name=safe_filename(book.cover.filename, "cover.jpg"), data=book.cover.data))

    return BookArchive(
        folder=safe_filename(book.title or book.id),
        archive_name=f"{safe_filename(book.title, 'book')}.zip",
        manifest=manifest,
        files=files,
    )
