"""
Storage Module
==============
Local draft storage and export.

Repository Pattern:
    - IDraftRepository: Abstract interface for draft storage
    - JSONDraftRepository: Single JSON file implementation
"""

from .models import Book, BookStructure, CatalogEntry, Chapter, Cover
from .export import ArchiveFile, BookArchive, export_book, safe_filename
from .repository import IDraftRepository
from .json_repo import JSONDraftRepository

__all__ = [
    # Repository Pattern
    "IDraftRepository",
    "JSONDraftRepository",
    # Models
    "Book",
    "BookStructure",
    "CatalogEntry",
    "Chapter",
    "Cover",
    # Export
    "ArchiveFile",
    "BookArchive",
    "export_book",
    "safe_filename",
]
