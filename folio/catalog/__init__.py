"""
Catalog Module
==============
Merged, published-only view of remote and local books.
"""

from .merger import (
    CatalogMerger,
    ChapterView,
    chapter_views,
    identity_key,
    is_chapter_based,
    merge_catalogs,
    project_for_render,
)
from .sources import content_store_source, parse_catalog, url_source

__all__ = [
    "CatalogMerger",
    "ChapterView",
    "chapter_views",
    "identity_key",
    "is_chapter_based",
    "merge_catalogs",
    "project_for_render",
    "content_store_source",
    "parse_catalog",
    "url_source",
]
