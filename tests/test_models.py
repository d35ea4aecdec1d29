"""
Storage Model Tests
===================
Serialization rules for books, covers and catalog entries.
"""

from datetime import datetime, timezone

import pytest

from folio.errors import ValidationError
from folio.storage.models import Book, BookStructure, CatalogEntry, Chapter, Cover


class TestCover:

    def test_data_url_round_trip(self):
        cover = Cover.from_upload(b"\x00\xffbinary", "art.jpg")
        assert cover.media_type == "image/jpeg"
        restored = Cover.from_data_url("art.jpg", cover.to_data_url())
        assert restored == cover

    def test_rejects_non_data_url(self):
        with pytest.raises(ValidationError):
            Cover.from_data_url("x.jpg", "http://example.com/x.jpg")


class TestBook:

    def test_from_dict_tolerates_missing_fields(self):
        book = Book.from_dict({"id": "id-abc1234"})
        assert book.title == ""
        assert book.chapters == []
        assert book.structure == BookStructure.CHAPTERS
        assert book.published is False

    def test_published_requires_true(self):
        assert Book.from_dict({"id": "a", "published": "true"}).published is False
        assert Book.from_dict({"id": "a", "published": True}).published is True

    def test_naive_timestamps_become_utc(self):
        book = Book.from_dict({"id": "a", "created_at": "2024-01-02T03:04:05"})
        assert book.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_accepts_zulu_timestamps(self):
        book = Book.from_dict({"id": "a", "updated_at": "2024-01-02T03:04:05.000Z"})
        assert book.updated_at.tzinfo is not None

    def test_unknown_structure_defaults_to_chapters(self):
        book = Book.from_dict({"id": "a", "title": "Kept", "structure": "scroll"})
        assert book.structure == BookStructure.CHAPTERS
        assert book.title == "Kept"

    def test_bad_fields_degrade_without_losing_book(self):
        book = Book.from_dict({
            "id": "id-old",
            "cover": {"name": "c.png", "dataUrl": "data:"},
            "chapters": [{"id": "c1", "title": "One", "content": "text"}, {"title": "no id"}, "junk"],
            "updated_at": "yesterday",
        })
        assert book.cover is None
        assert [c.id for c in book.chapters] == ["c1"]
        assert book.updated_at.tzinfo is not None

    def test_missing_id_rejected(self):
        with pytest.raises(ValidationError):
            Book.from_dict({"title": "No id"})

    def test_to_record_has_no_cover_payload(self):
        book = Book(id="a", title="T", cover=Cover(filename="c.png", data=b"big"))
        record = book.to_record()
        assert record["cover"] == "c.png"
        assert record["chapters"] == []
        assert record["structure"] == "chapters"

    def test_find_chapter(self):
        book = Book(id="a", chapters=[Chapter(id="c1", title="One")])
        assert book.find_chapter("c1").title == "One"
        assert book.find_chapter("c2") is None


class TestCatalogEntry:

    def test_projection_from_book(self):
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        book = Book(id="bk-1", title="Dune", author="Frank", updated_at=stamp, chapters=[Chapter(id="c", title="x", content="long")])
        entry = CatalogEntry.from_book(book, "books/bk-1.json")
        assert entry.to_dict() == {
            "path": "books/bk-1.json",
            "title": "Dune",
            "author": "Frank",
            "updated": stamp.isoformat(),
            "id": "bk-1",
        }

    def test_only_path_required(self):
        entry = CatalogEntry(path="books/a.json")
        assert entry.title == ""
        assert entry.to_dict() == {"path": "books/a.json", "title": "", "author": "", "updated": ""}

    def test_from_dict_requires_path(self):
        with pytest.raises(ValidationError):
            CatalogEntry.from_dict({"title": "No path"})
        assert CatalogEntry.from_dict({"path": "p"}).to_dict() == {"path": "p", "title": "", "author": "", "updated": ""}
