"""
Catalog Merger Tests
====================
Identity keys, local-wins merging, ordering, chapter-based projection and
graceful degradation when the remote catalog is unavailable.
"""

import httpx
import pytest

from folio.catalog.merger import (
    CatalogMerger,
    ChapterView,
    chapter_views,
    identity_key,
    is_chapter_based,
    merge_catalogs,
    project_for_render,
)
from folio.catalog.sources import content_store_source, parse_catalog, url_source
from folio.errors import TransportError, ValidationError
from folio.remote.memory import InMemoryContentStore


class TestIdentityKey:

    def test_prefers_id_then_slug_then_title(self):
        assert identity_key({"id": "x", "slug": "s", "title": "t"}) == "x"
        assert identity_key({"slug": "s", "title": "t"}) == "s"
        assert identity_key({"title": "t"}) == "t"

    def test_empty_values_fall_through(self):
        assert identity_key({"id": "", "slug": None, "title": "t"}) == "t"

    def test_structural_hash_for_bare_records(self):
        first = identity_key({"path": "a.json", "author": "A"})
        again = identity_key({"author": "A", "path": "a.json"})
        other = identity_key({"path": "b.json"})
        assert first.startswith("sha1:")
        assert first == again
        assert first != other


class TestMergeCatalogs:

    def test_local_wins_on_shared_key(self):
        merged = merge_catalogs([{"id": "x", "title": "Remote"}], [{"id": "x", "title": "Local"}])
        assert merged == [{"id": "x", "title": "Local"}]

    def test_sorted_case_insensitively_untitled_first(self):
        remote = [{"id": "1", "title": "banana"}, {"id": "2", "title": "Apple"}, {"id": "3"}]
        local = [{"id": "4", "title": "cherry"}]
        titles = [r.get("title") for r in merge_catalogs(remote, local)]
        assert titles == [None, "Apple", "banana", "cherry"]

    def test_title_fallback_dedupes_remote_and_local(self):
        merged = merge_catalogs([{"title": "Same", "path": "r"}], [{"title": "Same", "path": "l"}])
        assert merged == [{"title": "Same", "path": "l"}]

    def test_non_mapping_records_dropped(self):
        merged = merge_catalogs([None, "junk", 3, {"title": "Ok"}], [])
        assert merged == [{"title": "Ok"}]

    def test_inputs_not_mutated(self):
        remote = [{"id": "x", "title": "Remote"}]
        merged = merge_catalogs(remote, [])
        merged[0]["title"] = "changed"
        assert remote[0]["title"] == "Remote"

    def test_idempotent(self):
        remote = [{"id": "a", "title": "Zed"}, {"title": "alpha"}, {"path": "p"}]
        local = [{"id": "a", "title": "Zed local"}, {"id": "b", "title": "Alpha"}]
        assert merge_catalogs(remote, local) == merge_catalogs(remote, local)


class TestChapterProjection:

    def test_non_empty_chapters_is_chapter_based(self):
        assert is_chapter_based({"chapters": [{"title": "One"}]})

    def test_structure_tag_is_chapter_based(self):
        assert is_chapter_based({"structure": "chapters"})

    def test_flat_record_is_not_chapter_based(self):
        assert not is_chapter_based({"title": "Flat", "content": "text"})
        assert not is_chapter_based({"chapters": [], "structure": "flat"})

    def test_legacy_content_synthesizes_single_chapter(self):
        record = {"title": "Legacy", "chapters": [], "content": "Hello world"}
        view = project_for_render(record)
        assert view["chapter_based"] is True
        assert view["chapter_views"] == [ChapterView(title="Content", excerpt="Hello world")]

    def test_excerpt_truncated_to_400(self):
        views = chapter_views({"structure": "chapters", "content": "x" * 1000})
        assert len(views) == 1
        assert views[0].excerpt == "x" * 400

    def test_chapter_titles_and_excerpts(self):
        record = {"chapters": [{"title": "One", "content": "body"}, {"excerpt": "short", "content": "long"}]}
        assert chapter_views(record) == [
            ChapterView(title="One", excerpt="body"),
            ChapterView(title="Chapter 2", excerpt="short"),
        ]

    def test_projection_keeps_record_fields(self):
        view = project_for_render({"title": "Flat", "author": "A"})
        assert view["title"] == "Flat"
        assert view["chapter_based"] is False
        assert view["chapter_views"] == []


class TestCatalogMerger:

    @pytest.mark.asyncio
    async def test_only_published_drafts_included(self, repo):
        draft = await repo.create_book(title="Draft")
        published = await repo.create_book(title="Published")
        await repo.update_book(published.id, published=True)

        merger = CatalogMerger(repo)
        merged = await merger.get_merged_catalog()

        assert [r["id"] for r in merged] == [published.id]
        assert draft.id not in {r.get("id") for r in merged}

    @pytest.mark.asyncio
    async def test_remote_failure_degrades_to_local(self, repo):
        book = await repo.create_book(title="Local")
        await repo.update_book(book.id, published=True)

        async def broken():
            raise TransportError("offline")

        merged = await CatalogMerger(repo, fetch_remote=broken).get_merged_catalog()
        assert [r["title"] for r in merged] == ["Local"]

    @pytest.mark.asyncio
    async def test_remote_non_list_degrades_to_local(self, repo):
        async def weird():
            return {"books": []}

        assert await CatalogMerger(repo, fetch_remote=weird).get_merged_catalog() == []

    @pytest.mark.asyncio
    async def test_merges_remote_catalog_file(self, repo):
        book = await repo.create_book(title="Mine")
        await repo.update_book(book.id, published=True)
        store = InMemoryContentStore({
            "books.json": b'[{"path": "books/old.json", "title": "Older", "author": "B"}]',
        })

        merger = CatalogMerger(repo, fetch_remote=content_store_source(store, "books.json"))
        merged = await merger.get_merged_catalog()
        assert [r["title"] for r in merged] == ["Mine", "Older"]

    @pytest.mark.asyncio
    async def test_local_overrides_remote_entry_for_same_book(self, repo):
        book = await repo.create_book(title="New title")
        await repo.update_book(book.id, published=True)
        store = InMemoryContentStore({
            "books.json": f'[{{"id": "{book.id}", "path": "books/{book.id}.json", "title": "Old title"}}]'.encode(),
        })

        merged = await CatalogMerger(repo, content_store_source(store, "books.json")).get_merged_catalog()
        assert len(merged) == 1
        assert merged[0]["title"] == "New title"


class TestSources:

    def test_parse_catalog_rejects_non_arrays(self):
        with pytest.raises(ValidationError):
            parse_catalog(b'{"a": 1}')
        with pytest.raises(ValidationError):
            parse_catalog(b"\xff\xfe")

    @pytest.mark.asyncio
    async def test_missing_catalog_file_is_empty(self):
        fetch = content_store_source(InMemoryContentStore(), "books.json")
        assert await fetch() == []

    @pytest.mark.asyncio
    async def test_url_source(self):
        def handler(request):
            assert request.headers["cache-control"] == "no-store"
            return httpx.Response(200, json=[{"title": "Über"}])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetch = url_source("https://example.org/library.json", client=client)
            assert await fetch() == [{"title": "Über"}]

    @pytest.mark.asyncio
    async def test_url_source_http_error(self):
        def handler(request):
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetch = url_source("https://example.org/library.json", client=client)
            with pytest.raises(TransportError):
                await fetch()
