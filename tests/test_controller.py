"""
Application Controller Tests
============================
Catalog refresh on storage and publish signals, publishing through the
session store, and session lifecycle.
"""

import json

import pytest

from folio.app.controller import AppController
from folio.app.events import EventType
from folio.errors import NotFoundError, ValidationError
from folio.remote.memory import InMemoryContentStore


@pytest.fixture
def controller(config, memory_store):
    return AppController(config=config, store=memory_store)


class TestCatalog:

    @pytest.mark.asyncio
    async def test_start_merges_remote_and_local(self, config):
        store = InMemoryContentStore({"books.json": b'[{"path": "books/r.json", "title": "Remote"}]'})
        controller = AppController(config=config, store=store)
        book = await controller.create_book(title="Local")
        await controller.update_book(book.id, published=True)

        catalog = await controller.start()

        assert [r["title"] for r in catalog] == ["Local", "Remote"]
        await controller.cleanup()

    @pytest.mark.asyncio
    async def test_storage_change_re_runs_merge(self, controller):
        announced = []
        controller.events.subscribe(EventType.CATALOG_CHANGED, lambda event: announced.append(event.entries))
        await controller.start()
        assert announced == [()]

        book = await controller.create_book(title="Fresh")
        await controller.update_book(book.id, published=True)

        assert [r["title"] for r in controller.last_catalog] == ["Fresh"]
        assert announced[-1][0]["id"] == book.id
        await controller.cleanup()

    @pytest.mark.asyncio
    async def test_no_merge_before_start(self, controller):
        await controller.create_book(title="Quiet")
        assert controller.last_catalog == []

    @pytest.mark.asyncio
    async def test_local_only_without_remote(self, tmp_path):
        from folio.app.config import AppConfig

        controller = AppController(config=AppConfig(data_dir=tmp_path / "offline"))
        book = await controller.create_book(title="Offline")
        await controller.update_book(book.id, published=True)

        catalog = await controller.get_merged_catalog()
        assert [r["id"] for r in catalog] == [book.id]

    @pytest.mark.asyncio
    async def test_cleanup_unsubscribes(self, controller):
        await controller.start()
        assert controller.events.subscriber_count(EventType.STORAGE_CHANGED) == 1
        await controller.cleanup()
        assert controller.events.subscriber_count(EventType.STORAGE_CHANGED) == 0


class TestPublishing:

    @pytest.mark.asyncio
    async def test_publish_marks_draft_published(self, controller, memory_store):
        published = []
        controller.events.subscribe(EventType.DRAFT_PUBLISHED, lambda event: published.append(event.book))
        book = await controller.create_book(title="Dune", author="Frank")
        await controller.add_chapter(book.id, "Arrakis", "Desert.")

        report = await controller.publish(book.id)

        assert report.ok
        assert (await controller.get_draft(book.id)).published is True
        assert published[0]["id"] == book.id
        assert memory_store.paths() == ["books.json", f"books/{book.id}.json"]
        assert await controller.catalog_lists(book.id) is True

    @pytest.mark.asyncio
    async def test_publish_then_merge_shows_book_once(self, controller):
        book = await controller.create_book(title="Once")
        await controller.publish(book.id)

        catalog = await controller.get_merged_catalog()
        assert [r.get("id") for r in catalog] == [book.id]

    @pytest.mark.asyncio
    async def test_failed_publish_leaves_draft_unpublished(self, controller, memory_store, mocker):
        book = await controller.create_book(title="Blocked")
        from folio.errors import RemoteRejectedError

        mocker.patch.object(memory_store, "write_file", side_effect=RemoteRejectedError(403))
        report = await controller.publish(book.id)

        assert not report.ok
        assert report.failure.error.kind == "RemoteRejected"
        assert (await controller.get_draft(book.id)).published is False

    @pytest.mark.asyncio
    async def test_repair_catalog(self, controller, memory_store):
        book = await controller.create_book(title="Partial")
        await controller.publish(book.id, update_catalog=False)
        assert await controller.catalog_lists(book.id) is False

        outcome = await controller.repair_catalog(book.id)
        assert outcome.ok
        assert await controller.catalog_lists(book.id) is True

    @pytest.mark.asyncio
    async def test_repair_right_after_publish_is_unchanged(self, controller, memory_store):
        book = await controller.create_book(title="T")
        await controller.add_chapter(book.id, "One", "body")
        await controller.publish(book.id)
        writes_after_publish = list(memory_store.writes)

        outcome = await controller.repair_catalog(book.id)
        again = await controller.publish(book.id)

        assert outcome.ok and outcome.unchanged
        assert again.ok
        assert all(o.unchanged for o in again.outcomes)
        assert memory_store.writes == writes_after_publish

    @pytest.mark.asyncio
    async def test_pushed_stamp_matches_draft(self, controller, memory_store):
        book = await controller.create_book(title="Stamped")
        await controller.publish(book.id)

        draft = await controller.get_draft(book.id)
        catalog = json.loads((await memory_store.read_file("books.json")).content)
        document = json.loads((await memory_store.read_file(f"books/{book.id}.json")).content)
        assert catalog[0]["updated"] == draft.updated_at.isoformat()
        assert document["updated"] == draft.updated_at.isoformat()

    @pytest.mark.asyncio
    async def test_unknown_book(self, controller):
        with pytest.raises(NotFoundError):
            await controller.publish("bk-missing")


class TestSession:

    @pytest.mark.asyncio
    async def test_session_tracks_selection(self, controller):
        session = controller.open_session(token="secret")
        book = await controller.create_book(title="Picked")
        assert session.selected_book_id == book.id
        assert session.has_token

        await controller.delete_book(book.id)
        assert session.selected_book_id is None

    @pytest.mark.asyncio
    async def test_close_clears_credentials(self, controller):
        session = controller.open_session(token="secret")
        await controller.close_session()
        assert controller.session is None
        assert session.closed
        assert not session.has_token
        with pytest.raises(ValidationError):
            session.store

    @pytest.mark.asyncio
    async def test_publish_without_remote_config(self, tmp_path):
        from folio.app.config import AppConfig

        controller = AppController(config=AppConfig(data_dir=tmp_path / "no-remote"))
        book = await controller.create_book(title="Nowhere")
        with pytest.raises(ValidationError):
            await controller.publish(book.id)


class TestDrafts:

    @pytest.mark.asyncio
    async def test_set_cover_from_file(self, controller, tmp_path, cover_bytes):
        image = tmp_path / "front.png"
        image.write_bytes(cover_bytes)
        book = await controller.create_book(title="Covered")

        updated = await controller.set_cover(book.id, image)
        assert updated.cover.data == cover_bytes
        assert updated.cover.filename == "front.png"

    @pytest.mark.asyncio
    async def test_set_cover_missing_file(self, controller, tmp_path):
        book = await controller.create_book(title="Covered")
        with pytest.raises(ValidationError):
            await controller.set_cover(book.id, tmp_path / "nope.png")

    @pytest.mark.asyncio
    async def test_export_writes_zip(self, controller, tmp_path):
        book = await controller.create_book(title="Zipped")
        await controller.add_chapter(book.id, "One", "text")

        archive, written = await controller.export_book(book.id, tmp_path / "out")
        assert written == tmp_path / "out" / "Zipped.zip"
        assert written.is_file()
        assert archive.manifest["chapters"][0]["filename"] == "01-One.md"
