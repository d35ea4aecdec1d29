"""
Folio CLI
=========
Terminal command surface for drafting, exporting and publishing books.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional, TextIO

from folio.app.config import AppConfig
from folio.app.controller import AppController
from folio.catalog.merger import project_for_render
from folio.errors import FolioError, describe_failure


def build_parser() -> argparse.ArgumentParser:
    """Create the root CLI parser."""
    parser = argparse.ArgumentParser(prog="folio", description="Folio book editor and publisher")
    parser.add_argument("--config", help="JSON file with configuration values")
    parser.add_argument("--data-dir", help="Directory holding local drafts")
    parser.add_argument("--token", help="Access token for the remote store (default: $FOLIO_TOKEN)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # books
    books_parser = subparsers.add_parser("books", help="Draft book operations")
    books_sub = books_parser.add_subparsers(dest="books_command", required=True)

    books_list = books_sub.add_parser("list", help="List local drafts, newest first")
    books_list.set_defaults(handler=handle_books_list)

    books_create = books_sub.add_parser("create", help="Create a draft")
    books_create.add_argument("--title", default="Untitled", help="Title (default: Untitled)")
    books_create.add_argument("--author", default="", help="Author")
    books_create.set_defaults(handler=handle_books_create)

    books_edit = books_sub.add_parser("edit", help="Edit draft fields")
    books_edit.add_argument("book_id")
    books_edit.add_argument("--title")
    books_edit.add_argument("--author")
    books_edit.add_argument("--structure", choices=["flat", "chapters"])
    books_edit.set_defaults(handler=handle_books_edit)

    books_delete = books_sub.add_parser("delete", help="Delete a draft and its chapters")
    books_delete.add_argument("book_id")
    books_delete.set_defaults(handler=handle_books_delete)

    books_cover = books_sub.add_parser("cover", help="Set the cover image")
    books_cover.add_argument("book_id")
    books_cover.add_argument("image", help="Path to the image file")
    books_cover.set_defaults(handler=handle_books_cover)

    # chapters
    chapters_parser = subparsers.add_parser("chapters", help="Chapter operations")
    chapters_sub = chapters_parser.add_subparsers(dest="chapters_command", required=True)

    chapter_add = chapters_sub.add_parser("add", help="Append a chapter")
    chapter_add.add_argument("book_id")
    chapter_add.add_argument("title")
    chapter_add.add_argument("--content-file", help="Markdown file with the chapter body")
    chapter_add.set_defaults(handler=handle_chapter_add)

    chapter_edit = chapters_sub.add_parser("edit", help="Edit a chapter")
    chapter_edit.add_argument("book_id")
    chapter_edit.add_argument("chapter_id")
    chapter_edit.add_argument("--title")
    chapter_edit.add_argument("--content-file", help="Markdown file with the chapter body")
    chapter_edit.set_defaults(handler=handle_chapter_edit)

    chapter_delete = chapters_sub.add_parser("delete", help="Delete a chapter")
    chapter_delete.add_argument("book_id")
    chapter_delete.add_argument("chapter_id")
    chapter_delete.set_defaults(handler=handle_chapter_delete)

    chapter_move = chapters_sub.add_parser("move", help="Move a chapter to a new position")
    chapter_move.add_argument("book_id")
    chapter_move.add_argument("from_index", type=int, help="Current 0-based position")
    chapter_move.add_argument("to_index", type=int, help="Target 0-based position")
    chapter_move.set_defaults(handler=handle_chapter_move)

    # export
    export_parser = subparsers.add_parser("export", help="Export a draft as a zip archive")
    export_parser.add_argument("book_id")
    export_parser.add_argument("--output", default=".", help="Output directory (default: .)")
    export_parser.set_defaults(handler=handle_export)

    # catalog
    catalog_parser = subparsers.add_parser("catalog", help="Show the merged published catalog")
    catalog_parser.add_argument("--json", action="store_true", help="Print raw records as JSON")
    catalog_parser.set_defaults(handler=handle_catalog)

    # publish
    publish_parser = subparsers.add_parser("publish", help="Publish a draft to the remote store")
    publish_parser.add_argument("book_id")
    publish_parser.add_argument("--no-catalog", action="store_true", help="Skip the catalog update")
    publish_parser.set_defaults(handler=handle_publish)

    repair_parser = subparsers.add_parser("repair-catalog", help="Re-run the catalog update for a book")
    repair_parser.add_argument("book_id")
    repair_parser.set_defaults(handler=handle_repair_catalog)

    return parser


def _print(msg: str, out: TextIO) -> None:
    out.write(msg + "\n")
    out.flush()


def _read_content(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return Path(path).expanduser().read_text(encoding="utf-8")


async def handle_books_list(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    """List drafts, newest first."""
    books = await controller.list_drafts()
    if not books:
        _print("no books yet", out)
        return 0
    for book in books:
        flag = "published" if book.published else "draft"
        author = book.author or "unknown"
        _print(f"- [{book.id}] {book.title or '(untitled)'} by {author} ({len(book.chapters)} chapters, {flag})", out)
    return 0


async def handle_books_create(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    book = await controller.create_book(title=args.title, author=args.author)
    _print(f"created book {book.id}", out)
    return 0


async def handle_books_edit(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    fields = {k: getattr(args, k) for k in ("title", "author", "structure") if getattr(args, k) is not None}
    if not fields:
        _print("nothing to change", out)
        return 1
    book = await controller.update_book(args.book_id, **fields)
    _print(f"updated book {book.id}", out)
    return 0


async def handle_books_delete(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    deleted = await controller.delete_book(args.book_id)
    _print(f"deleted book {args.book_id}" if deleted else f"no book {args.book_id}, nothing deleted", out)
    return 0


async def handle_books_cover(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    book = await controller.set_cover(args.book_id, Path(args.image).expanduser())
    _print(f"cover set for {book.id}: {book.cover.filename}", out)
    return 0


async def handle_chapter_add(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    chapter = await controller.add_chapter(args.book_id, args.title, _read_content(args.content_file) or "")
    _print(f"added chapter {chapter.id}", out)
    return 0


async def handle_chapter_edit(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    fields = {}
    if args.title is not None:
        fields["title"] = args.title
    if args.content_file is not None:
        fields["content"] = _read_content(args.content_file)
    if not fields:
        _print("nothing to change", out)
        return 1
    chapter = await controller.update_chapter(args.book_id, args.chapter_id, **fields)
    _print(f"updated chapter {chapter.id}", out)
    return 0


async def handle_chapter_delete(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    await controller.delete_chapter(args.book_id, args.chapter_id)
    _print(f"deleted chapter {args.chapter_id}", out)
    return 0


async def handle_chapter_move(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    moved = await controller.move_chapter(args.book_id, args.from_index, args.to_index)
    _print("chapter moved" if moved else "position out of range, order unchanged", out)
    return 0


async def handle_export(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    archive, written = await controller.export_book(args.book_id, Path(args.output).expanduser())
    _print(f"exported {len(archive.manifest['chapters'])} chapters to {written}", out)
    return 0


async def handle_catalog(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    """Print the merged catalog the renderer would show."""
    catalog = await controller.get_merged_catalog()
    if args.json:
        _print(json.dumps(catalog, indent=2, ensure_ascii=False, default=str), out)
        return 0
    if not catalog:
        _print("no books available", out)
        return 0
    for record in catalog:
        view = project_for_render(record)
        author = f" — {view['author']}" if view.get("author") else ""
        _print(f"* {view.get('title') or 'Untitled'}{author}", out)
        for index, chapter in enumerate(view["chapter_views"], start=1):
            _print(f"    {index}. {chapter.title}", out)
    return 0


async def handle_publish(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    """Publish a draft and report each step."""
    report = await controller.publish(args.book_id, update_catalog=not args.no_catalog)
    for outcome in report.outcomes:
        _print(f"  {outcome.describe()}", out)

    if report.ok:
        _print(f"published {args.book_id}", out)
        return 0
    if report.needs_catalog_repair:
        _print(f"content is live but not listed; run: folio repair-catalog {args.book_id}", out)
    failure = report.failure
    _print(f"publish failed: {describe_failure(failure.error) if failure and failure.error else 'unknown error'}", out)
    return 1


async def handle_repair_catalog(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    outcome = await controller.repair_catalog(args.book_id)
    _print(f"  {outcome.describe()}", out)
    return 0 if outcome.ok else 1


def build_controller(args: argparse.Namespace) -> AppController:
    """Controller from --config, FOLIO_* variables and flags."""
    file_values = {}
    if args.config:
        file_values = json.loads(Path(args.config).expanduser().read_text(encoding="utf-8"))
    overrides = dict(file_values)
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    config = AppConfig.from_env(**overrides)
    controller = AppController(config)
    controller.open_session(token=args.token or os.environ.get("FOLIO_TOKEN"))
    return controller


async def _run(args: argparse.Namespace, controller: AppController, out: TextIO) -> int:
    try:
        return int(await args.handler(args, controller, out))
    except FolioError as exc:
        _print(f"error: {describe_failure(exc)}", out)
        return 1
    finally:
        await controller.cleanup()


def main(
    argv: Optional[list[str]] = None,
    controller_factory: Callable[[argparse.Namespace], AppController] = build_controller,
    out: TextIO = sys.stdout,
) -> int:
    """
    CLI entrypoint.

    Args:
        argv: Optional argv override for testing.
        controller_factory: Dependency-injection hook for tests.
        out: Output stream.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help(file=out)
        return 2

    try:
        controller = controller_factory(args)
    except (FolioError, OSError, ValueError) as exc:
        _print(f"error: failed to load configuration: {exc}", out)
        return 1

    return asyncio.run(_run(args, controller, out))


if __name__ == "__main__":
    raise SystemExit(main())
