"""
Property-Based Tests for Catalog Merging and Filenames
======================================================
Uses Hypothesis to fuzz record shapes the remote catalog may contain.
"""

import re

import pytest
from hypothesis import given, settings, strategies as st

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from folio.catalog.merger import identity_key, is_chapter_based, chapter_views, merge_catalogs
from folio.remote.codec import encode_path
from folio.storage.export import safe_filename


# Small alphabet so keys collide often
short_text = st.text(alphabet="abAB ", max_size=4)

records = st.fixed_dictionaries(
    {},
    optional={
        "id": st.one_of(st.none(), short_text),
        "slug": short_text,
        "title": short_text,
        "author": short_text,
        "path": short_text,
    },
)

remote_junk = st.one_of(records, st.none(), st.integers(), st.text(max_size=3))


class TestMergeProperties:
    """Invariants of merge_catalogs over arbitrary inputs."""

    @pytest.mark.property
    @given(st.lists(remote_junk, max_size=12), st.lists(records, max_size=12))
    @settings(max_examples=200, deadline=5000)
    def test_merge_is_idempotent(self, remote, local):
        merged = merge_catalogs(remote, local)
        assert merge_catalogs(merged, []) == merged
        assert merge_catalogs([], merged) == merged

    @pytest.mark.property
    @given(st.lists(remote_junk, max_size=12), st.lists(records, max_size=12))
    @settings(max_examples=200, deadline=5000)
    def test_keys_unique_and_local_wins(self, remote, local):
        merged = merge_catalogs(remote, local)
        keys = [identity_key(r) for r in merged]
        assert len(keys) == len(set(keys))

        last_local = {identity_key(r): r for r in local}
        by_key = dict(zip(keys, merged))
        for key, record in last_local.items():
            assert by_key[key] == record

    @pytest.mark.property
    @given(st.lists(remote_junk, max_size=12), st.lists(records, max_size=12))
    @settings(max_examples=200, deadline=5000)
    def test_output_sorted_by_title(self, remote, local):
        titles = [str(r.get("title") or "").casefold() for r in merge_catalogs(remote, local)]
        assert titles == sorted(titles)

    @pytest.mark.property
    @given(
        st.lists(st.dictionaries(st.sampled_from(["title", "content"]), short_text), max_size=5),
        st.one_of(st.none(), st.text(max_size=500)),
    )
    @settings(max_examples=150, deadline=5000)
    def test_chapter_views_only_for_chapter_based(self, chapters, content):
        record = {"chapters": chapters, "content": content}
        views = chapter_views(record)
        if views:
            assert is_chapter_based(record)
        assert all(len(v.excerpt) <= 400 for v in views)


class TestFilenameProperties:

    @pytest.mark.property
    @given(st.text(max_size=80))
    @settings(max_examples=200, deadline=5000)
    def test_safe_filename_charset(self, name):
        result = safe_filename(name)
        assert result
        assert re.fullmatch(r"[A-Za-z0-9_.\-]+", result)
        if name.strip("."):
            assert len(result) == len(name)
        else:
            assert result == "file"

    @pytest.mark.property
    @given(st.lists(st.text(min_size=1, max_size=12).filter(lambda s: "/" not in s), min_size=1, max_size=4))
    @settings(max_examples=150, deadline=5000)
    def test_encoded_path_keeps_separators(self, segments):
        encoded = encode_path("/".join(segments))
        assert encoded.count("/") == len(segments) - 1
        assert re.fullmatch(r"[A-Za-z0-9_.\-~%/]+", encoded)
