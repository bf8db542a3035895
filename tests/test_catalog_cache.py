"""
Tests for the file-backed catalog cache (backend/catalog_cache.py).

Every test works in its own tmp_path cache directory and uses in-memory
sources, so no data files or network are touched.
"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

import catalog_cache
from catalog_cache import CatalogCache, empty_snapshot, format_bytes
from catalog_source import FileCatalogSource, StaticCatalogSource


# ── Shared helpers ────────────────────────────────────────────────────────────

T0 = datetime(2024, 10, 1, 8, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=1)


def _course(course_id, category_id=2, tags=("ml",)):
    return {
        "course_id": course_id,
        "category_id": category_id,
        "credits": 7,
        "course_name": f"Course {course_id}",
        "semesters": [11],
        "tags": list(tags),
        "url": "",
    }


class CountingSource(StaticCatalogSource):
    """Static source that records how often each call is made."""

    def __init__(self, courses, last_updated=None):
        super().__init__(courses, last_updated)
        self.marker_calls = 0
        self.fetch_calls = 0

    def fetch_last_updated(self):
        self.marker_calls += 1
        return super().fetch_last_updated()

    def fetch_courses(self):
        self.fetch_calls += 1
        return super().fetch_courses()


class BrokenSource:
    """Source whose every call fails."""

    def __init__(self):
        self.calls = 0

    def fetch_last_updated(self):
        self.calls += 1
        raise ConnectionError("remote unreachable")

    def fetch_courses(self):
        self.calls += 1
        raise ConnectionError("remote unreachable")


@pytest.fixture
def cache(tmp_path):
    return CatalogCache(str(tmp_path), check_interval_hours=3)


@pytest.fixture
def seeded(cache):
    cache.store({
        "courses": [_course("252-0001-00L"), _course("252-0002-00L")],
        "last_remote_update": T0,
        "last_checked_at": T0,
    })
    return cache


# ── load / store ──────────────────────────────────────────────────────────────

class TestLoadStore:
    def test_missing_files_load_empty(self, cache):
        assert cache.load() == empty_snapshot()

    def test_round_trip(self, seeded):
        snapshot = seeded.load()
        assert [c["course_id"] for c in snapshot["courses"]] == ["252-0001-00L", "252-0002-00L"]
        assert snapshot["last_remote_update"] == T0
        assert snapshot["last_checked_at"] == T0

    def test_corrupt_file_loads_empty(self, cache, capsys):
        os.makedirs(cache.cache_dir, exist_ok=True)
        with open(cache.courses_path, "w", encoding="utf-8") as fh:
            fh.write("{not json")
        assert cache.load()["courses"] == []
        assert "[WARN]" in capsys.readouterr().err

    def test_unexpected_shape_loads_empty(self, cache):
        os.makedirs(cache.cache_dir, exist_ok=True)
        with open(cache.courses_path, "w", encoding="utf-8") as fh:
            json.dump(["not", "a", "snapshot"], fh)
        assert cache.load()["courses"] == []

    def test_store_writes_separate_check_marker(self, seeded):
        with open(seeded.check_path, encoding="utf-8") as fh:
            assert json.load(fh)["last_checked_at"] == T0.isoformat()
        with open(seeded.courses_path, encoding="utf-8") as fh:
            assert "last_checked_at" not in json.load(fh)

    def test_failed_store_keeps_previous_file(self, seeded, monkeypatch):
        with open(seeded.courses_path, encoding="utf-8") as fh:
            before = fh.read()

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(catalog_cache.os, "replace", fail_replace)
        ok = seeded.store({"courses": [_course("252-0009-00L")], "last_remote_update": T1})
        monkeypatch.undo()

        assert ok is False
        with open(seeded.courses_path, encoding="utf-8") as fh:
            assert fh.read() == before
        assert not [f for f in os.listdir(seeded.cache_dir) if f.startswith(".tmp-")]


# ── should_refresh ────────────────────────────────────────────────────────────

class TestShouldRefresh:
    def test_within_interval_skips_remote(self, seeded):
        source = BrokenSource()
        assert seeded.should_refresh(source, now=T0 + timedelta(hours=1)) is False
        assert source.calls == 0

    def test_remote_failure_means_refresh(self, seeded):
        source = BrokenSource()
        assert seeded.should_refresh(source, now=T0 + timedelta(hours=4)) is True
        assert source.calls == 1

    def test_check_recorded_even_on_failure(self, seeded):
        now = T0 + timedelta(hours=4)
        seeded.should_refresh(BrokenSource(), now=now)
        assert seeded.load()["last_checked_at"] == now
        # a second call right after does not hit the remote again
        source = BrokenSource()
        assert seeded.should_refresh(source, now=now + timedelta(minutes=5)) is False
        assert source.calls == 0

    def test_unchanged_remote_marker(self, seeded):
        source = CountingSource([], last_updated=T0)
        assert seeded.should_refresh(source, now=T1) is False
        assert source.marker_calls == 1
        assert source.fetch_calls == 0

    def test_newer_remote_marker(self, seeded):
        assert seeded.should_refresh(CountingSource([], last_updated=T1), now=T1) is True

    def test_missing_remote_marker(self, seeded):
        assert seeded.should_refresh(CountingSource([], last_updated=None), now=T1) is True

    def test_no_local_marker(self, cache):
        assert cache.should_refresh(CountingSource([], last_updated=T0), now=T0) is True

    def test_naive_now_is_treated_as_utc(self, seeded):
        naive = (T0 + timedelta(hours=1)).replace(tzinfo=None)
        assert seeded.should_refresh(BrokenSource(), now=naive) is False


# ── refresh / get_catalog ─────────────────────────────────────────────────────

class TestRefresh:
    def test_refresh_replaces_snapshot(self, seeded, capsys):
        source = CountingSource([_course("252-0003-00L")], last_updated=T1)
        snapshot = seeded.refresh(source, now=T1)
        assert [c["course_id"] for c in snapshot["courses"]] == ["252-0003-00L"]
        assert seeded.load()["last_remote_update"] == T1
        assert "[OK] Cached 1 courses" in capsys.readouterr().out

    def test_failed_refresh_keeps_previous_snapshot(self, seeded):
        snapshot = seeded.refresh(BrokenSource(), now=T1)
        assert len(snapshot["courses"]) == 2
        assert len(seeded.load()["courses"]) == 2
        assert seeded.load()["last_remote_update"] == T0

    def test_empty_remote_keeps_previous_snapshot(self, seeded):
        snapshot = seeded.refresh(CountingSource([], last_updated=T1), now=T1)
        assert len(snapshot["courses"]) == 2
        assert seeded.load()["last_remote_update"] == T0

    def test_cancelled_fetch_leaves_snapshot_untouched(self, seeded):
        class CancelledSource(StaticCatalogSource):
            def fetch_courses(self):
                raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            seeded.refresh(CancelledSource([], last_updated=T1), now=T1)
        assert len(seeded.load()["courses"]) == 2


class TestGetCatalog:
    def test_empty_cache_fetches(self, cache):
        source = CountingSource([_course("252-0001-00L")], last_updated=T0)
        courses = cache.get_catalog(source, now=T0)
        assert [c["course_id"] for c in courses] == ["252-0001-00L"]
        assert source.fetch_calls == 1

    def test_fresh_cache_served_without_remote_calls(self, cache):
        cache.get_catalog(CountingSource([_course("252-0001-00L")], last_updated=T0), now=T0)
        source = BrokenSource()
        courses = cache.get_catalog(source, now=T0 + timedelta(hours=2))
        assert len(courses) == 1
        assert source.calls == 0

    def test_stale_cache_with_unreachable_remote_serves_cache(self, seeded):
        courses = seeded.get_catalog(BrokenSource(), now=T1)
        assert len(courses) == 2

    def test_force_refresh_bypasses_interval(self, seeded):
        source = CountingSource([_course("252-0003-00L")], last_updated=T0)
        courses = seeded.get_catalog(source, force_refresh=True, now=T0)
        assert [c["course_id"] for c in courses] == ["252-0003-00L"]
        assert source.fetch_calls == 1

    def test_file_source(self, cache, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        (data_dir / "courses.csv").write_text(
            "course_id,category_id,credits,course_name,semesters,tags,url\n"
            "252-0001-00L,2,7,Algorithms,11;13,theory,\n",
            encoding="utf-8",
        )
        courses = cache.get_catalog(FileCatalogSource(str(data_dir)))
        assert [c["course_id"] for c in courses] == ["252-0001-00L"]
        assert cache.load()["last_remote_update"] is not None

    def test_file_source_categories(self, tmp_path):
        (tmp_path / "courses.csv").write_text(
            "course_id,category_id,credits,course_name,semesters,tags,url\n"
            "252-0001-00L,2,7,Algorithms,11,theory,\n",
            encoding="utf-8",
        )
        (tmp_path / "categories.csv").write_text(
            "category_id,name,icon,min_credits,max_credits\n"
            "2,Kernfächer,star.fill,32,180\n",
            encoding="utf-8",
        )
        categories = FileCatalogSource(str(tmp_path)).fetch_categories()
        assert [(c["category_id"], c["min_credits"]) for c in categories] == [(2, 32)]


# ── Lookups ───────────────────────────────────────────────────────────────────

class TestResolve:
    def test_resolve_ids_drops_unknown(self, seeded):
        groups = seeded.resolve_ids([["252-0001-00L", "999-0000-00L"], ["252-0002-00L"]])
        assert [[c["course_id"] for c in g] for g in groups] == [["252-0001-00L"], ["252-0002-00L"]]

    def test_resolve_groups_refetches_on_miss(self, seeded):
        source = CountingSource(
            [_course("252-0001-00L"), _course("252-0002-00L"), _course("252-0003-00L")],
            last_updated=T1,
        )
        groups = seeded.resolve_groups(source, [["252-0001-00L"], ["252-0003-00L"]])
        assert [[c["course_id"] for c in g] for g in groups] == [["252-0001-00L"], ["252-0003-00L"]]
        assert source.fetch_calls == 1

    def test_resolve_ids_canonicalizes_requested_ids(self, seeded):
        groups = seeded.resolve_ids([["252 0001 00l", " 252-0002-00L "]])
        assert [c["course_id"] for c in groups[0]] == ["252-0001-00L", "252-0002-00L"]

    def test_resolve_groups_non_canonical_id_hits_cache(self, seeded):
        source = BrokenSource()
        groups = seeded.resolve_groups(source, [["252 0001 00l"]])
        assert [[c["course_id"] for c in g] for g in groups] == [["252-0001-00L"]]
        assert source.calls == 0

    def test_resolve_groups_uses_cache_when_complete(self, seeded):
        source = BrokenSource()
        groups = seeded.resolve_groups(source, [["252-0002-00L"]])
        assert groups[0][0]["course_id"] == "252-0002-00L"
        assert source.calls == 0


class TestFileSizeLabel:
    def test_missing_file(self, cache):
        assert cache.file_size_label() == "File does not exist"

    def test_existing_file(self, seeded):
        label = seeded.file_size_label()
        assert label.endswith("Bytes") or label.endswith("KB")

    @pytest.mark.parametrize("num_bytes,expected", [
        (512, "512 Bytes"),
        (2048, "2.00 KB"),
        (3 * 1048576, "3.00 MB"),
    ])
    def test_format_bytes(self, num_bytes, expected):
        assert format_bytes(num_bytes) == expected
