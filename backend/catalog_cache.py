"""
Durable local mirror of the remote course catalog.

Two files live in the cache directory:

    catalog_courses.json  {"last_remote_update": iso|null, "courses": [...]}
    catalog_check.json    {"last_checked_at": iso|null}

Both are written atomically (temp file + os.replace), so a crash or a
cancelled refresh never leaves a half-written snapshot behind. The check
marker is kept apart from the snapshot so that recording a freshness check
never rewrites (or races with) the course list.

Nothing in here raises to the caller: unreadable or corrupt files read as an
empty cache, failed remote calls fall back to the best data on disk.
"""

import json
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

from data_loader import normalize_courses
from normalizer import normalize_course_id
from requirements import DEFAULT_CHECK_INTERVAL_HOURS

COURSES_FILE_NAME = "catalog_courses.json"
CHECK_FILE_NAME = "catalog_check.json"


def empty_snapshot() -> dict:
    return {"courses": [], "last_remote_update": None, "last_checked_at": None}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return _as_aware(value).isoformat()


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _from_iso(raw) -> datetime | None:
    if not raw:
        return None
    try:
        return _as_aware(datetime.fromisoformat(str(raw)))
    except ValueError:
        return None


def _canonical_id(raw) -> str:
    text = str(raw or "").strip()
    return normalize_course_id(text) or text


def format_bytes(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} Bytes"
    if num_bytes < 1048576:
        return f"{num_bytes / 1024.0:.2f} KB"
    return f"{num_bytes / 1048576.0:.2f} MB"


class CatalogCache:
    """File-backed catalog snapshot with a rate-limited staleness check."""

    def __init__(self, cache_dir: str, check_interval_hours: float = DEFAULT_CHECK_INTERVAL_HOURS):
        self.cache_dir = cache_dir
        self.check_interval = timedelta(hours=max(0.0, float(check_interval_hours)))

    @property
    def courses_path(self) -> str:
        return os.path.join(self.cache_dir, COURSES_FILE_NAME)

    @property
    def check_path(self) -> str:
        return os.path.join(self.cache_dir, CHECK_FILE_NAME)

    # ── Disk I/O ─────────────────────────────────────────────────────────────

    def _read_json(self, path: str):
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            print(f"[WARN] Unreadable cache file {path}; treating as empty: {exc}", file=sys.stderr)
            return None

    def _write_json_atomic(self, path: str, payload) -> bool:
        tmp_path = None
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
            return True
        except (OSError, TypeError, ValueError) as exc:
            print(f"[WARN] Failed to write cache file {path}: {exc}", file=sys.stderr)
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
            return False

    def _load_last_checked_at(self) -> datetime | None:
        raw = self._read_json(self.check_path)
        if not isinstance(raw, dict):
            return None
        return _from_iso(raw.get("last_checked_at"))

    def _record_check(self, when: datetime) -> None:
        self._write_json_atomic(self.check_path, {"last_checked_at": _to_iso(when)})

    def load(self) -> dict:
        """Return the persisted snapshot, or an empty snapshot on any problem."""
        snapshot = empty_snapshot()
        raw = self._read_json(self.courses_path)
        if isinstance(raw, dict) and isinstance(raw.get("courses"), list):
            snapshot["courses"] = normalize_courses(raw["courses"])
            snapshot["last_remote_update"] = _from_iso(raw.get("last_remote_update"))
        elif raw is not None:
            print(f"[WARN] Cache file {self.courses_path} has an unexpected shape; ignoring it.", file=sys.stderr)
        snapshot["last_checked_at"] = self._load_last_checked_at()
        return snapshot

    def store(self, snapshot: dict) -> bool:
        """Atomically overwrite the persisted snapshot. Returns False on failure."""
        payload = {
            "last_remote_update": _to_iso(snapshot.get("last_remote_update")),
            "courses": list(snapshot.get("courses") or []),
        }
        ok = self._write_json_atomic(self.courses_path, payload)
        if ok and snapshot.get("last_checked_at") is not None:
            self._record_check(snapshot["last_checked_at"])
        return ok

    # ── Freshness ────────────────────────────────────────────────────────────

    def should_refresh(self, source, now: datetime | None = None) -> bool:
        """
        Decide whether the catalog needs a full refetch.

        Within `check_interval` of the previous check this returns False
        without touching the source. Otherwise the remote marker is queried
        and the check time is recorded whatever the outcome; an unreachable
        source or a missing marker means a refresh is needed.
        """
        now = _as_aware(now) if now is not None else _utcnow()
        last_checked = self._load_last_checked_at()
        if last_checked is not None and now - last_checked < self.check_interval:
            return False

        try:
            remote_marker = source.fetch_last_updated()
        except Exception as exc:
            print(f"[WARN] Catalog update check failed; assuming refresh needed: {exc}", file=sys.stderr)
            remote_marker = None
        self._record_check(now)

        if remote_marker is None:
            return True
        local_marker = self.load()["last_remote_update"]
        if local_marker is None:
            return True
        return _as_aware(remote_marker) > local_marker

    def refresh(self, source, now: datetime | None = None) -> dict:
        """
        Fetch the full catalog and replace the snapshot.

        The snapshot is written only after the whole catalog has been fetched
        and parsed. On failure (or an empty remote catalog) the previous
        snapshot is returned unchanged.
        """
        now = _as_aware(now) if now is not None else _utcnow()
        previous = self.load()
        try:
            remote_marker = source.fetch_last_updated()
            courses = normalize_courses(source.fetch_courses())
        except Exception as exc:
            print(f"[WARN] Catalog refresh failed; keeping previous snapshot: {exc}", file=sys.stderr)
            return previous

        if not courses:
            print("[WARN] Remote catalog returned no courses; keeping previous snapshot.", file=sys.stderr)
            return previous

        snapshot = {
            "courses": courses,
            "last_remote_update": _as_aware(remote_marker) if remote_marker is not None else None,
            "last_checked_at": now,
        }
        if self.store(snapshot):
            print(f"[OK] Cached {len(courses)} courses in {self.courses_path}")
        return snapshot

    def get_catalog(self, source, force_refresh: bool = False, now: datetime | None = None) -> list[dict]:
        """Cached courses when fresh enough, otherwise a refreshed catalog."""
        cached = self.load()
        if cached["courses"] and not force_refresh:
            if not self.should_refresh(source, now=now):
                return cached["courses"]
        return self.refresh(source, now=now)["courses"]

    # ── Lookups ──────────────────────────────────────────────────────────────

    def resolve_ids(self, nested_ids: list[list[str]], courses: list[dict] | None = None) -> list[list[dict]]:
        """Map per-group course ids to cached courses; unknown ids are dropped."""
        if courses is None:
            courses = self.load()["courses"]
        by_id = {c["course_id"]: c for c in courses}
        return [
            [by_id[cid] for cid in map(_canonical_id, group) if cid in by_id]
            for group in nested_ids
        ]

    def resolve_groups(self, source, nested_ids: list[list[str]]) -> list[list[dict]]:
        """
        resolve_ids with a fallback: when any id is missing from the cache,
        refetch the full catalog and resolve against that instead.
        """
        requested = sum(len(group) for group in nested_ids)
        groups = self.resolve_ids(nested_ids)
        if sum(len(group) for group in groups) == requested:
            return groups
        courses = self.get_catalog(source, force_refresh=True)
        return self.resolve_ids(nested_ids, courses)

    def file_size_label(self) -> str:
        if not os.path.exists(self.courses_path):
            return "File does not exist"
        try:
            return format_bytes(os.path.getsize(self.courses_path))
        except OSError as exc:
            return f"Error: {exc}"
