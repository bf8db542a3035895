"""
Catalog sources consumed by CatalogCache.

A source exposes two independently addressable calls so freshness can be
checked without a full fetch:

    fetch_last_updated() -> datetime | None
    fetch_courses()      -> list[dict]

Both may raise; the cache treats any exception as "remote unreachable".
"""

import os
from datetime import datetime, timezone

from data_loader import load_data


def data_file_mtime(path: str):
    """Newest mtime of a data file, or of the .csv files in a data directory."""
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


class FileCatalogSource:
    """Catalog backed by `data/` CSVs or an xlsx workbook; marker = newest mtime."""

    def __init__(self, data_path: str):
        self.data_path = data_path

    def fetch_last_updated(self) -> datetime | None:
        mtime = data_file_mtime(self.data_path)
        if mtime is None:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    def fetch_courses(self) -> list[dict]:
        return load_data(self.data_path)["courses"]

    def fetch_categories(self) -> list[dict]:
        return load_data(self.data_path)["categories"]


class StaticCatalogSource:
    """In-memory source, e.g. for seeding a cache from already-fetched rows."""

    def __init__(self, courses: list[dict], last_updated: datetime | None = None):
        self.courses = list(courses)
        self.last_updated = last_updated

    def fetch_last_updated(self) -> datetime | None:
        return self.last_updated

    def fetch_courses(self) -> list[dict]:
        return list(self.courses)
