"""
Publish gate validator for the course catalog.

Checks data-quality rules that must pass before a catalog is served to the
recommendation and plan-validation endpoints. Designed to be importable for
tests and runnable as a standalone CLI.

Usage:
    python scripts/validate_catalog.py
    python scripts/validate_catalog.py --path path/to/catalog.xlsx
    python scripts/validate_catalog.py --strict
"""

import argparse
import os
import sys

import pandas as pd

# backend/ holds the catalog loader and id normalizer
BACKEND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend")
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from data_loader import read_tables  # noqa: E402
from normalizer import normalize_course_id  # noqa: E402


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single catalog validation run."""

    def __init__(self, source: str):
        self.source = source
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Catalog '{self.source}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_not_empty(courses_df: pd.DataFrame, result: ValidationResult) -> None:
    """A published catalog must contain at least one course."""
    if courses_df is None or len(courses_df) == 0:
        result.error("Catalog has no courses.")


def check_unique_ids(courses_df: pd.DataFrame, result: ValidationResult) -> None:
    """Course ids are unique within a snapshot, compared in canonical form."""
    if courses_df is None or len(courses_df) == 0:
        return
    ids = courses_df["course_id"].astype(str).str.strip().map(lambda cid: normalize_course_id(cid) or cid)
    dupes = sorted(ids[ids.duplicated()].unique().tolist())
    if dupes:
        result.error(f"Duplicate course ids: {dupes}")


def check_category_bounds(categories_df: pd.DataFrame, result: ValidationResult) -> None:
    """Every category satisfies 0 <= min_credits <= max_credits."""
    if categories_df is None or len(categories_df) == 0:
        result.warn("No categories table; default categories will be used.")
        return
    for _, row in categories_df.iterrows():
        cid = row.get("category_id")
        lo = pd.to_numeric(row.get("min_credits"), errors="coerce")
        hi = pd.to_numeric(row.get("max_credits"), errors="coerce")
        if pd.isna(lo) or pd.isna(hi):
            result.error(f"Category {cid} has non-numeric min/max credits.")
        elif lo < 0 or lo > hi:
            result.error(f"Category {cid} violates 0 <= min_credits ({lo}) <= max_credits ({hi}).")


def check_course_categories(
    courses_df: pd.DataFrame,
    categories_df: pd.DataFrame,
    result: ValidationResult,
) -> None:
    """Every course references an existing category."""
    if courses_df is None or len(courses_df) == 0:
        return
    if categories_df is None or len(categories_df) == 0:
        return
    known = set(pd.to_numeric(categories_df["category_id"], errors="coerce").dropna().astype(int))
    course_categories = pd.to_numeric(courses_df["category_id"], errors="coerce")
    bad = courses_df.loc[~course_categories.isin(known), "course_id"].astype(str).tolist()
    if bad:
        result.error(f"{len(bad)} course(s) reference an unknown category: {sorted(bad)}")


def check_credits(courses_df: pd.DataFrame, result: ValidationResult) -> None:
    """Credits are non-negative integers."""
    if courses_df is None or len(courses_df) == 0:
        return
    credits = pd.to_numeric(courses_df["credits"], errors="coerce")
    bad = courses_df.loc[credits.isna() | (credits < 0), "course_id"].astype(str).tolist()
    if bad:
        result.error(f"{len(bad)} course(s) have missing or negative credits: {sorted(bad)}")


def check_offerings_and_tags(courses_df: pd.DataFrame, result: ValidationResult) -> None:
    """Soft checks: missing offerings mean 'any semester', missing tags score 0."""
    if courses_df is None or len(courses_df) == 0:
        return
    no_semesters = courses_df.loc[
        courses_df["semesters"].fillna("").astype(str).str.strip() == "", "course_id"
    ].astype(str).tolist()
    if no_semesters:
        result.warn(f"{len(no_semesters)} course(s) have no semester offerings (treated as any semester).")
    no_tags = courses_df.loc[
        courses_df["tags"].fillna("").astype(str).str.strip() == "", "course_id"
    ].astype(str).tolist()
    if no_tags:
        result.warn(f"{len(no_tags)} course(s) have no tags (never boosted by recommendations).")


def validate_catalog(
    courses_df: pd.DataFrame,
    categories_df: pd.DataFrame | None,
    source: str = "catalog",
) -> ValidationResult:
    """Run all checks against raw (unparsed) catalog tables."""
    result = ValidationResult(source)
    check_not_empty(courses_df, result)
    check_unique_ids(courses_df, result)
    check_category_bounds(categories_df, result)
    check_course_categories(courses_df, categories_df, result)
    check_credits(courses_df, result)
    check_offerings_and_tags(courses_df, result)
    return result


# ── CLI ───────────────────────────────────────────────────────────────────────

def main(args=None):
    parser = argparse.ArgumentParser(
        description="Validate catalog data before serving it.",
    )
    parser.add_argument(
        "--path", type=str,
        default=os.path.join(os.path.dirname(__file__), "..", "data"),
        help="Path to the data directory (courses.csv/categories.csv) or an xlsx workbook.",
    )
    parser.add_argument("--strict", action="store_true", help="Treat warnings as failures.")
    opts = parser.parse_args(args)

    try:
        courses_df, categories_df = read_tables(opts.path)
    except (OSError, ValueError) as exc:
        print(f"[FATAL] Could not read catalog at {opts.path}: {exc}", file=sys.stderr)
        return 2

    result = validate_catalog(courses_df, categories_df, source=opts.path)
    print(result.summary())
    if not result.passed:
        return 1
    if opts.strict and result.warnings:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
