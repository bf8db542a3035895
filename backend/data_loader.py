import os
import sys
import pandas as pd

from normalizer import normalize_course_id
from requirements import DEFAULT_CATEGORIES, normalize_categories


COURSE_COLUMNS = ["course_id", "category_id", "credits", "course_name", "semesters", "tags", "url"]
CATEGORY_COLUMNS = ["category_id", "name", "icon", "min_credits", "max_credits"]

_LIST_SEPARATORS = (";", "|")


def _split_list(val) -> list[str]:
    """Split a ';'-separated cell (or pass through a list). NaN/None → []."""
    if val is None:
        return []
    if isinstance(val, (list, tuple, set)):
        items = list(val)
    else:
        try:
            if pd.isna(val):
                return []
        except (TypeError, ValueError):
            pass
        text = str(val)
        for sep in _LIST_SEPARATORS[1:]:
            text = text.replace(sep, _LIST_SEPARATORS[0])
        items = text.split(_LIST_SEPARATORS[0])
    return [str(i).strip() for i in items if str(i).strip()]


def _parse_semesters(val) -> list[int]:
    out = []
    for item in _split_list(val):
        try:
            out.append(int(float(item)))
        except ValueError:
            continue
    return list(dict.fromkeys(out))


def _parse_int(val, default=None):
    try:
        if val is None or pd.isna(val):
            return default
        return int(float(val))
    except (TypeError, ValueError):
        return default


def _clean_str(val) -> str:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return ""
    return str(val).strip()


def normalize_course_record(raw: dict) -> dict | None:
    """
    Coerce a raw course mapping (CSV row, JSON object) to a Course dict.

    Returns None when the row has no course id or no integer category id.
    Course ids that look like ETH course numbers are canonicalized; other
    ids are kept as-is (stripped).
    """
    if not isinstance(raw, dict):
        return None
    raw_id = str(raw.get("course_id", raw.get("id", "")) or "").strip()
    if not raw_id or raw_id.lower() == "nan":
        return None
    category_id = _parse_int(raw.get("category_id", raw.get("category")))
    if category_id is None:
        return None
    name = raw.get("course_name", raw.get("name"))
    url = raw.get("url", raw.get("vvz"))
    return {
        "course_id": normalize_course_id(raw_id) or raw_id,
        "category_id": category_id,
        "credits": max(0, _parse_int(raw.get("credits"), default=0)),
        "course_name": _clean_str(name),
        "semesters": _parse_semesters(raw.get("semesters", raw.get("semester"))),
        "tags": list(dict.fromkeys(_split_list(raw.get("tags")))),
        "url": _clean_str(url),
    }


def normalize_courses(rows) -> list[dict]:
    """Normalize an iterable of raw course rows, dropping unusable and duplicate ids."""
    courses: list[dict] = []
    seen: set[str] = set()
    dropped = 0
    for raw in rows:
        course = normalize_course_record(raw)
        if course is None or course["course_id"] in seen:
            dropped += 1
            continue
        seen.add(course["course_id"])
        courses.append(course)
    if dropped:
        print(f"[WARN] Dropped {dropped} course row(s) with a missing/duplicate id or category.", file=sys.stderr)
    return courses


def courses_to_df(courses: list[dict]) -> pd.DataFrame:
    """Build the catalog DataFrame used by the recommender (catalog order kept)."""
    if not courses:
        return pd.DataFrame(columns=COURSE_COLUMNS)
    df = pd.DataFrame(courses)
    for col in COURSE_COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df[COURSE_COLUMNS].reset_index(drop=True)


def df_to_courses(courses_df: pd.DataFrame) -> list[dict]:
    if courses_df is None or len(courses_df) == 0:
        return []
    return normalize_courses(courses_df.to_dict(orient="records"))


def read_tables(data_path: str) -> tuple[pd.DataFrame, pd.DataFrame | None]:
    """Read courses/categories from a directory of CSVs or an xlsx workbook."""
    if os.path.isdir(data_path):
        courses_path = os.path.join(data_path, "courses.csv")
        categories_path = os.path.join(data_path, "categories.csv")
        courses_df = pd.read_csv(courses_path, dtype=str, keep_default_na=False)
        categories_df = (
            pd.read_csv(categories_path) if os.path.exists(categories_path) else None
        )
        return courses_df, categories_df

    xl = pd.ExcelFile(data_path)
    courses_df = xl.parse("courses", dtype=str, keep_default_na=False)
    categories_df = xl.parse("categories") if "categories" in xl.sheet_names else None
    return courses_df, categories_df


def load_data(data_path: str) -> dict:
    """Load and parse the course catalog tables. Raises on file/schema errors."""
    courses_df, categories_df = read_tables(data_path)

    if "course_id" not in courses_df.columns and "id" not in courses_df.columns:
        raise ValueError(f"courses table in {data_path} has no course_id column")

    courses = normalize_courses(courses_df.to_dict(orient="records"))
    if categories_df is None or len(categories_df) == 0:
        print("[INFO] No categories table found; using default categories.")
        categories = normalize_categories(DEFAULT_CATEGORIES)
    else:
        categories = normalize_categories(categories_df)

    # ── Startup data integrity checks ──────────────────────────────────────
    known_categories = {c["category_id"] for c in categories}
    orphaned = sorted(
        c["course_id"] for c in courses if c["category_id"] not in known_categories
    )
    if orphaned:
        print(
            f"[WARN] {len(orphaned)} course(s) reference an unknown category: {orphaned}",
            file=sys.stderr,
        )

    untagged = [c["course_id"] for c in courses if not c["tags"]]
    if untagged:
        print(f"[INFO] {len(untagged)} course(s) have no tags and will score 0 in recommendations.")

    return {
        "courses": courses,
        "courses_df": courses_to_df(courses),
        "categories": categories,
        "catalog_ids": {c["course_id"] for c in courses},
    }
