import pandas as pd

# Category ids whose combined credits gate graduation (Grundlagenfächer + Kernfächer).
FUNDAMENTALS_CATEGORY_IDS = (1, 2)

# Wahlfächer; counted together with the fundamentals for the second threshold.
ELECTIVES_CATEGORY_ID = 4

MIN_FUNDAMENTALS_CREDITS = 84
MIN_FUNDAMENTALS_ELECTIVES_CREDITS = 96
MIN_TOTAL_CREDITS = 180

# Ratings are on a 0..4 scale; -1 marks an unrated course.
UNRATED = -1
NEUTRAL_RATING = 2
MIN_RATING = 0
MAX_RATING = 4

MAX_RECOMMENDATIONS = 3

# Hours between remote "last updated" checks.
DEFAULT_CHECK_INTERVAL_HOURS = 3.0

# Mapping between category_id and category:
#   0 Basisjahr, 1 Grundlagen, 2 Kernfächer, 3 Ergänzung,
#   4 Wahlfächer, 5 GESS, 6 Seminar, 7 Bachelor Arbeit
DEFAULT_CATEGORIES = [
    {"category_id": 0, "name": "Basisjahr Fächer", "icon": "book.closed.fill", "min_credits": 56, "max_credits": 56},
    {"category_id": 1, "name": "Grundlagen Fächer", "icon": "lightbulb.max.fill", "min_credits": 45, "max_credits": 52},
    {"category_id": 2, "name": "Kernfächer", "icon": "star.fill", "min_credits": 32, "max_credits": 180},
    {"category_id": 3, "name": "Ergänzung", "icon": "flask.fill", "min_credits": 5, "max_credits": 180},
    {"category_id": 4, "name": "Wahlfächer", "icon": "doc.text.magnifyingglass", "min_credits": 0, "max_credits": 180},
    {"category_id": 5, "name": "GESS", "icon": "binoculars.fill", "min_credits": 6, "max_credits": 6},
    {"category_id": 6, "name": "Seminar", "icon": "doc.on.doc.fill", "min_credits": 2, "max_credits": 2},
    {"category_id": 7, "name": "Bachelor Arbeit", "icon": "pencil", "min_credits": 10, "max_credits": 10},
]


def _safe_int(val, default: int = 0) -> int:
    try:
        if val is None or pd.isna(val):
            return default
        return int(val)
    except (TypeError, ValueError):
        return default


def normalize_categories(categories) -> list[dict]:
    """
    Return category dicts sorted by category_id.

    Accepts a list of dicts or a categories DataFrame. Rows without a usable
    category_id are dropped; min/max credits default to 0 and are clamped so
    that 0 <= min_credits <= max_credits.
    """
    if categories is None:
        categories = DEFAULT_CATEGORIES
    if isinstance(categories, pd.DataFrame):
        rows = categories.to_dict(orient="records")
    else:
        rows = list(categories)

    out: dict[int, dict] = {}
    for row in rows:
        cid = _safe_int(row.get("category_id"), default=None)
        if cid is None:
            continue
        min_credits = max(0, _safe_int(row.get("min_credits")))
        max_credits = max(min_credits, _safe_int(row.get("max_credits"), default=min_credits))
        out[cid] = {
            "category_id": cid,
            "name": str(row.get("name", "") or "").strip(),
            "icon": str(row.get("icon", "") or "").strip(),
            "min_credits": min_credits,
            "max_credits": max_credits,
        }
    return [out[cid] for cid in sorted(out)]


def get_category(categories: list[dict], category_id) -> dict | None:
    """Return the category with the given id, or None."""
    cid = _safe_int(category_id, default=None)
    if cid is None:
        return None
    for category in categories:
        if category["category_id"] == cid:
            return category
    return None
