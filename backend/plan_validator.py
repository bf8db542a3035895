"""
Graduation-requirement checks for a full course plan.

Rules run in a fixed order and stop at the first failure, so the reported
message is deterministic:

  1. every category reaches its min_credits (uncapped planned credits)
  2. fundamentals (categories 1 + 2) >= 84
  3. fundamentals + electives (category 4) >= 96
  4. total credits, each category capped at its max_credits, >= 180

Everything is recomputed from the plan on every call; there is no
incremental state to drift.
"""

import pandas as pd

from requirements import (
    ELECTIVES_CATEGORY_ID,
    FUNDAMENTALS_CATEGORY_IDS,
    MIN_FUNDAMENTALS_CREDITS,
    MIN_FUNDAMENTALS_ELECTIVES_CREDITS,
    MIN_TOTAL_CREDITS,
    get_category,
    normalize_categories,
)

RULE_CATEGORY_MINIMUM = "category_minimum"
RULE_FUNDAMENTALS = "fundamentals"
RULE_FUNDAMENTALS_ELECTIVES = "fundamentals_electives"
RULE_TOTAL_CREDITS = "total_credits"

_PLAN_COLUMNS = ["course_id", "category_id", "credits", "passed"]


def _safe_int(val, default=None):
    try:
        if val is None or pd.isna(val):
            return default
        return int(val)
    except (TypeError, ValueError):
        return default


_TRUE_STRINGS = {"1", "true", "yes", "y"}


def _is_passed(raw) -> bool:
    """True for True, 1 and "1"/"true"/"yes"/"y"; "false" and "0" stay False."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw == 1
    return str(raw or "").strip().lower() in _TRUE_STRINGS


def _plan_rows(plan) -> list[dict]:
    """
    Flatten a plan into (course_id, category_id, credits, passed) rows.

    Accepts a flat list of courses, a list of groups (e.g. per semester), or a
    dict of groups keyed by category id; in the last form the key supplies the
    category for courses that carry none. Courses without a usable category
    id are dropped.
    """
    if plan is None:
        return []
    if isinstance(plan, dict):
        grouped = [(_safe_int(key), group) for key, group in plan.items()]
    else:
        grouped = [(None, item) for item in plan]

    rows = []
    for key_category, item in grouped:
        courses = [item] if isinstance(item, dict) else list(item or [])
        for course in courses:
            if not isinstance(course, dict):
                continue
            category_id = _safe_int(course.get("category_id", course.get("category")), key_category)
            if category_id is None:
                continue
            rows.append({
                "course_id": str(course.get("course_id", "") or ""),
                "category_id": category_id,
                "credits": max(0, _safe_int(course.get("credits"), 0)),
                "passed": _is_passed(course.get("passed")),
            })
    return rows


def _plan_df(plan) -> pd.DataFrame:
    return pd.DataFrame(_plan_rows(plan), columns=_PLAN_COLUMNS)


def _sum_by_category(plan_df: pd.DataFrame) -> dict[int, int]:
    if len(plan_df) == 0:
        return {}
    sums = plan_df.groupby("category_id")["credits"].sum()
    return {int(cid): int(total) for cid, total in sums.items()}


def credits_by_category(plan, categories=None, passed_only: bool = False) -> dict[int, int]:
    """
    Planned credits per category id (uncapped). Every known category appears,
    with 0 when the plan has nothing in it.
    """
    plan_df = _plan_df(plan)
    if passed_only and len(plan_df) > 0:
        plan_df = plan_df[plan_df["passed"]]
    sums = _sum_by_category(plan_df)
    out = {c["category_id"]: 0 for c in normalize_categories(categories)}
    for cid, total in sums.items():
        out[cid] = out.get(cid, 0) + total
    return out


def _category_names(categories: list[dict], category_ids) -> list[str]:
    names = []
    for cid in category_ids:
        category = get_category(categories, cid)
        names.append(category["name"] if category and category["name"] else f"#{cid}")
    return names


def _join_names(names: list[str]) -> str:
    if len(names) <= 1:
        return "".join(names)
    return f"{', '.join(names[:-1])} & {names[-1]}"


def validate_plan(
    plan,
    categories=None,
    fundamentals_category_ids=FUNDAMENTALS_CATEGORY_IDS,
    electives_category_id: int = ELECTIVES_CATEGORY_ID,
    min_fundamentals: int = MIN_FUNDAMENTALS_CREDITS,
    min_fundamentals_electives: int = MIN_FUNDAMENTALS_ELECTIVES_CREDITS,
    min_total: int = MIN_TOTAL_CREDITS,
) -> dict:
    """
    Check a plan against the graduation rules.

    Returns:
      {
        "passed": bool,
        "rule": None | "category_minimum" | "fundamentals"
                | "fundamentals_electives" | "total_credits",
        "message": None | str,          # first violated rule, human-readable
        "category_id": int | None,      # set for category_minimum failures
        "fundamentals_credits": int,
        "fundamentals_electives_credits": int,
        "total_credits": int,           # capped per category
      }
    """
    categories = normalize_categories(categories)
    sums = _sum_by_category(_plan_df(plan))

    fundamentals = sum(sums.get(cid, 0) for cid in fundamentals_category_ids)
    fundamentals_electives = fundamentals + sums.get(electives_category_id, 0)
    total = sum(min(sums.get(c["category_id"], 0), c["max_credits"]) for c in categories)

    result = {
        "passed": False,
        "rule": None,
        "message": None,
        "category_id": None,
        "fundamentals_credits": fundamentals,
        "fundamentals_electives_credits": fundamentals_electives,
        "total_credits": total,
    }

    for category in categories:
        if sums.get(category["category_id"], 0) < category["min_credits"]:
            result["rule"] = RULE_CATEGORY_MINIMUM
            result["category_id"] = category["category_id"]
            result["message"] = f"You are missing credits in the category {category['name']}."
            return result

    if fundamentals < min_fundamentals:
        names = _join_names(_category_names(categories, fundamentals_category_ids))
        result["rule"] = RULE_FUNDAMENTALS
        result["message"] = (
            f"You currently have {fundamentals} credits for the categories {names}. "
            f"However, you need at least {min_fundamentals}."
        )
        return result

    if fundamentals_electives < min_fundamentals_electives:
        names = _join_names(
            _category_names(categories, list(fundamentals_category_ids) + [electives_category_id])
        )
        result["rule"] = RULE_FUNDAMENTALS_ELECTIVES
        result["message"] = (
            f"You currently have {fundamentals_electives} credits for the categories {names}. "
            f"However, you need at least {min_fundamentals_electives}."
        )
        return result

    if total < min_total:
        result["rule"] = RULE_TOTAL_CREDITS
        result["message"] = (
            f"You currently have {total} credits in total. "
            f"However, you need at least {min_total}."
        )
        return result

    result["passed"] = True
    return result


def build_credit_summary(plan, categories=None) -> dict:
    """
    Per-category credits overview: planned vs earned (passed) credits, the
    capped amount that counts toward the total, and whether the minimum is
    planned.
    """
    categories = normalize_categories(categories)
    planned = credits_by_category(plan, categories)
    earned = credits_by_category(plan, categories, passed_only=True)

    rows = []
    for category in categories:
        cid = category["category_id"]
        rows.append({
            "category_id": cid,
            "name": category["name"],
            "min_credits": category["min_credits"],
            "max_credits": category["max_credits"],
            "planned_credits": planned.get(cid, 0),
            "earned_credits": earned.get(cid, 0),
            "counted_credits": min(planned.get(cid, 0), category["max_credits"]),
            "satisfied": planned.get(cid, 0) >= category["min_credits"],
        })

    known = {c["category_id"] for c in categories}
    return {
        "categories": rows,
        "planned_total": sum(r["counted_credits"] for r in rows),
        "earned_total": sum(min(r["earned_credits"], r["max_credits"]) for r in rows),
        "unknown_category_ids": sorted(cid for cid in planned if cid not in known),
    }
