"""
Tag-weighted course recommendations for one semester (optionally one category).

Pipeline, each stage narrowing the pool before scoring:
  1. offered in the semester (+ exact category match when requested)
  2. not already anywhere in the student's plan
  3. liked history re-tagged with the current catalog tags
  4. candidate score = mean tag affinity
  5. stable sort by score, descending (ties keep catalog order)
  6. top MAX_RECOMMENDATIONS
"""

import pandas as pd

from data_loader import COURSE_COLUMNS, courses_to_df
from normalizer import normalize_course_id
from preference_scorer import build_tag_affinity, score_tags
from requirements import MAX_RECOMMENDATIONS, UNRATED


def _as_courses_df(catalog) -> pd.DataFrame:
    if isinstance(catalog, pd.DataFrame):
        return catalog
    return courses_to_df(list(catalog or []))


def _flatten_plan(plan) -> list[dict]:
    """Accept a flat list, a list of per-semester lists, or a {key: [courses]} dict."""
    if plan is None:
        return []
    if isinstance(plan, dict):
        groups = plan.values()
    else:
        groups = plan
    out: list[dict] = []
    for item in groups:
        if isinstance(item, dict):
            out.append(item)
        elif isinstance(item, (list, tuple)):
            out.extend(c for c in item if isinstance(c, dict))
    return out


def _plan_course_id(course: dict) -> str:
    raw = str(course.get("course_id", "") or "").strip()
    return normalize_course_id(raw) or raw


def _offered_in(semesters, semester: int) -> bool:
    semesters = list(semesters or [])
    # Courses without offering data are treated as offered every semester.
    return not semesters or semester in semesters


def filter_by_offering(courses_df: pd.DataFrame, semester: int, category_id: int | None = None) -> pd.DataFrame:
    if len(courses_df) == 0:
        return courses_df
    mask = courses_df["semesters"].apply(lambda s: _offered_in(s, semester))
    if category_id is not None:
        mask &= pd.to_numeric(courses_df["category_id"], errors="coerce") == int(category_id)
    return courses_df[mask]


def remove_already_planned(courses_df: pd.DataFrame, plan_courses: list[dict]) -> pd.DataFrame:
    planned_ids = {_plan_course_id(c) for c in plan_courses}
    planned_ids.discard("")
    if len(courses_df) == 0 or not planned_ids:
        return courses_df
    return courses_df[~courses_df["course_id"].isin(planned_ids)]


def liked_history(plan_courses: list[dict]) -> list[dict]:
    """Plan courses carrying a rating (anything but the unrated sentinel)."""
    out = []
    for course in plan_courses:
        try:
            rating = int(course.get("rating", UNRATED))
        except (TypeError, ValueError):
            continue
        if rating != UNRATED:
            out.append(course)
    return out


def add_catalog_tags(liked_courses: list[dict], courses_df: pd.DataFrame) -> list[dict]:
    """
    Replace each liked course's tags with the catalog's current tags for the
    same id. Courses missing from the catalog keep their own tags.
    """
    if len(courses_df) == 0:
        catalog_tags = {}
    else:
        catalog_tags = dict(zip(courses_df["course_id"], courses_df["tags"]))
    enriched = []
    for course in liked_courses:
        course = dict(course)
        cid = _plan_course_id(course)
        if cid in catalog_tags:
            course["tags"] = list(catalog_tags[cid] or [])
        else:
            course["tags"] = list(course.get("tags") or [])
        enriched.append(course)
    return enriched


def score_candidates(candidates_df: pd.DataFrame, affinity: dict[str, float]) -> list[dict]:
    """Return candidate course dicts (catalog order) with a `score` key."""
    scored = []
    for course in candidates_df[COURSE_COLUMNS].to_dict(orient="records"):
        course["semesters"] = list(course["semesters"] or [])
        course["tags"] = list(course["tags"] or [])
        course["score"] = score_tags(course["tags"], affinity)
        scored.append(course)
    return scored


def rank_candidates(scored: list[dict]) -> list[dict]:
    # sorted() is stable, including with reverse=True.
    return sorted(scored, key=lambda c: c["score"], reverse=True)


def get_recommendations(
    catalog,
    plan,
    semester: int,
    category_id: int | None = None,
    max_recommendations: int = MAX_RECOMMENDATIONS,
    with_scores: bool = False,
) -> list[dict]:
    """
    Rank catalog courses for `semester` against the student's plan.

    `catalog` is a catalog DataFrame or a list of course dicts. `plan` is the
    student's whole plan (any semester, any category); its rated courses are
    the liked history. Returns at most MAX_RECOMMENDATIONS course dicts, or []
    when nothing is left after filtering.
    """
    courses_df = _as_courses_df(catalog)
    plan_courses = _flatten_plan(plan)

    candidates_df = filter_by_offering(courses_df, int(semester), category_id)
    candidates_df = remove_already_planned(candidates_df, plan_courses)
    if len(candidates_df) == 0:
        return []

    liked = add_catalog_tags(liked_history(plan_courses), courses_df)
    affinity = build_tag_affinity(liked)

    ranked = rank_candidates(score_candidates(candidates_df, affinity))
    limit = max(0, min(int(max_recommendations), MAX_RECOMMENDATIONS))
    top = ranked[:limit]
    if not with_scores:
        for course in top:
            course.pop("score", None)
    return top
