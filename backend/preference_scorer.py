import sys

from requirements import MAX_RATING, MIN_RATING, NEUTRAL_RATING, UNRATED


def _rating_of(course: dict) -> int | None:
    """Integer rating in [MIN_RATING, MAX_RATING], or None for unrated/invalid."""
    raw = course.get("rating", UNRATED)
    try:
        rating = int(raw)
    except (TypeError, ValueError):
        return None
    if rating == UNRATED:
        return None
    if not (MIN_RATING <= rating <= MAX_RATING):
        print(
            f"[WARN] Ignoring out-of-range rating {rating!r} for course {course.get('course_id')!r}.",
            file=sys.stderr,
        )
        return None
    return rating


def build_tag_affinity(liked_courses: list[dict], neutral_rating: int = NEUTRAL_RATING) -> dict[str, float]:
    """
    Per-tag mean of centered ratings.

    Each rated course adds (rating - neutral_rating) to every one of its tags,
    so on the 0..4 scale a 4 contributes +2, a 2 contributes 0 and a 0
    contributes -2. Tags that no rated course carries are absent from the
    result; callers read them as 0.
    """
    sums: dict[str, float] = {}
    counts: dict[str, int] = {}

    for course in liked_courses:
        rating = _rating_of(course)
        if rating is None:
            continue
        for tag in dict.fromkeys(course.get("tags") or []):
            sums[tag] = sums.get(tag, 0.0) + float(rating - neutral_rating)
            counts[tag] = counts.get(tag, 0) + 1

    return {tag: sums[tag] / counts[tag] for tag in sums}


def score_tags(tags: list[str], affinity: dict[str, float]) -> float:
    """Mean affinity over a course's tags; 0.0 for a course without tags."""
    tags = list(tags or [])
    if not tags:
        return 0.0
    return sum(affinity.get(tag, 0.0) for tag in tags) / len(tags)
