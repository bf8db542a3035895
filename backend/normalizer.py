import re

# Matches: 252-0025-01L, 2520025-01L, 252 0025 01 l, 252002501L, etc.
CANONICAL = re.compile(r'^(\d{3})\s*[-]?\s*(\d{4})\s*[-]?\s*(\d{2})\s*([A-Za-z])$')

# Free-text lists may be separated by commas, semicolons or newlines.
SEPARATORS = re.compile(r'[,;\r\n]+')


def normalize_course_id(raw: str) -> str | None:
    """
    Normalizes an ETH course number to canonical 'DDD-DDDD-DDL' format.
    Handles: '252-0025-01L', '252-0025-01l', '252 0025 01L', '252002501L'
    Returns None if the string cannot be parsed as a course number.
    """
    if not raw or not raw.strip():
        return None
    m = CANONICAL.match(raw.strip())
    if m is None:
        return None
    dept, number, variant, suffix = m.groups()
    return f"{dept}-{number}-{variant}{suffix.upper()}"


def split_tokens(raw_str: str) -> list[str]:
    """Non-empty, stripped tokens of a pasted course list, in input order."""
    return [t.strip() for t in SEPARATORS.split(raw_str or "") if t.strip()]


def normalize_input(raw_str: str, catalog_ids: set) -> dict:
    """
    Sort pasted course numbers into three buckets.

    Returns:
      {
        "valid":          ["252-0025-01L"],   # canonical and in the catalog
        "invalid":        ["asdfasdf"],       # not a course number at all
        "not_in_catalog": ["252-9999-00L"]    # well-formed but unknown
      }

    Each id is reported once, under its first occurrence.
    """
    buckets = {"valid": [], "invalid": [], "not_in_catalog": []}
    reported: set[str] = set()

    for token in split_tokens(raw_str):
        course_id = normalize_course_id(token)
        key = course_id or token
        if key in reported:
            continue
        reported.add(key)
        if course_id is None:
            buckets["invalid"].append(token)
        elif course_id in catalog_ids:
            buckets["valid"].append(course_id)
        else:
            buckets["not_in_catalog"].append(course_id)

    return buckets
