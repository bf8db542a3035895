import re
from datetime import date

# HS = Herbstsemester (fall), FS = Frühjahrssemester (spring). 'HS24', 'fs 2025'
SEM_RE = re.compile(r"^(HS|FS)\s*(\d{2}|\d{4})$", re.IGNORECASE)

# Semester indices count from FS 2019 = 0, HS 2019 = 1, FS 2020 = 2, ...
BASE_YEAR = 2019


def _parse_label(label: str):
    m = SEM_RE.match((label or "").strip())
    if not m:
        return None
    term = m.group(1).upper()
    year = int(m.group(2))
    if year < 100:
        year += 2000
    return term, year


def normalize_semester_label(label: str) -> str:
    """'hs 2024' -> 'HS24'. Unparseable labels are returned unchanged."""
    parsed = _parse_label(label)
    if parsed is None:
        return label
    term, year = parsed
    return f"{term}{year % 100:02d}"


def semester_index(label: str) -> int | None:
    """'FS19' -> 0, 'HS19' -> 1, 'HS24' -> 11. None for malformed labels."""
    parsed = _parse_label(label)
    if parsed is None:
        return None
    term, year = parsed
    return (year - BASE_YEAR) * 2 + (1 if term == "HS" else 0)


def semester_label(index: int) -> str:
    year = BASE_YEAR + index // 2
    term = "HS" if index % 2 == 1 else "FS"
    return f"{term}{year % 100:02d}"


def is_fall(index: int) -> bool:
    return index % 2 == 1


def current_semester_index(today: date | None = None) -> int:
    """ISO weeks 23..51 are HS; every other week, 52/53 included, is FS."""
    today = today or date.today()
    week = today.isocalendar()[1]
    is_hs = 23 <= week <= 51
    return (today.year - BASE_YEAR) * 2 + (1 if is_hs else 0)


def last_semesters(count: int = 5, today: date | None = None) -> list[str]:
    """
    The current semester label followed by the previous ones, newest first:
    ['HS24', 'FS24', 'HS23', 'FS23', 'HS22'].
    """
    index = current_semester_index(today)
    return [semester_label(index - offset) for offset in range(max(0, count))]


def parse_semester(value) -> int | None:
    """Accept an index (int or numeric string) or an 'HS24'-style label."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    if text.lstrip("-").isdigit():
        return int(text)
    return semester_index(text)
