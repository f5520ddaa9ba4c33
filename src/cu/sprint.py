"""
Sprint heuristics.

Sprint lists carry their date range in the name, e.g. "Sprint 4 (2/12 - 2/25)".
These helpers read those ranges, pick the list covering today, and guess which
spaces are related to the ones a user works in.
"""

import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence

SPRINT_DATE_RE = re.compile(r"\((\d{1,2})/(\d{1,2})\s*[-–]\s*(\d{1,2})/(\d{1,2})\)")
PUNCTUATION_RE = re.compile(r"[^\w\s]|_")

NOISE_WORDS = {"product", "team", "the", "and", "for", "test"}
MIN_KEYWORD_LENGTH = 3


class SprintDateRange(NamedTuple):
    start: datetime
    end: datetime


def parse_sprint_dates(name: str, today: Optional[datetime] = None) -> Optional[SprintDateRange]:
    """Parse "(M/D - M/D)" out of a list name.

    Both dates are placed in the year of `today`; an end before the start
    rolls into the next year. Returns None when there is no range or either
    date does not exist on the calendar.
    """
    m = SPRINT_DATE_RE.search(name or "")
    if not m:
        return None
    year = (today or datetime.now()).year
    sm, sd, em, ed = (int(g) for g in m.groups())
    try:
        start = datetime(year, sm, sd)
        end = datetime(year, em, ed, 23, 59, 59)
        if end < start:
            end = end.replace(year=year + 1)
    except ValueError:
        return None
    return SprintDateRange(start, end)


def find_active_sprint_list(
    lists: Sequence[Dict[str, Any]],
    today: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Return the first list whose range covers today, else the last list."""
    if not lists:
        return None
    if len(lists) == 1:
        return lists[0]
    now = today or datetime.now()
    for lst in lists:
        rng = parse_sprint_dates(lst.get("name", ""), now)
        if rng and rng.start <= now <= rng.end:
            return lst
    return lists[-1]


def extract_space_keywords(name: str) -> List[str]:
    words = PUNCTUATION_RE.sub("", name or "").lower().split()
    out: List[str] = []
    for w in words:
        if len(w) < MIN_KEYWORD_LENGTH or w in NOISE_WORDS or w in out:
            continue
        out.append(w)
    return out


def find_related_spaces(
    my_space_ids: Iterable[str],
    all_spaces: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Spaces that are mine or share a name keyword with one of mine.

    Falls back to every space when my spaces yield no keywords.
    """
    mine = set(my_space_ids)
    keywords: List[str] = []
    for space in all_spaces:
        if space.get("id") in mine:
            for kw in extract_space_keywords(space.get("name", "")):
                if kw not in keywords:
                    keywords.append(kw)

    if not keywords:
        return list(all_spaces)

    related = []
    for space in all_spaces:
        lowered = space.get("name", "").lower()
        if space.get("id") in mine or any(kw in lowered for kw in keywords):
            related.append(space)
    return related
