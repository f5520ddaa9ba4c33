from typing import Iterable, Optional


def match_status(query: str, statuses: Iterable[str]) -> Optional[str]:
    """Resolve a user-typed status against the names a space actually uses.

    Tries a case-insensitive exact match, then a prefix match, then a substring
    match. Within each tier the first status in input order wins. Returns None
    when the query is empty or nothing matches.
    """
    if not query:
        return None
    candidates = list(statuses)
    q = query.lower()

    for s in candidates:
        if s.lower() == q:
            return s
    for s in candidates:
        if s.lower().startswith(q):
            return s
    for s in candidates:
        if q in s.lower():
            return s
    return None
