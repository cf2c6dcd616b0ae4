"""
Duplicate URL detection.

Two URLs refer to the same saved article when they normalize identically
either with their query string kept or with it dropped. Dropping the query
tolerates tracking parameters (utm_*, ref, ...) while still catching exact
re-saves.
"""

from urllib.parse import urlsplit, urlunsplit


def normalize_url(url: str, drop_query: bool = False) -> str:
    """
    Normalize a URL for comparison.

    Lower-cases, strips the fragment, optionally strips the query, and
    removes trailing slashes. Input that can't be parsed is only
    lower-cased. normalize_url(normalize_url(u)) == normalize_url(u).
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url.lower()

    if not parts.scheme or not parts.netloc:
        return url.lower().rstrip("/")

    query = "" if drop_query else parts.query
    path = parts.path
    if not query:
        path = path.rstrip("/")
    normalized = urlunsplit((parts.scheme, parts.netloc, path, query, ""))
    return normalized.lower()


def are_duplicates(url_a: str, url_b: str) -> bool:
    """Check whether two URLs refer to the same resource."""
    if normalize_url(url_a) == normalize_url(url_b):
        return True
    return normalize_url(url_a, drop_query=True) == normalize_url(url_b, drop_query=True)
