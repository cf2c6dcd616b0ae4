"""
Word count and reading time estimation.
"""

import math
import re

WORDS_PER_MINUTE = 225

_TAG_RE = re.compile(r"<[^>]*>")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_MARKDOWN_EMPHASIS_RE = re.compile(r"[#*_~`]")


def count_words(text: str | None) -> int:
    """Count words in HTML, markdown or plain text."""
    if not text:
        return 0

    cleaned = _TAG_RE.sub(" ", text)
    cleaned = _MARKDOWN_LINK_RE.sub(r"\1", cleaned)
    cleaned = _MARKDOWN_EMPHASIS_RE.sub("", cleaned)
    return len(cleaned.split())


def estimate_reading_time(word_count: int) -> int:
    """
    Estimate reading time in minutes at 225 words per minute.

    Any non-empty text takes at least one minute; empty text takes zero.
    """
    if word_count <= 0:
        return 0
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def analyze_content(text: str | None) -> tuple[int, int]:
    """Return (word_count, reading_time_minutes) for the given text."""
    word_count = count_words(text)
    return word_count, estimate_reading_time(word_count)
