"""
Snapshot filenames and content types.
"""

import re

from ..models import SnapshotFormat

MAX_STEM_LENGTH = 100

EXTENSIONS = {
    SnapshotFormat.PDF: "pdf",
    SnapshotFormat.HTML: "html",
    SnapshotFormat.EPUB: "epub",
    SnapshotFormat.MARKDOWN: "md",
    SnapshotFormat.TEXT: "txt",
}

MIME_TYPES = {
    SnapshotFormat.PDF: "application/pdf",
    SnapshotFormat.HTML: "text/html",
    SnapshotFormat.EPUB: "application/epub+zip",
    SnapshotFormat.MARKDOWN: "text/markdown",
    SnapshotFormat.TEXT: "text/plain",
}

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\s\-_]", re.I)
_WHITESPACE = re.compile(r"\s+")


def sanitize_filename(title: str) -> str:
    """Filename stem from a title: ASCII letters, digits, '-' and '_' only."""
    stem = _DISALLOWED_CHARS.sub("", title or "")
    stem = _WHITESPACE.sub("-", stem)
    stem = stem[:MAX_STEM_LENGTH].lower()
    return stem or "untitled"


def snapshot_filename(title: str, fmt: SnapshotFormat) -> str:
    return f"{sanitize_filename(title)}.{EXTENSIONS[fmt]}"
