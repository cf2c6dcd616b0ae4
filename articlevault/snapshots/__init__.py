"""
Snapshot generation: PDF and HTML through a headless browser, EPUB,
Markdown and plain text as pure transforms.
"""

from .filenames import EXTENSIONS, MIME_TYPES, sanitize_filename, snapshot_filename
from .generator import SnapshotGenerator, SnapshotResult, parse_format
from .renderer import BrowserPool, RenderingSession

__all__ = [
    "BrowserPool",
    "EXTENSIONS",
    "MIME_TYPES",
    "RenderingSession",
    "SnapshotGenerator",
    "SnapshotResult",
    "parse_format",
    "sanitize_filename",
    "snapshot_filename",
]
