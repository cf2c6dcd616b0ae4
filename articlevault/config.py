"""
Configuration from environment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    PORT: int = int(os.getenv("PORT", "5005"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Key-value collaborator: "memory" for tests/dev, "disk" for a local JSON store
    KV_BACKEND: str = os.getenv("KV_BACKEND", "memory")
    KV_DIR: Path = Path(os.getenv("KV_DIR", "./data/kv"))

    # Optional API key required alongside the X-User-Id identity header
    AUTH_API_KEY: str = os.getenv("AUTH_API_KEY", "")
    RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))

    # Content extraction
    READER_BASE_URL: str = os.getenv("READER_BASE_URL", "https://r.jina.ai/")
    USE_READER_SERVICE: bool = _parse_bool(os.getenv("USE_READER_SERVICE"), default=True)
    EXTRACTION_TIMEOUT: float = float(os.getenv("EXTRACTION_TIMEOUT", "15"))  # seconds

    # Browser rendering (PDF/HTML snapshots)
    ENABLE_BROWSER_RENDERING: bool = _parse_bool(os.getenv("ENABLE_BROWSER_RENDERING"), default=True)
    RENDER_TIMEOUT: int = int(os.getenv("RENDER_TIMEOUT", "30000"))  # ms
    MAX_BROWSER_SESSIONS: int = int(os.getenv("MAX_BROWSER_SESSIONS", "2"))

    # Suspension point budgets (seconds)
    SNAPSHOT_TIMEOUT: float = float(os.getenv("SNAPSHOT_TIMEOUT", "120"))
    UPLOAD_TIMEOUT: float = float(os.getenv("UPLOAD_TIMEOUT", "60"))
    INTEGRITY_TIMEOUT: float = float(os.getenv("INTEGRITY_TIMEOUT", "30"))

    # Batch processing
    BATCH_MAX_SIZE: int = int(os.getenv("BATCH_MAX_SIZE", "50"))
    BATCH_CONCURRENCY: int = int(os.getenv("BATCH_CONCURRENCY", "1"))
    SNAPSHOT_WORKERS: int = int(os.getenv("SNAPSHOT_WORKERS", "1"))

    PREVIEW_TTL_SECONDS: int = int(os.getenv("PREVIEW_TTL_SECONDS", "3600"))

    # Produce a zip-packaged EPUB instead of the single XHTML document
    EPUB_PACKAGE: bool = _parse_bool(os.getenv("EPUB_PACKAGE"), default=False)

    SNAPSHOT_ROOT_FOLDER: str = os.getenv("SNAPSHOT_ROOT_FOLDER", "ArticleVault")

    # OAuth client credentials, only used to refresh expired access tokens
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    DROPBOX_CLIENT_ID: str = os.getenv("DROPBOX_CLIENT_ID", "")
    DROPBOX_CLIENT_SECRET: str = os.getenv("DROPBOX_CLIENT_SECRET", "")
    ONEDRIVE_CLIENT_ID: str = os.getenv("ONEDRIVE_CLIENT_ID", "")
    ONEDRIVE_CLIENT_SECRET: str = os.getenv("ONEDRIVE_CLIENT_SECRET", "")


config = Config()
