"""
Domain models - dataclasses for stored and transient pipeline values.

Stored records serialize to camelCase JSON so every consumer of the
key-value store (web app, browser extension) sees the same shape.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


class SnapshotFormat(str, Enum):
    PDF = "pdf"
    HTML = "html"
    EPUB = "epub"
    MARKDOWN = "markdown"
    TEXT = "text"

    @property
    def needs_browser(self) -> bool:
        return self in (SnapshotFormat.PDF, SnapshotFormat.HTML)


class StorageProvider(str, Enum):
    GOOGLE_DRIVE = "google_drive"
    DROPBOX = "dropbox"
    ONEDRIVE = "onedrive"


class ExtractionMethod(str, Enum):
    PRIMARY = "primary"
    FALLBACK_HTML = "fallback-html"
    FALLBACK = "fallback"


class BatchOperation(str, Enum):
    DELETE = "delete"
    RETAG = "retag"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    FAVORITE = "favorite"
    UNFAVORITE = "unfavorite"
    RE_SNAPSHOT = "re-snapshot"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse ISO-8601 timestamps, including the trailing 'Z' form JS clients write."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ─────────────────────────────────────────────────────────────
# Articles
# ─────────────────────────────────────────────────────────────

_IMMUTABLE_ARTICLE_FIELDS = frozenset({"id", "user_id", "url", "created_at"})


@dataclass
class Article:
    id: str
    user_id: str
    url: str
    title: str
    created_at: datetime
    updated_at: datetime
    content: str = ""
    author: str | None = None
    excerpt: str | None = None
    image_url: str | None = None
    published_date: str | None = None
    site_name: str | None = None
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False
    is_archived: bool = False
    read_progress: int = 0
    read_at: datetime | None = None
    word_count: int = 0
    reading_time_minutes: int = 0
    snapshots: dict[str, str] = field(default_factory=dict)
    storage_provider: str | None = None
    extraction_method: str | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_ARTICLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"Article.{name} is immutable after creation")
        super().__setattr__(name, value)

    def touch(self, now: datetime | None = None) -> None:
        """Advance updated_at; strictly increasing even if the clock hasn't moved."""
        now = now or utcnow()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now

    def set_tags(self, tags: list[str]) -> None:
        """Replace tags, keeping first-seen order and dropping repeats."""
        self.tags = list(dict.fromkeys(t for t in tags if t))

    def add_tags(self, tags: list[str]) -> None:
        self.set_tags([*self.tags, *tags])

    def set_snapshot_link(self, fmt: str, link: str | None, provider: str | None) -> None:
        if link:
            self.snapshots[fmt] = link
        if provider:
            self.storage_provider = provider

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "url": self.url,
            "title": self.title,
            "author": self.author,
            "content": self.content,
            "excerpt": self.excerpt,
            "imageUrl": self.image_url,
            "publishedDate": self.published_date,
            "siteName": self.site_name,
            "tags": list(self.tags),
            "isFavorite": self.is_favorite,
            "isArchived": self.is_archived,
            "readProgress": self.read_progress,
            "readAt": format_timestamp(self.read_at),
            "wordCount": self.word_count,
            "readingTimeMinutes": self.reading_time_minutes,
            "snapshots": dict(self.snapshots),
            # Mirrors kept for consumers that predate per-format links
            "snapshotPdfUrl": self.snapshots.get(SnapshotFormat.PDF.value),
            "snapshotHtmlUrl": self.snapshots.get(SnapshotFormat.HTML.value),
            "storageProvider": self.storage_provider,
            "extractionMethod": self.extraction_method,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        snapshots = dict(data.get("snapshots") or {})
        if data.get("snapshotPdfUrl"):
            snapshots.setdefault(SnapshotFormat.PDF.value, data["snapshotPdfUrl"])
        if data.get("snapshotHtmlUrl"):
            snapshots.setdefault(SnapshotFormat.HTML.value, data["snapshotHtmlUrl"])

        created_at = parse_timestamp(data.get("createdAt")) or utcnow()
        return cls(
            id=data["id"],
            user_id=data["userId"],
            url=data["url"],
            title=data.get("title") or "Untitled",
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updatedAt")) or created_at,
            content=data.get("content") or "",
            author=data.get("author"),
            excerpt=data.get("excerpt"),
            image_url=data.get("imageUrl"),
            published_date=data.get("publishedDate"),
            site_name=data.get("siteName"),
            tags=list(data.get("tags") or []),
            is_favorite=bool(data.get("isFavorite", False)),
            is_archived=bool(data.get("isArchived", False)),
            read_progress=int(data.get("readProgress") or 0),
            read_at=parse_timestamp(data.get("readAt")),
            word_count=int(data.get("wordCount") or 0),
            reading_time_minutes=int(data.get("readingTimeMinutes") or 0),
            snapshots=snapshots,
            storage_provider=data.get("storageProvider"),
            extraction_method=data.get("extractionMethod"),
        )


@dataclass
class ExtractedContent:
    """Result of extracting a URL. Never persisted on its own."""
    title: str
    content: str
    extraction_method: ExtractionMethod
    author: str | None = None
    excerpt: str | None = None
    published_date: str | None = None
    site_name: str | None = None
    image_url: str | None = None
    word_count: int = 0
    reading_time_minutes: int = 0
    extraction_error: str | None = None


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────

@dataclass
class StylingOptions:
    font_size: str | None = None
    font_family: str | None = None
    line_height: float | None = None
    max_width: str | None = None
    theme: str | None = None  # light, dark, sepia

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "StylingOptions | None":
        if not data:
            return None
        return cls(
            font_size=data.get("fontSize"),
            font_family=data.get("fontFamily"),
            line_height=data.get("lineHeight"),
            max_width=data.get("maxWidth"),
            theme=data.get("theme"),
        )


@dataclass
class FolderStructure:
    organization_strategy: str = "flat"  # flat, date, domain, tags, custom
    date_format: str = "YYYY-MM"
    separate_by_tag: bool = False
    custom_path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FolderStructure | None":
        if not data:
            return None
        return cls(
            organization_strategy=data.get("organizationStrategy", "flat"),
            date_format=data.get("dateFormat", "YYYY-MM"),
            separate_by_tag=bool(data.get("separateByTag", False)),
            custom_path=data.get("customPath"),
        )


@dataclass
class SnapshotSettings:
    auto_generate: bool = False
    default_format: str = "pdf"  # pdf, html, both
    upload_to_cloud: bool = False
    embed_assets: bool = True
    verify_integrity: bool = False
    custom_styling: StylingOptions | None = None
    folder_structure: FolderStructure | None = None

    @property
    def formats(self) -> list[SnapshotFormat]:
        if self.default_format == "both":
            return [SnapshotFormat.PDF, SnapshotFormat.HTML]
        return [SnapshotFormat(self.default_format)]

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SnapshotSettings":
        data = data or {}
        folder_structure = FolderStructure.from_dict(data.get("folderStructure"))
        # Older settings documents only carry a bare strategy name
        if folder_structure is None and data.get("organizationStrategy"):
            strategy = data["organizationStrategy"]
            folder_structure = FolderStructure(
                organization_strategy="flat" if strategy == "none" else strategy
            )
        return cls(
            auto_generate=bool(data.get("autoGenerate", False)),
            default_format=data.get("defaultFormat", "pdf"),
            upload_to_cloud=bool(data.get("uploadToCloud", False)),
            embed_assets=bool(data.get("embedAssets", True)),
            verify_integrity=bool(data.get("verifyIntegrity", False)),
            custom_styling=StylingOptions.from_dict(data.get("customStyling")),
            folder_structure=folder_structure,
        )


# ─────────────────────────────────────────────────────────────
# Storage
# ─────────────────────────────────────────────────────────────

@dataclass
class StorageConnection:
    id: str
    user_id: str
    provider: StorageProvider
    is_active: bool
    provider_user_id: str | None = None
    email: str | None = None
    display_name: str | None = None
    quota_used: int | None = None
    quota_total: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StorageConnection":
        return cls(
            id=data["id"],
            user_id=data.get("userId", ""),
            provider=StorageProvider(data["provider"]),
            is_active=bool(data.get("isActive", False)),
            provider_user_id=data.get("providerUserId"),
            email=data.get("email"),
            display_name=data.get("displayName"),
            quota_used=data.get("quotaUsed"),
            quota_total=data.get("quotaTotal"),
        )


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None  # epoch milliseconds
    scope: str | None = None

    def is_expired(self, now: datetime | None = None, skew_seconds: int = 60) -> bool:
        if self.expires_at is None:
            return False
        now = now or utcnow()
        return self.expires_at <= (now.timestamp() + skew_seconds) * 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OAuthTokens":
        # Accept both the camelCase shape and raw provider token responses
        return cls(
            access_token=data.get("accessToken") or data["access_token"],
            refresh_token=data.get("refreshToken") or data.get("refresh_token"),
            expires_at=data.get("expiresAt"),
            scope=data.get("scope"),
        )


@dataclass
class IntegrityCheck:
    article_id: str
    snapshot_url: str
    original_size: int
    verified_size: int
    checksum: str
    is_valid: bool
    checked_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "articleId": self.article_id,
            "snapshotUrl": self.snapshot_url,
            "originalSize": self.original_size,
            "verifiedSize": self.verified_size,
            "checksum": self.checksum,
            "isValid": self.is_valid,
            "checkedAt": format_timestamp(self.checked_at),
        }


@dataclass
class BatchResult:
    operation: str
    total_articles: int
    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "totalArticles": self.total_articles,
            "successful": self.successful,
            "failed": self.failed,
            "errors": list(self.errors),
        }
