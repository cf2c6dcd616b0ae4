"""
Article service: business logic for saved articles.

Handles listing, creation (duplicate gate, extraction, persistence,
automatic snapshots), updates and deletion.
"""

import logging
import uuid
from typing import Any

from ..exceptions import DuplicateArticleError, require_article, require_owner
from ..extractor import ContentExtractor
from ..models import Article, utcnow
from ..repository import ArticleRepository
from ..tasks import SnapshotJobQueue
from ..url_validator import validate_article_url
from .snapshot_service import SnapshotService

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "tags", "is_favorite", "is_archived", "read_progress")


class ArticleService:
    """Service for article-related business logic."""

    def __init__(
        self,
        repository: ArticleRepository,
        extractor: ContentExtractor,
        job_queue: SnapshotJobQueue,
        snapshot_service: SnapshotService,
    ):
        self.repository = repository
        self.extractor = extractor
        self.job_queue = job_queue
        self.snapshot_service = snapshot_service

    # ─────────────────────────────────────────────────────────────
    # Listing & Lookup
    # ─────────────────────────────────────────────────────────────

    async def list_articles(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        search: str | None = None,
        tags: list[str] | None = None,
        is_favorite: bool | None = None,
        is_archived: bool | None = None,
    ) -> dict[str, Any]:
        """
        Get a page of the user's articles, newest first.

        Args:
            search: Case-insensitive substring of the title
            tags: Keep articles carrying at least one of these tags
            is_favorite: Filter on favorite state when set
            is_archived: Filter on archive state when set
        """
        articles = await self.repository.list_for_user(user_id)

        if search:
            needle = search.lower()
            articles = [a for a in articles if needle in (a.title or "").lower()]
        if tags:
            wanted = set(tags)
            articles = [a for a in articles if wanted.intersection(a.tags)]
        if is_favorite is not None:
            articles = [a for a in articles if a.is_favorite == is_favorite]
        if is_archived is not None:
            articles = [a for a in articles if a.is_archived == is_archived]

        start = (page - 1) * page_size
        end = start + page_size
        return {
            "items": [a.to_dict() for a in articles[start:end]],
            "total": len(articles),
            "page": page,
            "pageSize": page_size,
            "hasMore": end < len(articles),
        }

    async def get_article(self, user_id: str, article_id: str) -> Article:
        article = require_article(await self.repository.get(article_id), article_id)
        require_owner(article, user_id)
        return article

    async def check_duplicate(self, user_id: str, url: str) -> dict[str, Any]:
        existing = await self.repository.find_duplicate(user_id, url)
        if existing is None:
            return {"isDuplicate": False}
        return {"isDuplicate": True, "existingArticle": existing.to_dict()}

    # ─────────────────────────────────────────────────────────────
    # Create / Update / Delete
    # ─────────────────────────────────────────────────────────────

    async def create_article(self, user_id: str, url: str, tags: list[str] | None = None) -> Article:
        """
        Save a URL for the user.

        Extraction never fails the request: an unreachable page is saved
        with the zero-value fallback content. The article is persisted
        before any automatic snapshot job is queued.

        Raises:
            SSRFError: If the URL is not an allowed http(s) URL
            DuplicateArticleError: If an equivalent URL is already saved
        """
        url = validate_article_url(url)

        existing = await self.repository.find_duplicate(user_id, url)
        if existing is not None:
            raise DuplicateArticleError(
                "This article has already been saved",
                details={"existingArticle": existing.to_dict()},
            )

        extracted = await self.extractor.extract(url)
        logger.info(f"Article extracted using {extracted.extraction_method.value} for {url}")
        if extracted.extraction_error:
            logger.warning(f"Extraction error for {url}: {extracted.extraction_error}")

        now = utcnow()
        article = Article(
            id=str(uuid.uuid4()),
            user_id=user_id,
            url=url,
            title=extracted.title,
            created_at=now,
            updated_at=now,
            content=extracted.content,
            author=extracted.author,
            excerpt=extracted.excerpt,
            image_url=extracted.image_url,
            published_date=extracted.published_date,
            site_name=extracted.site_name,
            word_count=extracted.word_count,
            reading_time_minutes=extracted.reading_time_minutes,
            extraction_method=extracted.extraction_method.value,
        )
        article.set_tags(tags or [])
        await self.repository.save(article)

        settings = await self.repository.get_snapshot_settings(user_id)
        if settings.auto_generate:
            article_id = article.id
            self.job_queue.enqueue(
                f"auto-snapshot:{article_id}",
                lambda: self.snapshot_service.generate_automatic_snapshots(article_id),
            )

        return article

    async def update_article(self, user_id: str, article_id: str, updates: dict[str, Any]) -> Article:
        """Apply title, tags, favorite, archive and progress changes."""
        article = await self.get_article(user_id, article_id)

        for field_name in UPDATABLE_FIELDS:
            if field_name not in updates or updates[field_name] is None:
                continue
            value = updates[field_name]
            if field_name == "tags":
                article.set_tags(value)
            elif field_name == "read_progress":
                article.read_progress = value
                if value >= 100 and article.read_at is None:
                    article.read_at = utcnow()
            else:
                setattr(article, field_name, value)

        article.touch()
        await self.repository.save(article)
        return article

    async def delete_article(self, user_id: str, article_id: str) -> None:
        article = await self.get_article(user_id, article_id)
        await self.repository.delete(article)
        logger.info(f"Deleted article {article_id}")
