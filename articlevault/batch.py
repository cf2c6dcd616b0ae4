"""
Batch coordinator: bulk operations and batch snapshots.

Every item is processed in isolation. A missing, foreign or failing article
is recorded in the BatchResult and the loop moves on to the next id.
"""

import asyncio
import logging
from typing import Any

from .exceptions import ArticleVaultError, BatchTooLargeError, InvalidInputError
from .models import Article, BatchOperation, BatchResult, SnapshotFormat, StylingOptions
from .repository import ArticleRepository
from .services.snapshot_service import SnapshotService
from .snapshots import RenderingSession, parse_format
from .tasks import SnapshotJobQueue

logger = logging.getLogger(__name__)


def parse_operation(value: str) -> BatchOperation:
    try:
        return BatchOperation(value)
    except ValueError:
        allowed = ", ".join(op.value for op in BatchOperation)
        raise InvalidInputError(f"Unsupported operation '{value}'. Use one of: {allowed}")


class BatchCoordinator:
    """Runs bulk operations and batch snapshots over a user's articles."""

    def __init__(
        self,
        repository: ArticleRepository,
        snapshot_service: SnapshotService,
        job_queue: SnapshotJobQueue,
        max_size: int = 50,
        concurrency: int = 1,
    ):
        self.repository = repository
        self.snapshot_service = snapshot_service
        self.job_queue = job_queue
        self.max_size = max_size
        self.concurrency = max(1, concurrency)

    def validate(self, article_ids: list[str]) -> None:
        """Reject empty or oversized batches before any item is touched."""
        if not article_ids:
            raise InvalidInputError("Article IDs are required")
        if len(article_ids) > self.max_size:
            raise BatchTooLargeError(
                f"Maximum batch size is {self.max_size} articles",
                details={"maxBatchSize": self.max_size, "requested": len(article_ids)},
            )

    async def _load_owned(self, user_id: str, article_id: str, result: BatchResult) -> Article | None:
        article = await self.repository.get(article_id)
        if article is None:
            result.record_failure(f"Article {article_id} not found")
            return None
        if article.user_id != user_id:
            result.record_failure(f"Access denied to article {article_id}")
            return None
        return article

    # ─────────────────────────────────────────────────────────────
    # Bulk operations
    # ─────────────────────────────────────────────────────────────

    async def run_batch(
        self,
        user_id: str,
        article_ids: list[str],
        operation: BatchOperation | str,
        params: dict[str, Any] | None = None,
    ) -> BatchResult:
        operation = parse_operation(operation) if isinstance(operation, str) else operation
        self.validate(article_ids)
        params = params or {}
        result = BatchResult(operation=operation.value, total_articles=len(article_ids))

        for article_id in article_ids:
            try:
                article = await self._load_owned(user_id, article_id, result)
                if article is None:
                    continue
                await self._apply(article, operation, params)
                result.successful += 1
            except ArticleVaultError as e:
                result.record_failure(f"Error processing article {article_id}: {e.message}")
            except Exception as e:
                logger.exception(f"Unexpected error in {operation.value} for article {article_id}")
                result.record_failure(f"Error processing article {article_id}: {e}")

        logger.info(
            f"Batch {operation.value} for user {user_id}: "
            f"{result.successful} succeeded, {result.failed} failed"
        )
        return result

    async def _apply(self, article: Article, operation: BatchOperation, params: dict[str, Any]) -> None:
        if operation == BatchOperation.DELETE:
            await self.repository.delete(article)
            return

        if operation == BatchOperation.RE_SNAPSHOT:
            fmt = parse_format(params.get("format") or SnapshotFormat.PDF.value)
            styling = StylingOptions.from_dict(params.get("styling"))
            user_id, article_id = article.user_id, article.id
            self.job_queue.enqueue(
                f"re-snapshot:{article_id}:{fmt.value}",
                lambda: self.run_snapshot_batch(user_id, [article_id], fmt, styling),
            )
            return

        if operation == BatchOperation.RETAG:
            tags = params.get("tags")
            if tags is None:
                return
            if not isinstance(tags, list):
                raise InvalidInputError("params.tags must be a list")
            if params.get("additive"):
                article.add_tags(tags)
            else:
                article.set_tags(tags)
        elif operation == BatchOperation.ARCHIVE:
            article.is_archived = True
        elif operation == BatchOperation.UNARCHIVE:
            article.is_archived = False
        elif operation == BatchOperation.FAVORITE:
            article.is_favorite = True
        elif operation == BatchOperation.UNFAVORITE:
            article.is_favorite = False

        article.touch()
        await self.repository.save(article)

    # ─────────────────────────────────────────────────────────────
    # Batch snapshots
    # ─────────────────────────────────────────────────────────────

    async def run_snapshot_batch(
        self,
        user_id: str,
        article_ids: list[str],
        fmt: SnapshotFormat | str,
        styling: StylingOptions | None = None,
    ) -> BatchResult:
        """
        Snapshot and upload each article. One rendering session is shared by
        every item; at most `concurrency` items run at a time.
        """
        fmt = parse_format(fmt) if isinstance(fmt, str) else fmt
        self.validate(article_ids)
        result = BatchResult(operation=f"snapshot:{fmt.value}", total_articles=len(article_ids))
        settings = await self.repository.get_snapshot_settings(user_id)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def process(article_id: str, session: RenderingSession | None) -> None:
            async with semaphore:
                try:
                    article = await self._load_owned(user_id, article_id, result)
                    if article is None:
                        return
                    await self.snapshot_service.snapshot_article(
                        article,
                        fmt,
                        session=session,
                        styling=styling or settings.custom_styling,
                        upload_to_cloud=True,
                        verify_integrity=settings.verify_integrity,
                        folder_structure=settings.folder_structure,
                        embed_assets=settings.embed_assets,
                    )
                    result.successful += 1
                except ArticleVaultError as e:
                    logger.warning(f"Snapshot failed for article {article_id}: {e.message}")
                    result.record_failure(f"Error processing article {article_id}: {e.message}")
                except Exception as e:
                    logger.exception(f"Unexpected snapshot error for article {article_id}")
                    result.record_failure(f"Error processing article {article_id}: {e}")

        async with self.snapshot_service.rendering_session([fmt]) as session:
            await asyncio.gather(*(process(article_id, session) for article_id in article_ids))

        logger.info(
            f"Batch {fmt.value} snapshot for user {user_id}: "
            f"{result.successful} succeeded, {result.failed} failed"
        )
        return result

    def enqueue_snapshot_batch(
        self,
        user_id: str,
        article_ids: list[str],
        fmt: SnapshotFormat | str,
        styling: StylingOptions | None = None,
    ) -> SnapshotFormat:
        """Validate, then hand the batch to the job queue."""
        fmt = parse_format(fmt) if isinstance(fmt, str) else fmt
        self.validate(article_ids)
        ids = list(article_ids)
        self.job_queue.enqueue(
            f"batch-snapshot:{user_id}:{len(ids)}",
            lambda: self.run_snapshot_batch(user_id, ids, fmt, styling),
        )
        return fmt
