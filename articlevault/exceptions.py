"""
Typed pipeline errors.

Every error carries a stable code and the HTTP status the API layer maps it
to, so route handlers never build error envelopes by hand.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


class ArticleVaultError(Exception):
    """Base exception for the article pipeline."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(ArticleVaultError):
    """Missing or malformed request fields."""

    code = "INVALID_INPUT"
    status_code = 400


class BatchTooLargeError(InvalidInputError):
    """Batch request exceeds the configured cap."""

    code = "BATCH_TOO_LARGE"


class DuplicateArticleError(ArticleVaultError):
    """The URL has already been saved by this user."""

    code = "DUPLICATE_ARTICLE"
    status_code = 409


class UnauthorizedError(ArticleVaultError):
    """Missing caller identity or bad API key."""

    code = "UNAUTHORIZED"
    status_code = 401


class NotFoundError(ArticleVaultError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(ArticleVaultError):
    code = "FORBIDDEN"
    status_code = 403


class ExtractionError(ArticleVaultError):
    """Raised inside the extractor; always recovered into a fallback result."""

    code = "EXTRACTION_ERROR"


class SnapshotError(ArticleVaultError):
    """Rendering or transform failure."""

    code = "SNAPSHOT_ERROR"


class UploadError(ArticleVaultError):
    """A storage provider rejected the request."""

    code = "UPLOAD_ERROR"
    status_code = 502


class IntegrityMismatchError(ArticleVaultError):
    """Uploaded copy does not match the original bytes."""

    code = "INTEGRITY_MISMATCH"
    status_code = 500


class PipelineTimeoutError(ArticleVaultError):
    """A suspension point exceeded its budget. Retryable by the caller."""

    code = "TIMEOUT"
    status_code = 504


async def with_timeout(awaitable: Awaitable[T], seconds: float, operation: str) -> T:
    """
    Await with a budget, mapping expiry to PipelineTimeoutError.

    Usage:
        result = await with_timeout(client.upload(...), 60, "upload")
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise PipelineTimeoutError(
            f"{operation} timed out after {seconds:g}s",
            details={"operation": operation},
        ) from e


def require_article(article: T | None, article_id: str) -> T:
    """Raise NotFoundError if article is None."""
    if article is None:
        raise NotFoundError("Article not found", details={"articleId": article_id})
    return article


def require_owner(article: Any, user_id: str) -> None:
    """Raise ForbiddenError if the article belongs to someone else."""
    if article.user_id != user_id:
        raise ForbiddenError("Access denied")
