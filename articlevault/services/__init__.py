"""
Service layer for business logic.

Services encapsulate business logic, keeping routes as thin HTTP adapters.
Each service receives its collaborators via constructor injection; the
instances live on app.state.deps.

Usage in routes:
    from ..services import ArticleServiceDep

    @router.get("/articles")
    async def list_articles(service: ArticleServiceDep, user_id: CurrentUser):
        return await service.list_articles(user_id=user_id)
"""

from typing import Annotated

from fastapi import Depends, Request

from .article_service import ArticleService
from .snapshot_service import SnapshotOutcome, SnapshotService

__all__ = [
    # Services
    "ArticleService",
    "SnapshotOutcome",
    "SnapshotService",
    # Dependency factories
    "get_article_service",
    "get_snapshot_service",
    # Type aliases for dependency injection
    "ArticleServiceDep",
    "SnapshotServiceDep",
]


def get_article_service(request: Request) -> ArticleService:
    """Dependency to get the ArticleService instance."""
    return request.app.state.deps.article_service


def get_snapshot_service(request: Request) -> SnapshotService:
    """Dependency to get the SnapshotService instance."""
    return request.app.state.deps.snapshot_service


ArticleServiceDep = Annotated[ArticleService, Depends(get_article_service)]
SnapshotServiceDep = Annotated[SnapshotService, Depends(get_snapshot_service)]
