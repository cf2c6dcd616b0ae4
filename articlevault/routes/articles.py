"""
Article routes: CRUD, duplicate check, snapshots, previews and batch work.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from ..auth import get_current_user
from ..dependencies import Dependencies, get_deps
from ..exceptions import NotFoundError
from ..rate_limit import get_snapshot_rate_limit, limiter
from ..schemas import (
    BatchOperationRequest,
    BatchSnapshotRequest,
    CheckDuplicateRequest,
    CreateArticleRequest,
    PreviewRequest,
    SnapshotRequest,
    UpdateArticleRequest,
    success,
)
from ..services import ArticleServiceDep, SnapshotServiceDep

CurrentUser = Annotated[str, Depends(get_current_user)]
Deps = Annotated[Dependencies, Depends(get_deps)]

router = APIRouter(prefix="/articles", tags=["articles"])

# Preview links are opened directly by the browser, so they carry no identity
public_router = APIRouter(prefix="/articles", tags=["previews"])


# ─────────────────────────────────────────────────────────────
# List & Create (static paths first)
# ─────────────────────────────────────────────────────────────

@router.get("")
async def list_articles(
    user_id: CurrentUser,
    service: ArticleServiceDep,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, alias="pageSize", ge=1, le=100),
    search: str | None = None,
    tags: list[str] | None = Query(default=None),
    is_favorite: bool | None = Query(default=None, alias="isFavorite"),
    is_archived: bool | None = Query(default=None, alias="isArchived"),
) -> dict:
    """Get the caller's articles, newest first.

    Args:
        tags: Repeat the parameter or pass a comma-separated list
    """
    tag_filter = None
    if tags:
        tag_filter = [t.strip() for value in tags for t in value.split(",") if t.strip()]

    data = await service.list_articles(
        user_id,
        page=page,
        page_size=page_size,
        search=search,
        tags=tag_filter,
        is_favorite=is_favorite,
        is_archived=is_archived,
    )
    return success(data)


@router.post("", status_code=201)
async def create_article(
    body: CreateArticleRequest,
    user_id: CurrentUser,
    service: ArticleServiceDep,
) -> dict:
    """Save a URL: duplicate check, extraction, then persistence."""
    article = await service.create_article(user_id, body.url, body.tags)
    return success(article.to_dict())


@router.post("/check-duplicate")
async def check_duplicate(
    body: CheckDuplicateRequest,
    user_id: CurrentUser,
    service: ArticleServiceDep,
) -> dict:
    return success(await service.check_duplicate(user_id, body.url))


# ─────────────────────────────────────────────────────────────
# Batch
# ─────────────────────────────────────────────────────────────

@router.post("/batch/snapshot")
@limiter.limit(get_snapshot_rate_limit())
async def batch_snapshot(
    request: Request,
    body: BatchSnapshotRequest,
    user_id: CurrentUser,
    deps: Deps,
) -> dict:
    """Queue snapshots for many articles and return immediately."""
    styling = body.styling.to_options() if body.styling else None
    fmt = deps.batch.enqueue_snapshot_batch(user_id, body.article_ids, body.format, styling)
    return success({
        "message": f"Batch snapshot generation started for {len(body.article_ids)} articles",
        "articleIds": body.article_ids,
        "format": fmt.value,
    })


@router.post("/batch/operations")
@limiter.limit(get_snapshot_rate_limit())
async def batch_operations(
    request: Request,
    body: BatchOperationRequest,
    user_id: CurrentUser,
    deps: Deps,
) -> dict:
    """Apply one operation to many articles; per-item failures are listed."""
    result = await deps.batch.run_batch(user_id, body.article_ids, body.operation, body.params)
    return success(result.to_dict())


# ─────────────────────────────────────────────────────────────
# Single article
# ─────────────────────────────────────────────────────────────

@router.get("/{article_id}")
async def get_article(article_id: str, user_id: CurrentUser, service: ArticleServiceDep) -> dict:
    article = await service.get_article(user_id, article_id)
    return success(article.to_dict())


@router.put("/{article_id}")
async def update_article(
    article_id: str,
    body: UpdateArticleRequest,
    user_id: CurrentUser,
    service: ArticleServiceDep,
) -> dict:
    article = await service.update_article(user_id, article_id, body.model_dump(exclude_none=True))
    return success(article.to_dict())


@router.delete("/{article_id}")
async def delete_article(article_id: str, user_id: CurrentUser, service: ArticleServiceDep) -> dict:
    await service.delete_article(user_id, article_id)
    return success({"id": article_id, "deleted": True})


# ─────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────

@router.post("/{article_id}/snapshot")
@limiter.limit(get_snapshot_rate_limit())
async def create_snapshot(
    request: Request,
    article_id: str,
    body: SnapshotRequest,
    user_id: CurrentUser,
    service: SnapshotServiceDep,
) -> dict:
    """Generate one snapshot now and upload it to the active storage connection."""
    outcome = await service.create_snapshot(
        user_id,
        article_id,
        body.format,
        styling=body.styling.to_options() if body.styling else None,
        upload_to_cloud=body.upload_to_cloud,
        verify_integrity=body.verify_integrity,
    )
    return success(outcome.to_dict())


@router.post("/{article_id}/snapshot/preview")
@limiter.limit(get_snapshot_rate_limit())
async def create_preview(
    request: Request,
    article_id: str,
    body: PreviewRequest,
    user_id: CurrentUser,
    service: SnapshotServiceDep,
) -> dict:
    return success(await service.create_preview(user_id, article_id, body.format))


@public_router.get("/preview/{preview_id}")
async def get_preview(preview_id: str, deps: Deps) -> Response:
    """Serve stored preview bytes until their TTL runs out."""
    content = await deps.repository.get_preview(preview_id)
    if content is None:
        raise NotFoundError("Preview not found or expired", details={"previewId": preview_id})

    media_type = "application/pdf" if content.startswith(b"%PDF") else "text/html"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
