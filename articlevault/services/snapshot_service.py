"""
Snapshot service: generate, place, upload and verify article snapshots.

Drives one article through SnapshotGenerator -> FolderPathPlanner ->
storage upload -> IntegrityVerifier and records the resulting link on the
article. Used by the snapshot routes, the batch coordinator and the
automatic snapshot job.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, Callable

from ..config import Config
from ..exceptions import SnapshotError, require_article, require_owner, with_timeout
from ..folder_path import FolderPathContext, plan_folder_path
from ..integrity import IntegrityVerifier
from ..models import (
    Article,
    FolderStructure,
    IntegrityCheck,
    SnapshotFormat,
    StorageProvider,
    StylingOptions,
    utcnow,
)
from ..repository import ArticleRepository
from ..snapshots import BrowserPool, RenderingSession, SnapshotGenerator, SnapshotResult, parse_format
from ..storage import StorageClient, TokenCipher, UploadResult, resolve_access_token

logger = logging.getLogger(__name__)

PREVIEW_FORMATS = (SnapshotFormat.PDF, SnapshotFormat.HTML)


@dataclass
class SnapshotOutcome:
    format: SnapshotFormat
    result: SnapshotResult
    cloud_url: str | None = None
    provider: str | None = None
    integrity_check: IntegrityCheck | None = None

    def to_dict(self) -> dict:
        data = {
            "format": self.format.value,
            "filename": self.result.filename,
            "size": self.result.size,
            "mimeType": self.result.mime_type,
            "cloudUrl": self.cloud_url,
            "uploadedToCloud": bool(self.cloud_url),
        }
        if self.integrity_check is not None:
            data["integrityCheck"] = self.integrity_check.to_dict()
        return data


class SnapshotService:
    """Service for snapshot generation and delivery."""

    def __init__(
        self,
        repository: ArticleRepository,
        generator: SnapshotGenerator,
        browser_pool: BrowserPool | None,
        cipher: TokenCipher,
        storage_clients: Callable[[StorageProvider], StorageClient],
        verifier: IntegrityVerifier,
        settings: Config,
    ):
        self.repository = repository
        self.generator = generator
        self.browser_pool = browser_pool
        self.cipher = cipher
        self.storage_clients = storage_clients
        self.verifier = verifier
        self.settings = settings

    # ─────────────────────────────────────────────────────────────
    # Sessions & uploads
    # ─────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def rendering_session(self, formats: list[SnapshotFormat]) -> AsyncIterator[RenderingSession | None]:
        """Open one browser session when any of the formats needs it."""
        if not any(fmt.needs_browser for fmt in formats):
            yield None
            return
        if self.browser_pool is None:
            raise SnapshotError("Browser rendering is disabled on this server")
        async with self.browser_pool.session() as session:
            yield session

    async def upload(
        self,
        user_id: str,
        result: SnapshotResult,
        folder_path: str,
    ) -> tuple[UploadResult, StorageProvider] | None:
        """Upload to the user's active storage connection; None if there is none."""
        resolved = await resolve_access_token(
            self.repository,
            self.cipher,
            user_id,
            client_for=lambda connection: self.storage_clients(connection.provider),
        )
        if resolved is None:
            logger.info(f"User {user_id} has no active storage connection; skipping upload")
            return None

        connection, access_token = resolved
        client = self.storage_clients(connection.provider)
        upload = await with_timeout(
            client.upload(access_token, result.filename, result.mime_type, result.as_bytes(), folder_path),
            self.settings.UPLOAD_TIMEOUT,
            "upload",
        )
        logger.info(f"Uploaded {result.filename} to {connection.provider.value}:{folder_path}")
        return upload, connection.provider

    # ─────────────────────────────────────────────────────────────
    # Single article pipeline
    # ─────────────────────────────────────────────────────────────

    async def snapshot_article(
        self,
        article: Article,
        fmt: SnapshotFormat,
        session: RenderingSession | None = None,
        styling: StylingOptions | None = None,
        upload_to_cloud: bool = True,
        verify_integrity: bool = False,
        folder_structure: FolderStructure | None = None,
        embed_assets: bool = True,
    ) -> SnapshotOutcome:
        """
        Generate one snapshot and deliver it.

        The article is re-read before the snapshot link is written so
        concurrent edits made while rendering are kept.
        """
        result = await self.generator.generate(
            fmt, article, session=session, styling=styling, embed_assets=embed_assets
        )
        outcome = SnapshotOutcome(format=fmt, result=result)

        if not upload_to_cloud:
            return outcome

        folder_path = plan_folder_path(
            FolderPathContext(
                title=article.title,
                url=article.url,
                created_at=article.created_at,
                tags=list(article.tags),
            ),
            folder_structure,
            root=self.settings.SNAPSHOT_ROOT_FOLDER,
        )
        uploaded = await self.upload(article.user_id, result, folder_path)
        if uploaded is None:
            return outcome

        upload, provider = uploaded
        outcome.cloud_url = upload.web_view_link or upload.download_url
        outcome.provider = provider.value

        # View links serve a viewer page; integrity needs the raw bytes
        verify_url = upload.download_url or outcome.cloud_url
        if verify_integrity and verify_url:
            check = await self.verifier.verify(article.id, verify_url, result.content, result.size)
            await self.repository.save_integrity_check(check, fmt.value)
            outcome.integrity_check = check

        current = await self.repository.get(article.id)
        if current is not None:
            current.set_snapshot_link(fmt.value, outcome.cloud_url, outcome.provider)
            current.touch()
            await self.repository.save(current)

        return outcome

    # ─────────────────────────────────────────────────────────────
    # Route-facing operations
    # ─────────────────────────────────────────────────────────────

    async def create_snapshot(
        self,
        user_id: str,
        article_id: str,
        format: str,
        styling: StylingOptions | None = None,
        upload_to_cloud: bool = True,
        verify_integrity: bool = False,
    ) -> SnapshotOutcome:
        """Synchronous snapshot for one article, bounded by SNAPSHOT_TIMEOUT."""
        fmt = parse_format(format)
        article = require_article(await self.repository.get(article_id), article_id)
        require_owner(article, user_id)
        settings = await self.repository.get_snapshot_settings(user_id)

        async def run() -> SnapshotOutcome:
            async with self.rendering_session([fmt]) as session:
                return await self.snapshot_article(
                    article,
                    fmt,
                    session=session,
                    styling=styling or settings.custom_styling,
                    upload_to_cloud=upload_to_cloud,
                    verify_integrity=verify_integrity,
                    folder_structure=settings.folder_structure,
                    embed_assets=settings.embed_assets,
                )

        return await with_timeout(run(), self.settings.SNAPSHOT_TIMEOUT, "snapshot")

    async def create_preview(self, user_id: str, article_id: str, format: str = "pdf") -> dict:
        """Render a PDF or HTML preview and keep it for PREVIEW_TTL_SECONDS."""
        fmt = parse_format(format)
        if fmt not in PREVIEW_FORMATS:
            raise SnapshotError("Previews are only available for pdf and html")

        article = require_article(await self.repository.get(article_id), article_id)
        require_owner(article, user_id)
        settings = await self.repository.get_snapshot_settings(user_id)

        async def run() -> SnapshotResult:
            async with self.rendering_session([fmt]) as session:
                return await self.generator.generate(
                    fmt,
                    article,
                    session=session,
                    styling=settings.custom_styling,
                    embed_assets=settings.embed_assets,
                )

        result = await with_timeout(run(), self.settings.SNAPSHOT_TIMEOUT, "preview")

        preview_id = str(uuid.uuid4())
        ttl = self.settings.PREVIEW_TTL_SECONDS
        await self.repository.put_preview(preview_id, result.as_bytes(), ttl)

        return {
            "articleId": article_id,
            "format": fmt.value,
            "previewUrl": f"/articles/preview/{preview_id}",
            "previewId": preview_id,
            "expiresAt": (utcnow() + timedelta(seconds=ttl)).isoformat(),
            "size": result.size,
            "filename": result.filename,
        }

    async def generate_automatic_snapshots(self, article_id: str) -> None:
        """Job body for newly saved articles when the user enabled auto-generate."""
        article = await self.repository.get(article_id)
        if article is None:
            logger.warning(f"Automatic snapshot skipped: article {article_id} no longer exists")
            return

        settings = await self.repository.get_snapshot_settings(article.user_id)
        formats = settings.formats

        async with self.rendering_session(formats) as session:
            for fmt in formats:
                outcome = await with_timeout(
                    self.snapshot_article(
                        article,
                        fmt,
                        session=session,
                        styling=settings.custom_styling,
                        upload_to_cloud=settings.upload_to_cloud,
                        verify_integrity=settings.verify_integrity,
                        folder_structure=settings.folder_structure,
                        embed_assets=settings.embed_assets,
                    ),
                    self.settings.SNAPSHOT_TIMEOUT,
                    "automatic snapshot",
                )
                logger.info(
                    f"Automatic {fmt.value} snapshot for article {article_id}: "
                    f"{outcome.cloud_url or 'not uploaded'}"
                )
