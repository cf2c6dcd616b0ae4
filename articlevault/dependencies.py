"""
Application collaborators and the FastAPI dependency that exposes them.

The container is built once by the app lifespan (or by tests) and stored on
app.state.deps. Route handlers pull it in with Depends(get_deps).
"""

from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Request

from .batch import BatchCoordinator
from .config import Config
from .extractor import ContentExtractor
from .integrity import IntegrityVerifier
from .kv import KeyValueStore, create_kv_store
from .models import StorageProvider
from .repository import ArticleRepository
from .services import ArticleService, SnapshotService
from .snapshots import BrowserPool, SnapshotGenerator
from .storage import PlaintextTokenCipher, StorageClient, TokenCipher, get_storage_client
from .tasks import SnapshotJobQueue


@dataclass
class Dependencies:
    settings: Config
    kv: KeyValueStore
    repository: ArticleRepository
    extractor: ContentExtractor
    generator: SnapshotGenerator
    browser_pool: BrowserPool | None
    verifier: IntegrityVerifier
    cipher: TokenCipher
    storage_clients: Callable[[StorageProvider], StorageClient]
    job_queue: SnapshotJobQueue
    snapshot_service: SnapshotService
    article_service: ArticleService
    batch: BatchCoordinator


def build_dependencies(settings: Config, **overrides: Any) -> Dependencies:
    """
    Wire every collaborator from settings.

    Any collaborator can be replaced by keyword (kv, extractor, generator,
    browser_pool, verifier, cipher, storage_clients, job_queue). Services
    are always built on top of whatever was passed in.
    """
    kv = overrides.get("kv") or create_kv_store(settings.KV_BACKEND, settings.KV_DIR)
    repository = ArticleRepository(kv)

    extractor = overrides.get("extractor") or ContentExtractor(
        reader_base_url=settings.READER_BASE_URL,
        timeout=settings.EXTRACTION_TIMEOUT,
        use_reader=settings.USE_READER_SERVICE,
    )
    generator = overrides.get("generator") or SnapshotGenerator(epub_package=settings.EPUB_PACKAGE)

    if "browser_pool" in overrides:
        browser_pool = overrides["browser_pool"]
    elif settings.ENABLE_BROWSER_RENDERING:
        browser_pool = BrowserPool(
            max_sessions=settings.MAX_BROWSER_SESSIONS,
            timeout=settings.RENDER_TIMEOUT,
        )
    else:
        browser_pool = None

    verifier = overrides.get("verifier") or IntegrityVerifier(timeout=settings.INTEGRITY_TIMEOUT)
    cipher = overrides.get("cipher") or PlaintextTokenCipher()
    storage_clients = overrides.get("storage_clients") or (
        lambda provider: get_storage_client(provider, settings, timeout=settings.UPLOAD_TIMEOUT)
    )
    job_queue = overrides.get("job_queue") or SnapshotJobQueue(workers=settings.SNAPSHOT_WORKERS)

    snapshot_service = SnapshotService(
        repository=repository,
        generator=generator,
        browser_pool=browser_pool,
        cipher=cipher,
        storage_clients=storage_clients,
        verifier=verifier,
        settings=settings,
    )
    article_service = ArticleService(
        repository=repository,
        extractor=extractor,
        job_queue=job_queue,
        snapshot_service=snapshot_service,
    )
    batch = BatchCoordinator(
        repository=repository,
        snapshot_service=snapshot_service,
        job_queue=job_queue,
        max_size=settings.BATCH_MAX_SIZE,
        concurrency=settings.BATCH_CONCURRENCY,
    )

    return Dependencies(
        settings=settings,
        kv=kv,
        repository=repository,
        extractor=extractor,
        generator=generator,
        browser_pool=browser_pool,
        verifier=verifier,
        cipher=cipher,
        storage_clients=storage_clients,
        job_queue=job_queue,
        snapshot_service=snapshot_service,
        article_service=article_service,
        batch=batch,
    )


def get_deps(request: Request) -> Dependencies:
    """Dependency injection for the collaborator container."""
    return request.app.state.deps
