"""
Pytest fixtures: isolated dependency container, fakes and a test client.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from articlevault.config import Config
from articlevault.dependencies import build_dependencies
from articlevault.kv import MemoryKeyValueStore
from articlevault.models import Article, ExtractedContent, ExtractionMethod
from articlevault.rate_limit import limiter
from articlevault.server import app
from articlevault.snapshots import SnapshotGenerator
from articlevault.storage import UploadResult
from articlevault.tasks import SnapshotJobQueue

FIXED_NOW = datetime(2024, 3, 15, 12, 30, 0, tzinfo=timezone.utc)

FAKE_PDF = b"%PDF-1.7 fake pdf body"
FAKE_PAGE = "<html><head><title>Page</title></head><body><p>Rendered body text</p></body></html>"


class FakeRenderingSession:
    """Stands in for a Playwright-backed session."""

    def __init__(self):
        self.pdf_calls = []
        self.html_calls = []

    async def render_pdf(self, url, css, header, footer):
        self.pdf_calls.append(url)
        return FAKE_PDF

    async def render_html(self, url, css):
        self.html_calls.append(url)
        return FAKE_PAGE


class FakeBrowserPool:
    """Hands out one shared fake session and counts how often it was opened."""

    def __init__(self):
        self.rendering = FakeRenderingSession()
        self.sessions_opened = 0
        self.closed = False

    @property
    def open_sessions(self):
        return 0

    @asynccontextmanager
    async def session(self):
        self.sessions_opened += 1
        yield self.rendering

    async def close(self):
        self.closed = True


class StubExtractor:
    """Returns canned content without touching the network."""

    def __init__(self, title="Example Article", content="First paragraph of the article body text.\n\nSecond one."):
        self.title = title
        self.content = content
        self.calls = []

    async def extract(self, url, timeout=None, use_primary=None):
        self.calls.append(url)
        return ExtractedContent(
            title=self.title,
            content=self.content,
            author="Jane Writer",
            excerpt=self.content[:200],
            word_count=len(self.content.split()),
            reading_time_minutes=1,
            extraction_method=ExtractionMethod.PRIMARY,
        )


class FakeStorageClient:
    """Records uploads and returns a predictable link."""

    def __init__(self, link="https://drive.example.com/file/abc", download_url=None):
        self.link = link
        self.download_url = download_url
        self.uploads = []

    async def upload(self, access_token, filename, mime_type, content, folder_path):
        self.uploads.append({
            "access_token": access_token,
            "filename": filename,
            "mime_type": mime_type,
            "content": content,
            "folder_path": folder_path,
        })
        return UploadResult(file_id="file-1", web_view_link=self.link, download_url=self.download_url)

    async def refresh_token(self, refresh_token):
        raise AssertionError("refresh not expected")


def make_article(article_id="a1", user_id="user-1", url="https://example.com/a", **overrides) -> Article:
    fields = {
        "title": "An Example Article",
        "content": "<p>Hello world, this is the stored content.</p>",
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
    }
    fields.update(overrides)
    return Article(id=article_id, user_id=user_id, url=url, **fields)


def make_settings(**overrides) -> Config:
    settings = Config()
    settings.KV_BACKEND = "memory"
    settings.AUTH_API_KEY = ""
    settings.BATCH_MAX_SIZE = 50
    settings.PREVIEW_TTL_SECONDS = 3600
    for name, value in overrides.items():
        setattr(settings, name, value)
    return settings


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def browser_pool():
    return FakeBrowserPool()


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def deps(kv, browser_pool, storage_client):
    """Isolated collaborator container: memory KV, fake browser, stub extractor."""
    return build_dependencies(
        make_settings(),
        kv=kv,
        extractor=StubExtractor(),
        generator=SnapshotGenerator(fetch_image=_no_images, clock=lambda: FIXED_NOW),
        browser_pool=browser_pool,
        storage_clients=lambda provider: storage_client,
        job_queue=SnapshotJobQueue(workers=1),
    )


async def _no_images(src):
    raise ValueError("image fetching disabled in tests")


async def connect_storage(kv, user_id="user-1", provider="google_drive", access_token="token-123"):
    """Give a user an active storage connection with plaintext tokens."""
    await kv.put_json(
        f"user:{user_id}:storage:connections",
        [{"id": "conn-1", "provider": provider, "isActive": True}],
    )
    await kv.put_json("connection:conn-1:tokens", {"accessToken": access_token, "refreshToken": "refresh"})


@pytest.fixture
def client(deps):
    """Test client with an isolated dependency container."""
    original_deps = getattr(app.state, "deps", None)
    app.state.deps = deps
    limiter.reset()

    with TestClient(app, raise_server_exceptions=False) as test_client:
        test_client.headers.update({"X-User-Id": "user-1"})
        yield test_client

    app.state.deps = original_deps
