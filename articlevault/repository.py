"""
Article repository - typed access to the key-value store.

Owns every key convention so services never build keys by hand:

    article:<id>                       Article JSON
    user:<userId>:articles             JSON list of article ids, newest first
    user:<userId>:settings             user settings JSON ("snapshot" section)
    user:<userId>:storage:connections  JSON list of StorageConnection
    connection:<id>:tokens             encrypted OAuth token blob
    integrity:<articleId>:<format>     IntegrityCheck audit entry
    preview:<previewId>                rendered preview bytes (TTL)
"""

import json
import logging

from .duplicates import are_duplicates
from .kv import KeyValueStore, Value
from .models import (
    Article,
    IntegrityCheck,
    SnapshotSettings,
    StorageConnection,
)

logger = logging.getLogger(__name__)


def article_key(article_id: str) -> str:
    return f"article:{article_id}"


def user_articles_key(user_id: str) -> str:
    return f"user:{user_id}:articles"


def user_settings_key(user_id: str) -> str:
    return f"user:{user_id}:settings"


def storage_connections_key(user_id: str) -> str:
    return f"user:{user_id}:storage:connections"


def connection_tokens_key(connection_id: str) -> str:
    return f"connection:{connection_id}:tokens"


def integrity_key(article_id: str, fmt: str) -> str:
    return f"integrity:{article_id}:{fmt}"


def preview_key(preview_id: str) -> str:
    return f"preview:{preview_id}"


class ArticleRepository:
    """Repository for articles and the per-user records around them."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    # ─────────────────────────────────────────────────────────────
    # Articles
    # ─────────────────────────────────────────────────────────────

    async def get(self, article_id: str) -> Article | None:
        """Get single article by ID."""
        data = await self._kv.get_json(article_key(article_id))
        return Article.from_dict(data) if data else None

    async def save(self, article: Article) -> None:
        """Write the article and make sure it is in its owner's id list."""
        await self._kv.put_json(article_key(article.id), article.to_dict())

        ids = await self.list_ids(article.user_id)
        if article.id not in ids:
            ids.insert(0, article.id)
            await self._kv.put_json(user_articles_key(article.user_id), ids)

    async def delete(self, article: Article) -> None:
        await self._kv.delete(article_key(article.id))

        ids = await self.list_ids(article.user_id)
        if article.id in ids:
            ids.remove(article.id)
            await self._kv.put_json(user_articles_key(article.user_id), ids)

    async def list_ids(self, user_id: str) -> list[str]:
        return list(await self._kv.get_json(user_articles_key(user_id)) or [])

    async def list_for_user(self, user_id: str) -> list[Article]:
        """All of a user's articles, newest first. Dangling ids are skipped."""
        articles = []
        for article_id in await self.list_ids(user_id):
            article = await self.get(article_id)
            if article is None:
                logger.warning(f"User {user_id} lists missing article {article_id}")
                continue
            articles.append(article)
        articles.sort(key=lambda a: a.created_at, reverse=True)
        return articles

    async def find_duplicate(self, user_id: str, url: str) -> Article | None:
        """
        Find an existing article of this user with an equivalent URL.

        Linear in the number of saved articles: every stored article is
        loaded and compared.
        """
        for article_id in await self.list_ids(user_id):
            article = await self.get(article_id)
            if article and are_duplicates(article.url, url):
                return article
        return None

    # ─────────────────────────────────────────────────────────────
    # Settings & storage connections (read-only here)
    # ─────────────────────────────────────────────────────────────

    async def get_snapshot_settings(self, user_id: str) -> SnapshotSettings:
        data = await self._kv.get_json(user_settings_key(user_id)) or {}
        return SnapshotSettings.from_dict(data.get("snapshot"))

    async def get_storage_connections(self, user_id: str) -> list[StorageConnection]:
        data = await self._kv.get_json(storage_connections_key(user_id)) or []
        return [StorageConnection.from_dict({"userId": user_id, **item}) for item in data]

    async def get_active_connection(self, user_id: str) -> StorageConnection | None:
        for connection in await self.get_storage_connections(user_id):
            if connection.is_active:
                return connection
        return None

    async def get_encrypted_tokens(self, connection_id: str) -> Value | None:
        return await self._kv.get(connection_tokens_key(connection_id))

    # ─────────────────────────────────────────────────────────────
    # Integrity audit & previews
    # ─────────────────────────────────────────────────────────────

    async def save_integrity_check(self, check: IntegrityCheck, fmt: str) -> None:
        await self._kv.put(integrity_key(check.article_id, fmt), json.dumps(check.to_dict()))

    async def put_preview(self, preview_id: str, content: bytes, ttl: int) -> None:
        await self._kv.put(preview_key(preview_id), content, ttl=ttl)

    async def get_preview(self, preview_id: str) -> bytes | None:
        data = await self._kv.get(preview_key(preview_id))
        if isinstance(data, str):
            return data.encode("utf-8")
        return data
