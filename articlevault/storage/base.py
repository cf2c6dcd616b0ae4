"""
Shared storage client types and helpers.

Clients don't inherit from a common base. Each satisfies the StorageClient
protocol on its own, and get_storage_client() dispatches on StorageProvider.
"""

import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Protocol

import httpx

from ..exceptions import PipelineTimeoutError, UploadError
from ..models import OAuthTokens, StorageProvider, utcnow

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 60.0  # seconds


@dataclass
class UploadResult:
    file_id: str
    web_view_link: str | None = None
    download_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "fileId": self.file_id,
            "webViewLink": self.web_view_link,
            "downloadUrl": self.download_url,
        }


@dataclass
class StorageQuota:
    used: int
    total: int


@dataclass
class StorageUserInfo:
    id: str
    email: str | None
    name: str | None


class StorageClient(Protocol):
    provider: StorageProvider

    async def upload(
        self,
        access_token: str,
        filename: str,
        mime_type: str,
        content: bytes,
        folder_path: str,
    ) -> UploadResult: ...

    async def get_quota(self, access_token: str) -> StorageQuota: ...

    async def get_user_info(self, access_token: str) -> StorageUserInfo: ...

    async def refresh_token(self, refresh_token: str) -> OAuthTokens: ...


_SLASH_RUN = re.compile(r"/{2,}")


def join_storage_path(folder_path: str, filename: str) -> str:
    """Absolute '/folder/file' path with repeated slashes collapsed."""
    return _SLASH_RUN.sub("/", f"/{folder_path}/{filename}")


def folder_segments(folder_path: str) -> list[str]:
    return [segment for segment in folder_path.split("/") if segment]


def tokens_from_response(data: dict, previous_refresh_token: str | None) -> OAuthTokens:
    expires_in = int(data.get("expires_in", 3600))
    return OAuthTokens(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token") or previous_refresh_token,
        expires_at=int((utcnow().timestamp() + expires_in) * 1000),
        scope=data.get("scope"),
    )


def raise_for_provider(response: httpx.Response, provider: StorageProvider, action: str) -> None:
    """Turn a non-2xx provider response into an UploadError."""
    if response.is_success:
        return
    body = response.text[:500]
    logger.error(f"{provider.value} {action} failed with status {response.status_code}: {body}")
    raise UploadError(
        f"{provider.value} {action} failed ({response.status_code}): {body}",
        details={"provider": provider.value, "status": response.status_code},
    )


@asynccontextmanager
async def provider_http(
    provider: StorageProvider,
    client: httpx.AsyncClient | None,
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield an HTTP client and map transport failures to pipeline errors.

    A shared client (injected for tests or connection reuse) is left open.
    """
    try:
        if client is not None:
            yield client
        else:
            async with httpx.AsyncClient(timeout=timeout) as owned:
                yield owned
    except httpx.TimeoutException as e:
        raise PipelineTimeoutError(
            f"{provider.value} request timed out",
            details={"provider": provider.value},
        ) from e
    except httpx.HTTPError as e:
        raise UploadError(
            f"{provider.value} request failed: {e}",
            details={"provider": provider.value},
        ) from e
