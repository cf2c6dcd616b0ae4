"""
Storage client factory.

Dispatches on StorageProvider and wires OAuth client credentials from config.
"""

import httpx

from ..config import Config
from ..models import StorageProvider
from .base import DEFAULT_HTTP_TIMEOUT, StorageClient, UploadResult
from .dropbox import DropboxClient
from .google_drive import GoogleDriveClient
from .onedrive import OneDriveClient


def get_storage_client(
    provider: StorageProvider | str,
    settings: Config | None = None,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> StorageClient:
    """
    Create the client for a storage provider.

    Args:
        provider: google_drive, dropbox or onedrive
        settings: Source of OAuth client credentials (only needed for refresh)
        http_client: Optional shared httpx client
        timeout: Per-request timeout in seconds

    Raises:
        ValueError: If provider is unknown
    """
    if isinstance(provider, str):
        try:
            provider = StorageProvider(provider.lower())
        except ValueError:
            raise ValueError(
                f"Unknown storage provider: {provider}. "
                f"Available: {[p.value for p in StorageProvider]}"
            )

    if provider == StorageProvider.GOOGLE_DRIVE:
        return GoogleDriveClient(
            client_id=settings.GOOGLE_CLIENT_ID if settings else "",
            client_secret=settings.GOOGLE_CLIENT_SECRET if settings else "",
            http_client=http_client,
            timeout=timeout,
        )
    elif provider == StorageProvider.DROPBOX:
        return DropboxClient(
            client_id=settings.DROPBOX_CLIENT_ID if settings else "",
            client_secret=settings.DROPBOX_CLIENT_SECRET if settings else "",
            http_client=http_client,
            timeout=timeout,
        )
    elif provider == StorageProvider.ONEDRIVE:
        return OneDriveClient(
            client_id=settings.ONEDRIVE_CLIENT_ID if settings else "",
            client_secret=settings.ONEDRIVE_CLIENT_SECRET if settings else "",
            http_client=http_client,
            timeout=timeout,
        )
    else:
        raise ValueError(f"Unknown storage provider: {provider}")


async def upload_to_cloud_storage(
    provider: StorageProvider | str,
    access_token: str,
    filename: str,
    mime_type: str,
    content: bytes | str,
    folder_path: str,
    settings: Config | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> UploadResult:
    """Upload through the matching provider client."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    client = get_storage_client(provider, settings=settings, http_client=http_client)
    return await client.upload(access_token, filename, mime_type, content, folder_path)
