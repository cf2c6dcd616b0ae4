"""
Dropbox client (API v2).
"""

import json
import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from ..exceptions import UploadError
from ..models import OAuthTokens, StorageProvider
from .base import (
    DEFAULT_HTTP_TIMEOUT,
    StorageQuota,
    StorageUserInfo,
    UploadResult,
    join_storage_path,
    provider_http,
    raise_for_provider,
    tokens_from_response,
)

logger = logging.getLogger(__name__)

DROPBOX_TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"
DROPBOX_API_URL = "https://api.dropboxapi.com/2"
DROPBOX_CONTENT_URL = "https://content.dropboxapi.com/2"


def direct_download_link(shared_link: str) -> str:
    """Turn a shared link (dl=0 preview page) into one that serves the file bytes."""
    parts = urlsplit(shared_link)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "dl"]
    query.append(("dl", "1"))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class DropboxClient:
    provider = StorageProvider.DROPBOX

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self._http = http_client
        self.timeout = timeout

    async def upload(
        self,
        access_token: str,
        filename: str,
        mime_type: str,
        content: bytes,
        folder_path: str,
    ) -> UploadResult:
        path = join_storage_path(folder_path, filename)
        api_arg = {"path": path, "mode": "add", "autorename": True, "mute": False}

        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.post(
                f"{DROPBOX_CONTENT_URL}/files/upload",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/octet-stream",
                    "Dropbox-API-Arg": json.dumps(api_arg),
                },
                content=content,
            )
            raise_for_provider(response, self.provider, "upload")
            data = response.json()

            # A missing share link doesn't fail the upload
            web_view_link = None
            link_response = await client.post(
                f"{DROPBOX_API_URL}/sharing/create_shared_link_with_settings",
                headers={"Authorization": f"Bearer {access_token}"},
                json={"path": data.get("path_display", path)},
            )
            if link_response.is_success:
                web_view_link = link_response.json().get("url")
            else:
                logger.warning(
                    f"Dropbox shared link creation failed ({link_response.status_code}) for {path}"
                )

        return UploadResult(
            file_id=data["id"],
            web_view_link=web_view_link,
            download_url=direct_download_link(web_view_link) if web_view_link else None,
        )

    async def get_quota(self, access_token: str) -> StorageQuota:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.post(
                f"{DROPBOX_API_URL}/users/get_space_usage",
                headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
                content=b"null",
            )
            raise_for_provider(response, self.provider, "quota lookup")
            data = response.json()
        return StorageQuota(
            used=int(data.get("used") or 0),
            total=int(data.get("allocation", {}).get("allocated") or 0),
        )

    async def get_user_info(self, access_token: str) -> StorageUserInfo:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.post(
                f"{DROPBOX_API_URL}/users/get_current_account",
                headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
                content=b"null",
            )
            raise_for_provider(response, self.provider, "user info lookup")
            data = response.json()
        return StorageUserInfo(
            id=data["account_id"],
            email=data.get("email"),
            name=(data.get("name") or {}).get("display_name"),
        )

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        if not self.client_id or not self.client_secret:
            raise UploadError("Dropbox client credentials are not configured")
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.post(
                DROPBOX_TOKEN_URL,
                auth=(self.client_id, self.client_secret),
                data={"refresh_token": refresh_token, "grant_type": "refresh_token"},
            )
            raise_for_provider(response, self.provider, "token refresh")
            return tokens_from_response(response.json(), refresh_token)
