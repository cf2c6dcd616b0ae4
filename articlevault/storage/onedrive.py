"""
OneDrive client (Microsoft Graph v1.0).

Uses the simple upload endpoint only, which Graph limits to 4 MB.
Larger files are still attempted in one request.
"""

import logging
from urllib.parse import quote

import httpx

from ..exceptions import UploadError
from ..models import OAuthTokens, StorageProvider
from .base import (
    DEFAULT_HTTP_TIMEOUT,
    StorageQuota,
    StorageUserInfo,
    UploadResult,
    folder_segments,
    join_storage_path,
    provider_http,
    raise_for_provider,
    tokens_from_response,
)

logger = logging.getLogger(__name__)

ONEDRIVE_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
GRAPH_URL = "https://graph.microsoft.com/v1.0"
SIMPLE_UPLOAD_LIMIT = 4 * 1024 * 1024


def encode_drive_path(folder_path: str, filename: str) -> str:
    segments = [quote(segment, safe="") for segment in folder_segments(folder_path)]
    return join_storage_path("/".join(segments), quote(filename, safe=""))


class OneDriveClient:
    provider = StorageProvider.ONEDRIVE

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
        if len(content) > SIMPLE_UPLOAD_LIMIT:
            logger.warning(
                f"{filename} is {len(content)} bytes, above the OneDrive simple upload limit"
            )

        upload_path = encode_drive_path(folder_path, filename)
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.put(
                f"{GRAPH_URL}/me/drive/root:{upload_path}:/content",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/octet-stream",
                },
                content=content,
            )
            raise_for_provider(response, self.provider, "upload")
            data = response.json()

        return UploadResult(
            file_id=data["id"],
            web_view_link=data.get("webUrl"),
            download_url=data.get("@microsoft.graph.downloadUrl"),
        )

    async def get_quota(self, access_token: str) -> StorageQuota:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.get(
                f"{GRAPH_URL}/me/drive",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            raise_for_provider(response, self.provider, "quota lookup")
            quota = response.json().get("quota", {})
        return StorageQuota(used=int(quota.get("used") or 0), total=int(quota.get("total") or 0))

    async def get_user_info(self, access_token: str) -> StorageUserInfo:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.get(
                f"{GRAPH_URL}/me",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            raise_for_provider(response, self.provider, "user info lookup")
            data = response.json()
        return StorageUserInfo(
            id=data["id"],
            email=data.get("userPrincipalName") or data.get("mail"),
            name=data.get("displayName"),
        )

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        if not self.client_id or not self.client_secret:
            raise UploadError("OneDrive client credentials are not configured")
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.post(
                ONEDRIVE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            raise_for_provider(response, self.provider, "token refresh")
            return tokens_from_response(response.json(), refresh_token)
