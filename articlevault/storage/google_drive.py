"""
Google Drive client (Drive v3).
"""

import json
import logging
import uuid

import httpx

from ..exceptions import UploadError
from ..models import OAuthTokens, StorageProvider
from .base import (
    DEFAULT_HTTP_TIMEOUT,
    StorageQuota,
    StorageUserInfo,
    UploadResult,
    folder_segments,
    provider_http,
    raise_for_provider,
    tokens_from_response,
)

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_ABOUT_URL = "https://www.googleapis.com/drive/v3/about"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def _quote_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_multipart_body(metadata: dict, mime_type: str, content: bytes, boundary: str) -> bytes:
    """multipart/related body: JSON metadata part, then the file bytes."""
    delimiter = f"\r\n--{boundary}\r\n".encode()
    close_delimiter = f"\r\n--{boundary}--".encode()
    return b"".join([
        delimiter,
        b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
        json.dumps(metadata).encode("utf-8"),
        delimiter,
        f"Content-Type: {mime_type}\r\n\r\n".encode(),
        content,
        close_delimiter,
    ])


class GoogleDriveClient:
    provider = StorageProvider.GOOGLE_DRIVE

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

    async def _resolve_folder(self, client: httpx.AsyncClient, access_token: str, folder_path: str) -> str:
        """Find or create each folder of the path; returns the innermost folder id."""
        headers = {"Authorization": f"Bearer {access_token}"}
        parent_id = "root"

        for name in folder_segments(folder_path):
            query = (
                f"name = '{_quote_query_value(name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
                f"and '{parent_id}' in parents and trashed = false"
            )
            response = await client.get(
                DRIVE_FILES_URL,
                params={"q": query, "fields": "files(id,name)", "spaces": "drive"},
                headers=headers,
            )
            raise_for_provider(response, self.provider, "folder lookup")
            files = response.json().get("files", [])

            if files:
                parent_id = files[0]["id"]
                continue

            response = await client.post(
                DRIVE_FILES_URL,
                params={"fields": "id"},
                headers=headers,
                json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
            )
            raise_for_provider(response, self.provider, "folder creation")
            parent_id = response.json()["id"]
            logger.debug(f"Created Drive folder '{name}' ({parent_id})")

        return parent_id

    async def upload(
        self,
        access_token: str,
        filename: str,
        mime_type: str,
        content: bytes,
        folder_path: str,
    ) -> UploadResult:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            metadata = {"name": filename, "mimeType": mime_type}
            if folder_segments(folder_path):
                metadata["parents"] = [await self._resolve_folder(client, access_token, folder_path)]

            boundary = f"-------{uuid.uuid4().hex}"
            response = await client.post(
                DRIVE_UPLOAD_URL,
                params={"uploadType": "multipart", "fields": "id,name,webViewLink"},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": f"multipart/related; boundary={boundary}",
                },
                content=build_multipart_body(metadata, mime_type, content, boundary),
            )
            raise_for_provider(response, self.provider, "upload")
            data = response.json()

        return UploadResult(
            file_id=data["id"],
            web_view_link=data.get("webViewLink"),
            download_url=f"https://drive.google.com/uc?id={data['id']}&export=download",
        )

    async def get_quota(self, access_token: str) -> StorageQuota:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.get(
                DRIVE_ABOUT_URL,
                params={"fields": "storageQuota"},
                headers={"Authorization": f"Bearer {access_token}"},
            )
            raise_for_provider(response, self.provider, "quota lookup")
            quota = response.json().get("storageQuota", {})
        return StorageQuota(used=int(quota.get("usage") or 0), total=int(quota.get("limit") or 0))

    async def get_user_info(self, access_token: str) -> StorageUserInfo:
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            raise_for_provider(response, self.provider, "user info lookup")
            data = response.json()
        return StorageUserInfo(id=data["id"], email=data.get("email"), name=data.get("name"))

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        if not self.client_id or not self.client_secret:
            raise UploadError("Google client credentials are not configured")
        async with provider_http(self.provider, self._http, self.timeout) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "refresh_token": refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                },
            )
            raise_for_provider(response, self.provider, "token refresh")
            return tokens_from_response(response.json(), refresh_token)
