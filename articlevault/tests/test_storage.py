"""
Tests for the cloud storage clients, using httpx.MockTransport.
"""

import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from articlevault.exceptions import PipelineTimeoutError, UploadError
from articlevault.models import OAuthTokens, StorageProvider
from articlevault.repository import ArticleRepository
from articlevault.storage import (
    DropboxClient,
    GoogleDriveClient,
    OneDriveClient,
    PlaintextTokenCipher,
    get_storage_client,
    join_storage_path,
    resolve_access_token,
    upload_to_cloud_storage,
)
from articlevault.storage.dropbox import direct_download_link

from .conftest import connect_storage, make_settings


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPaths:

    def test_join_storage_path(self):
        assert join_storage_path("ArticleVault/2024-03", "a.pdf") == "/ArticleVault/2024-03/a.pdf"
        assert join_storage_path("/ArticleVault//x/", "a.pdf") == "/ArticleVault/x/a.pdf"
        assert join_storage_path("", "a.pdf") == "/a.pdf"


class TestGoogleDriveClient:

    @pytest.mark.asyncio
    async def test_upload_resolves_folders_then_uploads(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/drive/v3/files" and request.method == "GET":
                query = request.url.params["q"]
                if "name = 'ArticleVault'" in query:
                    return httpx.Response(200, json={"files": [{"id": "folder-root", "name": "ArticleVault"}]})
                assert "'folder-root' in parents" in query
                return httpx.Response(200, json={"files": []})
            if request.url.path == "/drive/v3/files" and request.method == "POST":
                body = json.loads(request.content)
                assert body == {
                    "name": "2024-03",
                    "mimeType": "application/vnd.google-apps.folder",
                    "parents": ["folder-root"],
                }
                return httpx.Response(200, json={"id": "folder-month"})
            if request.url.path == "/upload/drive/v3/files":
                assert request.url.params["uploadType"] == "multipart"
                assert request.headers["Authorization"] == "Bearer tok"
                assert request.headers["Content-Type"].startswith("multipart/related; boundary=")
                assert b'"parents": ["folder-month"]' in request.content
                assert b"%PDF-data" in request.content
                return httpx.Response(200, json={
                    "id": "file-9",
                    "name": "a.pdf",
                    "webViewLink": "https://drive.google.com/file/d/file-9/view",
                })
            return httpx.Response(404)

        async with mock_client(handler) as http:
            client = GoogleDriveClient(http_client=http)
            result = await client.upload("tok", "a.pdf", "application/pdf", b"%PDF-data", "ArticleVault/2024-03")

        assert result.file_id == "file-9"
        assert result.web_view_link == "https://drive.google.com/file/d/file-9/view"
        assert result.download_url == "https://drive.google.com/uc?id=file-9&export=download"
        assert len(requests) == 4

    @pytest.mark.asyncio
    async def test_error_status_raises_upload_error(self):
        async with mock_client(lambda request: httpx.Response(403, text="forbidden")) as http:
            client = GoogleDriveClient(http_client=http)
            with pytest.raises(UploadError) as exc_info:
                await client.upload("tok", "a.pdf", "application/pdf", b"x", "")

        assert exc_info.value.details == {"provider": "google_drive", "status": 403}
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_timeout_maps_to_pipeline_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with mock_client(handler) as http:
            client = GoogleDriveClient(http_client=http)
            with pytest.raises(PipelineTimeoutError):
                await client.upload("tok", "a.pdf", "application/pdf", b"x", "")

    @pytest.mark.asyncio
    async def test_refresh_token_keeps_previous_refresh_token(self):
        def handler(request):
            assert b"grant_type=refresh_token" in request.content
            return httpx.Response(200, json={"access_token": "new", "expires_in": 3600})

        async with mock_client(handler) as http:
            client = GoogleDriveClient(client_id="id", client_secret="secret", http_client=http)
            tokens = await client.refresh_token("old-refresh")

        assert tokens.access_token == "new"
        assert tokens.refresh_token == "old-refresh"
        assert tokens.is_expired() is False

    @pytest.mark.asyncio
    async def test_refresh_requires_credentials(self):
        with pytest.raises(UploadError, match="credentials"):
            await GoogleDriveClient().refresh_token("r")


class TestDropboxClient:

    @pytest.mark.asyncio
    async def test_upload_with_shared_link(self):
        def handler(request):
            if request.url.path == "/2/files/upload":
                arg = json.loads(request.headers["Dropbox-API-Arg"])
                assert arg == {"path": "/ArticleVault/a.pdf", "mode": "add", "autorename": True, "mute": False}
                assert request.content == b"data"
                return httpx.Response(200, json={"id": "id:1", "path_display": "/ArticleVault/a.pdf"})
            if request.url.path == "/2/sharing/create_shared_link_with_settings":
                assert json.loads(request.content) == {"path": "/ArticleVault/a.pdf"}
                return httpx.Response(200, json={"url": "https://www.dropbox.com/s/abc/a.pdf"})
            return httpx.Response(404)

        async with mock_client(handler) as http:
            result = await DropboxClient(http_client=http).upload(
                "tok", "a.pdf", "application/pdf", b"data", "ArticleVault"
            )

        assert result.file_id == "id:1"
        assert result.web_view_link == "https://www.dropbox.com/s/abc/a.pdf"
        assert result.download_url == "https://www.dropbox.com/s/abc/a.pdf?dl=1"

    @pytest.mark.asyncio
    async def test_shared_link_failure_does_not_fail_upload(self):
        def handler(request):
            if request.url.path == "/2/files/upload":
                return httpx.Response(200, json={"id": "id:1"})
            return httpx.Response(409, json={"error_summary": "shared_link_already_exists"})

        async with mock_client(handler) as http:
            result = await DropboxClient(http_client=http).upload("tok", "a.pdf", "application/pdf", b"d", "")

        assert result.file_id == "id:1"
        assert result.web_view_link is None
        assert result.download_url is None

    def test_direct_download_link_replaces_preview_flag(self):
        link = "https://www.dropbox.com/scl/fi/xyz/a.pdf?rlkey=k1&dl=0"
        assert direct_download_link(link) == "https://www.dropbox.com/scl/fi/xyz/a.pdf?rlkey=k1&dl=1"

    @pytest.mark.asyncio
    async def test_quota(self):
        def handler(request):
            assert request.content == b"null"
            return httpx.Response(200, json={"used": 10, "allocation": {"allocated": 100}})

        async with mock_client(handler) as http:
            quota = await DropboxClient(http_client=http).get_quota("tok")

        assert (quota.used, quota.total) == (10, 100)


class TestOneDriveClient:

    @pytest.mark.asyncio
    async def test_simple_upload(self):
        def handler(request):
            assert request.method == "PUT"
            assert "/me/drive/root:/ArticleVault/2024-03/a.pdf:/content" in str(request.url)
            return httpx.Response(201, json={
                "id": "od-1",
                "webUrl": "https://onedrive.live.com/?id=od-1",
                "@microsoft.graph.downloadUrl": "https://dl.example.com/od-1",
            })

        async with mock_client(handler) as http:
            result = await OneDriveClient(http_client=http).upload(
                "tok", "a.pdf", "application/pdf", b"x", "ArticleVault/2024-03"
            )

        assert result.web_view_link == "https://onedrive.live.com/?id=od-1"
        assert result.download_url == "https://dl.example.com/od-1"

    @pytest.mark.asyncio
    async def test_user_info(self):
        def handler(request):
            return httpx.Response(200, json={"id": "u1", "userPrincipalName": "a@b.com", "displayName": "A"})

        async with mock_client(handler) as http:
            info = await OneDriveClient(http_client=http).get_user_info("tok")

        assert (info.id, info.email, info.name) == ("u1", "a@b.com", "A")


class TestFactory:

    def test_dispatch(self):
        assert isinstance(get_storage_client("google_drive"), GoogleDriveClient)
        assert isinstance(get_storage_client(StorageProvider.DROPBOX), DropboxClient)
        assert isinstance(get_storage_client("OneDrive"), OneDriveClient)

    def test_credentials_from_settings(self):
        settings = make_settings(DROPBOX_CLIENT_ID="dbx-id", DROPBOX_CLIENT_SECRET="dbx-secret")
        client = get_storage_client("dropbox", settings)
        assert client.client_id == "dbx-id"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown storage provider"):
            get_storage_client("box")

    @pytest.mark.asyncio
    async def test_upload_to_cloud_storage_encodes_text(self):
        def handler(request):
            assert request.content == "héllo".encode("utf-8")
            return httpx.Response(200, json={"id": "od-2", "webUrl": "https://x"})

        async with mock_client(handler) as http:
            result = await upload_to_cloud_storage(
                "onedrive", "tok", "a.txt", "text/plain", "héllo", "ArticleVault", http_client=http
            )

        assert result.file_id == "od-2"


class TestResolveAccessToken:

    @pytest.mark.asyncio
    async def test_no_connection(self, kv):
        resolved = await resolve_access_token(ArticleRepository(kv), PlaintextTokenCipher(), "user-1", Mock())
        assert resolved is None

    @pytest.mark.asyncio
    async def test_valid_token(self, kv):
        await connect_storage(kv, provider="dropbox")
        client_for = Mock()
        connection, token = await resolve_access_token(
            ArticleRepository(kv), PlaintextTokenCipher(), "user-1", client_for
        )
        assert connection.provider == StorageProvider.DROPBOX
        assert token == "token-123"
        client_for.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self, kv):
        await connect_storage(kv)
        await kv.put_json("connection:conn-1:tokens", {
            "accessToken": "stale", "refreshToken": "refresh", "expiresAt": 1000,
        })
        storage = Mock()
        storage.refresh_token = AsyncMock(return_value=OAuthTokens(access_token="fresh"))

        _, token = await resolve_access_token(
            ArticleRepository(kv), PlaintextTokenCipher(), "user-1", lambda connection: storage
        )

        assert token == "fresh"
        storage.refresh_token.assert_awaited_once_with("refresh")
        # Refreshed tokens are not written back
        stored = await kv.get_json("connection:conn-1:tokens")
        assert stored["accessToken"] == "stale"

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, kv):
        await connect_storage(kv)
        await kv.put_json("connection:conn-1:tokens", {"accessToken": "stale", "expiresAt": 1000})
        with pytest.raises(UploadError, match="expired"):
            await resolve_access_token(ArticleRepository(kv), PlaintextTokenCipher(), "user-1", Mock())

    @pytest.mark.asyncio
    async def test_missing_tokens(self, kv):
        await connect_storage(kv)
        await kv.delete("connection:conn-1:tokens")
        with pytest.raises(UploadError, match="no stored tokens"):
            await resolve_access_token(ArticleRepository(kv), PlaintextTokenCipher(), "user-1", Mock())

    @pytest.mark.asyncio
    async def test_unreadable_tokens(self, kv):
        await connect_storage(kv)
        await kv.put("connection:conn-1:tokens", "not json")
        with pytest.raises(UploadError, match="could not be read"):
            await resolve_access_token(ArticleRepository(kv), PlaintextTokenCipher(), "user-1", Mock())
