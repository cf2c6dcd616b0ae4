"""
Tests for article routes.
"""

import asyncio

import pytest

from .conftest import FAKE_PDF, connect_storage


def create(client, url="https://example.com/a", tags=None, user="user-1"):
    return client.post("/articles", json={"url": url, "tags": tags or []}, headers={"X-User-Id": user})


class TestCreateArticle:
    """Tests for POST /articles."""

    def test_create_returns_201_envelope(self, client, deps):
        response = create(client, tags=["python", "python", "web"])
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        article = body["data"]
        assert article["url"] == "https://example.com/a"
        assert article["title"] == "Example Article"
        assert article["tags"] == ["python", "web"]
        assert article["extractionMethod"] == "primary"
        assert article["readingTimeMinutes"] == 1
        assert deps.extractor.calls == ["https://example.com/a"]

    def test_duplicate_with_tracking_params(self, client):
        first = create(client).json()["data"]
        response = create(client, url="https://example.com/a?utm_source=x")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "DUPLICATE_ARTICLE"
        assert error["details"]["existingArticle"]["id"] == first["id"]

    def test_same_url_other_user_is_not_duplicate(self, client):
        create(client)
        assert create(client, user="user-2").status_code == 201

    def test_missing_url(self, client):
        response = client.post("/articles", json={"tags": []})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    @pytest.mark.parametrize("url", ["ftp://example.com/a", "http://127.0.0.1/admin", "http://localhost/"])
    def test_blocked_urls(self, client, deps, url):
        response = create(client, url=url)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"
        assert deps.extractor.calls == []

    def test_auto_snapshot_queued_after_save(self, client, deps, kv):
        asyncio.run(kv.put_json("user:user-1:settings", {"snapshot": {"autoGenerate": True}}))
        create(client)
        assert deps.job_queue.depth == 1

    def test_no_auto_snapshot_by_default(self, client, deps):
        create(client)
        assert deps.job_queue.depth == 0


class TestListArticles:
    """Tests for GET /articles."""

    def test_empty(self, client):
        response = client.get("/articles")
        assert response.status_code == 200
        assert response.json()["data"] == {
            "items": [], "total": 0, "page": 1, "pageSize": 20, "hasMore": False,
        }

    def test_newest_first_and_paging(self, client):
        for n in range(3):
            create(client, url=f"https://example.com/{n}")

        first_page = client.get("/articles?pageSize=2").json()["data"]
        assert first_page["total"] == 3
        assert first_page["hasMore"] is True
        assert [a["url"] for a in first_page["items"]] == ["https://example.com/2", "https://example.com/1"]

        second_page = client.get("/articles?pageSize=2&page=2").json()["data"]
        assert [a["url"] for a in second_page["items"]] == ["https://example.com/0"]
        assert second_page["hasMore"] is False

    def test_filters(self, client):
        a = create(client, url="https://example.com/a", tags=["python"]).json()["data"]
        create(client, url="https://example.com/b", tags=["rust"])
        client.put(f"/articles/{a['id']}", json={"isFavorite": True})

        assert client.get("/articles?tags=python,go").json()["data"]["total"] == 1
        assert client.get("/articles?isFavorite=true").json()["data"]["items"][0]["id"] == a["id"]
        assert client.get("/articles?isArchived=true").json()["data"]["total"] == 0
        assert client.get("/articles?search=example").json()["data"]["total"] == 2

    def test_only_own_articles(self, client):
        create(client, user="user-2")
        assert client.get("/articles").json()["data"]["total"] == 0


class TestArticleDetail:
    """Tests for GET/PUT/DELETE /articles/{id}."""

    def test_get(self, client):
        article = create(client).json()["data"]
        response = client.get(f"/articles/{article['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == article["id"]

    def test_not_found(self, client):
        response = client.get("/articles/nope")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": {"code": "NOT_FOUND", "message": "Article not found", "details": {"articleId": "nope"}},
        }

    def test_forbidden(self, client):
        theirs = create(client, user="user-2").json()["data"]
        for method in ("get", "delete"):
            response = getattr(client, method)(f"/articles/{theirs['id']}")
            assert response.status_code == 403
            assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_update(self, client):
        article = create(client).json()["data"]
        response = client.put(f"/articles/{article['id']}", json={
            "title": "Renamed",
            "tags": ["a", "a", "b"],
            "isArchived": True,
            "readProgress": 100,
        })
        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["title"] == "Renamed"
        assert updated["tags"] == ["a", "b"]
        assert updated["isArchived"] is True
        assert updated["readAt"] is not None
        assert updated["updatedAt"] > article["updatedAt"]
        assert updated["url"] == article["url"]
        assert updated["createdAt"] == article["createdAt"]

    def test_update_rejects_bad_progress(self, client):
        article = create(client).json()["data"]
        response = client.put(f"/articles/{article['id']}", json={"readProgress": 150})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    def test_delete(self, client):
        article = create(client).json()["data"]
        assert client.delete(f"/articles/{article['id']}").status_code == 200
        assert client.get(f"/articles/{article['id']}").status_code == 404


class TestCheckDuplicate:

    def test_not_duplicate(self, client):
        response = client.post("/articles/check-duplicate", json={"url": "https://example.com/new"})
        assert response.json()["data"] == {"isDuplicate": False}

    def test_duplicate(self, client):
        article = create(client).json()["data"]
        response = client.post("/articles/check-duplicate", json={"url": "https://example.com/a#top"})
        data = response.json()["data"]
        assert data["isDuplicate"] is True
        assert data["existingArticle"]["id"] == article["id"]


class TestSnapshotRoutes:

    def test_snapshot_pdf(self, client, kv, storage_client):
        asyncio.run(connect_storage(kv))
        article = create(client).json()["data"]

        response = client.post(f"/articles/{article['id']}/snapshot", json={"format": "pdf"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["format"] == "pdf"
        assert data["mimeType"] == "application/pdf"
        assert data["uploadedToCloud"] is True
        assert data["cloudUrl"] == storage_client.link
        assert client.get(f"/articles/{article['id']}").json()["data"]["snapshotPdfUrl"] == storage_client.link

    def test_snapshot_unknown_format(self, client):
        article = create(client).json()["data"]
        response = client.post(f"/articles/{article['id']}/snapshot", json={"format": "docx"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    def test_snapshot_missing_article(self, client):
        response = client.post("/articles/nope/snapshot", json={"format": "text"})
        assert response.status_code == 404

    def test_upload_error_is_502(self, client, kv):
        asyncio.run(connect_storage(kv))
        asyncio.run(kv.put("connection:conn-1:tokens", "garbage"))
        article = create(client).json()["data"]

        response = client.post(f"/articles/{article['id']}/snapshot", json={"format": "text"})

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "UPLOAD_ERROR"

    def test_preview_round_trip(self, client):
        article = create(client).json()["data"]
        response = client.post(f"/articles/{article['id']}/snapshot/preview", json={"format": "pdf"})
        assert response.status_code == 200
        preview = response.json()["data"]

        # Preview links work without identity headers
        fetched = client.get(preview["previewUrl"], headers={"X-User-Id": ""})
        assert fetched.status_code == 200
        assert fetched.content == FAKE_PDF
        assert fetched.headers["content-type"] == "application/pdf"
        assert fetched.headers["cache-control"] == "no-cache, no-store, must-revalidate"

    def test_html_preview_content_type(self, client):
        article = create(client).json()["data"]
        preview = client.post(
            f"/articles/{article['id']}/snapshot/preview", json={"format": "html"}
        ).json()["data"]
        fetched = client.get(preview["previewUrl"])
        assert fetched.headers["content-type"].startswith("text/html")

    def test_expired_preview(self, client):
        response = client.get("/articles/preview/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestBatchRoutes:

    def test_batch_operations(self, client):
        a1 = create(client, url="https://example.com/1").json()["data"]["id"]
        a3 = create(client, url="https://example.com/3").json()["data"]["id"]

        response = client.post("/articles/batch/operations", json={
            "articleIds": [a1, "a2", a3],
            "operation": "delete",
        })

        assert response.status_code == 200
        assert response.json()["data"] == {
            "operation": "delete",
            "totalArticles": 3,
            "successful": 2,
            "failed": 1,
            "errors": ["Article a2 not found"],
        }

    def test_batch_too_large(self, client):
        response = client.post("/articles/batch/operations", json={
            "articleIds": [f"id-{n}" for n in range(51)],
            "operation": "archive",
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BATCH_TOO_LARGE"

    def test_batch_snapshot_acknowledged_and_queued(self, client, deps):
        response = client.post("/articles/batch/snapshot", json={"articleIds": ["x", "y"], "format": "html"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["articleIds"] == ["x", "y"]
        assert data["format"] == "html"
        assert "2 articles" in data["message"]
        assert deps.job_queue.depth == 1

    def test_batch_snapshot_requires_ids(self, client):
        response = client.post("/articles/batch/snapshot", json={"articleIds": [], "format": "pdf"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Article IDs are required"
