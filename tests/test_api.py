"""测试 HTTP API."""

import json
from datetime import timedelta

from httpx import AsyncClient

from feedletter.utils.timeutil import utcnow

FEED_URL = "https://news.example.com/rss"

ITEMS = [
    {"title": "One", "guid": "n-1", "pubDate": "Wed, 03 Jan 2024 08:00:00 GMT"},
    {"title": "Two", "guid": "n-2", "pubDate": "Fri, 05 Jan 2024 08:00:00 GMT"},
]

WINDOW = {"start_date": "2024-01-01T00:00:00Z", "end_date": "2024-01-31T23:59:59Z"}


def parse_sse(body: str) -> list[dict]:
    """解析 text/event-stream 响应体."""
    return [
        json.loads(line[len("data: ") :])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


class TestHealth:
    """测试健康检查."""

    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestFeedsApi:
    """测试订阅接口."""

    async def test_add_list_toggle_delete(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        make_rss,
    ) -> None:
        """订阅的完整生命周期."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)

        response = await client.post("/api/feeds", json={"url": FEED_URL, "owner_id": "alice"})
        assert response.status_code == 201
        data = response.json()
        assert data["error"] is None
        assert data["articles_created"] == 2
        assert data["feed"]["title"] == "News"
        feed_id = data["feed"]["id"]

        response = await client.get("/api/feeds", params={"owner_id": "alice"})
        assert response.json()["total"] == 1

        response = await client.post(f"/api/feeds/{feed_id}/toggle")
        assert response.json() == {"id": feed_id, "is_active": False}

        response = await client.delete(f"/api/feeds/{feed_id}")
        assert response.status_code == 200
        assert response.json()["articles_deleted"] == 2

    async def test_duplicate_feed_conflict(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        make_rss,
    ) -> None:
        """重复订阅返回 409."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)
        await client.post("/api/feeds", json={"url": FEED_URL, "owner_id": "alice"})

        response = await client.post("/api/feeds", json={"url": FEED_URL, "owner_id": "alice"})

        assert response.status_code == 409
        assert response.json()["kind"] == "validation"

    async def test_invalid_feed_url(self, client: AsyncClient) -> None:
        """无效 URL 返回 400."""
        response = await client.post("/api/feeds", json={"url": "https://nothing.example.com"})
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    async def test_missing_feed(self, client: AsyncClient) -> None:
        """不存在的 Feed 返回 404."""
        response = await client.get("/api/feeds/missing")
        assert response.status_code == 404
        assert response.json() == {
            "detail": "RSS feed with ID missing not found",
            "kind": "not_found",
        }

    async def test_refresh_stale_skips_fresh(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        requested_urls: list[str],
        make_rss,
        add_feed,
    ) -> None:
        """只刷新过期的 Feed."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)
        await add_feed(id="stale", url=FEED_URL)
        await add_feed(
            id="fresh",
            url="https://fresh.example.com/rss",
            last_fetched=utcnow() - timedelta(minutes=5),
        )

        response = await client.post(
            "/api/feeds/refresh-stale", json={"feed_ids": ["stale", "fresh"]}
        )

        data = response.json()
        assert data["stale"] == ["stale"]
        assert data["summary"]["successful"] == 1
        assert requested_urls == [FEED_URL]

    async def test_refresh_all_and_count(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        requested_urls: list[str],
        make_rss,
        add_feed,
    ) -> None:
        """刷新用户所有启用的 Feed，忽略缓存窗口和其他用户的 Feed."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)
        await add_feed(id="mine", owner_id="alice", url=FEED_URL, last_fetched=utcnow())
        await add_feed(
            id="paused",
            owner_id="alice",
            url="https://paused.example.com/rss",
            is_active=False,
        )
        await add_feed(id="theirs", owner_id="bob", url="https://bob.example.com/rss")

        response = await client.post("/api/feeds/refresh-all", params={"owner_id": "alice"})

        data = response.json()
        assert data["total"] == 1
        assert data["successful"] == 1
        assert data["articles_created"] == 2
        assert requested_urls == [FEED_URL]

        response = await client.get("/api/feeds/count", params={"owner_id": "alice"})
        assert response.json() == {"owner_id": "alice", "active": 1}


class TestArticlesApi:
    """测试文章接口."""

    async def test_list_requires_filter(self, client: AsyncClient) -> None:
        response = await client.get("/api/articles")
        assert response.status_code == 400

    async def test_article_detail_with_sources(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        make_rss,
        add_feed,
    ) -> None:
        """文章详情包含来源列表."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)
        await add_feed(id="news", url=FEED_URL)
        await client.post("/api/feeds/news/refresh")

        listing = await client.get("/api/articles", params={"feed_id": "news"})
        items = listing.json()["items"]
        assert [item["guid"] for item in items] == ["n-2", "n-1"]

        response = await client.get(f"/api/articles/{items[0]['id']}")
        assert response.json()["source_feed_ids"] == ["news"]
        assert response.json()["source_count"] == 1

    async def test_missing_article(self, client: AsyncClient) -> None:
        response = await client.get("/api/articles/missing")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"


class TestNewsletterApi:
    """测试 Newsletter 接口."""

    async def test_generate_stream(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        fake_provider,
        make_rss,
        add_feed,
    ) -> None:
        """以 SSE 返回完整事件序列."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)
        await add_feed(id="news", url=FEED_URL)

        response = await client.post(
            "/api/newsletter/generate-stream",
            json={"feed_ids": ["news"], "user_input": "Keep it short", **WINDOW},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        types = [event["type"] for event in events]
        assert types[:3] == ["refreshing", "analyzing", "metadata"]
        assert types[-1] == "complete"
        assert events[2]["articles_analyzed"] == 2
        assert events[-1]["data"]["top_announcements"] == ["A1", "A2", "A3", "A4", "A5"]
        assert fake_provider.closed is True

    async def test_generate_stream_validation(self, client: AsyncClient) -> None:
        """参数错误在开始推送事件前返回 400."""
        response = await client.post(
            "/api/newsletter/generate-stream",
            json={
                "feed_ids": ["news"],
                "start_date": WINDOW["end_date"],
                "end_date": WINDOW["start_date"],
            },
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

        response = await client.post(
            "/api/newsletter/generate-stream", json={"feed_ids": [], **WINDOW}
        )
        assert response.status_code == 400

    async def test_generate_stream_empty_window(
        self, client: AsyncClient, add_feed
    ) -> None:
        """窗口内没有文章时以错误事件结束."""
        await add_feed(id="news", url=FEED_URL, last_fetched=utcnow())

        response = await client.post(
            "/api/newsletter/generate-stream", json={"feed_ids": ["news"], **WINDOW}
        )

        events = parse_sse(response.text)
        assert events[-1] == {
            "type": "error",
            "error": "No articles found for the selected feeds and date range",
            "kind": "empty_result",
        }

    async def test_prepare_articles_empty(self, client: AsyncClient, add_feed) -> None:
        """无文章时返回 404."""
        await add_feed(id="news", url=FEED_URL, last_fetched=utcnow())

        response = await client.post(
            "/api/newsletter/articles", json={"feed_ids": ["news"], **WINDOW}
        )

        assert response.status_code == 404
        assert response.json()["kind"] == "empty_result"

    async def test_generate_stream_saves_history(
        self,
        client: AsyncClient,
        feed_documents: dict[str, str],
        make_rss,
        add_feed,
    ) -> None:
        """save=true 时结果进入历史记录."""
        feed_documents[FEED_URL] = make_rss("News", ITEMS)
        await add_feed(id="news", owner_id="alice", url=FEED_URL)

        response = await client.post(
            "/api/newsletter/generate-stream",
            json={"feed_ids": ["news"], "owner_id": "alice", "save": True, **WINDOW},
        )

        complete = parse_sse(response.text)[-1]
        assert complete["type"] == "complete"
        response = await client.get(f"/api/newsletters/{complete['newsletter_id']}")
        assert response.status_code == 200
        assert response.json()["feeds_used"] == ["news"]
        assert response.json()["start_date"] == "2024-01-01T00:00:00"


class TestNewsletterHistoryApi:
    """测试 Newsletter 历史接口."""

    async def test_save_list_delete(self, client: AsyncClient) -> None:
        """保存、查询、删除."""
        payload = {
            "owner_id": "alice",
            "newsletter": {
                "suggested_titles": ["T1", "T2", "T3", "T4", "T5"],
                "suggested_subject_lines": ["S1", "S2", "S3", "S4", "S5"],
                "body": "## Weekly",
                "top_announcements": ["A1", "A2", "A3", "A4", "A5"],
            },
            "feed_ids": ["news"],
            **WINDOW,
        }

        response = await client.post("/api/newsletters", json=payload)
        assert response.status_code == 201
        newsletter_id = response.json()["id"]

        listing = await client.get("/api/newsletters", params={"owner_id": "alice"})
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["id"] == newsletter_id

        latest = await client.get("/api/newsletters/latest", params={"owner_id": "alice"})
        assert latest.json()["id"] == newsletter_id

        count = await client.get("/api/newsletters/count", params={"owner_id": "alice"})
        assert count.json() == {"owner_id": "alice", "count": 1}

        response = await client.delete(
            f"/api/newsletters/{newsletter_id}", params={"owner_id": "bob"}
        )
        assert response.status_code == 404

        response = await client.delete(
            f"/api/newsletters/{newsletter_id}", params={"owner_id": "alice"}
        )
        assert response.json() == {"success": True}

        response = await client.get(f"/api/newsletters/{newsletter_id}")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    async def test_latest_when_empty(self, client: AsyncClient) -> None:
        response = await client.get("/api/newsletters/latest", params={"owner_id": "nobody"})
        assert response.status_code == 404

    async def test_invalid_newsletter_rejected(self, client: AsyncClient) -> None:
        """列表长度不是 5 时请求校验失败."""
        payload = {
            "owner_id": "alice",
            "newsletter": {
                "suggested_titles": ["only one"],
                "suggested_subject_lines": ["S1", "S2", "S3", "S4", "S5"],
                "body": "b",
                "top_announcements": ["A1", "A2", "A3", "A4", "A5"],
            },
            "feed_ids": ["news"],
            **WINDOW,
        }
        response = await client.post("/api/newsletters", json=payload)
        assert response.status_code == 422


class TestPreferencesApi:
    """测试用户偏好接口."""

    async def test_put_get_delete(self, client: AsyncClient) -> None:
        response = await client.get("/api/users/alice/settings")
        assert response.json() == {"owner_id": "alice", "settings": None}

        response = await client.put(
            "/api/users/alice/settings",
            json={"newsletter_name": "Weekly Wire", "default_tags": ["ai"]},
        )
        settings = response.json()["settings"]
        assert settings["newsletter_name"] == "Weekly Wire"
        assert settings["default_tags"] == ["ai"]
        assert settings["industry"] is None

        response = await client.get("/api/users/alice/settings")
        assert response.json()["settings"]["newsletter_name"] == "Weekly Wire"

        response = await client.delete("/api/users/alice/settings")
        assert response.json() == {"success": True}
        response = await client.get("/api/users/alice/settings")
        assert response.json()["settings"] is None
