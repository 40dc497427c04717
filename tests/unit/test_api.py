"""Unit tests for FastAPI endpoints."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from autopublisher.api.deps import get_pipeline_services, get_scraper
from autopublisher.core.config import Settings, get_settings
from autopublisher.main import app
from autopublisher.models.state_store import get_state_store
from autopublisher.pipeline.links import SITE_ROOT
from autopublisher.pipeline.normalize import normalize_payload
from tests.conftest import ARTICLE_URLS, FakeScraper


@pytest.fixture
def client(settings, store, fake_services, fake_scraper):
    """Test client wired to in-memory collaborators and a throwaway state database."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_state_store] = lambda: store
    app.dependency_overrides[get_pipeline_services] = lambda: fake_services
    app.dependency_overrides[get_scraper] = lambda: fake_scraper
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["service"] == "Hacker News Autopublisher"


class TestHealthEndpoint:
    def test_fresh_state(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {
            "ok": True,
            "state": {"lastPublishedDateIST": None, "lastPublishResult": None, "isPublishing": False},
        }

    def test_reflects_held_lock(self, client, store):
        asyncio.run(store.try_acquire())
        assert client.get("/healthz").json()["state"]["isPublishing"] is True


class TestPublishLog:
    def test_nothing_recorded_yet(self, client):
        assert client.get("/publish-log").json() == {"ok": True, "message": "No publish recorded yet"}

    def test_after_a_publish(self, client):
        client.post("/publish-hackernews", json={"index": 0})
        data = client.get("/publish-log").json()
        assert data["ok"] is True
        assert data["lastPublishResult"]["ok"] is True
        assert data["lastPublishResult"]["reason"] == "manual"
        assert data["lastPublishResult"]["result"]["sourceUrl"] == ARTICLE_URLS[0]


class TestLinksEndpoint:
    def test_lists_harvested_articles(self, client, fake_scraper):
        data = client.get("/hackernews-links").json()
        assert data["ok"] is True
        assert data["count"] == 4
        assert data["articles"][0] == {"title": "Chrome Zero Day Exploited", "url": ARTICLE_URLS[0]}
        assert fake_scraper.calls == [SITE_ROOT]

    def test_links_do_not_touch_state(self, client):
        client.get("/hackernews-links")
        assert client.get("/publish-log").json()["message"] == "No publish recorded yet"

    def test_empty_homepage_is_a_client_error(self, client):
        app.dependency_overrides[get_scraper] = lambda: FakeScraper({SITE_ROOT: normalize_payload({})})
        resp = client.get("/hackernews-links")
        assert resp.status_code == 400
        assert resp.json()["ok"] is False


class TestPublishEndpoint:
    def test_publish_returns_result_and_records_date(self, client, fake_services):
        resp = client.post("/publish-hackernews", json={"index": 0})

        assert resp.status_code == 200
        result = resp.json()["result"]
        assert result["published"] is True
        assert result["sourceUrl"] == ARTICLE_URLS[0]
        assert result["generatedTitle"] == "Attackers Chain Chrome Flaw"
        assert result["wordpressPost"] == {
            "id": 101,
            "link": "https://blog.example.com/?p=101",
            "status": "publish",
        }
        assert fake_services.cms.posts[0]["excerpt"] == "A short teaser about the incident."

        state = client.get("/healthz").json()["state"]
        assert state["lastPublishedDateIST"] is not None
        assert state["isPublishing"] is False

    def test_preview(self, client, fake_services):
        resp = client.post("/publish-hackernews", json={"index": 1, "publish": False})

        result = resp.json()["result"]
        assert result["published"] is False
        assert result["wordpressPost"] is None
        assert fake_services.cms.posts == []
        assert client.get("/healthz").json()["state"]["lastPublishedDateIST"] is None

    def test_explicit_url(self, client):
        url = "https://thehackernews.com/2024/05/explicit-pick.html?utm_source=x"
        result = client.post("/publish-hackernews", json={"url": url}).json()["result"]
        assert result["sourceUrl"] == "https://thehackernews.com/2024/05/explicit-pick.html"
        assert result["sourceTitle"] == "Source Headline"

    def test_invalid_url_is_rejected(self, client):
        resp = client.post("/publish-hackernews", json={"url": "https://example.com/nope"})
        assert resp.status_code == 400
        assert resp.json()["ok"] is False
        assert "not a valid Hacker News article" in resp.json()["error"]

    def test_in_flight_publish_returns_409(self, client, store, fake_services):
        asyncio.run(store.try_acquire())

        resp = client.post("/publish-hackernews", json={})

        assert resp.status_code == 409
        assert resp.json() == {"ok": False, "error": "Publish already in progress"}
        assert fake_services.scraper.calls == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"content": "not json", "headers": {"content-type": "application/json"}},
            {"json": [1, 2, 3]},
            {"json": {"url": 5, "index": "2", "publish": "no"}},
            {},
        ],
    )
    def test_malformed_bodies_mean_a_default_run(self, client, kwargs):
        resp = client.post("/publish-hackernews", **kwargs)
        assert resp.status_code == 200
        assert resp.json()["result"]["published"] is True

    def test_missing_configuration_is_a_500(self, client):
        app.dependency_overrides.pop(get_pipeline_services)
        app.dependency_overrides[get_settings] = lambda: Settings(
            firecrawl_api_key="", groq_api_key="", wp_site_url="", wp_user="", wp_app_password=""
        )

        resp = client.post("/publish-hackernews", json={})

        assert resp.status_code == 500
        assert resp.json() == {"ok": False, "error": "Missing required environment variable FIRECRAWL_API_KEY"}


class TestResetEndpoint:
    def test_reset_clears_lock_and_history(self, client, store):
        client.post("/publish-hackernews", json={"index": 0})
        asyncio.run(store.try_acquire())

        resp = client.post("/publish-reset")

        assert resp.json() == {"ok": True, "message": "Publish state reset"}
        assert client.get("/healthz").json()["state"] == {
            "lastPublishedDateIST": None,
            "lastPublishResult": None,
            "isPublishing": False,
        }


class BrokenScraper:
    async def fetch_document(self, url):
        raise RuntimeError("scraper exploded")


class TestUnexpectedErrors:
    def test_unexpected_error_is_still_an_ok_false_json_body(self, client):
        app.dependency_overrides[get_scraper] = lambda: BrokenScraper()
        resp = TestClient(app, raise_server_exceptions=False).get("/hackernews-links")

        assert resp.status_code == 500
        assert resp.headers["content-type"] == "application/json"
        assert resp.json() == {"ok": False, "error": "scraper exploded"}

    def test_broken_markdown_link_on_homepage_still_lists_good_links(self, client):
        page = {"data": {"summary": f"[broken](http://[oops) and [Good story]({ARTICLE_URLS[0]})"}}
        app.dependency_overrides[get_scraper] = lambda: FakeScraper({SITE_ROOT: normalize_payload(page)})

        resp = client.get("/hackernews-links")

        assert resp.status_code == 200
        assert resp.json()["articles"] == [{"title": "Good story", "url": ARTICLE_URLS[0]}]

    def test_failed_publish_releases_lock_and_answers_json(self, client, fake_services, store):
        fake_services.scraper = BrokenScraper()
        resp = TestClient(app, raise_server_exceptions=False).post("/publish-hackernews", json={})

        assert resp.status_code == 500
        assert resp.json()["ok"] is False
        state = asyncio.run(store.get())
        assert state.is_publishing is False
        assert state.last_publish_result.error == "scraper exploded"
