"""
Shared pytest fixtures for unit tests.

Collaborators are replaced by in-memory fakes (pipeline/API tests) or by
httpx.MockTransport (client tests), so no API keys or network are needed. Publish state
lives in a throwaway SQLite file per test.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from autopublisher.core.config import Settings
from autopublisher.models.database import make_engine
from autopublisher.models.state_store import PublishStateStore
from autopublisher.pipeline.graph import PipelineServices
from autopublisher.pipeline.links import SITE_ROOT
from autopublisher.pipeline.normalize import normalize_payload
from autopublisher.pipeline.state import GeneratedArticle, NormalizedDocument

ARTICLE_URLS = [
    "https://thehackernews.com/2024/05/chrome-zero-day-exploited.html",
    "https://thehackernews.com/2024/05/new-ransomware-strain.html",
    "https://thehackernews.com/2024/05/botnet-targets-routers.html",
    "https://thehackernews.com/2024/05/supply-chain-attack-npm.html",
    "https://thehackernews.com/2024/04/patch-tuesday-fixes.html",
]


class FakeScraper:
    """Stands in for FirecrawlService.fetch_document."""

    def __init__(self, documents: dict[str, NormalizedDocument]) -> None:
        self.documents = documents
        self.calls: list[str] = []

    async def fetch_document(self, url: str) -> NormalizedDocument:
        self.calls.append(url)
        if url in self.documents:
            return self.documents[url]
        return normalize_payload(
            {"data": {"summary": f"Summary of {url}", "title": "Source Headline", "links": []}}
        )


class FakeLLM:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict[str, str]] = []

    async def expand_to_blog(self, *, source_title: str, source_url: str, summary_text: str) -> GeneratedArticle:
        self.calls.append({"source_title": source_title, "source_url": source_url})
        if self.error:
            raise self.error
        return GeneratedArticle(
            title="Attackers Chain Chrome Flaw",
            hook="A short teaser about the incident.",
            html="<h2>TLDR</h2><p>Patch now.</p>",
        )


class FakeCMS:
    def __init__(self) -> None:
        self.posts: list[dict[str, Any]] = []

    async def create_post(self, *, title: str, html: str, excerpt: str = "", status: str = "publish") -> dict:
        self.posts.append({"title": title, "html": html, "excerpt": excerpt, "status": status})
        return {"id": 101, "link": "https://blog.example.com/?p=101", "status": status}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        firecrawl_api_key="fc-test",
        groq_api_key="gsk-test",
        wp_site_url="https://blog.example.com/",
        wp_user="autobot",
        wp_app_password="abcd efgh ijkl",
        firecrawl_poll_timeout_seconds=0.2,
        firecrawl_poll_interval_seconds=0.01,
        groq_backoff_seconds=0.0,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'settings.db'}",
    )


@pytest.fixture
def store(tmp_path) -> PublishStateStore:
    return PublishStateStore(make_engine(f"sqlite+aiosqlite:///{tmp_path / 'state.db'}"))


@pytest.fixture
def homepage_payload() -> dict[str, Any]:
    """A Firecrawl scrape response for the homepage, links spread over several fields."""
    return {
        "success": True,
        "data": {
            "summary": (
                f"Top stories: [Chrome zero-day]({ARTICLE_URLS[0]}) and "
                "[Search](https://thehackernews.com/search/label/Vulnerability)."
            ),
            "html": (
                f'<div><a href="{ARTICLE_URLS[1]}"><span>New ransomware</span> strain</a>'
                '<a href="/p/about.html">About</a></div>'
            ),
            "links": [
                ARTICLE_URLS[0],
                {"url": ARTICLE_URLS[2], "text": "Botnet targets routers"},
                "https://thehackernews.com/search?updated-max=2024-05-01",
                "https://example.com/2024/05/elsewhere.html",
            ],
            "metadata": {
                "title": "The Hacker News",
                "sourceURL": SITE_ROOT,
                "related": [{"permalink": ARTICLE_URLS[3], "heading": "Supply chain attack"}],
            },
        },
    }


@pytest.fixture
def homepage_document(homepage_payload) -> NormalizedDocument:
    return normalize_payload(homepage_payload)


@pytest.fixture
def fake_scraper(homepage_document) -> FakeScraper:
    return FakeScraper({SITE_ROOT: homepage_document})


@pytest.fixture
def fake_services(fake_scraper) -> PipelineServices:
    return PipelineServices(scraper=fake_scraper, llm=FakeLLM(), cms=FakeCMS())


@pytest.fixture
def fixed_clock():
    """2024-05-10 20:00 UTC == 2024-05-11 01:30 IST."""
    return lambda: datetime(2024, 5, 10, 20, 0, tzinfo=UTC)
