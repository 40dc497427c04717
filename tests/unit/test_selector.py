"""Unit tests for homepage harvesting and article selection."""

from __future__ import annotations

import asyncio
import random

import pytest

from autopublisher.core.exceptions import InvalidArticleUrlError, NoCandidatesError, ValidationError
from autopublisher.pipeline.links import SITE_ROOT
from autopublisher.pipeline.normalize import normalize_payload
from autopublisher.pipeline.selector import fetch_article_links, select_article, summarize_source
from tests.conftest import ARTICLE_URLS, FakeScraper


def _scraper_with_links(count: int) -> FakeScraper:
    urls = [f"https://thehackernews.com/2024/05/story-{i}.html" for i in range(count)]
    return FakeScraper({SITE_ROOT: normalize_payload({"data": {"links": urls}})})


class TestFetchArticleLinks:
    def test_returns_harvested_links_in_order(self, fake_scraper):
        links = asyncio.run(fetch_article_links(fake_scraper))
        assert [link["url"] for link in links] == [
            ARTICLE_URLS[0],
            ARTICLE_URLS[2],
            ARTICLE_URLS[3],
            ARTICLE_URLS[1],
        ]
        assert fake_scraper.calls == [SITE_ROOT]

    def test_caps_at_limit(self):
        links = asyncio.run(fetch_article_links(_scraper_with_links(30)))
        assert len(links) == 16
        assert links[0]["url"].endswith("story-0.html")

    def test_no_links_is_an_error(self):
        scraper = FakeScraper({SITE_ROOT: normalize_payload({"data": {"markdown": "no links"}})})
        with pytest.raises(NoCandidatesError):
            asyncio.run(fetch_article_links(scraper))


class TestSelectArticle:
    def test_index_zero_returns_first_shortlist_entry(self, fake_scraper):
        chosen = asyncio.run(select_article(fake_scraper, index=0))
        assert chosen == {"title": "Chrome Zero Day Exploited", "url": ARTICLE_URLS[0]}

    def test_index_picks_within_shortlist(self):
        chosen = asyncio.run(select_article(_scraper_with_links(10), index=3))
        assert chosen["url"].endswith("story-3.html")

    @pytest.mark.parametrize("index", [99, 4, -1, None, True])
    def test_invalid_index_falls_back_to_random_shortlist_entry(self, index):
        scraper = _scraper_with_links(10)
        shortlist = {f"https://thehackernews.com/2024/05/story-{i}.html" for i in range(4)}
        for seed in range(20):
            chosen = asyncio.run(select_article(scraper, index=index, rng=random.Random(seed)))
            assert chosen["url"] in shortlist

    def test_random_choice_uses_supplied_rng(self):
        scraper = _scraper_with_links(10)
        first = asyncio.run(select_article(scraper, rng=random.Random(7)))
        again = asyncio.run(select_article(scraper, rng=random.Random(7)))
        assert first == again

    def test_shortlist_shorter_than_four(self):
        chosen = asyncio.run(select_article(_scraper_with_links(2), index=3, rng=random.Random(1)))
        assert chosen["url"] in {
            "https://thehackernews.com/2024/05/story-0.html",
            "https://thehackernews.com/2024/05/story-1.html",
        }

    def test_explicit_url_is_canonicalised_without_scraping(self, fake_scraper):
        chosen = asyncio.run(
            select_article(fake_scraper, url="http://thehackernews.com/2024/05/my-story.html?src=x")
        )
        assert chosen == {"title": "My Story", "url": "https://thehackernews.com/2024/05/my-story.html"}
        assert fake_scraper.calls == []

    @pytest.mark.parametrize(
        "url",
        [
            "https://thehackernews.com/search/label/Malware",
            "https://example.com/2024/05/story.html",
            "not a url at all",
        ],
    )
    def test_bad_explicit_url_is_a_hard_error(self, fake_scraper, url):
        with pytest.raises(InvalidArticleUrlError):
            asyncio.run(select_article(fake_scraper, url=url))

    def test_empty_homepage_raises_no_candidates(self):
        scraper = FakeScraper({SITE_ROOT: normalize_payload({})})
        with pytest.raises(NoCandidatesError):
            asyncio.run(select_article(scraper, index=0))


class TestSummarizeSource:
    def test_prefers_summary_then_markdown(self):
        url = ARTICLE_URLS[0]
        scraper = FakeScraper({url: normalize_payload({"data": {"markdown": "md body", "title": "Real"}})})
        summary, title = asyncio.run(summarize_source(scraper, url))
        assert summary == "md body"
        assert title == "Real"

    def test_title_derived_from_url_when_missing(self):
        url = ARTICLE_URLS[1]
        scraper = FakeScraper({url: normalize_payload({"data": {"summary": "s"}})})
        _, title = asyncio.run(summarize_source(scraper, url))
        assert title == "New Ransomware Strain"

    def test_empty_article_is_a_validation_error(self):
        url = ARTICLE_URLS[2]
        scraper = FakeScraper({url: normalize_payload({"data": {"title": "Only title"}})})
        with pytest.raises(ValidationError, match="Failed to extract summary"):
            asyncio.run(summarize_source(scraper, url))
