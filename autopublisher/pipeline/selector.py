"""
Article selection — harvest homepage links and pick one publish candidate.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Protocol

from autopublisher.core.exceptions import InvalidArticleUrlError, NoCandidatesError, ValidationError
from autopublisher.core.logging import get_logger
from autopublisher.pipeline.links import (
    SITE_ROOT,
    LinkAggregator,
    canonicalize_article_url,
    derive_title_from_url,
    harvest_document,
    is_article_url,
)
from autopublisher.pipeline.normalize import first_non_empty

if TYPE_CHECKING:
    from autopublisher.pipeline.state import CanonicalLink, NormalizedDocument

logger = get_logger(__name__)

HARVEST_LIMIT = 16
SHORTLIST_SIZE = 4
EXPLICIT_URL_TITLE = "The Hacker News Article"


class DocumentFetcher(Protocol):
    async def fetch_document(self, url: str) -> NormalizedDocument: ...


async def fetch_article_links(scraper: DocumentFetcher, limit: int = HARVEST_LIMIT) -> list[CanonicalLink]:
    """Scrape the homepage and return up to ``limit`` dated article links."""
    logger.info("harvest_started", url=SITE_ROOT)
    document = await scraper.fetch_document(SITE_ROOT)

    aggregator = LinkAggregator()
    harvest_document(document, aggregator)
    links = [link for link in aggregator.all() if is_article_url(link["url"])][:limit]

    if not links:
        raise NoCandidatesError("No article links found on The Hacker News homepage")
    logger.info("harvest_complete", link_count=len(links))
    return links


async def select_article(
    scraper: DocumentFetcher,
    *,
    url: str | None = None,
    index: int | None = None,
    harvest_limit: int = HARVEST_LIMIT,
    shortlist_size: int = SHORTLIST_SIZE,
    rng: random.Random | None = None,
) -> CanonicalLink:
    """
    Pick the article to publish.

    An explicit ``url`` must canonicalise to a dated article permalink. Without
    one, the first ``shortlist_size`` harvested links are the candidates; a valid
    ``index`` picks deterministically, anything else picks at random.
    """
    if url:
        normalized = canonicalize_article_url(url)
        if normalized is None:
            raise InvalidArticleUrlError(f"Provided URL is not a valid Hacker News article: {url}")
        return {"title": derive_title_from_url(normalized, EXPLICIT_URL_TITLE), "url": normalized}

    articles = await fetch_article_links(scraper, harvest_limit)
    shortlist = articles[: min(shortlist_size, len(articles))]
    if not shortlist:
        raise NoCandidatesError("No Hacker News articles available to select")

    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(shortlist):
        chosen = shortlist[index]
    else:
        chosen = (rng or random).choice(shortlist)

    logger.info("article_selected", url=chosen["url"], index=index, shortlist=len(shortlist))
    return chosen


async def summarize_source(scraper: DocumentFetcher, url: str) -> tuple[str, str]:
    """Fetch an article and return (summary_text, article_title)."""
    article = await scraper.fetch_document(url)
    summary_text = first_non_empty(article["summary"], article["markdown"], article["raw_text"])
    if not summary_text:
        raise ValidationError(f"Failed to extract summary from {url}")
    article_title = first_non_empty(article["title"], derive_title_from_url(url))
    logger.info("source_summarized", url=url, summary_chars=len(summary_text))
    return summary_text, article_title
