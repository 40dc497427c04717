"""
Diagnostic: scrape The Hacker News homepage once and log what came back.

Shows the upstream payload shape and the links the harvester extracts from it.
Does not touch publish state. Run: python -m cron.inspect_homepage
"""

from __future__ import annotations

import asyncio
import sys

from autopublisher.core.config import get_settings
from autopublisher.core.exceptions import AutopublisherError
from autopublisher.core.logging import get_logger, setup_logging
from autopublisher.pipeline.links import SITE_ROOT, LinkAggregator, harvest_document
from autopublisher.pipeline.normalize import classify_payload
from autopublisher.services.firecrawl_service import FirecrawlService

setup_logging()
logger = get_logger("inspect")


async def main() -> int:
    try:
        scraper = FirecrawlService(get_settings())
        document = await scraper.fetch_document(SITE_ROOT)
    except AutopublisherError as e:
        logger.error("inspect_failed", error=str(e))
        return 1

    primary = document["documents"][0] if document["documents"] else {}
    metadata = document["metadata"]
    logger.info(
        "payload_shape",
        primary_keys=sorted(primary.keys()),
        primary_shape=classify_payload(primary),
        documents=len(document["documents"]),
        links=len(document["links"]),
        metadata_keys=sorted(metadata.keys()) if isinstance(metadata, dict) else None,
        summary_chars=len(document["summary"]),
        html_chars=len(document["html"]),
        raw_text_chars=len(document["raw_text"]),
    )

    aggregator = LinkAggregator()
    harvest_document(document, aggregator)
    links = aggregator.all()
    logger.info("harvested_links", count=len(links))
    for position, link in enumerate(links[:10], start=1):
        logger.info("harvested_link", idx=position, title=link["title"], url=link["url"])
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
