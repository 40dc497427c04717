"""
Firecrawl client — scrape a page, or crawl-and-poll when scraping yields nothing.

All responses are passed through normalize_payload, so callers only ever see a
NormalizedDocument regardless of which endpoint produced it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import httpx

from autopublisher.core.config import Settings, get_settings
from autopublisher.core.exceptions import PollTimeoutError, UpstreamError
from autopublisher.core.logging import get_logger
from autopublisher.pipeline.normalize import (
    classify_payload,
    first_non_empty,
    has_content,
    normalize_payload,
)
from autopublisher.pipeline.state import NormalizedDocument

logger = get_logger(__name__)

DEFAULT_FORMATS = ("summary", "html", "links")


class FirecrawlService:
    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        settings.require("firecrawl_api_key")
        self.api_key = settings.firecrawl_api_key
        self.base_url = settings.firecrawl_base_url.rstrip("/")
        self.poll_timeout = settings.firecrawl_poll_timeout_seconds
        self.poll_interval = settings.firecrawl_poll_interval_seconds
        self._client = client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=60) as client:
            yield client

    async def _request(self, label: str, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._session() as client:
                resp = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers, **kwargs
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Firecrawl {label} request failed: {e}") from e

        if resp.is_error:
            raise UpstreamError(f"Firecrawl {label} {resp.status_code} {resp.text}")
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"Firecrawl {label} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError(f"Firecrawl {label} returned {type(data).__name__}, expected object")
        return data

    async def scrape(self, url: str, formats: Sequence[str] = DEFAULT_FORMATS) -> NormalizedDocument:
        data = await self._request(
            "scrape",
            "POST",
            "/scrape",
            json={"url": url, "formats": list(formats), "onlyMainContent": False},
        )
        if data.get("error"):
            raise UpstreamError(str(data["error"]))

        document = normalize_payload(data)
        logger.info(
            "firecrawl_scraped",
            url=url,
            shape=classify_payload(data),
            documents=len(document["documents"]),
            links=len(document["links"]),
        )
        return document

    async def start_crawl(self, url: str) -> dict[str, Any]:
        return await self._request(
            "crawl start",
            "POST",
            "/crawl",
            json={
                "url": url,
                "limit": 1,
                "crawlEntireDomain": False,
                "scrapeOptions": {"formats": list(DEFAULT_FORMATS), "onlyMainContent": False},
            },
        )

    async def poll_crawl(self, job_id: str) -> dict[str, Any]:
        """Poll a crawl job until it has data or the timeout budget is spent."""
        deadline = time.monotonic() + self.poll_timeout
        polls = 0
        while time.monotonic() < deadline:
            data = await self._request("poll", "GET", f"/crawl/{job_id}")
            polls += 1
            if data.get("status") == "failed":
                raise UpstreamError(f"Firecrawl crawl {job_id} failed: {data.get('error', '')}")
            if (
                data.get("status") == "completed"
                or data.get("success") is True
                or isinstance(data.get("data"), list)
                or isinstance(data.get("documents"), list)
            ):
                logger.info("firecrawl_poll_complete", job_id=job_id, polls=polls)
                return data
            await asyncio.sleep(self.poll_interval)
        raise PollTimeoutError(f"Firecrawl poll timed out after {self.poll_timeout:g}s (job {job_id})")

    async def fetch_document(self, url: str) -> NormalizedDocument:
        """
        Scrape ``url``, falling back to a one-page crawl.

        The crawl is used when the scrape returns nothing usable or fails, except
        when Firecrawl says the operation is not permitted for this site.
        """
        try:
            scraped = await self.scrape(url)
            if has_content(scraped):
                logger.debug("firecrawl_using_scrape", url=url)
                return scraped
            logger.info("firecrawl_scrape_empty", url=url)
        except UpstreamError as e:
            if "not permitted" in str(e).lower():
                raise
            logger.warning("firecrawl_scrape_failed", url=url, error=str(e))

        started = await self.start_crawl(url)
        if isinstance(started.get("data"), list) and started["data"]:
            logger.info("firecrawl_crawl_immediate", url=url)
            return normalize_payload(started)

        job_id = first_non_empty(started.get("id"), started.get("jobId"), started.get("crawlId"))
        if not job_id:
            raise UpstreamError("Firecrawl crawl did not return data or a job id")
        polled = await self.poll_crawl(job_id)
        logger.info("firecrawl_crawl_polled", url=url, job_id=job_id)
        return normalize_payload(polled)
