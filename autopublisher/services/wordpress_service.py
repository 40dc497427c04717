"""
WordPress publishing service — REST API posts endpoint with application passwords.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from autopublisher.core.config import Settings, get_settings
from autopublisher.core.exceptions import CMSForbiddenError, UpstreamError
from autopublisher.core.logging import get_logger

logger = get_logger(__name__)

POSTS_PATH = "/wp-json/wp/v2/posts"
ERROR_SNIPPET_CHARS = 400


class WordPressService:
    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        settings.require("wp_site_url", "wp_user", "wp_app_password")
        self.endpoint = settings.wp_site_url.rstrip("/") + POSTS_PATH
        self.auth = httpx.BasicAuth(settings.wp_user, settings.wp_app_password)
        self.user_agent = settings.http_user_agent
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=60) as client:
            yield client

    async def create_post(
        self, *, title: str, html: str, excerpt: str = "", status: str = "publish"
    ) -> dict[str, Any]:
        """Create a post and return the created record ({id, link, status, ...})."""
        try:
            async with self._session() as client:
                resp = await client.post(
                    self.endpoint,
                    auth=self.auth,
                    headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                    json={"title": title, "status": status, "content": html, "excerpt": excerpt or ""},
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"WP create request failed: {e}") from e

        if resp.is_error:
            snippet = resp.text[:ERROR_SNIPPET_CHARS]
            if resp.status_code == 403:
                raise CMSForbiddenError(
                    f"WP create 403 (possible Cloudflare or auth block) {snippet}. "
                    "Verify WordPress application password access for this automation."
                )
            raise UpstreamError(f"WP create {resp.status_code} {snippet}")

        try:
            post = resp.json()
        except ValueError as e:
            raise UpstreamError("WP create returned invalid JSON") from e
        if not isinstance(post, dict):
            raise UpstreamError("WP create returned an unexpected body")

        logger.info("wordpress_post_created", post_id=post.get("id"), status=post.get("status"))
        return post
