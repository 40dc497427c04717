"""
Groq chat-completions client — expands a source summary into a long-form post.

Direct httpx call to the OpenAI-compatible endpoint. Server errors (5xx) are
retried with linear backoff; anything else fails immediately.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from autopublisher.core.config import Settings, get_settings
from autopublisher.core.exceptions import ModelDecommissionedError, UpstreamError, ValidationError
from autopublisher.core.logging import get_logger
from autopublisher.pipeline.normalize import first_non_empty
from autopublisher.pipeline.state import GeneratedArticle

logger = get_logger(__name__)

GROQ_CHAT_URL = "https://api.groq.com/openai/v1/chat/completions"
MAX_TITLE_CHARS = 120
ERROR_SNIPPET_CHARS = 300

EXPAND_SYSTEM_PROMPT = """You are a security analyst and technical writer.
Write a precise, well-structured cybersecurity blog post in valid HTML based on a source summary.
Sections:
<h2>TLDR</h2> two lines
<h2>What happened</h2>
<h2>Why it matters</h2>
<h2>Who is affected</h2>
<h2>How to check exposure</h2>
<h2>Fast mitigation</h2>
Rules: produce 2500 to 3000 words, short sentences, confident tone, no hype, and do not include a References heading.
Return compact JSON (single line, no code fences) with keys: "title" (an original headline, not copied from the source), "hook" (25 to 40 word teaser written by you), and "html" (the article body wrapped in HTML)."""

EXPAND_USER_PROMPT = """Source title: {source_title}
Source url: {source_url}

Source summary:
{summary_text}

Write the post now in clean HTML. Use h2 for section headings and lists where useful."""

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z]*\n?")
_FENCE_CLOSE_RE = re.compile(r"```$")


def parse_model_json(content: str) -> dict[str, Any]:
    """Parse a JSON object out of model output, tolerating fences and chatter."""
    text = content.strip()
    if text.startswith("```"):
        text = _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", text)).strip()

    try:
        parsed = json.loads(text)
    except ValueError:
        first, last = text.find("{"), text.rfind("}")
        if first == -1 or last <= first:
            raise ValidationError(f"Groq response not JSON: {text[:ERROR_SNIPPET_CHARS]}") from None
        try:
            parsed = json.loads(text[first : last + 1])
        except ValueError as e:
            raise ValidationError(f"Groq response not JSON: {text[:ERROR_SNIPPET_CHARS]}") from e

    if not isinstance(parsed, dict):
        raise ValidationError("Groq response JSON is not an object")
    return parsed


def _snippet(text: str) -> str:
    if len(text) > ERROR_SNIPPET_CHARS:
        return text[:ERROR_SNIPPET_CHARS] + "…"
    return text


class GroqService:
    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        settings.require("groq_api_key")
        self.api_key = settings.groq_api_key
        self.model = settings.groq_model
        self.max_attempts = max(1, settings.groq_max_attempts)
        self.backoff_seconds = settings.groq_backoff_seconds
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=120) as client:
            yield client

    async def _complete(self, payload: dict[str, Any]) -> str:
        last_snippet = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self._session() as client:
                    resp = await client.post(
                        GROQ_CHAT_URL,
                        headers={
                            "Authorization": f"Bearer {self.api_key}",
                            "Content-Type": "application/json",
                        },
                        json=payload,
                    )
            except httpx.HTTPError as e:
                raise UpstreamError(f"Groq request failed: {e}") from e

            if resp.is_error:
                last_snippet = _snippet(resp.text)
                if resp.status_code == 400 and "model_decommissioned" in resp.text.lower():
                    raise ModelDecommissionedError(
                        f"Groq model '{self.model}' has been decommissioned. "
                        f"Update GROQ_MODEL. Snippet: {last_snippet}"
                    )
                if resp.status_code >= 500 and attempt < self.max_attempts:
                    logger.warning("groq_retrying", status=resp.status_code, attempt=attempt)
                    await asyncio.sleep(self.backoff_seconds * attempt)
                    continue
                raise UpstreamError(f"Groq {resp.status_code} {last_snippet}")

            try:
                data = resp.json()
                content = data["choices"][0]["message"]["content"]
            except (ValueError, KeyError, IndexError, TypeError) as e:
                raise UpstreamError(f"Groq returned an unexpected body: {_snippet(resp.text)}") from e
            if not isinstance(content, str) or not content.strip():
                raise UpstreamError("Groq returned empty content")
            return content.strip()

        raise UpstreamError(f"Groq failed after retries: {last_snippet}")

    async def expand_to_blog(
        self, *, source_title: str, source_url: str, summary_text: str
    ) -> GeneratedArticle:
        """Ask the model for {title, hook, html} and validate the answer."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": EXPAND_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": EXPAND_USER_PROMPT.format(
                        source_title=source_title,
                        source_url=source_url,
                        summary_text=summary_text,
                    ),
                },
            ],
            "temperature": 0.3,
        }

        parsed = parse_model_json(await self._complete(payload))

        title = first_non_empty(parsed.get("title"), parsed.get("headline"), source_title)
        title = title[:MAX_TITLE_CHARS]
        hook = first_non_empty(parsed.get("hook"), parsed.get("description"), parsed.get("preview"))
        html = first_non_empty(parsed.get("html"), parsed.get("body"), parsed.get("content"))

        if not title:
            raise ValidationError("Groq JSON missing title")
        if not hook:
            raise ValidationError("Groq JSON missing hook")
        if not html:
            raise ValidationError("Groq JSON missing html")

        logger.info("groq_article_generated", model=self.model, title=title, html_chars=len(html))
        return GeneratedArticle(title=title, hook=hook, html=html)
