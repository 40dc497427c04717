"""
Link aggregator — mine canonical article links out of heterogeneous scrape output.

Firecrawl does not populate the same fields on every call, so one page fetch is
mined through several independent passes (explicit links, metadata, HTML anchors,
markdown links, bare URLs in html/markdown/text). Every pass feeds the same
LinkAggregator, which canonicalises, filters and deduplicates.

The regex extractors are best-effort and live only in this module.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from html import unescape
from typing import Any
from urllib.parse import urljoin, urlsplit, urlunsplit

from autopublisher.pipeline.normalize import first_non_empty, resolve_field
from autopublisher.pipeline.state import CanonicalLink, NormalizedDocument

SITE_ROOT = "https://thehackernews.com/"
SITE_DOMAIN = "thehackernews.com"
DEFAULT_ARTICLE_TITLE = "The Hacker News Article"

URL_ALIASES = ("url", "href", "link", "permalink", "sourceURL")
TITLE_ALIASES = ("title", "text", "name", "heading", "label", "description")

_URL_TOKEN_RE = re.compile(r"https?://[^\s\"'()]+", re.IGNORECASE)
_DATED_PATH_RE = re.compile(r"\d{4}/\d{2}/")
_EXTENSION_RE = re.compile(r"\.[a-z]+$", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[-_]+")
_WORD_START_RE = re.compile(r"\b\w")

_ANCHOR_RE = re.compile(
    r"<a\b[^>]*?\bhref\s*=\s*[\"']([^\"']+)[\"'][^>]*>(.*?)</a>", re.IGNORECASE | re.DOTALL
)
_TAG_RE = re.compile(r"<[^>]+>")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BARE_SITE_URL_RE = re.compile(r"https?://(?:www\.)?thehackernews\.com/[^\s\"'()]+", re.IGNORECASE)


# ═══════════════════════════════════════════════════════════════
# URL canonicalisation
# ═══════════════════════════════════════════════════════════════
def _belongs_to_site(host: str) -> bool:
    host = host.lower()
    return host == SITE_DOMAIN or host.endswith("." + SITE_DOMAIN)


def resolve_article_url(raw_url: Any) -> str | None:
    """
    Turn a raw href/prose fragment into an absolute URL, or None.

    Picks the first http(s) token out of surrounding text, cuts everything after
    the first ".html" (query, fragment, trailing words) and resolves relative
    paths against the site root.
    """
    if not isinstance(raw_url, str) or not raw_url.strip():
        return None
    working = raw_url.strip()

    match = _URL_TOKEN_RE.search(working)
    if match:
        working = match.group(0)

    html_index = working.lower().find(".html")
    if html_index == -1:
        return None
    working = working[: html_index + len(".html")]

    try:
        parts = urlsplit(urljoin(SITE_ROOT, working))
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    if not parts.path.lower().endswith(".html"):
        return None

    scheme = "https" if _belongs_to_site(parts.hostname) else parts.scheme
    return urlunsplit((scheme, parts.netloc.lower(), parts.path, parts.query, ""))


def is_article_url(url: str) -> bool:
    """Target-domain URL whose path carries the YYYY/MM/ permalink signature."""
    parts = urlsplit(url)
    if not parts.hostname or not _belongs_to_site(parts.hostname):
        return False
    return bool(_DATED_PATH_RE.search(parts.path.lower()))


def canonicalize_article_url(raw_url: Any) -> str | None:
    absolute = resolve_article_url(raw_url)
    if absolute is None or not is_article_url(absolute):
        return None
    return absolute


def derive_title_from_url(url: str, fallback: str = "Article") -> str:
    """'/2024/05/new-zero_day.html' -> 'New Zero Day'."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return fallback
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return fallback
    words = _SEPARATOR_RE.sub(" ", _EXTENSION_RE.sub("", segments[-1])).strip()
    if not words:
        return fallback
    return _WORD_START_RE.sub(lambda m: m.group(0).upper(), words)


# ═══════════════════════════════════════════════════════════════
# Candidate expansion
# ═══════════════════════════════════════════════════════════════
def _candidate_from_mapping(item: Mapping[str, Any]) -> dict[str, str]:
    return {
        "url": resolve_field((item,), URL_ALIASES),
        "title": resolve_field((item,), TITLE_ALIASES),
    }


def expand_link_candidates(value: Any) -> list[dict[str, str]]:
    """
    Generic walker for shapes nothing else recognises.

    Flattens nested dicts/lists depth-first; every string becomes a URL candidate
    and every mapping with a URL or title alias becomes a titled candidate before
    its children are visited. Containers are visited once.
    """
    results: list[dict[str, str]] = []
    visited: set[int] = set()

    def visit(node: Any) -> None:
        if not node:
            return
        if isinstance(node, str):
            results.append({"url": node, "title": ""})
            return
        if not isinstance(node, (Mapping, list, tuple)):
            return
        if id(node) in visited:
            return
        visited.add(id(node))

        if isinstance(node, Mapping):
            candidate = _candidate_from_mapping(node)
            if candidate["url"] or candidate["title"]:
                results.append(candidate)
            children = node.values()
        else:
            children = node
        for child in children:
            visit(child)

    visit(value)
    return results


def _iter_candidates(items: Any) -> Iterable[dict[str, str]]:
    if not items:
        return
    if isinstance(items, str):
        yield {"url": items, "title": ""}
        return
    if not isinstance(items, (list, tuple)):
        yield from expand_link_candidates(items)
        return
    for item in items:
        if isinstance(item, str):
            yield {"url": item, "title": ""}
        elif isinstance(item, Mapping) and resolve_field((item,), URL_ALIASES):
            yield _candidate_from_mapping(item)
        elif item:
            yield from expand_link_candidates(item)


def normalize_links(items: Any) -> list[CanonicalLink]:
    """Canonicalise, filter and deduplicate any link-bearing input."""
    links: list[CanonicalLink] = []
    seen: set[str] = set()

    for candidate in _iter_candidates(items):
        url = canonicalize_article_url(candidate["url"])
        if url is None or url in seen:
            continue
        seen.add(url)
        title = candidate["title"].strip() or derive_title_from_url(url, DEFAULT_ARTICLE_TITLE)
        links.append(CanonicalLink(title=title, url=url))
    return links


class LinkAggregator:
    """Accumulates links across passes; first-seen order and title win."""

    def __init__(self, normalize_fn: Callable[[Any], list[CanonicalLink]] = normalize_links) -> None:
        self._normalize = normalize_fn
        self._seen: set[str] = set()
        self._links: list[CanonicalLink] = []

    def add(self, items: Any) -> None:
        for link in self._normalize(items):
            if link["url"] in self._seen:
                continue
            self._seen.add(link["url"])
            self._links.append(link)

    def all(self) -> list[CanonicalLink]:
        return list(self._links)

    def __len__(self) -> int:
        return len(self._links)


# ═══════════════════════════════════════════════════════════════
# Extraction passes
# ═══════════════════════════════════════════════════════════════
def extract_html_anchors(html: Any) -> list[dict[str, str]]:
    if not isinstance(html, str) or not html.strip():
        return []
    return [
        {"url": unescape(href).strip(), "title": unescape(_TAG_RE.sub("", text)).strip()}
        for href, text in _ANCHOR_RE.findall(html)
    ]


def extract_markdown_links(markdown: Any, base_url: str | None = SITE_ROOT) -> list[dict[str, str]]:
    if not isinstance(markdown, str) or not markdown.strip():
        return []
    links = []
    for text, href in _MARKDOWN_LINK_RE.findall(markdown):
        text, href = text.strip(), href.strip()
        if not text or not href:
            continue
        if base_url:
            try:
                href = urljoin(base_url, href)
            except ValueError:
                # malformed href such as an unterminated IPv6 host
                continue
        links.append({"title": text, "url": href})
    return links


def extract_bare_urls(text: Any) -> list[dict[str, str]]:
    if not isinstance(text, str) or not text.strip():
        return []
    return [{"url": match} for match in _BARE_SITE_URL_RE.findall(text)]


def harvest_document(document: NormalizedDocument, aggregator: LinkAggregator) -> None:
    """Run every extraction pass over a normalized page and its raw sub-documents."""
    markdown = first_non_empty(document["summary"], document["markdown"], document["raw_text"])
    html = document["html"]
    raw_text = first_non_empty(document["raw_text"], document["summary"])

    aggregator.add(document["links"])
    aggregator.add(document["metadata"])
    aggregator.add(extract_html_anchors(html))
    aggregator.add(extract_markdown_links(markdown))
    aggregator.add(extract_bare_urls(html))
    aggregator.add(extract_bare_urls(markdown))
    aggregator.add(extract_bare_urls(raw_text))

    for doc in document["documents"]:
        if not isinstance(doc, Mapping):
            continue
        doc_markdown = first_non_empty(doc.get("summary"), doc.get("markdown"), doc.get("rawText"))
        doc_raw = first_non_empty(doc.get("rawText"), doc.get("summary"), doc.get("markdown"))
        aggregator.add(doc.get("links"))
        aggregator.add(doc.get("metadata"))
        aggregator.add(extract_html_anchors(doc.get("html")))
        aggregator.add(extract_bare_urls(doc_raw))
        aggregator.add(extract_markdown_links(doc_markdown))
