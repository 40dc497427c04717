"""
Typed records flowing through the harvesting and publish pipeline.

Raw upstream payloads stay plain dicts; everything the pipeline produces is one of
the TypedDicts below so nodes can pass them around without extra conversion.
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict


class CanonicalLink(TypedDict):
    title: str
    url: str  # absolute https:// article permalink, dedup key


class NormalizedDocument(TypedDict):
    summary: str
    markdown: str
    html: str
    title: str
    description: str
    raw_text: str
    metadata: Any  # first truthy metadata object, or None
    links: list[Any]  # raw upstream link items
    documents: list[dict[str, Any]]  # every sub-record found, for link mining


class GeneratedArticle(TypedDict):
    title: str
    hook: str
    html: str


class PublishPipelineState(TypedDict):
    """State for one publish attempt through the LangGraph pipeline."""

    # ── Request ─────────────────────────────────────────────
    url: str | None
    index: int | None
    publish: bool

    # ── Intermediate results ────────────────────────────────
    selected: NotRequired[CanonicalLink]
    summary_text: NotRequired[str]
    source_title: NotRequired[str]
    article: NotRequired[GeneratedArticle]
    post: NotRequired[dict[str, Any] | None]

    # ── Output ──────────────────────────────────────────────
    result: NotRequired[dict[str, Any]]


def empty_document() -> NormalizedDocument:
    return NormalizedDocument(
        summary="",
        markdown="",
        html="",
        title="",
        description="",
        raw_text="",
        metadata=None,
        links=[],
        documents=[],
    )
