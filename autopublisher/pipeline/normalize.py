"""
Normalization engine — reduce any Firecrawl response to one NormalizedDocument.

Firecrawl answers in different shapes depending on the operation (scrape, crawl
start, crawl poll) and API version: an array of documents under one of several
keys, a single document, or the document fields at the top level. No field is
trusted under a single key name; every value is resolved from an ordered alias
list with ``resolve_field``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Literal

from autopublisher.pipeline.state import NormalizedDocument, empty_document

DOCUMENT_LIST_KEYS = ("data", "documents", "results", "items", "records")
SINGLE_DOCUMENT_KEYS = ("document",)

SUMMARY_ALIASES = ("summary",)
MARKDOWN_ALIASES = ("markdown",)
HTML_ALIASES = ("html",)
TITLE_ALIASES = ("title",)
DESCRIPTION_ALIASES = ("description",)
RAW_TEXT_ALIASES = ("rawText", "raw_text", "raw", "content", "text")

PayloadShape = Literal["document_list", "single_document", "bare", "empty"]


# ═══════════════════════════════════════════════════════════════
# Alias resolution
# ═══════════════════════════════════════════════════════════════
def first_non_empty(*values: Any) -> str:
    """Return the first value that is a non-blank string, stripped; "" if none."""
    for value in values:
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if trimmed:
            return trimmed
    return ""


def resolve_field(sources: Iterable[Any], aliases: Iterable[str]) -> str:
    """
    Resolve one logical field from an ordered list of records.

    Every alias of the first record is tried before moving on to the next record.
    Non-mapping sources are ignored.
    """
    aliases = tuple(aliases)
    for source in sources:
        if not isinstance(source, Mapping):
            continue
        value = first_non_empty(*(source.get(alias) for alias in aliases))
        if value:
            return value
    return ""


# ═══════════════════════════════════════════════════════════════
# Payload shapes
# ═══════════════════════════════════════════════════════════════
def classify_payload(payload: Any) -> PayloadShape:
    if not isinstance(payload, Mapping):
        return "empty"
    for key in DOCUMENT_LIST_KEYS:
        if isinstance(payload.get(key), list):
            return "document_list"
    for key in (*DOCUMENT_LIST_KEYS, *SINGLE_DOCUMENT_KEYS):
        if isinstance(payload.get(key), Mapping):
            return "single_document"
    return "bare"


def collect_documents(payload: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Gather sub-documents in key priority order; the payload itself if none."""
    documents: list[dict[str, Any]] = []
    seen: set[int] = set()

    def add(doc: Any) -> None:
        if not isinstance(doc, Mapping) or id(doc) in seen:
            return
        seen.add(id(doc))
        documents.append(doc)

    for key in DOCUMENT_LIST_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            for doc in value:
                add(doc)
        else:
            add(value)

    for key in SINGLE_DOCUMENT_KEYS:
        add(payload.get(key))

    if not documents:
        add(payload)
    return documents


def normalize_payload(payload: Any) -> NormalizedDocument:
    """Convert an arbitrary scrape response into a NormalizedDocument. Never raises."""
    if not isinstance(payload, Mapping):
        return empty_document()

    documents = collect_documents(payload)
    primary = documents[0] if documents else {}
    sources = (primary, payload)

    links: list[Any] = []
    for source in sources:
        if isinstance(source.get("links"), list):
            links = source["links"]
            break

    return NormalizedDocument(
        summary=resolve_field(sources, SUMMARY_ALIASES),
        markdown=resolve_field(sources, MARKDOWN_ALIASES),
        html=resolve_field(sources, HTML_ALIASES),
        title=resolve_field(sources, TITLE_ALIASES),
        description=resolve_field(sources, DESCRIPTION_ALIASES),
        raw_text=resolve_field(sources, RAW_TEXT_ALIASES),
        metadata=primary.get("metadata") or payload.get("metadata") or None,
        links=links,
        documents=documents,
    )


def has_content(document: NormalizedDocument) -> bool:
    """True when the document carries anything worth harvesting."""
    return bool(
        document["summary"] or document["links"] or document["html"] or document["raw_text"]
    )
