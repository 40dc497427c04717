"""
Pydantic v2 schemas for the persisted publish state and API responses.

Python attributes are snake_case; JSON uses camelCase aliases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Publish records ─────────────────────────────────────────
class WordPressPost(CamelModel):
    id: int | str | None = None
    link: str | None = None
    status: str | None = None


class PublishResult(CamelModel):
    published: bool
    source_url: str
    source_title: str
    generated_title: str
    generated_hook: str
    wordpress_post: WordPressPost | None = None


class PublishOutcome(CamelModel):
    """What the last attempt did. Overwritten by every attempt."""

    ok: bool
    reason: str
    completed_at: datetime
    result: PublishResult | None = None
    error: str | None = None


class PublishState(CamelModel):
    last_published_date_ist: str | None = Field(default=None, alias="lastPublishedDateIST")
    last_publish_result: PublishOutcome | None = None
    is_publishing: bool = False


# ── Requests ────────────────────────────────────────────────
class PublishRequest(BaseModel):
    """Body of POST /publish-hackernews. Wrongly-typed fields are ignored, not rejected."""

    url: str | None = None
    index: int | None = None
    publish: bool = True

    @field_validator("url", mode="before")
    @classmethod
    def _only_string_url(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("index", mode="before")
    @classmethod
    def _only_integer_index(cls, v: Any) -> int | None:
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return None

    @field_validator("publish", mode="before")
    @classmethod
    def _false_only_when_false(cls, v: Any) -> bool:
        return v is not False


# ── Responses ───────────────────────────────────────────────
class HealthResponse(CamelModel):
    ok: bool = True
    state: PublishState


class LinksResponse(BaseModel):
    ok: bool = True
    count: int
    articles: list[dict[str, str]]


class PublishResponse(CamelModel):
    ok: bool = True
    result: PublishResult


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
