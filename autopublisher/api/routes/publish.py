"""
Publishing endpoints.

GET  /publish-log         — last recorded attempt
GET  /hackernews-links    — harvest only, no state changes
POST /publish-hackernews  — full pipeline under the lock ({"publish": false} = preview)
POST /publish-reset       — force the publish state back to defaults
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from autopublisher.api.deps import AppSettings, Scraper, Services, StateStore
from autopublisher.core.logging import get_logger
from autopublisher.pipeline.coordinator import PublishCoordinator
from autopublisher.pipeline.graph import PublishPipeline
from autopublisher.pipeline.selector import fetch_article_links
from autopublisher.schemas.schemas import (
    LinksResponse,
    MessageResponse,
    PublishRequest,
    PublishResponse,
)

router = APIRouter(tags=["publish"])
logger = get_logger(__name__)


@router.get("/publish-log")
async def publish_log(store: StateStore) -> dict[str, Any]:
    state = await store.get()
    if state.last_publish_result is None:
        return {"ok": True, "message": "No publish recorded yet"}
    return {
        "ok": True,
        "lastPublishResult": state.last_publish_result.model_dump(mode="json", by_alias=True),
    }


@router.get("/hackernews-links", response_model=LinksResponse)
async def hackernews_links(scraper: Scraper, settings: AppSettings) -> LinksResponse:
    articles = await fetch_article_links(scraper, settings.links_endpoint_limit)
    return LinksResponse(count=len(articles), articles=[dict(a) for a in articles])


async def _read_publish_request(request: Request) -> PublishRequest:
    """Unparsable or non-object bodies count as an empty request."""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    return PublishRequest.model_validate(body if isinstance(body, dict) else {})


@router.post("/publish-hackernews", response_model=PublishResponse)
async def publish_hackernews(
    request: Request,
    store: StateStore,
    services: Services,
    settings: AppSettings,
) -> PublishResponse:
    body = await _read_publish_request(request)
    coordinator = PublishCoordinator(
        store,
        PublishPipeline(services),
        tz_offset_minutes=settings.publish_tz_offset_minutes,
    )
    result = await coordinator.publish(url=body.url, index=body.index, publish=body.publish)
    return PublishResponse(result=result)


@router.post("/publish-reset", response_model=MessageResponse)
async def publish_reset(store: StateStore) -> MessageResponse:
    await PublishCoordinator(store).reset()
    return MessageResponse(message="Publish state reset")
