"""
Shared FastAPI dependencies for the route modules.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from autopublisher.core.config import Settings, get_settings
from autopublisher.models.state_store import PublishStateStore, get_state_store
from autopublisher.pipeline.graph import PipelineServices
from autopublisher.services.firecrawl_service import FirecrawlService


def get_pipeline_services(settings: Annotated[Settings, Depends(get_settings)]) -> PipelineServices:
    return PipelineServices.from_settings(settings)


def get_scraper(settings: Annotated[Settings, Depends(get_settings)]) -> FirecrawlService:
    return FirecrawlService(settings)


AppSettings = Annotated[Settings, Depends(get_settings)]
StateStore = Annotated[PublishStateStore, Depends(get_state_store)]
Services = Annotated[PipelineServices, Depends(get_pipeline_services)]
Scraper = Annotated[FirecrawlService, Depends(get_scraper)]
