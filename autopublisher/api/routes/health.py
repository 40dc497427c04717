"""Health check — also the operator's view of the current publish state."""

from __future__ import annotations

from fastapi import APIRouter

from autopublisher.api.deps import StateStore
from autopublisher.schemas.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def health_check(store: StateStore) -> HealthResponse:
    return HealthResponse(state=await store.get())
