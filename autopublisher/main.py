"""
FastAPI application entry point.

Configures middleware, lifespan events, error mapping and mounts the routers.
Run locally: uvicorn autopublisher.main:app --reload
Production:  gunicorn autopublisher.main:app -w 2 -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autopublisher.api.routes import health, publish
from autopublisher.core.config import get_settings
from autopublisher.core.exceptions import AutopublisherError
from autopublisher.core.logging import get_logger, setup_logging
from autopublisher.models.state_store import get_state_store
from autopublisher.schemas.schemas import ErrorResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown events."""
    setup_logging()
    logger.info("app_starting", environment=settings.app_env, groq_model=settings.groq_model)
    yield
    await get_state_store().close()
    logger.info("app_shutting_down")


app = FastAPI(
    title="Hacker News Autopublisher",
    description="Daily pipeline: harvest The Hacker News, expand with an LLM, publish to WordPress",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.app_env != "production" else None,
    redoc_url="/redoc" if settings.app_env != "production" else None,
)

# ── Middleware ──────────────────────────────────────────────
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ──────────────────────────────────────────
@app.exception_handler(AutopublisherError)
async def autopublisher_error_handler(request: Request, exc: AutopublisherError) -> JSONResponse:
    logger.error(
        "request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_crashed", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=str(exc) or type(exc).__name__).model_dump(),
    )


# ── Routes ─────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(publish.router)


@app.get("/")
async def root():
    return {
        "ok": True,
        "service": "Hacker News Autopublisher",
        "version": "0.1.0",
        "health": "/healthz",
    }
