"""
Centralised configuration via Pydantic Settings.

Reads from .env in dev and from the host's environment variables in production.
Variable names match the field names upper-cased (FIRECRAWL_API_KEY, WP_SITE_URL, ...).
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autopublisher.core.exceptions import ConfigError

DEFAULT_GROQ_MODEL = "openai/gpt-oss-120b"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Application ─────────────────────────────────────────
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # ── Database (publish state) ────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./publish_state.db"

    @field_validator("database_url", mode="before")
    @classmethod
    def assemble_db_url(cls, v: str) -> str:
        """Hosted Postgres URLs come as postgres:// but SQLAlchemy needs postgresql+asyncpg://."""
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://"):
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # ── Scraping: Firecrawl ─────────────────────────────────
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev/v1"
    firecrawl_poll_timeout_seconds: float = 45.0
    firecrawl_poll_interval_seconds: float = 1.5

    # ── LLM: Groq ───────────────────────────────────────────
    groq_api_key: str = ""
    groq_model: str = DEFAULT_GROQ_MODEL
    groq_max_attempts: int = 3
    groq_backoff_seconds: float = 1.0

    @field_validator("groq_model", mode="before")
    @classmethod
    def default_blank_model(cls, v: str | None) -> str:
        if v is None or not str(v).strip():
            return DEFAULT_GROQ_MODEL
        return str(v).strip()

    # ── CMS: WordPress ──────────────────────────────────────
    wp_site_url: str = ""
    wp_user: str = ""
    wp_app_password: str = ""
    http_user_agent: str = DEFAULT_USER_AGENT

    # ── Publishing tunables ─────────────────────────────────
    publish_tz_offset_minutes: int = Field(
        default=330, description="Offset of the daily-guard calendar from UTC (IST)"
    )
    harvest_limit: int = 16
    links_endpoint_limit: int = 12
    shortlist_size: int = 4

    def require(self, *names: str) -> None:
        """Raise ConfigError for the first setting in ``names`` that is blank."""
        for name in names:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"Missing required environment variable {name.upper()}")


@lru_cache
def get_settings() -> Settings:
    return Settings()
