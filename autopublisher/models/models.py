"""
SQLAlchemy 2.0 ORM models.

A single entity: the process-wide publish state, stored as one row keyed "global".
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

STATE_KEY = "global"


class Base(DeclarativeBase):
    pass


class PublishStateRecord(Base):
    __tablename__ = "publish_state"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    last_published_date_ist: Mapped[str | None] = mapped_column(String(10), nullable=True)
    last_publish_result: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    is_publishing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
