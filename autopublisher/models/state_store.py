"""
Publish state store — the single owner of the shared PublishState row.

Every mutation is one SQL statement. Lock acquisition is a conditional UPDATE
(compare-and-swap on ``is_publishing``), so two concurrent callers can never both
observe the lock as free.
"""

from __future__ import annotations

from datetime import UTC, datetime
from functools import lru_cache

import pydantic
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from autopublisher.core.config import get_settings
from autopublisher.core.logging import get_logger
from autopublisher.models.database import make_engine
from autopublisher.models.models import STATE_KEY, Base, PublishStateRecord
from autopublisher.schemas.schemas import PublishOutcome, PublishState

logger = get_logger(__name__)


class PublishStateStore:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._ready = False

    async def _ensure_ready(self) -> None:
        """Create the table and the initial row on first access."""
        if self._ready:
            return
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with self._sessions() as session:
            if await session.get(PublishStateRecord, STATE_KEY) is None:
                session.add(PublishStateRecord(id=STATE_KEY, is_publishing=False))
                try:
                    await session.commit()
                except IntegrityError:
                    # another process created it first
                    await session.rollback()
        self._ready = True

    async def _execute_update(self, stmt) -> int:
        await self._ensure_ready()
        async with self._sessions() as session:
            result = await session.execute(stmt.execution_options(synchronize_session=False))
            await session.commit()
        return result.rowcount

    @staticmethod
    def _to_state(record: PublishStateRecord | None) -> PublishState:
        if record is None:
            return PublishState()
        outcome = None
        if record.last_publish_result:
            try:
                outcome = PublishOutcome.model_validate(record.last_publish_result)
            except pydantic.ValidationError as e:
                logger.warning("publish_state_result_unreadable", error=str(e))
        return PublishState(
            last_published_date_ist=record.last_published_date_ist,
            last_publish_result=outcome,
            is_publishing=bool(record.is_publishing),
        )

    async def get(self) -> PublishState:
        await self._ensure_ready()
        async with self._sessions() as session:
            record = await session.get(PublishStateRecord, STATE_KEY)
            return self._to_state(record)

    async def try_acquire(self, *, unless_published_on: str | None = None) -> bool:
        """
        Flip ``is_publishing`` false → true atomically. Returns False if it was taken.

        With ``unless_published_on`` the swap also fails when that date is already
        recorded as published, which makes the daily guard race-free.
        """
        stmt = (
            update(PublishStateRecord)
            .where(
                PublishStateRecord.id == STATE_KEY,
                PublishStateRecord.is_publishing.is_(False),
            )
            .values(is_publishing=True, updated_at=datetime.now(UTC))
        )
        if unless_published_on is not None:
            stmt = stmt.where(
                or_(
                    PublishStateRecord.last_published_date_ist.is_(None),
                    PublishStateRecord.last_published_date_ist != unless_published_on,
                )
            )
        return await self._execute_update(stmt) == 1

    async def release(self, outcome: PublishOutcome, *, published_date: str | None = None) -> None:
        """Clear the lock and record the attempt's outcome (and date, on real publishes)."""
        values: dict = {
            "is_publishing": False,
            "last_publish_result": outcome.model_dump(mode="json", by_alias=True),
            "updated_at": datetime.now(UTC),
        }
        if published_date is not None:
            values["last_published_date_ist"] = published_date
        stmt = update(PublishStateRecord).where(PublishStateRecord.id == STATE_KEY).values(**values)
        await self._execute_update(stmt)

    async def reset(self) -> PublishState:
        stmt = (
            update(PublishStateRecord)
            .where(PublishStateRecord.id == STATE_KEY)
            .values(
                is_publishing=False,
                last_publish_result=None,
                last_published_date_ist=None,
                updated_at=datetime.now(UTC),
            )
        )
        await self._execute_update(stmt)
        return PublishState()

    async def close(self) -> None:
        """Dispose of pooled connections; short-lived scripts must call this before exiting."""
        await self._engine.dispose()


@lru_cache
def get_state_store() -> PublishStateStore:
    return PublishStateStore(make_engine(get_settings().database_url))
