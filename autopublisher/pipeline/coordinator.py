"""
Publish coordinator — single-flight lock and once-per-day guard over PublishState.

  Idle ──publish()──▶ Publishing ──(success | failure)──▶ Idle

The lock is released and the outcome recorded in a ``finally`` block, so no
exception path leaves ``is_publishing`` set. Only successful non-preview runs
move ``last_published_date_ist``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from autopublisher.core.exceptions import ConfigError, LockError
from autopublisher.core.logging import get_logger
from autopublisher.models.state_store import PublishStateStore
from autopublisher.schemas.schemas import PublishOutcome, PublishResult, PublishState

logger = get_logger(__name__)

IST_OFFSET_MINUTES = 330


class PipelineRunner(Protocol):
    def run(
        self, *, url: str | None = ..., index: int | None = ..., publish: bool = ...
    ) -> Awaitable[dict[str, Any]]: ...


def date_key(now: datetime, offset_minutes: int = IST_OFFSET_MINUTES) -> str:
    """Calendar date (YYYY-MM-DD) of ``now`` in the fixed-offset publishing timezone."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return (now.astimezone(UTC) + timedelta(minutes=offset_minutes)).date().isoformat()


class PublishCoordinator:
    def __init__(
        self,
        store: PublishStateStore,
        pipeline: PipelineRunner | None = None,
        *,
        tz_offset_minutes: int = IST_OFFSET_MINUTES,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.tz_offset_minutes = tz_offset_minutes
        self.clock = clock

    def today(self) -> str:
        return date_key(self.clock(), self.tz_offset_minutes)

    def _require_pipeline(self) -> None:
        if self.pipeline is None:
            raise ConfigError("PublishCoordinator has no pipeline configured")

    async def state(self) -> PublishState:
        return await self.store.get()

    async def reset(self) -> PublishState:
        state = await self.store.reset()
        logger.warning("publish_state_reset")
        return state

    async def publish(
        self,
        *,
        url: str | None = None,
        index: int | None = None,
        publish: bool = True,
        reason: str | None = None,
    ) -> PublishResult:
        """Run the pipeline under the lock. Raises LockError if a run is in flight."""
        self._require_pipeline()
        if not await self.store.try_acquire():
            raise LockError("Publish already in progress")
        return await self._run_locked(url=url, index=index, publish=publish, reason=reason)

    async def _run_locked(
        self,
        *,
        url: str | None,
        index: int | None,
        publish: bool,
        reason: str | None,
    ) -> PublishResult:
        reason = reason or ("manual" if publish else "preview")
        logger.info("publish_started", reason=reason, url=url, index=index, publish=publish)

        result: PublishResult | None = None
        error = "publish attempt interrupted"
        try:
            result = PublishResult.model_validate(
                await self.pipeline.run(url=url, index=index, publish=publish)
            )
            return result
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error("publish_failed", reason=reason, error=error)
            raise
        finally:
            now = self.clock()
            if result is not None:
                outcome = PublishOutcome(ok=True, reason=reason, completed_at=now, result=result)
                published_date = date_key(now, self.tz_offset_minutes) if publish else None
            else:
                outcome = PublishOutcome(ok=False, reason=reason, completed_at=now, error=error)
                published_date = None
            await self.store.release(outcome, published_date=published_date)
            if result is not None:
                logger.info(
                    "publish_completed",
                    reason=reason,
                    source_url=result.source_url,
                    published=result.published,
                    published_date=published_date,
                )

    async def run_daily(self, *, force: bool = False, reason: str = "cron") -> dict[str, Any]:
        """
        Publish at most once per calendar day.

        Skips without touching the lock when today's date is already recorded.
        """
        today = self.today()
        current = await self.store.get()
        if not force and current.last_published_date_ist == today:
            logger.info("daily_publish_skipped", date=today)
            return {"skipped": True, "date": today}

        self._require_pipeline()
        acquired = await self.store.try_acquire(unless_published_on=None if force else today)
        if not acquired:
            latest = await self.store.get()
            if not force and latest.last_published_date_ist == today:
                logger.info("daily_publish_skipped", date=today, raced=True)
                return {"skipped": True, "date": today}
            raise LockError("Publish already in progress")

        result = await self._run_locked(url=None, index=None, publish=True, reason=reason)
        return {"skipped": False, "date": today, "result": result}

    async def run_scheduled(self) -> dict[str, Any] | None:
        """Scheduled entry point: never raises, failures are only logged."""
        try:
            return await self.run_daily(force=False, reason="cron")
        except Exception as e:
            logger.error("scheduled_publish_failed", error=str(e), error_type=type(e).__name__)
            return None
