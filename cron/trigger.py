"""
Daily cron job entry point.

Runs as a separate scheduled service, e.g. schedule: 30 3 * * * (09:00 IST).
The daily guard makes extra firings on the same IST day harmless.

Failures are logged and never raised; the exit code only tells the scheduler
whether the run published/skipped (0) or failed (1).
"""

from __future__ import annotations

import asyncio
import sys

from autopublisher.core.config import get_settings
from autopublisher.core.exceptions import ConfigError
from autopublisher.core.logging import get_logger, setup_logging
from autopublisher.models.state_store import get_state_store
from autopublisher.pipeline.coordinator import PublishCoordinator
from autopublisher.pipeline.graph import PipelineServices, PublishPipeline

setup_logging()
logger = get_logger("cron")
settings = get_settings()


async def main() -> int:
    """Run the daily-guarded publish once."""
    logger.info("cron_triggered", tz_offset_minutes=settings.publish_tz_offset_minutes)

    try:
        services = PipelineServices.from_settings(settings)
    except ConfigError as e:
        logger.error("cron_failed", error=str(e))
        return 1

    store = get_state_store()
    coordinator = PublishCoordinator(
        store,
        PublishPipeline(services),
        tz_offset_minutes=settings.publish_tz_offset_minutes,
    )
    try:
        outcome = await coordinator.run_scheduled()
    finally:
        # pooled Postgres connections would keep the process alive
        await store.close()
    if outcome is None:
        return 1

    if outcome["skipped"]:
        logger.info("cron_completed", skipped=True, date=outcome["date"])
    else:
        result = outcome["result"]
        logger.info(
            "cron_completed",
            skipped=False,
            date=outcome["date"],
            source_url=result.source_url,
            post_id=result.wordpress_post.id if result.wordpress_post else None,
        )
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
