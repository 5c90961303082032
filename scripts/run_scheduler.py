"""Run the crawl scheduler in-process, without Celery.

Ticks every STORESYNC_TICK_INTERVAL_SECONDS and runs due jobs in this
process, at most STORESYNC_MAX_CONCURRENT_JOBS at a time.

Usage:
    python scripts/run_scheduler.py
"""

import asyncio
import logging

from storesync.context import build_context
from storesync.models import Base

logger = logging.getLogger(__name__)


async def run() -> None:
    ctx = build_context()
    async with ctx.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scheduler = ctx.scheduler()
    logger.info(
        f"Scheduler started: tick every {ctx.settings.tick_interval_seconds}s, "
        f"{ctx.settings.max_concurrent_jobs} concurrent jobs"
    )
    try:
        await scheduler.run_forever()
    finally:
        await scheduler.drain()
        await ctx.aclose()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
