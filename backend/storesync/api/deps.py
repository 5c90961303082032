"""FastAPI dependencies wired from the application context."""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storesync.context import AppContext
from storesync.services.scheduler import CrawlScheduler
from storesync.store.base import CatalogStore


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_db(ctx: AppContext = Depends(get_context)) -> AsyncGenerator[AsyncSession, None]:
    async with ctx.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_store(ctx: AppContext = Depends(get_context)) -> CatalogStore:
    return ctx.store


def get_scheduler(ctx: AppContext = Depends(get_context)) -> CrawlScheduler:
    """Scheduler that hands jobs to the Celery workers."""
    from storesync.tasks.crawl_tasks import CeleryJobQueue

    return ctx.scheduler(queue=CeleryJobQueue.from_settings(ctx.settings))
