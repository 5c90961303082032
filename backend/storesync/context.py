"""Per-invocation wiring of engine, store, runner and scheduler.

Each entry point (API process, Celery task, script) builds its own
context; nothing here is a module-level singleton.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from storesync.config import Settings, get_settings
from storesync.models.base import build_engine, build_session_factory
from storesync.services.job_runner import FetcherFactory, JobRunner
from storesync.services.queue import InProcessJobQueue, JobQueue
from storesync.services.scheduler import CrawlScheduler
from storesync.store.sql import SqlAlchemyCatalogStore


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    store: SqlAlchemyCatalogStore

    def runner(
        self,
        fetcher_factory: FetcherFactory | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> JobRunner:
        return JobRunner(self.store, self.settings, fetcher_factory=fetcher_factory, sleep=sleep)

    def scheduler(self, queue: JobQueue | None = None, runner: JobRunner | None = None) -> CrawlScheduler:
        """Scheduler over the given queue; defaults to an in-process queue running jobs here."""
        if queue is None:
            queue = InProcessJobQueue(self.settings.max_concurrent_jobs)
            runner = runner or self.runner()
        return CrawlScheduler(self.store, queue, self.settings, runner=runner)

    async def aclose(self) -> None:
        await self.engine.dispose()


def build_context(settings: Settings | None = None) -> AppContext:
    settings = settings or get_settings()
    engine = build_engine(settings.database_url, echo=settings.debug)
    session_factory = build_session_factory(engine)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=SqlAlchemyCatalogStore(session_factory),
    )
