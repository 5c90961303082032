"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import redis
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from sqlalchemy import text

from storesync.api.deps import get_context
from storesync.api.v1 import router as api_v1_router
from storesync.config import get_settings
from storesync.context import AppContext, build_context
from storesync.models.base import Base
from storesync.scrapers.types import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting %s...", settings.app_name)
    ctx = build_context(settings)
    async with ctx.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified")
    app.state.context = ctx
    yield
    logger.info("Shutting down...")
    await ctx.aclose()


app = FastAPI(
    title=settings.app_name,
    description="Keeps tenant catalogs in sync with their external storefronts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


@app.get("/health/detailed")
async def detailed_health_check(ctx: AppContext = Depends(get_context)):
    checks = {}

    # Database
    try:
        async with ctx.session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            checks["database"] = {"ok": True}
    except Exception as e:
        checks["database"] = {"ok": False, "message": str(e)}

    # Redis
    try:
        r = redis.from_url(ctx.settings.redis_url, socket_timeout=5)
        r.ping()
        checks["redis"] = {"ok": True}
    except Exception as e:
        checks["redis"] = {"ok": False, "message": str(e)}

    # Crawl backlog
    try:
        now = utcnow()
        sources = await ctx.store.list_sources(active_only=True)
        checks["sources"] = {
            "ok": True,
            "active": len(sources),
            "due": sum(1 for s in sources if s.is_due(now)),
            "failing": [s.name for s in sources if s.last_error],
        }
    except Exception as e:
        checks["sources"] = {"ok": False, "message": str(e)}

    all_ok = all(check.get("ok", False) for check in checks.values())
    status = "healthy" if all_ok else "degraded"

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "checks": checks,
    }
