import uuid
from decimal import Decimal

import pytest

from storesync.config import Settings
from storesync.fetchers.base import FetchResult
from storesync.models import Base, CatalogEntry, Source, Tenant
from storesync.models.base import build_engine, build_session_factory
from storesync.models.enums import CatalogStatus, PlatformKind
from storesync.schemas.source import SourceConfig, SourceRead
from storesync.store.sql import SqlAlchemyCatalogStore


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        redis_url="redis://localhost:6379/15",
        default_delay_ms=1000,
        max_enrich_items=20,
    )


@pytest.fixture()
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def store(session_factory) -> SqlAlchemyCatalogStore:
    return SqlAlchemyCatalogStore(session_factory)


class Seeder:
    """Inserts rows directly so tests do not depend on the code under test."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, row):
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return row

    async def tenant(self, name: str = "Acme Vintage", slug: str = "acme-vintage") -> Tenant:
        return await self._add(Tenant(id=uuid.uuid4(), name=name, slug=slug))

    async def source(self, tenant: Tenant, **overrides) -> Source:
        fields = {
            "id": uuid.uuid4(),
            "tenant_id": tenant.id,
            "name": "Acme website",
            "platform": PlatformKind.WEBSITE.value,
            "url": "https://shop.example/catalog",
            "is_active": True,
            "crawl_frequency_minutes": 60,
            "config": {},
        }
        fields.update(overrides)
        return await self._add(Source(**fields))

    async def entry(self, tenant: Tenant, **overrides) -> CatalogEntry:
        fields = {
            "id": uuid.uuid4(),
            "tenant_id": tenant.id,
            "sku": f"MAN-{uuid.uuid4().hex[:8]}",
            "title": "Vintage Widget",
            "price": Decimal("10.00"),
            "quantity": 1,
            "status": CatalogStatus.ACTIVE.value,
            "source_url": "https://shop.example/p/widget",
        }
        fields.update(overrides)
        return await self._add(CatalogEntry(**fields))

    async def get(self, model, row_id):
        async with self.session_factory() as session:
            return await session.get(model, row_id)


@pytest.fixture()
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


class StubFetcher:
    """PageFetcher that serves canned responses by URL.

    A value may be markup (served as HTTP 200), a bare status code, a
    FetchResult, or an exception to raise. Unknown URLs are 404s.
    """

    def __init__(self, pages: dict | None = None, login_ok: bool = True):
        self.pages = pages or {}
        self.login_ok = login_ok
        self.requested: list[str] = []
        self.logins = []
        self.closed = False

    async def fetch(self, url, options=None) -> FetchResult:
        self.requested.append(url)
        response = self.pages.get(url, 404)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, FetchResult):
            return response
        if isinstance(response, int):
            return FetchResult(status=response, html="", url=url)
        return FetchResult(status=200, html=response, url=url)

    async def authenticate(self, auth, options=None) -> bool:
        self.logins.append(auth)
        return self.login_ok

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def sleep() -> SleepRecorder:
    return SleepRecorder()


def make_source(
    platform: PlatformKind = PlatformKind.WEBSITE,
    url: str = "https://shop.example/catalog",
    config: SourceConfig | None = None,
    **overrides,
) -> SourceRead:
    """An in-memory source for crawls that never touch the database."""
    fields = {
        "id": uuid.uuid4(),
        "tenant_id": uuid.uuid4(),
        "name": "Test source",
        "platform": platform,
        "url": url,
        "config": config or SourceConfig(),
    }
    fields.update(overrides)
    return SourceRead(**fields)
