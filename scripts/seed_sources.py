"""Seed tenants and their storefront sources from a JSON file.

The file holds a list of tenants, each with its sources:

    {"tenants": [{"name": "Acme Vintage", "slug": "acme",
                  "sources": [{"name": "Acme eBay", "platform": "ebay_store",
                               "url": "https://www.ebay.com/str/acmevintage"}]}]}

Tenants are matched by slug and sources by (tenant, url); existing rows
are left alone, so the script can be re-run after adding entries.

Usage:
    python scripts/seed_sources.py scripts/sources.example.json
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy import select

from storesync.context import build_context
from storesync.models import Base, Source, Tenant
from storesync.schemas.source import SourceBase


async def seed(path: Path) -> None:
    data = json.loads(path.read_text())
    ctx = build_context()
    try:
        async with ctx.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        tenants_created = 0
        sources_created = 0

        async with ctx.session_factory() as db:
            for tenant_data in data.get("tenants", []):
                result = await db.execute(select(Tenant).where(Tenant.slug == tenant_data["slug"]))
                tenant = result.scalar_one_or_none()
                if not tenant:
                    tenant = Tenant(name=tenant_data["name"], slug=tenant_data["slug"])
                    db.add(tenant)
                    await db.flush()
                    tenants_created += 1
                    print(f"  Created tenant: {tenant.name}")

                for src in tenant_data.get("sources", []):
                    try:
                        definition = SourceBase.model_validate(src)
                    except ValidationError as e:
                        print(f"  WARNING: invalid source {src.get('name')!r} for {tenant.slug}: {e}")
                        continue

                    existing = await db.execute(
                        select(Source).where(Source.tenant_id == tenant.id, Source.url == definition.url)
                    )
                    if existing.scalar_one_or_none():
                        print(f"  Skipped: {tenant.slug} already has {definition.url}")
                        continue

                    db.add(
                        Source(
                            tenant_id=tenant.id,
                            name=definition.name,
                            platform=definition.platform.value,
                            url=definition.url,
                            is_active=definition.is_active,
                            crawl_frequency_minutes=definition.crawl_frequency_minutes,
                            selectors=definition.selectors.model_dump(exclude_none=True) if definition.selectors else None,
                            config=definition.config.model_dump(exclude_defaults=True),
                        )
                    )
                    sources_created += 1
                    print(f"  Added: {tenant.slug} -> {definition.platform.value} {definition.url}")

            await db.commit()

        print(f"\nDone: {tenants_created} tenants created, {sources_created} sources created")
    finally:
        await ctx.aclose()


def main():
    parser = argparse.ArgumentParser(description="Seed tenants and sources from JSON")
    parser.add_argument("path", type=Path, help="JSON file with a top-level 'tenants' list")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed(args.path))


if __name__ == "__main__":
    main()
