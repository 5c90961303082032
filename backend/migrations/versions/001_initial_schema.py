"""Initial schema: tenants, sources, catalog_entries, price_history, job_runs.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Tenants
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("total_items", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    # Sources
    op.create_table(
        "sources",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("crawl_frequency_minutes", sa.Integer, nullable=False, server_default=sa.text("60")),
        sa.Column("selectors", JSONType, nullable=True),
        sa.Column("config", JSONType, nullable=True),
        sa.Column("last_crawled_at", sa.DateTime(timezone=True)),
        sa.Column("last_item_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_sources_tenant_id", "sources", ["tenant_id"])
    op.create_index("ix_sources_platform", "sources", ["platform"])
    op.create_index("idx_source_active_platform", "sources", ["is_active", "platform"])
    op.create_index("idx_source_due", "sources", ["is_active", "last_crawled_at", "crawl_frequency_minutes"])

    # Catalog entries
    op.create_table(
        "catalog_entries",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("sku", sa.String(255), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("price", sa.Numeric(12, 2)),
        sa.Column("quantity", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("condition", sa.String(255)),
        sa.Column("category", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("source_url", sa.Text),
        sa.Column("external_id", sa.String(255)),
        sa.Column("images", JSONType),
        sa.Column("attributes", JSONType),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_catalog_entries_tenant_id", "catalog_entries", ["tenant_id"])
    op.create_index("ix_catalog_entries_sku", "catalog_entries", ["sku"], unique=True)
    op.create_index("ix_catalog_entries_status", "catalog_entries", ["status"])
    op.create_index("ix_catalog_entries_source_url", "catalog_entries", ["source_url"])
    op.create_index("idx_entry_tenant_source_url", "catalog_entries", ["tenant_id", "source_url"])

    # Price history
    op.create_table(
        "price_history",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("entry_id", sa.Uuid(as_uuid=True), sa.ForeignKey("catalog_entries.id"), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_price_history_entry_id", "price_history", ["entry_id"])

    # Job runs
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("source_id", sa.Uuid(as_uuid=True), sa.ForeignKey("sources.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("items_found", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("items_new", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("items_updated", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("items_removed", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("errors", JSONType),
        sa.Column("duration_seconds", sa.Float),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_job_runs_source_id", "job_runs", ["source_id"])
    op.create_index("ix_job_runs_created_at", "job_runs", ["created_at"])


def downgrade() -> None:
    op.drop_table("job_runs")
    op.drop_table("price_history")
    op.drop_table("catalog_entries")
    op.drop_table("sources")
    op.drop_table("tenants")
