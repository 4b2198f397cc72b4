"""
Product partition table definition.

Every category keeps its products in a table of its own, named after the
category's canonical identifier (e.g. ``ATOM_BOMB``). All partitions share
this one column layout; ``build_product_table`` stamps it out for a given
identifier on the registry's MetaData.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, MetaData, Numeric, String, Table


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Columns callers may write. ``id`` and timestamps are managed by the catalog.
PRODUCT_FIELDS = (
    "name_en",
    "name_ta",
    "price",
    "original_price",
    "image_url",
    "youtube_url",
    "category",
)


def build_product_table(identifier: str, metadata: MetaData) -> Table:
    """Define the product table for one category partition."""
    suffix = identifier.lower()
    return Table(
        identifier,
        metadata,
        Column("id", String(36), primary_key=True),
        Column("name_en", String(200), nullable=False),
        Column("name_ta", String(200), nullable=False),
        Column("price", Numeric(12, 2), nullable=False),
        Column("original_price", Numeric(12, 2), nullable=True),
        Column("image_url", String(500), nullable=False),
        Column("youtube_url", String(500), nullable=True),
        Column("category", String(100), nullable=True),
        Column("created_at", DateTime(timezone=True), default=_utcnow, nullable=False),
        Column("updated_at", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False),
        Index(f"ix_{suffix}_name_en", "name_en"),
        Index(f"ix_{suffix}_category", "category"),
        Index(f"ix_{suffix}_price", "price"),
    )
