"""
Catalog Service - products stored in per-category partitions.

CatalogService is the only writer of partition tables. Every write runs in
its own transaction on the registry's engine; partitions are resolved
before the transaction opens so that table creation never waits on it.
"""
import asyncio
import logging
import math
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from app.config import settings
from app.core.exceptions import (
    InvalidCategory, InvalidDiscount, InvalidProduct, MissingFields, NotFound,
)
from app.models.product import PRODUCT_FIELDS
from app.services.partition_registry import PartitionHandle, PartitionRegistry

logger = logging.getLogger(__name__)

REQUIRED_PRODUCT_FIELDS = ("name_en", "name_ta", "price", "image_url", "category")
PRICE_FIELDS = ("price", "original_price")
WHOLE_RUPEE = Decimal("1")


def _to_price(field: str, value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidProduct(f"{field} must be a number")
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidProduct(f"{field} must be a number, got '{value}'")
    if not price.is_finite() or price < 0:
        raise InvalidProduct(f"{field} must be a non-negative number")
    return price


def clean_product_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Keep writable product columns and coerce prices to Decimal."""
    values = {key: fields[key] for key in PRODUCT_FIELDS if key in fields}
    for key in PRICE_FIELDS:
        if key in values:
            values[key] = _to_price(key, values[key])
    return values


def discounted_price(original_price: Decimal, percent: Decimal) -> Decimal:
    """original x (1 - percent/100), rounded to whole units, half to even."""
    factor = Decimal("1") - percent / Decimal("100")
    return (Decimal(original_price) * factor).quantize(WHOLE_RUPEE, rounding=ROUND_HALF_EVEN)


def require_product_fields(fields: Dict[str, Any], skip: Iterable[str] = ()) -> None:
    """Raise MissingFields unless every required product field (except skip) has a value."""
    missing = [
        f for f in REQUIRED_PRODUCT_FIELDS
        if f not in skip and fields.get(f) in (None, "")
    ]
    if missing:
        raise MissingFields(
            missing, "All fields including image (file or URL) and category are required."
        )


def validate_discount(percent: Any) -> Decimal:
    if isinstance(percent, bool) or not isinstance(percent, (int, float, Decimal)):
        raise InvalidDiscount("Invalid discount percentage.")
    if isinstance(percent, float) and not math.isfinite(percent):
        raise InvalidDiscount("Invalid discount percentage.")
    value = Decimal(str(percent))
    if value < 0 or value > 100:
        raise InvalidDiscount("Invalid discount percentage.")
    return value


class CatalogService:
    """Product CRUD, listings and bulk pricing across category partitions."""

    def __init__(self, registry: PartitionRegistry):
        self.registry = registry
        self.engine = registry.engine

    @staticmethod
    def _serialize(handle: PartitionHandle, row) -> Dict[str, Any]:
        product = dict(row._mapping)
        product["category"] = handle.label
        return product

    async def _fetch_row(self, conn: AsyncConnection, handle: PartitionHandle, product_id: str):
        result = await conn.execute(
            select(handle.table).where(handle.table.c.id == product_id)
        )
        return result.first()

    async def _locate(
        self,
        conn: AsyncConnection,
        product_id: str,
        handles: Iterable[PartitionHandle],
    ) -> Tuple[Optional[PartitionHandle], Any]:
        for handle in handles:
            row = await self._fetch_row(conn, handle, product_id)
            if row is not None:
                return handle, row
        return None, None

    async def _search_order(self, preferred: Optional[PartitionHandle]) -> List[PartitionHandle]:
        handles = await self.registry.all_partitions()
        if preferred is None:
            return handles
        return [preferred] + [h for h in handles if h.identifier != preferred.identifier]

    # ==================== WRITES ====================

    async def insert(self, category: Optional[str], fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add a product to a category, creating the partition on first use.

        Raises:
            MissingFields: name_en, name_ta, price, image_url or category absent
            InvalidProduct: Price fields are not numbers
            InvalidCategory: Category name cannot be used as a partition
        """
        data = dict(fields)
        if category:
            data["category"] = category
        require_product_fields(data)

        values = clean_product_fields(data)
        values["category"] = str(values["category"]).strip()
        handle = await self.registry.resolve(values["category"])

        product_id = str(uuid.uuid4())
        async with self.engine.begin() as conn:
            await conn.execute(handle.table.insert().values(id=product_id, **values))
            row = await self._fetch_row(conn, handle, product_id)

        logger.info(f"Product {product_id} added to {handle.identifier}")
        return self._serialize(handle, row)

    async def update(
        self,
        product_id: str,
        fields: Dict[str, Any],
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Update a product; a new category moves it to that partition.

        The move (write into the target, delete from the source) happens in
        one transaction and is keyed by the product's id, so repeating a
        failed move converges to a single copy.
        """
        values = clean_product_fields(fields)
        category = category or values.get("category")
        target = await self.registry.resolve(category, create=False) if category else None
        if category:
            values["category"] = str(category).strip()
        handles = await self._search_order(target)

        async with self.engine.connect() as conn:
            source, _ = await self._locate(conn, product_id, handles)
        if source is None:
            raise NotFound("Product not found")

        # The target partition is only created once a move is certain
        if category and target is None:
            target = await self.registry.resolve(category)

        async with self.engine.begin() as conn:
            row = await self._fetch_row(conn, source, product_id)
            if row is None:
                raise NotFound("Product not found")

            if target is None or target.identifier == source.identifier:
                if values:
                    await conn.execute(
                        update(source.table)
                        .where(source.table.c.id == product_id)
                        .values(**values)
                    )
                destination = source
            else:
                moved = {**dict(row._mapping), **values}
                moved["updated_at"] = datetime.now(timezone.utc)
                if await self._fetch_row(conn, target, product_id) is not None:
                    await conn.execute(
                        update(target.table)
                        .where(target.table.c.id == product_id)
                        .values(**{k: v for k, v in moved.items() if k != "id"})
                    )
                else:
                    await conn.execute(target.table.insert().values(**moved))
                await conn.execute(
                    delete(source.table).where(source.table.c.id == product_id)
                )
                logger.info(
                    f"Product {product_id} moved {source.identifier} -> {target.identifier}"
                )
                destination = target

            row = await self._fetch_row(conn, destination, product_id)

        return self._serialize(destination, row)

    async def delete(self, product_id: str) -> None:
        handles = await self.registry.all_partitions()
        async with self.engine.begin() as conn:
            for handle in handles:
                result = await conn.execute(
                    delete(handle.table).where(handle.table.c.id == product_id)
                )
                if result.rowcount:
                    logger.info(f"Product {product_id} deleted from {handle.identifier}")
                    return
        raise NotFound("Product not found")

    async def apply_discount(self, percent: Any) -> int:
        """
        Reprice every product that has an original price.

        Each partition is repriced in its own transaction; a partition that
        fails is logged and skipped.

        Returns:
            Number of products whose price actually changed
        """
        value = validate_discount(percent)

        total_updated = 0
        for handle in await self.registry.all_partitions():
            table = handle.table
            try:
                async with self.engine.begin() as conn:
                    result = await conn.execute(
                        select(table.c.id, table.c.price, table.c.original_price)
                        .where(table.c.original_price.isnot(None))
                    )
                    changed = 0
                    for product_id, price, original_price in result.all():
                        new_price = discounted_price(original_price, value)
                        if price is not None and Decimal(price) == new_price:
                            continue
                        await conn.execute(
                            update(table).where(table.c.id == product_id).values(price=new_price)
                        )
                        changed += 1
            except Exception as e:
                logger.error(f"Discount failed for partition {handle.identifier}: {e}")
                continue

            total_updated += changed

        logger.info(f"Applied {value}% discount, {total_updated} products repriced")
        return total_updated

    # ==================== READS ====================

    async def _read_partition(
        self,
        handle: PartitionHandle,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = select(handle.table).order_by(handle.table.c.created_at)
        if limit is not None:
            query = query.limit(limit)
        async with self.engine.connect() as conn:
            result = await conn.execute(query)
            return [self._serialize(handle, row) for row in result.all()]

    async def _read_partition_safely(
        self,
        handle: PartitionHandle,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        try:
            return await self._read_partition(handle, limit)
        except SQLAlchemyError as e:
            logger.warning(f"Could not fetch products for partition {handle.identifier}: {e}")
            return []

    async def get(self, product_id: str) -> Dict[str, Any]:
        handles = await self.registry.all_partitions()
        async with self.engine.connect() as conn:
            handle, row = await self._locate(conn, product_id, handles)
        if handle is None:
            raise NotFound("Product not found")
        return self._serialize(handle, row)

    async def list_by_category(self, category: str) -> List[Dict[str, Any]]:
        """Products of one category. Unknown categories yield [] and create nothing."""
        handle = await self.registry.resolve(category, create=False)
        if handle is None:
            return []
        return await self._read_partition(handle)

    async def list_all(self) -> List[Dict[str, Any]]:
        handles = await self.registry.all_partitions()
        batches = await asyncio.gather(
            *(self._read_partition_safely(handle) for handle in handles)
        )
        return [product for batch in batches for product in batch]

    async def list_featured(
        self,
        categories: Optional[List[str]] = None,
        limit_per_category: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """A few products from each featured category, in the configured order."""
        categories = categories if categories is not None else settings.FEATURED_CATEGORIES
        limit = limit_per_category or settings.FEATURED_PRODUCTS_LIMIT

        async def featured(category: str) -> List[Dict[str, Any]]:
            try:
                handle = await self.registry.resolve(category, create=False)
            except InvalidCategory as e:
                logger.warning(f"Skipping featured category '{category}': {e.message}")
                return []
            if handle is None:
                return []
            return await self._read_partition_safely(handle, limit)

        batches = await asyncio.gather(*(featured(c) for c in categories))
        return [product for batch in batches for product in batch]
