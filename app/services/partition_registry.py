"""
Partition Registry for category product tables.

Each product category lives in its own table, named by the category's
canonical identifier:

    "Sparkler Items"  -> SPARKLER_ITEMS
    "sparkler-items"  -> SPARKLER_ITEMS
    "  atom bomb "    -> ATOM_BOMB

The registry maps identifiers to table handles, creating tables on demand
and caching the handles for the life of the process. One registry is
created per application (see app.main) and shared through app.state.

USAGE:
    registry = PartitionRegistry(engine)
    handle = await registry.resolve("Sparkler Items")          # creates if needed
    handle = await registry.resolve("Flower Pots", create=False)  # None if absent
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import MetaData, Table, inspect
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.exceptions import InvalidCategory
from app.models.product import build_product_table

logger = logging.getLogger(__name__)

PARTITION_NAME_PATTERN = re.compile(r"^[A-Z0-9_]+$")

# Static tables share the database namespace with partitions. SQLite table
# names are case-insensitive, so "ORDERS" would be the orders table.
RESERVED_TABLE_NAMES = frozenset({"ORDERS", "ORDER_COUNTERS", "CATEGORIES"})


def normalize_partition_name(name: str) -> str:
    """
    Map a category name to its canonical partition identifier.

    Trims, uppercases and collapses runs of whitespace and hyphens into a
    single underscore. Idempotent.

    Raises:
        InvalidCategory: If the result is empty, contains other characters,
            or names a system table
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidCategory("Category name is required")

    identifier = re.sub(r"[\s\-]+", "_", name.strip().upper())
    if not PARTITION_NAME_PATTERN.match(identifier):
        raise InvalidCategory(
            f"Category '{name}' may only contain letters, digits, spaces, hyphens and underscores"
        )
    if identifier in RESERVED_TABLE_NAMES:
        raise InvalidCategory(f"Category name '{name}' is reserved")
    return identifier


def display_label(identifier: str) -> str:
    """ATOM_BOMB -> 'ATOM BOMB' (how listings label a product's category)."""
    return identifier.replace("_", " ")


def _is_already_exists(error: Exception) -> bool:
    message = str(error).lower()
    return "already exists" in message or "duplicate" in message


@dataclass(frozen=True)
class PartitionHandle:
    """A resolved category partition."""
    identifier: str
    table: Table

    @property
    def label(self) -> str:
        return display_label(self.identifier)


class PartitionRegistry:
    """
    Process-wide cache of category partitions.

    Resolution of a given identifier is serialised by a per-identifier
    asyncio.Lock, so concurrent first requests for a new category create the
    table once. Creation uses CREATE TABLE IF NOT EXISTS semantics and
    tolerates another process winning the race.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.metadata = MetaData()
        self._handles: Dict[str, PartitionHandle] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, identifier: str) -> asyncio.Lock:
        return self._locks.setdefault(identifier, asyncio.Lock())

    def _table_for(self, identifier: str) -> Table:
        table = self.metadata.tables.get(identifier)
        if table is None:
            table = build_product_table(identifier, self.metadata)
        return table

    @property
    def cached(self) -> List[str]:
        """Identifiers resolved so far."""
        return sorted(self._handles)

    async def _create_table(self, table: Table) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(table.create, checkfirst=True)
        except (OperationalError, ProgrammingError, IntegrityError) as e:
            if not _is_already_exists(e):
                raise
            logger.warning(f"Partition '{table.name}' was created concurrently")

    async def _table_exists(self, identifier: str) -> bool:
        async with self.engine.connect() as conn:
            return await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).has_table(identifier)
            )

    async def resolve(self, category: str, create: bool = True) -> Optional[PartitionHandle]:
        """
        Get the partition for a category.

        Args:
            category: Category name in any accepted spelling
            create: Create the table when it does not exist yet

        Returns:
            The partition handle, or None when create=False and no table exists

        Raises:
            InvalidCategory: If the name does not normalise to a valid identifier
        """
        identifier = normalize_partition_name(category)

        handle = self._handles.get(identifier)
        if handle is not None:
            return handle

        async with self._lock_for(identifier):
            handle = self._handles.get(identifier)
            if handle is not None:
                return handle

            table = self._table_for(identifier)
            if create:
                await self._create_table(table)
            elif not await self._table_exists(identifier):
                return None

            handle = PartitionHandle(identifier=identifier, table=table)
            self._handles[identifier] = handle
            logger.info(f"Partition '{identifier}' attached")
            return handle

    async def exists(self, category: str) -> bool:
        identifier = normalize_partition_name(category)
        return identifier in self._handles or await self._table_exists(identifier)

    async def list_partitions(self) -> List[str]:
        """
        List the identifiers of all physical partition tables.

        This is a scan of the database's table names, independent of the
        category directory.
        """
        async with self.engine.connect() as conn:
            names = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
        return sorted(
            name for name in names
            if PARTITION_NAME_PATTERN.match(name) and name not in RESERVED_TABLE_NAMES
        )

    async def all_partitions(self) -> List[PartitionHandle]:
        """Resolve every physical partition (attaching any not cached yet)."""
        handles = []
        for identifier in await self.list_partitions():
            handle = await self.resolve(identifier, create=False)
            if handle is not None:
                handles.append(handle)
        return handles

    async def attach_existing(self) -> int:
        """Warm the cache with every partition already in the database."""
        handles = await self.all_partitions()
        if handles:
            logger.info(f"Attached {len(handles)} existing partitions")
        return len(handles)
