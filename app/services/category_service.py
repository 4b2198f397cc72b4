"""
Category directory.

Descriptors say which categories are shown to users. A descriptor's name is
the same canonical identifier as its product partition, but the two are
managed separately: descriptors are never hard-deleted and deactivating one
leaves the partition (and its products) untouched. ``reconcile`` reports
where the two have drifted apart.
"""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateCategory, MissingFields, NotFound
from app.models.category import Category
from app.services.partition_registry import display_label, normalize_partition_name

logger = logging.getLogger(__name__)


class CategoryService:
    """CRUD over category descriptors."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_name(self, name: str) -> Optional[Category]:
        """Get a descriptor (active or not) by any spelling of its name."""
        canonical = normalize_partition_name(name)
        result = await self.db.execute(select(Category).where(Category.name == canonical))
        return result.scalar_one_or_none()

    async def _get_or_404(self, name: str) -> Category:
        category = await self.get_by_name(name)
        if category is None:
            raise NotFound("Category not found")
        return category

    async def list(self, include_inactive: bool = False) -> List[Category]:
        query = select(Category)
        if not include_inactive:
            query = query.where(Category.is_active.is_(True))
        result = await self.db.execute(query.order_by(Category.display_name, Category.name))
        return list(result.scalars().all())

    async def create(
        self,
        name: Optional[str],
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Category:
        """
        Add a category, or bring back a deactivated one with the same name.

        Raises:
            MissingFields: If name is absent
            InvalidCategory: If name cannot be used as a partition identifier
            DuplicateCategory: If an active category already has this name
        """
        if not name or not str(name).strip():
            raise MissingFields(["name"], "Category name is required")

        canonical = normalize_partition_name(name)
        display_name = (display_name or "").strip() or display_label(canonical).title()

        existing = await self.get_by_name(canonical)
        if existing is not None:
            if existing.is_active:
                raise DuplicateCategory(f"Category '{canonical}' already exists")
            existing.is_active = True
            existing.display_name = display_name
            if description is not None:
                existing.description = description
            await self.db.flush()
            await self.db.refresh(existing)
            logger.info(f"Category {canonical} reactivated")
            return existing

        category = Category(
            name=canonical,
            display_name=display_name,
            description=description or "",
        )
        try:
            async with self.db.begin_nested():
                self.db.add(category)
        except IntegrityError:
            logger.warning(f"Category {canonical} was created concurrently")
            raise DuplicateCategory(f"Category '{canonical}' already exists")

        await self.db.refresh(category)
        logger.info(f"Category {canonical} created")
        return category

    async def update(
        self,
        name: str,
        display_name: Optional[str],
        description: Optional[str] = None,
    ) -> Category:
        """Change a category's display name (and optionally its description)."""
        if not display_name or not display_name.strip():
            raise MissingFields(["displayName"], "Display name is required")

        category = await self._get_or_404(name)
        category.display_name = display_name.strip()
        if description is not None:
            category.description = description

        await self.db.flush()
        await self.db.refresh(category)
        logger.info(f"Category {category.name} updated")
        return category

    async def deactivate(self, name: str) -> Category:
        """Hide a category. Its products stay in place."""
        category = await self._get_or_404(name)
        category.is_active = False

        await self.db.flush()
        await self.db.refresh(category)
        logger.info(f"Category {category.name} deactivated")
        return category

    async def reconcile(self, partitions: Iterable[str]) -> Dict[str, List[str]]:
        """
        Compare active descriptors with physical partitions.

        Returns:
            orphaned_partitions: partitions with no active descriptor
            phantom_categories: active descriptors with no partition yet
        """
        partition_names = set(partitions)
        active = {category.name for category in await self.list()}

        report = {
            "orphaned_partitions": sorted(partition_names - active),
            "phantom_categories": sorted(active - partition_names),
        }
        if report["orphaned_partitions"] or report["phantom_categories"]:
            logger.warning(
                f"Category directory out of sync: "
                f"{len(report['orphaned_partitions'])} orphaned, "
                f"{len(report['phantom_categories'])} phantom"
            )
        return report
