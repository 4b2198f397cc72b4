from typing import List

from fastapi import APIRouter, Query, status

from app.api.deps import DB, Cache, Registry
from app.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryReconciliation,
)
from app.services.category_service import CategoryService

router = APIRouter(tags=["Categories"])


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    db: DB,
    cache: Cache,
    include_inactive: bool = Query(False, alias="includeInactive"),
):
    """
    Get categories shown to users.
    Pass includeInactive=true to also see deactivated ones.
    """
    cached = await cache.get_categories(include_inactive)
    if cached is not None:
        return cached

    service = CategoryService(db)
    categories = await service.list(include_inactive=include_inactive)
    result = [
        CategoryResponse.model_validate(c).model_dump(mode="json", by_alias=True)
        for c in categories
    ]
    await cache.set_categories(result, include_inactive)
    return result


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryCreate, db: DB, cache: Cache):
    """Create a category. Creating a deactivated category's name reactivates it."""
    service = CategoryService(db)
    category = await service.create(payload.name, payload.display_name, payload.description)
    await db.commit()
    await cache.invalidate_categories()
    return CategoryResponse.model_validate(category)


@router.get("/reconcile", response_model=CategoryReconciliation)
async def reconcile_categories(db: DB, registry: Registry):
    """Report partitions without an active category and active categories without products."""
    # Read the partitions before the session opens its transaction
    partitions = await registry.list_partitions()
    service = CategoryService(db)
    return CategoryReconciliation(**await service.reconcile(partitions))


@router.put("/{name}", response_model=CategoryResponse)
async def update_category(name: str, payload: CategoryUpdate, db: DB, cache: Cache):
    service = CategoryService(db)
    category = await service.update(name, payload.display_name, payload.description)
    await db.commit()
    await cache.invalidate_categories()
    return CategoryResponse.model_validate(category)


@router.delete("/{name}", response_model=CategoryResponse)
async def deactivate_category(name: str, db: DB, cache: Cache):
    """Deactivate a category. Its products are kept."""
    service = CategoryService(db)
    category = await service.deactivate(name)
    await db.commit()
    await cache.invalidate_categories()
    return CategoryResponse.model_validate(category)
