from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, Form, UploadFile, status

from app.api.deps import Cache, Registry
from app.schemas.product import (
    DiscountRequest,
    DiscountResponse,
    ProductDeletedResponse,
    ProductMessageResponse,
    ProductResponse,
    ProductUpdate,
)
from app.services.cache_service import CacheService
from app.services.catalog_service import CatalogService, require_product_fields
from app.services.upload_service import UploadCategory, UploadService

router = APIRouter(tags=["Products"])


def _to_json(products: List[Dict[str, Any]]) -> List[dict]:
    return [ProductResponse.model_validate(p).model_dump(mode="json") for p in products]


async def _cached_listing(cache: CacheService, params: dict, load) -> List[dict]:
    cached = await cache.get_product_list(params)
    if cached is not None:
        return cached
    products = _to_json(await load())
    await cache.set_product_list(params, products)
    return products


# ==================== READS ====================

@router.get("/home", response_model=List[ProductResponse])
async def home_products(registry: Registry, cache: Cache):
    """A few products from each featured category, for the landing page."""
    service = CatalogService(registry)
    return await _cached_listing(cache, {"listing": "home"}, service.list_featured)


@router.get("/all", response_model=List[ProductResponse])
async def all_products(registry: Registry, cache: Cache):
    """Every product across all category partitions."""
    service = CatalogService(registry)
    return await _cached_listing(cache, {"listing": "all"}, service.list_all)


@router.get("/category/{category}", response_model=List[ProductResponse])
async def products_by_category(category: str, registry: Registry, cache: Cache):
    """Products of one category. An unknown category returns an empty list."""
    service = CatalogService(registry)
    return await _cached_listing(
        cache,
        {"listing": "category", "category": category},
        lambda: service.list_by_category(category),
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, registry: Registry):
    service = CatalogService(registry)
    return await service.get(product_id)


# ==================== WRITES ====================

@router.post("", response_model=ProductMessageResponse, status_code=status.HTTP_201_CREATED)
async def add_product(
    registry: Registry,
    cache: Cache,
    name_en: Optional[str] = Form(None),
    name_ta: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    original_price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    youtube_url: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None, alias="imageUrl"),
    image: Optional[UploadFile] = File(None),
):
    """
    Add a product. The image is either uploaded (JPEG/PNG, max 5MB) or
    given as a URL. The category's partition is created on first use.
    """
    fields = {
        "name_en": name_en,
        "name_ta": name_ta,
        "price": price,
        "original_price": original_price,
        "youtube_url": youtube_url,
        "image_url": image_url,
    }
    has_image = image is not None and bool(image.filename)
    # Reject incomplete forms before anything is written to storage
    require_product_fields(
        {**fields, "category": category},
        skip=("image_url",) if has_image else (),
    )

    if has_image:
        fields["image_url"] = await UploadService.upload_image(
            await image.read(),
            image.filename,
            image.content_type or "",
            UploadCategory.PRODUCTS,
        )

    service = CatalogService(registry)
    product = await service.insert(category, fields)
    await cache.invalidate_products()
    return ProductMessageResponse(message="Product added successfully", product=product)


@router.post("/apply-discount", response_model=DiscountResponse)
async def apply_discount(payload: DiscountRequest, registry: Registry, cache: Cache):
    """Set price = original_price x (1 - discount/100) on every product that has an original price."""
    service = CatalogService(registry)
    updated = await service.apply_discount(payload.discount)
    await cache.invalidate_products()
    return DiscountResponse(updated=updated)


@router.put("/{product_id}", response_model=ProductMessageResponse)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    registry: Registry,
    cache: Cache,
):
    """Edit a product. Changing its category moves it to that partition."""
    service = CatalogService(registry)
    fields = payload.model_dump(exclude_unset=True, exclude={"category"})
    product = await service.update(product_id, fields, category=payload.category)
    await cache.invalidate_products()
    return ProductMessageResponse(message="Product updated successfully", product=product)


@router.delete("/{product_id}", response_model=ProductDeletedResponse)
async def delete_product(product_id: str, registry: Registry, cache: Cache):
    service = CatalogService(registry)
    await service.delete(product_id)
    await cache.invalidate_products()
    return ProductDeletedResponse(id=product_id)
