from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Optional
from datetime import datetime
from decimal import Decimal


class ProductResponse(BaseModel):
    """
    Product as listed to clients.

    Product payloads keep the snake_case keys the storefront has always used
    (name_en, name_ta, original_price). ``category`` is the display label of
    the partition, e.g. "ATOM BOMB".
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    name_en: str
    name_ta: str
    price: Decimal
    original_price: Optional[Decimal] = None
    image_url: str
    youtube_url: Optional[str] = None
    category: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductUpdate(BaseModel):
    """Partial product update. A different category moves the product."""
    model_config = ConfigDict(extra='ignore')

    name_en: Optional[str] = None
    name_ta: Optional[str] = None
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    image_url: Optional[str] = Field(
        None, validation_alias=AliasChoices("image_url", "imageUrl")
    )
    youtube_url: Optional[str] = None
    category: Optional[str] = None


class ProductMessageResponse(BaseModel):
    message: str
    product: ProductResponse


class ProductDeletedResponse(BaseModel):
    message: str = "Product deleted successfully"
    id: str


class DiscountRequest(BaseModel):
    # Any: the value is checked by CatalogService (booleans and strings are rejected)
    discount: Any = None


class DiscountResponse(BaseModel):
    message: str = "Discount applied to all products."
    updated: int
