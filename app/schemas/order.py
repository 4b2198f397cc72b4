from pydantic import AliasChoices, Field, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from app.models.order import Order
from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseCreateSchema):
    """
    Order line item as sent by the storefront.

    Fields are optional here so that OrderService can report missing or
    inconsistent values with its own error types.
    """
    name: Optional[str] = Field(
        None, validation_alias=AliasChoices("name", "name_en", "nameEn")
    )
    name_ta: Optional[str] = Field(
        None, validation_alias=AliasChoices("name_ta", "nameTa")
    )
    price: Optional[Decimal] = None
    quantity: Optional[int] = None


class OrderItemResponse(BaseResponseSchema):
    """Order line item as stored on the order."""
    name: str
    name_ta: Optional[str] = None
    price: Decimal
    quantity: int


# ==================== CUSTOMER SCHEMAS ====================

class CustomerDetailsCreate(BaseCreateSchema):
    full_name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    pincode: Optional[str] = None


class CustomerDetailsResponse(BaseResponseSchema):
    full_name: str
    mobile: str
    email: str
    address: str
    pincode: str


# ==================== ORDER SCHEMAS ====================

class OrderCreate(BaseCreateSchema):
    """Order placement payload."""
    items: Optional[List[OrderItemCreate]] = None
    total: Optional[Decimal] = None
    customer_details: Optional[CustomerDetailsCreate] = None


class OrderPlacedResponse(BaseResponseSchema):
    message: str = "Order placed successfully"
    order_id: str


class PaymentScreenshotResponse(BaseResponseSchema):
    image_url: str
    uploaded_at: Optional[datetime] = None
    verified: Optional[bool] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None


class OrderResponse(BaseResponseSchema):
    """
    Order as returned to clients.

    The ORM row keeps customer and payment fields flat; clients expect them
    grouped under ``customerDetails`` and ``paymentScreenshot``.
    """
    order_id: str
    items: List[OrderItemResponse]
    total: Decimal
    customer_details: CustomerDetailsResponse
    status: str
    payment_screenshot: Optional[PaymentScreenshotResponse] = None
    transport_name: Optional[str] = None
    lr_number: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def group_order_fields(cls, data: Any) -> Any:
        if not isinstance(data, Order):
            return data

        screenshot = None
        if data.has_payment_screenshot:
            screenshot = {
                "image_url": data.payment_screenshot_url,
                "uploaded_at": data.payment_uploaded_at,
                "verified": data.payment_verified,
                "verified_by": data.payment_verified_by,
                "verified_at": data.payment_verified_at,
            }

        return {
            "order_id": data.order_id,
            "items": data.items,
            "total": data.total,
            "customer_details": {
                "full_name": data.customer_name,
                "mobile": data.customer_mobile,
                "email": data.customer_email,
                "address": data.customer_address,
                "pincode": data.customer_pincode,
            },
            "status": data.status,
            "payment_screenshot": screenshot,
            "transport_name": data.transport_name,
            "lr_number": data.lr_number,
            "created_at": data.created_at,
            "updated_at": data.updated_at,
        }


class OrderMessageResponse(BaseResponseSchema):
    """Mutation result: a message plus the order as it now stands."""
    message: str
    order: OrderResponse


class OrderCancelledResponse(BaseResponseSchema):
    message: str = "Order cancelled successfully"
    order_id: str


# ==================== STATUS / PAYMENT SCHEMAS ====================

class OrderStatusUpdate(BaseUpdateSchema):
    """Either a target status or transport details (which force 'booked')."""
    status: Optional[str] = None
    transport_name: Optional[str] = None
    lr_number: Optional[str] = None


class PaymentVerification(BaseCreateSchema):
    # Any: non-boolean values are rejected by OrderService, not coerced
    verified: Any = None
    verified_by: Optional[str] = None


# ==================== ANALYTICS ====================

class OrderAnalytics(BaseResponseSchema):
    total_orders: int
    total_revenue: Decimal


def items_for_storage(items: List[OrderItemCreate]) -> List[Dict[str, Any]]:
    """Serialize validated line items for the JSON column."""
    return [
        item.model_dump(mode="json", include={"name", "name_ta", "price", "quantity"})
        for item in items
    ]
