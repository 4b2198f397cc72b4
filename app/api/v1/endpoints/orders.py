"""
Order endpoints.

Order Status Flow: confirmed -> payment_verified -> booked
- confirmed: Order placed, waiting for payment verification
- payment_verified: Payment screenshot verified by admin
- booked: Order booked for delivery with transport details
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, UploadFile, status

from app.api.deps import DB, Notifier
from app.core.exceptions import MissingFields
from app.core.storage import StorageClient
from app.schemas.order import (
    OrderAnalytics,
    OrderCancelledResponse,
    OrderCreate,
    OrderMessageResponse,
    OrderPlacedResponse,
    OrderResponse,
    OrderStatusUpdate,
    PaymentVerification,
)
from app.services.order_service import OrderService
from app.services.upload_service import UploadCategory, UploadService

router = APIRouter(tags=["Orders"])


@router.post("/place", response_model=OrderPlacedResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: OrderCreate,
    db: DB,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """
    Place a new order.

    The order starts in 'confirmed'. Invoice, e-mail and the admin push
    notification run after the order is saved and never fail the request.
    """
    service = OrderService(db)
    order = await service.place_order(payload)
    await db.commit()

    background_tasks.add_task(notifier.order_placed, order)
    return OrderPlacedResponse(order_id=order.order_id)


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    db: DB,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
    order_id: Optional[str] = Query(None, alias="orderId", description="Partial order ID"),
):
    """Get all orders, newest first."""
    service = OrderService(db)
    orders = await service.list_orders(day=day, order_id_query=order_id)
    return [OrderResponse.model_validate(o) for o in orders]


@router.get("/track", response_model=OrderResponse)
async def track_order(
    db: DB,
    order_id: Optional[str] = Query(None, alias="orderId"),
    mobile: Optional[str] = Query(None),
):
    """Look up an order by its ID and the customer's mobile number."""
    service = OrderService(db)
    order = await service.track_order(order_id, mobile)
    return OrderResponse.model_validate(order)


@router.get("/by-mobile/{mobile}", response_model=List[OrderResponse])
async def orders_by_mobile(mobile: str, db: DB):
    """Get a customer's orders, newest first."""
    service = OrderService(db)
    orders = await service.list_orders_for_mobile(mobile)
    return [OrderResponse.model_validate(o) for o in orders]


@router.get("/analytics", response_model=OrderAnalytics)
async def get_analytics(
    db: DB,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
):
    """Order count and revenue, for one day or overall."""
    service = OrderService(db)
    return OrderAnalytics(**await service.get_analytics(day))


@router.post("/upload-payment", response_model=OrderMessageResponse)
async def upload_payment_screenshot(
    db: DB,
    screenshot: Optional[UploadFile] = File(None),
    order_id: Optional[str] = Form(None, alias="orderId"),
    mobile: Optional[str] = Form(None),
):
    """Attach a payment screenshot (JPEG/PNG, max 5MB) to the customer's order."""
    missing = [
        name for name, value in
        (("orderId", order_id), ("mobile", mobile), ("screenshot", screenshot))
        if not value
    ]
    if missing:
        raise MissingFields(missing, "Missing orderId, mobile number, or screenshot")

    service = OrderService(db)
    # Ownership first, so a wrong mobile never stores a file
    await service.track_order(order_id, mobile)

    content = await screenshot.read()
    image_url = await UploadService.upload_image(
        content,
        screenshot.filename or "screenshot",
        screenshot.content_type or "",
        UploadCategory.PAYMENTS,
    )
    try:
        order = await service.record_payment_screenshot(order_id, mobile, image_url)
        await db.commit()
    except Exception:
        StorageClient.delete(image_url)
        raise

    return OrderMessageResponse(
        message="Payment screenshot uploaded successfully",
        order=OrderResponse.model_validate(order),
    )


@router.patch("/verify-payment/{order_id}", response_model=OrderMessageResponse)
async def verify_payment(
    order_id: str,
    payload: PaymentVerification,
    db: DB,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Accept or reject a payment (admin)."""
    service = OrderService(db)
    order = await service.verify_payment(order_id, payload.verified, payload.verified_by)
    await db.commit()

    background_tasks.add_task(notifier.status_changed, order)
    return OrderMessageResponse(
        message=f"Payment {'verified' if payload.verified else 'rejected'} successfully",
        order=OrderResponse.model_validate(order),
    )


@router.patch("/update-status/{order_id}", response_model=OrderMessageResponse)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    db: DB,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Move an order to a new status, or book it with transport details (admin)."""
    service = OrderService(db)
    order = await service.update_status(
        order_id,
        status=payload.status,
        transport_name=payload.transport_name,
        lr_number=payload.lr_number,
    )
    await db.commit()

    background_tasks.add_task(notifier.status_changed, order, payload.transport_name)
    return OrderMessageResponse(
        message="Order updated successfully",
        order=OrderResponse.model_validate(order),
    )


@router.delete("/cancel/{order_id}", response_model=OrderCancelledResponse)
async def cancel_order(order_id: str, db: DB):
    """Cancel (delete) an order in any status."""
    service = OrderService(db)
    await service.cancel_order(order_id)
    await db.commit()
    return OrderCancelledResponse(order_id=order_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, db: DB):
    """Get a single order by its ID (admin)."""
    service = OrderService(db)
    order = await service.get_order(order_id)
    return OrderResponse.model_validate(order)
