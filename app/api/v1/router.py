from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Orders
    orders,
    invoices,
    # Product Catalog
    categories,
    products,
    # Notifications
    notifications,
)

api_router = APIRouter(prefix="/api/v1")

# Orders
api_router.include_router(orders.router, prefix="/orders")
api_router.include_router(invoices.router, prefix="/invoices")

# Product Catalog
api_router.include_router(categories.router, prefix="/categories")
api_router.include_router(products.router, prefix="/products")

# Notifications
api_router.include_router(notifications.router, prefix="/notifications")
