# Models module: importing registers the static tables on Base.metadata
from app.models.order import Order, OrderCounter, OrderStatus
from app.models.category import Category

__all__ = [
    "Order",
    "OrderCounter",
    "OrderStatus",
    "Category",
]
