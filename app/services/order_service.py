from typing import Any, Dict, List, Optional
from datetime import date, datetime, timezone
from decimal import Decimal
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    IdentifierExhausted, InvalidOrder, MissingFields, NotFound,
)
from app.models.order import Order, OrderStatus
from app.schemas.order import OrderCreate, items_for_storage
from app.services.order_sequence_service import OrderSequenceService
from app.services.order_state_machine import OrderStateMachine
from app.services.order_store import OrderStore

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = {
    "full_name": "fullName",
    "mobile": "mobile",
    "email": "email",
    "address": "address",
    "pincode": "pincode",
}

MONEY = Decimal("0.01")


def line_total(item: Dict[str, Any]) -> Decimal:
    """price x quantity for a stored line item."""
    return Decimal(str(item.get("price") or 0)) * int(item.get("quantity") or 0)


class OrderService:
    """Service for placing orders and driving them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        sequence: Optional[OrderSequenceService] = None,
    ):
        self.db = db
        self.store = OrderStore(db)
        self.sequence = sequence or OrderSequenceService(db)
        self.state_machine = OrderStateMachine(db, self.store)

    # ==================== VALIDATION ====================

    def validate_order(self, payload: OrderCreate) -> None:
        """
        Check a placement payload without touching storage.

        Raises:
            MissingFields: items, total, customer details or a customer field absent
            InvalidOrder: Bad quantity/price, or total != sum(price x quantity)
        """
        missing = []
        if not payload.items:
            missing.append("items")
        if payload.total is None:
            missing.append("total")
        if payload.customer_details is None:
            missing.append("customerDetails")
        else:
            for field, label in CUSTOMER_FIELDS.items():
                value = getattr(payload.customer_details, field)
                if value is None or not str(value).strip():
                    missing.append(f"customerDetails.{label}")
        if missing:
            raise MissingFields(missing, "Missing required order fields.")

        computed = Decimal("0")
        for index, item in enumerate(payload.items, start=1):
            if not item.name or item.price is None or item.quantity is None:
                raise InvalidOrder(f"Item {index} needs a name, price and quantity")
            if item.quantity < 1:
                raise InvalidOrder(f"Item {index} has invalid quantity {item.quantity}")
            if item.price < 0:
                raise InvalidOrder(f"Item {index} has negative price {item.price}")
            computed += item.price * item.quantity

        if computed.quantize(MONEY) != payload.total.quantize(MONEY):
            raise InvalidOrder(
                f"Order total {payload.total} does not match item total {computed}"
            )

    # ==================== PLACEMENT ====================

    async def _allocate_order_id(self) -> str:
        """Mint an identifier that no stored order uses yet."""
        for attempt in range(1, settings.ORDER_ID_MAX_ATTEMPTS + 1):
            order_id = await self.sequence.next_order_id()
            if not await self.store.exists(order_id):
                return order_id
            logger.warning(f"Order ID collision on {order_id} (attempt {attempt}), retrying")

        logger.error(
            f"Failed to generate unique order ID after {settings.ORDER_ID_MAX_ATTEMPTS} attempts"
        )
        raise IdentifierExhausted("Failed to generate unique order ID")

    async def place_order(self, payload: OrderCreate) -> Order:
        """
        Create a new order in 'confirmed' status.

        The caller commits; invoice, email and notifications are scheduled
        by the caller after the commit.
        """
        self.validate_order(payload)

        order_id = await self._allocate_order_id()
        customer = payload.customer_details
        order = await self.store.create(
            order_id=order_id,
            items=items_for_storage(payload.items),
            total=payload.total,
            customer_name=customer.full_name.strip(),
            customer_mobile=customer.mobile.strip(),
            customer_email=customer.email.strip(),
            customer_address=customer.address.strip(),
            customer_pincode=customer.pincode.strip(),
            status=OrderStatus.CONFIRMED.value,
        )

        logger.info(f"Order {order_id} placed ({len(payload.items)} items, total {payload.total})")
        return order

    # ==================== PAYMENT ====================

    async def record_payment_screenshot(
        self,
        order_id: str,
        mobile: str,
        image_url: str,
    ) -> Order:
        """Attach a payment screenshot to the customer's order. Status is unchanged."""
        order = await self.track_order(order_id, mobile)

        await self.store.update(
            order.order_id,
            {
                "payment_screenshot_url": image_url,
                "payment_uploaded_at": datetime.now(timezone.utc),
                "payment_verified": False,
                "payment_verified_by": None,
                "payment_verified_at": None,
            },
        )
        logger.info(f"Payment screenshot recorded for order {order_id}")
        return await self.store.refresh(order_id)

    async def verify_payment(
        self,
        order_id: str,
        verified: Any,
        verified_by: Optional[str] = None,
    ) -> Order:
        """Accept or reject the payment; status follows the decision."""
        if not isinstance(verified, bool):
            raise MissingFields(["verified"], "Verified status is required")

        return await self.state_machine.set_payment_verification(
            order_id, verified, verified_by or "admin"
        )

    # ==================== STATUS ====================

    async def update_status(
        self,
        order_id: str,
        status: Optional[str] = None,
        transport_name: Optional[str] = None,
        lr_number: Optional[str] = None,
    ) -> Order:
        """
        Change an order's status.

        Transport details take precedence and always book the order;
        otherwise the requested status must be reachable from the current one.
        """
        if transport_name or lr_number:
            return await self.state_machine.book(order_id, transport_name, lr_number)

        if not status:
            raise MissingFields(
                ["status", "transportName", "lrNumber"],
                "Status or transport details required.",
            )

        return await self.state_machine.transition(order_id, status)

    async def cancel_order(self, order_id: str) -> None:
        """Delete an order regardless of its status."""
        deleted = await self.store.delete(order_id)
        if not deleted:
            raise NotFound("Order not found.")

    # ==================== QUERIES ====================

    async def track_order(self, order_id: Optional[str], mobile: Optional[str]) -> Order:
        """Get an order for a customer who knows both its ID and their mobile."""
        if not order_id or not mobile:
            missing = [name for name, value in (("orderId", order_id), ("mobile", mobile)) if not value]
            raise MissingFields(missing, "Missing orderId or mobile number")

        order = await self.store.get_for_customer(str(order_id), str(mobile))
        if order is None:
            raise NotFound("Order not found or mobile number does not match")
        return order

    async def get_order(self, order_id: str) -> Order:
        order = await self.store.get_by_order_id(order_id)
        if order is None:
            raise NotFound("Order not found.")
        return order

    async def list_orders(
        self,
        day: Optional[date] = None,
        order_id_query: Optional[str] = None,
    ) -> List[Order]:
        return await self.store.list_orders(day=day, order_id_query=order_id_query)

    async def list_orders_for_mobile(self, mobile: str) -> List[Order]:
        if not mobile:
            raise MissingFields(["mobile"])
        return await self.store.list_by_mobile(mobile)

    async def get_analytics(self, day: Optional[date] = None) -> Dict[str, Any]:
        """Order count and revenue (sum of price x quantity), optionally for one day."""
        orders = await self.store.list_orders(day=day)
        revenue = sum(
            (line_total(item) for order in orders for item in (order.items or [])),
            Decimal("0"),
        )
        return {"total_orders": len(orders), "total_revenue": revenue}
