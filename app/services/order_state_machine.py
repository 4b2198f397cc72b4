"""
Order State Machine

This module is the SINGLE SOURCE OF TRUTH for order status transitions.

    confirmed ──► payment_verified ──► booked ◄─┐
        │                                │      │
        └────────────────────────────────┴──────┘  (booked may be re-booked)

Two operations bypass the table:
- Payment verification sets payment_verified / confirmed from any status.
- Supplying transport details forces booked from any status.

Every status write is a single conditional UPDATE, so a concurrent change
to the same order between "read" and "write" cannot slip through.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTransition, NotFound
from app.models.order import Order, OrderStatus
from app.services.order_store import OrderStore

logger = logging.getLogger(__name__)


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [list of allowed next statuses]
ORDER_TRANSITIONS: Dict[str, List[str]] = {
    OrderStatus.CONFIRMED.value: [
        OrderStatus.PAYMENT_VERIFIED.value,  # Payment checked
        OrderStatus.BOOKED.value,            # Booked straight away (e.g. cash)
    ],
    OrderStatus.PAYMENT_VERIFIED.value: [
        OrderStatus.BOOKED.value,            # Handed to transporter
    ],
    OrderStatus.BOOKED.value: [
        OrderStatus.BOOKED.value,            # Re-book with updated transport data
    ],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return new_status in ORDER_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return list(ORDER_TRANSITIONS.get(current_status, []))


def get_allowed_predecessors(new_status: str) -> List[str]:
    """Get list of statuses from which new_status may be reached."""
    return [
        current for current, targets in ORDER_TRANSITIONS.items()
        if new_status in targets
    ]


def validate_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidTransition unless current_status -> new_status is allowed."""
    if not can_transition(current_status, new_status):
        raise InvalidTransition(
            current_status, new_status, get_allowed_transitions(current_status)
        )


def is_terminal(status: str) -> bool:
    """Booked orders can only be re-booked."""
    return get_allowed_transitions(status) == [status]


# =============================================================================
# STATE MACHINE
# =============================================================================

class OrderStateMachine:
    """Applies status changes to stored orders."""

    def __init__(self, db: AsyncSession, store: Optional[OrderStore] = None):
        self.db = db
        self.store = store or OrderStore(db)

    async def transition(self, order_id: str, new_status: str) -> Order:
        """
        Move an order to new_status if the transition table allows it.

        The write only matches rows whose current status is an allowed
        predecessor; when nothing matched, the order is re-read to report
        why.

        Raises:
            NotFound: If the order does not exist
            InvalidTransition: If the current status does not allow new_status
        """
        predecessors = get_allowed_predecessors(new_status)
        matched = 0
        if predecessors:
            matched = await self.store.update_if_status_in(
                order_id, predecessors, {"status": new_status}
            )

        if not matched:
            current = await self.store.get_by_order_id(order_id)
            if current is None:
                raise NotFound("Order not found.")
            logger.warning(
                f"Rejected status change for order {order_id}: "
                f"{current.status} -> {new_status}"
            )
            raise InvalidTransition(
                current.status, new_status, get_allowed_transitions(current.status)
            )

        logger.info(f"Order {order_id} moved to {new_status}")
        return await self.store.refresh(order_id)

    async def book(
        self,
        order_id: str,
        transport_name: Optional[str],
        lr_number: Optional[str],
    ) -> Order:
        """Store transport details and force the order into booked."""
        matched = await self.store.update(
            order_id,
            {
                "transport_name": transport_name or "",
                "lr_number": lr_number or "",
                "status": OrderStatus.BOOKED.value,
            },
        )
        if not matched:
            raise NotFound("Order not found.")

        logger.info(f"Order {order_id} booked via '{transport_name or ''}' (LR {lr_number or '-'})")
        return await self.store.refresh(order_id)

    async def set_payment_verification(
        self,
        order_id: str,
        verified: bool,
        verified_by: str,
    ) -> Order:
        """Record the admin's payment decision and realign the status."""
        matched = await self.store.update(
            order_id,
            {
                "payment_verified": verified,
                "payment_verified_by": verified_by,
                "payment_verified_at": datetime.now(timezone.utc),
                "status": (
                    OrderStatus.PAYMENT_VERIFIED.value if verified
                    else OrderStatus.CONFIRMED.value
                ),
            },
        )
        if not matched:
            raise NotFound("Order not found")

        logger.info(f"Payment for order {order_id} {'verified' if verified else 'rejected'} by {verified_by}")
        return await self.store.refresh(order_id)
