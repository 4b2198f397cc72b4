"""
Order persistence.

All reads and writes of the ``orders`` table go through OrderStore. Writes
are expressed as single UPDATE/DELETE statements that report how many rows
they matched, so callers can tell "absent" from "not in the expected state"
without holding locks between a read and a write.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import Order

logger = logging.getLogger(__name__)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the [start, end) UTC range covering one calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class OrderStore:
    """Data access for orders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **fields: Any) -> Order:
        order = Order(**fields)
        self.db.add(order)
        await self.db.flush()
        await self.db.refresh(order)
        return order

    async def exists(self, order_id: str) -> bool:
        result = await self.db.execute(
            select(func.count(Order.id)).where(Order.order_id == order_id)
        )
        return result.scalar_one() > 0

    async def get_by_order_id(self, order_id: str) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def refresh(self, order_id: str) -> Order:
        """Re-read an order after a bulk UPDATE touched it."""
        order = await self.get_by_order_id(order_id)
        if order is None:
            raise LookupError(f"Order {order_id} vanished after update")
        return order

    async def get_for_customer(self, order_id: str, mobile: str) -> Optional[Order]:
        """Get an order only if it belongs to the given mobile number."""
        result = await self.db.execute(
            select(Order).where(
                Order.order_id == order_id,
                Order.customer_mobile == mobile,
            )
        )
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        day: Optional[date] = None,
        order_id_query: Optional[str] = None,
    ) -> List[Order]:
        """
        List orders, newest first.

        Args:
            day: Only orders created on this (UTC) day
            order_id_query: Case-insensitive substring of the order ID
        """
        query = select(Order)
        if day is not None:
            start, end = day_bounds(day)
            query = query.where(Order.created_at >= start, Order.created_at < end)
        if order_id_query:
            escaped = (
                order_id_query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            )
            query = query.where(Order.order_id.ilike(f"%{escaped}%", escape="\\"))

        result = await self.db.execute(query.order_by(Order.created_at.desc()))
        return list(result.scalars().all())

    async def list_by_mobile(self, mobile: str) -> List[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.customer_mobile == mobile)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def update(self, order_id: str, values: Dict[str, Any]) -> int:
        """Apply values unconditionally. Returns the number of rows matched."""
        result = await self.db.execute(
            update(Order)
            .where(Order.order_id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def update_if_status_in(
        self,
        order_id: str,
        statuses: Iterable[str],
        values: Dict[str, Any],
    ) -> int:
        """Apply values only while the order's status is one of statuses."""
        result = await self.db.execute(
            update(Order)
            .where(Order.order_id == order_id, Order.status.in_(list(statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(self, order_id: str) -> int:
        result = await self.db.execute(
            delete(Order)
            .where(Order.order_id == order_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(f"Deleted order {order_id}")
        return result.rowcount
