"""
Order Sequence Service for Atomic Order ID Generation

FORMAT:
    {YYMMDD}{SEQUENCE}  e.g. 251019007 (7th order of 19 Oct 2025)

- Date part is the server's local date at allocation time
- Sequence restarts with each new date key (one counter row per day)
- Sequence is zero-padded to ORDER_SEQUENCE_WIDTH digits (default 3)

The increment is a single INSERT ... ON CONFLICT DO UPDATE ... RETURNING
statement, so two concurrent placements can never read the same value.
Counter rows are never deleted.

USAGE:
    service = OrderSequenceService(db)
    order_id = await service.next_order_id()
    # Returns: 251019001
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import IdentifierExhausted
from app.models.order import OrderCounter

logger = logging.getLogger(__name__)

DATE_KEY_FORMAT = "%y%m%d"


class OrderSequenceService:
    """
    Service for minting order identifiers from a per-day counter.

    The counter row is created on first use of a date and incremented
    atomically by the database. The row stays locked until the caller's
    transaction commits, so the order insert and the increment land together.
    """

    def __init__(
        self,
        db: AsyncSession,
        width: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            db: Async database session (caller owns the transaction)
            width: Digits in the sequence suffix (default ORDER_SEQUENCE_WIDTH)
            clock: Returns the current local time; injectable for tests
        """
        self.db = db
        self.width = width or settings.ORDER_SEQUENCE_WIDTH
        self.clock = clock or datetime.now

    @property
    def max_sequence(self) -> int:
        return 10 ** self.width - 1

    def current_date_key(self) -> str:
        return self.clock().strftime(DATE_KEY_FORMAT)

    def format_order_id(self, date_key: str, seq: int) -> str:
        return f"{date_key}{str(seq).zfill(self.width)}"

    def _upsert_statement(self, date_key: str):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise RuntimeError(f"Atomic order counter not supported on '{dialect}'")

        stmt = insert(OrderCounter).values(date_key=date_key, seq=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OrderCounter.date_key],
            set_={
                "seq": OrderCounter.seq + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        return stmt.returning(OrderCounter.seq)

    async def next_order_id(self) -> str:
        """
        Allocate the next order identifier for today.

        Returns:
            Formatted identifier, e.g. 251019001

        Raises:
            IdentifierExhausted: If today's sequence no longer fits the suffix width
        """
        date_key = self.current_date_key()
        result = await self.db.execute(self._upsert_statement(date_key))
        seq = result.scalar_one()

        if seq > self.max_sequence:
            logger.error(f"Order sequence for {date_key} exhausted at {seq}")
            raise IdentifierExhausted(
                f"Order sequence for {date_key} exceeded {self.max_sequence}"
            )

        order_id = self.format_order_id(date_key, seq)
        logger.info(f"Allocated order ID {order_id}")
        return order_id

    async def get_current_sequence(self, date_key: Optional[str] = None) -> int:
        """Get the last sequence handed out for a day (0 if none yet)."""
        date_key = date_key or self.current_date_key()
        result = await self.db.execute(
            select(OrderCounter.seq).where(OrderCounter.date_key == date_key)
        )
        return result.scalar_one_or_none() or 0

    async def preview_next_order_id(self) -> str:
        """Preview what the next identifier would be without incrementing."""
        date_key = self.current_date_key()
        current = await self.get_current_sequence(date_key)
        return self.format_order_id(date_key, current + 1)
