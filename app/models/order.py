import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Integer, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import JSONType, UUIDType


class OrderStatus(str, Enum):
    """Order status enumeration: confirmed -> payment_verified -> booked."""
    CONFIRMED = "confirmed"                # Order placed, waiting for payment verification
    PAYMENT_VERIFIED = "payment_verified"  # Payment screenshot verified by admin
    BOOKED = "booked"                      # Booked for delivery with transport details


class Order(Base):
    """
    Customer order.

    Line items and customer details are written once at placement.
    Status, payment screenshot and transport fields change afterwards.
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="YYMMDD + zero-padded daily sequence, e.g. 251019007"
    )

    # Items: [{"name": ..., "name_ta": ..., "price": "50.00", "quantity": 2}]
    items: Mapped[List[dict]] = mapped_column(JSONType, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_mobile: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_address: Mapped[str] = mapped_column(Text, nullable=False)
    customer_pincode: Mapped[str] = mapped_column(String(10), nullable=False)

    status: Mapped[str] = mapped_column(
        String(30),
        default=OrderStatus.CONFIRMED.value,
        nullable=False,
        index=True,
        comment="confirmed, payment_verified, booked"
    )

    # Payment screenshot
    payment_screenshot_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    payment_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_verified: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    payment_verified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Transport
    transport_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    lr_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def has_payment_screenshot(self) -> bool:
        return self.payment_screenshot_url is not None

    def __repr__(self) -> str:
        return f"<Order(order_id='{self.order_id}', status='{self.status}')>"


class OrderCounter(Base):
    """
    Per-day order sequence.

    One row per date key (YYMMDD). ``seq`` is the last sequence handed out
    for that day and only ever grows.
    """
    __tablename__ = "order_counters"

    date_key: Mapped[str] = mapped_column(String(8), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<OrderCounter(date_key='{self.date_key}', seq={self.seq})>"
