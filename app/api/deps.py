from typing import Annotated
import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.cache_service import CacheService, get_cache
from app.services.email_service import get_email_service
from app.services.invoice_service import InvoiceService
from app.services.notification_service import NotificationService, PushTokenRegistry
from app.services.order_notifications import OrderNotifier
from app.services.partition_registry import PartitionRegistry


logger = logging.getLogger(__name__)


def get_partition_registry(request: Request) -> PartitionRegistry:
    """The application's partition registry (created in app.main)."""
    return request.app.state.partition_registry


def get_push_tokens(request: Request) -> PushTokenRegistry:
    return request.app.state.push_tokens


def get_cache_service() -> CacheService:
    return get_cache()


def get_invoice_service() -> InvoiceService:
    return InvoiceService()


def get_notification_service(
    tokens: Annotated[PushTokenRegistry, Depends(get_push_tokens)],
) -> NotificationService:
    return NotificationService(tokens)


def get_order_notifier(
    invoices: Annotated[InvoiceService, Depends(get_invoice_service)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> OrderNotifier:
    return OrderNotifier(invoices, get_email_service(), notifications)


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
Registry = Annotated[PartitionRegistry, Depends(get_partition_registry)]
Cache = Annotated[CacheService, Depends(get_cache_service)]
Invoices = Annotated[InvoiceService, Depends(get_invoice_service)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]
Notifier = Annotated[OrderNotifier, Depends(get_order_notifier)]
