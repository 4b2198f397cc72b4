"""
Best-effort follow-up work for order events.

Runs after the order change has been committed (as a FastAPI background
task). Every step logs its own failure and the next step still runs; nothing
here can fail the request that triggered it.
"""
import asyncio
import logging
from typing import Optional

from app.models.order import Order
from app.services.email_service import EmailService
from app.services.invoice_service import InvoiceService
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class OrderNotifier:
    """Invoice, e-mail and push notifications for order events."""

    def __init__(
        self,
        invoices: InvoiceService,
        email: EmailService,
        notifications: NotificationService,
    ):
        self.invoices = invoices
        self.email = email
        self.notifications = notifications

    async def order_placed(self, order: Order) -> None:
        invoice_path = None
        try:
            invoice_path = self.invoices.generate(order)
        except Exception as e:
            logger.error(f"Invoice generation failed for order {order.order_id}: {e}")

        if invoice_path is None:
            logger.warning(f"Email not sent for order {order.order_id} - no invoice")
        elif not self.email.is_configured:
            logger.warning("Email not sent - missing email configuration")
        else:
            try:
                await asyncio.to_thread(
                    self.email.send_invoice_email,
                    order.customer_email,
                    order.order_id,
                    invoice_path,
                    order.customer_name,
                )
            except Exception as e:
                logger.error(f"Email sending failed for order {order.order_id}: {e}")

        try:
            await self.notifications.notify_admin_new_order(
                order.order_id, order.total, order.customer_name
            )
        except Exception as e:
            logger.error(f"Failed to send admin notification for order {order.order_id}: {e}")

    async def status_changed(self, order: Order, transport_name: Optional[str] = None) -> None:
        try:
            await self.notifications.notify_customer_status(
                order.order_id,
                order.customer_mobile,
                order.status,
                transport_name or order.transport_name,
            )
        except Exception as e:
            logger.error(f"Failed to send customer notification for order {order.order_id}: {e}")
