"""
Push notifications.

Devices register a push token under a user key:

    admin                 -> the shop owner's device (new order alerts)
    customer_{mobile}     -> a customer's device (order status updates)

Tokens live in memory for the life of the process (one PushTokenRegistry
per application, on app.state). Delivery goes through the HTTP push gateway
at PUSH_GATEWAY_URL; without one, notifications are only logged.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.exceptions import NotFound, PushDeliveryError

logger = logging.getLogger(__name__)

ADMIN_USER_ID = "admin"
DEFAULT_TITLE = settings.STORE_NAME
DEFAULT_BODY = "You have a new notification"


def customer_user_id(mobile: str) -> str:
    return f"customer_{mobile}"


class PushTokenRegistry:
    """In-process userId -> push token map."""

    def __init__(self):
        self._tokens: Dict[str, str] = {}

    def register(self, user_id: str, token: str) -> None:
        self._tokens[user_id] = token
        logger.info(f"Push token registered for user: {user_id}")

    def get(self, user_id: str) -> Optional[str]:
        return self._tokens.get(user_id)

    def tokens(self) -> List[str]:
        return list(self._tokens.values())

    def __len__(self) -> int:
        return len(self._tokens)


class NotificationService:
    """Sends push notifications to registered devices."""

    def __init__(
        self,
        tokens: PushTokenRegistry,
        gateway_url: Optional[str] = None,
        gateway_key: Optional[str] = None,
        timeout: float = 10.0
    ):
        self.tokens = tokens
        self.gateway_url = gateway_url if gateway_url is not None else settings.PUSH_GATEWAY_URL
        self.gateway_key = gateway_key if gateway_key is not None else settings.PUSH_GATEWAY_KEY
        self.timeout = timeout

    async def _send_push_notification(
        self,
        device_token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Deliver one notification through the push gateway.

        Returns:
            The gateway's message id, or None when no gateway is configured

        Raises:
            PushDeliveryError: If the gateway rejects the message or is unreachable
        """
        payload = {
            "token": device_token,
            "notification": {"title": title, "body": body},
            # Push payload data values must be strings
            "data": {k: str(v) for k, v in (data or {}).items()},
        }

        if not self.gateway_url:
            logger.info(f"[PUSH] Sending: Title={title}, Body={body[:50]}...")
            return None

        headers = {"Authorization": f"key={self.gateway_key}"} if self.gateway_key else {}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.gateway_url, json=payload, headers=headers, timeout=self.timeout
                )
        except httpx.HTTPError as e:
            logger.error(f"Push gateway unreachable: {e}")
            raise PushDeliveryError("Failed to send notification")

        if response.status_code >= 400:
            logger.error(f"Push gateway error: {response.status_code} - {response.text}")
            raise PushDeliveryError("Failed to send notification")

        result = response.json() if response.content else {}
        return result.get("messageId") or result.get("name")

    async def send_to_user(
        self,
        user_id: str,
        title: Optional[str] = None,
        body: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        token = self.tokens.get(user_id)
        if not token:
            raise NotFound("User token not found")

        message_id = await self._send_push_notification(
            token, title or DEFAULT_TITLE, body or DEFAULT_BODY, data
        )
        logger.info(f"Push notification sent to {user_id}")
        return message_id

    async def send_to_all(
        self,
        title: Optional[str] = None,
        body: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, int]:
        """Send to every registered device; individual failures are counted."""
        tokens = self.tokens.tokens()
        if not tokens:
            raise NotFound("No registered tokens found")

        results = await asyncio.gather(
            *(
                self._send_push_notification(
                    token, title or DEFAULT_TITLE, body or DEFAULT_BODY, data
                )
                for token in tokens
            ),
            return_exceptions=True,
        )
        failures = sum(1 for r in results if isinstance(r, Exception))
        logger.info(f"Multicast notification: {len(tokens) - failures} sent, {failures} failed")
        return {"success_count": len(tokens) - failures, "failure_count": failures}

    # ==================== ORDER EVENTS ====================

    async def notify_admin_new_order(
        self,
        order_id: str,
        total: Any,
        customer_name: str
    ) -> bool:
        """Alert the shop owner about a new order. Returns False when no admin device is registered."""
        token = self.tokens.get(ADMIN_USER_ID)
        if not token:
            logger.warning("Admin notification not sent - no admin push token registered")
            return False

        await self._send_push_notification(
            token,
            "New Order Received!",
            f"Order {order_id} - Rs.{total} from {customer_name}",
            {
                "orderId": order_id,
                "total": total,
                "customerName": customer_name,
                "type": "new_order",
            },
        )
        logger.info(f"Admin notification sent for new order {order_id}")
        return True

    async def notify_customer_status(
        self,
        order_id: str,
        mobile: str,
        status: str,
        transport_name: Optional[str] = None
    ) -> bool:
        """Tell the customer their order moved. Returns False when nothing was sent."""
        token = self.tokens.get(customer_user_id(mobile))
        if not token:
            return False

        messages = {
            "confirmed": (
                "Order Confirmed!",
                f"Your order {order_id} has been confirmed and is being processed.",
            ),
            "payment_verified": (
                "Payment Verified!",
                f"Your payment for order {order_id} has been verified successfully.",
            ),
            "booked": (
                "Order Booked for Delivery!",
                f"Your order {order_id} has been booked for delivery. Transport: {transport_name or ''}",
            ),
        }
        if status not in messages:
            return False

        title, body = messages[status]
        await self._send_push_notification(
            token,
            title,
            body,
            {"orderId": order_id, "status": status, "type": "order_status_update"},
        )
        logger.info(f"Customer notification sent for order {order_id} status: {status}")
        return True
