"""Tests for caching, push notifications, invoices, e-mail and uploads."""
import io
from types import SimpleNamespace
from decimal import Decimal

import httpx
import pytest
from PIL import Image

from app.core.exceptions import NotFound, PushDeliveryError
from app.core.storage import StorageClient
from app.services.cache_service import CacheService, InMemoryCache
from app.services.email_service import EmailService
from app.services.invoice_service import InvoiceService
from app.services.notification_service import (
    NotificationService,
    PushTokenRegistry,
    customer_user_id,
)
from app.services.order_notifications import OrderNotifier
from app.services.upload_service import UploadCategory, UploadError, UploadService


def make_order(**overrides):
    fields = dict(
        order_id="251019001",
        items=[{"name": "Flower Pot <Big>", "price": "50", "quantity": 2}],
        total=Decimal("100"),
        customer_name="Karthik R",
        customer_mobile="9876543210",
        customer_email="karthik@example.com",
        customer_address="12 Gandhi Road",
        customer_pincode="626123",
        status="confirmed",
        transport_name=None,
        created_at=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class RecordingGateway:
    """httpx transport that records push requests."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"messageId": f"msg-{len(self.requests)}"})


@pytest.fixture
def gateway(monkeypatch):
    recorder = RecordingGateway()
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return real_client(transport=httpx.MockTransport(recorder))

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return recorder


class TestCache:
    async def test_product_listing_round_trip_and_invalidation(self, cache):
        await cache.set_product_list({"listing": "all"}, [{"id": "1"}])
        await cache.set_categories([{"name": "ROCKETS"}])

        assert await cache.get_product_list({"listing": "all"}) == [{"id": "1"}]
        assert await cache.invalidate_products() == 1
        assert await cache.get_product_list({"listing": "all"}) is None
        assert await cache.get_categories() == [{"name": "ROCKETS"}]

    async def test_param_order_does_not_matter(self):
        assert CacheService.hash_params({"a": 1, "b": 2}) == CacheService.hash_params({"b": 2, "a": 1})

    async def test_expired_entries_are_dropped(self):
        backend = InMemoryCache()
        await backend.set("k", "v", ttl=-1)

        assert await backend.get("k") is None

    async def test_namespaces_are_isolated(self):
        backend = InMemoryCache()
        first, second = CacheService(backend, "a"), CacheService(backend, "b")
        await first.set_product_list({}, ["x"])

        assert await second.get_product_list({}) is None


class TestPushNotifications:
    async def test_without_gateway_only_logs(self):
        tokens = PushTokenRegistry()
        tokens.register("admin", "device-1")
        service = NotificationService(tokens, gateway_url="")

        assert await service.send_to_user("admin", "Hi", "There") is None

    async def test_send_through_gateway(self, gateway):
        tokens = PushTokenRegistry()
        tokens.register("admin", "device-1")
        service = NotificationService(tokens, gateway_url="https://push.example.com/send", gateway_key="k")

        message_id = await service.send_to_user("admin", "Hi", "There", {"orderId": 7})

        assert message_id == "msg-1"
        request = gateway.requests[0]
        assert request.headers["Authorization"] == "key=k"
        assert b'"orderId": "7"' in request.content or b'"orderId":"7"' in request.content

    async def test_gateway_error(self, gateway):
        gateway.status_code = 500
        tokens = PushTokenRegistry()
        tokens.register("admin", "device-1")
        service = NotificationService(tokens, gateway_url="https://push.example.com/send")

        with pytest.raises(PushDeliveryError):
            await service.send_to_user("admin")

    async def test_multicast_counts_failures(self, gateway):
        gateway.status_code = 400
        tokens = PushTokenRegistry()
        tokens.register("admin", "device-1")
        tokens.register(customer_user_id("9876543210"), "device-2")
        service = NotificationService(tokens, gateway_url="https://push.example.com/send")

        result = await service.send_to_all("Sale", "Today only")

        assert result == {"success_count": 0, "failure_count": 2}

    async def test_unknown_user(self):
        service = NotificationService(PushTokenRegistry(), gateway_url="")

        with pytest.raises(NotFound):
            await service.send_to_user("nobody")

    async def test_customer_status_messages(self, gateway):
        tokens = PushTokenRegistry()
        tokens.register("customer_9876543210", "device-2")
        service = NotificationService(tokens, gateway_url="https://push.example.com/send")

        assert await service.notify_customer_status("251019001", "9876543210", "booked", "KPN")
        assert not await service.notify_customer_status("251019001", "9000000000", "booked")
        assert not await service.notify_customer_status("251019001", "9876543210", "unknown")
        assert b"KPN" in gateway.requests[0].content


class TestOrderNotifier:
    async def test_failures_never_propagate(self, tmp_path, gateway):
        gateway.status_code = 503
        tokens = PushTokenRegistry()
        tokens.register("admin", "device-1")
        notifier = OrderNotifier(
            InvoiceService(invoice_dir=str(tmp_path)),
            EmailService(),
            NotificationService(tokens, gateway_url="https://push.example.com/send"),
        )

        await notifier.order_placed(make_order())

        assert (tmp_path / "251019001.html").is_file()
        assert len(gateway.requests) == 1

    async def test_email_sent_when_configured(self, tmp_path, monkeypatch):
        sent = []
        email = EmailService(smtp_user="shop@example.com", smtp_password="secret")
        monkeypatch.setattr(email, "send_invoice_email", lambda *args: sent.append(args) or True)
        notifier = OrderNotifier(
            InvoiceService(invoice_dir=str(tmp_path)),
            email,
            NotificationService(PushTokenRegistry(), gateway_url=""),
        )

        await notifier.order_placed(make_order())

        assert sent == [("karthik@example.com", "251019001", tmp_path / "251019001.html", "Karthik R")]


class TestInvoice:
    def test_render_escapes_customer_text(self, tmp_path):
        service = InvoiceService(invoice_dir=str(tmp_path), store_name="KM Pyrotech")

        document = service.render(make_order(customer_name="<script>x</script>"))

        assert "&lt;script&gt;" in document
        assert "<script>" not in document
        assert "Flower Pot &lt;Big&gt;" in document
        assert "&#8377;100.00" in document

    def test_path_for_stays_inside_directory(self, tmp_path):
        service = InvoiceService(invoice_dir=str(tmp_path))

        assert service.path_for("251019001.html") == (tmp_path / "251019001.html").resolve()
        assert service.path_for("../secrets.txt") is None


class TestEmail:
    def test_unconfigured_email_is_skipped(self, tmp_path):
        assert EmailService().send_email("a@example.com", "Hi", "<p>Hi</p>") is False

    def test_network_errors_are_reported_as_false(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no smtp here")

        monkeypatch.setattr("smtplib.SMTP", refuse)
        email = EmailService(smtp_user="shop@example.com", smtp_password="secret")

        assert email.send_email("a@example.com", "Hi", "<p>Hi</p>") is False

    def test_invoice_email_escapes_customer_text(self, tmp_path, monkeypatch):
        sent = []
        email = EmailService(smtp_user="shop@example.com", smtp_password="secret")
        monkeypatch.setattr(email, "send_email", lambda *args, **kwargs: sent.append(args) or True)

        email.send_invoice_email(
            "a@example.com", "<i>251019001</i>", tmp_path / "x.html", "<b>Karthik</b>"
        )

        html_content = sent[0][2]
        assert "&lt;b&gt;Karthik&lt;/b&gt;" in html_content
        assert "&lt;i&gt;251019001&lt;/i&gt;" in html_content
        assert "<b>" not in html_content
        assert "<i>" not in html_content


def image_bytes(fmt: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (2, 2)).save(buffer, format=fmt)
    return buffer.getvalue()


class TestUploads:
    @pytest.mark.parametrize("content_type,fmt", [("image/png", "PNG"), ("image/jpeg", "JPEG")])
    def test_valid_images(self, content_type, fmt):
        assert UploadService.validate_image(image_bytes(fmt), content_type, "x") == (True, None)

    def test_rejects_other_types(self):
        valid, error = UploadService.validate_image(image_bytes("GIF"), "image/gif", "x.gif")

        assert not valid
        assert "Invalid image type" in error

    def test_rejects_oversized(self, monkeypatch):
        monkeypatch.setattr("app.services.upload_service.MAX_IMAGE_SIZE", 10)

        valid, error = UploadService.validate_image(image_bytes("PNG"), "image/png", "x.png")

        assert not valid
        assert "too large" in error

    async def test_upload_and_delete(self):
        url = await UploadService.upload_image(
            image_bytes("PNG"), "evil.exe", "image/png", UploadCategory.PRODUCTS
        )

        assert url.startswith("/uploads/products/")
        assert url.endswith(".png")
        assert StorageClient.delete(url) is True
        assert StorageClient.delete(url) is False

    async def test_upload_rejects_garbage(self):
        with pytest.raises(UploadError):
            await UploadService.upload_image(b"garbage", "x.png", "image/png", UploadCategory.PAYMENTS)

    def test_extract_path_from_foreign_url(self):
        assert StorageClient.extract_path_from_url("https://elsewhere.example.com/x.png") is None
