"""End-to-end tests through the HTTP API."""
import io
from decimal import Decimal
from pathlib import Path

import pytest
from PIL import Image

from app.config import settings
from app.core.exceptions import NotFound
from app.services.catalog_service import CatalogService
from app.services.order_service import OrderService


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(255, 140, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


PRODUCT_FORM = {
    "name_en": "Flower Pot Big",
    "name_ta": "பூந்தொட்டி பெரியது",
    "price": "200",
    "original_price": "400",
    "category": "Flower Pots",
    "imageUrl": "https://cdn.example.com/pot.png",
}


async def place(client, payload) -> str:
    response = await client.post("/api/v1/orders/place", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["orderId"]


class TestOrderLifecycle:
    async def test_place_track_verify_book(self, client, order_payload):
        order_id = await place(client, order_payload())

        tracked = await client.get(
            "/api/v1/orders/track", params={"orderId": order_id, "mobile": "9876543210"}
        )
        assert tracked.status_code == 200
        body = tracked.json()
        assert body["status"] == "confirmed"
        assert body["customerDetails"]["fullName"] == "Karthik R"
        assert body["paymentScreenshot"] is None
        assert Decimal(body["total"]) == Decimal("130")

        verified = await client.patch(
            f"/api/v1/orders/verify-payment/{order_id}", json={"verified": True}
        )
        assert verified.status_code == 200
        assert verified.json()["order"]["status"] == "payment_verified"

        booked = await client.patch(
            f"/api/v1/orders/update-status/{order_id}",
            json={"transportName": "KPN Travels", "lrNumber": "LR-77"},
        )
        assert booked.status_code == 200
        order = booked.json()["order"]
        assert order["status"] == "booked"
        assert (order["transportName"], order["lrNumber"]) == ("KPN Travels", "LR-77")

    async def test_invalid_transition_error_shape(self, client, order_payload):
        order_id = await place(client, order_payload())
        await client.patch(f"/api/v1/orders/update-status/{order_id}", json={"status": "booked"})

        response = await client.patch(
            f"/api/v1/orders/update-status/{order_id}", json={"status": "confirmed"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "InvalidTransition"
        assert body["path"] == f"/api/v1/orders/update-status/{order_id}"
        assert body["method"] == "PATCH"
        assert "booked" in body["error"]

    async def test_placement_missing_fields(self, client):
        response = await client.post("/api/v1/orders/place", json={"items": []})

        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "MissingFields"
        assert body["fields"] == ["items", "total", "customerDetails"]

    async def test_placement_total_mismatch(self, client, order_payload):
        response = await client.post("/api/v1/orders/place", json=order_payload(total=999))

        assert response.status_code == 400
        assert response.json()["type"] == "InvalidOrder"

    async def test_track_wrong_mobile(self, client, order_payload):
        order_id = await place(client, order_payload())

        response = await client.get(
            "/api/v1/orders/track", params={"orderId": order_id, "mobile": "1111111111"}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Order not found or mobile number does not match"

    async def test_verify_requires_boolean(self, client, order_payload):
        order_id = await place(client, order_payload())

        response = await client.patch(
            f"/api/v1/orders/verify-payment/{order_id}", json={"verified": "yes"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Verified status is required"

    async def test_update_status_for_unknown_order(self, client):
        response = await client.patch(
            "/api/v1/orders/update-status/000000000", json={"status": "booked"}
        )

        assert response.status_code == 404

    async def test_get_single_order(self, client, order_payload):
        order_id = await place(client, order_payload())

        found = await client.get(f"/api/v1/orders/{order_id}")
        missing = await client.get("/api/v1/orders/000000000")

        assert found.json()["orderId"] == order_id
        assert found.json()["items"][0]["nameTa"] == "பூந்தொட்டி"
        assert missing.status_code == 404

    async def test_cancel(self, client, order_payload):
        order_id = await place(client, order_payload())

        first = await client.delete(f"/api/v1/orders/cancel/{order_id}")
        second = await client.delete(f"/api/v1/orders/cancel/{order_id}")

        assert first.status_code == 200
        assert first.json()["orderId"] == order_id
        assert second.status_code == 404

    async def test_listing_and_analytics(self, client, order_payload):
        first = await place(client, order_payload())
        await place(client, order_payload(mobile="9123456789"))

        everything = await client.get("/api/v1/orders")
        filtered = await client.get("/api/v1/orders", params={"orderId": first})
        by_mobile = await client.get("/api/v1/orders/by-mobile/9123456789")
        analytics = await client.get("/api/v1/orders/analytics")

        assert len(everything.json()) == 2
        assert [o["orderId"] for o in filtered.json()] == [first]
        assert [o["customerDetails"]["mobile"] for o in by_mobile.json()] == ["9123456789"]
        assert analytics.json()["totalOrders"] == 2
        assert Decimal(analytics.json()["totalRevenue"]) == Decimal("260")


class TestPaymentScreenshot:
    async def test_upload(self, client, order_payload):
        order_id = await place(client, order_payload())

        response = await client.post(
            "/api/v1/orders/upload-payment",
            data={"orderId": order_id, "mobile": "9876543210"},
            files={"screenshot": ("payment.png", png_bytes(), "image/png")},
        )

        assert response.status_code == 200, response.text
        screenshot = response.json()["order"]["paymentScreenshot"]
        assert screenshot["imageUrl"].startswith("/uploads/payments/")
        assert screenshot["verified"] is False
        assert response.json()["order"]["status"] == "confirmed"

        served = await client.get(screenshot["imageUrl"])
        assert served.status_code == 200
        assert served.content == png_bytes()

    async def test_rejects_non_image(self, client, order_payload):
        order_id = await place(client, order_payload())

        response = await client.post(
            "/api/v1/orders/upload-payment",
            data={"orderId": order_id, "mobile": "9876543210"},
            files={"screenshot": ("payment.png", b"not an image", "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["type"] == "UploadError"

    async def test_missing_screenshot(self, client, order_payload):
        order_id = await place(client, order_payload())

        response = await client.post(
            "/api/v1/orders/upload-payment",
            data={"orderId": order_id, "mobile": "9876543210"},
        )

        assert response.status_code == 400
        assert response.json()["fields"] == ["screenshot"]

    async def test_failed_save_removes_stored_image(self, client, order_payload, monkeypatch):
        order_id = await place(client, order_payload())
        payments_dir = Path(settings.UPLOAD_DIR) / "payments"
        before = set(payments_dir.glob("*")) if payments_dir.exists() else set()

        async def fail(self, *args):
            raise NotFound("Order not found")

        monkeypatch.setattr(OrderService, "record_payment_screenshot", fail)

        response = await client.post(
            "/api/v1/orders/upload-payment",
            data={"orderId": order_id, "mobile": "9876543210"},
            files={"screenshot": ("payment.png", png_bytes(), "image/png")},
        )

        assert response.status_code == 404
        after = set(payments_dir.glob("*")) if payments_dir.exists() else set()
        assert after == before


class TestInvoices:
    async def test_invoice_downloads_once(self, client, order_payload, invoice_dir):
        order_id = await place(client, order_payload())
        assert (invoice_dir / f"{order_id}.html").is_file()

        first = await client.get(f"/api/v1/invoices/{order_id}.html")

        assert first.status_code == 200
        assert order_id in first.text
        assert "Karthik R" in first.text
        assert not (invoice_dir / f"{order_id}.html").exists()

        second = await client.get(f"/api/v1/invoices/{order_id}.html")
        assert second.status_code == 404

    async def test_path_outside_invoice_dir(self, client):
        response = await client.get("/api/v1/invoices/..%2Fapp.db")

        assert response.status_code == 404


class TestCategoriesApi:
    async def test_category_crud(self, client):
        created = await client.post("/api/v1/categories", json={"name": "sky-shots"})
        assert created.status_code == 201
        assert created.json()["name"] == "SKY_SHOTS"
        assert created.json()["displayName"] == "Sky Shots"

        duplicate = await client.post("/api/v1/categories", json={"name": "Sky Shots"})
        assert duplicate.status_code == 409
        assert duplicate.json()["type"] == "DuplicateCategory"

        renamed = await client.put("/api/v1/categories/sky shots", json={"displayName": "Aerial Shots"})
        assert renamed.json()["displayName"] == "Aerial Shots"

        removed = await client.delete("/api/v1/categories/SKY_SHOTS")
        assert removed.json()["isActive"] is False

        active = await client.get("/api/v1/categories")
        everything = await client.get("/api/v1/categories", params={"includeInactive": "true"})
        assert active.json() == []
        assert [c["name"] for c in everything.json()] == ["SKY_SHOTS"]

    async def test_reserved_name(self, client):
        response = await client.post("/api/v1/categories", json={"name": "orders"})

        assert response.status_code == 400
        assert response.json()["type"] == "InvalidCategory"

    async def test_reconcile(self, client):
        await client.post("/api/v1/products", data=PRODUCT_FORM)
        await client.post("/api/v1/categories", json={"name": "Rockets"})

        response = await client.get("/api/v1/categories/reconcile")

        assert response.json() == {
            "orphaned_partitions": ["FLOWER_POTS"],
            "phantom_categories": ["ROCKETS"],
        }


class TestProductsApi:
    async def test_add_with_uploaded_image(self, client):
        form = {k: v for k, v in PRODUCT_FORM.items() if k != "imageUrl"}

        response = await client.post(
            "/api/v1/products",
            data=form,
            files={"image": ("pot.png", png_bytes(), "image/png")},
        )

        assert response.status_code == 201, response.text
        product = response.json()["product"]
        assert product["image_url"].startswith("/uploads/products/")
        assert product["category"] == "FLOWER POTS"

    async def test_add_requires_image(self, client):
        form = {k: v for k, v in PRODUCT_FORM.items() if k != "imageUrl"}

        response = await client.post("/api/v1/products", data=form)

        assert response.status_code == 400
        assert response.json()["error"] == "All fields including image (file or URL) and category are required."

    async def test_incomplete_form_stores_no_image(self, client):
        products_dir = Path(settings.UPLOAD_DIR) / "products"
        before = set(products_dir.glob("*")) if products_dir.exists() else set()
        form = {k: v for k, v in PRODUCT_FORM.items() if k not in ("imageUrl", "name_ta")}

        response = await client.post(
            "/api/v1/products",
            data=form,
            files={"image": ("pot.png", png_bytes(), "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["fields"] == ["name_ta"]
        after = set(products_dir.glob("*")) if products_dir.exists() else set()
        assert after == before

    async def test_listing_get_update_delete(self, client):
        created = (await client.post("/api/v1/products", data=PRODUCT_FORM)).json()["product"]
        product_id = created["id"]

        by_category = await client.get("/api/v1/products/category/flower-pots")
        assert [p["id"] for p in by_category.json()] == [product_id]

        fetched = await client.get(f"/api/v1/products/{product_id}")
        assert fetched.json()["name_en"] == "Flower Pot Big"

        moved = await client.put(
            f"/api/v1/products/{product_id}", json={"category": "Rockets", "price": 99}
        )
        assert moved.status_code == 200
        assert moved.json()["product"]["category"] == "ROCKETS"
        assert Decimal(moved.json()["product"]["price"]) == Decimal("99")
        assert (await client.get("/api/v1/products/category/Flower Pots")).json() == []

        deleted = await client.delete(f"/api/v1/products/{product_id}")
        assert deleted.json() == {"message": "Product deleted successfully", "id": product_id}
        assert (await client.delete(f"/api/v1/products/{product_id}")).status_code == 404

    async def test_unknown_category_lists_empty(self, client):
        response = await client.get("/api/v1/products/category/Ghosts")

        assert response.status_code == 200
        assert response.json() == []

    async def test_listings_are_cached_until_a_write(self, client, registry):
        await client.post("/api/v1/products", data=PRODUCT_FORM)
        assert len((await client.get("/api/v1/products/all")).json()) == 1

        # Written behind the API's back, so the cached listing is stale
        await CatalogService(registry).insert("Rockets", {
            "name_en": "Rocket", "name_ta": "ராக்கெட்", "price": "50", "image_url": "/r.png",
        })
        assert len((await client.get("/api/v1/products/all")).json()) == 1

        await client.post("/api/v1/products", data=PRODUCT_FORM)
        assert len((await client.get("/api/v1/products/all")).json()) == 3

    async def test_home_shows_featured_categories(self, client):
        await client.post("/api/v1/products", data={**PRODUCT_FORM, "category": "Atom Bomb"})
        await client.post("/api/v1/products", data=PRODUCT_FORM)

        response = await client.get("/api/v1/products/home")

        assert [p["category"] for p in response.json()] == ["ATOM BOMB"]

    async def test_apply_discount(self, client):
        created = (await client.post("/api/v1/products", data=PRODUCT_FORM)).json()["product"]

        response = await client.post("/api/v1/products/apply-discount", json={"discount": 25})

        assert response.json() == {"message": "Discount applied to all products.", "updated": 1}
        product = (await client.get(f"/api/v1/products/{created['id']}")).json()
        assert Decimal(product["price"]) == Decimal("300")

    @pytest.mark.parametrize("discount", ["25", True, 150])
    async def test_invalid_discount(self, client, discount):
        response = await client.post("/api/v1/products/apply-discount", json={"discount": discount})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid discount percentage."


class TestNotificationsApi:
    async def test_register_and_send(self, client):
        registered = await client.post(
            "/api/v1/notifications/register-token", json={"token": "device-1", "userId": "admin"}
        )
        assert registered.status_code == 200

        count = await client.get("/api/v1/notifications/tokens-count")
        assert count.json() == {"count": 1}

        sent = await client.post(
            "/api/v1/notifications/send", json={"userId": "admin", "title": "Hello"}
        )
        assert sent.status_code == 200
        assert sent.json()["message"] == "Notification sent successfully"

        multicast = await client.post("/api/v1/notifications/send-to-all", json={"body": "Sale!"})
        assert multicast.json()["successCount"] == 1

    async def test_send_to_unknown_user(self, client):
        response = await client.post(
            "/api/v1/notifications/send", json={"userId": "customer_999", "title": "Hi"}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "User token not found"

    async def test_send_to_all_without_tokens(self, client):
        response = await client.post("/api/v1/notifications/send-to-all", json={})

        assert response.status_code == 404

    async def test_register_requires_token(self, client):
        response = await client.post("/api/v1/notifications/register-token", json={"userId": "admin"})

        assert response.status_code == 400


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "connected"
