"""
Invoice documents for placed orders.

Invoices are rendered as standalone HTML files under INVOICE_DIR, named
``{order_id}.html``. They are e-mailed to the customer and can be downloaded
once through ``GET /api/v1/invoices/{filename}``, after which the file is
removed.
"""
import html
import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from app.config import settings
from app.models.order import Order

logger = logging.getLogger(__name__)


class InvoiceService:
    """Renders and stores order invoices."""

    def __init__(self, invoice_dir: Optional[str] = None, store_name: Optional[str] = None):
        self.invoice_dir = Path(invoice_dir or settings.INVOICE_DIR)
        self.store_name = store_name or settings.STORE_NAME

    @staticmethod
    def filename_for(order_id: str) -> str:
        return f"{order_id}.html"

    def path_for(self, filename: str) -> Optional[Path]:
        """Resolve a download name to a file inside INVOICE_DIR (None if it escapes it)."""
        base = self.invoice_dir.resolve()
        candidate = (base / filename).resolve()
        if candidate.parent != base:
            return None
        return candidate

    def render(self, order: Order) -> str:
        """Generate the HTML invoice for an order."""
        e = html.escape
        rows_html = ""
        for i, item in enumerate(order.items, 1):
            price = Decimal(str(item["price"]))
            quantity = int(item["quantity"])
            rows_html += f"""
            <tr>
                <td style="text-align: center;">{i}.</td>
                <td>{e(str(item.get("name", "")))}</td>
                <td style="text-align: center;">{quantity}</td>
                <td style="text-align: right;">&#8377;{price:,.2f}</td>
                <td style="text-align: right;">&#8377;{price * quantity:,.2f}</td>
            </tr>
            """

        created = order.created_at or datetime.now()
        store = e(self.store_name)

        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8"/>
            <title>{store} Invoice {e(order.order_id)}</title>
            <style>
                body {{ font-family: Arial, sans-serif; font-size: 13px; margin: 24px; color: #222; }}
                h1 {{ color: #d97706; text-align: center; text-decoration: underline; }}
                .box {{ border: 2px solid #d97706; border-radius: 12px; padding: 16px; }}
                .section-title {{ color: #d97706; font-weight: bold; font-size: 15px; margin: 12px 0 8px; }}
                .details-table {{ width: 100%; }}
                .details-table td {{ padding: 4px; vertical-align: top; width: 50%; }}
                .data-table {{ width: 100%; border-collapse: collapse; margin-top: 8px; }}
                .data-table th {{ color: #d97706; border-bottom: 1px solid #d97706; padding: 6px; }}
                .data-table td {{ padding: 6px; }}
                .summary {{ margin-top: 16px; display: flex; justify-content: space-between; font-weight: bold; }}
                .total {{ color: #d97706; font-size: 17px; }}
                .footer {{ margin-top: 24px; text-align: center; color: #16a34a; font-weight: bold; }}
            </style>
        </head>
        <body>
            <h1>{store} Invoice</h1>
            <div class="box">
                <div class="section-title">Customer Information</div>
                <table class="details-table">
                    <tr>
                        <td>Order ID: {e(order.order_id)}</td>
                        <td>Date: {created.strftime("%d/%m/%Y, %I:%M %p")}</td>
                    </tr>
                    <tr>
                        <td>Name: {e(order.customer_name)}</td>
                        <td>Email: {e(order.customer_email)}</td>
                    </tr>
                    <tr>
                        <td>Mobile: {e(order.customer_mobile)}</td>
                        <td>Pincode: {e(order.customer_pincode)}</td>
                    </tr>
                    <tr>
                        <td colspan="2">Address: {e(order.customer_address)}</td>
                    </tr>
                </table>

                <div class="section-title">Order Items</div>
                <table class="data-table">
                    <thead>
                        <tr>
                            <th>No.</th>
                            <th>Product Name</th>
                            <th>Qty</th>
                            <th>Price</th>
                            <th>Total</th>
                        </tr>
                    </thead>
                    <tbody>
                        {rows_html}
                    </tbody>
                </table>

                <div class="summary">
                    <span>Order Status: {e(order.status or "confirmed")}</span>
                    <span class="total">Total Amount: &#8377;{Decimal(order.total):,.2f}</span>
                </div>
            </div>

            <div class="footer">
                <p>Thank you for shopping with {store}!</p>
                <p>Wishing you a safe and sparkling festival!</p>
            </div>
        </body>
        </html>
        """

    def generate(self, order: Order) -> Path:
        """Render the invoice and write it to INVOICE_DIR."""
        self.invoice_dir.mkdir(parents=True, exist_ok=True)
        path = self.invoice_dir / self.filename_for(order.order_id)
        path.write_text(self.render(order), encoding="utf-8")
        logger.info(f"Invoice generated for order {order.order_id}: {path}")
        return path
