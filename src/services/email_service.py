"""Email service using Resend for transactional emails."""

import logging
from decimal import Decimal
from html import escape
from typing import Any

import resend

from src.core.config import get_settings

logger = logging.getLogger(__name__)

BRAND_COLOR = "#1a5c4b"
ACCENT_COLOR = "#c9a45c"


def format_gbp(amount: Any) -> str:
    """Format an amount as pounds, e.g. 56.99 -> £56.99."""
    return f"£{Decimal(str(amount or 0)):,.2f}"


def _customer_name(order: dict[str, Any]) -> str:
    customer = order.get("customer") or {}
    name = " ".join(p for p in (customer.get("first_name"), customer.get("last_name")) if p)
    return name or "there"


def _items_rows(items: list[dict[str, Any]]) -> str:
    rows = []
    for item in items:
        rows.append(
            f"""
            <tr>
                <td style="padding: 8px 0; border-bottom: 1px solid #e5e7eb;">{escape(item.get("product_name") or "")}</td>
                <td style="padding: 8px 0; border-bottom: 1px solid #e5e7eb; text-align: center;">{item.get("quantity")}</td>
                <td style="padding: 8px 0; border-bottom: 1px solid #e5e7eb; text-align: right;">{format_gbp(item.get("total"))}</td>
            </tr>"""
        )
    return "".join(rows)


def _totals_rows(order: dict[str, Any]) -> str:
    shipping = Decimal(str(order.get("shipping_amount") or 0))
    rows = [
        ("Subtotal", format_gbp(order.get("subtotal"))),
        ("VAT (20%)", format_gbp(order.get("tax_amount"))),
        ("Shipping", "Free" if shipping == 0 else format_gbp(shipping)),
    ]
    if Decimal(str(order.get("discount_amount") or 0)) > 0:
        rows.append(("Discount", f"-{format_gbp(order.get('discount_amount'))}"))
    html = "".join(
        f'<tr><td style="padding: 4px 0; color: #6b7280;">{label}</td>'
        f'<td style="padding: 4px 0; text-align: right;">{value}</td></tr>'
        for label, value in rows
    )
    html += (
        '<tr><td style="padding: 8px 0; font-weight: 600;">Total</td>'
        f'<td style="padding: 8px 0; text-align: right; font-weight: 600;">{format_gbp(order.get("total"))}</td></tr>'
    )
    return html


def _address_block(address: dict[str, Any] | None) -> str:
    if not address:
        return ""
    parts = [
        " ".join(p for p in (address.get("first_name"), address.get("last_name")) if p),
        address.get("company"),
        address.get("address_line_1"),
        address.get("address_line_2"),
        address.get("city"),
        address.get("county"),
        address.get("postcode"),
        address.get("country"),
    ]
    return "<br>".join(escape(p) for p in parts if p)


class EmailService:
    """Service for sending transactional emails via Resend.

    Send failures are logged and returned, never raised; callers treat
    email as fire-and-forget.
    """

    def __init__(self) -> None:
        """Initialize email service with Resend API key."""
        settings = get_settings()
        resend.api_key = settings.resend_api_key
        self.from_email = settings.email_from_address
        self.reply_to = settings.email_reply_to
        self.frontend_url = settings.frontend_url
        self.admin_emails = settings.admin_emails_list

    def _send(self, to: list[str], subject: str, html: str, text: str | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "from": self.from_email,
            "to": to,
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text
        if self.reply_to:
            params["reply_to"] = self.reply_to
        return resend.Emails.send(params)

    async def send_order_confirmation(self, order: dict[str, Any]) -> dict[str, Any]:
        """Send the order confirmation email to the customer.

        Args:
            order: Order with ``customer``, ``items``, addresses and totals.

        Returns:
            dict: ``success`` and the Resend email ID or error.
        """
        customer = order.get("customer") or {}
        to_email = customer.get("email")
        if not to_email:
            return {"success": False, "error": "Order has no customer email"}

        order_number = order.get("order_number") or ""
        confirmation_url = f"{self.frontend_url}/order-confirmation/{order_number}"
        name = escape(_customer_name(order))

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Order Confirmed</title>
</head>
<body style="font-family: Georgia, 'Times New Roman', serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: {BRAND_COLOR}; padding: 30px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: {ACCENT_COLOR}; margin: 0; font-size: 24px;">Thank you for your order</h1>
        <p style="color: white; margin: 8px 0 0;">Order {escape(order_number)}</p>
    </div>

    <div style="background: #fdfbf7; padding: 30px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
        <p style="font-size: 16px;">Assalamu alaikum {name},</p>
        <p style="font-size: 14px; color: #6b7280;">
            We have received your order and will let you know as soon as it ships.
            Made-to-order pieces are crafted by hand and may take a little longer.
        </p>

        <table style="width: 100%; border-collapse: collapse; font-size: 14px; margin: 20px 0;">
            <tr>
                <th style="text-align: left; padding-bottom: 8px;">Item</th>
                <th style="text-align: center; padding-bottom: 8px;">Qty</th>
                <th style="text-align: right; padding-bottom: 8px;">Total</th>
            </tr>
            {_items_rows(order.get("items") or [])}
        </table>

        <table style="width: 100%; font-size: 14px;">
            {_totals_rows(order)}
        </table>

        <h3 style="font-size: 15px; margin-top: 25px;">Shipping to</h3>
        <p style="font-size: 14px; color: #6b7280;">{_address_block(order.get("shipping_address"))}</p>

        <div style="text-align: center; margin: 30px 0;">
            <a href="{confirmation_url}" style="background: {BRAND_COLOR}; color: white; padding: 14px 32px; text-decoration: none; border-radius: 8px; font-weight: 600; font-size: 16px; display: inline-block;">
                View Your Order
            </a>
        </div>
    </div>
</body>
</html>
"""

        text_content = f"""
Thank you for your order, {_customer_name(order)}!

Order number: {order_number}
Total: {format_gbp(order.get("total"))}

View your order here:
{confirmation_url}
"""

        try:
            response = self._send(
                [to_email],
                f"Your Ashhadu order {order_number} is confirmed",
                html_content,
                text_content,
            )
            logger.info("Order confirmation sent to %s for %s, id: %s", to_email, order_number, response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send order confirmation for %s: %s", order_number, str(e))
            return {"success": False, "error": str(e)}

    async def send_admin_order_alert(self, order: dict[str, Any]) -> dict[str, Any]:
        """Alert the shop admins that a new paid order arrived."""
        if not self.admin_emails:
            return {"success": False, "error": "No admin notification addresses configured"}

        order_number = order.get("order_number") or ""
        customer = order.get("customer") or {}
        admin_url = f"{self.frontend_url}/admin/orders/{order.get('id')}"

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>New Order</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: {BRAND_COLOR};">New order {escape(order_number)}</h2>
    <p>
        <strong>{escape(_customer_name(order))}</strong> ({escape(customer.get("email") or "")})<br>
        Payment: {escape(order.get("payment_method") or "")} / {escape(order.get("payment_status") or "")}<br>
        Total: <strong>{format_gbp(order.get("total"))}</strong>
    </p>

    <table style="width: 100%; border-collapse: collapse; font-size: 14px;">
        {_items_rows(order.get("items") or [])}
    </table>

    <p style="margin-top: 25px;"><a href="{admin_url}" style="color: {BRAND_COLOR};">Open in admin</a></p>
</body>
</html>
"""

        try:
            response = self._send(
                self.admin_emails,
                f"New order {order_number} - {format_gbp(order.get('total'))}",
                html_content,
            )
            logger.info("Admin alert sent for order %s", order_number)
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send admin alert for %s: %s", order_number, str(e))
            return {"success": False, "error": str(e)}

    async def send_welcome_email(
        self,
        to_email: str,
        first_name: str | None = None,
    ) -> dict[str, Any]:
        """Send a welcome email to a new customer.

        Args:
            to_email: Recipient email address.
            first_name: Customer's first name (optional).

        Returns:
            dict: Resend API response.
        """
        name = escape(first_name or "there")

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Welcome to Ashhadu</title>
</head>
<body style="font-family: Georgia, 'Times New Roman', serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="text-align: center; padding: 30px 0;">
        <h1 style="color: {BRAND_COLOR}; margin-bottom: 10px;">Welcome to Ashhadu Islamic Art</h1>
        <p style="font-size: 18px; color: #6b7280;">Assalamu alaikum {name}, we're delighted to have you.</p>
    </div>

    <div style="background: #fdfbf7; padding: 25px; border-radius: 10px; margin: 20px 0;">
        <p>Explore handcrafted Arabic calligraphy and 3D-printed Islamic art for your home.</p>
        <p>Your account keeps your addresses and saved payment methods ready for a quicker checkout.</p>
    </div>

    <div style="text-align: center; margin: 30px 0;">
        <a href="{self.frontend_url}/shop" style="background: {BRAND_COLOR}; color: white; padding: 12px 28px; text-decoration: none; border-radius: 6px; font-weight: 600;">
            Browse the Collection
        </a>
    </div>
</body>
</html>
"""

        try:
            response = self._send([to_email], "Welcome to Ashhadu Islamic Art", html_content)

            logger.info("Welcome email sent to %s", to_email)
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send welcome email to %s: %s", to_email, str(e))
            return {"success": False, "error": str(e)}


def get_email_service() -> EmailService:
    """Get email service instance."""
    return EmailService()
