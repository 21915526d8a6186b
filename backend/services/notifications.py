# backend/services/notifications.py
"""Order confirmation email, sent after the order response has gone out."""
import html
import logging
from typing import Any, Dict, Optional

from models.order import Order
from utils import email_client as email_module

logger = logging.getLogger(__name__)


def order_snapshot(order: Order) -> Dict[str, Any]:
    """Plain copy of everything the email needs; the request's session is gone by send time."""
    return {
        "order_number": order.order_number,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "delivery_date": order.delivery_date.date().isoformat() if order.delivery_date else None,
        "delivery_time_slot": order.delivery_time_slot,
        "delivery_address": dict(order.delivery_address or {}),
        "gift_message": order.gift_message,
        "subtotal": order.subtotal,
        "tax_amount": order.tax_amount,
        "shipping_amount": order.shipping_amount,
        "discount_amount": order.discount_amount,
        "total_amount": order.total_amount,
        "currency": order.currency,
        "customer_email": order.customer_email,
        "customer_name": order.customer_name,
        "items": [
            {
                "name": it.product_name or "Custom Bouquet",
                "quantity": it.quantity,
                "total_price": it.total_price,
            }
            for it in order.items
        ],
    }


def _money(value: Optional[float]) -> str:
    return f"${(value or 0):.2f}"


def render_confirmation(snapshot: Dict[str, Any]) -> str:
    e = html.escape
    rows = "".join(
        f"<tr><td><strong>{e(item['name'])}</strong><br>Qty: {item['quantity']}</td>"
        f"<td style=\"text-align: right;\">{_money(item['total_price'])}</td></tr>"
        for item in snapshot["items"]
    )

    addr = snapshot["delivery_address"]
    address_lines = [
        f"{addr.get('first_name', '')} {addr.get('last_name', '')}".strip(),
        addr.get("address_line_1", ""),
        addr.get("address_line_2") or "",
        f"{addr.get('city', '')}, {addr.get('state', '')} {addr.get('postal_code', '')}",
        addr.get("country", ""),
    ]
    address_html = "<br>".join(e(line) for line in address_lines if line)

    details = [f"<p><strong>Order Number:</strong> {e(snapshot['order_number'])}</p>"]
    if snapshot.get("delivery_date"):
        details.append(f"<p><strong>Delivery Date:</strong> {e(snapshot['delivery_date'])}</p>")
    if snapshot.get("delivery_time_slot"):
        details.append(f"<p><strong>Time Slot:</strong> {e(snapshot['delivery_time_slot'])}</p>")

    totals = [
        ("Subtotal", _money(snapshot["subtotal"])),
        ("Shipping", _money(snapshot["shipping_amount"])),
        ("Tax", _money(snapshot["tax_amount"])),
    ]
    if snapshot.get("discount_amount"):
        totals.append(("Discount", f"-{_money(snapshot['discount_amount'])}"))
    totals.append(("Total", _money(snapshot["total_amount"])))
    totals_html = "".join(
        f"<tr><td>{label}:</td><td style=\"text-align: right;\">{value}</td></tr>" for label, value in totals
    )

    gift = ""
    if snapshot.get("gift_message"):
        gift = f"<h3>Gift Message</h3><p><em>\"{e(snapshot['gift_message'])}\"</em></p>"

    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Order Confirmation</title></head>"
        "<body style=\"font-family: sans-serif;\"><div style=\"max-width: 600px; margin: 0 auto;\">"
        "<h1 style=\"color: #d4a574;\">Petal Place</h1>"
        f"<p>Hi {e(snapshot.get('customer_name') or '')},<br>"
        "We've received your order and it's being prepared with care.</p>"
        f"{''.join(details)}"
        f"<table style=\"width: 100%;\">{rows}</table>"
        f"<table style=\"width: 100%;\">{totals_html}</table>"
        f"<h3>Delivery Address</h3><p>{address_html}</p>"
        f"{gift}"
        "</div></body></html>"
    )


async def send_order_confirmation(snapshot: Dict[str, Any]) -> bool:
    """Send the confirmation email. Never raises; returns whether it was sent."""
    client = email_module.email_client
    if not client.enabled:
        logger.info("RESEND_API_KEY not set, skipping confirmation for %s", snapshot.get("order_number"))
        return False
    if not snapshot.get("customer_email"):
        logger.warning("No customer email on order %s", snapshot.get("order_number"))
        return False
    try:
        await client.send_email(
            to=[snapshot["customer_email"]],
            subject=f"Order Confirmed - {snapshot['order_number']}",
            html=render_confirmation(snapshot),
        )
    except Exception:
        logger.exception("Error sending confirmation email for %s", snapshot.get("order_number"))
        return False
    logger.info("Confirmation email sent to: %s", snapshot["customer_email"])
    return True
