from __future__ import annotations

import logging

from apps.notifications.api import enqueue
from apps.notifications.models import Notification
from .models import Order

log = logging.getLogger(__name__)

TEMPLATE_CODE = "order_confirmation"


def confirmation_idempotency_key(order: Order) -> str:
    return f"{TEMPLATE_CODE}:{order.id}"


def _long_date(d) -> str:
    if not d:
        return ""
    return f"{d:%A, %B} {d.day}, {d:%Y}"


def build_confirmation_payload(order: Order) -> dict:
    items = [
        {
            "title": item.meal.title,
            "quantity": item.quantity,
            "unit_price_cents": item.price_cents_snapshot,
            "line_total_cents": item.line_subtotal_cents,
        }
        for item in order.items.select_related("meal").all()
    ]
    return {
        "name": order.customer_name,
        "order_number": order.order_number,
        "items": items,
        "total_cents": order.total_cents,
        "address": order.shipping_address,
        "city": order.city,
        "state": order.state or "AZ",
        "zip": order.zip_code,
        "phone": order.customer_phone,
        "delivery_date": _long_date(order.delivery_date),
    }


def send_order_confirmation(order: Order) -> Notification | None:
    """Queue the customer's order confirmation email (once per order)."""
    if not order.customer_email:
        log.warning("[orders] Order %s has no email; confirmation skipped", order.order_number)
        return None
    key = confirmation_idempotency_key(order)
    existing = Notification.objects.filter(idempotency_key=key).first()
    if existing:
        log.info("[orders] Confirmation for %s already queued (notification=%s)", order.order_number, existing.id)
        return existing
    return enqueue(
        type="email",
        to=order.customer_email,
        template_code=TEMPLATE_CODE,
        payload=build_confirmation_payload(order),
        idempotency_key=key,
    )
