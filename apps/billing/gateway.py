from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import stripe

from apps.orders.conf import PipelineConfig, get_config
from apps.orders.models import Order

log = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
WEBHOOK_TOLERANCE = stripe.Webhook.DEFAULT_TOLERANCE  # seconds


class WebhookVerificationError(Exception):
    pass


class WebhookPayloadError(Exception):
    pass


class CheckoutNotAllowed(Exception):
    pass


@dataclass(frozen=True)
class CheckoutCompleted:
    order_id: str
    session_id: str
    payment_intent: str
    amount_total: int | None


def _line_items(order: Order, currency: str) -> list[dict]:
    return [
        {
            "price_data": {
                "currency": currency,
                "product_data": {"name": item.meal.title},
                "unit_amount": item.price_cents_snapshot,
            },
            "quantity": item.quantity,
        }
        for item in order.items.select_related("meal").all()
    ]


def create_checkout_session(
    order: Order,
    *,
    success_url: str | None = None,
    cancel_url: str | None = None,
    config: PipelineConfig | None = None,
):
    """Open a hosted Checkout Session for a PENDING order and remember its id."""
    config = config or get_config()
    if order.status != Order.STATUS_PENDING:
        raise CheckoutNotAllowed(f"order {order.order_number} is {order.status}")
    success_url = success_url or f"{config.site_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = cancel_url or f"{config.site_url}/checkout/cancel?order={order.id}"

    session = stripe.checkout.Session.create(
        api_key=config.stripe_secret_key or None,
        mode="payment",
        line_items=_line_items(order, config.currency),
        metadata={"orderId": str(order.id)},
        customer_email=order.customer_email or None,
        success_url=success_url,
        cancel_url=cancel_url,
    )
    order.payment_session_id = session.id
    order.save(update_fields=["payment_session_id", "updated_at"])
    log.info("[billing] Created Checkout Session id=%s for order %s", session.id, order.order_number)
    return session


def verify_webhook(
    payload: bytes | str,
    signature: str | None,
    *,
    secret: str,
    tolerance: int = WEBHOOK_TOLERANCE,
) -> dict:
    """Check the Stripe-Signature header and decode the event body.

    Signatures whose timestamp is more than ``tolerance`` seconds old are
    rejected, so a captured event cannot be replayed later.
    """
    if not secret:
        raise WebhookVerificationError("webhook secret is not configured")
    if not signature:
        raise WebhookVerificationError("missing Stripe-Signature header")
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise WebhookVerificationError("payload is not valid UTF-8")
    try:
        stripe.WebhookSignature.verify_header(payload, signature, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookVerificationError(str(e))
    try:
        event = json.loads(payload)
    except ValueError:
        raise WebhookVerificationError("payload is not valid JSON")
    if not isinstance(event, dict):
        raise WebhookVerificationError("payload is not an event object")
    return event


def parse_checkout_completed(event: dict) -> CheckoutCompleted:
    obj = ((event.get("data") or {}).get("object")) or {}
    metadata = obj.get("metadata") or {}
    order_id = metadata.get("orderId")
    if not order_id:
        raise WebhookPayloadError("Order ID not found in metadata")
    return CheckoutCompleted(
        order_id=str(order_id),
        session_id=obj.get("id") or "",
        payment_intent=obj.get("payment_intent") or "",
        amount_total=obj.get("amount_total"),
    )
