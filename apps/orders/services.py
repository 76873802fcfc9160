from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import requests
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.accounting.services import sync_accounting
from apps.common.codes import generate_order_number
from .captcha import verify_captcha
from .conf import PipelineConfig, get_config
from .exceptions import OrderNotFound, OrderNumberCollision, OrderRejected
from .forms import PendingOrderData
from .models import Delivery, Order, OrderItem
from .notifications import send_order_confirmation
from .zones import is_serviceable_zip

log = logging.getLogger(__name__)

DELIVERY_ZONE_MESSAGE = "We currently only deliver within a 25-mile radius of Scottsdale, AZ."
MINIMUM_ORDER_MESSAGE = "Minimum order requirement not met. You must order at least {minimum} meals."
SECURITY_CHECK_MESSAGE = "Security check failed. Please refresh and try again."


@dataclass
class SideEffectOutcome:
    name: str
    ok: bool
    result: Any = None
    error: str = ""


@dataclass
class ConfirmationResult:
    order: Order
    transitioned: bool
    outcomes: list[SideEffectOutcome] = field(default_factory=list)

    def outcome(self, name: str) -> SideEffectOutcome | None:
        return next((o for o in self.outcomes if o.name == name), None)


# ------------------- Pending order creation -------------------

def _check_captcha(data: PendingOrderData, config: PipelineConfig, remote_ip: str | None) -> None:
    if not data.captcha_token or not config.recaptcha_secret_key:
        return
    try:
        ok = verify_captcha(data.captcha_token, secret=config.recaptcha_secret_key, remote_ip=remote_ip)
    except (requests.RequestException, ValueError):
        log.warning("[orders] reCAPTCHA verification unavailable; rejecting order", exc_info=True)
        ok = False
    if not ok:
        raise OrderRejected(OrderRejected.SECURITY_CHECK, SECURITY_CHECK_MESSAGE)


def validate_pending_order(data: PendingOrderData, *, config: PipelineConfig, remote_ip: str | None = None) -> None:
    """Business-policy checks, in order; the first failure wins."""
    if not is_serviceable_zip(data.zip_code, config.service_zips):
        raise OrderRejected(OrderRejected.DELIVERY_ZONE, DELIVERY_ZONE_MESSAGE)
    if data.total_quantity < config.minimum_order_quantity:
        raise OrderRejected(
            OrderRejected.MINIMUM_ORDER,
            MINIMUM_ORDER_MESSAGE.format(minimum=config.minimum_order_quantity),
        )
    _check_captcha(data, config, remote_ip)


def _persist_order(data: PendingOrderData, order_number: str, user) -> Order:
    with transaction.atomic():
        order = Order.objects.create(
            order_number=order_number,
            user=user if getattr(user, "is_authenticated", False) else None,
            status=Order.STATUS_PENDING,
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            shipping_address=data.shipping_address,
            city=data.city,
            zip_code=data.zip_code,
            delivery_date=data.delivery_date,
            total_cents=data.total_cents,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                meal_id=line.meal_id,
                position=pos,
                quantity=line.quantity,
                price_cents_snapshot=line.price_cents,
                line_subtotal_cents=line.line_subtotal_cents,
            )
            for pos, line in enumerate(data.lines)
        ])
    return order


def create_pending_order(
    data: PendingOrderData,
    *,
    user=None,
    config: PipelineConfig | None = None,
    remote_ip: str | None = None,
) -> Order:
    """Validate and persist a PENDING order with its items in one atomic write.

    An order-number collision on the unique constraint is retried with a new
    number; any other persistence error propagates with nothing written.
    """
    config = config or get_config()
    validate_pending_order(data, config=config, remote_ip=remote_ip)

    for attempt in range(1, config.order_number_max_attempts + 1):
        order_number = generate_order_number(config.order_number_prefix)
        try:
            order = _persist_order(data, order_number, user)
        except IntegrityError:
            if not Order.objects.filter(order_number=order_number).exists():
                raise
            log.warning("[orders] Order number collision on %s (attempt %s)", order_number, attempt)
            continue
        log.info(
            "[orders] Created pending order %s id=%s items=%s total_cents=%s",
            order.order_number, order.id, len(data.lines), order.total_cents,
        )
        return order
    raise OrderNumberCollision("could not allocate a unique order number")


# ------------------- Confirmation -------------------

def run_best_effort(name: str, fn: Callable[..., Any], *args, **kwargs) -> SideEffectOutcome:
    """Run a side effect in its own savepoint; failures are logged, never raised."""
    try:
        with transaction.atomic():
            result = fn(*args, **kwargs)
    except Exception as e:
        log.exception("[orders] Side effect %s failed (ignored)", name)
        return SideEffectOutcome(name=name, ok=False, error=str(e) or e.__class__.__name__)
    return SideEffectOutcome(name=name, ok=True, result=result)


def _parse_order_id(order_id) -> uuid.UUID:
    try:
        return uuid.UUID(str(order_id))
    except (TypeError, ValueError):
        raise OrderNotFound(order_id)


def confirm_order_payment(
    order_id,
    *,
    session_id: str = "",
    payment_intent: str = "",
    source: str = "stripe_webhook",
) -> ConfirmationResult:
    """Mark an order PAID exactly once, then fire the post-payment side effects.

    Re-delivery of the same event is a no-op on the order row. Storage errors
    during the transition propagate so the gateway retries.
    """
    pk = _parse_order_id(order_id)
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=pk).first()
        if order is None:
            raise OrderNotFound(order_id)
        transitioned = False
        if order.status == Order.STATUS_PENDING:
            order.payment_session_id = session_id or order.payment_session_id
            order.payment_intent_id = payment_intent or order.payment_intent_id
            order.paid_at = timezone.now()
            order.set_status(
                Order.STATUS_PAID,
                source=source,
                fields=["payment_session_id", "payment_intent_id", "paid_at"],
            )
            transitioned = True
            log.info("[orders] Order %s marked paid (session=%s)", order.order_number, session_id or "-")
        else:
            log.info("[orders] Order %s already %s; transition skipped", order.order_number, order.status)

    result = ConfirmationResult(order=order, transitioned=transitioned)
    if order.status != Order.STATUS_PAID:
        # Already past PAID: fulfillment has moved on, nothing left to trigger
        return result

    result.outcomes = [
        run_best_effort("delivery", materialize_deliveries, [order.pk]),
        run_best_effort("notification", send_order_confirmation, order),
        run_best_effort("accounting", sync_accounting),
    ]
    return result


# ------------------- Deliveries -------------------

def materialize_deliveries(order_ids: Iterable | None = None) -> int:
    """Create a PENDING delivery for every PAID order that has none.

    Orders with a delivery are excluded by the query itself, so calling this
    again is a no-op. ``order_ids`` narrows the sweep to specific orders.
    Returns the number of rows this call inserted.
    """
    qs = Order.objects.filter(status=Order.STATUS_PAID, delivery__isnull=True)
    if order_ids is not None:
        qs = qs.filter(pk__in=list(order_ids))
    pending = [Delivery(order_id=pk, status=Delivery.STATUS_PENDING) for pk in qs.values_list("pk", flat=True)]
    if not pending:
        return 0
    Delivery.objects.bulk_create(pending, ignore_conflicts=True)
    # Rows a concurrent sweep inserted first were skipped; count only ours
    created = Delivery.objects.filter(pk__in=[d.pk for d in pending]).count()
    log.info("[orders] Created %s delivery record(s)", created)
    return created
