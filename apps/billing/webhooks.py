import logging

from django.db import DatabaseError
from django.http import HttpResponse, HttpResponseBadRequest
from django.urls import path
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.orders.conf import get_config
from apps.orders.exceptions import OrderNotFound
from apps.orders.services import confirm_order_payment
from .gateway import (
    CHECKOUT_COMPLETED,
    WebhookPayloadError,
    WebhookVerificationError,
    parse_checkout_completed,
    verify_webhook,
)

log = logging.getLogger(__name__)
security_log = logging.getLogger("apps.security")


@csrf_exempt
@require_POST
def webhook(request):
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
    try:
        event = verify_webhook(request.body, sig_header, secret=get_config().stripe_webhook_secret)
    except WebhookVerificationError as e:
        security_log.warning(
            "[billing] Rejected Stripe webhook from %s: %s", request.META.get("REMOTE_ADDR", "-"), e
        )
        return HttpResponseBadRequest(f"Webhook Error: {e}")

    event_type = event.get("type")
    if event_type != CHECKOUT_COMPLETED:
        log.debug("[billing] Ignoring Stripe event type=%s id=%s", event_type, event.get("id"))
        return HttpResponse(status=200)

    try:
        completed = parse_checkout_completed(event)
    except WebhookPayloadError as e:
        log.error("[billing] Stripe event %s unusable: %s", event.get("id"), e)
        return HttpResponseBadRequest(str(e))

    try:
        result = confirm_order_payment(
            completed.order_id,
            session_id=completed.session_id,
            payment_intent=completed.payment_intent,
        )
    except OrderNotFound:
        log.error("[billing] Stripe event %s references unknown order %s", event.get("id"), completed.order_id)
        return HttpResponseBadRequest("Order not found")
    except DatabaseError:
        log.exception("[billing] Storage failure confirming order %s; Stripe will retry", completed.order_id)
        return HttpResponse("Storage error", status=500)

    failed = [o.name for o in result.outcomes if not o.ok]
    log.info(
        "[billing] Processed %s for order %s transitioned=%s failed_effects=%s",
        event_type, result.order.order_number, result.transitioned, ",".join(failed) or "-",
    )
    return HttpResponse(status=200)


urlpatterns = [
    path("webhook/", webhook, name="stripe_webhook"),
]
