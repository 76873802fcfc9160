import logging

import stripe
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.orders.models import Order
from .gateway import CheckoutNotAllowed, create_checkout_session

log = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def checkout_view(request, order_id):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        return JsonResponse({"error": "Order not found"}, status=404)
    try:
        session = create_checkout_session(order)
    except CheckoutNotAllowed:
        log.info("[billing] Checkout refused for order %s in status %s", order.order_number, order.status)
        return JsonResponse({"error": "Order is not awaiting payment"}, status=400)
    except stripe.StripeError:
        log.exception("[billing] Stripe rejected Checkout Session for order %s", order.order_number)
        return JsonResponse({"error": "Payment provider unavailable"}, status=502)
    return JsonResponse({"url": session.url, "sessionId": session.id})
