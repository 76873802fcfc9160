from __future__ import annotations

import json
import logging

from django.conf import settings
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.accounts.decorators import admin_required
from apps.common.rate_limit import client_ip, rate_limit
from .exceptions import OrderNumberCollision, OrderRejected
from .forms import parse_pending_order
from .services import create_pending_order, materialize_deliveries

log = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60
GENERIC_ERROR = "Failed to create order"


def _error(message: str, status: int, code: str | None = None) -> JsonResponse:
    body = {"success": False, "error": message}
    if code:
        body["code"] = code
    return JsonResponse(body, status=status)


@csrf_exempt
@require_POST
def create_pending_order_view(request: HttpRequest) -> JsonResponse:
    ip = client_ip(request)
    limit = int(getattr(settings, "ORDER_RATE_LIMIT_PER_MINUTE", 20))
    rl = rate_limit("orders:pending", ip, limit, RATE_WINDOW_SECONDS)
    if not rl.allowed:
        response = _error("Too many requests. Please try again shortly.", 429)
        response["Retry-After"] = str(rl.retry_after)
        return response

    try:
        payload = json.loads(request.body.decode("utf-8") or "null")
    except (UnicodeDecodeError, ValueError):
        return _error("Invalid JSON body.", 400, OrderRejected.INVALID_REQUEST)

    try:
        data = parse_pending_order(payload)
        order = create_pending_order(data, user=request.user, remote_ip=ip)
    except OrderRejected as e:
        log.info("[orders] Pending order rejected kind=%s ip=%s", e.kind, ip)
        return _error(e.message, 400, e.kind)
    except (OrderNumberCollision, DatabaseError):
        log.exception("[orders] Failed to persist pending order")
        return _error(GENERIC_ERROR, 500)
    except Exception:
        log.exception("[orders] Unexpected error creating pending order")
        return _error(GENERIC_ERROR, 500)

    return JsonResponse({"success": True, "orderId": str(order.id), "orderNumber": order.order_number})


@csrf_exempt
@admin_required
@require_POST
def sync_deliveries_view(request: HttpRequest) -> JsonResponse:
    count = materialize_deliveries()
    log.info("[orders] Delivery sweep by user_id=%s created=%s", request.user.id, count)
    return JsonResponse({"count": count})
