import hashlib
import hmac
import json
import time

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import Client

from apps.orders.models import Meal, Order, OrderItem


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="customer", email="Customer@Example.com", password="x")


@pytest.fixture
def employee_client(db):
    User = get_user_model()
    employee = User.objects.create_user(username="driver", email="driver@example.com", password="x", role="employee")
    client = Client()
    client.force_login(employee)
    return client


@pytest.fixture
def meals(db):
    chicken = Meal.objects.create(title="Chicken & Rice", price_cents=1000)
    salmon = Meal.objects.create(title="Salmon Bowl", price_cents=1200)
    return chicken, salmon


@pytest.fixture
def order_payload(meals):
    chicken, salmon = meals
    return {
        "customerName": "Jane Doe",
        "customerEmail": "Jane@Example.com",
        "customerPhone": "+1 650-253-0000",
        "shippingAddress": "7014 E Camelback Rd",
        "city": "Scottsdale",
        "zipCode": "85251",
        "deliveryDate": "2026-11-02",
        "items": [
            {"id": str(chicken.id), "quantity": 6, "price": 10.00},
            {"id": str(salmon.id), "quantity": 5, "price": 12.00},
        ],
        "total": 122.00,
    }


@pytest.fixture
def make_order(meals):
    """Create an order directly in the given status with the standard 6 + 5 cart."""
    chicken, salmon = meals
    counter = {"n": 0}

    def _make(status=Order.STATUS_PENDING, **overrides):
        counter["n"] += 1
        fields = {
            "order_number": f"LMP-TEST-{counter['n']:04d}",
            "status": status,
            "customer_name": "Jane Doe",
            "customer_email": "jane@example.com",
            "shipping_address": "7014 E Camelback Rd",
            "city": "Scottsdale",
            "zip_code": "85251",
            "total_cents": 12200,
        }
        fields.update(overrides)
        order = Order.objects.create(**fields)
        OrderItem.objects.create(order=order, meal=chicken, position=0, quantity=6,
                                 price_cents_snapshot=1000, line_subtotal_cents=6000)
        OrderItem.objects.create(order=order, meal=salmon, position=1, quantity=5,
                                 price_cents_snapshot=1200, line_subtotal_cents=6000)
        return order

    return _make


def stripe_signature(payload: str, secret: str, timestamp: int | None = None) -> str:
    ts = int(timestamp or time.time())
    signed = f"{ts}.{payload}".encode("utf-8")
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def checkout_completed_event(order_id, *, session_id="cs_test_123", payment_intent="pi_test_123", amount_total=12200):
    metadata = {"orderId": str(order_id)} if order_id is not None else {}
    return json.dumps({
        "id": "evt_test_1",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_intent": payment_intent,
                "amount_total": amount_total,
                "metadata": metadata,
            }
        },
    })


@pytest.fixture
def post_webhook(client, settings):
    def _post(payload: str, *, signature: str | None = None, secret: str | None = None):
        extra = {}
        if signature is None:
            signature = stripe_signature(payload, secret or settings.STRIPE_WEBHOOK_SECRET)
        if signature:
            extra["HTTP_STRIPE_SIGNATURE"] = signature
        return client.post("/stripe/webhook/", data=payload, content_type="application/json", **extra)

    return _post


@pytest.fixture
def checkout_event():
    return checkout_completed_event


@pytest.fixture
def sign():
    return stripe_signature
