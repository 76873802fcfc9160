from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django import forms
from django.utils.dateparse import parse_date, parse_datetime

from apps.common.phone import normalize_phone
from .exceptions import OrderRejected
from .models import Meal


@dataclass(frozen=True)
class OrderLine:
    meal_id: uuid.UUID
    quantity: int
    price_cents: int

    @property
    def line_subtotal_cents(self) -> int:
        return self.quantity * self.price_cents


@dataclass(frozen=True)
class PendingOrderData:
    customer_name: str
    customer_email: str
    shipping_address: str
    city: str
    zip_code: str
    total_cents: int
    lines: tuple[OrderLine, ...]
    customer_phone: str = ""
    delivery_date: dt.date | None = None
    captcha_token: str = ""

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


def to_cents(value: Decimal) -> int:
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class OrderLineForm(forms.Form):
    id = forms.UUIDField()
    quantity = forms.IntegerField(min_value=1, max_value=1000)
    price = forms.DecimalField(min_value=Decimal("0"), max_digits=9, decimal_places=2)


class PendingOrderForm(forms.Form):
    # Storefront JSON keys -> form field names
    ALIASES = {
        "customerName": "customer_name",
        "customerEmail": "customer_email",
        "customerPhone": "customer_phone",
        "shippingAddress": "shipping_address",
        "zipCode": "zip_code",
        "deliveryDate": "delivery_date",
        "captchaToken": "captcha_token",
    }

    customer_name = forms.CharField(max_length=160)
    customer_email = forms.EmailField()
    customer_phone = forms.CharField(max_length=40, required=False)
    shipping_address = forms.CharField(max_length=255)
    city = forms.CharField(max_length=120)
    zip_code = forms.CharField(max_length=10)
    delivery_date = forms.CharField(max_length=40, required=False)
    total = forms.DecimalField(min_value=Decimal("0"), max_digits=10, decimal_places=2)
    captcha_token = forms.CharField(max_length=4096, required=False)

    @classmethod
    def from_payload(cls, payload: dict) -> "PendingOrderForm":
        data = {}
        for key, value in payload.items():
            name = cls.ALIASES.get(key, key)
            if name in cls.base_fields and value is not None:
                data[name] = value
        return cls(data=data)

    def clean_delivery_date(self):
        raw = (self.cleaned_data.get("delivery_date") or "").strip()
        if not raw:
            return None
        try:
            d = parse_date(raw)
            if d is None:
                stamp = parse_datetime(raw.replace("Z", "+00:00"))
                d = stamp.date() if stamp else None
        except ValueError:
            d = None
        if d is None:
            raise forms.ValidationError("Invalid delivery date.")
        return d


def _first_error(form: forms.Form) -> str:
    for field, errors in form.errors.items():
        return f"{field}: {errors[0]}"
    return "Invalid request."


def parse_pending_order(payload) -> PendingOrderData:
    """Validate a storefront checkout body into ``PendingOrderData``.

    Raises ``OrderRejected(invalid_request)`` on any shape problem, including
    items that reference meals we do not know.
    """
    if not isinstance(payload, dict):
        raise OrderRejected(OrderRejected.INVALID_REQUEST, "Invalid request body.")

    form = PendingOrderForm.from_payload(payload)
    if not form.is_valid():
        raise OrderRejected(OrderRejected.INVALID_REQUEST, _first_error(form))

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise OrderRejected(OrderRejected.INVALID_REQUEST, "Your cart is empty.")

    lines = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise OrderRejected(OrderRejected.INVALID_REQUEST, f"items[{idx}]: invalid item.")
        # Accept both {"id": ...} and {"mealId": ...}
        data = {"id": raw.get("id") or raw.get("mealId"), "quantity": raw.get("quantity"), "price": raw.get("price")}
        line_form = OrderLineForm(data=data)
        if not line_form.is_valid():
            raise OrderRejected(OrderRejected.INVALID_REQUEST, f"items[{idx}].{_first_error(line_form)}")
        cd = line_form.cleaned_data
        lines.append(OrderLine(meal_id=cd["id"], quantity=cd["quantity"], price_cents=to_cents(cd["price"])))

    meal_ids = {line.meal_id for line in lines}
    known = set(Meal.objects.filter(pk__in=meal_ids).values_list("pk", flat=True))
    if known != meal_ids:
        raise OrderRejected(OrderRejected.INVALID_REQUEST, "One or more meals are no longer on the menu.")

    cd = form.cleaned_data
    return PendingOrderData(
        customer_name=cd["customer_name"].strip(),
        customer_email=cd["customer_email"].strip().lower(),
        customer_phone=normalize_phone(cd.get("customer_phone")),
        shipping_address=cd["shipping_address"].strip(),
        city=cd["city"].strip(),
        zip_code=cd["zip_code"].strip(),
        delivery_date=cd.get("delivery_date"),
        total_cents=to_cents(cd["total"]),
        lines=tuple(lines),
        captcha_token=(cd.get("captcha_token") or "").strip(),
    )
