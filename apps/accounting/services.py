from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from .client import AccountingError, AccountingNotConnected, QuickBooksClient, quote
from .models import AccountingConnection, Expense

log = logging.getLogger(__name__)

# Item used for every invoice line until meals are mapped to QuickBooks items
DEFAULT_ITEM_REF = "1"
SALES_TAX_LABEL = "Sales Tax"
DEFAULT_EXPENSE_CATEGORY = "General Business"
# Per-record failures that are logged and reported instead of aborting the run
SYNC_ERRORS = (AccountingError, requests.RequestException, KeyError, ValueError, ArithmeticError)


def _dollars(cents: int) -> float:
    return float((Decimal(cents) / 100).quantize(Decimal("0.01")))


def _cents(amount) -> int:
    return int((Decimal(str(amount or 0)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_connection() -> AccountingConnection:
    env = getattr(settings, "QB_ENV", "sandbox")
    conn = AccountingConnection.objects.filter(
        provider=AccountingConnection.PROVIDER_QUICKBOOKS, environment=env
    ).first()
    if conn is None or not conn.realm_id or not (conn.access_token or conn.refresh_token):
        raise AccountingNotConnected("QuickBooks not connected")
    return conn


def _find_or_create_customer(client, order) -> dict:
    found = client.query(f"select * from Customer where PrimaryEmailAddr = {quote(order.customer_email)}")
    customers = found.get("Customer") or []
    if customers:
        return customers[0]
    return client.create("Customer", {
        "DisplayName": order.customer_name,
        "PrimaryEmailAddr": {"Address": order.customer_email},
        "PrimaryPhone": {"FreeFormNumber": order.customer_phone or ""},
    })


def build_invoice_lines(order) -> list[dict]:
    lines = []
    subtotal = 0
    for item in order.items.all():
        subtotal += item.line_subtotal_cents
        lines.append({
            "Amount": _dollars(item.line_subtotal_cents),
            "DetailType": "SalesItemLineDetail",
            "SalesItemLineDetail": {
                "ItemRef": {"name": item.meal.title, "value": DEFAULT_ITEM_REF},
                "UnitPrice": _dollars(item.price_cents_snapshot),
                "Qty": item.quantity,
            },
        })
    # Whatever the customer paid above the item subtotal is booked as tax
    tax = order.total_cents - subtotal
    if tax > 0:
        lines.append({
            "Amount": _dollars(tax),
            "DetailType": "SalesItemLineDetail",
            "SalesItemLineDetail": {
                "ItemRef": {"name": SALES_TAX_LABEL, "value": DEFAULT_ITEM_REF},
                "UnitPrice": _dollars(tax),
                "Qty": 1,
            },
        })
    return lines


def push_order(client, order) -> tuple[bool, bool]:
    """Invoice and record payment for one order. Returns (invoiced, paid)."""
    existing = client.query(f"select * from Invoice where DocNumber = {quote(order.order_number)}")
    if existing.get("Invoice"):
        return False, False

    customer = _find_or_create_customer(client, order)
    invoice = client.create("Invoice", {
        "Line": build_invoice_lines(order),
        "CustomerRef": {"value": customer["Id"]},
        "DocNumber": order.order_number,
    })
    total = _dollars(order.total_cents)
    client.create("Payment", {
        "CustomerRef": {"value": customer["Id"]},
        "TotalAmt": total,
        "Line": [{
            "Amount": total,
            "LinkedTxn": [{"TxnId": invoice["Id"], "TxnType": "Invoice"}],
        }],
    })
    return True, True


def _expense_fields(purchase: dict) -> dict:
    lines = purchase.get("Line") or [{}]
    first = lines[0] or {}
    account = ((first.get("AccountBasedExpenseLineDetail") or {}).get("AccountRef") or {})
    raw_date = purchase.get("TxnDate") or ""
    date = parse_date(raw_date) if raw_date else None
    if raw_date and date is None:
        raise ValueError(f"bad TxnDate {raw_date!r}")
    return {
        "description": ((purchase.get("EntityRef") or {}).get("name") or first.get("Description") or "QuickBooks Expense")[:255],
        "amount_cents": _cents(purchase.get("TotalAmt")),
        "category": (account.get("name") or DEFAULT_EXPENSE_CATEGORY)[:120],
        "date": date,
    }


def pull_expenses(client, errors: list[str]) -> int:
    """Upsert Check purchases as expenses; a bad purchase lands in ``errors``."""
    found = client.query("select * from Purchase where PaymentType = 'Check'")
    count = 0
    for purchase in found.get("Purchase") or []:
        external_id = str(purchase.get("Id") or "?")
        try:
            with transaction.atomic():
                Expense.objects.update_or_create(external_id=external_id, defaults=_expense_fields(purchase))
        except (ValueError, ArithmeticError, DatabaseError) as e:
            log.warning("[accounting] Skipping purchase %s: %s", external_id, e)
            errors.append(f"Expense {external_id}: {e}")
            continue
        count += 1
    return count


def sync_accounting(*, client=None) -> dict:
    """Push settled orders to QuickBooks and pull expenses back.

    Failures on a single order or purchase are collected in ``errors`` and the
    run moves on; only a missing connection stops it. The token is refreshed
    before any push so a rotated refresh token is saved even when later steps
    fail.
    """
    from apps.orders.models import Order

    connection = get_connection()
    if client is None:
        client = QuickBooksClient(connection)
        client.ensure_token()
    results = {"invoices": 0, "payments": 0, "expenses": 0, "errors": []}

    orders = (
        Order.objects.filter(status__in=Order.SETTLED_STATUSES)
        .prefetch_related("items__meal")
        .order_by("created_at")
    )
    for order in orders:
        try:
            invoiced, paid = push_order(client, order)
        except SYNC_ERRORS as e:
            log.warning("[accounting] Error syncing order %s: %s", order.order_number, e)
            results["errors"].append(f"Order {order.order_number}: {e}")
            continue
        results["invoices"] += int(invoiced)
        results["payments"] += int(paid)

    try:
        results["expenses"] = pull_expenses(client, results["errors"])
    except SYNC_ERRORS as e:
        log.warning("[accounting] Error pulling expenses: %s", e)
        results["errors"].append(f"Expenses: {e}")

    connection.last_sync_at = timezone.now()
    connection.save(update_fields=["last_sync_at", "updated_at"])
    log.info(
        "[accounting] Sync completed invoices=%s payments=%s expenses=%s errors=%s",
        results["invoices"], results["payments"], results["expenses"], len(results["errors"]),
    )
    return results
