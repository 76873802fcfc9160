import datetime as dt
import types

import pytest
from django.utils import timezone

from apps.accounting import client as client_module
from apps.accounting import views
from apps.accounting.client import AccountingError, AccountingNotConnected, QuickBooksClient
from apps.accounting.models import AccountingConnection, Expense
from apps.accounting.services import build_invoice_lines, sync_accounting
from apps.orders.models import Order
from apps.orders.services import run_best_effort


class FakeQuickBooks:
    """Records calls; answers queries from in-memory lists."""

    def __init__(self, invoices=(), customers=(), purchases=(), fail_for=()):
        self.invoices = list(invoices)
        self.customers = list(customers)
        self.purchases = list(purchases)
        self.fail_for = set(fail_for)
        self.created = []

    def query(self, statement):
        if "from Invoice" in statement:
            return {"Invoice": [i for i in self.invoices if f"'{i['DocNumber']}'" in statement]}
        if "from Customer" in statement:
            return {"Customer": [c for c in self.customers if f"'{c['PrimaryEmailAddr']['Address']}'" in statement]}
        if "from Purchase" in statement:
            return {"Purchase": self.purchases}
        return {}

    def create(self, entity, body):
        if entity == "Invoice" and body["DocNumber"] in self.fail_for:
            raise AccountingError("Business Validation Error", 400)
        obj = dict(body, Id=str(len(self.created) + 100))
        self.created.append((entity, obj))
        if entity == "Invoice":
            self.invoices.append(obj)
        if entity == "Customer":
            self.customers.append(obj)
        return obj

    def entities(self, name):
        return [body for entity, body in self.created if entity == name]


@pytest.fixture
def connection(db):
    return AccountingConnection.objects.create(
        realm_id="123145",
        access_token="at",
        refresh_token="rt",
        token_expires_at=timezone.now() + dt.timedelta(hours=1),
    )


def test_requires_connection(db):
    with pytest.raises(AccountingNotConnected):
        sync_accounting(client=FakeQuickBooks())


def test_pushes_paid_orders(connection, make_order):
    order = make_order(status=Order.STATUS_PAID)
    make_order(status=Order.STATUS_PENDING)
    qb = FakeQuickBooks()

    results = sync_accounting(client=qb)

    assert results == {"invoices": 1, "payments": 1, "expenses": 0, "errors": []}
    [customer] = qb.entities("Customer")
    assert customer["PrimaryEmailAddr"] == {"Address": "jane@example.com"}
    [invoice] = qb.entities("Invoice")
    assert invoice["DocNumber"] == order.order_number
    assert invoice["CustomerRef"] == {"value": customer["Id"]}
    [payment] = qb.entities("Payment")
    assert payment["TotalAmt"] == 122.0
    assert payment["Line"][0]["LinkedTxn"] == [{"TxnId": invoice["Id"], "TxnType": "Invoice"}]
    connection.refresh_from_db()
    assert connection.last_sync_at is not None


def test_invoice_lines_book_difference_as_tax(make_order):
    order = make_order(status=Order.STATUS_PAID)
    lines = build_invoice_lines(order)
    assert [line["Amount"] for line in lines] == [60.0, 60.0, 2.0]
    assert lines[0]["SalesItemLineDetail"]["UnitPrice"] == 10.0
    assert lines[0]["SalesItemLineDetail"]["Qty"] == 6
    assert lines[-1]["SalesItemLineDetail"]["ItemRef"]["name"] == "Sales Tax"


def test_no_tax_line_when_total_matches(make_order):
    order = make_order(status=Order.STATUS_PAID, total_cents=12000)
    assert len(build_invoice_lines(order)) == 2


def test_already_invoiced_orders_are_skipped(connection, make_order):
    order = make_order(status=Order.STATUS_COMPLETED)
    qb = FakeQuickBooks(invoices=[{"Id": "9", "DocNumber": order.order_number}])
    results = sync_accounting(client=qb)
    assert results["invoices"] == 0
    assert qb.created == []


def test_second_sync_does_not_duplicate(connection, make_order):
    make_order(status=Order.STATUS_PAID)
    qb = FakeQuickBooks()
    sync_accounting(client=qb)
    results = sync_accounting(client=qb)
    assert results["invoices"] == 0
    assert len(qb.entities("Invoice")) == 1


def test_existing_customer_is_reused(connection, make_order):
    make_order(status=Order.STATUS_DELIVERED)
    qb = FakeQuickBooks(customers=[{"Id": "7", "PrimaryEmailAddr": {"Address": "jane@example.com"}}])
    sync_accounting(client=qb)
    assert qb.entities("Customer") == []
    assert qb.entities("Invoice")[0]["CustomerRef"] == {"value": "7"}


def test_one_failing_order_does_not_stop_the_run(connection, make_order):
    bad = make_order(status=Order.STATUS_PAID)
    make_order(status=Order.STATUS_PAID)
    qb = FakeQuickBooks(fail_for={bad.order_number})
    results = sync_accounting(client=qb)
    assert results["invoices"] == 1
    assert results["errors"] == [f"Order {bad.order_number}: Business Validation Error"]


def test_expenses_are_upserted(connection):
    purchase = {
        "Id": "55",
        "TotalAmt": 42.5,
        "TxnDate": "2026-10-01",
        "EntityRef": {"name": "Restaurant Depot"},
        "Line": [{"AccountBasedExpenseLineDetail": {"AccountRef": {"name": "Food Supplies"}}}],
    }
    qb = FakeQuickBooks(purchases=[purchase])
    assert sync_accounting(client=qb)["expenses"] == 1
    purchase["TotalAmt"] = 50
    sync_accounting(client=qb)

    expense = Expense.objects.get()
    assert expense.external_id == "55"
    assert expense.description == "Restaurant Depot"
    assert expense.category == "Food Supplies"
    assert expense.amount_cents == 5000
    assert expense.date == dt.date(2026, 10, 1)


def test_bad_purchase_is_reported_not_raised(connection):
    purchases = [
        {"Id": "60", "TotalAmt": 10, "TxnDate": "2024-02-30"},
        {"Id": "61", "TotalAmt": "lots", "TxnDate": "2026-10-02"},
        {"Id": "62", "TotalAmt": 12.25, "TxnDate": "2026-10-03"},
    ]
    results = sync_accounting(client=FakeQuickBooks(purchases=purchases))

    assert results["expenses"] == 1
    assert [e.split(":")[0] for e in results["errors"]] == ["Expense 60", "Expense 61"]
    assert list(Expense.objects.values_list("external_id", "amount_cents")) == [("62", 1225)]
    connection.refresh_from_db()
    assert connection.last_sync_at is not None


# ---------- REST client ----------

class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self.headers = headers or {}
        self._payload = payload or {}

    def json(self):
        return self._payload


def test_client_refreshes_expired_token(connection):
    connection.token_expires_at = timezone.now() - dt.timedelta(minutes=5)
    connection.save()
    calls = []

    def post(url, **kwargs):
        calls.append(("POST", url, kwargs))
        return FakeResponse(payload={"access_token": "new-at", "refresh_token": "new-rt", "expires_in": 3600})

    def request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return FakeResponse(payload={"QueryResponse": {"Invoice": []}})

    client = QuickBooksClient(connection, client_id="cid", client_secret="sec", minor_version="70",
                              session=types.SimpleNamespace(post=post, request=request))
    assert client.query("select * from Invoice") == {"Invoice": []}

    connection.refresh_from_db()
    assert connection.access_token == "new-at"
    assert connection.refresh_token == "new-rt"
    assert connection.token_expires_at > timezone.now()
    method, url, kwargs = calls[1]
    assert url == "https://sandbox-quickbooks.api.intuit.com/v3/company/123145/query"
    assert kwargs["headers"]["Authorization"] == "Bearer new-at"
    assert kwargs["params"] == {"query": "select * from Invoice", "minorversion": "70"}


def test_rotated_token_survives_a_failing_sync(connection, monkeypatch):
    connection.token_expires_at = timezone.now() - dt.timedelta(minutes=5)
    connection.save()

    def post(url, **kwargs):
        return FakeResponse(payload={"access_token": "new-at", "refresh_token": "new-rt", "expires_in": 3600})

    def request(method, url, **kwargs):
        if "from Purchase" in kwargs["params"]["query"]:
            return FakeResponse(payload={"QueryResponse": {"Purchase": [{"Id": "70", "TxnDate": "2024-02-30"}]}})
        return FakeResponse(payload={"QueryResponse": {}})

    monkeypatch.setattr(client_module.requests, "Session", lambda: types.SimpleNamespace(post=post, request=request))
    outcome = run_best_effort("accounting", sync_accounting)

    assert outcome.ok is True
    [error] = outcome.result["errors"]
    assert error.startswith("Expense 70: ")
    connection.refresh_from_db()
    assert connection.refresh_token == "new-rt"
    assert connection.access_token == "new-at"


def test_client_raises_on_fault(connection):
    def request(method, url, **kwargs):
        return FakeResponse(400, {"Fault": {"Error": [{"Message": "Duplicate", "Detail": "Duplicate Document Number"}]}},
                            headers={"intuit_tid": "tid-1"})

    client = QuickBooksClient(connection, session=types.SimpleNamespace(request=request))
    with pytest.raises(AccountingError) as exc:
        client.create("Invoice", {})
    assert str(exc.value) == "Duplicate Document Number"
    assert exc.value.intuit_tid == "tid-1"


# ---------- manual sync endpoint ----------

def test_sync_endpoint_returns_results(admin_client, monkeypatch):
    monkeypatch.setattr(views, "sync_accounting", lambda: {"invoices": 2, "payments": 2, "expenses": 0, "errors": []})
    resp = admin_client.post("/api/accounting/sync")
    assert resp.status_code == 200
    assert resp.json()["invoices"] == 2


def test_sync_endpoint_reports_failure(admin_client):
    resp = admin_client.post("/api/accounting/sync")
    assert resp.status_code == 500
    assert resp.json() == {"error": "QuickBooks not connected"}


def test_sync_endpoint_requires_admin(client, employee_client, db):
    assert client.post("/api/accounting/sync").status_code == 401
    assert employee_client.post("/api/accounting/sync").status_code == 403
