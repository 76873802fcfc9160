import uuid

import pytest
from django.db import DatabaseError

from apps.notifications.models import Notification
from apps.orders import services
from apps.orders.exceptions import OrderNotFound
from apps.orders.models import Delivery, InvalidStatusTransition, Order
from apps.orders.services import confirm_order_payment, run_best_effort


@pytest.fixture
def accounting_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(services, "sync_accounting", lambda: calls.append(1) or {"invoices": 1})
    return calls


def test_confirmation_marks_paid_and_runs_side_effects(make_order, accounting_calls):
    order = make_order()
    result = confirm_order_payment(order.id, session_id="cs_1", payment_intent="pi_1")

    order.refresh_from_db()
    assert result.transitioned is True
    assert order.status == Order.STATUS_PAID
    assert order.payment_session_id == "cs_1"
    assert order.payment_intent_id == "pi_1"
    assert order.paid_at is not None
    assert [o.name for o in result.outcomes] == ["delivery", "notification", "accounting"]
    assert all(o.ok for o in result.outcomes)
    assert Delivery.objects.get(order=order).status == Delivery.STATUS_PENDING
    assert Notification.objects.filter(template_code="order_confirmation", to="jane@example.com").count() == 1
    assert accounting_calls == [1]
    assert {(c.status, c.source) for c in order.status_changes.all()} == {
        ("pending", "initial"),
        ("paid", "stripe_webhook"),
    }


def test_confirmation_is_idempotent(make_order, accounting_calls):
    order = make_order()
    first = confirm_order_payment(str(order.id), session_id="cs_1")
    second = confirm_order_payment(str(order.id), session_id="cs_1")

    assert first.transitioned is True
    assert second.transitioned is False
    assert Order.objects.get(pk=order.pk).status == Order.STATUS_PAID
    assert Delivery.objects.filter(order=order).count() == 1
    assert Notification.objects.filter(idempotency_key=f"order_confirmation:{order.id}").count() == 1
    assert order.status_changes.filter(status=Order.STATUS_PAID).count() == 1


def test_later_statuses_are_never_regressed(make_order, accounting_calls):
    order = make_order(status=Order.STATUS_DELIVERED)
    result = confirm_order_payment(order.id, session_id="cs_late")

    order.refresh_from_db()
    assert order.status == Order.STATUS_DELIVERED
    assert order.payment_session_id == ""
    assert result.transitioned is False
    assert result.outcomes == []
    assert accounting_calls == []


def test_failed_notification_does_not_block_payment_or_delivery(make_order, accounting_calls, monkeypatch, caplog):
    def broken(order):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(services, "send_order_confirmation", broken)
    order = make_order()
    result = confirm_order_payment(order.id)

    assert Order.objects.get(pk=order.pk).status == Order.STATUS_PAID
    assert Delivery.objects.filter(order=order).exists()
    outcome = result.outcome("notification")
    assert outcome.ok is False
    assert outcome.error == "smtp down"
    assert result.outcome("accounting").ok is True
    assert "Side effect notification failed" in caplog.text


def test_failed_delivery_does_not_block_other_effects(make_order, accounting_calls, monkeypatch):
    def broken(order_ids=None):
        raise DatabaseError("deliveries table locked")

    monkeypatch.setattr(services, "materialize_deliveries", broken)
    order = make_order()
    result = confirm_order_payment(order.id)

    assert Order.objects.get(pk=order.pk).status == Order.STATUS_PAID
    assert result.outcome("delivery").ok is False
    assert result.outcome("notification").ok is True
    assert accounting_calls == [1]


def test_accounting_not_connected_is_best_effort(make_order):
    order = make_order()
    result = confirm_order_payment(order.id)
    assert Order.objects.get(pk=order.pk).status == Order.STATUS_PAID
    assert result.outcome("accounting").ok is False
    assert "not connected" in result.outcome("accounting").error


@pytest.mark.parametrize("order_id", [uuid.uuid4(), "not-a-uuid", None, ""])
def test_unknown_order(order_id, db):
    with pytest.raises(OrderNotFound):
        confirm_order_payment(order_id)


def test_storage_failure_during_transition_propagates(make_order, monkeypatch):
    order = make_order()

    def broken(self, *args, **kwargs):
        raise DatabaseError("write failed")

    monkeypatch.setattr(Order, "set_status", broken)
    with pytest.raises(DatabaseError):
        confirm_order_payment(order.id)
    assert Order.objects.get(pk=order.pk).status == Order.STATUS_PENDING
    assert not Delivery.objects.exists()


def test_transitions_are_forward_only(make_order):
    order = make_order()
    assert order.can_transition_to(Order.STATUS_PAID)
    assert not order.can_transition_to(Order.STATUS_DELIVERED)
    with pytest.raises(InvalidStatusTransition):
        order.set_status(Order.STATUS_COMPLETED)

    order.set_status(Order.STATUS_PAID, source="test")
    order.set_status(Order.STATUS_DELIVERED, source="driver")
    with pytest.raises(InvalidStatusTransition):
        order.set_status(Order.STATUS_PAID)
    assert Order.objects.get(pk=order.pk).status == Order.STATUS_DELIVERED


def test_run_best_effort_reports_success_and_failure(db):
    ok = run_best_effort("double", lambda x: x * 2, 21)
    assert (ok.ok, ok.result) == (True, 42)

    def fail():
        raise KeyError("missing")

    bad = run_best_effort("fail", fail)
    assert bad.ok is False
    assert bad.name == "fail"
