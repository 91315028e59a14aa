import pytest

from storefront.payments import service
from storefront.payments.errors import (
    IntentNotFound,
    InvalidCart,
    OrderAlreadyComplete,
    OrderNotFound,
    ProcessorUnavailable,
    StoreUnavailable,
    Unauthorized,
)
from storefront.payments.schemas import CheckoutItem

USER = {"id": "user-1"}


def _items(*lines):
    return [CheckoutItem(id=pid, name=f"Produit {pid}", unit_amount=price, quantity=qty) for pid, price, qty in lines]


def test_new_checkout_creates_intent_and_pending_order(order_store, fake_stripe):
    result = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 2), ("p2", 1200, 1)))

    intent, order = result["paymentIntent"], result["order"]
    assert intent["amount"] == 2200
    assert intent["client_secret"]
    assert order["amount"] == 2200
    assert order["status"] == "pending"
    assert order["user_id"] == "user-1"
    assert order["payment_intent_id"] == intent["id"]
    assert [(p["name"], p["quantity"]) for p in order["products"]] == [("Produit p1", 2), ("Produit p2", 1)]


def test_existing_intent_follows_cart_changes(order_store, fake_stripe):
    first = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 2), ("p2", 1200, 1)))
    pid = first["paymentIntent"]["id"]

    second = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 3)), payment_intent_id=pid)

    assert second["paymentIntent"]["id"] == pid
    assert second["paymentIntent"]["amount"] == 1500
    assert fake_stripe.updates == [(pid, 1500)]
    stored = order_store.get_order_by_intent(pid)
    assert stored["amount"] == 1500
    assert [(p["name"], p["quantity"]) for p in stored["products"]] == [("Produit p1", 3)]
    assert second["order"]["amount"] == 1500
    assert len(order_store.orders) == 1


def test_resubmitting_same_cart_writes_nothing(order_store, fake_stripe):
    cart = _items(("p1", 500, 2))
    pid = service.reconcile_checkout(user=USER, items=cart)["paymentIntent"]["id"]
    order_store.writes.clear()

    again = service.reconcile_checkout(user=USER, items=cart, payment_intent_id=pid)
    again_2 = service.reconcile_checkout(user=USER, items=cart, payment_intent_id=pid)

    assert order_store.writes == []
    assert fake_stripe.updates == []
    assert again["order"]["amount"] == again_2["order"]["amount"] == 1000


def test_client_total_is_never_trusted(order_store, fake_stripe):
    # Le montant vient exclusivement des lignes
    result = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 2)))
    assert result["paymentIntent"]["amount"] == 1000


def test_missing_order_for_live_intent(order_store, fake_stripe):
    pid = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)))["paymentIntent"]["id"]
    order_store.delete_by_intent(pid)
    order_store.writes.clear()

    with pytest.raises(OrderNotFound):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 2)), payment_intent_id=pid)

    assert order_store.writes == []
    assert order_store.orders == {}
    assert fake_stripe.updates == []


def test_unknown_intent(order_store, fake_stripe):
    with pytest.raises(IntentNotFound):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)), payment_intent_id="pi_unknown")
    assert order_store.writes == []


def test_paid_order_is_frozen(order_store, fake_stripe):
    pid = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)))["paymentIntent"]["id"]
    order_store.mark_order_complete(pid)

    with pytest.raises(OrderAlreadyComplete):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 4)), payment_intent_id=pid)
    assert order_store.get_order_by_intent(pid)["amount"] == 500


def test_conditional_update_lost_to_payment(order_store, fake_stripe, monkeypatch):
    pid = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)))["paymentIntent"]["id"]

    def _paid_meanwhile(order_id, amount, products):
        order_store.mark_order_complete(pid)
        return False

    monkeypatch.setattr("storefront.orders.repository.replace_pending_order_products", _paid_meanwhile)
    with pytest.raises(OrderAlreadyComplete):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 2)), payment_intent_id=pid)
    assert order_store.get_order_by_intent(pid)["products"][0]["quantity"] == 1


def test_anonymous_user_is_rejected(order_store, fake_stripe):
    with pytest.raises(Unauthorized):
        service.reconcile_checkout(user={}, items=_items(("p1", 500, 1)))
    with pytest.raises(Unauthorized):
        service.reconcile_checkout(user=None, items=_items(("p1", 500, 1)))
    assert fake_stripe.intents == {}


def test_empty_cart_is_rejected(order_store, fake_stripe):
    with pytest.raises(InvalidCart):
        service.reconcile_checkout(user=USER, items=[])
    assert fake_stripe.intents == {}
    assert order_store.orders == {}


def test_unpriced_line_is_rejected(order_store, fake_stripe):
    with pytest.raises(InvalidCart):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1), ("p2", None, 1)))
    assert fake_stripe.intents == {}


def test_duplicate_lines_are_merged():
    merged = service.merge_items(_items(("p1", 500, 1), ("p2", 100, 1), ("p1", 500, 2)))
    assert [(i.product_id, i.quantity) for i in merged] == [("p1", 3), ("p2", 1)]


def test_list_orders_returns_owner_orders(order_store, fake_stripe):
    service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)))
    service.reconcile_checkout(user={"id": "someone-else"}, items=_items(("p2", 700, 1)))
    service.reconcile_checkout(user=USER, items=_items(("p3", 900, 1)))

    orders = service.list_orders(USER)
    assert [o["amount"] for o in orders] == [900, 500]
    with pytest.raises(Unauthorized):
        service.list_orders({})


def test_foreign_intent_is_hidden_and_untouched(order_store, fake_stripe):
    pid = service.reconcile_checkout(user=USER, items=_items(("p1", 500, 2)))["paymentIntent"]["id"]
    order_store.writes.clear()

    with pytest.raises(OrderNotFound):
        service.reconcile_checkout(user={"id": "intruder"}, items=_items(("z", 1, 1)), payment_intent_id=pid)

    stored = order_store.get_order_by_intent(pid)
    assert stored["user_id"] == "user-1"
    assert stored["amount"] == 1000
    assert [p["name"] for p in stored["products"]] == ["Produit p1"]
    assert fake_stripe.intents[pid]["amount"] == 1000
    assert fake_stripe.updates == []
    assert order_store.writes == []


def test_failed_order_insert_cancels_new_intent(order_store, fake_stripe, monkeypatch):
    def _down(**kwargs):
        raise StoreUnavailable()

    monkeypatch.setattr("storefront.orders.repository.insert_order", _down)
    with pytest.raises(StoreUnavailable):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)))

    assert fake_stripe.canceled == ["pi_test_1"]
    assert fake_stripe.intents["pi_test_1"]["status"] == "canceled"
    assert order_store.orders == {}


def test_failed_cancel_still_reports_store_outage(order_store, fake_stripe, monkeypatch):
    def _down(**kwargs):
        raise StoreUnavailable()

    def _cancel_down(payment_intent_id):
        raise ProcessorUnavailable()

    monkeypatch.setattr("storefront.orders.repository.insert_order", _down)
    monkeypatch.setattr("storefront.payments.stripe_client.cancel_payment_intent", _cancel_down)
    with pytest.raises(StoreUnavailable):
        service.reconcile_checkout(user=USER, items=_items(("p1", 500, 1)))
