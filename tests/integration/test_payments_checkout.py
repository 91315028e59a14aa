from storefront.utils.security import require_user

URL = "/api/v1/payments/create-payment-intent"

CART = {
    "items": [
        {"id": "p1", "name": "Produit 1", "unit_amount": 500, "quantity": 2, "image": "https://img.test/p1.png"},
        {"id": "p2", "name": "Produit 2", "unit_amount": 1200, "quantity": 1},
    ],
    # Ignoré: le serveur recalcule
    "total": 1,
}


def test_create_intent_for_new_cart(client, order_store, fake_stripe):
    r = client.post(URL, json=CART)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["paymentIntent"]["amount"] == 2200
    assert data["paymentIntent"]["client_secret"].startswith(data["paymentIntent"]["id"])
    assert data["order"]["status"] == "pending"
    assert data["order"]["user_id"] == "test-user"
    assert len(data["order"]["products"]) == 2
    assert r.headers.get("cache-control") == "no-store"


def test_update_existing_intent(client, order_store, fake_stripe):
    pid = client.post(URL, json=CART).json()["paymentIntent"]["id"]
    r = client.post(URL, json={"items": [CART["items"][0]], "payment_intent_id": pid})
    assert r.status_code == 200, r.text
    assert r.json()["paymentIntent"]["id"] == pid
    assert r.json()["order"]["amount"] == 1000
    assert order_store.get_order_by_intent(pid)["amount"] == 1000


def test_stale_intent_is_404_with_code(client, order_store, fake_stripe):
    r = client.post(URL, json={**CART, "payment_intent_id": "pi_gone"})
    assert r.status_code == 404
    assert r.json()["code"] == "intent_not_found"


def test_missing_order_is_404_with_code(client, order_store, fake_stripe):
    pid = client.post(URL, json=CART).json()["paymentIntent"]["id"]
    order_store.delete_by_intent(pid)
    r = client.post(URL, json={**CART, "payment_intent_id": pid})
    assert r.status_code == 404
    assert r.json()["code"] == "order_not_found"
    assert order_store.orders == {}


def test_paid_order_is_409(client, order_store, fake_stripe):
    pid = client.post(URL, json=CART).json()["paymentIntent"]["id"]
    order_store.mark_order_complete(pid)
    r = client.post(URL, json={**CART, "payment_intent_id": pid})
    assert r.status_code == 409
    assert r.json()["code"] == "order_already_complete"


def test_empty_cart_is_400(client, order_store, fake_stripe):
    r = client.post(URL, json={"items": []})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_cart"
    assert fake_stripe.intents == {}


def test_unpriced_item_is_400(client, order_store, fake_stripe):
    r = client.post(URL, json={"items": [{"id": "p1", "name": "Sans prix", "quantity": 1}]})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_cart"


def test_malformed_body_is_422(client, order_store, fake_stripe):
    r = client.post(URL, json={"items": [{"id": "p1", "name": "X", "unit_amount": 100, "quantity": 0}]})
    assert r.status_code == 422


def test_requires_authentication(app, client, order_store, fake_stripe):
    app.dependency_overrides.pop(require_user, None)
    r = client.post(URL, json=CART)
    assert r.status_code == 401
    assert fake_stripe.intents == {}


def test_store_outage_is_503(client, fake_stripe, monkeypatch):
    from storefront.payments.errors import StoreUnavailable

    def _down(**kwargs):
        raise StoreUnavailable()

    monkeypatch.setattr("storefront.orders.repository.insert_order", _down)
    r = client.post(URL, json=CART)
    assert r.status_code == 503
    assert r.json()["code"] == "store_unavailable"
