import hashlib
import hmac
import os
import time
import pytest
from typing import Generator, Dict, Any, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

# Pas de Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from storefront.app import app as fastapi_app
from storefront.utils.security import require_user
from storefront.payments.errors import IntentNotFound
from storefront.payments.stripe_client import UNUSABLE_INTENT_STATUSES

WEBHOOK_SECRET = "whsec_test_secret"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

FAKE_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "user_metadata": {"full_name": "Test User"},
}

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: dict(FAKE_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

# Aucun test ne doit joindre Supabase
@pytest.fixture(autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())


class FakeOrderStore:
    """Tables orders / order_products en mémoire, mêmes signatures que storefront.orders.repository."""

    def __init__(self):
        self.orders: Dict[int, Dict[str, Any]] = {}
        self.products: Dict[int, List[Dict[str, Any]]] = {}
        self.writes: List[str] = []
        self._next_id = 1

    def _find(self, payment_intent_id: str) -> Optional[Dict[str, Any]]:
        for row in self.orders.values():
            if row["payment_intent_id"] == payment_intent_id:
                return row
        return None

    def _with_products(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return {**row, "products": [dict(p) for p in self.products.get(row["id"], [])]}

    def insert_order(self, *, user_id, amount, currency, payment_intent_id, products):
        assert self._find(payment_intent_id) is None, "payment_intent_id doit rester unique"
        order_id = self._next_id
        self._next_id += 1
        self.orders[order_id] = {
            "id": order_id,
            "user_id": user_id,
            "amount": amount,
            "currency": currency,
            "status": "pending",
            "created_at": f"2024-01-01T00:00:{order_id:02d}+00:00",
            "payment_intent_id": payment_intent_id,
        }
        self.products[order_id] = [dict(p) for p in products]
        self.writes.append("insert_order")
        return self._with_products(self.orders[order_id])

    def get_order_by_intent(self, payment_intent_id):
        row = self._find(payment_intent_id)
        return self._with_products(row) if row else None

    def update_pending_order_amount(self, order_id, amount):
        self.writes.append("update_pending_order_amount")
        row = self.orders.get(order_id)
        if row is None or row["status"] != "pending":
            return False
        row["amount"] = amount
        return True

    def replace_pending_order_products(self, order_id, amount, products):
        if not self.update_pending_order_amount(order_id, amount):
            return False
        self.writes.append("replace_pending_order_products")
        self.products[order_id] = [dict(p) for p in products]
        return True

    def mark_order_complete(self, payment_intent_id):
        self.writes.append("mark_order_complete")
        row = self._find(payment_intent_id)
        if row is None:
            return 0
        row["status"] = "complete"
        return 1

    def list_user_orders(self, user_id):
        rows = [self._with_products(r) for r in self.orders.values() if r["user_id"] == user_id]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def delete_by_intent(self, payment_intent_id):
        row = self._find(payment_intent_id)
        if row:
            self.orders.pop(row["id"])
            self.products.pop(row["id"], None)

    def install(self, monkeypatch):
        for name in (
            "insert_order",
            "get_order_by_intent",
            "update_pending_order_amount",
            "replace_pending_order_products",
            "mark_order_complete",
            "list_user_orders",
        ):
            monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(self, name))
        return self


class FakeStripe:
    """PaymentIntents en mémoire, mêmes signatures que storefront.payments.stripe_client."""

    def __init__(self):
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.updates: List[tuple] = []
        self.canceled: List[str] = []
        self._n = 0

    def create_payment_intent(self, *, amount, user_id, currency="usd"):
        self._n += 1
        pid = f"pi_test_{self._n}"
        self.intents[pid] = {
            "id": pid,
            "amount": amount,
            "currency": currency,
            "status": "requires_payment_method",
            "client_secret": f"{pid}_secret_abc",
        }
        return dict(self.intents[pid])

    def retrieve_payment_intent(self, payment_intent_id):
        intent = self.intents.get(payment_intent_id)
        if intent is None or intent["status"] in UNUSABLE_INTENT_STATUSES:
            raise IntentNotFound()
        return dict(intent)

    def update_payment_intent_amount(self, payment_intent_id, amount):
        self.updates.append((payment_intent_id, amount))
        self.intents[payment_intent_id]["amount"] = amount
        return dict(self.intents[payment_intent_id])

    def cancel_payment_intent(self, payment_intent_id):
        self.canceled.append(payment_intent_id)
        self.intents[payment_intent_id]["status"] = "canceled"
        return dict(self.intents[payment_intent_id])

    def install(self, monkeypatch):
        for name in (
            "create_payment_intent",
            "retrieve_payment_intent",
            "update_payment_intent_amount",
            "cancel_payment_intent",
        ):
            monkeypatch.setattr(f"storefront.payments.stripe_client.{name}", getattr(self, name))
        return self


@pytest.fixture
def order_store(monkeypatch) -> FakeOrderStore:
    return FakeOrderStore().install(monkeypatch)

@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    return FakeStripe().install(monkeypatch)

def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """En-tête Stripe-Signature (schéma v1: HMAC-SHA256 de "<t>.<payload>")."""
    t = int(time.time()) if timestamp is None else timestamp
    signed = f"{t}.".encode("utf-8") + payload
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={t},v1={sig}"

@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setattr("storefront.payments.stripe_client.STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET

@pytest.fixture
def stripe_signature(webhook_secret):
    def _sign(payload: bytes, timestamp: Optional[int] = None, secret: Optional[str] = None) -> str:
        return sign_payload(payload, secret or webhook_secret, timestamp)
    return _sign
