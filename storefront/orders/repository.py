"""
Accès aux données pour la feature 'orders' (Supabase / PostgREST).
- Écritures via le client service-role (webhook sans session utilisateur).
- Toutes les écritures sont indexées par la clé unique (id ou payment_intent_id).
- Les erreurs réseau / PostgREST sont journalisées puis remontées en StoreUnavailable:
  aucune écriture n'est considérée réussie par défaut.
"""
from typing import Any, Callable, Dict, List, Optional, TypeVar
import logging

import httpx
from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.payments.errors import StoreUnavailable
from .models import OrderStatus

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
PRODUCTS_TABLE = "order_products"
ORDER_SELECT = (
    "id, user_id, amount, currency, status, created_at, payment_intent_id, "
    "order_products(name, description, unit_amount, image, quantity)"
)

T = TypeVar("T")


# module storefront.orders.repository
def _run(action: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except (APIError, httpx.HTTPError):
        logger.exception("orders.repository.%s failed", action)
        raise StoreUnavailable()


def _normalize(row: Dict[str, Any]) -> Dict[str, Any]:
    """Renomme la jointure order_products en 'products'."""
    order = dict(row)
    order["products"] = list(order.pop("order_products", None) or order.get("products") or [])
    return order


def get_order_by_intent(payment_intent_id: str) -> Optional[Dict[str, Any]]:
    """Commande (avec produits) associée à un payment intent, ou None."""
    res = _run(
        "get_order_by_intent",
        lambda: supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select(ORDER_SELECT)
        .eq("payment_intent_id", payment_intent_id)
        .limit(1)
        .execute(),
    )
    rows = res.data or []
    return _normalize(rows[0]) if rows else None


def insert_products(order_id: Any, products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not products:
        return []
    rows = [{**p, "order_id": order_id} for p in products]
    _run(
        "insert_products",
        lambda: supabase_client.get_service_supabase().table(PRODUCTS_TABLE).insert(rows).execute(),
    )
    return [dict(p) for p in products]


def delete_order(order_id: Any) -> None:
    """Supprime une commande et ses lignes (nettoyage d'une création interrompue)."""
    _run(
        "delete_order.products",
        lambda: supabase_client.get_service_supabase().table(PRODUCTS_TABLE).delete().eq("order_id", order_id).execute(),
    )
    _run(
        "delete_order",
        lambda: supabase_client.get_service_supabase().table(ORDERS_TABLE).delete().eq("id", order_id).execute(),
    )


def insert_order(
    *,
    user_id: str,
    amount: int,
    currency: str,
    payment_intent_id: str,
    products: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Crée une commande 'pending' puis ses lignes.
    Si l'insertion des lignes échoue, la commande est supprimée avant de remonter
    StoreUnavailable: aucune commande sans produits ne reste visible.
    """
    res = _run(
        "insert_order",
        lambda: supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .insert({
            "user_id": user_id,
            "amount": amount,
            "currency": currency,
            "status": OrderStatus.pending.value,
            "payment_intent_id": payment_intent_id,
        })
        .execute(),
    )
    rows = res.data or []
    if not rows:
        logger.error("orders.repository.insert_order returned no row intent=%s", payment_intent_id)
        raise StoreUnavailable()
    order = dict(rows[0])
    try:
        order["products"] = insert_products(order["id"], products)
    except StoreUnavailable:
        try:
            delete_order(order["id"])
        except StoreUnavailable:
            logger.error("orders.repository.insert_order orphan order=%s intent=%s", order["id"], payment_intent_id)
        raise
    return order


def update_pending_order_amount(order_id: Any, amount: int) -> bool:
    """
    Met à jour le montant uniquement si la commande est encore 'pending'.
    Retourne False si aucune ligne n'a été modifiée (commande supprimée ou déjà payée).
    """
    res = _run(
        "update_pending_order_amount",
        lambda: supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .update({"amount": amount})
        .eq("id", order_id)
        .eq("status", OrderStatus.pending.value)
        .execute(),
    )
    return bool(res.data)


def replace_pending_order_products(order_id: Any, amount: int, products: List[Dict[str, Any]]) -> bool:
    """
    Remplacement complet des lignes (suppression puis ré-insertion), sous la même condition
    status='pending' que la mise à jour du montant, vérifiée juste avant la suppression.
    Retourne False sans rien toucher si la commande n'est plus 'pending'.
    """
    if not update_pending_order_amount(order_id, amount):
        return False
    _run(
        "replace_pending_order_products",
        lambda: supabase_client.get_service_supabase()
        .table(PRODUCTS_TABLE)
        .delete()
        .eq("order_id", order_id)
        .execute(),
    )
    insert_products(order_id, products)
    return True


def mark_order_complete(payment_intent_id: str) -> int:
    """
    Affectation ensembliste status='complete' par payment_intent_id.
    Rejouer l'appel ne change rien; retourne le nombre de commandes touchées (0 si inconnue).
    """
    res = _run(
        "mark_order_complete",
        lambda: supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .update({"status": OrderStatus.complete.value})
        .eq("payment_intent_id", payment_intent_id)
        .execute(),
    )
    return len(res.data or [])


def list_user_orders(user_id: str) -> List[Dict[str, Any]]:
    """Commandes de l'utilisateur (plus récentes d'abord) avec leurs produits."""
    if not user_id:
        return []
    res = _run(
        "list_user_orders",
        lambda: supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select(ORDER_SELECT)
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute(),
    )
    return [_normalize(row) for row in res.data or []]
