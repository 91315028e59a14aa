"""
Cas d'usage 'payments': orchestre amount, stripe_client, orders.repository et locks.

- reconcile_checkout: crée ou aligne (intent Stripe, commande 'pending') sur un instantané du panier.
- handle_event: consomme un événement webhook vérifié et fait passer la commande en 'complete'.
- list_orders: commandes du propriétaire authentifié.
"""
import logging
from typing import Any, Dict, List, Optional

from storefront.config import CURRENCY
from storefront.orders import repository as orders_repository
from storefront.orders.models import OrderStatus, product_rows, same_products
from . import stripe_client
from .amount import UnpricedItemError, calc_amount
from .errors import CheckoutError, InvalidCart, OrderAlreadyComplete, OrderNotFound, StoreUnavailable, Unauthorized
from .locks import intent_lock
from .schemas import CheckoutItem

logger = logging.getLogger(__name__)

CHARGE_SUCCEEDED = "charge.succeeded"
INTENT_CREATED = "payment_intent.created"


def _require_identity(user: Optional[Dict[str, Any]]) -> str:
    user_id = str((user or {}).get("id") or "")
    if not user_id:
        raise Unauthorized()
    return user_id


def merge_items(items: List[CheckoutItem]) -> List[CheckoutItem]:
    """
    Fusionne les doublons de produit (quantités additionnées, position de la première occurrence).
    - InvalidCart si le panier est vide.
    """
    merged: Dict[str, CheckoutItem] = {}
    for item in items or []:
        current = merged.get(item.product_id)
        if current is None:
            merged[item.product_id] = item
        else:
            merged[item.product_id] = current.model_copy(update={"quantity": current.quantity + item.quantity})
    if not merged:
        raise InvalidCart("Panier vide")
    return list(merged.values())


def _authoritative_amount(items: List[CheckoutItem]) -> int:
    try:
        return calc_amount(items)
    except UnpricedItemError as e:
        raise InvalidCart(str(e))


def reconcile_checkout(
    *,
    user: Optional[Dict[str, Any]],
    items: List[CheckoutItem],
    payment_intent_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Aligne intent Stripe et commande persistée sur le panier soumis.
    - Sans payment_intent_id: nouvel intent + nouvelle commande 'pending'.
    - Avec payment_intent_id: relit l'intent, localise la commande, puis ne réécrit que ce qui diffère.
    - Commande d'un autre utilisateur: OrderNotFound, rien n'est modifié.
    - Échec d'enregistrement d'une nouvelle commande: l'intent créé est annulé.
    Le montant facturé est toujours recalculé ici; un total fourni par le client est ignoré.
    Retour: {"paymentIntent": {...}, "order": {...}}
    """
    user_id = _require_identity(user)
    cart = merge_items(items)
    amount = _authoritative_amount(cart)
    products = product_rows(cart)

    if not payment_intent_id:
        intent = stripe_client.create_payment_intent(amount=amount, user_id=user_id, currency=CURRENCY)
        try:
            order = orders_repository.insert_order(
                user_id=user_id,
                amount=amount,
                currency=CURRENCY,
                payment_intent_id=intent["id"],
                products=products,
            )
        except StoreUnavailable:
            # Intent sans commande: jamais exposé au client, on l'annule
            try:
                stripe_client.cancel_payment_intent(intent["id"])
            except CheckoutError as e:
                logger.error("payments.reconcile orphan intent=%s user_id=%s error=%s", intent["id"], user_id, e.code)
            raise
        logger.info("payments.reconcile created intent=%s order=%s amount=%s user_id=%s", intent["id"], order.get("id"), amount, user_id)
        return {"paymentIntent": intent, "order": order}

    with intent_lock(payment_intent_id):
        intent = stripe_client.retrieve_payment_intent(payment_intent_id)
        order = orders_repository.get_order_by_intent(payment_intent_id)
        if order is None:
            logger.warning("payments.reconcile no order for live intent=%s user_id=%s", payment_intent_id, user_id)
            raise OrderNotFound()
        if str(order.get("user_id") or "") != user_id:
            # Intent d'un autre utilisateur: même réponse qu'un intent sans commande
            logger.warning("payments.reconcile foreign intent=%s user_id=%s", payment_intent_id, user_id)
            raise OrderNotFound()
        if order.get("status") == OrderStatus.complete.value:
            raise OrderAlreadyComplete()

        if intent.get("amount") != amount:
            intent = stripe_client.update_payment_intent_amount(payment_intent_id, amount)

        if order.get("amount") != amount or not same_products(order.get("products") or [], products):
            if not orders_repository.replace_pending_order_products(order["id"], amount, products):
                # Aucune ligne touchée: commande supprimée ou payée entre-temps
                current = orders_repository.get_order_by_intent(payment_intent_id)
                if current is None:
                    raise OrderNotFound()
                raise OrderAlreadyComplete()
            order = {**order, "amount": amount, "products": products}
            logger.info("payments.reconcile updated intent=%s order=%s amount=%s", payment_intent_id, order.get("id"), amount)
        else:
            logger.info("payments.reconcile unchanged intent=%s order=%s", payment_intent_id, order.get("id"))

    return {"paymentIntent": intent, "order": order}


def handle_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Consomme un événement Stripe déjà vérifié.
    - charge.succeeded: commande liée à data.object.payment_intent => 'complete' (idempotent)
    - intent inconnu: journalisé comme incohérence, accusé de réception quand même
    - autres types: journalisés et ignorés
    Retour: {"received": True}
    """
    event_type = (event or {}).get("type")
    data_obj = ((event or {}).get("data") or {}).get("object") or {}

    if event_type == CHARGE_SUCCEEDED:
        payment_intent_id = data_obj.get("payment_intent")
        if isinstance(payment_intent_id, str) and payment_intent_id:
            with intent_lock(payment_intent_id):
                updated = orders_repository.mark_order_complete(payment_intent_id)
            if updated:
                logger.info("payments.webhook order complete intent=%s event=%s", payment_intent_id, event.get("id"))
            else:
                logger.warning("payments.webhook no order for intent=%s event=%s", payment_intent_id, event.get("id"))
        else:
            logger.warning("payments.webhook charge without payment_intent event=%s", event.get("id"))
    elif event_type == INTENT_CREATED:
        logger.info("payments.webhook payment intent created intent=%s", data_obj.get("id"))
    else:
        logger.info("payments.webhook unhandled event type=%s", event_type)
    return {"received": True}


def list_orders(user: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return orders_repository.list_user_orders(_require_identity(user))
