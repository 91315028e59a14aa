"""
Module 'payments' (feature-first): point d'entrée public.
Réunit calcul du montant, client Stripe, sérialisation par intent, erreurs et services.
"""

from .amount import calc_amount, UnpricedItemError
from .errors import (
    CheckoutError,
    Unauthorized,
    InvalidCart,
    IntentNotFound,
    OrderNotFound,
    OrderAlreadyComplete,
    ConcurrentUpdate,
    InvalidSignature,
    ProcessorUnavailable,
    StoreUnavailable,
)
from .stripe_client import (
    require_stripe,
    create_payment_intent,
    retrieve_payment_intent,
    update_payment_intent_amount,
    cancel_payment_intent,
    verify_event,
)
from .service import reconcile_checkout, handle_event, list_orders

__all__ = [
    # amount
    "calc_amount",
    "UnpricedItemError",
    # errors
    "CheckoutError",
    "Unauthorized",
    "InvalidCart",
    "IntentNotFound",
    "OrderNotFound",
    "OrderAlreadyComplete",
    "ConcurrentUpdate",
    "InvalidSignature",
    "ProcessorUnavailable",
    "StoreUnavailable",
    # stripe
    "require_stripe",
    "create_payment_intent",
    "retrieve_payment_intent",
    "update_payment_intent_amount",
    "cancel_payment_intent",
    "verify_event",
    # services
    "reconcile_checkout",
    "handle_event",
    "list_orders",
]
