"""
Module 'cart' (feature-first): panier côté client.
Réunit les modèles immuables, les transitions pures, le stockage durable, le conteneur
d'état et le client asynchrone du checkout.
"""

from .models import CartLineItem, CartState, CheckoutPhase
from .storage import CartStorage, MemoryStorage, JsonFileStorage
from .store import CartStore
from .checkout import CheckoutClient

__all__ = [
    # models
    "CartLineItem",
    "CartState",
    "CheckoutPhase",
    # storage
    "CartStorage",
    "MemoryStorage",
    "JsonFileStorage",
    # store
    "CartStore",
    # checkout
    "CheckoutClient",
]
