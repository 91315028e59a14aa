"""
Conteneur d'état du panier côté client.
- Chaque opération applique une transition pure (reducers) et remplace l'état entier.
- Après chaque changement: écriture dans le stockage durable, puis notification des abonnés.
- Un seul écrivain (la session locale): pas de verrou.
"""
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from storefront.config import CART_STORE_NAME
from storefront.payments.amount import calc_amount
from . import reducers
from .models import CartLineItem, CartState, CheckoutPhase
from .storage import CartStorage, MemoryStorage, STORAGE_VERSION

logger = logging.getLogger(__name__)

Listener = Callable[[CartState, CartState], None]


class CartStore:
    def __init__(self, storage: Optional[CartStorage] = None, name: str = CART_STORE_NAME):
        self.name = name
        self.storage = storage if storage is not None else MemoryStorage()
        self._listeners: List[Listener] = []
        self._state = self._hydrate()

    @property
    def state(self) -> CartState:
        return self._state

    def _hydrate(self) -> CartState:
        """Relit l'état persisté; entrée absente, corrompue ou d'une autre version => état initial."""
        entry = self.storage.get_item(self.name)
        if not entry:
            return CartState()
        if entry.get("version", STORAGE_VERSION) != STORAGE_VERSION:
            logger.info("cart.store ignoring persisted version=%s name=%s", entry.get("version"), self.name)
            return CartState()
        try:
            return CartState.model_validate(entry.get("state") or {})
        except ValidationError:
            logger.warning("cart.store invalid persisted state name=%s", self.name)
            return CartState()

    def _persist(self, state: CartState) -> None:
        self.storage.set_item(
            self.name,
            {"state": state.model_dump(mode="json", by_alias=True), "version": STORAGE_VERSION},
        )

    def _set(self, transition: Callable[[CartState], CartState]) -> CartState:
        previous = self._state
        new_state = transition(previous)
        if new_state is previous:
            return previous
        self._state = new_state
        self._persist(new_state)
        for listener in list(self._listeners):
            listener(new_state, previous)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Enregistre un observateur (new_state, previous_state); retourne la fonction de désabonnement."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # --- Opérations ---

    def toggle(self) -> CartState:
        return self._set(reducers.toggle)

    def add(self, item: CartLineItem) -> CartState:
        return self._set(lambda s: reducers.add_product(s, item))

    def remove(self, item: CartLineItem) -> CartState:
        return self._set(lambda s: reducers.remove_product(s, item))

    def clear(self) -> CartState:
        return self._set(reducers.clear)

    def set_intent_id(self, payment_intent_id: str) -> CartState:
        return self._set(lambda s: reducers.set_intent_id(s, payment_intent_id))

    def set_phase(self, phase: CheckoutPhase) -> CartState:
        return self._set(lambda s: reducers.set_phase(s, phase))

    def complete_checkout(self) -> CartState:
        return self._set(reducers.complete_checkout)

    def total(self) -> int:
        """Total affiché (centimes). Lève UnpricedItemError si une ligne n'a pas de prix."""
        return calc_amount(self._state.items)
